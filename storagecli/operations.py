"""Single round-trip storage operations: info, listing, stat and file management"""

import logging

from .args import ArgStatus, CommandRequest, read_probably_quoted_string
from .backend import FileInfo, StorageBackend
from .errors import FSError
from .paths import (
    EXT_PATH_PREFIX,
    INT_PATH_PREFIX,
    MOUNT_PREFIXES,
    REAL_MOUNTS,
    ROOT_PATH,
    PathKind,
    classify,
    is_valid,
)
from .reporter import print_error, print_usage
from .terminal import Terminal

logger = logging.getLogger(__name__)

INTERNAL_FS_TYPE = "LittleFS"


def _kib(size: int) -> int:
    return size // 1024


class StorageOperations:
    """Metadata and admin commands, each translated into readable lines"""

    def __init__(self, backend: StorageBackend, terminal: Terminal):
        self.backend = backend
        self.terminal = terminal

    def _print_entry(self, name: str, info: FileInfo):
        if info.is_dir:
            self.terminal.println(f"\t[D] {name}")
        else:
            self.terminal.println(f"\t[F] {name} {info.size}b")

    def info(self, request: CommandRequest):
        if request.path == INT_PATH_PREFIX:
            error, total, free = self.backend.fs_info(INT_PATH_PREFIX)
            if error is not FSError.OK:
                print_error(self.terminal, error)
                return
            self.terminal.println(f"Label: {self.backend.device_name() or 'Unknown'}")
            self.terminal.println(f"Type: {INTERNAL_FS_TYPE}")
            self.terminal.println(f"{_kib(total)}KiB total")
            self.terminal.println(f"{_kib(free)}KiB free")

        elif request.path == EXT_PATH_PREFIX:
            error, sd = self.backend.sd_info()
            if error is not FSError.OK:
                print_error(self.terminal, error)
                return
            self.terminal.println(f"Label: {sd.label}")
            self.terminal.println(f"Type: {sd.fs_type}")
            self.terminal.println(f"{sd.kb_total}KiB total")
            self.terminal.println(f"{sd.kb_free}KiB free")
            self.terminal.println(
                f"{sd.manufacturer_id:02x}{sd.oem_id} {sd.product_name} "
                f"v{sd.product_revision_major}.{sd.product_revision_minor}"
            )
            self.terminal.println(
                f"SN:{sd.product_serial_number:04x} "
                f"{sd.manufacturing_month:02d}/{sd.manufacturing_year}"
            )

        else:
            print_usage(self.terminal)

    def format(self, request: CommandRequest):
        """Format the SD card after a y/n confirmation"""
        if request.path == INT_PATH_PREFIX:
            print_error(self.terminal, FSError.NOT_IMPLEMENTED)

        elif request.path == EXT_PATH_PREFIX:
            confirmed = self.terminal.confirm(
                "Formatting SD card, All data will be lost! Are you sure (y/n)?"
            )
            if not confirmed:
                logger.info("format of %s cancelled by user", request.path)
                self.terminal.println("Cancelled.")
                return

            self.terminal.println("Formatting, please wait...")
            error = self.backend.format_sd()
            if error is not FSError.OK:
                print_error(self.terminal, error)
            else:
                self.terminal.println("SD card was successfully formatted.")

        else:
            print_usage(self.terminal)

    def list(self, request: CommandRequest):
        if request.path == ROOT_PATH:
            for prefix in MOUNT_PREFIXES:
                self._print_entry(prefix.lstrip("/"), FileInfo(is_dir=True))
            return
        if not is_valid(request.path):
            print_usage(self.terminal)
            return

        error, entries = self.backend.list_dir(request.path)
        if error is not FSError.OK:
            print_error(self.terminal, error)
            return
        self._print_entries(entries)

    def tree(self, request: CommandRequest):
        if request.path == ROOT_PATH:
            for mount in REAL_MOUNTS:
                self._walk(mount)
        else:
            self._walk(request.path)

    def _walk(self, path: str):
        error, entries = self.backend.walk(path)
        if error is not FSError.OK:
            print_error(self.terminal, error)
            return
        self._print_entries(entries)

    def _print_entries(self, entries):
        empty = True
        try:
            for name, info in entries:
                empty = False
                self._print_entry(name, info)
        finally:
            close = getattr(entries, "close", None)
            if close is not None:
                close()
        if empty:
            self.terminal.println("\tEmpty")

    def stat(self, request: CommandRequest):
        kind = classify(request.path)

        if kind is PathKind.ROOT:
            self.terminal.println("Storage")

        elif kind is PathKind.MOUNT:
            error, total, free = self.backend.fs_info(request.path)
            if error is not FSError.OK:
                print_error(self.terminal, error)
                return
            self.terminal.println(
                f"Storage, {_kib(total)}KiB total, {_kib(free)}KiB free"
            )

        else:
            error, info = self.backend.stat(request.path)
            if error is not FSError.OK:
                print_error(self.terminal, error)
                return
            if info.is_dir:
                self.terminal.println("Directory")
            else:
                self.terminal.println(f"File, size: {info.size}b")

    def timestamp(self, request: CommandRequest):
        error, timestamp = self.backend.timestamp(request.path)
        if error is not FSError.OK:
            logger.info("timestamp of %s failed: %s", request.path, error.name)
            self.terminal.println("Invalid arguments")
        else:
            self.terminal.println(f"Timestamp {timestamp}")

    def _two_path_command(self, request: CommandRequest, call):
        status, new_path, _ = read_probably_quoted_string(request.args)
        if status is not ArgStatus.OK:
            print_usage(self.terminal)
            return

        error = call(request.path, new_path)
        if error is not FSError.OK:
            print_error(self.terminal, error)

    def copy(self, request: CommandRequest):
        self._two_path_command(request, self.backend.copy)

    def rename(self, request: CommandRequest):
        self._two_path_command(request, self.backend.rename)

    def migrate(self, request: CommandRequest):
        self._two_path_command(request, self.backend.migrate)

    def remove(self, request: CommandRequest):
        error = self.backend.remove(request.path)
        if error is not FSError.OK:
            print_error(self.terminal, error)

    def mkdir(self, request: CommandRequest):
        error = self.backend.mkdir(request.path)
        if error is not FSError.OK:
            print_error(self.terminal, error)

    def md5(self, request: CommandRequest):
        error, digest = self.backend.md5(request.path)
        if error is not FSError.OK:
            print_error(self.terminal, error)
        else:
            self.terminal.println(digest)

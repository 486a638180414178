"""Storage backend over two host directories

/int and /ext map to host directories; /any resolves to /ext while a card
directory exists and to /int otherwise. A missing card directory makes
every /ext call answer NOT_READY.
"""

import errno
import hashlib
import logging
import os
import shutil
import sys
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .backend import (
    AccessMode,
    FileInfo,
    OpenMode,
    SDInfo,
    StorageBackend,
    StorageFile,
    SystemControl,
)
from .errors import FSError
from .paths import ANY_PATH_PREFIX, EXT_PATH_PREFIX, INT_PATH_PREFIX, mount_of

logger = logging.getLogger(__name__)

MD5_BLOCK_SIZE = 512

_ERRNO_MAP = {
    errno.ENOENT: FSError.NOT_EXIST,
    errno.EEXIST: FSError.EXIST,
    errno.EACCES: FSError.DENIED,
    errno.EPERM: FSError.DENIED,
    errno.EISDIR: FSError.DENIED,
    errno.ENOTEMPTY: FSError.DENIED,
    errno.EBUSY: FSError.DENIED,
    errno.ENOTDIR: FSError.INVALID_NAME,
    errno.ENAMETOOLONG: FSError.INVALID_NAME,
    errno.EINVAL: FSError.INVALID_NAME,
}


def error_from_os(exc: OSError) -> FSError:
    """Translate an OSError into a storage result code"""
    return _ERRNO_MAP.get(exc.errno, FSError.INTERNAL)


def _python_mode(access: AccessMode, mode: OpenMode) -> str:
    readable = bool(access & AccessMode.READ)
    writable = bool(access & AccessMode.WRITE)
    both = readable and writable

    if mode is OpenMode.OPEN_EXISTING or mode is OpenMode.OPEN_ALWAYS:
        return "r+b" if writable else "rb"
    if mode is OpenMode.OPEN_APPEND:
        return "a+b" if both else "ab"
    if mode is OpenMode.CREATE_NEW:
        return "x+b" if both else "xb"
    return "w+b" if both else "wb"


def next_free_name(path: str) -> str:
    """Return path, or `<stem><n><ext>` with the lowest n that does not exist"""
    if not os.path.lexists(path):
        return path
    directory, name = os.path.split(path)
    stem, ext = os.path.splitext(name)
    index = 1
    while True:
        candidate = os.path.join(directory, f"{stem}{index}{ext}")
        if not os.path.lexists(candidate):
            return candidate
        index += 1


@dataclass(frozen=True)
class CardIdentity:
    """Identification registers reported for the card directory"""

    label: str = "STORAGE"
    fs_type: str = "FAT32"
    manufacturer_id: int = 0x03
    oem_id: str = "SD"
    product_name: str = "SC16G"
    product_revision_major: int = 8
    product_revision_minor: int = 0
    product_serial_number: int = 0x5A3C
    manufacturing_month: int = 6
    manufacturing_year: int = 2021


class LocalFile(StorageFile):
    """Handle over a host file object"""

    def __init__(self, storage: "LocalStorage", key: str, fileobj):
        self._storage = storage
        self._key = key
        self._file = fileobj
        self._error = FSError.OK
        self._closed = False

    @property
    def error(self) -> FSError:
        return self._error

    def read(self, size: int) -> bytes:
        try:
            data = self._file.read(size)
        except OSError as e:
            self._error = error_from_os(e)
            return b""
        self._error = FSError.OK
        return data

    def write(self, data: bytes) -> int:
        try:
            written = self._file.write(data)
            self._file.flush()
        except OSError as e:
            self._error = error_from_os(e)
            return 0
        self._error = FSError.OK
        return written

    def size(self) -> int:
        try:
            return os.fstat(self._file.fileno()).st_size
        except OSError as e:
            self._error = error_from_os(e)
            return 0

    def close(self) -> bool:
        if self._closed:
            return False
        self._closed = True
        try:
            self._file.close()
        finally:
            self._storage._release(self._key)
        return True


class LocalStorage(StorageBackend):
    """StorageBackend mapping the mount prefixes onto host directories"""

    def __init__(
        self,
        int_root: str,
        ext_root: Optional[str] = None,
        device_name: Optional[str] = None,
        card: Optional[CardIdentity] = None,
    ):
        self.int_root = int_root
        self.ext_root = ext_root
        self._device_name = device_name
        self.card = card or CardIdentity()
        self._open_files = set()

    @classmethod
    def from_config(cls, config) -> "LocalStorage":
        """Create the backend for a Config, creating its directories"""
        os.makedirs(config.int_root, exist_ok=True)
        if config.ext_root:
            os.makedirs(config.ext_root, exist_ok=True)
        return cls(
            config.int_root,
            config.ext_root,
            device_name=config.device_name,
            card=CardIdentity(label=config.card_label),
        )

    def card_present(self) -> bool:
        return bool(self.ext_root) and os.path.isdir(self.ext_root)

    def _mount_root(self, path: str) -> Tuple[FSError, Optional[str], Optional[str]]:
        """Return (error, mount prefix, host root) for a storage path"""
        mount = mount_of(path)
        if mount is None:
            return FSError.INVALID_NAME, None, None

        target = mount
        if mount == ANY_PATH_PREFIX:
            target = EXT_PATH_PREFIX if self.card_present() else INT_PATH_PREFIX

        if target == EXT_PATH_PREFIX:
            if not self.card_present():
                return FSError.NOT_READY, mount, None
            return FSError.OK, mount, self.ext_root

        if not os.path.isdir(self.int_root):
            return FSError.NOT_READY, mount, None
        return FSError.OK, mount, self.int_root

    def _resolve(self, path: str) -> Tuple[FSError, Optional[str]]:
        """Map a storage path onto a host path inside its mount"""
        error, mount, root = self._mount_root(path)
        if error is not FSError.OK:
            return error, None

        parts = [p for p in path[len(mount):].split("/") if p and p != "."]
        if ".." in parts:
            return FSError.INVALID_NAME, None
        return FSError.OK, os.path.join(root, *parts)

    def _is_mount_root(self, local: str) -> bool:
        roots = [self.int_root] + ([self.ext_root] if self.ext_root else [])
        return any(os.path.realpath(local) == os.path.realpath(r) for r in roots)

    def _release(self, key: str):
        self._open_files.discard(key)

    def open_file(self, path, access, mode):
        error, local = self._resolve(path)
        if error is not FSError.OK:
            return error, None

        key = os.path.realpath(local)
        if key in self._open_files:
            return FSError.ALREADY_OPEN, None

        try:
            if mode is OpenMode.OPEN_ALWAYS and not os.path.exists(local):
                open(local, "xb").close()
            fileobj = open(local, _python_mode(access, mode))
        except OSError as e:
            return error_from_os(e), None

        self._open_files.add(key)
        logger.debug("opened %s (%s, %s)", path, access, mode.name)
        return FSError.OK, LocalFile(self, key, fileobj)

    def stat(self, path):
        error, local = self._resolve(path)
        if error is not FSError.OK:
            return error, None
        try:
            st = os.stat(local)
        except OSError as e:
            return error_from_os(e), None
        is_dir = os.path.isdir(local)
        return FSError.OK, FileInfo(is_dir=is_dir, size=0 if is_dir else st.st_size)

    def fs_info(self, path):
        error, _, root = self._mount_root(path)
        if error is not FSError.OK:
            return error, 0, 0
        try:
            usage = shutil.disk_usage(root)
        except OSError as e:
            return error_from_os(e), 0, 0
        return FSError.OK, usage.total, usage.free

    def sd_info(self):
        error, total, free = self.fs_info(EXT_PATH_PREFIX)
        if error is not FSError.OK:
            return error, None
        card = self.card
        return FSError.OK, SDInfo(
            label=card.label,
            fs_type=card.fs_type,
            kb_total=total // 1024,
            kb_free=free // 1024,
            manufacturer_id=card.manufacturer_id,
            oem_id=card.oem_id,
            product_name=card.product_name,
            product_revision_major=card.product_revision_major,
            product_revision_minor=card.product_revision_minor,
            product_serial_number=card.product_serial_number,
            manufacturing_month=card.manufacturing_month,
            manufacturing_year=card.manufacturing_year,
        )

    def device_name(self):
        return self._device_name

    def timestamp(self, path):
        error, local = self._resolve(path)
        if error is not FSError.OK:
            return error, 0
        try:
            return FSError.OK, int(os.stat(local).st_mtime)
        except OSError as e:
            return error_from_os(e), 0

    def _resolve_pair(self, old_path, new_path):
        error, src = self._resolve(old_path)
        if error is not FSError.OK:
            return error, None, None
        error, dst = self._resolve(new_path)
        if error is not FSError.OK:
            return error, None, None
        if not os.path.lexists(src):
            return FSError.NOT_EXIST, None, None
        return FSError.OK, src, dst

    def copy(self, old_path, new_path):
        error, src, dst = self._resolve_pair(old_path, new_path)
        if error is not FSError.OK:
            return error
        if os.path.lexists(dst):
            return FSError.EXIST
        try:
            if os.path.isdir(src):
                shutil.copytree(src, dst)
            else:
                shutil.copyfile(src, dst)
        except OSError as e:
            return error_from_os(e)
        return FSError.OK

    def rename(self, old_path, new_path):
        error, src, dst = self._resolve_pair(old_path, new_path)
        if error is not FSError.OK:
            return error
        if self._is_mount_root(src):
            return FSError.DENIED
        if os.path.lexists(dst):
            return FSError.EXIST
        try:
            shutil.move(src, dst)
        except OSError as e:
            return error_from_os(e)
        return FSError.OK

    def migrate(self, old_path, new_path):
        error, src, dst = self._resolve_pair(old_path, new_path)
        if error is not FSError.OK:
            return error

        real_src = os.path.realpath(src)
        if os.path.realpath(dst) == real_src or os.path.realpath(dst).startswith(real_src + os.sep):
            return FSError.INVALID_PARAMETER

        try:
            if not os.path.isdir(src):
                shutil.move(src, next_free_name(dst))
                return FSError.OK

            if os.path.lexists(dst) and not os.path.isdir(dst):
                return FSError.EXIST
            os.makedirs(dst, exist_ok=True)
            self._merge(src, dst)
            if not self._is_mount_root(src):
                shutil.rmtree(src)
        except OSError as e:
            return error_from_os(e)
        return FSError.OK

    def _merge(self, src: str, dst: str):
        """Move the contents of src into dst, renaming colliding files"""
        for entry in sorted(os.scandir(src), key=lambda e: e.name):
            target = os.path.join(dst, entry.name)
            if entry.is_dir(follow_symlinks=False) and os.path.isdir(target):
                self._merge(entry.path, target)
                os.rmdir(entry.path)
            else:
                new_name = next_free_name(target)
                if new_name != target:
                    logger.info("migrate: %s exists, using %s", target, new_name)
                shutil.move(entry.path, new_name)

    def remove(self, path):
        error, local = self._resolve(path)
        if error is not FSError.OK:
            return error
        if self._is_mount_root(local):
            return FSError.DENIED
        if os.path.realpath(local) in self._open_files:
            return FSError.ALREADY_OPEN
        try:
            if os.path.isdir(local) and not os.path.islink(local):
                os.rmdir(local)
            else:
                os.remove(local)
        except OSError as e:
            return error_from_os(e)
        return FSError.OK

    def mkdir(self, path):
        error, local = self._resolve(path)
        if error is not FSError.OK:
            return error
        try:
            os.mkdir(local)
        except OSError as e:
            return error_from_os(e)
        return FSError.OK

    def md5(self, path):
        error, handle = self.open_file(path, AccessMode.READ, OpenMode.OPEN_EXISTING)
        if error is not FSError.OK:
            return error, ""

        digest = hashlib.md5()
        try:
            while True:
                block = handle.read(MD5_BLOCK_SIZE)
                if not block:
                    break
                digest.update(block)
            if handle.error is not FSError.OK:
                return handle.error, ""
        finally:
            handle.close()
        return FSError.OK, digest.hexdigest()

    def format_sd(self):
        if not self.card_present():
            return FSError.NOT_READY
        root = os.path.realpath(self.ext_root)
        if any(key.startswith(root + os.sep) for key in self._open_files):
            return FSError.DENIED
        try:
            _wipe(self.ext_root)
        except OSError as e:
            return error_from_os(e)
        logger.info("formatted card at %s", self.ext_root)
        return FSError.OK

    def wipe_internal(self):
        """Erase everything on /int"""
        _wipe(self.int_root)
        logger.warning("internal storage wiped")

    def list_dir(self, path):
        error, local = self._resolve(path)
        if error is not FSError.OK:
            return error, iter(())
        if not os.path.exists(local):
            return FSError.NOT_EXIST, iter(())
        if not os.path.isdir(local):
            return FSError.INVALID_NAME, iter(())
        try:
            entries = _scandir_sorted(local)
        except OSError as e:
            return error_from_os(e), iter(())
        return FSError.OK, ((entry.name, _entry_info(entry)) for entry in entries)

    def walk(self, path):
        """Depth-first listing; every directory is read before anything is yielded"""
        error, local = self._resolve(path)
        if error is not FSError.OK:
            return error, iter(())
        if not os.path.exists(local):
            return FSError.NOT_EXIST, iter(())
        if not os.path.isdir(local):
            return FSError.INVALID_NAME, iter(())
        tree = []
        try:
            self._collect_tree(local, path.rstrip("/"), tree)
        except OSError as e:
            return error_from_os(e), iter(())
        return FSError.OK, iter(tree)

    def _collect_tree(self, local: str, prefix: str, tree: list):
        for entry in _scandir_sorted(local):
            full_path = f"{prefix}/{entry.name}"
            info = _entry_info(entry)
            tree.append((full_path, info))
            if info.is_dir:
                self._collect_tree(entry.path, full_path, tree)


def _scandir_sorted(local: str):
    with os.scandir(local) as it:
        entries = list(it)
    return sorted(entries, key=lambda e: e.name)


def _entry_info(entry) -> FileInfo:
    if entry.is_dir(follow_symlinks=False):
        return FileInfo(is_dir=True)
    try:
        return FileInfo(is_dir=False, size=entry.stat().st_size)
    except OSError:
        return FileInfo(is_dir=False)


def _wipe(root: str):
    for entry in _scandir_sorted(root):
        if entry.is_dir(follow_symlinks=False):
            shutil.rmtree(entry.path)
        else:
            os.remove(entry.path)


class LocalSystem(SystemControl):
    """Factory reset flag kept as a file; reboot re-executes the process"""

    def __init__(self, flag_path: str, restart: Optional[Callable[[], None]] = None):
        self.flag_path = flag_path
        self.restart = restart

    def set_factory_reset_flag(self):
        os.makedirs(os.path.dirname(self.flag_path), exist_ok=True)
        with open(self.flag_path, "w"):
            pass
        logger.info("factory reset flag set at %s", self.flag_path)

    def factory_reset_pending(self) -> bool:
        return os.path.exists(self.flag_path)

    def clear_factory_reset_flag(self):
        if os.path.exists(self.flag_path):
            os.remove(self.flag_path)

    def reboot(self):
        logger.info("rebooting")
        if self.restart is not None:
            self.restart()
            return
        sys.stdout.flush()
        os.execv(sys.executable, [sys.executable] + sys.argv)


def apply_pending_factory_reset(storage: LocalStorage, system: LocalSystem) -> bool:
    """Wipe /int if a factory reset was requested before the last reboot"""
    if not system.factory_reset_pending():
        return False
    storage.wipe_internal()
    system.clear_factory_reset_flag()
    return True

"""Storage command table"""

import logging
from typing import Callable, Dict, Optional

from .args import ArgStatus, CommandRequest, parse_request
from .backend import StorageBackend, SystemControl
from .operations import StorageOperations
from .reporter import print_usage
from .terminal import Terminal
from .transfer import TransferEngine

logger = logging.getLogger(__name__)

Handler = Callable[[CommandRequest], None]


class StorageCommands:
    """Dispatch `<cmd> <path> [<args>]` lines to storage handlers"""

    def __init__(self, backend: StorageBackend, terminal: Terminal):
        self.backend = backend
        self.terminal = terminal
        self.operations = StorageOperations(backend, terminal)
        self.transfer = TransferEngine(backend, terminal)
        self.commands: Dict[str, Handler] = {
            "info": self.operations.info,
            "format": self.operations.format,
            "list": self.operations.list,
            "tree": self.operations.tree,
            "read": self.transfer.read,
            "read_chunks": self.transfer.read_chunks,
            "write": self.transfer.write,
            "write_chunk": self.transfer.write_chunk,
            "copy": self.operations.copy,
            "remove": self.operations.remove,
            "rename": self.operations.rename,
            "migrate": self.operations.migrate,
            "mkdir": self.operations.mkdir,
            "md5": self.operations.md5,
            "stat": self.operations.stat,
            "timestamp": self.operations.timestamp,
        }

    def get_handler(self, command: str) -> Optional[Handler]:
        return self.commands.get(command)

    def execute(self, line: str):
        """Run one storage line; malformed lines and unknown commands print usage"""
        status, request = parse_request(line)
        if status is not ArgStatus.OK:
            logger.debug("unparsable storage line (%s): %r", status.value, line)
            print_usage(self.terminal)
            return

        handler = self.get_handler(request.command)
        if handler is None:
            logger.debug("unknown storage command: %s", request.command)
            print_usage(self.terminal)
            return

        logger.debug("storage %s %s", request.command, request.path)
        handler(request)


def factory_reset(terminal: Terminal, system: SystemControl):
    """Ask for confirmation, then flag the device for wiping and reboot"""
    if terminal.confirm("All data will be lost! Are you sure (y/n)?"):
        terminal.println("Data will be wiped after reboot.")
        system.set_factory_reset_flag()
        system.reboot()
    else:
        logger.info("factory reset declined")
        terminal.println("Safe choice.")

"""Streaming transfers between the terminal and storage files"""

import logging
from typing import Optional, Tuple

from .args import CommandRequest, parse_count
from .backend import AccessMode, OpenMode, StorageBackend, StorageFile
from .errors import FSError
from .reporter import print_error, print_usage
from .terminal import CRLF, ETX, CancellationToken, Terminal

logger = logging.getLogger(__name__)

READ_BUFFER_SIZE = 128
WRITE_BUFFER_SIZE = 512

WRITE_PROMPT = "Just write your text data. New line by Ctrl+Enter, exit by Ctrl+C."


class TransferSession:
    """
    State of one streaming operation

    The session owns exactly one open handle and closes it once, when the
    with-block exits.
    """

    def __init__(self, handle: StorageFile, buffer_size: int):
        self.handle = handle
        self.buffer_size = buffer_size
        self.buffer = bytearray()
        self.remaining = 0
        self.received = 0
        self._closed = False

    @classmethod
    def open(
        cls,
        backend: StorageBackend,
        path: str,
        access: AccessMode,
        mode: OpenMode,
        buffer_size: int,
    ) -> Tuple[FSError, Optional["TransferSession"]]:
        error, handle = backend.open_file(path, access, mode)
        if error is not FSError.OK:
            return error, None
        return FSError.OK, cls(handle, buffer_size)

    def close(self):
        if not self._closed:
            self._closed = True
            self.handle.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def _write_error(handle: StorageFile) -> FSError:
    """Error to report for a short write"""
    if handle.error is FSError.OK:
        return FSError.INTERNAL
    return handle.error


class TransferEngine:
    """Bounded-buffer read and write loops against a storage backend"""

    def __init__(self, backend: StorageBackend, terminal: Terminal):
        self.backend = backend
        self.terminal = terminal

    def read(self, request: CommandRequest):
        """Print the size and full content of a file"""
        error, session = TransferSession.open(
            self.backend,
            request.path,
            AccessMode.READ,
            OpenMode.OPEN_EXISTING,
            READ_BUFFER_SIZE,
        )
        if error is not FSError.OK:
            print_error(self.terminal, error)
            return

        with session:
            handle = session.handle
            self.terminal.println(f"Size: {handle.size()}")

            while True:
                data = handle.read(session.buffer_size)
                if not data:
                    break
                self.terminal.write_bytes(data)
            self.terminal.write(CRLF)

            if handle.error is not FSError.OK:
                print_error(self.terminal, handle.error)

    def read_chunks(self, request: CommandRequest):
        """
        Print a file in blocks of <args> bytes

        Each block waits for one acknowledgement symbol from the input
        channel before it is read.
        """
        chunk_size = parse_count(request.args)
        if chunk_size is None:
            print_usage(self.terminal)
            return

        error, session = TransferSession.open(
            self.backend,
            request.path,
            AccessMode.READ,
            OpenMode.OPEN_EXISTING,
            chunk_size,
        )
        if error is not FSError.OK:
            print_error(self.terminal, error)
            return

        with session:
            handle = session.handle
            session.remaining = handle.size()
            self.terminal.println(f"Size: {session.remaining}")

            if session.buffer_size:
                while session.remaining > 0:
                    self.terminal.write(f"{CRLF}Ready?{CRLF}")
                    self.terminal.getc()

                    data = handle.read(session.buffer_size)
                    if not data:
                        # file shrank under us or the read failed
                        if handle.error is not FSError.OK:
                            print_error(self.terminal, handle.error)
                        break
                    self.terminal.write_bytes(data)
                    session.remaining -= len(data)
            self.terminal.write(CRLF)

    def write(self, request: CommandRequest, token: Optional[CancellationToken] = None):
        """
        Append interactively typed text to a file

        Symbols are echoed and collected in a fixed buffer that is flushed
        whenever it fills. ETX cancels the loop; whatever is left in the
        buffer is then flushed once.
        """
        token = token or CancellationToken()
        error, session = TransferSession.open(
            self.backend,
            request.path,
            AccessMode.WRITE,
            OpenMode.OPEN_APPEND,
            WRITE_BUFFER_SIZE,
        )
        if error is not FSError.OK:
            print_error(self.terminal, error)
            return

        with session:
            self.terminal.println(WRITE_PROMPT)
            session.buffer = bytearray(session.buffer_size)

            for symbol in self.terminal.symbols(token):
                if symbol == ETX:
                    token.cancel()
                    continue

                index = session.received % session.buffer_size
                session.buffer[index] = symbol
                self.terminal.write_bytes(bytes((symbol,)))
                session.received += 1

                if session.received % session.buffer_size == 0:
                    # a short write is reported but does not end the loop
                    self._flush(session, session.buffer_size)

            pending = session.received % session.buffer_size
            if pending:
                self._flush(session, pending)
            self.terminal.write(CRLF)

        logger.info("write to %s finished after %d bytes", request.path, session.received)

    def _flush(self, session: TransferSession, size: int):
        written = session.handle.write(bytes(session.buffer[:size]))
        if written != size:
            print_error(self.terminal, _write_error(session.handle))

    def write_chunk(self, request: CommandRequest):
        """
        Append up to <args> raw bytes from the input channel to a file

        A short read is not retried. The written count is checked against
        the requested count, so a short read is reported as an error.
        """
        chunk_size = parse_count(request.args)
        if chunk_size is None:
            print_usage(self.terminal)
            return

        error, session = TransferSession.open(
            self.backend,
            request.path,
            AccessMode.WRITE,
            OpenMode.OPEN_APPEND,
            chunk_size,
        )
        if error is not FSError.OK:
            print_error(self.terminal, error)
            return

        with session:
            self.terminal.println("Ready")

            if session.buffer_size:
                data = self.terminal.read(session.buffer_size)
                session.received = len(data)
                written = session.handle.write(data)

                if written != session.buffer_size:
                    print_error(self.terminal, _write_error(session.handle))

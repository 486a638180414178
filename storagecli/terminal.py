"""Terminal I/O: raw CRLF output plus a blocking input channel"""

import io
import os
import sys
from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator

import click

ETX = 0x03  # Ctrl+C, ends interactive input
CRLF = "\r\n"


class CancellationToken:
    """Cooperative cancellation flag checked by input loops"""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class InputChannel(ABC):
    """Source of user input symbols and raw bytes"""

    @abstractmethod
    def getc(self) -> int:
        """Block until one symbol arrives; end of input reads as ETX"""
        pass

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Read up to size bytes, possibly fewer"""
        pass


class BufferedChannel(InputChannel):
    """Input channel over an in-memory byte string"""

    def __init__(self, data: bytes = b""):
        self._stream = io.BytesIO(data)

    def getc(self) -> int:
        symbol = self._stream.read(1)
        if not symbol:
            return ETX
        return symbol[0]

    def read(self, size: int) -> bytes:
        return self._stream.read(size)


class StdinChannel(InputChannel):
    """
    Input channel over the process stdin

    On a terminal single keys are read in raw mode through click.getchar,
    with Ctrl+C and Ctrl+D both mapped to ETX. Piped input is read byte
    by byte and its end reads as ETX.
    """

    def __init__(self, stream=None):
        self._stream = stream
        self._pending = bytearray()

    @property
    def stream(self):
        return self._stream or sys.stdin

    def _is_tty(self) -> bool:
        try:
            return self.stream.isatty()
        except (AttributeError, ValueError):
            return False

    def getc(self) -> int:
        if not self._pending:
            self._pending.extend(self._next_chunk())
        if not self._pending:
            return ETX
        return self._pending.pop(0)

    def _next_chunk(self) -> bytes:
        if self._is_tty():
            try:
                ch = click.getchar()
            except (KeyboardInterrupt, EOFError):
                return bytes((ETX,))
            return ch.encode("utf-8", errors="replace")

        return self._binary().read(1)

    def read(self, size: int) -> bytes:
        if self._pending:
            data = bytes(self._pending[:size])
            del self._pending[:size]
            return data
        binary = self._binary()
        if self._is_tty():
            return os.read(binary.fileno(), size)
        read1 = getattr(binary, "read1", binary.read)
        return read1(size)

    def _binary(self):
        return getattr(self.stream, "buffer", self.stream)


class Terminal:
    """
    Line-oriented output and blocking input for one command session

    Text is UTF-8 encoded and written unchanged, so CR and other control
    bytes reach the terminal as-is. File contents go out through
    write_bytes without decoding.
    """

    def __init__(self, output: BinaryIO, channel: InputChannel):
        self.output = output
        self.channel = channel

    @classmethod
    def stdio(cls) -> "Terminal":
        """Terminal over the process stdout/stdin"""
        sys.stdout.flush()
        output = getattr(sys.stdout, "buffer", sys.stdout)
        return cls(output, StdinChannel())

    @classmethod
    def from_bytes(cls, data: bytes = b"") -> "Terminal":
        """Terminal reading from data and writing to an in-memory buffer"""
        return cls(io.BytesIO(), BufferedChannel(data))

    def get_output(self) -> bytes:
        """Buffered output of a from_bytes terminal"""
        return self.output.getvalue()

    def write(self, text: str):
        self.output.write(text.encode("utf-8"))
        self.output.flush()

    def println(self, text: str = ""):
        self.write(text + CRLF)

    def write_bytes(self, data: bytes):
        self.output.write(data)
        self.output.flush()

    def getc(self) -> int:
        return self.channel.getc()

    def read(self, size: int) -> bytes:
        return self.channel.read(size)

    def symbols(self, token: CancellationToken) -> Iterator[int]:
        """Yield input symbols until token is cancelled"""
        while not token.cancelled:
            yield self.getc()

    def confirm(self, question: str) -> bool:
        """Print a y/n question and wait for a single key"""
        self.println(question)
        answer = self.getc()
        return answer in (ord("y"), ord("Y"))

"""Storage backend contract

The command layer only talks to storage through these interfaces. Every
call reports its outcome as an FSError value instead of raising.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, Flag
from typing import Iterator, Optional, Tuple

from .errors import FSError


class AccessMode(Flag):
    READ = 1
    WRITE = 2


class OpenMode(Enum):
    OPEN_EXISTING = 1  # fail if the file is missing
    OPEN_ALWAYS = 2  # create if missing
    OPEN_APPEND = 4  # create if missing, position at the end
    CREATE_NEW = 8  # fail if the file exists
    CREATE_ALWAYS = 16  # create or truncate


@dataclass(frozen=True)
class FileInfo:
    is_dir: bool = False
    size: int = 0


@dataclass(frozen=True)
class SDInfo:
    """Card label, capacity and identification registers"""

    label: str
    fs_type: str
    kb_total: int
    kb_free: int
    manufacturer_id: int
    oem_id: str
    product_name: str
    product_revision_major: int
    product_revision_minor: int
    product_serial_number: int
    manufacturing_month: int
    manufacturing_year: int


DirEntries = Iterator[Tuple[str, FileInfo]]


class StorageFile(ABC):
    """An open file handle owned by a single caller"""

    @property
    @abstractmethod
    def error(self) -> FSError:
        """Result of the last operation on this handle"""
        pass

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Read up to size bytes; an empty result means end of file or failure"""
        pass

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write data and return the number of bytes actually written"""
        pass

    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def close(self) -> bool:
        pass


class StorageBackend(ABC):
    """Public contract of the storage service"""

    @abstractmethod
    def open_file(
        self, path: str, access: AccessMode, mode: OpenMode
    ) -> Tuple[FSError, Optional[StorageFile]]:
        """Open a file; the handle is only returned together with FSError.OK"""
        pass

    @abstractmethod
    def stat(self, path: str) -> Tuple[FSError, Optional[FileInfo]]:
        pass

    @abstractmethod
    def fs_info(self, path: str) -> Tuple[FSError, int, int]:
        """Return (error, total bytes, free bytes) for the mount holding path"""
        pass

    @abstractmethod
    def sd_info(self) -> Tuple[FSError, Optional[SDInfo]]:
        pass

    @abstractmethod
    def device_name(self) -> Optional[str]:
        pass

    @abstractmethod
    def timestamp(self, path: str) -> Tuple[FSError, int]:
        """Return (error, last modification time in seconds)"""
        pass

    @abstractmethod
    def copy(self, old_path: str, new_path: str) -> FSError:
        pass

    @abstractmethod
    def rename(self, old_path: str, new_path: str) -> FSError:
        pass

    @abstractmethod
    def migrate(self, old_path: str, new_path: str) -> FSError:
        """Move old_path to new_path, renaming files that collide at the destination"""
        pass

    @abstractmethod
    def remove(self, path: str) -> FSError:
        pass

    @abstractmethod
    def mkdir(self, path: str) -> FSError:
        pass

    @abstractmethod
    def md5(self, path: str) -> Tuple[FSError, str]:
        pass

    @abstractmethod
    def format_sd(self) -> FSError:
        pass

    @abstractmethod
    def list_dir(self, path: str) -> Tuple[FSError, DirEntries]:
        """One level of (name, FileInfo) entries"""
        pass

    @abstractmethod
    def walk(self, path: str) -> Tuple[FSError, DirEntries]:
        """Depth-first (full path, FileInfo) entries below path"""
        pass


class SystemControl(ABC):
    """Device-level services used by factory_reset"""

    @abstractmethod
    def set_factory_reset_flag(self) -> None:
        pass

    @abstractmethod
    def reboot(self) -> None:
        pass

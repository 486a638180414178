"""Storage result codes and CLI exceptions"""

from enum import Enum


class FSError(Enum):
    """Result code returned by every storage backend call"""

    OK = 0
    NOT_READY = 1
    EXIST = 2
    NOT_EXIST = 3
    INVALID_PARAMETER = 4
    DENIED = 5
    INVALID_NAME = 6
    INTERNAL = 7
    NOT_IMPLEMENTED = 8
    ALREADY_OPEN = 9

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    FSError.OK: "OK",
    FSError.NOT_READY: "filesystem not ready",
    FSError.EXIST: "file/dir already exist",
    FSError.NOT_EXIST: "file/dir not exist",
    FSError.INVALID_PARAMETER: "invalid parameter",
    FSError.DENIED: "access denied",
    FSError.INVALID_NAME: "invalid name/path",
    FSError.INTERNAL: "internal error",
    FSError.NOT_IMPLEMENTED: "function not implemented",
    FSError.ALREADY_OPEN: "file is already open",
}


class StorageCliError(Exception):
    """Base exception for storage-cli failures outside the backend"""
    pass


class ConfigError(StorageCliError):
    """Invalid configuration value"""
    pass

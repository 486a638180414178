"""Mount prefixes and path classification"""

from enum import Enum

ROOT_PATH = "/"
INT_PATH_PREFIX = "/int"
EXT_PATH_PREFIX = "/ext"
ANY_PATH_PREFIX = "/any"

MOUNT_PREFIXES = (INT_PATH_PREFIX, EXT_PATH_PREFIX, ANY_PATH_PREFIX)
# "/any" is an alias, only these two hold data
REAL_MOUNTS = (INT_PATH_PREFIX, EXT_PATH_PREFIX)


class PathKind(Enum):
    ROOT = "root"
    MOUNT = "mount"
    PREFIXED = "prefixed"
    OTHER = "other"


def mount_of(path: str):
    """Return the mount prefix path starts with, or None"""
    for prefix in MOUNT_PREFIXES:
        if path == prefix or path.startswith(prefix + "/"):
            return prefix
    return None


def classify(path: str) -> PathKind:
    """
    Classify a trimmed path string

    OTHER paths are not rejected here; the backend answers them with
    INVALID_NAME.
    """
    if path == ROOT_PATH:
        return PathKind.ROOT
    if path in MOUNT_PREFIXES:
        return PathKind.MOUNT
    if mount_of(path) is not None:
        return PathKind.PREFIXED
    return PathKind.OTHER


def is_valid(path: str) -> bool:
    return classify(path) is not PathKind.OTHER

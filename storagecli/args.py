"""Argument tokenizer for storage command lines"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

QUOTES = ('"', "'")

_COUNT_RE = re.compile(r"\s*\+?(\d+)")


class ArgStatus(Enum):
    OK = "ok"
    EMPTY = "empty"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class CommandRequest:
    """One parsed `<command> <path> [<args>]` line"""

    command: str
    path: str
    args: str = ""


def read_string(args: str) -> Tuple[ArgStatus, str, str]:
    """
    Split off the first whitespace-delimited word

    Returns:
        (status, token, rest) with rest trimmed of surrounding whitespace
    """
    args = args.strip()
    if not args:
        return ArgStatus.EMPTY, "", ""

    parts = args.split(None, 1)
    rest = parts[1].strip() if len(parts) > 1 else ""
    return ArgStatus.OK, parts[0], rest


def read_probably_quoted_string(args: str) -> Tuple[ArgStatus, str, str]:
    """
    Like read_string, but a token opening with a quote runs to the matching
    closing quote and loses that one layer of quotes.

    An opening quote without a closing one is MALFORMED.
    """
    args = args.strip()
    if len(args) > 1 and args[0] in QUOTES:
        closing = args.find(args[0], 1)
        if closing < 0:
            return ArgStatus.MALFORMED, "", args
        return ArgStatus.OK, args[1:closing], args[closing + 1:].strip()
    return read_string(args)


def parse_request(line: str) -> Tuple[ArgStatus, Optional[CommandRequest]]:
    """Tokenize a full storage line into a CommandRequest"""
    status, command, rest = read_string(line)
    if status is not ArgStatus.OK:
        return status, None

    status, path, rest = read_probably_quoted_string(rest)
    if status is not ArgStatus.OK:
        return status, None

    return ArgStatus.OK, CommandRequest(command=command, path=path, args=rest)


def parse_count(args: str) -> Optional[int]:
    """
    Parse a leading unsigned decimal byte count

    Trailing garbage is ignored ("12abc" is 12); no digits gives None.
    """
    match = _COUNT_RE.match(args)
    if not match:
        return None
    return int(match.group(1))

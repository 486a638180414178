"""Usage text and backend error rendering"""

import logging

from .errors import FSError
from .terminal import Terminal

logger = logging.getLogger(__name__)

USAGE_LINES = (
    "Usage:",
    "storage <cmd> <path> <args>",
    "The path must start with /int or /ext",
    "Cmd list:",
    "\tinfo\t - get FS info",
    "\tformat\t - format filesystem",
    "\tlist\t - list files and dirs",
    "\ttree\t - list files and dirs, recursive",
    "\tremove\t - delete the file or directory",
    "\tread\t - read text from file and print file size and content to cli",
    "\tread_chunks\t - read data from file and print file size and content to cli, "
    "<args> should contain how many bytes you want to read in block",
    "\twrite\t - read text from cli and append it to file, stops by ctrl+c",
    "\twrite_chunk\t - read data from cli and append it to file, "
    "<args> should contain how many bytes you want to write",
    "\tcopy\t - copy file to new file, <args> must contain new path",
    "\trename\t - move file to new file, <args> must contain new path",
    "\tmigrate\t - move folder to new path, "
    "renaming already present files by adding numbers to the end",
    "\tmkdir\t - creates a new directory",
    "\tmd5\t - md5 hash of the file",
    "\tstat\t - info about file or dir",
    "\ttimestamp\t - last modification timestamp",
)


def print_usage(terminal: Terminal):
    for line in USAGE_LINES:
        terminal.println(line)


def print_error(terminal: Terminal, error: FSError):
    logger.info("storage error: %s", error.name)
    terminal.println(f"Storage error: {error.description}")

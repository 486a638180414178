"""Interactive host shell for the storage commands"""

import logging
import os
import tempfile
from typing import Callable, Dict, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import FileHistory
from rich.console import Console

from .args import ArgStatus, read_string
from .backend import StorageBackend, SystemControl
from .commands import StorageCommands, factory_reset
from .errors import FSError
from .paths import MOUNT_PREFIXES, ROOT_PATH
from .version import get_version_string

console = Console()
logger = logging.getLogger(__name__)

# handler(args) -> False to leave the shell
ShellHandler = Callable[[str], Optional[bool]]


class StorageCompleter(Completer):
    """Completer for shell commands, storage subcommands and storage paths"""

    def __init__(self, shell: "StorageShell"):
        self.shell = shell

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        words = text.split()

        # If we're at the start or only typing the command
        if len(words) == 0 or (len(words) == 1 and not text.endswith(" ")):
            word = words[0] if words else ""
            for name in self.shell.commands:
                if name.startswith(word):
                    yield Completion(name, start_position=-len(word))
            return

        if words[0] != "storage" or self.shell.storage is None:
            return

        current_word = "" if text.endswith(" ") else words[-1]
        position = len(words) if text.endswith(" ") else len(words) - 1

        if position == 1:
            for name in self.shell.storage.commands:
                if name.startswith(current_word):
                    yield Completion(name, start_position=-len(current_word))
        else:
            yield from self._complete_path(current_word)

    def _complete_path(self, current_word: str):
        last_slash = current_word.rfind("/")
        if last_slash < 0:
            dir_part, file_part, list_path = "", current_word, ROOT_PATH
        else:
            dir_part = current_word[: last_slash + 1]
            file_part = current_word[last_slash + 1 :]
            list_path = dir_part.rstrip("/") or ROOT_PATH

        if list_path == ROOT_PATH:
            names = [(prefix.lstrip("/"), True) for prefix in MOUNT_PREFIXES]
            if not dir_part:
                dir_part = "/"
        else:
            error, entries = self.shell.storage.backend.list_dir(list_path)
            if error is not FSError.OK:
                return
            names = [(name, info.is_dir) for name, info in entries]

        for name, is_dir in names:
            if name.startswith(file_part):
                display_name = name + "/" if is_dir else name
                yield Completion(
                    dir_part + display_name,
                    start_position=-len(current_word),
                    display=display_name,
                )


class StorageShell:
    """REPL that routes `<command> <args>` lines to registered handlers"""

    def __init__(self, history_file: Optional[str] = None):
        self.history_file = history_file
        self.storage: Optional[StorageCommands] = None
        self.commands: Dict[str, ShellHandler] = {
            "help": self.cmd_help,
            "?": self.cmd_help,
            "exit": self.cmd_exit,
            "quit": self.cmd_exit,
        }
        self.descriptions: Dict[str, str] = {
            "help": "Show this help",
            "exit": "Leave the shell",
        }

    def add_command(self, name: str, handler: ShellHandler, description: str = ""):
        self.commands[name] = handler
        if description:
            self.descriptions[name] = description

    def execute(self, line: str) -> bool:
        """Execute a command. Returns False if should exit."""
        status, name, args = read_string(line)
        if status is not ArgStatus.OK:
            return True

        handler = self.commands.get(name)
        if handler is None:
            console.print(f"[red]Unknown command: {name}[/red]", highlight=False)
            console.print("Type 'help' for available commands", highlight=False)
            return True

        return handler(args) is not False

    def cmd_help(self, args: str):
        console.print("[bold]Commands:[/bold]", highlight=False)
        for name, description in self.descriptions.items():
            console.print(f"  {name:<15} {description}", highlight=False, markup=False)

    def cmd_exit(self, args: str):
        return False

    def _history(self) -> FileHistory:
        history_path = self.history_file or os.path.expanduser("~/.storage_cli_history")
        try:
            os.makedirs(os.path.dirname(history_path), exist_ok=True)
            with open(history_path, "a"):
                pass
            return FileHistory(history_path)
        except OSError:
            # If default history file fails, use a temp file
            temp_history = tempfile.NamedTemporaryFile(
                mode="w", delete=False, suffix="_storage_cli_history"
            )
            temp_history.close()
            console.print(
                f"[yellow]Warning: Cannot use {history_path}, using temporary history file[/yellow]",
                highlight=False,
            )
            return FileHistory(temp_history.name)

    def run(self):
        """Start the interactive loop"""
        console.print(f"[dim]{get_version_string()}[/dim]", highlight=False)
        console.print("press 'help' or '?' for help", highlight=False)

        session = PromptSession(
            history=self._history(),
            auto_suggest=AutoSuggestFromHistory(),
            completer=StorageCompleter(self),
            complete_while_typing=True,
        )

        while True:
            try:
                line = session.prompt(">: ")
                if not self.execute(line):
                    break
            except KeyboardInterrupt:
                console.print("\nUse 'exit' or 'quit' to leave", highlight=False)
                continue
            except EOFError:
                console.print("\nGoodbye!", highlight=False)
                break
            except Exception as e:
                logger.exception("command failed")
                console.print(f"Unexpected error: {e}", highlight=False)


def register_commands(shell: StorageShell, storage: StorageCommands, system: SystemControl):
    """Register `storage` and `factory_reset` with the host shell"""
    shell.storage = storage
    shell.add_command("storage", storage.execute, "storage <cmd> <path> <args>")
    shell.add_command(
        "factory_reset",
        lambda args: factory_reset(storage.terminal, system),
        "Wipe internal storage after reboot",
    )


def build_shell(backend: StorageBackend, system: SystemControl, terminal, history_file=None):
    shell = StorageShell(history_file=history_file)
    register_commands(shell, StorageCommands(backend, terminal), system)
    return shell

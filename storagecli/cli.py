"""Main CLI Entry Point"""

import logging
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from .commands import StorageCommands, factory_reset
from .config import Config
from .decorators import storage_command
from .localfs import LocalStorage, LocalSystem, apply_pending_factory_reset
from .reporter import print_usage
from .shell import build_shell
from .terminal import Terminal
from .version import get_version_string

logger = logging.getLogger(__name__)


def setup_logging(level: int):
    """Send log records to stderr so they never mix with command output"""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)


def quote_token(token: str) -> Optional[str]:
    """
    Re-quote a token the shell already unquoted if it holds whitespace

    Returns None when the token holds whitespace and both quote characters,
    since the line tokenizer has no escapes.
    """
    if token and not any(ch.isspace() for ch in token):
        return token
    if "'" not in token:
        return f"'{token}'" if '"' in token else f'"{token}"'
    if '"' not in token:
        return f'"{token}"'
    return None


def _context_services(ctx):
    config = ctx.obj["config"]
    if "backend" not in ctx.obj:
        backend = LocalStorage.from_config(config)
        system = LocalSystem(config.reset_flag_path)
        if apply_pending_factory_reset(backend, system):
            logger.warning("pending factory reset applied, /int wiped")
        ctx.obj["backend"] = backend
        ctx.obj["system"] = system
    return ctx.obj["backend"], ctx.obj["system"]


@click.group()
@click.version_option(version=get_version_string(), prog_name="storage-cli")
@click.option(
    "--int-root",
    default=None,
    help="Host directory backing /int (can also set via STORAGE_INT_ROOT)",
)
@click.option(
    "--ext-root",
    default=None,
    help="Host directory backing /ext, empty for no card (can also set via STORAGE_EXT_ROOT)",
)
@click.option(
    "--log-level",
    default=None,
    help="Log level (can also set via STORAGE_LOG_LEVEL)",
    show_default="WARNING",
)
@click.pass_context
@storage_command("storage-cli")
def main(ctx, int_root, ext_root, log_level):
    """storage-cli - command-line front end for /int and /ext storage"""
    ctx.ensure_object(dict)
    config = Config.from_args(int_root=int_root, ext_root=ext_root, log_level=log_level)
    setup_logging(config.log_level_value)
    ctx.obj["config"] = config


@main.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False}
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
@storage_command()
def storage(ctx, args):
    """Run one storage command: storage <cmd> <path> [<args>]

    \b
    Examples:
      storage-cli storage list /
      storage-cli storage stat /ext
      storage-cli storage read_chunks /ext/test.txt 64
      storage-cli storage copy "/int/my file.txt" /ext/copy.txt
    """
    backend, _ = _context_services(ctx)
    terminal = Terminal.stdio()
    tokens = [quote_token(arg) for arg in args]
    if None in tokens:
        logger.debug("argument cannot be quoted: %r", args)
        print_usage(terminal)
        return
    StorageCommands(backend, terminal).execute(" ".join(tokens))


@main.command(name="factory_reset")
@click.pass_context
@storage_command("factory_reset")
def factory_reset_cmd(ctx):
    """Wipe internal storage on next start (asks for confirmation)"""
    backend, system = _context_services(ctx)
    # a one-shot run has nothing to restart, wipe right away instead
    system.restart = lambda: apply_pending_factory_reset(backend, system)
    factory_reset(Terminal.stdio(), system)


@main.command()
@click.pass_context
@storage_command()
def sh(ctx):
    """Start interactive REPL shell"""
    backend, system = _context_services(ctx)
    config = ctx.obj["config"]
    build_shell(backend, system, Terminal.stdio(), history_file=config.history_file).run()


@main.command()
@click.pass_context
@storage_command()
def shell(ctx):
    """Start interactive REPL shell (alias for sh)"""
    ctx.invoke(sh)


if __name__ == "__main__":
    main()

"""Decorators to reduce code duplication in CLI commands"""

import functools
import logging

import click
from rich.console import Console

from .errors import StorageCliError

console = Console()
logger = logging.getLogger(__name__)


def storage_command(command_name=None):
    """
    Decorator that handles common error handling for CLI commands.

    Backend failures are reported as values by the command layer, so what
    reaches this decorator is configuration trouble (StorageCliError) or a
    genuine bug. Both are printed as `<command>: <error>` and end the
    process with status 1; bugs are also logged with their traceback.

    Args:
        command_name: Name to use in error messages (defaults to function name)

    Example:
        @main.command(name="factory_reset")
        @click.pass_context
        @storage_command("factory_reset")
        def factory_reset_cmd(ctx):
            ...
    """
    def decorator(func):
        cmd_name = command_name or func.__name__

        @functools.wraps(func)
        def wrapper(ctx, *args, **kwargs):
            try:
                return func(ctx, *args, **kwargs)
            except (click.exceptions.Exit, click.exceptions.Abort, click.ClickException):
                raise
            except StorageCliError as e:
                console.print(f"{cmd_name}: {e}", highlight=False, markup=False)
                ctx.exit(1)
            except Exception as e:
                logger.exception("%s failed", cmd_name)
                console.print(f"{cmd_name}: {e}", highlight=False, markup=False)
                ctx.exit(1)

        return wrapper
    return decorator

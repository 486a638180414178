"""storage-cli: command-line front end for /int and /ext storage"""

from .version import __version__

__all__ = ["__version__"]

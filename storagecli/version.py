"""Version information for storage-cli"""

__version__ = "1.0.0"


def get_version_string():
    """Get formatted version string"""
    return f"storage-cli {__version__}"

"""Runtime-installable extensions (extra metadata sources and helpers)."""

from metascrape.extensions.manager import ExtensionManager, is_local_path, pip_install
from metascrape.extensions.models import ExtensionError, ExtensionInfo

__all__ = [
    "ExtensionManager",
    "ExtensionError",
    "ExtensionInfo",
    "is_local_path",
    "pip_install",
]

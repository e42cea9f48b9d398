"""depcat - file-based dependency tracking between work items."""

from depcat._version import version as __version__

__all__ = ["__version__"]

"""docs2booklet: turn a generated documentation site into one numbered, printable PDF."""

from .version import __version__

__all__ = ["__version__"]

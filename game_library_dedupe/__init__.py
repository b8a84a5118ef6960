"""Game Library Dedupe - Hide duplicate games across launcher stores."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("game-library-dedupe")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0"

"""schemafx - Declarative application schemas over pluggable data connectors."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("schemafx")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]

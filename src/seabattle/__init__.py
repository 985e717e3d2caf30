"""Turn-based naval combat match engine."""

__version__ = "0.1.0"

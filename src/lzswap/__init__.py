"""Token swap quoting and trade execution."""

__version__ = "0.1.0"

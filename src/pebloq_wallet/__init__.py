"""PeBloq wallet holdings and tipping backend."""

__version__ = "0.1.0"

"""serve-dev - static file server with file watching, rebuilds and live reload."""

__version__ = "0.1.0"

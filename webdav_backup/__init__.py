"""WebDAV backup and restore engine for local application state."""

__version__ = "1.0.0"

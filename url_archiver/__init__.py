"""url-archiver: bulk-fetch URL bodies into a local SQLite store."""

__version__ = "0.1.0"

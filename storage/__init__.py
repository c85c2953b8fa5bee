"""Storage module."""

from storage.sqlite import SQLiteExportStage, SQLiteRecordStore

__all__ = ["SQLiteRecordStore", "SQLiteExportStage"]

"""SQLite persistence gateway: existence check, transactional insert, export."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import jsonschema

from core.config import ArchiverDefaults
from core.models import Record
from core.pipeline import (
    RecordExistsError,
    RecordStore,
    StoreQueryError,
    StoreSetupError,
    StoreWriteError,
)

STORAGE_DIR = Path(__file__).resolve().parent
MIGRATIONS_DIR = STORAGE_DIR / "migrations"
RECORD_SCHEMA = json.loads((STORAGE_DIR / "schemas" / "record.schema.json").read_text(encoding="utf-8"))


class SQLiteRecordStore(RecordStore):
    """
    Persist (url, content) records to SQLite.

    Every call opens its own connection, so one store instance is safe to
    share across worker threads. Writers serialize inside SQLite; a writer
    that waits longer than busy_timeout_seconds gets a retryable
    StoreWriteError.
    """

    def __init__(
        self,
        db_path: str | Path,
        initialize: bool = True,
        busy_timeout_seconds: float = ArchiverDefaults.DEFAULT_STORE_BUSY_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize store and optionally create the schema."""
        self.db_path = Path(db_path)
        self.busy_timeout_seconds = busy_timeout_seconds
        if initialize:
            self.initialize_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        connection = sqlite3.connect(self.db_path, timeout=self.busy_timeout_seconds)
        connection.row_factory = sqlite3.Row
        try:
            yield connection
        finally:
            connection.close()

    def initialize_schema(self) -> None:
        """
        Create the urls table if absent and switch to WAL journaling.

        Raises:
            StoreSetupError: If the database cannot be opened or migrated.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            sql = (MIGRATIONS_DIR / "0001_init.sql").read_text(encoding="utf-8")
            with self._connect() as connection:
                connection.execute("PRAGMA journal_mode=WAL")
                connection.executescript(sql)
                connection.commit()
        except (OSError, sqlite3.Error) as exc:
            raise StoreSetupError(f"cannot initialize store at {self.db_path}: {exc}") from exc

    def exists(self, url: str) -> bool:
        """Return True when a record for url is stored."""
        try:
            with self._connect() as connection:
                row = connection.execute(
                    "SELECT 1 FROM urls WHERE url = ? LIMIT 1",
                    (url,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreQueryError(f"exists check failed for {url}: {exc}") from exc
        return row is not None

    def save(self, url: str, content: str) -> None:
        """Insert one record in its own transaction; roll back on any error."""
        try:
            with self._connect() as connection:
                try:
                    connection.execute(
                        "INSERT INTO urls (url, content) VALUES (?, ?)",
                        (url, content),
                    )
                    connection.commit()
                except sqlite3.Error:
                    connection.rollback()
                    raise
        except sqlite3.IntegrityError as exc:
            raise RecordExistsError(f"record already exists for {url}") from exc
        except sqlite3.Error as exc:
            raise StoreWriteError(f"save failed for {url}: {exc}") from exc

    def get(self, url: str) -> Record | None:
        """Return the stored record for url, or None."""
        try:
            with self._connect() as connection:
                row = connection.execute(
                    "SELECT url, content FROM urls WHERE url = ?",
                    (url,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreQueryError(f"lookup failed for {url}: {exc}") from exc
        if row is None:
            return None
        return Record(url=str(row["url"]), content=row["content"])

    def count(self) -> int:
        """Return the number of stored records."""
        try:
            with self._connect() as connection:
                row = connection.execute("SELECT COUNT(*) AS total FROM urls").fetchone()
        except sqlite3.Error as exc:
            raise StoreQueryError(f"count failed: {exc}") from exc
        return int(row["total"])

    def iter_records(self) -> Iterator[Record]:
        """Yield every stored record ordered by url."""
        try:
            with self._connect() as connection:
                for row in connection.execute("SELECT url, content FROM urls ORDER BY url"):
                    yield Record(url=str(row["url"]), content=row["content"])
        except sqlite3.Error as exc:
            raise StoreQueryError(f"record scan failed: {exc}") from exc


class SQLiteExportStage:
    """JSONL export backed by SQLiteRecordStore with row-by-row schema validation."""

    def __init__(self, store: SQLiteRecordStore) -> None:
        """Initialize export stage with the shared record store."""
        self.store = store

    def export(self, output_path: str) -> int:
        """
        Export all records as JSONL.

        Validation is performed per row before writing that row.
        On first invalid row, raises ValueError and stops immediately.
        """
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)

        exported_count = 0
        with output.open("w", encoding="utf-8") as handle:
            for record in self.store.iter_records():
                payload = record.model_dump(mode="json")
                try:
                    jsonschema.validate(payload, RECORD_SCHEMA)
                except jsonschema.ValidationError as exc:
                    raise ValueError(
                        f"Export validation failed for record {record.url}: {exc.message}"
                    ) from exc
                handle.write(json.dumps(payload, ensure_ascii=False) + "\n")
                exported_count += 1
        return exported_count

"""
Storage Backend Module

Keyed JSON record store behind the account directory. Records are inserted
once under a unique id and never rewritten; the in-memory backend serves tests,
the SQLite backend persists the directory between restarts.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from datetime import datetime, timezone
from pathlib import Path
import sqlite3
import json
import re
import threading


IDENTIFIER_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')


class DuplicateRecordError(ValueError):
    """Raised when inserting an id that is already taken"""

    def __init__(self, table: str, record_id: str):
        super().__init__(f"Record {record_id!r} already exists in {table}")
        self.table = table
        self.record_id = record_id


def _check_identifier(name: str) -> str:
    # Table names and filter keys are interpolated into SQL
    if not IDENTIFIER_PATTERN.fullmatch(name):
        raise ValueError(f"Invalid identifier {name!r}")
    return name


class StorageInterface(ABC):
    """Abstract interface for record storage backends"""

    @abstractmethod
    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Store a new record; raises DuplicateRecordError if the id is taken"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record by id"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """All records of a table in insertion order"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Records whose top-level fields equal every filter value"""
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def exists(self, table: str, record_id: str) -> bool:
        return self.load(table, record_id) is not None

    def count(self, table: str) -> int:
        return len(self.load_all(table))


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._tables: Dict[str, Dict[str, str]] = {}
        self._lock = threading.RLock()

    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            rows = self._tables.setdefault(table, {})
            if record_id in rows:
                raise DuplicateRecordError(table, record_id)
            # Kept serialized so callers never share mutable state with the store
            rows[record_id] = json.dumps(data, default=str)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            text = self._tables.get(table, {}).get(record_id)
        return json.loads(text) if text is not None else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            texts = list(self._tables.get(table, {}).values())
        return [json.loads(text) for text in texts]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [
            record for record in self.load_all(table)
            if all(key in record and record[key] == value for key, value in filters.items())
        ]

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._tables = set()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.commit()

    def _ensure_table(self, table: str) -> str:
        _check_identifier(table)
        if table not in self._tables:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            self._connection.commit()
            self._tables.add(table)
        return table

    def insert(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            try:
                self._connection.execute(
                    f"INSERT INTO {table} (id, data, created_at) VALUES (?, ?, ?)",
                    (record_id, json.dumps(data, default=str), now)
                )
            except sqlite3.IntegrityError as e:
                self._connection.rollback()
                raise DuplicateRecordError(table, record_id) from e
            self._connection.commit()

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT data FROM {table} WHERE id = ?", (record_id,)
            ).fetchone()
        return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            rows = self._connection.execute(
                f"SELECT data FROM {table} ORDER BY rowid"
            ).fetchall()
        return [json.loads(row['data']) for row in rows]

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Filter inside SQLite with json_extract on each key"""
        clauses = []
        params = []
        for key, value in filters.items():
            clauses.append(f"json_extract(data, '$.{_check_identifier(key)}') = ?")
            params.append(value)
        where = " AND ".join(clauses) or "1 = 1"

        with self._lock:
            self._ensure_table(table)
            rows = self._connection.execute(
                f"SELECT data FROM {table} WHERE {where} ORDER BY rowid", params
            ).fetchall()
        return [json.loads(row['data']) for row in rows]

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None

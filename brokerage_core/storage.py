"""
Storage Backend Module

Provides abstract storage interface and implementations for in-memory (testing)
and SQLite (persistence). All monetary values stored as Decimal strings.

Writes made inside ``atomic()`` become visible to other threads all at once on
commit, and ``snapshot()`` reads several tables as one consistent view.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Any, Union
from datetime import datetime, timezone
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: int
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        result['created_at'] = self.created_at.isoformat()
        result['updated_at'] = self.updated_at.isoformat()
        return result

    @staticmethod
    def parse_timestamps(data: Dict[str, Any]) -> Dict[str, Any]:
        """Convert ISO timestamp strings back to datetime objects"""
        data = dict(data)
        if isinstance(data.get('created_at'), str):
            data['created_at'] = datetime.fromisoformat(data['created_at'])
        if isinstance(data.get('updated_at'), str):
            data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        return data


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to storage"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def snapshot(self, tables: Iterable[str]) -> Dict[str, List[Dict[str, Any]]]:
        """Read several tables as one consistent, committed view"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        self.commit()


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for key, value in filters.items():
        if key not in record or record[key] != value:
            return False
    return True


def _copy(record: Dict[str, Any]) -> Dict[str, Any]:
    # Deep copy to prevent external mutation
    return json.loads(json.dumps(record, default=str))


_DELETED = object()


class InMemoryStorage(StorageInterface):
    """
    In-memory storage implementation for testing and single-process use.

    Transactions are per thread: writes are staged and applied under the
    table lock on commit, so readers in other threads never see half of them.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._local = threading.local()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}

    def _pending(self) -> Optional[Dict[str, Dict[str, Any]]]:
        return getattr(self._local, 'pending', None)

    def _visible(self, table: str) -> Dict[str, Dict[str, Any]]:
        """Committed rows of a table overlaid with this thread's staged writes"""
        self._ensure_table(table)
        rows = dict(self._data[table])
        pending = self._pending()
        if pending and table in pending:
            for record_id, data in pending[table].items():
                if data is _DELETED:
                    rows.pop(record_id, None)
                else:
                    rows[record_id] = data
        return rows

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        record = _copy(data)
        pending = self._pending()
        if pending is not None:
            pending.setdefault(table, {})[str(record_id)] = record
            return
        with self._lock:
            self._ensure_table(table)
            self._data[table][str(record_id)] = record

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            record = self._visible(table).get(str(record_id))
            if record:
                return _copy(record)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            return [_copy(record) for record in self._visible(table).values()]

    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from memory"""
        with self._lock:
            existed = str(record_id) in self._visible(table)
            pending = self._pending()
            if pending is not None:
                pending.setdefault(table, {})[str(record_id)] = _DELETED
            elif existed:
                del self._data[table][str(record_id)]
            return existed

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            return str(record_id) in self._visible(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            return [
                _copy(record) for record in self._visible(table).values()
                if _matches(record, filters)
            ]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            return len(self._visible(table))

    def clear_table(self, table: str) -> None:
        """Clear all committed records from a table (not transactional)"""
        with self._lock:
            self._data[table] = {}

    def snapshot(self, tables: Iterable[str]) -> Dict[str, List[Dict[str, Any]]]:
        """Copy committed rows of several tables under one lock acquisition"""
        with self._lock:
            result = {}
            for table in tables:
                self._ensure_table(table)
                result[table] = [_copy(record) for record in self._data[table].values()]
            return result

    def begin_transaction(self) -> None:
        """Start staging writes for the current thread"""
        depth = getattr(self._local, 'depth', 0)
        if depth == 0:
            self._local.pending = {}
        self._local.depth = depth + 1

    def commit(self) -> None:
        """Apply staged writes atomically once the outermost block commits"""
        depth = getattr(self._local, 'depth', 0)
        if depth == 0:
            return
        self._local.depth = depth - 1
        if self._local.depth > 0:
            return

        pending = self._local.pending
        self._local.pending = None
        with self._lock:
            for table, rows in pending.items():
                self._ensure_table(table)
                for record_id, data in rows.items():
                    if data is _DELETED:
                        self._data[table].pop(record_id, None)
                    else:
                        self._data[table][record_id] = data

    def rollback(self) -> None:
        """Discard all staged writes of the current thread"""
        self._local.depth = 0
        self._local.pending = None

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    def get_all_data(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Get all data for debugging/inspection"""
        with self._lock:
            return json.loads(json.dumps(self._data, default=str))


class SQLiteStorage(StorageInterface):
    """
    SQLite storage implementation for persistence.

    One connection is shared by all threads. A transaction holds the
    connection lock from begin to commit/rollback, so other threads neither
    interleave writes nor observe uncommitted rows.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # Set isolation_level to 'DEFERRED' to enable manual transaction control
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._tables = set()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _commit_unless_in_transaction(self) -> None:
        if self._depth == 0:
            self._connection.commit()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists with proper schema"""
        if table in self._tables:
            return
        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_created_at
                ON {table}(created_at)
            """)
            # A table created inside a transaction disappears if it rolls back
            if self._depth == 0:
                self._connection.commit()
                self._tables.add(table)

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._lock:
            self._ensure_table(table)

            data_json = json.dumps(data, default=str)
            now = datetime.now(timezone.utc).isoformat()
            created_at = data.get('created_at') or now
            updated_at = data.get('updated_at') or now

            # Use INSERT OR REPLACE to handle updates
            self._connection.execute(f"""
                INSERT OR REPLACE INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?,
                    COALESCE((SELECT created_at FROM {table} WHERE id = ?), ?),
                    ?)
            """, (str(record_id), data_json, str(record_id), created_at, updated_at))

            self._commit_unless_in_transaction()

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} WHERE id = ?
            """, (str(record_id),))
            row = cursor.fetchone()
            if row:
                return json.loads(row['data'])
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT data FROM {table} ORDER BY created_at
            """)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from SQLite"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                DELETE FROM {table} WHERE id = ?
            """, (str(record_id),))

            self._commit_unless_in_transaction()
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT 1 FROM {table} WHERE id = ? LIMIT 1
            """, (str(record_id),))
            return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters (simple JSON key matching)"""
        return [record for record in self.load_all(table) if _matches(record, filters)]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"""
                SELECT COUNT(*) as count FROM {table}
            """)
            return cursor.fetchone()['count']

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")
            self._commit_unless_in_transaction()

    def snapshot(self, tables: Iterable[str]) -> Dict[str, List[Dict[str, Any]]]:
        """Read several tables while holding the connection lock"""
        with self._lock:
            return {table: self.load_all(table) for table in tables}

    def begin_transaction(self) -> None:
        """Start a database transaction, holding the connection lock until it ends"""
        self._lock.acquire()
        self._depth += 1

    def commit(self) -> None:
        """Commit current transaction"""
        if self._depth == 0:
            return
        try:
            self._depth -= 1
            if self._depth == 0:
                self._connection.commit()
        finally:
            self._lock.release()

    def rollback(self) -> None:
        """Rollback current transaction"""
        if self._depth == 0:
            return
        try:
            self._depth -= 1
            self._connection.rollback()
        finally:
            self._lock.release()

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None

"""PoolInfoStore: Persistence of the best venue found for each token.

The store maps a caller-owned token id to the :class:`PoolDescriptor` of the
venue chosen by discovery, so later lookups can skip discovery entirely.
Writes are upserts (last writer wins). A row that cannot be turned back into
a descriptor reads as ``None`` with a warning, never as an exception, and so
does a database error (locked file, missing table): reads return ``None``
and writes report ``False``.

.. code-block:: python

    >>> store = SqlitePoolInfoStore(":memory:")
    >>> store.save_pool_descriptor("42", descriptor)
    True
    >>> store.get_pool_descriptor("42") == descriptor
    True
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod

from .PoolDescriptor import PoolDescriptor

logger = logging.getLogger(__name__)


class PoolInfoStore(ABC):
    """Keyed store of one descriptor per token id."""

    @abstractmethod
    def get_pool_descriptor(self, token_id: str) -> PoolDescriptor | None:
        """Return the stored descriptor, or None if absent or unreadable."""
        pass

    @abstractmethod
    def save_pool_descriptor(self, token_id: str, descriptor: PoolDescriptor) -> bool:
        """Insert or replace the descriptor for a token id.

        :returns: Whether the descriptor was written.
        """
        pass

    @abstractmethod
    def clear_pool_descriptor(self, token_id: str) -> None:
        """Forget the descriptor for a token id (no-op if absent)."""
        pass


class InMemoryPoolInfoStore(PoolInfoStore):
    """Dict-backed store, for tests and one-shot CLI runs."""

    def __init__(self) -> None:
        self._rows: dict[str, dict] = {}

    def get_pool_descriptor(self, token_id: str) -> PoolDescriptor | None:
        row = self._rows.get(str(token_id))
        if row is None:
            return None
        try:
            return PoolDescriptor.from_dict(row)
        except ValueError as e:
            logger.warning(f"[store] Unreadable pool info for token {token_id}: {e}")
            return None

    def save_pool_descriptor(self, token_id: str, descriptor: PoolDescriptor) -> bool:
        self._rows[str(token_id)] = descriptor.to_dict()
        return True

    def clear_pool_descriptor(self, token_id: str) -> None:
        self._rows.pop(str(token_id), None)


class SqlitePoolInfoStore(PoolInfoStore):
    """SQLite-backed store (table ``token_pools``).

    :ivar path: Database file path (":memory:" for a private in-memory DB).
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS token_pools (
            token_id TEXT PRIMARY KEY,
            chain TEXT NOT NULL,
            protocol TEXT NOT NULL,
            variant TEXT NOT NULL,
            venue_identifier TEXT NOT NULL,
            quote_asset_class TEXT NOT NULL,
            pair_symbol TEXT NOT NULL,
            pair_asset TEXT NOT NULL,
            pair_decimals INTEGER NOT NULL,
            fee_tier INTEGER,
            tick_spacing INTEGER,
            liquidity REAL,
            updated_at REAL NOT NULL
        )
    """

    COLUMNS = (
        "chain",
        "protocol",
        "variant",
        "venue_identifier",
        "quote_asset_class",
        "pair_symbol",
        "pair_asset",
        "pair_decimals",
        "fee_tier",
        "tick_spacing",
        "liquidity",
    )

    def __init__(self, path: str) -> None:
        """Open (and create if needed) the database.

        :param path: SQLite database path.
        """
        self.path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.execute(self.SCHEMA)

    def get_pool_descriptor(self, token_id: str) -> PoolDescriptor | None:
        try:
            with self._lock:
                row = self._conn.execute(
                    f"SELECT {', '.join(self.COLUMNS)} FROM token_pools WHERE token_id = ?",
                    (str(token_id),),
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"[store] Failed to read pool info for token {token_id}: {e}")
            return None
        if row is None:
            return None
        try:
            return PoolDescriptor.from_dict(dict(row))
        except (ValueError, TypeError) as e:
            logger.warning(f"[store] Unreadable pool info for token {token_id}: {e}")
            return None

    def save_pool_descriptor(self, token_id: str, descriptor: PoolDescriptor) -> bool:
        data = descriptor.to_dict()
        values = [data[column] for column in self.COLUMNS]
        placeholders = ", ".join("?" for _ in range(len(self.COLUMNS) + 2))
        updates = ", ".join(f"{column} = excluded.{column}" for column in self.COLUMNS)
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    f"INSERT INTO token_pools (token_id, {', '.join(self.COLUMNS)}, updated_at) "
                    f"VALUES ({placeholders}) "
                    f"ON CONFLICT(token_id) DO UPDATE SET {updates}, updated_at = excluded.updated_at",
                    [str(token_id), *values, time.time()],
                )
        except sqlite3.Error as e:
            logger.warning(f"[store] Failed to save pool info for token {token_id}: {e}")
            return False
        logger.debug(f"[store] Saved pool info for token {token_id}: {descriptor}")
        return True

    def clear_pool_descriptor(self, token_id: str) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute("DELETE FROM token_pools WHERE token_id = ?", (str(token_id),))
        except sqlite3.Error as e:
            logger.warning(f"[store] Failed to clear pool info for token {token_id}: {e}")

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

# starledger/storage/sqlite.py
import os
import sqlite3
from pathlib import Path
from typing import List, Optional

from starledger.core.types import Block
from . import StorageBackend


class SQLiteStorage(StorageBackend):
    """SQLite persistent storage for the block chain. One row per block."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get("STARLEDGER_DB_PATH")
            db_path = env_path if env_path else Path.cwd() / "starledger.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = self.db_path.resolve()

        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        self._conn = sqlite3.connect(str(self.db_path), isolation_level=None, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS blocks (
                height          INTEGER PRIMARY KEY,
                hash            TEXT    NOT NULL,
                previous_hash   TEXT,
                timestamp       INTEGER NOT NULL,
                body            TEXT    NOT NULL
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_hash ON blocks(hash)")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage connection is closed")
        return self._conn

    def append(self, block: Block) -> None:
        if not block.is_sealed:
            raise ValueError("Cannot persist unsealed block")

        # plain INSERT: a second block at the same height is a bug, not a no-op
        self.conn.execute("""
            INSERT INTO blocks (height, hash, previous_hash, timestamp, body)
            VALUES (?, ?, ?, ?, ?)
        """, (block.height, block.hash, block.previous_hash, block.timestamp, block.body))

    def load_blocks(self) -> List[Block]:
        """
        Load every block in height order, exactly as stored.
        Integrity is not checked here; run the chain validator on the result.
        """
        cursor = self.conn.execute("""
            SELECT height, hash, previous_hash, timestamp, body
            FROM blocks ORDER BY height ASC
        """)
        return [
            Block(body=body, height=height, timestamp=ts, previous_hash=prev, hash=h)
            for height, h, prev, ts, body in cursor
        ]

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM blocks").fetchone()[0]

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

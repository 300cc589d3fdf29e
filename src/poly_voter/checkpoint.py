"""
Durable height checkpoint for the poly voter.

The checkpoint is a single 8-byte little-endian unsigned integer kept under a
fixed key in a fixed table of a local SQLite file. A missing key reads as 0.
"""

import logging
import os
import sqlite3
import struct
from typing import Optional

from .exceptions import CheckpointError

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Single-writer store for the next source height to relay."""

    FILE_NAME = "checkpoint.db"
    BUCKET = "Height"
    HEIGHT_KEY = b"source_height"
    MAX_HEIGHT = 2**64 - 1

    def __init__(self, directory: str) -> None:
        """
        Open (creating if needed) the checkpoint database.

        Args:
            directory: Directory holding the checkpoint file

        Raises:
            ValueError: If directory is empty
            CheckpointError: If the database cannot be opened
        """
        if not directory:
            raise ValueError("checkpoint directory is empty")

        self.file_path = os.path.join(directory, self.FILE_NAME)
        self._conn: Optional[sqlite3.Connection] = None

        conn: Optional[sqlite3.Connection] = None
        try:
            os.makedirs(directory, exist_ok=True)
            conn = sqlite3.connect(self.file_path)
            conn.execute("PRAGMA synchronous=FULL")
            with conn:
                conn.execute(
                    f'CREATE TABLE IF NOT EXISTS "{self.BUCKET}" '
                    "(key BLOB PRIMARY KEY, value BLOB NOT NULL)"
                )
        except (OSError, sqlite3.Error) as e:
            if conn is not None:
                conn.close()
            raise CheckpointError(f"Failed to open checkpoint store at {self.file_path}: {e}") from e

        self._conn = conn
        logger.info(f"Checkpoint store opened at {self.file_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise CheckpointError("Checkpoint store is closed")
        return self._conn

    def get_height(self) -> int:
        """Return the persisted height, or 0 if none was ever stored."""
        try:
            row = self.conn.execute(
                f'SELECT value FROM "{self.BUCKET}" WHERE key = ?',
                (self.HEIGHT_KEY,)
            ).fetchone()
        except sqlite3.Error as e:
            raise CheckpointError(f"Failed to read checkpoint: {e}") from e

        if row is None or not row[0]:
            return 0
        raw = bytes(row[0])
        if len(raw) != 8:
            raise CheckpointError(f"Corrupt checkpoint value of {len(raw)} bytes")
        return struct.unpack("<Q", raw)[0]

    def set_height(self, height: int) -> None:
        """
        Durably store the height.

        Raises:
            ValueError: If height does not fit an unsigned 64-bit integer
            CheckpointError: If the write is not committed
        """
        if not 0 <= height <= self.MAX_HEIGHT:
            raise ValueError(f"Height out of range: {height}")

        raw = struct.pack("<Q", height)
        try:
            with self.conn:
                self.conn.execute(
                    f'INSERT OR REPLACE INTO "{self.BUCKET}" (key, value) VALUES (?, ?)',
                    (self.HEIGHT_KEY, raw)
                )
        except sqlite3.Error as e:
            raise CheckpointError(f"Failed to persist height {height}: {e}") from e

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "CheckpointStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

"""SQLite connection management for holdings, watchlists and discount data.

Connections only. Models own their queries.
"""

import logging
import re
from contextlib import contextmanager
from pathlib import Path

try:
    from pysqlcipher3 import dbapi2 as sqlite3

    SQLCIPHER_AVAILABLE = True
except ImportError:
    import sqlite3

    SQLCIPHER_AVAILABLE = False

# Captured at import time so tests that patch the module still catch real errors
SQLiteError = sqlite3.Error

DEFAULT_DB_PATH = "data/foliohub.db"
BUSY_TIMEOUT_MS = 5000

# Applied to every connection, in order, after the encryption key
CONNECTION_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA foreign_keys=ON",
    f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}",
)

_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Base exception for database errors."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when a connection cannot be opened or configured."""

    pass


def _sanitize_encryption_key(key: str) -> str:
    """Check a SQLCipher key before it is interpolated into PRAGMA key.

    Raises:
        ValueError: If key contains anything other than [A-Za-z0-9_-]
    """
    if not _KEY_PATTERN.match(key):
        raise ValueError(
            "Encryption key contains invalid characters. "
            "Only alphanumeric, underscore, and hyphen allowed."
        )
    return key


class Database:
    """Hands out configured SQLite connections to the models.

    connection() runs each statement in autocommit mode and commits or rolls
    back around the block. transaction() additionally wraps the block in
    BEGIN IMMEDIATE so a multi-statement write is all-or-nothing.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH, encryption_key: str | None = None):
        """
        Args:
            db_path: Path to the SQLite file, or ":memory:"
            encryption_key: SQLCipher key (ignored if the driver is missing)

        Raises:
            DatabaseConnectionError: If the parent directory cannot be created
        """
        self.db_path = db_path
        self.encryption_key = encryption_key
        self.encryption_enabled = encryption_key is not None and SQLCIPHER_AVAILABLE

        if db_path == ":memory:":
            return
        try:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create directory for {db_path}: {e}", exc_info=True)
            raise DatabaseConnectionError(
                f"Cannot create database directory: {e}"
            ) from e

    def __repr__(self):
        return f"Database(db_path={self.db_path!r}, encrypted={self.encryption_enabled})"

    def _open(self):
        try:
            return self._connect()
        except SQLiteError as e:
            logger.error(f"Failed to connect to database: {e}", exc_info=True)
            raise DatabaseConnectionError(f"Database connection failed: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error opening {self.db_path}: {e}", exc_info=True)
            raise DatabaseConnectionError(f"Unexpected database error: {e}") from e

    @contextmanager
    def connection(self):
        """Yield a configured connection, committing on success.

        Usage:
            with db.connection() as conn:
                conn.execute("SELECT * FROM holdings WHERE user_id = ?", (1,))

        Raises:
            DatabaseConnectionError: If the connection cannot be opened
        """
        conn = self._open()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error(f"Database transaction rolled back: {e}", exc_info=True)
            raise
        finally:
            try:
                conn.close()
            except Exception as e:
                logger.warning(f"Error closing database connection: {e}", exc_info=True)

    @contextmanager
    def transaction(self):
        """Like connection(), but every statement in the block is one transaction."""
        with self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            yield conn

    def table_exists(self, table_name: str) -> bool:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
                (table_name,),
            ).fetchone()
        return row is not None

    def _connect(self):
        """Open a connection and apply the key and CONNECTION_PRAGMAS.

        Returns:
            Connection in autocommit mode (isolation_level=None)

        Raises:
            sqlite3.Error: If connect or a PRAGMA fails
            ValueError: If the encryption key is invalid
        """
        statements = list(CONNECTION_PRAGMAS)
        if self.encryption_enabled:
            if not self.encryption_key:
                raise ValueError(
                    "Encryption key cannot be None when encryption is enabled"
                )
            # Key must be set before any other statement touches the file
            key = _sanitize_encryption_key(self.encryption_key)
            statements.insert(0, f"PRAGMA key = '{key}'")

        conn = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level=None
        )
        try:
            for statement in statements:
                conn.execute(statement)
        except SQLiteError as e:
            conn.close()
            logger.error(f"Failed to configure {self.db_path}: {e}", exc_info=True)
            raise
        return conn

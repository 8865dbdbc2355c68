"""ActiveRecord-style base Model class.

Instances persist themselves (save, delete); class methods run queries
(find_by_id, find_by, where, all, count, delete_where).
"""

import re
from datetime import datetime
from typing import Any, Optional

from foliohub.database import Database

_ORDER_BY_PATTERN = re.compile(r"^[a-z_]+( (ASC|DESC))?(, ?[a-z_]+( (ASC|DESC))?)*$")


class ActiveModelError(Exception):
    """Raised when a model fails validation or is misused."""

    pass


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string (the timestamp format of every table)."""
    return datetime.utcnow().isoformat()


class ActiveModel:
    """Base class for ActiveRecord-style models.

    Subclasses must define:
    - table_name: Name of the database table
    - primary_key: Name of the primary key column
    - primary_key_type: Type of primary key ("TEXT" or "INTEGER")

    Subclasses may define _allowed_fields to reject unknown keyword arguments.
    """

    table_name: str
    primary_key: str
    primary_key_type: str  # "TEXT" or "INTEGER"
    _allowed_fields: set[str] | None = None

    def __init__(self, database: Database, **kwargs):
        """Initialize model instance.

        Args:
            database: Database instance for connections
            **kwargs: Column values

        Raises:
            AttributeError: If the subclass is missing table metadata
            ValueError: If kwargs contain fields outside _allowed_fields
        """
        for attr in ("table_name", "primary_key", "primary_key_type"):
            if not hasattr(self, attr):
                raise AttributeError(
                    f"{self.__class__.__name__} must define '{attr}' class attribute"
                )

        if self._allowed_fields is not None:
            invalid_fields = set(kwargs.keys()) - self._allowed_fields
            if invalid_fields:
                raise ValueError(f"Invalid fields: {sorted(invalid_fields)}")

        self._database = database

        for key, value in kwargs.items():
            setattr(self, key, value)

        now = utc_now_iso()
        if not hasattr(self, "created_at"):
            self.created_at = now
        if not hasattr(self, "updated_at"):
            self.updated_at = now

    def _get_attributes(self) -> dict[str, Any]:
        """Column values of this instance (every attribute not starting with "_")."""
        return {
            key: value
            for key, value in self.__dict__.items()
            if not key.startswith("_")
        }

    def to_dict(self) -> dict[str, Any]:
        return self._get_attributes()

    def _before_save(self) -> None:
        """Hook run before persistence; raise ActiveModelError to abort."""
        pass

    def _save_to_database(self, conn, attrs: dict[str, Any], is_new: bool) -> None:
        """Perform the INSERT or UPDATE.

        Args:
            conn: Database connection
            attrs: Column values to write
            is_new: True for INSERT, False for UPDATE
        """
        pk_value = attrs.get(self.primary_key)
        cursor = conn.cursor()
        self.updated_at = utc_now_iso()

        if is_new:
            if self.primary_key_type == "INTEGER":
                # INTEGER PRIMARY KEY auto-increments
                attrs.pop(self.primary_key, None)
            elif attrs.get(self.primary_key) is None:
                raise ValueError(
                    f"{self.primary_key} is required for new "
                    f"{self.__class__.__name__} record"
                )
            attrs["updated_at"] = self.updated_at

            columns = ", ".join(attrs.keys())
            placeholders = ", ".join("?" * len(attrs))
            cursor.execute(
                f"INSERT INTO {self.table_name} ({columns}) VALUES ({placeholders})",
                list(attrs.values()),
            )

            if self.primary_key_type == "INTEGER":
                setattr(self, self.primary_key, cursor.lastrowid)
            return

        attrs = self._get_attributes()
        update_cols = [col for col in attrs if col != self.primary_key]
        if not update_cols:
            raise ValueError("No fields to update")

        set_clauses = ", ".join(f"{col} = ?" for col in update_cols)
        values = [attrs[col] for col in update_cols]
        values.append(pk_value)
        cursor.execute(
            f"UPDATE {self.table_name} SET {set_clauses} "
            f"WHERE {self.primary_key} = ?",
            values,
        )

    def _after_save(self) -> None:
        """Hook run after a successful save."""
        pass

    def save(self) -> bool:
        """Insert or update this record.

        Returns:
            True on success

        Raises:
            ActiveModelError: If validation fails (from _before_save)
            SQLiteError: If the database operation fails
        """
        self._before_save()

        attrs = self._get_attributes()
        pk_value = attrs.get(self.primary_key)

        is_new = pk_value is None
        if not is_new and self.primary_key_type == "TEXT":
            is_new = self.find_by_id(self._database, pk_value) is None

        with self._database.connection() as conn:
            self._save_to_database(conn, attrs, is_new)

        self._after_save()
        return True

    def delete(self) -> bool:
        """Delete this record.

        Raises:
            ValueError: If the primary key is not set
        """
        pk_value = getattr(self, self.primary_key, None)
        if pk_value is None:
            raise ValueError(
                f"Cannot delete {self.__class__.__name__} without {self.primary_key}"
            )

        with self._database.connection() as conn:
            conn.cursor().execute(
                f"DELETE FROM {self.table_name} WHERE {self.primary_key} = ?",
                (pk_value,),
            )
        return True

    @classmethod
    def _from_cursor(cls, database: Database, cursor, rows) -> list["ActiveModel"]:
        columns = [desc[0] for desc in cursor.description]
        return [cls(database, **dict(zip(columns, row))) for row in rows]

    @classmethod
    def find_by_id(cls, database: Database, pk_value: Any) -> Optional["ActiveModel"]:
        """Find record by primary key, or None."""
        with database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM {cls.table_name} WHERE {cls.primary_key} = ?",
                (pk_value,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return cls._from_cursor(database, cursor, [row])[0]

    @classmethod
    def find_by(cls, database: Database, **kwargs) -> Optional["ActiveModel"]:
        """Find the first record matching all column=value pairs."""
        results = cls.where(database, **kwargs, _limit=1)
        return results[0] if results else None

    @classmethod
    def where(cls, database: Database, **kwargs) -> list["ActiveModel"]:
        """Find all records matching all column=value pairs.

        Special keyword arguments:
            _order_by: ORDER BY clause, e.g. "created_at DESC, id DESC"
            _limit: maximum number of rows

        Raises:
            ValueError: If _order_by is not a plain column list
        """
        limit = kwargs.pop("_limit", None)
        order_by = kwargs.pop("_order_by", None)

        query = f"SELECT * FROM {cls.table_name}"
        if kwargs:
            query += " WHERE " + " AND ".join(f"{col} = ?" for col in kwargs)
        if order_by:
            if not _ORDER_BY_PATTERN.match(order_by):
                raise ValueError(f"Invalid order clause: {order_by!r}")
            query += f" ORDER BY {order_by}"
        if limit:
            query += f" LIMIT {int(limit)}"

        with database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, list(kwargs.values()))
            rows = cursor.fetchall()
            if not rows:
                return []
            return cls._from_cursor(database, cursor, rows)

    @classmethod
    def all(cls, database: Database) -> list["ActiveModel"]:
        return cls.where(database)

    @classmethod
    def count(cls, database: Database, **kwargs) -> int:
        """Count records matching all column=value pairs."""
        query = f"SELECT COUNT(*) FROM {cls.table_name}"
        if kwargs:
            query += " WHERE " + " AND ".join(f"{col} = ?" for col in kwargs)
        with database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, list(kwargs.values()))
            return cursor.fetchone()[0]

    @classmethod
    def delete_where(cls, database: Database, **kwargs) -> int:
        """Delete records matching all column=value pairs.

        Returns:
            Number of rows deleted

        Raises:
            ValueError: If no criteria are given
        """
        if not kwargs:
            raise ValueError(f"delete_where on {cls.table_name} requires criteria")
        where_clause = " AND ".join(f"{col} = ?" for col in kwargs)
        with database.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"DELETE FROM {cls.table_name} WHERE {where_clause}",
                list(kwargs.values()),
            )
            return cursor.rowcount

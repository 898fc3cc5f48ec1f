"""Generic repository abstractions for Postgres-backed persistence."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import ClassVar, Dict, Generic, Iterable, Mapping, Optional, Sequence, Tuple, Type, TypeVar
from uuid import UUID

from psycopg2.extensions import connection as PsycopgConnection
from psycopg2.extras import RealDictCursor

from lifewrap.db import ConnectionFactory
from lifewrap.models.base import LifeWrapBaseModel

ModelT = TypeVar("ModelT", bound=LifeWrapBaseModel)


class RepositoryError(RuntimeError):
    """Base exception raised for repository layer failures."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record cannot be located."""


class BaseRepository(Generic[ModelT]):
    """Reusable building block for table-specific repositories."""

    table_name: ClassVar[str]
    model_type: ClassVar[Type[ModelT]]
    insert_fields: ClassVar[Sequence[str]]
    primary_key: ClassVar[str] = "id"

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        self._connection_factory = connection_factory

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def insert(self, model: ModelT) -> ModelT:
        """Persist a new record to the backing table."""

        payload = self._serialize(model, fields=self.insert_fields, include_none=False)
        columns, placeholders = self._build_insert_clause(payload)
        query = f"INSERT INTO {self.table_name} ({columns}) VALUES ({placeholders}) RETURNING *"
        row = self._fetch_one(query, payload)
        return self.model_type.model_validate(row)

    def insert_many(self, models: Sequence[ModelT]) -> None:
        """Persist several records inside a single transaction."""

        if not models:
            return
        with self._connection() as connection:
            with connection.cursor() as cursor:
                for model in models:
                    payload = self._serialize(model, fields=self.insert_fields, include_none=False)
                    columns, placeholders = self._build_insert_clause(payload)
                    cursor.execute(
                        f"INSERT INTO {self.table_name} ({columns}) VALUES ({placeholders})",
                        payload,
                    )

    def get_by_id(self, record_id: object) -> ModelT:
        """Return a single record by its primary key."""

        query = f"SELECT * FROM {self.table_name} WHERE {self.primary_key} = %(id)s"
        row = self._fetch_one(query, {"id": self._normalise_identifier(record_id)})
        return self.model_type.model_validate(row)

    def find_by_id(self, record_id: object) -> Optional[ModelT]:
        """Return a single record by its primary key, or ``None`` when absent."""

        try:
            return self.get_by_id(record_id)
        except RecordNotFoundError:
            return None

    def fetch_one(self, where_clause: str, params: Mapping[str, object]) -> ModelT:
        """Return the first record matching the provided predicate."""

        query = f"SELECT * FROM {self.table_name} WHERE {where_clause} LIMIT 1"
        row = self._fetch_one(query, params)
        return self.model_type.model_validate(row)

    def fetch_all(
        self,
        where_clause: Optional[str] = None,
        params: Optional[Mapping[str, object]] = None,
        *,
        order_by: Optional[str] = None,
    ) -> list[ModelT]:
        """Return all records, optionally filtered by a predicate."""

        base_query = f"SELECT * FROM {self.table_name}"
        if where_clause:
            base_query = f"{base_query} WHERE {where_clause}"
        if order_by:
            base_query = f"{base_query} ORDER BY {order_by}"
        rows = self._fetch_many(base_query, params or {})
        return [self.model_type.model_validate(row) for row in rows]

    def delete_by_id(self, record_id: object) -> None:
        """Delete a record identified by its primary key."""

        query = f"DELETE FROM {self.table_name} WHERE {self.primary_key} = %(id)s"
        self._execute(query, {"id": self._normalise_identifier(record_id)})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _serialize(
        self,
        model: ModelT,
        *,
        fields: Iterable[str],
        include_none: bool,
    ) -> Dict[str, object]:
        raw_values = model.model_dump(mode="json")
        payload: Dict[str, object] = {}

        for field in fields:
            if field not in raw_values:
                continue
            value = raw_values[field]
            if value is None and not include_none:
                continue
            payload[field] = self._transform_value(field, value)

        return payload

    def _transform_value(self, field: str, value: object) -> object:  # noqa: D401
        """Hook for subclasses to customise value transformations."""

        return value

    def _build_insert_clause(self, payload: Mapping[str, object]) -> Tuple[str, str]:
        columns = ", ".join(payload.keys())
        placeholders = ", ".join(f"%({field})s" for field in payload.keys())
        return columns, placeholders

    def _fetch_one(self, query: str, params: Mapping[str, object]) -> Mapping[str, object]:
        with self._connection() as connection:
            with connection.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query, params)
                row = cursor.fetchone()
                if row is None:
                    raise RecordNotFoundError(f"No records returned for query: {query!r}")
                return dict(row)

    def _fetch_many(self, query: str, params: Mapping[str, object]) -> list[Mapping[str, object]]:
        with self._connection() as connection:
            with connection.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query, params)
                rows = cursor.fetchall()
                return [dict(row) for row in rows]

    def _execute(self, query: str, params: Mapping[str, object]) -> int:
        with self._connection() as connection:
            with connection.cursor() as cursor:
                cursor.execute(query, params)
                return cursor.rowcount

    def _connection(self) -> AbstractContextManager[PsycopgConnection]:
        return self._connection_factory()

    def _normalise_identifier(self, value: object) -> object:
        if isinstance(value, UUID):
            return str(value)
        return value


__all__ = [
    "BaseRepository",
    "RecordNotFoundError",
    "RepositoryError",
]

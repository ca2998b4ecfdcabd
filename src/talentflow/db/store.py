"""
Collection store.

A small multi-collection database over SQLAlchemy's asyncio engine. Records
cross the store boundary as plain dicts keyed by column name; every call runs
in its own transaction, so it is atomic with respect to its collection.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from talentflow.db.models import COLLECTIONS, Base
from talentflow.errors import (
    ConstraintViolation,
    RecordNotFound,
    UnknownCollection,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _normalize(value: Any) -> Any:
    # SQLite drops tzinfo on the way back; all stored timestamps are UTC.
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CollectionStore:
    """
    Persisted table set with declared unique and compound keys.

    The store is the only owner of persisted records. It is constructed
    explicitly and handed to whoever needs it; there is no module-level
    instance.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        collections: Mapping[str, type[Base]] | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            engine: SQLAlchemy async engine the tables live in.
            collections: Collection name to model mapping. Defaults to the
                four hiring collections.
        """
        self._engine = engine
        self._collections = dict(collections or COLLECTIONS)
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)
        self._lock = asyncio.Lock()

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> CollectionStore:
        """
        Build a store from a connection string.

        In-memory SQLite URLs share a single connection so every session sees
        the same database.
        """
        kwargs: dict[str, Any] = {"echo": echo}
        if database_url.startswith("sqlite") and (":memory:" in database_url or database_url.endswith("://")):
            kwargs["poolclass"] = StaticPool
        return cls(create_async_engine(database_url, **kwargs))

    @property
    def engine(self) -> AsyncEngine:
        """Get the underlying engine."""
        return self._engine

    @property
    def collection_names(self) -> list[str]:
        """Get the registered collection names."""
        return list(self._collections)

    async def create_all(self) -> None:
        """Create every table that does not exist yet."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Release pooled connections."""
        await self._engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session while holding the store lock.

        SQLite has a single writer and in-memory stores share one connection,
        so sessions never overlap.
        """
        async with self._lock:
            async with self._session_factory() as session:
                yield session

    def model_for(self, collection: str) -> type[Base]:
        """
        Resolve a collection name to its model class.

        Raises:
            UnknownCollection: If the collection is not registered.
        """
        try:
            return self._collections[collection]
        except KeyError:
            raise UnknownCollection(f"Unknown collection '{collection}'") from None

    def key_field(self, collection: str) -> str:
        """Get the name of the collection's primary key field."""
        return inspect(self.model_for(collection)).primary_key[0].key

    def fields(self, collection: str) -> list[str]:
        """Get the field names of a collection in declaration order."""
        return [attr.key for attr in inspect(self.model_for(collection)).column_attrs]

    def column(self, collection: str, field: str) -> Any:
        """
        Get the mapped column attribute for a field.

        Raises:
            ValidationError: If the collection has no such field.
        """
        if field not in self.fields(collection):
            raise ValidationError(
                f"Collection '{collection}' has no field '{field}'",
                details={"field": field},
            )
        return getattr(self.model_for(collection), field)

    def to_record(self, collection: str, instance: Base) -> dict[str, Any]:
        """Convert a model instance to a plain record dict."""
        return {name: _normalize(getattr(instance, name)) for name in self.fields(collection)}

    def _check_fields(self, collection: str, values: Mapping[str, Any]) -> None:
        unknown = sorted(set(values) - set(self.fields(collection)))
        if unknown:
            raise ValidationError(
                f"Unknown field(s) for '{collection}': {', '.join(unknown)}",
                details={"fields": unknown},
            )

    def _check_patch(self, collection: str, patch: Mapping[str, Any]) -> None:
        key_field = self.key_field(collection)
        if key_field in patch:
            raise ConstraintViolation(
                f"Key '{key_field}' of '{collection}' is immutable",
                details={"field": key_field},
            )
        self._check_fields(collection, patch)

    def _constraint_violation(self, collection: str, exc: IntegrityError) -> ConstraintViolation:
        logger.info(f"Constraint violation on '{collection}': {exc.orig}")
        return ConstraintViolation(
            f"Unique constraint failed on '{collection}': {exc.orig}",
            details={"collection": collection},
        )

    async def insert(self, collection: str, record: Mapping[str, Any]) -> Any:
        """
        Insert a record.

        Args:
            collection: Target collection.
            record: Field values. The surrogate key is assigned by the store
                when omitted.

        Returns:
            The key of the inserted record.

        Raises:
            ConstraintViolation: If a unique key clashes.
        """
        model = self.model_for(collection)
        self._check_fields(collection, record)
        instance = model(**record)
        try:
            async with self.session() as session:
                async with session.begin():
                    session.add(instance)
                    await session.flush()
                    key = getattr(instance, self.key_field(collection))
        except IntegrityError as exc:
            raise self._constraint_violation(collection, exc) from exc
        logger.debug(f"Inserted {collection}[{key}]")
        return key

    async def insert_next(self, collection: str, record: Mapping[str, Any], field: str) -> Any:
        """
        Insert a record whose ``field`` is one past the collection's maximum.

        The maximum is read and the record inserted in the same transaction,
        so concurrent callers each get a distinct value. An empty collection
        starts at 0.

        Returns:
            The key of the inserted record.
        """
        model = self.model_for(collection)
        column = self.column(collection, field)
        self._check_fields(collection, record)
        try:
            async with self.session() as session:
                async with session.begin():
                    highest = await session.scalar(select(func.max(column)))
                    instance = model(**{**record, field: 0 if highest is None else highest + 1})
                    session.add(instance)
                    await session.flush()
                    key = getattr(instance, self.key_field(collection))
        except IntegrityError as exc:
            raise self._constraint_violation(collection, exc) from exc
        logger.debug(f"Inserted {collection}[{key}] with {field}={getattr(instance, field)}")
        return key

    async def get(self, collection: str, key: Any) -> dict[str, Any] | None:
        """
        Get a record by key.

        Returns:
            The record if found, None otherwise.
        """
        model = self.model_for(collection)
        async with self.session() as session:
            instance = await session.get(model, key)
            return self.to_record(collection, instance) if instance is not None else None

    async def find_one(self, collection: str, field: str, value: Any) -> dict[str, Any] | None:
        """
        Find the first record (in key order) whose field equals a value.

        Intended for read-only convenience lookups such as resolving a job by
        its slug.
        """
        column = self.column(collection, field)
        model = self.model_for(collection)
        key_column = self.column(collection, self.key_field(collection))
        stmt = select(model).where(column == value).order_by(key_column).limit(1)
        async with self.session() as session:
            instance = (await session.execute(stmt)).scalar_one_or_none()
            return self.to_record(collection, instance) if instance is not None else None

    async def update(self, collection: str, key: Any, patch: Mapping[str, Any]) -> dict[str, Any]:
        """
        Apply a field patch to one record.

        Returns:
            The updated record.

        Raises:
            RecordNotFound: If no record has the key.
            ConstraintViolation: If the patch names the key or clashes with a
                unique key.
        """
        self._check_patch(collection, patch)
        model = self.model_for(collection)
        try:
            async with self.session() as session:
                async with session.begin():
                    instance = await session.get(model, key)
                    if instance is None:
                        raise RecordNotFound(
                            f"{collection}[{key}] does not exist",
                            details={"collection": collection, "key": key},
                        )
                    for field, value in patch.items():
                        setattr(instance, field, value)
                    await session.flush()
                    record = self.to_record(collection, instance)
        except IntegrityError as exc:
            raise self._constraint_violation(collection, exc) from exc
        return record

    async def bulk_update(
        self,
        collection: str,
        updates: Iterable[tuple[Any, Mapping[str, Any]]],
    ) -> int:
        """
        Apply several patches in one transaction.

        Either every patch is applied or none is: a missing key or a
        constraint clash rolls the whole batch back.

        Args:
            collection: Target collection.
            updates: (key, patch) pairs.

        Returns:
            Number of records updated.
        """
        updates = list(updates)
        for _, patch in updates:
            self._check_patch(collection, patch)
        model = self.model_for(collection)
        try:
            async with self.session() as session:
                async with session.begin():
                    for key, patch in updates:
                        instance = await session.get(model, key)
                        if instance is None:
                            raise RecordNotFound(
                                f"{collection}[{key}] does not exist",
                                details={"collection": collection, "key": key},
                            )
                        for field, value in patch.items():
                            setattr(instance, field, value)
                    await session.flush()
        except IntegrityError as exc:
            raise self._constraint_violation(collection, exc) from exc
        logger.debug(f"Bulk updated {len(updates)} record(s) in '{collection}'")
        return len(updates)

    async def put(self, collection: str, record: Mapping[str, Any]) -> dict[str, Any]:
        """
        Insert or wholly replace the record carrying the given key.

        Returns:
            The stored record.
        """
        key_field = self.key_field(collection)
        if record.get(key_field) is None:
            raise ValidationError(f"put on '{collection}' requires '{key_field}'")
        self._check_fields(collection, record)
        model = self.model_for(collection)
        try:
            async with self.session() as session:
                async with session.begin():
                    existing = await session.get(model, record[key_field])
                    if existing is not None:
                        await session.delete(existing)
                        await session.flush()
                    instance = model(**record)
                    session.add(instance)
                    await session.flush()
                    stored = self.to_record(collection, instance)
        except IntegrityError as exc:
            raise self._constraint_violation(collection, exc) from exc
        return stored

    async def max_value(self, collection: str, field: str) -> Any:
        """Get the largest value of a field, or None for an empty collection."""
        column = self.column(collection, field)
        async with self.session() as session:
            return await session.scalar(select(func.max(column)))

    async def count(self, collection: str) -> int:
        """Count the records of a collection."""
        model = self.model_for(collection)
        async with self.session() as session:
            return int(await session.scalar(select(func.count()).select_from(model)) or 0)

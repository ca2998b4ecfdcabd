"""
Query engine over the collection store.

Filter, prefix-match, stable sort and paginate, in that order.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select

from talentflow.db.store import CollectionStore
from talentflow.errors import ValidationError


@dataclass
class Query:
    """A list query against one collection."""

    collection: str
    equals: dict[str, Any] = field(default_factory=dict)
    prefix: str = ""
    prefix_fields: tuple[str, ...] = ()
    sort: str | None = None
    page: int = 1
    page_size: int = 10


class Pagination(BaseModel):
    """Pagination block computed on the filtered, unpaginated set."""

    page: int = Field(..., ge=1, description="1-based page number")
    page_size: int = Field(..., ge=1, description="Requested page size")
    total: int = Field(..., ge=0, description="Number of matching records")
    total_pages: int = Field(..., ge=0, description="ceil(total / page_size)")


class QueryResult(BaseModel):
    """One page of records plus its pagination block."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    pagination: Pagination


class QueryEngine:
    """Executes list queries against a collection store."""

    def __init__(self, store: CollectionStore) -> None:
        """
        Initialize the engine.

        Args:
            store: Store whose collections are queried.
        """
        self._store = store

    async def execute(self, query: Query) -> QueryResult:
        """
        Run a query.

        Equality filters are applied first, then the case-insensitive prefix
        match over ``prefix_fields`` (any field may match), then a stable sort
        on ``query.sort`` with ties broken by insertion order, then the
        ``[(page-1)*page_size, page*page_size)`` slice.

        Raises:
            ValidationError: On unknown fields or a page/page_size below 1.
        """
        if query.page < 1 or query.page_size < 1:
            raise ValidationError(
                "page and page_size must be positive",
                details={"page": query.page, "page_size": query.page_size},
            )

        store = self._store
        model = store.model_for(query.collection)
        key_column = store.column(query.collection, store.key_field(query.collection))

        stmt = select(model)
        for name, value in query.equals.items():
            stmt = stmt.where(store.column(query.collection, name) == value)

        if query.prefix:
            if not query.prefix_fields:
                raise ValidationError("A prefix search needs at least one field")
            stmt = stmt.where(
                or_(
                    *(
                        store.column(query.collection, name).istartswith(query.prefix, autoescape=True)
                        for name in query.prefix_fields
                    )
                )
            )

        count_stmt = select(func.count()).select_from(stmt.subquery())

        # Surrogate keys grow with insertion, so they are the tie-breaker.
        order_by = [key_column]
        if query.sort and query.sort != key_column.key:
            order_by.insert(0, store.column(query.collection, query.sort))
        page_stmt = (
            stmt.order_by(*order_by)
            .offset((query.page - 1) * query.page_size)
            .limit(query.page_size)
        )

        async with store.session() as session:
            total = int(await session.scalar(count_stmt) or 0)
            rows = (await session.execute(page_stmt)).scalars().all()
            items = [store.to_record(query.collection, row) for row in rows]

        return QueryResult(
            items=items,
            pagination=Pagination(
                page=query.page,
                page_size=query.page_size,
                total=total,
                total_pages=math.ceil(total / query.page_size),
            ),
        )

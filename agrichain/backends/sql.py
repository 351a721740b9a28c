# -*- coding: utf-8 -*-
"""
SQL world-state backend (SQLAlchemy).

Durable key-value world state in a single ``agrichain_world_state`` table.
Conditional writes are enforced by the database:

    the stored version is read and compared inside one transaction;
    the UPDATE is additionally guarded by ``WHERE version = :read``, and
    a primary-key clash on INSERT is reported as a stale write

This backend has no selector engine (``supports_rich_query = False``);
the product query layer falls back to a prefix scan (``LIKE 'product:%'``)
over the Product namespace.

Example:
    >>> store = SQLWorldState("sqlite:///:memory:")
    >>> store.put_state("product:P1", b"{}", expected_version=0)
    1
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import (
    Column,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    create_engine,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from agrichain.exceptions import StoreError
from agrichain.world_state import (
    KV,
    ListStateQueryIterator,
    StateQueryIterator,
    VersionedValue,
    WorldStateStore,
)

logger = logging.getLogger(__name__)

metadata = MetaData()

world_state_table = Table(
    "agrichain_world_state",
    metadata,
    Column("key", String(512), primary_key=True),
    Column("value", LargeBinary, nullable=False),
    Column("version", Integer, nullable=False),
)


def _create_engine(database_url: str, **kwargs: Any) -> Engine:
    """Create an engine, sharing one connection for in-memory SQLite."""
    if database_url.startswith("sqlite"):
        engine_config = {
            "connect_args": {"check_same_thread": False},
            "echo": kwargs.get("echo", False),
        }
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            engine_config["poolclass"] = StaticPool
        return create_engine(database_url, **engine_config)
    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=kwargs.get("echo", False),
    )


class SQLWorldState(WorldStateStore):
    """Versioned world state persisted through SQLAlchemy Core.

    Attributes:
        engine: SQLAlchemy engine.
    """

    supports_rich_query = False

    def __init__(
        self,
        database_url: str = "sqlite:///:memory:",
        engine: Optional[Engine] = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the backend and create its table if missing.

        Args:
            database_url: SQLAlchemy database URL.
            engine: Pre-built engine; overrides database_url.
            **kwargs: Extra engine options (``echo``).
        """
        self.engine = engine or _create_engine(database_url, **kwargs)
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(
                message="failed to initialize world-state table",
                operation="init",
                cause=exc,
            ) from exc
        logger.info("SQLWorldState initialized on %s", self.engine.url.drivername)

    def get_state(self, key: str) -> Optional[VersionedValue]:
        stmt = select(
            world_state_table.c.value, world_state_table.c.version,
        ).where(world_state_table.c.key == key)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).first()
        except SQLAlchemyError as exc:
            raise StoreError(
                message=f"failed to read key {key}",
                key=key,
                operation="get",
                cause=exc,
            ) from exc
        if row is None:
            return None
        return VersionedValue(value=bytes(row.value), version=row.version)

    def put_state(
        self,
        key: str,
        value: bytes,
        expected_version: Optional[int] = None,
    ) -> int:
        version_of_key = (
            select(world_state_table.c.version)
            .where(world_state_table.c.key == key)
        )
        try:
            with self.engine.begin() as conn:
                current = conn.execute(version_of_key).scalar_one_or_none()
                current_version = current or 0
                if expected_version is not None and expected_version != current_version:
                    raise self.stale(key, expected_version, current_version)

                if current is None:
                    conn.execute(
                        insert(world_state_table)
                        .values(key=key, value=value, version=1)
                    )
                    return 1

                result = conn.execute(
                    update(world_state_table)
                    .where(world_state_table.c.key == key)
                    .where(world_state_table.c.version == current_version)
                    .values(value=value, version=current_version + 1)
                )
                if result.rowcount != 1:
                    raise self.stale(key, current_version, current_version + 1)
                return current_version + 1
        except IntegrityError as exc:
            # A concurrent writer inserted the key between our read and insert.
            stored = self.get_state(key)
            raise self.stale(
                key, expected_version or 0, stored.version if stored else 0,
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreError(
                message=f"failed to write key {key}",
                key=key,
                operation="put",
                cause=exc,
            ) from exc

    def get_state_by_range(self, start_key: str, end_key: str) -> StateQueryIterator:
        stmt = select(world_state_table.c.key, world_state_table.c.value)
        if start_key:
            stmt = stmt.where(world_state_table.c.key >= start_key)
        if end_key:
            stmt = stmt.where(world_state_table.c.key < end_key)
        stmt = stmt.order_by(world_state_table.c.key)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(
                message=f"failed to scan range [{start_key}, {end_key})",
                operation="range",
                cause=exc,
            ) from exc
        return ListStateQueryIterator(
            [KV(key=row.key, value=bytes(row.value)) for row in rows]
        )

    def get_state_by_prefix(self, prefix: str) -> StateQueryIterator:
        stmt = select(world_state_table.c.key, world_state_table.c.value)
        if prefix:
            stmt = stmt.where(
                world_state_table.c.key.startswith(prefix, autoescape=True)
            )
        stmt = stmt.order_by(world_state_table.c.key)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(
                message=f"failed to scan prefix {prefix!r}",
                operation="prefix",
                cause=exc,
            ) from exc
        # LIKE is case-insensitive on some databases.
        return ListStateQueryIterator(
            [
                KV(key=row.key, value=bytes(row.value))
                for row in rows
                if row.key.startswith(prefix)
            ]
        )

    def close(self) -> None:
        self.engine.dispose()
        logger.info("SQLWorldState closed")


__all__ = ["SQLWorldState", "world_state_table"]

"""SQLAlchemy-backed outage store (PostgreSQL in production, SQLite in tests).

The blocking SQLAlchemy calls run in a worker thread via ``asyncio.to_thread``
one at a time; the store is never used concurrently.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    create_engine,
    delete,
    func,
    insert,
    select,
)
from sqlalchemy.engine import URL, Engine, RowMapping
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from outalator.core.config import DatabaseConfig
from outalator.core.types import AlertRecord, AlertSource, Outage
from outalator.storage.base import AlertStore
from outalator.storage.exceptions import (
    DuplicateAlertError,
    OutageNotFoundError,
    StoreConnectionError,
    StoreError,
)

logger = structlog.stdlib.get_logger()

metadata = MetaData()

outages_table = Table(
    "outages",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("status", String(50), nullable=False),
    Column("severity", String(50), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("resolved_at", DateTime(timezone=True)),
    Index("idx_outages_created_at", "created_at"),
    Index("idx_outages_status", "status"),
)

alerts_table = Table(
    "alerts",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column(
        "outage_id",
        Uuid,
        ForeignKey("outages.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("external_id", String(255), nullable=False),
    Column("source", String(50), nullable=False),
    Column("team_name", String(255)),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("severity", String(50)),
    Column("triggered_at", DateTime(timezone=True), nullable=False),
    Column("acknowledged_at", DateTime(timezone=True)),
    Column("resolved_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("external_id", "source", name="uq_alerts_external_id_source"),
    Index("idx_alerts_outage_id", "outage_id"),
    Index("idx_alerts_triggered_at", "triggered_at"),
)

_DATETIME_COLUMNS = (
    "created_at",
    "updated_at",
    "resolved_at",
    "triggered_at",
    "acknowledged_at",
)


def build_database_url(config: DatabaseConfig) -> str | URL:
    """Return ``config.url`` if set, else a URL assembled from the parts."""
    if config.url:
        return config.url
    query: dict[str, str] = {}
    if config.driver.startswith("postgresql") and config.sslmode:
        query["sslmode"] = config.sslmode
    return URL.create(
        config.driver,
        username=config.user or None,
        password=config.password.get_secret_value() or None,
        host=config.host or None,
        port=config.port,
        database=config.dbname or None,
        query=query,
    )


def _row_to_dict(row: RowMapping) -> dict[str, Any]:
    # SQLite hands back naive datetimes; everything is stored as UTC
    data = dict(row)
    for key in _DATETIME_COLUMNS:
        value = data.get(key)
        if isinstance(value, datetime) and value.tzinfo is None:
            data[key] = value.replace(tzinfo=UTC)
    return data


class SqlAlertStore(AlertStore):
    """Outage store on a relational database.

    ``UNIQUE(external_id, source)`` on ``alerts`` enforces identity-key
    uniqueness; a violation surfaces as :class:`DuplicateAlertError`.

    Usage::

        async with SqlAlertStore("postgresql+psycopg2://...") as store:
            await store.create_outage(outage)
    """

    def __init__(self, url: str | URL) -> None:
        self._url = url
        self._engine: Engine | None = None

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> SqlAlertStore:
        return cls(build_database_url(config))

    @property
    def connected(self) -> bool:
        return self._engine is not None

    async def connect(self) -> None:
        """Create the engine, verify connectivity and ensure the schema exists."""
        try:
            self._engine = await asyncio.to_thread(self._open_engine)
        except SQLAlchemyError as exc:
            raise StoreConnectionError(f"Failed to connect to database: {exc}") from exc
        logger.info("store_connected", dialect=self._engine.dialect.name)

    async def close(self) -> None:
        if self._engine is not None:
            await asyncio.to_thread(self._engine.dispose)
            self._engine = None
            logger.info("store_closed")

    def _open_engine(self) -> Engine:
        url_str = str(self._url)
        kwargs: dict[str, Any] = {"future": True, "pool_pre_ping": True}
        if url_str.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in url_str or url_str in ("sqlite://", "sqlite:///"):
                kwargs["poolclass"] = StaticPool
        engine = create_engine(self._url, **kwargs)
        try:
            with engine.begin() as conn:
                metadata.create_all(conn)
        except SQLAlchemyError:
            engine.dispose()
            raise
        return engine

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise StoreConnectionError("Store is not connected")
        return self._engine

    # ── Contract ─────────────────────────────────────────────────

    async def get_alert_by_external_id(
        self, external_id: str, source: AlertSource
    ) -> AlertRecord | None:
        return await asyncio.to_thread(self._get_alert_by_external_id, external_id, source)

    async def create_outage(self, outage: Outage) -> None:
        await asyncio.to_thread(self._create_outage, outage)

    async def delete_outage(self, outage_id: uuid.UUID) -> None:
        await asyncio.to_thread(self._delete_outage, outage_id)

    async def create_alert(self, alert: AlertRecord) -> None:
        await asyncio.to_thread(self._create_alert, alert)

    async def get_outage(self, outage_id: uuid.UUID) -> Outage | None:
        return await asyncio.to_thread(self._get_outage, outage_id)

    async def list_alerts_by_outage(self, outage_id: uuid.UUID) -> list[AlertRecord]:
        return await asyncio.to_thread(self._list_alerts_by_outage, outage_id)

    async def count_outages(self) -> int:
        return await asyncio.to_thread(self._count_outages)

    # ── Blocking implementations ─────────────────────────────────

    def _get_alert_by_external_id(
        self, external_id: str, source: AlertSource
    ) -> AlertRecord | None:
        stmt = select(alerts_table).where(
            alerts_table.c.external_id == external_id,
            alerts_table.c.source == str(source),
        )
        try:
            with self._require_engine().connect() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to get alert {source}/{external_id}: {exc}") from exc
        return AlertRecord.model_validate(_row_to_dict(row)) if row is not None else None

    def _create_outage(self, outage: Outage) -> None:
        stmt = insert(outages_table).values(**outage.model_dump(mode="python"))
        try:
            with self._require_engine().begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create outage: {exc}") from exc

    def _delete_outage(self, outage_id: uuid.UUID) -> None:
        try:
            with self._require_engine().begin() as conn:
                # explicit cascade; SQLite does not enforce FKs by default
                conn.execute(delete(alerts_table).where(alerts_table.c.outage_id == outage_id))
                result = conn.execute(
                    delete(outages_table).where(outages_table.c.id == outage_id)
                )
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to delete outage {outage_id}: {exc}") from exc
        if result.rowcount == 0:
            raise OutageNotFoundError(f"outage {outage_id} not found")

    def _create_alert(self, alert: AlertRecord) -> None:
        values = alert.model_dump(mode="python")
        values["source"] = str(alert.source)
        engine = self._require_engine()
        try:
            with engine.begin() as conn:
                exists = conn.execute(
                    select(outages_table.c.id).where(outages_table.c.id == alert.outage_id)
                ).first()
                if exists is None:
                    raise OutageNotFoundError(f"outage {alert.outage_id} not found")
                conn.execute(insert(alerts_table).values(**values))
        except IntegrityError as exc:
            if self._get_alert_by_external_id(alert.external_id, alert.source) is not None:
                raise DuplicateAlertError(alert.external_id, alert.source) from exc
            raise StoreError(f"Failed to create alert: {exc}") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create alert: {exc}") from exc

    def _get_outage(self, outage_id: uuid.UUID) -> Outage | None:
        stmt = select(outages_table).where(outages_table.c.id == outage_id)
        try:
            with self._require_engine().connect() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to get outage {outage_id}: {exc}") from exc
        return Outage.model_validate(_row_to_dict(row)) if row is not None else None

    def _list_alerts_by_outage(self, outage_id: uuid.UUID) -> list[AlertRecord]:
        stmt = (
            select(alerts_table)
            .where(alerts_table.c.outage_id == outage_id)
            .order_by(alerts_table.c.triggered_at.desc())
        )
        try:
            with self._require_engine().connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list alerts for outage {outage_id}: {exc}") from exc
        return [AlertRecord.model_validate(_row_to_dict(row)) for row in rows]

    def _count_outages(self) -> int:
        try:
            with self._require_engine().connect() as conn:
                return int(conn.execute(select(func.count()).select_from(outages_table)).scalar_one())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to count outages: {exc}") from exc


def create_store(config: DatabaseConfig) -> SqlAlertStore:
    """Build the SQL store described by the ``database`` settings section."""
    return SqlAlertStore.from_config(config)

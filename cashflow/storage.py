from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from pydantic import TypeAdapter
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine

from cashflow.models import AppSettings, MonthSnapshot
from cashflow.tax_tables import TaxTableSet, load_tax_table_set

logger = logging.getLogger(__name__)

MAIN_SETTINGS_ID = "main_settings"

metadata = MetaData()

month_snapshots = Table(
    "month_snapshots",
    metadata,
    Column("id", String(7), primary_key=True),
    Column("document", JSON, nullable=False),
    Column("schema_version", Integer, nullable=False),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
)

app_settings = Table(
    "app_settings",
    metadata,
    Column("id", String(50), primary_key=True),
    Column("document", JSON, nullable=False),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
)

tax_tables = Table(
    "tax_tables",
    metadata,
    Column("tax_year", Integer, primary_key=True),
    Column("document", JSON, nullable=False),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
)

SNAPSHOT_ADAPTER = TypeAdapter(MonthSnapshot)
SETTINGS_ADAPTER = TypeAdapter(AppSettings)


def create_store_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(database_url, connect_args=connect_args)


class DocumentStore:
    """Month snapshots, app settings and tax tables stored as JSON documents.

    Writes replace the whole document; the last writer wins.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "DocumentStore":
        return cls(create_store_engine(database_url))

    def create_all(self) -> None:
        metadata.create_all(self.engine)

    def get_month(self, month_id: str) -> Optional[MonthSnapshot]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(month_snapshots.c.document).where(month_snapshots.c.id == month_id)
            ).first()
        if not row:
            return None
        return SNAPSHOT_ADAPTER.validate_python(row[0])

    def get_latest_month_before(self, month_id: str) -> Optional[MonthSnapshot]:
        """The stored month with the greatest id earlier than ``month_id``."""
        with self.engine.begin() as conn:
            row = conn.execute(
                select(month_snapshots.c.document)
                .where(month_snapshots.c.id < month_id)
                .order_by(month_snapshots.c.id.desc())
                .limit(1)
            ).first()
        if not row:
            return None
        return SNAPSHOT_ADAPTER.validate_python(row[0])

    def get_months(self, month_ids: Iterable[str]) -> Dict[str, MonthSnapshot]:
        ids = list(month_ids)
        if not ids:
            return {}
        with self.engine.begin() as conn:
            rows = conn.execute(
                select(month_snapshots.c.id, month_snapshots.c.document).where(
                    month_snapshots.c.id.in_(ids)
                )
            ).all()
        return {row[0]: SNAPSHOT_ADAPTER.validate_python(row[1]) for row in rows}

    def list_months(self) -> List[str]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                select(month_snapshots.c.id).order_by(month_snapshots.c.id)
            ).all()
        return [row[0] for row in rows]

    def upsert_month(self, snapshot: MonthSnapshot) -> MonthSnapshot:
        now = _utcnow()
        stored = replace(snapshot, updated_at=now)
        document = SNAPSHOT_ADAPTER.dump_python(stored, mode="json", by_alias=True)
        values = {
            "document": document,
            "schema_version": stored.schema_version,
            "updated_at": now,
        }
        with self.engine.begin() as conn:
            result = conn.execute(
                update(month_snapshots)
                .where(month_snapshots.c.id == stored.id)
                .values(**values)
            )
            if result.rowcount == 0:
                conn.execute(insert(month_snapshots).values(id=stored.id, **values))
        logger.debug("Stored month snapshot %s (%d transactions)", stored.id, len(stored.transactions))
        return stored

    def delete_month(self, month_id: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                month_snapshots.delete().where(month_snapshots.c.id == month_id)
            )
        return result.rowcount > 0

    def get_settings(self) -> AppSettings:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(app_settings.c.document).where(app_settings.c.id == MAIN_SETTINGS_ID)
            ).first()
        if not row:
            return AppSettings()
        return SETTINGS_ADAPTER.validate_python(row[0])

    def save_settings(self, settings: AppSettings) -> AppSettings:
        now = _utcnow()
        stored = replace(settings, updated_at=now)
        values = {
            "document": SETTINGS_ADAPTER.dump_python(stored, mode="json", by_alias=True),
            "updated_at": now,
        }
        with self.engine.begin() as conn:
            result = conn.execute(
                update(app_settings).where(app_settings.c.id == MAIN_SETTINGS_ID).values(**values)
            )
            if result.rowcount == 0:
                conn.execute(insert(app_settings).values(id=MAIN_SETTINGS_ID, **values))
        return stored

    def get_tax_table(self, tax_year: int) -> Optional[TaxTableSet]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(tax_tables.c.document).where(tax_tables.c.tax_year == tax_year)
            ).first()
        if not row:
            return None
        return load_tax_table_set(row[0])

    def list_tax_table_years(self) -> List[int]:
        with self.engine.begin() as conn:
            rows = conn.execute(select(tax_tables.c.tax_year).order_by(tax_tables.c.tax_year)).all()
        return [row[0] for row in rows]

    def save_tax_table(self, table: TaxTableSet) -> TaxTableSet:
        now = _utcnow()
        stored = table.model_copy(update={"updated_at": table.updated_at or now})
        values = {
            "document": stored.model_dump(mode="json", by_alias=True),
            "updated_at": now,
        }
        with self.engine.begin() as conn:
            result = conn.execute(
                update(tax_tables).where(tax_tables.c.tax_year == stored.tax_year).values(**values)
            )
            if result.rowcount == 0:
                conn.execute(insert(tax_tables).values(tax_year=stored.tax_year, **values))
        return stored


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

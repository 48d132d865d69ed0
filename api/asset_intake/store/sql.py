# asset_intake/store/sql.py
"""
SQLAlchemy-backed document store (PostgreSQL via asyncpg).

Each collection maps onto one ORM table from db_models. Unique constraints are
enforced by the database; IntegrityError is translated into UniqueViolation so
callers see the same errors as with the JSON store.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import case, select, update, inspect as sa_inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from asset_intake.database import Base, get_session_context, get_session_factory
from asset_intake.db_models import (
    SerialPatternRecord, SkuPatternRecord, SkuBindingRecord,
    AssetRecord, CustomOptionsRecord,
)
from asset_intake.errors import NotFoundError, PersistenceIOError, UniqueViolation
from asset_intake.store.base import (
    SERIAL_PATTERNS, SKU_PATTERNS, SKU_BINDINGS, ASSET_RECORDS, CUSTOM_OPTIONS,
    UNIQUE_FIELDS, Collection, DocumentStore, Record,
)

logger = logging.getLogger(__name__)

TABLES: Dict[str, Type[Base]] = {
    SERIAL_PATTERNS: SerialPatternRecord,
    SKU_PATTERNS: SkuPatternRecord,
    SKU_BINDINGS: SkuBindingRecord,
    ASSET_RECORDS: AssetRecord,
    CUSTOM_OPTIONS: CustomOptionsRecord,
}


def _to_dict(obj: Base) -> Record:
    return {attr.key: getattr(obj, attr.key) for attr in sa_inspect(obj).mapper.column_attrs}


class SqlCollection(Collection):
    def __init__(self, name: str, table: Type[Base], factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self.name = name
        self.table = table
        self.unique_fields = UNIQUE_FIELDS.get(name, ())
        self._factory = factory
        self._columns = {attr.key for attr in sa_inspect(table).column_attrs}

    async def _session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._factory is None:
            self._factory = await get_session_factory()
        return self._factory

    def _clean(self, fields: Record) -> Record:
        return {k: v for k, v in fields.items() if k in self._columns and k not in ("id", "created_at", "updated_at")}

    def _column(self, field: str):
        if field not in self._columns:
            raise ValueError(f"{self.name} has no field {field}")
        return getattr(self.table, field)

    async def _conflicting_field(self, fields: Record, exclude_id: Optional[str] = None) -> Optional[str]:
        for field in self.unique_fields:
            value = fields.get(field)
            if value is None:
                continue
            for rec in await self.query_by_field(field, value):
                if rec["id"] != exclude_id:
                    return field
        return None

    async def _unique_violation(self, e: IntegrityError, fields: Record, exclude_id: Optional[str] = None) -> Exception:
        field = await self._conflicting_field(fields, exclude_id)
        if field is None:
            logger.error(f"Integrity error on {self.name}: {e}")
            return PersistenceIOError(f"write {self.name}", e)
        return UniqueViolation(self.name, field, fields[field])

    async def create(self, fields: Record) -> str:
        factory = await self._session_factory()
        try:
            async with get_session_context(factory) as db:
                obj = self.table(**self._clean(fields))
                db.add(obj)
                await db.flush()
                record_id = obj.id
        except IntegrityError as e:
            raise await self._unique_violation(e, fields) from e
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to create {self.name} record: {e}")
            raise PersistenceIOError(f"create {self.name}", e) from e
        return record_id

    async def _select(self, *conditions) -> List[Record]:
        factory = await self._session_factory()
        stmt = select(self.table).where(*conditions).order_by(self.table.created_at.desc())
        try:
            async with get_session_context(factory) as db:
                result = await db.execute(stmt)
                return [_to_dict(obj) for obj in result.scalars()]
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to read {self.name}: {e}")
            raise PersistenceIOError(f"read {self.name}", e) from e

    async def get_all(self) -> List[Record]:
        return await self._select()

    async def get_by_id(self, record_id: str) -> Optional[Record]:
        rows = await self._select(self.table.id == record_id)
        return rows[0] if rows else None

    async def update(self, record_id: str, fields: Record) -> None:
        factory = await self._session_factory()
        patch = self._clean(fields)
        try:
            async with get_session_context(factory) as db:
                obj = await db.get(self.table, record_id)
                if obj is None:
                    raise NotFoundError(self.name, record_id)
                for key, value in patch.items():
                    setattr(obj, key, value)
        except IntegrityError as e:
            raise await self._unique_violation(e, patch, exclude_id=record_id) from e
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to update {self.name}/{record_id}: {e}")
            raise PersistenceIOError(f"update {self.name}", e) from e

    async def delete(self, record_id: str) -> None:
        factory = await self._session_factory()
        try:
            async with get_session_context(factory) as db:
                obj = await db.get(self.table, record_id)
                if obj is None:
                    raise NotFoundError(self.name, record_id)
                await db.delete(obj)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to delete {self.name}/{record_id}: {e}")
            raise PersistenceIOError(f"delete {self.name}", e) from e

    async def query_by_field(self, field: str, value: Any) -> List[Record]:
        return await self._select(self._column(field) == value)

    async def increment(self, record_id: str, field: str, by: int) -> int:
        factory = await self._session_factory()
        column = self._column(field)
        # one UPDATE statement, no read-modify-write
        stmt = (
            update(self.table)
            .where(self.table.id == record_id)
            .values({field: case((column + by < 0, 0), else_=column + by)})
            .execution_options(synchronize_session=False)
        )
        try:
            async with get_session_context(factory) as db:
                result = await db.execute(stmt)
                if result.rowcount == 0:
                    raise NotFoundError(self.name, record_id)
                value = await db.scalar(select(column).where(self.table.id == record_id))
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to increment {self.name}/{record_id}.{field}: {e}")
            raise PersistenceIOError(f"increment {self.name}", e) from e
        return int(value)


class SqlStore(DocumentStore):
    def __init__(self, factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._collections: Dict[str, SqlCollection] = {
            name: SqlCollection(name, table, factory) for name, table in TABLES.items()
        }

    def collection(self, name: str) -> Collection:
        try:
            return self._collections[name]
        except KeyError:
            raise ValueError(f"Unknown collection: {name}") from None

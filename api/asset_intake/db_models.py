# asset_intake/db_models.py
"""
SQLAlchemy ORM Models for Asset Intake.

One table per document collection. Unique constraints back the invariants the
services rely on: one binding per (model, acquirer) pair, one binding per SKU,
one asset record per serial number.
"""
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy import (
    String, Integer, Boolean, Text, DateTime,
    Index, CheckConstraint, UniqueConstraint, JSON,
)
from sqlalchemy.orm import Mapped, mapped_column

from asset_intake.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# MIXIN for created_at / updated_at
# ============================================================================

class TimestampMixin:
    """Mixin for created_at and updated_at columns."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False
    )


# ============================================================================
# 1. SERIAL PATTERNS
# ============================================================================

class SerialPatternRecord(TimestampMixin, Base):
    __tablename__ = "serial_patterns"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    prefix: Mapped[str] = mapped_column(String(10), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    acquirer: Mapped[str] = mapped_column(String(100), nullable=False)
    sub_category: Mapped[str] = mapped_column(String(100), default="EQUIPAMENTOS", nullable=False)
    needs_manual_validation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(100))

    __table_args__ = (
        Index("idx_serial_patterns_prefix", "prefix"),
        Index("idx_serial_patterns_active", "active"),
    )


# ============================================================================
# 2. SKU PATTERNS
# ============================================================================

class SkuPatternRecord(TimestampMixin, Base):
    __tablename__ = "sku_patterns"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    template: Mapped[str] = mapped_column(String(100), nullable=False)
    item_type: Mapped[str] = mapped_column(String(32), nullable=False)
    custom_code: Mapped[Optional[str]] = mapped_column(String(4))
    description: Mapped[Optional[str]] = mapped_column(Text)
    sequential_start: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    sequential_padding: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("sequential_start >= 1", name="chk_sequential_start"),
        CheckConstraint("sequential_padding BETWEEN 1 AND 10", name="chk_sequential_padding"),
        Index("idx_sku_patterns_item_type", "item_type"),
    )


# ============================================================================
# 3. SKU / EQUIPMENT BINDINGS
# ============================================================================

class SkuBindingRecord(TimestampMixin, Base):
    __tablename__ = "sku_bindings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    acquirer: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String(100))
    unit_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # upper(model) + "|" + upper(acquirer)
    pair_key: Mapped[str] = mapped_column(String(201), nullable=False)

    __table_args__ = (
        UniqueConstraint("sku", name="uq_sku_bindings_sku"),
        UniqueConstraint("pair_key", name="uq_sku_bindings_pair"),
        CheckConstraint("unit_count >= 0", name="chk_unit_count_non_negative"),
    )


# ============================================================================
# 4. ASSET RECORDS
# ============================================================================

class AssetRecord(TimestampMixin, Base):
    __tablename__ = "asset_records"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    serial_number: Mapped[str] = mapped_column(String(100), nullable=False)
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    acquirer: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_asset_records_serial"),
        Index("idx_asset_records_sku", "sku"),
    )


# ============================================================================
# 5. CUSTOM OPTIONS (single row)
# ============================================================================

class CustomOptionsRecord(TimestampMixin, Base):
    __tablename__ = "custom_options"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    types: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    models: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    acquirers: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

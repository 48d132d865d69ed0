# asset_intake/store/__init__.py
"""
Document store backends: JSON files or PostgreSQL.
"""
from __future__ import annotations

from asset_intake.store.base import (
    SERIAL_PATTERNS, SKU_PATTERNS, SKU_BINDINGS, ASSET_RECORDS, CUSTOM_OPTIONS,
    Collection, DocumentStore,
)
from asset_intake.store.json_files import JsonFileStore


def build_store(settings) -> DocumentStore:
    """SQL store when USE_POSTGRES is set, JSON files under ASSET_DATA_ROOT/store otherwise."""
    if settings.USE_POSTGRES:
        from asset_intake.store.sql import SqlStore
        return SqlStore()
    return JsonFileStore(settings.ASSET_DATA_ROOT / "store")


__all__ = [
    "SERIAL_PATTERNS", "SKU_PATTERNS", "SKU_BINDINGS", "ASSET_RECORDS", "CUSTOM_OPTIONS",
    "Collection", "DocumentStore", "JsonFileStore", "build_store",
]

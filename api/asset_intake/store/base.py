# asset_intake/store/base.py
"""
Document store contract.

Every logical collection exposes the same async primitives. Records are plain
dicts carrying an "id" plus "created_at"/"updated_at" set by the store at
write time.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

SERIAL_PATTERNS = "serial_patterns"
SKU_PATTERNS = "sku_patterns"
SKU_BINDINGS = "sku_bindings"
ASSET_RECORDS = "asset_records"
CUSTOM_OPTIONS = "custom_options"

COLLECTIONS: Tuple[str, ...] = (
    SERIAL_PATTERNS,
    SKU_PATTERNS,
    SKU_BINDINGS,
    ASSET_RECORDS,
    CUSTOM_OPTIONS,
)

# Fields that must hold distinct values across a collection.
UNIQUE_FIELDS: Dict[str, Tuple[str, ...]] = {
    SKU_BINDINGS: ("sku", "pair_key"),
    ASSET_RECORDS: ("serial_number",),
}

Record = Dict[str, Any]


class Collection(ABC):
    """One logical collection of records."""

    name: str

    @abstractmethod
    async def create(self, fields: Record) -> str:
        """Insert a record and return its id. Raises UniqueViolation."""

    @abstractmethod
    async def get_all(self) -> List[Record]:
        """All records, newest first."""

    @abstractmethod
    async def get_by_id(self, record_id: str) -> Optional[Record]:
        ...

    @abstractmethod
    async def update(self, record_id: str, fields: Record) -> None:
        """Partial update. Raises NotFoundError / UniqueViolation."""

    @abstractmethod
    async def delete(self, record_id: str) -> None:
        ...

    @abstractmethod
    async def query_by_field(self, field: str, value: Any) -> List[Record]:
        """Records whose field equals value, newest first."""

    @abstractmethod
    async def increment(self, record_id: str, field: str, by: int) -> int:
        """
        Atomically add `by` to an integer field and return the new value.
        The result never goes below zero. Raises NotFoundError.
        """


class DocumentStore(ABC):
    @abstractmethod
    def collection(self, name: str) -> Collection:
        ...

    async def close(self) -> None:
        return None

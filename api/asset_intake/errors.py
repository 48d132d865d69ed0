# asset_intake/errors.py
"""
Error taxonomy for serial classification, SKU bindings and batch commit.

Batch-level gates (ClassificationError, BindingMissingError) block a commit
entirely. Entry-level problems (DuplicateSerialError, PersistenceIOError) are
isolated to one entry and never abort the batch.
"""
from __future__ import annotations
from typing import Any, List, Optional, Sequence


class AssetIntakeError(Exception):
    """Base class for all domain errors."""


# ============================================================================
# Store level
# ============================================================================

class PersistenceIOError(AssetIntakeError):
    """Transient I/O failure talking to the document store."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        msg = f"Store operation failed: {operation}"
        if cause is not None:
            msg += f" ({cause})"
        super().__init__(msg)


class UniqueViolation(AssetIntakeError):
    """A write conflicted with a unique field of a collection."""

    def __init__(self, collection: str, field: str, value: Any):
        self.collection = collection
        self.field = field
        self.value = value
        super().__init__(f"{collection}.{field} already holds {value!r}")


class NotFoundError(AssetIntakeError):
    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection}/{record_id} not found")


# ============================================================================
# Registry / templates
# ============================================================================

class TemplateError(AssetIntakeError):
    """SKU template is malformed."""

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid SKU template")


class DuplicatePrefixError(AssetIntakeError):
    def __init__(self, prefix: str):
        self.prefix = prefix
        super().__init__(f"An active serial pattern already uses prefix {prefix}")


class ActiveSkuPatternConflictError(AssetIntakeError):
    def __init__(self, item_type: str):
        self.item_type = item_type
        super().__init__(f"An active SKU pattern already exists for {item_type}")


# ============================================================================
# Bindings
# ============================================================================

class DuplicateBindingError(AssetIntakeError):
    def __init__(self, model: str, acquirer: str, sku: Optional[str] = None):
        self.model = model
        self.acquirer = acquirer
        self.sku = sku
        super().__init__(f"A SKU is already bound to {model} / {acquirer}: {sku}")


class DuplicateSkuError(AssetIntakeError):
    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU {sku} is already bound to another equipment")


class BindingInUseError(AssetIntakeError):
    def __init__(self, sku: str, unit_count: int):
        self.sku = sku
        self.unit_count = unit_count
        super().__init__(f"SKU {sku} still has {unit_count} registered units")


# ============================================================================
# Batch intake
# ============================================================================

class ClassificationError(AssetIntakeError):
    """Batch holds serials no active pattern recognizes."""

    def __init__(self, prefix: str, count: int):
        self.prefix = prefix
        self.count = count
        super().__init__(f"{count} serials without a pattern; first unknown prefix: {prefix}")


class BindingMissingError(AssetIntakeError):
    """Valid entries have no SKU; one binding is needed per combination."""

    def __init__(self, combinations: List[Any], entry_count: int):
        self.combinations = list(combinations)
        self.entry_count = entry_count
        super().__init__(
            f"{entry_count} serials without SKU in {len(self.combinations)} combinations"
        )


class DuplicateSerialError(AssetIntakeError):
    def __init__(self, serial: str):
        self.serial = serial
        super().__init__(f"Serial {serial} is already registered")

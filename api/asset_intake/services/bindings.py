# asset_intake/services/bindings.py
"""
SKU / Equipment Binding Store.

Every physical unit of the same (model, acquirer) pair shares one SKU. The
binding is looked up by a normalized composite key:

    pair_key = upper(trim(model)) + "|" + upper(trim(acquirer))

SKU allocation is read-then-write (max sequential + 1, then insert). Two
concurrent allocations may compute the same candidate; the store's unique
constraint rejects the loser. create_binding() surfaces that as
DuplicateSkuError; allocate_binding() retries with a fresh candidate and
exponential backoff.
"""
from __future__ import annotations
import asyncio
import logging
import re
import time
from typing import Any, Dict, List, Optional

from asset_intake.errors import (
    BindingInUseError, DuplicateBindingError, DuplicateSkuError,
    NotFoundError, PersistenceIOError, UniqueViolation,
)
from asset_intake.models import ItemType, SkuEquipmentBinding, normalize_label
from asset_intake.services import code_generator
from asset_intake.services.sku_patterns import SkuPatternService
from asset_intake.settings import settings
from asset_intake.store import SKU_BINDINGS, DocumentStore

logger = logging.getLogger(__name__)

LEGACY_PADDING = 3


def pair_key(model: str, acquirer: str) -> str:
    return f"{normalize_label(model)}|{normalize_label(acquirer)}"


def normalize_sku(sku: str) -> str:
    return (sku or "").strip().upper()


class BindingStore:
    def __init__(
        self,
        store: DocumentStore,
        sku_patterns: Optional[SkuPatternService] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        legacy_code: Optional[str] = None,
    ):
        self.collection = store.collection(SKU_BINDINGS)
        self.sku_patterns = sku_patterns or SkuPatternService(store)
        self.max_attempts = max(1, max_attempts if max_attempts is not None else settings.SKU_ALLOCATION_MAX_ATTEMPTS)
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.SKU_ALLOCATION_BACKOFF_SECONDS
        self.legacy_code = legacy_code or settings.LEGACY_SKU_CODE

    # =========================================================================
    # Lookup
    # =========================================================================

    async def list_bindings(self) -> List[SkuEquipmentBinding]:
        return [SkuEquipmentBinding.model_validate(r) for r in await self.collection.get_all()]

    async def get(self, binding_id: str) -> SkuEquipmentBinding:
        record = await self.collection.get_by_id(binding_id)
        if record is None:
            raise NotFoundError(SKU_BINDINGS, binding_id)
        return SkuEquipmentBinding.model_validate(record)

    async def find_binding(self, model: str, acquirer: str) -> Optional[SkuEquipmentBinding]:
        rows = await self.collection.query_by_field("pair_key", pair_key(model, acquirer))
        return SkuEquipmentBinding.model_validate(rows[0]) if rows else None

    async def get_by_sku(self, sku: str) -> Optional[SkuEquipmentBinding]:
        rows = await self.collection.query_by_field("sku", normalize_sku(sku))
        return SkuEquipmentBinding.model_validate(rows[0]) if rows else None

    # =========================================================================
    # SKU allocation
    # =========================================================================

    async def next_available_sku(self, item_type: ItemType = ItemType.serialized_asset) -> str:
        """
        Next free SKU for item_type: highest trailing number among all bindings
        plus one, or the pattern's sequential_start when there is none.

        Without an active pattern the legacy code (ATS) is used; if the store
        cannot be read at all a timestamp suffix is returned (not collision-free).
        """
        try:
            pattern = await self.sku_patterns.active_for(item_type)
            if pattern is None:
                logger.warning(f"No active SKU pattern for {ItemType(item_type).value}, using legacy {self.legacy_code}")
                return await self._legacy_next_sku()

            code = code_generator.type_code_for(pattern.item_type, pattern.custom_code)
            numbers = [
                n for n in (code_generator.trailing_number(b.sku) for b in await self.list_bindings())
                if n
            ]
            sequential = max(numbers) + 1 if numbers else pattern.sequential_start
            return code_generator.generate(pattern.template, code, sequential, pattern.sequential_padding)
        except PersistenceIOError as e:
            logger.error(f"Failed to compute next SKU, falling back to timestamp: {e}")
            return self._timestamp_sku()

    async def _legacy_next_sku(self) -> str:
        legacy_re = re.compile(rf"{re.escape(self.legacy_code)}(\d+)")
        highest = 0
        for binding in await self.list_bindings():
            m = legacy_re.search(binding.sku)
            if m:
                highest = max(highest, int(m.group(1)))
        return code_generator.generate(
            code_generator.DEFAULT_TEMPLATE, self.legacy_code, highest + 1, LEGACY_PADDING
        )

    def _timestamp_sku(self) -> str:
        return f"{self.legacy_code}{str(int(time.time() * 1000))[-3:]}"

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_binding(
        self, sku: str, model: str, acquirer: str, type: Optional[str] = None,
    ) -> SkuEquipmentBinding:
        """
        Bind sku to (model, acquirer). Single attempt, no retry.

        Raises DuplicateBindingError if the pair is already bound and
        DuplicateSkuError if sku belongs to another pair.
        """
        sku = normalize_sku(sku)
        model = normalize_label(model)
        acquirer = normalize_label(acquirer)

        existing = await self.find_binding(model, acquirer)
        if existing is not None:
            raise DuplicateBindingError(model, acquirer, existing.sku)
        if await self.get_by_sku(sku) is not None:
            raise DuplicateSkuError(sku)

        fields = {
            "sku": sku,
            "model": model,
            "acquirer": acquirer,
            "type": normalize_label(type) if type else None,
            "unit_count": 0,
            "pair_key": pair_key(model, acquirer),
        }
        try:
            binding_id = await self.collection.create(fields)
        except UniqueViolation as e:
            # lost a race between the checks above and the insert
            if e.field == "pair_key":
                raise DuplicateBindingError(model, acquirer) from e
            raise DuplicateSkuError(sku) from e

        logger.info(f"SKU {sku} bound to {model} / {acquirer}")
        return await self.get(binding_id)

    async def allocate_binding(
        self,
        model: str,
        acquirer: str,
        type: Optional[str] = None,
        item_type: ItemType = ItemType.serialized_asset,
    ) -> SkuEquipmentBinding:
        """
        Resolve or create the binding for (model, acquirer).

        Retries on DuplicateSkuError with a fresh next_available_sku();
        returns the winner's binding if another writer bound the pair first.
        """
        for attempt in range(1, self.max_attempts + 1):
            existing = await self.find_binding(model, acquirer)
            if existing is not None:
                return existing

            sku = await self.next_available_sku(item_type)
            try:
                return await self.create_binding(sku, model, acquirer, type)
            except DuplicateBindingError:
                winner = await self.find_binding(model, acquirer)
                if winner is None:
                    raise
                return winner
            except DuplicateSkuError:
                if attempt >= self.max_attempts:
                    raise
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    f"SKU {sku} taken while binding {model} / {acquirer} "
                    f"(attempt {attempt}/{self.max_attempts}), retrying in {delay:.3f}s"
                )
                await asyncio.sleep(delay)

    async def increment_unit_count(self, binding_id: str, by: int = 1) -> SkuEquipmentBinding:
        """Atomic +by (negative to release units); never drops below zero."""
        await self.collection.increment(binding_id, "unit_count", by)
        return await self.get(binding_id)

    async def update_binding(self, binding_id: str, changes: Dict[str, Any]) -> SkuEquipmentBinding:
        current = await self.get(binding_id)
        patch = {k: v for k, v in changes.items() if k in ("sku", "model", "acquirer", "type")}
        if "sku" in patch:
            patch["sku"] = normalize_sku(patch["sku"])
        for key in ("model", "acquirer"):
            if key in patch:
                patch[key] = normalize_label(patch[key])
        model = patch.get("model", current.model)
        acquirer = patch.get("acquirer", current.acquirer)
        patch["pair_key"] = pair_key(model, acquirer)
        try:
            await self.collection.update(binding_id, patch)
        except UniqueViolation as e:
            if e.field == "pair_key":
                raise DuplicateBindingError(model, acquirer) from e
            raise DuplicateSkuError(patch.get("sku", current.sku)) from e
        return await self.get(binding_id)

    async def delete_binding(self, binding_id: str) -> None:
        binding = await self.get(binding_id)
        if binding.unit_count > 0:
            raise BindingInUseError(binding.sku, binding.unit_count)
        await self.collection.delete(binding_id)
        logger.info(f"Binding {binding.sku} deleted")

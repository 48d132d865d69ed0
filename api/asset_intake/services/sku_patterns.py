# asset_intake/services/sku_patterns.py
from __future__ import annotations
import logging
from typing import List, Optional

from asset_intake.errors import ActiveSkuPatternConflictError, NotFoundError, TemplateError
from asset_intake.models import ItemType, SkuPattern, SkuPatternIn, SkuPatternUpdate
from asset_intake.services import code_generator
from asset_intake.store import SKU_PATTERNS, DocumentStore

logger = logging.getLogger(__name__)


class SkuPatternService:
    """
    SKU template maintenance.

    At most one pattern per item type may be active; writes that would break
    this raise ActiveSkuPatternConflictError.
    """

    def __init__(self, store: DocumentStore):
        self.collection = store.collection(SKU_PATTERNS)

    async def list(self) -> List[SkuPattern]:
        return [SkuPattern.model_validate(r) for r in await self.collection.get_all()]

    async def get(self, pattern_id: str) -> SkuPattern:
        record = await self.collection.get_by_id(pattern_id)
        if record is None:
            raise NotFoundError(SKU_PATTERNS, pattern_id)
        return SkuPattern.model_validate(record)

    async def active_for(self, item_type: ItemType) -> Optional[SkuPattern]:
        """The active pattern for item_type (newest if legacy data holds several)."""
        item_type = ItemType(item_type)
        active = [p for p in await self.list() if p.item_type == item_type and p.is_active]
        if not active:
            return None
        if len(active) > 1:
            logger.warning(
                f"{len(active)} active SKU patterns for {item_type.value}; using {active[0].name}"
            )
        return active[0]

    async def _ensure_single_active(self, item_type: ItemType, exclude_id: Optional[str] = None) -> None:
        for p in await self.list():
            if p.id != exclude_id and p.item_type == item_type and p.is_active:
                raise ActiveSkuPatternConflictError(ItemType(item_type).value)

    @staticmethod
    def _check_template(template: str) -> None:
        result = code_generator.validate_template(template)
        if not result.is_valid:
            raise TemplateError(result.errors)

    async def create(self, data: SkuPatternIn) -> SkuPattern:
        self._check_template(data.template)
        if data.is_active:
            await self._ensure_single_active(data.item_type)
        pattern_id = await self.collection.create(data.model_dump(mode="json"))
        logger.info(f"SKU pattern '{data.name}' created for {data.item_type.value}")
        return await self.get(pattern_id)

    async def update(self, pattern_id: str, changes: SkuPatternUpdate) -> SkuPattern:
        current = await self.get(pattern_id)
        patch = changes.model_dump(mode="json", exclude_unset=True)
        if "template" in patch:
            self._check_template(patch["template"])
        item_type = ItemType(patch.get("item_type", current.item_type))
        if patch.get("is_active", current.is_active):
            await self._ensure_single_active(item_type, exclude_id=pattern_id)
        await self.collection.update(pattern_id, patch)
        return await self.get(pattern_id)

    async def set_active(self, pattern_id: str, active: bool) -> SkuPattern:
        return await self.update(pattern_id, SkuPatternUpdate(is_active=active))

    async def delete(self, pattern_id: str) -> None:
        await self.collection.delete(pattern_id)

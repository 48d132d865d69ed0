# asset_intake/services/assets.py
"""
Registered assets: read access and deletion for committed serials.

Deleting an asset releases one unit from its SKU binding so the binding can
be removed once no assets reference it.
"""
from __future__ import annotations
import logging
from typing import List, Optional

from asset_intake.errors import AssetIntakeError, NotFoundError
from asset_intake.models import AssetRecord
from asset_intake.services.bindings import BindingStore, normalize_sku
from asset_intake.services.pattern_registry import normalize_serial
from asset_intake.store import ASSET_RECORDS, DocumentStore

logger = logging.getLogger(__name__)


class AssetRecordService:
    def __init__(self, store: DocumentStore, bindings: Optional[BindingStore] = None):
        self.collection = store.collection(ASSET_RECORDS)
        self.bindings = bindings or BindingStore(store)

    async def list(self) -> List[AssetRecord]:
        return [AssetRecord.model_validate(r) for r in await self.collection.get_all()]

    async def get(self, asset_id: str) -> AssetRecord:
        record = await self.collection.get_by_id(asset_id)
        if record is None:
            raise NotFoundError(ASSET_RECORDS, asset_id)
        return AssetRecord.model_validate(record)

    async def by_sku(self, sku: str) -> List[AssetRecord]:
        rows = await self.collection.query_by_field("sku", normalize_sku(sku))
        return [AssetRecord.model_validate(r) for r in rows]

    async def by_serial(self, serial: str) -> Optional[AssetRecord]:
        rows = await self.collection.query_by_field("serial_number", normalize_serial(serial))
        return AssetRecord.model_validate(rows[0]) if rows else None

    async def delete(self, asset_id: str) -> AssetRecord:
        asset = await self.get(asset_id)
        await self.collection.delete(asset_id)
        logger.info(f"Asset {asset.serial_number} ({asset.sku}) deleted")

        try:
            binding = await self.bindings.get_by_sku(asset.sku)
            if binding is None:
                logger.warning(f"No binding for SKU {asset.sku} while deleting {asset.serial_number}")
            else:
                await self.bindings.increment_unit_count(binding.id, -1)
        except AssetIntakeError as e:
            # the asset is already gone; only the counter drifts
            logger.warning(f"Could not release unit of {asset.sku}: {e}")
        return asset

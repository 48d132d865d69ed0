# asset_intake/services/__init__.py
"""
Business logic services for Asset Intake.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional

from asset_intake.services.assets import AssetRecordService
from asset_intake.services.bindings import BindingStore
from asset_intake.services.batch_intake import BatchIntakePipeline
from asset_intake.services.custom_options import CustomOptionsService
from asset_intake.services.pattern_registry import PatternRegistry
from asset_intake.services.sku_patterns import SkuPatternService
from asset_intake.store import DocumentStore


@dataclass
class Services:
    """Long-lived services sharing one store; batches are kept in memory."""
    store: DocumentStore
    registry: PatternRegistry
    sku_patterns: SkuPatternService
    bindings: BindingStore
    assets: AssetRecordService
    batches: Dict[str, BatchIntakePipeline] = field(default_factory=dict)

    def new_batch(self, concurrency: Optional[int] = None) -> BatchIntakePipeline:
        batch = BatchIntakePipeline(self.registry, self.bindings, self.store, concurrency=concurrency)
        self.batches[batch.batch_id] = batch
        return batch

    def drop_batch(self, batch_id: str) -> Optional[BatchIntakePipeline]:
        batch = self.batches.pop(batch_id, None)
        if batch is not None:
            batch.clear()
        return batch


def build_services(store: DocumentStore) -> Services:
    sku_patterns = SkuPatternService(store)
    bindings = BindingStore(store, sku_patterns)
    return Services(
        store=store,
        registry=PatternRegistry(store, CustomOptionsService(store)),
        sku_patterns=sku_patterns,
        bindings=bindings,
        assets=AssetRecordService(store, bindings),
    )


__all__ = [
    "AssetRecordService",
    "BatchIntakePipeline",
    "BindingStore",
    "CustomOptionsService",
    "PatternRegistry",
    "Services",
    "SkuPatternService",
    "build_services",
]

# asset_intake/services/custom_options.py
from __future__ import annotations
import logging
from typing import Iterable, Optional

from asset_intake.models import CustomOptions, OptionKind, normalize_label
from asset_intake.store import CUSTOM_OPTIONS, DocumentStore

logger = logging.getLogger(__name__)

OPTION_KINDS = ("types", "models", "acquirers")


def merge_values(*groups: Iterable[str]) -> list:
    """Union of all values, case-normalized, deduplicated and sorted."""
    out = set()
    for group in groups:
        for value in group or ():
            value = normalize_label(value)
            if value:
                out.add(value)
    return sorted(out)


class CustomOptionsService:
    """Type/model/acquirer vocabularies, stored as a single document."""

    def __init__(self, store: DocumentStore):
        self.collection = store.collection(CUSTOM_OPTIONS)

    async def _document(self) -> Optional[dict]:
        docs = await self.collection.get_all()
        return docs[0] if docs else None

    async def load(self) -> CustomOptions:
        doc = await self._document()
        if doc is None:
            return CustomOptions()
        return CustomOptions(
            types=merge_values(doc.get("types")),
            models=merge_values(doc.get("models")),
            acquirers=merge_values(doc.get("acquirers")),
        )

    async def save(self, options: CustomOptions) -> CustomOptions:
        payload = {kind: merge_values(getattr(options, kind)) for kind in OPTION_KINDS}
        doc = await self._document()
        if doc is None:
            await self.collection.create(payload)
        else:
            await self.collection.update(doc["id"], payload)
        return CustomOptions(**payload)

    async def add(self, kind: OptionKind, value: str) -> CustomOptions:
        current = await self.load()
        value = normalize_label(value)
        if not value or value in getattr(current, kind):
            return current
        updated = current.model_copy(update={kind: merge_values(getattr(current, kind), [value])})
        return await self.save(updated)

    async def remove(self, kind: OptionKind, value: str) -> CustomOptions:
        current = await self.load()
        value = normalize_label(value)
        kept = [v for v in getattr(current, kind) if v != value]
        return await self.save(current.model_copy(update={kind: kept}))

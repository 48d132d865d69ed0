# asset_intake/services/pattern_registry.py
"""
Serial Pattern Registry.

Handles:
- Serial normalization (trim, collapse whitespace, uppercase)
- Prefix-based classification of serials into type/model/acquirer
- Pattern CRUD with an in-memory cache (refresh / invalidate)
- Custom option vocabularies, re-harvested from patterns on every mutation

Detection policy: the longest matching active prefix wins ("PB3" beats "PB"
for PB3123456); among equal prefixes the first pattern in load order
(newest first) wins.
"""
from __future__ import annotations
import logging
import re
from typing import List, Optional

from asset_intake.errors import DuplicatePrefixError, NotFoundError
from asset_intake.models import (
    CustomOptions, DetectionResult, OptionKind, SerialPattern,
    SerialPatternIn, SerialPatternUpdate, SuggestedValues, normalize_prefix,
)
from asset_intake.services.custom_options import CustomOptionsService, merge_values
from asset_intake.store import SERIAL_PATTERNS, DocumentStore

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")


def normalize_serial(serial: str) -> str:
    """
    Normalize a raw serial number.

    Example:
        "  pb3 123 456 " -> "PB3 123 456"
    """
    return _WS_RE.sub(" ", serial or "").strip().upper()


def harvest_options(patterns: List[SerialPattern]) -> CustomOptions:
    return CustomOptions(
        types=merge_values(p.type for p in patterns),
        models=merge_values(p.model for p in patterns),
        acquirers=merge_values(p.acquirer for p in patterns),
    )


def _union(a: CustomOptions, b: CustomOptions) -> CustomOptions:
    return CustomOptions(
        types=merge_values(a.types, b.types),
        models=merge_values(a.models, b.models),
        acquirers=merge_values(a.acquirers, b.acquirers),
    )


NOT_FOUND = DetectionResult(found=False, confidence=0, needs_manual_validation=True)


class PatternRegistry:
    """Cached view over the serial_patterns collection."""

    def __init__(self, store: DocumentStore, options_service: Optional[CustomOptionsService] = None):
        self.collection = store.collection(SERIAL_PATTERNS)
        self.options_service = options_service or CustomOptionsService(store)
        self._patterns: Optional[List[SerialPattern]] = None
        self._options = CustomOptions()

    # =========================================================================
    # Cache
    # =========================================================================

    @property
    def loaded(self) -> bool:
        return self._patterns is not None

    async def refresh(self) -> None:
        """Reload patterns and merge stored options with harvested ones."""
        records = await self.collection.get_all()
        self._patterns = [SerialPattern.model_validate(r) for r in records]
        stored = await self.options_service.load()
        self._options = _union(stored, harvest_options(self._patterns))
        logger.info(f"Loaded {len(self._patterns)} serial patterns")

    def invalidate(self) -> None:
        self._patterns = None

    async def ensure_loaded(self) -> None:
        if self._patterns is None:
            await self.refresh()

    @property
    def patterns(self) -> List[SerialPattern]:
        return list(self._patterns or [])

    @property
    def options(self) -> CustomOptions:
        return self._options.model_copy(deep=True)

    def active_patterns(self) -> List[SerialPattern]:
        return [p for p in self._patterns or [] if p.active]

    # =========================================================================
    # Detection
    # =========================================================================

    def detect(self, serial: str) -> DetectionResult:
        """Classify a serial against the cached active patterns."""
        normalized = normalize_serial(serial)
        if not normalized:
            return NOT_FOUND

        best: Optional[SerialPattern] = None
        best_len = 0
        for pattern in self.active_patterns():
            prefix = normalize_prefix(pattern.prefix)
            if prefix and normalized.startswith(prefix) and len(prefix) > best_len:
                best, best_len = pattern, len(prefix)

        if best is None:
            return NOT_FOUND

        return DetectionResult(
            found=True,
            pattern=best,
            confidence=100,
            needs_manual_validation=best.needs_manual_validation,
            suggested=SuggestedValues(type=best.type, model=best.model, acquirer=best.acquirer),
        )

    # =========================================================================
    # CRUD
    # =========================================================================

    async def get(self, pattern_id: str) -> SerialPattern:
        record = await self.collection.get_by_id(pattern_id)
        if record is None:
            raise NotFoundError(SERIAL_PATTERNS, pattern_id)
        return SerialPattern.model_validate(record)

    async def prefix_exists(self, prefix: str, exclude_id: Optional[str] = None, active_only: bool = False) -> bool:
        prefix = normalize_prefix(prefix)
        for rec in await self.collection.query_by_field("prefix", prefix):
            if rec.get("id") == exclude_id:
                continue
            if active_only and not rec.get("active", True):
                continue
            return True
        return False

    async def add_pattern(self, data: SerialPatternIn) -> SerialPattern:
        await self.ensure_loaded()
        if data.active and await self.prefix_exists(data.prefix, active_only=True):
            raise DuplicatePrefixError(data.prefix)

        pattern_id = await self.collection.create(data.model_dump())
        pattern = await self.get(pattern_id)
        self._patterns.insert(0, pattern)
        await self._save_harvested_options()
        logger.info(f"Serial pattern {pattern.prefix} created -> {pattern.model} / {pattern.acquirer}")
        return pattern

    async def update_pattern(self, pattern_id: str, changes: SerialPatternUpdate) -> SerialPattern:
        await self.ensure_loaded()
        current = await self.get(pattern_id)
        patch = changes.model_dump(exclude_unset=True, exclude_none=True)

        prefix = patch.get("prefix", current.prefix)
        active = patch.get("active", current.active)
        if active and await self.prefix_exists(prefix, exclude_id=pattern_id, active_only=True):
            raise DuplicatePrefixError(prefix)

        await self.collection.update(pattern_id, patch)
        updated = await self.get(pattern_id)
        self._patterns = [updated if p.id == pattern_id else p for p in self._patterns]
        await self._save_harvested_options()
        return updated

    async def toggle_active(self, pattern_id: str) -> SerialPattern:
        current = await self.get(pattern_id)
        return await self.update_pattern(pattern_id, SerialPatternUpdate(active=not current.active))

    async def delete_pattern(self, pattern_id: str) -> None:
        await self.ensure_loaded()
        await self.collection.delete(pattern_id)
        self._patterns = [p for p in self._patterns if p.id != pattern_id]
        await self._save_harvested_options()
        logger.info(f"Serial pattern {pattern_id} deleted")

    # =========================================================================
    # Custom options
    # =========================================================================

    async def _save_harvested_options(self) -> None:
        # union only: values never disappear because a pattern was removed
        merged = _union(self._options, harvest_options(self._patterns or []))
        self._options = await self.options_service.save(merged)

    async def add_custom_option(self, kind: OptionKind, value: str) -> CustomOptions:
        stored = await self.options_service.add(kind, value)
        self._options = _union(self._options, stored)
        return self.options

    async def remove_custom_option(self, kind: OptionKind, value: str) -> CustomOptions:
        stored = await self.options_service.remove(kind, value)
        self._options = _union(stored, harvest_options(self._patterns or []))
        return self.options

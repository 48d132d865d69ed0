# asset_intake/services/batch_intake.py
"""
Batch Intake Pipeline - bulk serial registration.

Per-entry state machine:

    validating -> valid | duplicate | invalid (validation error)
    invalid (pattern not recognized) is terminal until a pattern is registered

process() classifies pasted serials and schedules one duplicate check per
entry as an asyncio task. Checks run independently (optionally bounded by a
semaphore) and each one mutates only its own entry. A check that resolves
after the batch was cleared is a no-op.

commit() is gated twice before any write:
1. unrecognized serials -> ClassificationError (author a pattern first)
2. valid entries without SKU -> BindingMissingError (one per distinct
   model/acquirer combination)
Then entries are persisted one by one; a failed write is counted and recorded
on that entry, and the loop continues.
"""
from __future__ import annotations
import asyncio
import contextlib
import logging
import uuid
from collections import Counter
from typing import Dict, Iterable, List, Optional, Set

from asset_intake.errors import (
    BindingMissingError, ClassificationError, DuplicateSerialError,
    AssetIntakeError, UniqueViolation,
)
from asset_intake.models import (
    AssetRecordIn, BatchSummary, BindingCombination, CommitResult, EntryStatus, ItemType,
    ProcessedSerialEntry, SerialPattern, SerialPatternIn, SkuEquipmentBinding,
)
from asset_intake.services.bindings import BindingStore, pair_key
from asset_intake.services.pattern_registry import PatternRegistry, normalize_serial
from asset_intake.settings import settings
from asset_intake.store import ASSET_RECORDS, DocumentStore

logger = logging.getLogger(__name__)

PATTERN_NOT_RECOGNIZED = "pattern not recognized"
VALIDATION_ERROR = "validation error"
UNKNOWN_PREFIX_LENGTH = 3


class BatchIntakePipeline:
    def __init__(
        self,
        registry: PatternRegistry,
        bindings: BindingStore,
        store: DocumentStore,
        concurrency: Optional[int] = None,
        batch_id: Optional[str] = None,
    ):
        self.batch_id = batch_id or uuid.uuid4().hex
        self.registry = registry
        self.bindings = bindings
        self.assets = store.collection(ASSET_RECORDS)

        limit = settings.DUPLICATE_CHECK_CONCURRENCY if concurrency is None else concurrency
        self._semaphore = asyncio.Semaphore(limit) if limit and limit > 0 else None

        self._entries: List[ProcessedSerialEntry] = []
        self._tasks: Set[asyncio.Task] = set()
        self._in_flight: Set[str] = set()
        self._generation = 0

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def entries(self) -> List[ProcessedSerialEntry]:
        return [e.model_copy() for e in self._entries]

    def _count(self, *statuses: EntryStatus) -> int:
        return sum(1 for e in self._entries if e.status in statuses)

    @property
    def valid_count(self) -> int:
        return self._count(EntryStatus.valid)

    @property
    def invalid_count(self) -> int:
        return self._count(EntryStatus.invalid, EntryStatus.duplicate)

    @property
    def pending_count(self) -> int:
        return self._count(EntryStatus.validating)

    def summary(self) -> BatchSummary:
        entries = self.entries
        return BatchSummary(
            batch_id=self.batch_id,
            total=len(entries),
            valid_count=self.valid_count,
            invalid_count=self.invalid_count,
            pending_count=self.pending_count,
            entries=entries,
        )

    def _find(self, local_id: str) -> Optional[ProcessedSerialEntry]:
        for entry in self._entries:
            if entry.local_id == local_id:
                return entry
        return None

    def _unrecognized(self) -> List[ProcessedSerialEntry]:
        return [
            e for e in self._entries
            if e.status == EntryStatus.invalid and e.error_message == PATTERN_NOT_RECOGNIZED
        ]

    # =========================================================================
    # Intake
    # =========================================================================

    async def process(self, raw_text: str) -> List[ProcessedSerialEntry]:
        """
        Classify one serial per line and append the new entries to the batch.

        Serials already in the batch are skipped, so repeated calls only add
        what is new. Duplicate checks are scheduled, not awaited; see settle().
        """
        await self.registry.ensure_loaded()

        known = {e.serial_number for e in self._entries}
        new_entries: List[ProcessedSerialEntry] = []

        for line in (raw_text or "").splitlines():
            serial = normalize_serial(line)
            if not serial or serial in known:
                continue
            known.add(serial)
            entry = ProcessedSerialEntry(local_id=uuid.uuid4().hex[:12], serial_number=serial)
            self._classify(entry)
            new_entries.append(entry)

        await self._lookup_skus([e for e in new_entries if e.status == EntryStatus.validating])

        self._entries.extend(new_entries)
        self._start_validation(e for e in self._entries if e.status == EntryStatus.validating)

        unrecognized = sum(1 for e in new_entries if e.status == EntryStatus.invalid)
        logger.info(
            f"Batch {self.batch_id}: {len(new_entries)} serials processed, {unrecognized} without pattern"
        )
        return [e.model_copy() for e in new_entries]

    def _classify(self, entry: ProcessedSerialEntry) -> None:
        detection = self.registry.detect(entry.serial_number)
        if not detection.found:
            entry.status = EntryStatus.invalid
            entry.error_message = PATTERN_NOT_RECOGNIZED
            entry.detected_prefix = entry.serial_number[:UNKNOWN_PREFIX_LENGTH]
            return

        entry.type = detection.suggested.type
        entry.model = detection.suggested.model
        entry.acquirer = detection.suggested.acquirer
        entry.detected_prefix = detection.pattern.prefix
        entry.status = EntryStatus.validating
        entry.error_message = None

    async def _lookup_skus(self, entries: List[ProcessedSerialEntry]) -> None:
        """Fill sku from existing bindings; one lookup per distinct pair."""
        pairs: Dict[str, ProcessedSerialEntry] = {}
        for entry in entries:
            pairs.setdefault(pair_key(entry.model, entry.acquirer), entry)

        async def lookup(sample: ProcessedSerialEntry) -> Optional[SkuEquipmentBinding]:
            try:
                return await self.bindings.find_binding(sample.model, sample.acquirer)
            except AssetIntakeError as e:
                # surfaced later as a missing binding at commit
                logger.warning(f"Binding lookup failed for {sample.model} / {sample.acquirer}: {e}")
                return None

        found = await asyncio.gather(*(lookup(sample) for sample in pairs.values()))
        skus = {key: b.sku for key, b in zip(pairs.keys(), found) if b is not None}
        for entry in entries:
            entry.sku = skus.get(pair_key(entry.model, entry.acquirer), entry.sku)

    # =========================================================================
    # Duplicate validation
    # =========================================================================

    def _start_validation(self, entries: Iterable[ProcessedSerialEntry]) -> None:
        for entry in entries:
            if entry.local_id in self._in_flight:
                continue
            self._in_flight.add(entry.local_id)
            task = asyncio.create_task(
                self._validate(entry.local_id, entry.serial_number, self._generation)
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _validate(self, local_id: str, serial: str, generation: int) -> None:
        try:
            async with self._semaphore or contextlib.nullcontext():
                existing = await self.assets.query_by_field("serial_number", serial)
        except Exception as e:
            logger.warning(f"Duplicate check failed for {serial}: {e}")
            self._apply(local_id, generation, EntryStatus.invalid, VALIDATION_ERROR)
        else:
            if existing:
                self._apply(local_id, generation, EntryStatus.duplicate, str(DuplicateSerialError(serial)))
            else:
                self._apply(local_id, generation, EntryStatus.valid, None)
        finally:
            if generation == self._generation:
                self._in_flight.discard(local_id)

    def _apply(self, local_id: str, generation: int, status: EntryStatus, error: Optional[str]) -> None:
        if generation != self._generation:
            return  # batch was cleared
        entry = self._find(local_id)
        if entry is None or entry.status != EntryStatus.validating:
            return
        entry.status = status
        entry.error_message = error

    async def settle(self) -> None:
        """Wait for every in-flight duplicate check."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def revalidate(self) -> int:
        """Re-run duplicate checks for entries that failed with a validation error."""
        retry = [
            e for e in self._entries
            if e.status == EntryStatus.invalid and e.error_message == VALIDATION_ERROR
        ]
        for entry in retry:
            entry.status = EntryStatus.validating
            entry.error_message = None
        self._start_validation(retry)
        return len(retry)

    # =========================================================================
    # Batch editing
    # =========================================================================

    def remove_entry(self, local_id: str) -> bool:
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.local_id != local_id]
        return len(self._entries) != before

    def clear(self) -> None:
        self._generation += 1
        self._entries = []
        self._in_flight = set()

    # =========================================================================
    # Gate 1: unknown prefixes
    # =========================================================================

    async def register_pattern(self, data: SerialPatternIn) -> SerialPattern:
        """Create a serial pattern and re-run detection for unrecognized entries."""
        pattern = await self.registry.add_pattern(data)
        count = await self.reclassify()
        logger.info(f"Batch {self.batch_id}: pattern {pattern.prefix} created, {count} serials reclassified")
        return pattern

    async def reclassify(self) -> int:
        reclassified = []
        for entry in self._unrecognized():
            self._classify(entry)
            if entry.status == EntryStatus.validating:
                reclassified.append(entry)
        await self._lookup_skus(reclassified)
        self._start_validation(reclassified)
        return len(reclassified)

    # =========================================================================
    # Gate 2: missing bindings
    # =========================================================================

    def missing_bindings(self) -> List[BindingCombination]:
        """Distinct (model, acquirer, type) combinations of valid entries without SKU."""
        combos: Dict[str, BindingCombination] = {}
        for entry in self._entries:
            if entry.status == EntryStatus.valid and not entry.sku:
                combos.setdefault(
                    pair_key(entry.model, entry.acquirer),
                    BindingCombination(model=entry.model, acquirer=entry.acquirer, type=entry.type),
                )
        return list(combos.values())

    def apply_bindings(self, bindings: Iterable[SkuEquipmentBinding]) -> int:
        """Back-fill sku onto every entry without one whose pair matches."""
        by_pair = {pair_key(b.model, b.acquirer): b.sku for b in bindings}
        filled = 0
        for entry in self._entries:
            if entry.sku:
                continue
            sku = by_pair.get(pair_key(entry.model, entry.acquirer))
            if sku:
                entry.sku = sku
                filled += 1
        return filled

    async def resolve_missing_bindings(
        self, item_type: ItemType = ItemType.serialized_asset,
    ) -> List[SkuEquipmentBinding]:
        """
        Allocate one binding per missing combination, sequentially, so each
        combination gets the next sequential number. Allocation errors propagate.
        """
        await self.settle()
        created: List[SkuEquipmentBinding] = []
        for combo in self.missing_bindings():
            binding = await self.bindings.allocate_binding(
                combo.model, combo.acquirer, combo.type or None, item_type,
            )
            created.append(binding)
        filled = self.apply_bindings(created)
        logger.info(f"Batch {self.batch_id}: {len(created)} bindings resolved, {filled} serials updated")
        return created

    # =========================================================================
    # Commit
    # =========================================================================

    async def commit(self) -> CommitResult:
        """
        Persist every valid entry.

        Raises ClassificationError / BindingMissingError before any write.
        Returns the {succeeded, failed} tally; committed entries leave the
        batch, failed ones stay with their error for inspection or retry.
        """
        await self.settle()

        unrecognized = self._unrecognized()
        if unrecognized:
            first = unrecognized[0]
            prefix = first.detected_prefix or first.serial_number[:UNKNOWN_PREFIX_LENGTH]
            raise ClassificationError(prefix, len(unrecognized))

        missing = self.missing_bindings()
        if missing:
            without_sku = sum(1 for e in self._entries if e.status == EntryStatus.valid and not e.sku)
            raise BindingMissingError(missing, without_sku)

        result = CommitResult()
        committed: Set[str] = set()
        units: Counter = Counter()

        for entry in [e for e in self._entries if e.status == EntryStatus.valid]:
            record = AssetRecordIn(
                serial_number=entry.serial_number,
                sku=entry.sku,
                type=entry.type,
                model=entry.model,
                acquirer=entry.acquirer,
            )
            try:
                await self.assets.create(record.model_dump())
            except UniqueViolation:
                result.failed += 1
                entry.status = EntryStatus.duplicate
                entry.error_message = str(DuplicateSerialError(entry.serial_number))
                result.errors[entry.local_id] = entry.error_message
            except Exception as e:
                logger.error(f"Failed to persist {entry.serial_number}: {e}")
                result.failed += 1
                entry.error_message = str(e)
                result.errors[entry.local_id] = entry.error_message
            else:
                result.succeeded += 1
                committed.add(entry.local_id)
                units[entry.sku] += 1

        self._entries = [e for e in self._entries if e.local_id not in committed]
        await self._bump_unit_counts(units)

        logger.info(f"Batch {self.batch_id} committed: {result.succeeded} saved, {result.failed} failed")
        return result

    async def _bump_unit_counts(self, units: Counter) -> None:
        for sku, count in units.items():
            try:
                binding = await self.bindings.get_by_sku(sku)
                if binding is not None:
                    await self.bindings.increment_unit_count(binding.id, count)
            except AssetIntakeError as e:
                # assets are already stored; only the counter drifts
                logger.warning(f"Could not update unit count for {sku}: {e}")

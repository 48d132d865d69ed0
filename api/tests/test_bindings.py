from __future__ import annotations
import asyncio
import re

import pytest

from asset_intake.errors import (
    BindingInUseError, DuplicateBindingError, DuplicateSkuError, PersistenceIOError,
)
from asset_intake.models import ItemType, SkuPatternIn
from asset_intake.services.bindings import BindingStore, pair_key
from asset_intake.store import SKU_BINDINGS


async def test_pair_key_is_case_and_space_insensitive():
    assert pair_key(" sunmi  p2", "PagSeguro ") == "SUNMI P2|PAGSEGURO"


async def test_next_sku_without_bindings(sku_patterns, bindings):
    await sku_patterns.create(SkuPatternIn(name="Terminals", custom_code="ATS", sequential_padding=3))
    assert await bindings.next_available_sku() == "ATS001"


async def test_next_sku_is_max_plus_one(sku_patterns, bindings):
    await sku_patterns.create(SkuPatternIn(name="Terminals", custom_code="ATS", sequential_padding=3))
    await bindings.create_binding("ATS001", "SUNMI P2", "PAGSEGURO")
    await bindings.create_binding("ATS003", "GPOS 700", "STONE")

    assert await bindings.next_available_sku() == "ATS004"


async def test_next_sku_respects_sequential_start(sku_patterns, bindings):
    await sku_patterns.create(SkuPatternIn(name="Terminals", sequential_start=100, sequential_padding=4))
    assert await bindings.next_available_sku() == "ATS0100"


async def test_next_sku_legacy_fallback(bindings):
    await bindings.create_binding("ATS009", "SUNMI P2", "PAGSEGURO")
    await bindings.create_binding("XYZ500", "GPOS 700", "STONE")

    assert await bindings.next_available_sku() == "ATS010"


async def test_next_sku_timestamp_fallback(store, sku_patterns, bindings):
    await sku_patterns.create(SkuPatternIn(name="Terminals"))
    flaky = store.flaky(SKU_BINDINGS, key="sku")
    bindings.collection = flaky

    async def broken():
        raise PersistenceIOError("read sku_bindings")

    flaky.get_all = broken
    sku = await bindings.next_available_sku()
    assert re.fullmatch(r"ATS\d{3}", sku)


async def test_create_binding_normalizes(bindings):
    binding = await bindings.create_binding(" ats001", "sunmi p2", "pagseguro", "smartpos")

    assert binding.sku == "ATS001"
    assert binding.model == "SUNMI P2"
    assert binding.type == "SMARTPOS"
    assert binding.unit_count == 0
    assert (await bindings.find_binding("Sunmi P2", "PagSeguro")).id == binding.id
    assert (await bindings.get_by_sku("ats001")).id == binding.id


async def test_duplicate_pair_rejected(bindings):
    await bindings.create_binding("ATS001", "SUNMI P2", "PAGSEGURO")
    with pytest.raises(DuplicateBindingError) as exc:
        await bindings.create_binding("ATS002", "sunmi p2", "pagseguro")
    assert exc.value.sku == "ATS001"


async def test_duplicate_sku_rejected(bindings):
    await bindings.create_binding("ATS001", "SUNMI P2", "PAGSEGURO")
    with pytest.raises(DuplicateSkuError):
        await bindings.create_binding("ATS001", "GPOS 700", "STONE")


async def test_allocate_returns_existing_binding(sku_patterns, bindings):
    await sku_patterns.create(SkuPatternIn(name="Terminals"))
    first = await bindings.allocate_binding("SUNMI P2", "PAGSEGURO")
    again = await bindings.allocate_binding("sunmi p2", "pagseguro")

    assert first.sku == "ATS001"
    assert again.id == first.id
    assert len(await bindings.list_bindings()) == 1


async def test_allocate_retries_after_sku_collision(sku_patterns, bindings, monkeypatch):
    await sku_patterns.create(SkuPatternIn(name="Terminals"))
    await bindings.create_binding("ATS001", "GPOS 700", "STONE")

    # the first candidate is stale, as if read before a concurrent insert
    candidates = iter(["ATS001"])
    real_next = bindings.next_available_sku

    async def next_sku(item_type=ItemType.serialized_asset):
        try:
            return next(candidates)
        except StopIteration:
            return await real_next(item_type)

    monkeypatch.setattr(bindings, "next_available_sku", next_sku)

    binding = await bindings.allocate_binding("SUNMI P2", "PAGSEGURO")
    assert binding.sku == "ATS002"


async def test_allocate_gives_up_after_max_attempts(sku_patterns, bindings, monkeypatch):
    await sku_patterns.create(SkuPatternIn(name="Terminals"))
    await bindings.create_binding("ATS001", "GPOS 700", "STONE")

    async def stale(item_type=ItemType.serialized_asset):
        return "ATS001"

    monkeypatch.setattr(bindings, "next_available_sku", stale)
    with pytest.raises(DuplicateSkuError):
        await bindings.allocate_binding("SUNMI P2", "PAGSEGURO")


async def test_concurrent_allocations_get_distinct_skus(store, sku_patterns):
    await sku_patterns.create(SkuPatternIn(name="Terminals"))
    a = BindingStore(store, sku_patterns, max_attempts=10, backoff_seconds=0)
    b = BindingStore(store, sku_patterns, max_attempts=10, backoff_seconds=0)

    first, second = await asyncio.gather(
        a.allocate_binding("SUNMI P2", "PAGSEGURO"),
        b.allocate_binding("GPOS 700", "STONE"),
    )
    assert {first.sku, second.sku} == {"ATS001", "ATS002"}


async def test_concurrent_unit_count_increments(bindings):
    binding = await bindings.create_binding("ATS001", "SUNMI P2", "PAGSEGURO")

    await asyncio.gather(*(bindings.increment_unit_count(binding.id) for _ in range(5)))
    assert (await bindings.get(binding.id)).unit_count == 5

    released = await bindings.increment_unit_count(binding.id, -7)
    assert released.unit_count == 0


async def test_delete_blocked_while_units_registered(bindings):
    binding = await bindings.create_binding("ATS001", "SUNMI P2", "PAGSEGURO")
    await bindings.increment_unit_count(binding.id, 2)

    with pytest.raises(BindingInUseError):
        await bindings.delete_binding(binding.id)


async def test_delete_unused_binding(bindings):
    binding = await bindings.create_binding("ATS001", "SUNMI P2", "PAGSEGURO")
    await bindings.delete_binding(binding.id)
    assert await bindings.find_binding("SUNMI P2", "PAGSEGURO") is None


async def test_update_binding_rekeys_pair(bindings):
    binding = await bindings.create_binding("ATS001", "SUNMI P2", "PAGSEGURO")
    await bindings.create_binding("ATS002", "GPOS 700", "STONE")

    updated = await bindings.update_binding(binding.id, {"acquirer": "cielo"})
    assert updated.pair_key == "SUNMI P2|CIELO"
    assert await bindings.find_binding("SUNMI P2", "PAGSEGURO") is None

    with pytest.raises(DuplicateBindingError):
        await bindings.update_binding(binding.id, {"model": "GPOS 700", "acquirer": "STONE"})
    with pytest.raises(DuplicateSkuError):
        await bindings.update_binding(binding.id, {"sku": "ats002"})

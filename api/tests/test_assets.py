from __future__ import annotations

import pytest

from asset_intake.errors import NotFoundError
from asset_intake.store import ASSET_RECORDS, SKU_BINDINGS


def asset(serial, sku="ATS001", model="SUNMI P2", acquirer="PAGSEGURO"):
    return {"serial_number": serial, "sku": sku, "type": "SMARTPOS", "model": model, "acquirer": acquirer}


@pytest.fixture
async def registered(store, bindings):
    """Two SUNMI P2 units under ATS001 and one GPOS 700 under ATS002."""
    sunmi = await bindings.create_binding("ATS001", "SUNMI P2", "PAGSEGURO")
    gpos = await bindings.create_binding("ATS002", "GPOS 700", "STONE")
    col = store.collection(ASSET_RECORDS)
    for serial in ("PB3000001", "PB3000002"):
        await col.create(asset(serial))
    await col.create(asset("GP7000001", sku="ATS002", model="GPOS 700", acquirer="STONE"))
    await bindings.increment_unit_count(sunmi.id, 2)
    await bindings.increment_unit_count(gpos.id, 1)
    return sunmi, gpos


async def test_list_newest_first(assets, registered):
    listed = await assets.list()
    assert [a.serial_number for a in listed] == ["GP7000001", "PB3000002", "PB3000001"]
    assert listed[0].created_at is not None


async def test_get_and_missing(assets, registered):
    first = (await assets.list())[0]
    assert (await assets.get(first.id)).serial_number == "GP7000001"

    with pytest.raises(NotFoundError):
        await assets.get("nope")


async def test_by_sku_is_case_insensitive(assets, registered):
    assert {a.serial_number for a in await assets.by_sku(" ats001")} == {"PB3000001", "PB3000002"}
    assert await assets.by_sku("ATS999") == []


async def test_by_serial(assets, registered):
    found = await assets.by_serial("pb3000002")
    assert found.sku == "ATS001"
    assert await assets.by_serial("PB3999999") is None


async def test_delete_releases_binding_unit(assets, bindings, registered):
    sunmi, _ = registered
    target = await assets.by_serial("PB3000001")

    deleted = await assets.delete(target.id)

    assert deleted.serial_number == "PB3000001"
    assert await assets.by_serial("PB3000001") is None
    assert (await bindings.get(sunmi.id)).unit_count == 1


async def test_binding_deletable_once_assets_removed(assets, bindings, registered):
    _, gpos = registered
    only = await assets.by_serial("GP7000001")

    await assets.delete(only.id)
    await bindings.delete_binding(gpos.id)

    assert await bindings.get_by_sku("ATS002") is None


async def test_delete_without_binding(assets, bindings, store):
    record_id = await store.collection(ASSET_RECORDS).create(asset("PB3000009", sku="ATS404"))

    await assets.delete(record_id)

    assert await assets.list() == []


async def test_delete_missing_asset(assets):
    with pytest.raises(NotFoundError):
        await assets.delete("nope")


async def test_delete_survives_binding_lookup_failure(assets, bindings, store, registered):
    sunmi, _ = registered
    target = await assets.by_serial("PB3000002")
    flaky = store.flaky(SKU_BINDINGS, key="sku")
    bindings.collection = flaky
    flaky.fail_queries.add("ATS001")

    await assets.delete(target.id)

    assert await assets.by_serial("PB3000002") is None
    flaky.fail_queries.clear()
    assert (await bindings.get(sunmi.id)).unit_count == 2

from __future__ import annotations
import pytest
from pydantic import ValidationError

from asset_intake.errors import ActiveSkuPatternConflictError, TemplateError
from asset_intake.models import ItemType, SkuPatternIn, SkuPatternUpdate


async def test_create_and_lookup_active(sku_patterns):
    created = await sku_patterns.create(SkuPatternIn(name="Terminals", custom_code="ats"))

    assert created.custom_code == "ATS"
    assert created.template == "{TYPE}{SEQUENCE}"
    active = await sku_patterns.active_for(ItemType.serialized_asset)
    assert active.id == created.id
    assert await sku_patterns.active_for(ItemType.consumable) is None


async def test_invalid_template_rejected(sku_patterns):
    with pytest.raises(TemplateError) as exc:
        await sku_patterns.create(SkuPatternIn(name="Bad", template="{TYPE}-{SEQUENCE}"))
    assert exc.value.errors
    assert await sku_patterns.list() == []


async def test_second_active_pattern_for_type_rejected(sku_patterns):
    await sku_patterns.create(SkuPatternIn(name="A"))
    with pytest.raises(ActiveSkuPatternConflictError):
        await sku_patterns.create(SkuPatternIn(name="B"))

    # inactive, or for another type, is fine
    spare = await sku_patterns.create(SkuPatternIn(name="B", is_active=False))
    await sku_patterns.create(SkuPatternIn(name="C", item_type=ItemType.consumable))

    with pytest.raises(ActiveSkuPatternConflictError):
        await sku_patterns.set_active(spare.id, True)


async def test_switch_active_pattern(sku_patterns):
    first = await sku_patterns.create(SkuPatternIn(name="A"))
    second = await sku_patterns.create(SkuPatternIn(name="B", is_active=False))

    await sku_patterns.set_active(first.id, False)
    await sku_patterns.set_active(second.id, True)

    assert (await sku_patterns.active_for(ItemType.serialized_asset)).id == second.id


async def test_update_template_validated(sku_patterns):
    pattern = await sku_patterns.create(SkuPatternIn(name="A"))
    with pytest.raises(TemplateError):
        await sku_patterns.update(pattern.id, SkuPatternUpdate(template="SKU"))

    updated = await sku_patterns.update(pattern.id, SkuPatternUpdate(sequential_padding=5))
    assert updated.sequential_padding == 5
    assert updated.template == "{TYPE}{SEQUENCE}"


def test_sku_pattern_input_bounds():
    with pytest.raises(ValidationError):
        SkuPatternIn(name="A", custom_code="ABCDE")
    with pytest.raises(ValidationError):
        SkuPatternIn(name="A", custom_code="A1")
    with pytest.raises(ValidationError):
        SkuPatternIn(name="A", sequential_padding=11)
    with pytest.raises(ValidationError):
        SkuPatternIn(name="A", sequential_start=0)
    assert SkuPatternIn(name="A", custom_code="  ").custom_code is None

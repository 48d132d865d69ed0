from __future__ import annotations
import pytest
from pydantic import ValidationError

from asset_intake.errors import DuplicatePrefixError, NotFoundError
from asset_intake.models import SerialPatternIn, SerialPatternUpdate
from asset_intake.services import CustomOptionsService, PatternRegistry
from asset_intake.services.pattern_registry import normalize_serial

from conftest import pattern_in


@pytest.mark.parametrize("raw,expected", [
    ("pb3123456", "PB3123456"),
    ("  pb3 123\t456 ", "PB3 123 456"),
    ("", ""),
    ("   ", ""),
])
def test_normalize_serial(raw, expected):
    assert normalize_serial(raw) == expected
    assert normalize_serial(normalize_serial(raw)) == normalize_serial(raw)


async def test_detect_known_prefix(registry):
    await registry.add_pattern(pattern_in())

    result = registry.detect("pb3123456")

    assert result.found
    assert result.confidence == 100
    assert result.suggested.type == "SMARTPOS"
    assert result.suggested.model == "SUNMI P2"
    assert result.suggested.acquirer == "PAGSEGURO"
    assert not result.needs_manual_validation
    assert all(registry.detect("PB3123456") == result for _ in range(3))


async def test_detect_unknown_prefix(registry):
    await registry.add_pattern(pattern_in())

    result = registry.detect("XYZ000111")

    assert not result.found
    assert result.confidence == 0
    assert result.needs_manual_validation
    assert result.pattern is None


async def test_detect_empty_serial(registry):
    await registry.add_pattern(pattern_in())
    assert not registry.detect("   ").found


async def test_detect_longest_prefix_wins(registry):
    await registry.add_pattern(pattern_in(prefix="PB3", model="SUNMI P2"))
    await registry.add_pattern(pattern_in(prefix="PB", model="GENERIC"))

    assert registry.detect("PB3123456").suggested.model == "SUNMI P2"
    assert registry.detect("PB9000").suggested.model == "GENERIC"


async def test_detect_ignores_inactive_patterns(registry):
    pattern = await registry.add_pattern(pattern_in())
    await registry.toggle_active(pattern.id)

    assert not registry.detect("PB3123456").found


async def test_manual_validation_flag_carried(registry):
    await registry.add_pattern(pattern_in(needs_manual_validation=True))
    assert registry.detect("PB3000").needs_manual_validation


async def test_duplicate_active_prefix_rejected(registry):
    await registry.add_pattern(pattern_in())
    with pytest.raises(DuplicatePrefixError):
        await registry.add_pattern(pattern_in(prefix="pb3", model="OTHER"))


async def test_inactive_duplicate_prefix_allowed(registry):
    await registry.add_pattern(pattern_in())
    await registry.add_pattern(pattern_in(model="OTHER", active=False))
    assert len(registry.patterns) == 2


async def test_reactivating_duplicate_prefix_rejected(registry):
    await registry.add_pattern(pattern_in())
    spare = await registry.add_pattern(pattern_in(model="OTHER", active=False))
    with pytest.raises(DuplicatePrefixError):
        await registry.toggle_active(spare.id)


def test_pattern_input_is_normalized_and_validated():
    data = pattern_in(prefix=" pb3 ", type="smart  pos", model="sunmi p2", acquirer="pagseguro")
    assert data.prefix == "PB3"
    assert data.type == "SMART POS"
    assert data.sub_category == "EQUIPAMENTOS"

    with pytest.raises(ValidationError):
        pattern_in(prefix="P")
    with pytest.raises(ValidationError):
        pattern_in(prefix="ABCDEFGHIJK")
    with pytest.raises(ValidationError):
        pattern_in(model="SUNMI-P2")
    with pytest.raises(ValidationError):
        SerialPatternIn(prefix="PB3", type="", model="X", acquirer="Y")


async def test_update_pattern_refreshes_cache(registry):
    pattern = await registry.add_pattern(pattern_in())
    await registry.update_pattern(pattern.id, SerialPatternUpdate(model="SUNMI P2 PRO"))

    assert registry.detect("PB3111").suggested.model == "SUNMI P2 PRO"


async def test_delete_pattern(registry):
    pattern = await registry.add_pattern(pattern_in())
    await registry.delete_pattern(pattern.id)

    assert not registry.detect("PB3111").found
    with pytest.raises(NotFoundError):
        await registry.delete_pattern(pattern.id)


async def test_cache_is_shared_through_store(store, registry):
    await registry.add_pattern(pattern_in())

    other = PatternRegistry(store)
    assert not other.loaded
    await other.ensure_loaded()
    assert other.detect("PB3123").found

    await registry.add_pattern(pattern_in(prefix="GPX", model="GPOS 700"))
    assert not other.detect("GPX1").found
    other.invalidate()
    await other.ensure_loaded()
    assert other.detect("GPX1").found


async def test_options_harvested_from_patterns(store, registry):
    await registry.add_pattern(pattern_in())
    await registry.add_pattern(pattern_in(prefix="GPX", model="GPOS 700", acquirer="STONE"))

    options = registry.options
    assert options.models == ["GPOS 700", "SUNMI P2"]
    assert options.acquirers == ["PAGSEGURO", "STONE"]
    assert options.types == ["SMARTPOS"]

    stored = await CustomOptionsService(store).load()
    assert stored == options


async def test_custom_options_add_and_remove(registry):
    await registry.add_pattern(pattern_in())

    options = await registry.add_custom_option("acquirers", "cielo")
    assert options.acquirers == ["CIELO", "PAGSEGURO"]

    # duplicates are ignored
    options = await registry.add_custom_option("acquirers", "CIELO ")
    assert options.acquirers == ["CIELO", "PAGSEGURO"]

    options = await registry.remove_custom_option("acquirers", "CIELO")
    assert options.acquirers == ["PAGSEGURO"]


async def test_options_survive_pattern_delete(registry):
    pattern = await registry.add_pattern(pattern_in())
    await registry.delete_pattern(pattern.id)
    assert registry.options.models == ["SUNMI P2"]

from __future__ import annotations
import pytest

from asset_intake.models import ItemType
from asset_intake.services import code_generator as cg


@pytest.mark.parametrize("n,padding,expected", [
    (1, 3, "ATS001"),
    (4, 3, "ATS004"),
    (12, 2, "ATS12"),
    (1234, 3, "ATS1234"),
    (7, 1, "ATS7"),
])
def test_generate_pads_sequence(n, padding, expected):
    assert cg.generate("{TYPE}{SEQUENCE}", "ATS", n, padding) == expected


def test_generate_recovers_code_and_sequence():
    sku = cg.generate("{TYPE}{SEQUENCE}", "INS", 42, 5)
    assert sku.startswith("INS")
    assert sku[len("INS"):] == "00042"


def test_type_code_prefers_custom_code():
    assert cg.type_code_for(ItemType.serialized_asset) == "ATS"
    assert cg.type_code_for(ItemType.non_serialized_asset) == "ATN"
    assert cg.type_code_for(ItemType.consumable) == "INS"
    assert cg.type_code_for(ItemType.consumable, "pos") == "POS"


def test_validate_template_ok():
    result = cg.validate_template("{TYPE}{SEQUENCE}")
    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []


def test_validate_template_without_sequence_only_warns():
    result = cg.validate_template("{TYPE}")
    assert result.is_valid
    assert result.warnings


@pytest.mark.parametrize("template", ["", "   ", "ATS", "{TYPE}-{SEQUENCE}", "{TYPE}{SEQ}"])
def test_validate_template_errors(template):
    result = cg.validate_template(template)
    assert not result.is_valid
    assert result.errors


def test_preview():
    assert cg.preview("{TYPE}{SEQUENCE}", ItemType.non_serialized_asset, None, 9, 4) == "ATN0009"


@pytest.mark.parametrize("sku,expected", [
    ("ATS012", 12),
    ("INS7", 7),
    ("ATS", None),
    ("", None),
])
def test_trailing_number(sku, expected):
    assert cg.trailing_number(sku) == expected

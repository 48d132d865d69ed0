# asset_intake/services/code_generator.py
"""
SKU code generation from templates.

Templates are built only from the placeholders {TYPE} and {SEQUENCE}:
- {TYPE}      short item-type code (up to 4 letters, e.g. ATS)
- {SEQUENCE}  sequential number, zero padded (3 -> 001)

Literal separators are rejected so every SKU stays a plain code like ATS001.
"""
from __future__ import annotations
import re
from typing import Dict, Optional

from asset_intake.models import ItemType, TemplateValidation

TYPE_PLACEHOLDER = "{TYPE}"
SEQUENCE_PLACEHOLDER = "{SEQUENCE}"

DEFAULT_TEMPLATE = TYPE_PLACEHOLDER + SEQUENCE_PLACEHOLDER

DEFAULT_TYPE_CODES: Dict[ItemType, str] = {
    ItemType.serialized_asset: "ATS",
    ItemType.non_serialized_asset: "ATN",
    ItemType.consumable: "INS",
}

_PLACEHOLDER_RE = re.compile(r"\{(TYPE|SEQUENCE)\}")
_TRAILING_DIGITS_RE = re.compile(r"(\d+)$")


def type_code_for(item_type: ItemType, custom_code: Optional[str] = None) -> str:
    """customCode wins over the item type's default code."""
    if custom_code:
        return custom_code.strip().upper()
    return DEFAULT_TYPE_CODES[ItemType(item_type)]


def generate(template: str, type_code: str, sequential_number: int, padding: int) -> str:
    """
    Substitute placeholders in template.

    Example:
        generate("{TYPE}{SEQUENCE}", "ATS", 4, 3) -> "ATS004"
    """
    sequence = str(int(sequential_number)).zfill(max(1, int(padding)))
    sku = template.replace(TYPE_PLACEHOLDER, type_code)
    return sku.replace(SEQUENCE_PLACEHOLDER, sequence)


def validate_template(template: str) -> TemplateValidation:
    errors = []
    warnings = []

    if not template or not template.strip():
        return TemplateValidation(is_valid=False, errors=["Template cannot be empty"])

    if not _PLACEHOLDER_RE.search(template):
        errors.append("Template must contain at least one placeholder")

    if SEQUENCE_PLACEHOLDER not in template:
        warnings.append("Recommended: include {SEQUENCE} so generated SKUs stay unique")

    leftover = template.replace(TYPE_PLACEHOLDER, "").replace(SEQUENCE_PLACEHOLDER, "")
    if leftover:
        errors.append(
            "Template must not contain separators or other characters; use only {TYPE}{SEQUENCE}"
        )

    return TemplateValidation(is_valid=not errors, errors=errors, warnings=warnings)


def preview(
    template: str,
    item_type: ItemType,
    custom_code: Optional[str] = None,
    sequential_number: int = 1,
    padding: int = 3,
) -> str:
    return generate(template, type_code_for(item_type, custom_code), sequential_number, padding)


def trailing_number(sku: str) -> Optional[int]:
    """Numeric suffix of a SKU (ATS012 -> 12), None if it has none."""
    m = _TRAILING_DIGITS_RE.search(sku or "")
    return int(m.group(1)) if m else None

from __future__ import annotations
import enum
import re
from datetime import datetime
from typing import Optional, List, Dict, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator

_PREFIX_RE = re.compile(r"^[A-Z0-9]{2,10}$")
_LABEL_RE = re.compile(r"^[A-Z0-9 ]+$")
_CODE_RE = re.compile(r"^[A-Z]{1,4}$")

DEFAULT_SUB_CATEGORY = "EQUIPAMENTOS"


class ItemType(str, enum.Enum):
    serialized_asset = "serialized-asset"
    non_serialized_asset = "non-serialized-asset"
    consumable = "consumable"


class EntryStatus(str, enum.Enum):
    validating = "validating"
    valid = "valid"
    invalid = "invalid"
    duplicate = "duplicate"


OptionKind = Literal["types", "models", "acquirers"]


def normalize_prefix(value: str) -> str:
    return re.sub(r"\s+", "", (value or "").strip().upper())


def normalize_label(value: str) -> str:
    return re.sub(r"\s+", " ", (value or "").strip().upper())


def _check_prefix(value: str) -> str:
    value = normalize_prefix(value)
    if not _PREFIX_RE.match(value):
        raise ValueError("prefix must be 2-10 letters or digits")
    return value


def _check_label(value: str) -> str:
    value = normalize_label(value)
    if not value:
        raise ValueError("value is required")
    if not _LABEL_RE.match(value):
        raise ValueError("only letters, digits and spaces are allowed")
    return value


def _check_code(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    if not value:
        return None
    if not _CODE_RE.match(value):
        raise ValueError("custom code must be 1-4 letters A-Z")
    return value


# ============================================================================
# Serial patterns
# ============================================================================

class SerialPatternIn(BaseModel):
    prefix: str
    type: str
    model: str
    acquirer: str
    sub_category: str = DEFAULT_SUB_CATEGORY
    needs_manual_validation: bool = False
    active: bool = True
    updated_by: Optional[str] = None

    check_prefix = field_validator("prefix")(_check_prefix)
    check_labels = field_validator("type", "model", "acquirer")(_check_label)


class SerialPatternUpdate(BaseModel):
    prefix: Optional[str] = None
    type: Optional[str] = None
    model: Optional[str] = None
    acquirer: Optional[str] = None
    sub_category: Optional[str] = None
    needs_manual_validation: Optional[bool] = None
    active: Optional[bool] = None
    updated_by: Optional[str] = None

    @field_validator("prefix")
    @classmethod
    def check_prefix(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_prefix(v)

    @field_validator("type", "model", "acquirer")
    @classmethod
    def check_labels(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_label(v)


class SerialPattern(BaseModel):
    id: str
    prefix: str
    type: str = ""
    model: str = ""
    acquirer: str = ""
    sub_category: str = DEFAULT_SUB_CATEGORY
    needs_manual_validation: bool = False
    active: bool = True
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SuggestedValues(BaseModel):
    type: str
    model: str
    acquirer: str


class DetectionResult(BaseModel):
    found: bool
    pattern: Optional[SerialPattern] = None
    confidence: Literal[0, 100] = 0
    needs_manual_validation: bool = True
    suggested: Optional[SuggestedValues] = None


class CustomOptions(BaseModel):
    types: List[str] = Field(default_factory=list)
    models: List[str] = Field(default_factory=list)
    acquirers: List[str] = Field(default_factory=list)


class OptionIn(BaseModel):
    kind: OptionKind
    value: str


# ============================================================================
# SKU patterns
# ============================================================================

class SkuPatternIn(BaseModel):
    name: str = Field(min_length=1)
    template: str = "{TYPE}{SEQUENCE}"
    item_type: ItemType = ItemType.serialized_asset
    custom_code: Optional[str] = None
    description: Optional[str] = None
    sequential_start: int = Field(default=1, ge=1)
    sequential_padding: int = Field(default=3, ge=1, le=10)
    is_active: bool = True

    check_code = field_validator("custom_code")(_check_code)


class SkuPatternUpdate(BaseModel):
    name: Optional[str] = None
    template: Optional[str] = None
    item_type: Optional[ItemType] = None
    custom_code: Optional[str] = None
    description: Optional[str] = None
    sequential_start: Optional[int] = Field(default=None, ge=1)
    sequential_padding: Optional[int] = Field(default=None, ge=1, le=10)
    is_active: Optional[bool] = None

    check_code = field_validator("custom_code")(_check_code)


class SkuPattern(BaseModel):
    id: str
    name: str
    template: str
    item_type: ItemType
    custom_code: Optional[str] = None
    description: Optional[str] = None
    sequential_start: int = 1
    sequential_padding: int = 3
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TemplateValidation(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class TemplateIn(BaseModel):
    template: str


class PreviewIn(BaseModel):
    template: str
    item_type: ItemType = ItemType.serialized_asset
    custom_code: Optional[str] = None
    sequential_number: int = Field(default=1, ge=0)
    sequential_padding: int = Field(default=3, ge=1, le=10)


# ============================================================================
# SKU / equipment bindings
# ============================================================================

class BindingIn(BaseModel):
    sku: str = Field(min_length=1)
    model: str = Field(min_length=1)
    acquirer: str = Field(min_length=1)
    type: Optional[str] = None


class SkuEquipmentBinding(BaseModel):
    id: str
    sku: str
    model: str
    acquirer: str
    type: Optional[str] = None
    unit_count: int = Field(default=0, ge=0)
    pair_key: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BindingCombination(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str
    acquirer: str
    type: str = ""


# ============================================================================
# Batch intake
# ============================================================================

class ProcessedSerialEntry(BaseModel):
    local_id: str
    serial_number: str
    type: str = ""
    model: str = ""
    acquirer: str = ""
    sku: str = ""
    status: EntryStatus = EntryStatus.validating
    error_message: Optional[str] = None
    detected_prefix: Optional[str] = None


class AssetRecordIn(BaseModel):
    serial_number: str
    sku: str
    type: str
    model: str
    acquirer: str


class AssetRecord(AssetRecordIn):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CommitResult(BaseModel):
    succeeded: int = 0
    failed: int = 0
    errors: Dict[str, str] = Field(default_factory=dict)


class BatchSummary(BaseModel):
    batch_id: str
    total: int
    valid_count: int
    invalid_count: int
    pending_count: int
    entries: List[ProcessedSerialEntry]


class RawSerialsIn(BaseModel):
    text: str


class DetectIn(BaseModel):
    serial: str


class ResolveBindingsIn(BaseModel):
    item_type: ItemType = ItemType.serialized_asset

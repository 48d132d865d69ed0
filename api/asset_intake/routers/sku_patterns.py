# asset_intake/routers/sku_patterns.py
from __future__ import annotations
from typing import Dict, List

from fastapi import APIRouter, Depends

from asset_intake.errors import AssetIntakeError
from asset_intake.models import (
    PreviewIn, SkuPattern, SkuPatternIn, SkuPatternUpdate,
    TemplateIn, TemplateValidation,
)
from asset_intake.routers.deps import get_services, http_error
from asset_intake.services import Services, code_generator

router = APIRouter(prefix="/sku-patterns", tags=["SKU Patterns"])


@router.get("", response_model=List[SkuPattern])
async def list_patterns(services: Services = Depends(get_services)):
    try:
        return await services.sku_patterns.list()
    except AssetIntakeError as e:
        raise http_error(e)


@router.post("", response_model=SkuPattern, status_code=201)
async def create_pattern(data: SkuPatternIn, services: Services = Depends(get_services)):
    try:
        return await services.sku_patterns.create(data)
    except AssetIntakeError as e:
        raise http_error(e)


@router.patch("/{pattern_id}", response_model=SkuPattern)
async def update_pattern(pattern_id: str, data: SkuPatternUpdate, services: Services = Depends(get_services)):
    try:
        return await services.sku_patterns.update(pattern_id, data)
    except AssetIntakeError as e:
        raise http_error(e)


@router.delete("/{pattern_id}", status_code=204)
async def delete_pattern(pattern_id: str, services: Services = Depends(get_services)):
    try:
        await services.sku_patterns.delete(pattern_id)
    except AssetIntakeError as e:
        raise http_error(e)


@router.post("/validate", response_model=TemplateValidation)
def validate_template(data: TemplateIn):
    return code_generator.validate_template(data.template)


@router.post("/preview")
def preview(data: PreviewIn) -> Dict[str, str]:
    sku = code_generator.preview(
        data.template, data.item_type, data.custom_code,
        data.sequential_number, data.sequential_padding,
    )
    return {"sku": sku}

# asset_intake/routers/serial_patterns.py
"""
Serial pattern maintenance: CRUD, detection preview and custom options.
"""
from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends

from asset_intake.errors import AssetIntakeError
from asset_intake.models import (
    CustomOptions, DetectIn, DetectionResult, OptionIn,
    SerialPattern, SerialPatternIn, SerialPatternUpdate,
)
from asset_intake.routers.deps import get_services, http_error
from asset_intake.services import Services

router = APIRouter(prefix="/serial-patterns", tags=["Serial Patterns"])


@router.post("/detect", response_model=DetectionResult)
async def detect(data: DetectIn, services: Services = Depends(get_services)):
    try:
        await services.registry.ensure_loaded()
    except AssetIntakeError as e:
        raise http_error(e)
    return services.registry.detect(data.serial)


# ---------------------------------------------------------
# Custom options (types / models / acquirers)
# must precede the /{pattern_id} routes
# ---------------------------------------------------------

@router.get("/options", response_model=CustomOptions)
async def get_options(services: Services = Depends(get_services)):
    try:
        await services.registry.ensure_loaded()
    except AssetIntakeError as e:
        raise http_error(e)
    return services.registry.options


@router.post("/options", response_model=CustomOptions)
async def add_option(data: OptionIn, services: Services = Depends(get_services)):
    try:
        await services.registry.ensure_loaded()
        return await services.registry.add_custom_option(data.kind, data.value)
    except AssetIntakeError as e:
        raise http_error(e)


@router.delete("/options", response_model=CustomOptions)
async def remove_option(data: OptionIn, services: Services = Depends(get_services)):
    try:
        await services.registry.ensure_loaded()
        return await services.registry.remove_custom_option(data.kind, data.value)
    except AssetIntakeError as e:
        raise http_error(e)


# ---------------------------------------------------------
# CRUD
# ---------------------------------------------------------

@router.get("", response_model=List[SerialPattern])
async def list_patterns(services: Services = Depends(get_services)):
    try:
        await services.registry.refresh()
    except AssetIntakeError as e:
        raise http_error(e)
    return services.registry.patterns


@router.post("", response_model=SerialPattern, status_code=201)
async def create_pattern(data: SerialPatternIn, services: Services = Depends(get_services)):
    try:
        return await services.registry.add_pattern(data)
    except AssetIntakeError as e:
        raise http_error(e)


@router.patch("/{pattern_id}", response_model=SerialPattern)
async def update_pattern(pattern_id: str, data: SerialPatternUpdate, services: Services = Depends(get_services)):
    try:
        return await services.registry.update_pattern(pattern_id, data)
    except AssetIntakeError as e:
        raise http_error(e)


@router.post("/{pattern_id}/toggle", response_model=SerialPattern)
async def toggle_pattern(pattern_id: str, services: Services = Depends(get_services)):
    try:
        return await services.registry.toggle_active(pattern_id)
    except AssetIntakeError as e:
        raise http_error(e)


@router.delete("/{pattern_id}", status_code=204)
async def delete_pattern(pattern_id: str, services: Services = Depends(get_services)):
    try:
        await services.registry.delete_pattern(pattern_id)
    except AssetIntakeError as e:
        raise http_error(e)

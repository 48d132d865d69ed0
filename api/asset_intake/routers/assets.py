# asset_intake/routers/assets.py
"""
Registered assets: listing, lookup by SKU and deletion.
"""
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends

from asset_intake.errors import AssetIntakeError
from asset_intake.models import AssetRecord
from asset_intake.routers.deps import get_services, http_error
from asset_intake.services import Services

router = APIRouter(prefix="/assets", tags=["Assets"])


@router.get("", response_model=List[AssetRecord])
async def list_assets(sku: Optional[str] = None, services: Services = Depends(get_services)):
    try:
        if sku:
            return await services.assets.by_sku(sku)
        return await services.assets.list()
    except AssetIntakeError as e:
        raise http_error(e)


@router.get("/{asset_id}", response_model=AssetRecord)
async def get_asset(asset_id: str, services: Services = Depends(get_services)):
    try:
        return await services.assets.get(asset_id)
    except AssetIntakeError as e:
        raise http_error(e)


@router.delete("/{asset_id}", status_code=204)
async def delete_asset(asset_id: str, services: Services = Depends(get_services)):
    try:
        await services.assets.delete(asset_id)
    except AssetIntakeError as e:
        raise http_error(e)

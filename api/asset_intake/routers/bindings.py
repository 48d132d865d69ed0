# asset_intake/routers/bindings.py
from __future__ import annotations
from typing import Dict, List

from fastapi import APIRouter, Depends, Query

from asset_intake.errors import AssetIntakeError
from asset_intake.models import BindingIn, ItemType, SkuEquipmentBinding
from asset_intake.routers.deps import get_services, http_error
from asset_intake.services import Services

router = APIRouter(prefix="/sku-bindings", tags=["SKU Bindings"])


@router.get("", response_model=List[SkuEquipmentBinding])
async def list_bindings(services: Services = Depends(get_services)):
    try:
        return await services.bindings.list_bindings()
    except AssetIntakeError as e:
        raise http_error(e)


@router.get("/next-sku")
async def next_sku(
    item_type: ItemType = Query(ItemType.serialized_asset),
    services: Services = Depends(get_services),
) -> Dict[str, str]:
    return {"sku": await services.bindings.next_available_sku(item_type)}


@router.post("", response_model=SkuEquipmentBinding, status_code=201)
async def create_binding(data: BindingIn, services: Services = Depends(get_services)):
    try:
        return await services.bindings.create_binding(data.sku, data.model, data.acquirer, data.type)
    except AssetIntakeError as e:
        raise http_error(e)


@router.delete("/{binding_id}", status_code=204)
async def delete_binding(binding_id: str, services: Services = Depends(get_services)):
    try:
        await services.bindings.delete_binding(binding_id)
    except AssetIntakeError as e:
        raise http_error(e)

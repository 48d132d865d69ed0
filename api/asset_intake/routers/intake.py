# asset_intake/routers/intake.py
"""
Batch intake: paste serials, resolve patterns and bindings, commit.

Batches live in memory until discarded or fully committed.
"""
from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from asset_intake.errors import AssetIntakeError
from asset_intake.models import (
    BatchSummary, CommitResult, RawSerialsIn, ResolveBindingsIn,
    SerialPattern, SerialPatternIn, SkuEquipmentBinding,
)
from asset_intake.routers.deps import get_services, http_error
from asset_intake.services import BatchIntakePipeline, Services

router = APIRouter(prefix="/intake/batches", tags=["Intake"])


def _get_batch(batch_id: str, services: Services) -> BatchIntakePipeline:
    batch = services.batches.get(batch_id)
    if batch is None:
        raise HTTPException(404, detail=f"Batch {batch_id} not found")
    return batch


@router.post("", response_model=BatchSummary, status_code=201)
async def create_batch(services: Services = Depends(get_services)):
    return services.new_batch().summary()


@router.get("/{batch_id}", response_model=BatchSummary)
async def get_batch(batch_id: str, wait: bool = False, services: Services = Depends(get_services)):
    batch = _get_batch(batch_id, services)
    if wait:
        await batch.settle()
    return batch.summary()


@router.post("/{batch_id}/serials", response_model=BatchSummary)
async def add_serials(batch_id: str, data: RawSerialsIn, services: Services = Depends(get_services)):
    batch = _get_batch(batch_id, services)
    try:
        await batch.process(data.text)
    except AssetIntakeError as e:
        raise http_error(e)
    await batch.settle()
    return batch.summary()


@router.post("/{batch_id}/revalidate", response_model=BatchSummary)
async def revalidate(batch_id: str, services: Services = Depends(get_services)):
    batch = _get_batch(batch_id, services)
    batch.revalidate()
    await batch.settle()
    return batch.summary()


@router.delete("/{batch_id}/entries/{local_id}", response_model=BatchSummary)
async def remove_entry(batch_id: str, local_id: str, services: Services = Depends(get_services)):
    batch = _get_batch(batch_id, services)
    if not batch.remove_entry(local_id):
        raise HTTPException(404, detail=f"Entry {local_id} not found")
    return batch.summary()


@router.post("/{batch_id}/patterns", response_model=SerialPattern, status_code=201)
async def register_pattern(batch_id: str, data: SerialPatternIn, services: Services = Depends(get_services)):
    batch = _get_batch(batch_id, services)
    try:
        return await batch.register_pattern(data)
    except AssetIntakeError as e:
        raise http_error(e)


@router.post("/{batch_id}/resolve-bindings", response_model=List[SkuEquipmentBinding])
async def resolve_bindings(
    batch_id: str,
    data: ResolveBindingsIn = ResolveBindingsIn(),
    services: Services = Depends(get_services),
):
    batch = _get_batch(batch_id, services)
    try:
        return await batch.resolve_missing_bindings(data.item_type)
    except AssetIntakeError as e:
        raise http_error(e)


@router.post("/{batch_id}/commit", response_model=CommitResult)
async def commit(batch_id: str, services: Services = Depends(get_services)):
    batch = _get_batch(batch_id, services)
    try:
        result = await batch.commit()
    except AssetIntakeError as e:
        raise http_error(e)
    if not batch.entries:
        services.drop_batch(batch_id)
    return result


@router.delete("/{batch_id}", status_code=204)
async def discard_batch(batch_id: str, services: Services = Depends(get_services)):
    _get_batch(batch_id, services)
    services.drop_batch(batch_id)

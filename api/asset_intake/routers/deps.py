# asset_intake/routers/deps.py
from __future__ import annotations
from fastapi import HTTPException, Request

from asset_intake.errors import (
    AssetIntakeError, ActiveSkuPatternConflictError, BindingInUseError,
    BindingMissingError, ClassificationError, DuplicateBindingError,
    DuplicatePrefixError, DuplicateSkuError, NotFoundError,
    PersistenceIOError, TemplateError,
)
from asset_intake.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def http_error(e: AssetIntakeError) -> HTTPException:
    """Map a domain error onto an HTTPException."""
    if isinstance(e, NotFoundError):
        return HTTPException(404, detail=str(e))
    if isinstance(e, TemplateError):
        return HTTPException(400, detail={"message": "Invalid SKU template", "errors": e.errors})
    if isinstance(e, ClassificationError):
        return HTTPException(409, detail={"message": str(e), "prefix": e.prefix, "count": e.count})
    if isinstance(e, BindingMissingError):
        return HTTPException(409, detail={
            "message": str(e),
            "combinations": [c.model_dump() for c in e.combinations],
            "entry_count": e.entry_count,
        })
    if isinstance(e, (DuplicatePrefixError, ActiveSkuPatternConflictError, DuplicateBindingError,
                      DuplicateSkuError, BindingInUseError)):
        return HTTPException(409, detail=str(e))
    if isinstance(e, PersistenceIOError):
        return HTTPException(503, detail=str(e))
    return HTTPException(400, detail=str(e))

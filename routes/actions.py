"""
Action type API routes.

Normalization and display lookups, so that every client compares and
labels action types the same way.
"""

from typing import Union

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import structlog

from exceptions import AppError
from services.action_normalizer import action_type_catalog, display, is_disabled, normalize

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/actions", tags=["Actions"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# REQUEST MODELS
# ===================

class NormalizeRequest(BaseModel):
    action_types: list[Union[int, str]] = Field(default_factory=list, alias="actionTypes")
    disabled_action_types: list[Union[int, str]] = Field(
        default_factory=list,
        alias="disabledActionTypes"
    )

    model_config = {"populate_by_name": True}


# ===================
# ROUTES
# ===================

@router.get("/types")
async def list_action_types():
    """Canonical action types with their display entries."""
    catalog = action_type_catalog()
    return {"data": catalog, "total": len(catalog)}


@router.get("/display")
async def get_display(
    action_type: str = Query(..., alias="actionType", description="Raw action type (code or name)")
):
    """Normalized identity and display entry of one action type."""
    try:
        return {
            "actionType": action_type,
            "normalized": normalize(action_type),
            **display(action_type).to_wire(),
        }
    except Exception as e:
        return handle_error(e)


@router.post("/normalize")
async def normalize_action_types(request: NormalizeRequest):
    """
    Normalize a batch of action types.

    Each entry also says whether it is disabled by the given
    configuration list.
    """
    try:
        data = [
            {
                "actionType": action_type,
                "normalized": normalize(action_type),
                "disabled": is_disabled(action_type, request.disabled_action_types),
                "display": display(action_type).to_wire(),
            }
            for action_type in request.action_types
        ]
        return {"data": data, "total": len(data)}
    except Exception as e:
        return handle_error(e)

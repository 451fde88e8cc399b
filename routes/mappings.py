"""
Header mapping API routes.

Stateless helpers for a mapping editor: validation, previews, display
items, transformation rewrites and the reducer. Nothing is persisted.
"""

from typing import Any, Literal, Optional, Union

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import structlog

from config import settings
from config.ad_attributes import MAPPING_PRESETS, REQUIRED_USER_ATTRIBUTES, TRANSFORMATION_HELP
from exceptions import AppError, NotFoundError, ValidationError
from models.mapping import (
    AttributeDefinition,
    MappingDisplayItem,
    MappingPreview,
    MappingState,
    ValidationResult,
)
from services.mapping_service import (
    ApplyPreset,
    RemoveAttribute,
    RenameAttribute,
    SetSampleRow,
    SetTemplate,
    SetTransformation,
    default_attribute_catalog,
    derive_state,
    extract_columns,
    extract_transformation,
    from_display_items,
    generate_previews,
    reduce_mapping,
    set_transformation,
    to_display_items,
    validate_mapping,
)
from services.template_engine import check_template, render

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/mappings", tags=["Mappings"])


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

class MappingRequest(BaseModel):
    mapping: dict[str, str] = Field(default_factory=dict)
    required_attributes: Optional[list[str]] = Field(
        None,
        alias="requiredAttributes",
        description="Defaults to the required AD user attributes"
    )

    model_config = {"populate_by_name": True}

    def required(self) -> list[str]:
        if self.required_attributes is None:
            return list(REQUIRED_USER_ATTRIBUTES)
        return self.required_attributes


class PreviewRequest(BaseModel):
    mapping: dict[str, str] = Field(default_factory=dict)
    sample_row: dict[str, Any] = Field(default_factory=dict, alias="sampleRow")
    known_attributes: Optional[list[AttributeDefinition]] = Field(None, alias="knownAttributes")

    model_config = {"populate_by_name": True}


class DisplayItemsRequest(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)


class TemplateRequest(BaseModel):
    template: str = ""
    transformation: Optional[str] = None
    row: dict[str, Any] = Field(default_factory=dict)


class MappingEventRequest(BaseModel):
    """One reducer edit, discriminated by `type`."""

    type: Literal[
        "set_template",
        "remove_attribute",
        "rename_attribute",
        "set_transformation",
        "set_sample_row",
        "apply_preset",
    ]
    ad_attribute: Optional[str] = Field(None, alias="adAttribute")
    template: Optional[str] = None
    old_attribute: Optional[str] = Field(None, alias="oldAttribute")
    new_attribute: Optional[str] = Field(None, alias="newAttribute")
    transformation: Optional[str] = None
    sample_row: Optional[dict[str, Any]] = Field(None, alias="sampleRow")
    preset: Optional[str] = None

    model_config = {"populate_by_name": True}

    def to_event(self) -> Union[
        SetTemplate, RemoveAttribute, RenameAttribute,
        SetTransformation, SetSampleRow, ApplyPreset,
    ]:
        """
        Build the reducer event.

        Raises:
            ValidationError: If a field the event needs is missing
        """
        try:
            if self.type == "set_template":
                return SetTemplate(ad_attribute=self.ad_attribute, template=self.template or "")
            if self.type == "remove_attribute":
                return RemoveAttribute(ad_attribute=self.ad_attribute)
            if self.type == "rename_attribute":
                return RenameAttribute(old_attribute=self.old_attribute, new_attribute=self.new_attribute)
            if self.type == "set_transformation":
                return SetTransformation(ad_attribute=self.ad_attribute, transformation=self.transformation)
            if self.type == "set_sample_row":
                return SetSampleRow(sample_row=self.sample_row or {})
            return ApplyPreset(preset=self.preset)
        except ValueError as e:
            raise ValidationError(
                code="MAPPING_EVENT_INVALID",
                message=f"Incomplete {self.type} event",
                details={"errors": str(e)}
            )


class ReduceRequest(BaseModel):
    mapping: dict[str, str] = Field(default_factory=dict)
    sample_row: dict[str, Any] = Field(default_factory=dict, alias="sampleRow")
    required_attributes: list[str] = Field(default_factory=list, alias="requiredAttributes")
    event: MappingEventRequest

    model_config = {"populate_by_name": True}


# ===================
# VALIDATION & PREVIEW
# ===================

@router.post("/validate", response_model=ValidationResult, response_model_by_alias=True)
async def validate(request: MappingRequest):
    """Validate a whole mapping against the required attributes."""
    try:
        return validate_mapping(request.mapping, request.required())
    except Exception as e:
        return handle_error(e)


@router.post("/preview", response_model=list[MappingPreview], response_model_by_alias=True)
async def preview(request: PreviewRequest):
    """Render every mapping entry against one sample row."""
    try:
        known = request.known_attributes
        if known is None:
            known = default_attribute_catalog()
        return generate_previews(
            request.mapping,
            request.sample_row,
            known,
            settings.sam_account_max_length,
        )
    except Exception as e:
        return handle_error(e)


@router.post("/display-items", response_model=list[MappingDisplayItem], response_model_by_alias=True)
async def display_items(request: MappingRequest):
    """Project a mapping into editor rows."""
    try:
        return to_display_items(request.mapping, request.required())
    except Exception as e:
        return handle_error(e)


@router.post("/from-display-items")
async def mapping_from_display_items(request: DisplayItemsRequest):
    """Rebuild a mapping from editor rows, skipping incomplete ones."""
    try:
        return {"mapping": from_display_items(request.items)}
    except Exception as e:
        return handle_error(e)


@router.post("/reduce", response_model=MappingState, response_model_by_alias=True)
async def reduce(request: ReduceRequest):
    """Apply one edit and return the mapping with every derived view."""
    try:
        state = derive_state(
            request.mapping,
            request.sample_row,
            request.required_attributes,
            max_length=settings.sam_account_max_length,
        )
        return reduce_mapping(state, request.event.to_event(), settings.sam_account_max_length)
    except Exception as e:
        return handle_error(e)


# ===================
# TEMPLATES
# ===================

@router.post("/template/inspect")
async def inspect_template(request: TemplateRequest):
    """Columns, first transformation, syntax check and rendered value of a template."""
    try:
        check = check_template(request.template)
        return {
            "template": request.template,
            "columns": extract_columns(request.template),
            "transformation": extract_transformation(request.template),
            "isValid": check.is_valid,
            "error": check.error,
            "rendered": render(request.template, request.row, settings.sam_account_max_length),
        }
    except Exception as e:
        return handle_error(e)


@router.post("/template/transformation")
async def rewrite_transformation(request: TemplateRequest):
    """Set or strip the transformation of the template's first token."""
    try:
        template = set_transformation(request.template, request.transformation)
        return {"template": template, "transformation": extract_transformation(template)}
    except Exception as e:
        return handle_error(e)


# ===================
# CATALOGS
# ===================

@router.get("/presets")
async def list_presets():
    """Ready-made mappings by name."""
    return {"data": MAPPING_PRESETS, "total": len(MAPPING_PRESETS)}


@router.get("/attributes")
async def list_attributes():
    """Known AD user attributes."""
    catalog = default_attribute_catalog()
    return {
        "data": [a.to_wire() for a in catalog],
        "total": len(catalog),
    }


@router.get("/transformations")
async def list_transformations():
    """Transformations accepted after the colon of a token."""
    return {
        "data": [
            {"name": name, "description": description, "example": example, "result": result}
            for name, (description, example, result) in TRANSFORMATION_HELP.items()
        ]
    }


@router.get("/presets/{name}")
async def get_preset(name: str):
    """One preset mapping, with its display items and validation."""
    try:
        preset = MAPPING_PRESETS.get(name)
        if preset is None:
            raise NotFoundError("Mapping preset", name, code="MAPPING_PRESET_NOT_FOUND")
        required = list(REQUIRED_USER_ATTRIBUTES)
        return {
            "name": name,
            "mapping": preset,
            "displayItems": [item.to_wire() for item in to_display_items(preset, required)],
            "validation": validate_mapping(preset, required).to_wire(),
        }
    except Exception as e:
        return handle_error(e)

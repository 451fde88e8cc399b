"""
Header mapping schemas.

A header mapping is an ordered dict of AD attribute name -> template.
Everything else here is derived from it and never edited directly.
"""

from typing import Any, Optional

from pydantic import Field

from models.base import BaseSchema

# AD attribute -> template ("%prenom:lowercase%.%nom:lowercase%")
HeaderMapping = dict[str, str]


class ValidationResult(BaseSchema):
    """Outcome of a validation pass. Errors block, warnings inform."""

    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class TemplateCheck(BaseSchema):
    """Syntax check of a single template."""

    is_valid: bool
    error: Optional[str] = None


class AttributeDefinition(BaseSchema):
    """A known directory attribute, as offered to the mapping editor."""

    name: str = Field(..., min_length=1)
    description: str = ""
    is_required: bool = False


class MappingDisplayItem(BaseSchema):
    """UI projection of one mapping entry."""

    ad_attribute: str
    template: str
    is_template: bool = False
    estimated_columns: list[str] = Field(default_factory=list)
    is_required: Optional[bool] = None
    validation: Optional[ValidationResult] = None


class MappingPreview(BaseSchema):
    """Rendered value of one mapping entry against a sample row."""

    ad_attribute: str
    template: str
    sample_value: str = ""
    transformed_value: str = ""
    is_valid: bool = True
    error: Optional[str] = None
    warnings: Optional[list[str]] = None


class MappingState(BaseSchema):
    """
    Mapping plus every view derived from it.

    Produced only by the mapping reducer so that display items,
    validation and previews always describe the same mapping.
    """

    mapping: HeaderMapping = Field(default_factory=dict)
    sample_row: dict[str, Any] = Field(default_factory=dict)
    required_attributes: list[str] = Field(default_factory=list)
    known_attributes: list[AttributeDefinition] = Field(default_factory=list)
    display_items: list[MappingDisplayItem] = Field(default_factory=list)
    validation: ValidationResult = Field(default_factory=ValidationResult)
    previews: list[MappingPreview] = Field(default_factory=list)

"""
Mapping service — Header mapping views, validation and previews.

Every function is pure and total: malformed input comes back as
`is_valid=False` with readable messages, never as an exception.

Edits go through `reduce_mapping`, which recomputes display items,
validation and previews from the edited mapping in one place.
"""

import re
from typing import Any, Iterable, Mapping, Optional, Union

import structlog
from pydantic import BaseModel

from config.ad_attributes import AD_USER_ATTRIBUTES, MAPPING_PRESETS
from models.mapping import (
    AttributeDefinition,
    HeaderMapping,
    MappingDisplayItem,
    MappingPreview,
    MappingState,
    ValidationResult,
)
from services.template_engine import (
    DEFAULT_SAM_MAX_LENGTH,
    TOKEN_PATTERN,
    check_template,
    render,
)
from utils.text_utils import to_text

logger = structlog.get_logger(__name__)

COLUMN_PATTERN = re.compile(r"%([^%:]+)(?::[^%]*)?%")


# ===================
# TEMPLATE HELPERS
# ===================

def extract_columns(template: Optional[str]) -> list[str]:
    """
    Column names referenced by a template, each once, in first-seen order.

    '%prenom:lowercase%.%nom%@%prenom%' -> ['prenom', 'nom']
    """
    if not template:
        return []
    return list(dict.fromkeys(COLUMN_PATTERN.findall(template)))


def extract_transformation(template: Optional[str]) -> Optional[str]:
    """
    Transformation of the first token only, lowercased.

    '%nom:UPPERCASE%' -> 'uppercase'
    '%nom%.%prenom:lowercase%' -> None
    """
    match = TOKEN_PATTERN.search(template or "")
    if match is None:
        return None
    parts = match.group(1).split(":")
    if len(parts) < 2 or not parts[1]:
        return None
    return parts[1].lower()


def set_transformation(template: str, transformation: Optional[str]) -> str:
    """
    Add, replace or strip the transformation of the first token only.

    ('%nom%.%prenom%', 'uppercase') -> '%nom:uppercase%.%prenom%'
    ('%nom:lowercase%', None) -> '%nom%'
    """
    if not template:
        return template or ""
    match = TOKEN_PATTERN.search(template)
    if match is None:
        return template

    column = match.group(1).split(":")[0]
    token = f"%{column}:{transformation}%" if transformation else f"%{column}%"
    return template[:match.start()] + token + template[match.end():]


# ===================
# DISPLAY ITEMS
# ===================

def to_display_item(
    ad_attribute: str,
    template: str,
    required_attributes: Iterable[str] = (),
) -> MappingDisplayItem:
    """Project one mapping entry for display."""
    required = set(required_attributes)
    check = check_template(template)
    return MappingDisplayItem(
        ad_attribute=ad_attribute,
        template=template,
        is_template="%" in template,
        estimated_columns=extract_columns(template),
        is_required=ad_attribute in required if required else None,
        validation=ValidationResult(
            is_valid=check.is_valid,
            errors=[check.error] if check.error else [],
        ),
    )


def to_display_items(
    mapping: Optional[HeaderMapping],
    required_attributes: Iterable[str] = (),
) -> list[MappingDisplayItem]:
    """Project a whole mapping, preserving its order."""
    required = list(required_attributes)
    return [
        to_display_item(attribute, template, required)
        for attribute, template in (mapping or {}).items()
    ]


def from_display_items(
    items: Iterable[Union[MappingDisplayItem, Mapping[str, Any]]],
) -> HeaderMapping:
    """
    Rebuild a mapping from display items.

    Items with an empty attribute or an empty template are skipped, so a
    half-filled editor row does not survive the round-trip.
    """
    mapping: HeaderMapping = {}
    for item in items:
        if isinstance(item, BaseModel):
            attribute, template = item.ad_attribute, item.template
        else:
            attribute = item.get("ad_attribute", item.get("adAttribute"))
            template = item.get("template")
        if attribute and template:
            mapping[attribute] = template
    return mapping


# ===================
# VALIDATION
# ===================

def validate_mapping(
    mapping: Optional[HeaderMapping],
    required_attributes: Iterable[str] = (),
) -> ValidationResult:
    """
    Validate a whole mapping.

    Errors:
    - a required attribute is missing or maps to a blank template
    - a template fails the syntax check

    The warnings channel is left to preview validation.
    """
    mapping = mapping or {}
    errors: list[str] = []

    for attribute in required_attributes:
        template = mapping.get(attribute)
        if not template or not template.strip():
            errors.append(f"Required attribute '{attribute}' is missing or empty")

    for attribute, template in mapping.items():
        if not attribute:
            errors.append("Mapping contains an empty attribute name")
            continue
        if template and "%" in template:
            check = check_template(template)
            if not check.is_valid:
                errors.append(f"Invalid template for '{attribute}': {check.error}")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=[])


# ===================
# PREVIEWS
# ===================

def _as_definitions(
    known_attributes: Iterable[Union[AttributeDefinition, Mapping[str, Any], str]],
) -> dict[str, AttributeDefinition]:
    definitions: dict[str, AttributeDefinition] = {}
    for attribute in known_attributes:
        if isinstance(attribute, AttributeDefinition):
            definition = attribute
        elif isinstance(attribute, str):
            definition = AttributeDefinition(name=attribute)
        else:
            definition = AttributeDefinition.model_validate(attribute)
        definitions[definition.name] = definition
    return definitions


def generate_preview(
    ad_attribute: str,
    template: str,
    sample_row: Mapping[str, Any],
    definitions: Mapping[str, AttributeDefinition],
    max_length: int = DEFAULT_SAM_MAX_LENGTH,
) -> MappingPreview:
    """Render and check one mapping entry against a sample row."""
    transformed = render(template, sample_row, max_length)
    errors: list[str] = []
    warnings: list[str] = []

    check = check_template(template)
    if not check.is_valid:
        errors.append(check.error or "Invalid template syntax")

    definition = definitions.get(ad_attribute)
    if definition is None:
        warnings.append(f"AD attribute '{ad_attribute}' is not a known user attribute")
    elif definition.is_required and not transformed:
        errors.append(f"Required attribute '{ad_attribute}' cannot be empty")

    columns = extract_columns(template)
    sample_value = to_text(sample_row.get(columns[0])) if columns else ""

    return MappingPreview(
        ad_attribute=ad_attribute,
        template=template,
        sample_value=sample_value,
        transformed_value=transformed,
        is_valid=not errors,
        error="; ".join(errors) if errors else None,
        warnings=warnings or None,
    )


def generate_previews(
    mapping: Optional[HeaderMapping],
    sample_row: Optional[Mapping[str, Any]],
    known_attributes: Iterable[Union[AttributeDefinition, Mapping[str, Any], str]] = (),
    max_length: int = DEFAULT_SAM_MAX_LENGTH,
) -> list[MappingPreview]:
    """
    Preview every mapping entry against one sample row.

    `sample_value` is the raw value of the template's first column only,
    a display hint rather than the full input set.
    """
    definitions = _as_definitions(known_attributes)
    sample_row = sample_row or {}
    return [
        generate_preview(attribute, template, sample_row, definitions, max_length)
        for attribute, template in (mapping or {}).items()
    ]


def default_attribute_catalog() -> list[AttributeDefinition]:
    """Known AD user attributes."""
    return [
        AttributeDefinition(name=name, description=description, is_required=required)
        for name, description, required in AD_USER_ATTRIBUTES
    ]


# ===================
# REDUCER
# ===================

class MappingEvent(BaseModel):
    """Base of every mapping edit."""


class SetTemplate(MappingEvent):
    ad_attribute: str
    template: str


class RemoveAttribute(MappingEvent):
    ad_attribute: str


class RenameAttribute(MappingEvent):
    old_attribute: str
    new_attribute: str


class SetTransformation(MappingEvent):
    ad_attribute: str
    transformation: Optional[str] = None


class SetSampleRow(MappingEvent):
    sample_row: dict[str, Any]


class ApplyPreset(MappingEvent):
    preset: str


def derive_state(
    mapping: HeaderMapping,
    sample_row: Optional[Mapping[str, Any]] = None,
    required_attributes: Iterable[str] = (),
    known_attributes: Optional[Iterable[AttributeDefinition]] = None,
    max_length: int = DEFAULT_SAM_MAX_LENGTH,
) -> MappingState:
    """Build a MappingState with every derived view computed from `mapping`."""
    required = list(required_attributes)
    known = list(known_attributes) if known_attributes is not None else default_attribute_catalog()
    row = dict(sample_row or {})
    return MappingState(
        mapping=dict(mapping),
        sample_row=row,
        required_attributes=required,
        known_attributes=known,
        display_items=to_display_items(mapping, required),
        validation=validate_mapping(mapping, required),
        previews=generate_previews(mapping, row, known, max_length),
    )


def reduce_mapping(
    state: MappingState,
    event: MappingEvent,
    max_length: int = DEFAULT_SAM_MAX_LENGTH,
) -> MappingState:
    """
    Apply one edit and recompute every derived view.

    Unknown presets, renames onto an existing attribute and edits of
    missing attributes leave the mapping as it was.
    """
    mapping = dict(state.mapping)
    sample_row = state.sample_row

    if isinstance(event, SetTemplate):
        if event.ad_attribute:
            mapping[event.ad_attribute] = event.template
    elif isinstance(event, RemoveAttribute):
        mapping.pop(event.ad_attribute, None)
    elif isinstance(event, RenameAttribute):
        if (
            event.new_attribute
            and event.old_attribute in mapping
            and event.new_attribute not in mapping
        ):
            # Rebuild to keep the renamed entry at its position
            mapping = {
                (event.new_attribute if key == event.old_attribute else key): value
                for key, value in mapping.items()
            }
    elif isinstance(event, SetTransformation):
        if event.ad_attribute in mapping:
            mapping[event.ad_attribute] = set_transformation(
                mapping[event.ad_attribute], event.transformation
            )
    elif isinstance(event, SetSampleRow):
        sample_row = event.sample_row
    elif isinstance(event, ApplyPreset):
        preset = MAPPING_PRESETS.get(event.preset)
        if preset is None:
            logger.warning("unknown_mapping_preset", preset=event.preset)
        else:
            mapping = dict(preset)

    return derive_state(
        mapping,
        sample_row,
        state.required_attributes,
        state.known_attributes,
        max_length,
    )

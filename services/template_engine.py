"""
Template engine — Resolve header-mapping templates against a data row.

Token language:
    %column%                 value of `column`
    %column:transformation%  value of `column`, transformed

Rendering never raises: missing columns resolve to "" and unknown
transformations are ignored. `check_template` is the explicit syntax
check that reports what rendering silently tolerates.
"""

import re
from typing import Any, Callable, Mapping, Optional

from config.ad_attributes import VALID_TRANSFORMATIONS
from models.mapping import TemplateCheck
from utils.text_utils import clean_name_part, to_text

# Default sAMAccountName length (pre-Windows 2000 logon name limit)
DEFAULT_SAM_MAX_LENGTH = 20

SAM_ACCOUNT_COLUMN = "samaccountname"
FIRST_NAME_COLUMNS = ("prenom", "Prenom")
LAST_NAME_COLUMNS = ("nom", "Nom")

TOKEN_PATTERN = re.compile(r"%([^%]+)%")

TRANSFORMATIONS: dict[str, Callable[[str], str]] = {
    "uppercase": str.upper,
    "lowercase": str.lower,
    "trim": str.strip,
    "capitalize": lambda v: v[:1].upper() + v[1:].lower(),
    "first": lambda v: v[:1],
}


def generate_sam_account_name(
    first_name: Optional[str],
    last_name: Optional[str],
    max_length: int = DEFAULT_SAM_MAX_LENGTH,
) -> str:
    """
    Build a logon name from first and last name.

    The cleaned first name is kept whole, then completed with as much of
    the cleaned last name as fits in `max_length`. A first name that alone
    fills the limit is truncated and the last name is dropped.

    'Marie-Ève', "O'Brien" -> 'marieeveobrien'
    'Maximilien-Alexandre', 'Dupont' (max 10) -> 'maximilien'
    """
    first = clean_name_part(first_name)
    last = clean_name_part(last_name)

    room = max_length - len(first)
    if room > 0:
        return first + last[:room]
    return first[:max_length]


def _first_present(row: Mapping[str, Any], columns: tuple[str, ...]) -> str:
    for column in columns:
        value = to_text(row.get(column))
        if value:
            return value
    return ""


def apply_transformation(value: str, transformation: Optional[str]) -> str:
    """
    Apply a named transformation.

    Unknown or empty names return the value unchanged.
    """
    if not transformation:
        return value
    transform = TRANSFORMATIONS.get(transformation.strip().lower())
    if transform is None:
        return value
    return transform(value)


def resolve_token(
    token: str,
    row: Mapping[str, Any],
    max_length: int = DEFAULT_SAM_MAX_LENGTH,
) -> str:
    """Resolve the inside of one `%...%` token against a row."""
    parts = token.split(":")
    column = parts[0]
    transformation = parts[1] if len(parts) > 1 else None

    value = to_text(row.get(column))

    # An empty sAMAccountName column is synthesized from the name columns
    if not value and column.lower() == SAM_ACCOUNT_COLUMN:
        value = generate_sam_account_name(
            _first_present(row, FIRST_NAME_COLUMNS),
            _first_present(row, LAST_NAME_COLUMNS),
            max_length,
        )

    return apply_transformation(value, transformation)


def render(
    template: Optional[str],
    row: Optional[Mapping[str, Any]],
    max_length: int = DEFAULT_SAM_MAX_LENGTH,
) -> str:
    """
    Substitute every token of `template` with values from `row`.

    Args:
        template: Template string, e.g. "%prenom:lowercase%.%nom:uppercase%"
        row: Column name -> cell value (None values count as "")
        max_length: Limit for synthesized sAMAccountName values

    Returns:
        The fully substituted string
    """
    if not template:
        return ""
    row = row or {}
    return TOKEN_PATTERN.sub(
        lambda match: resolve_token(match.group(1), row, max_length),
        template,
    )


def extract_tokens(template: Optional[str]) -> list[str]:
    """Inside of every `%...%` token, in order, repeats included."""
    if not template:
        return []
    return TOKEN_PATTERN.findall(template)


def check_template(template: Optional[str]) -> TemplateCheck:
    """
    Validate template syntax.

    Checks:
    - `%` delimiters are paired
    - at most one `:` per token
    - transformation names are known
    """
    if not template:
        return TemplateCheck(is_valid=True)

    if template.count("%") % 2 != 0:
        return TemplateCheck(
            is_valid=False,
            error="Odd number of % characters in template",
        )

    for token in extract_tokens(template):
        parts = token.split(":")
        if len(parts) > 2:
            return TemplateCheck(
                is_valid=False,
                error=f"Invalid transformation syntax: {token}",
            )
        if len(parts) == 2:
            transformation = parts[1].strip().lower()
            if transformation not in VALID_TRANSFORMATIONS:
                return TemplateCheck(
                    is_valid=False,
                    error=f"Unknown transformation: {parts[1]}",
                )

    return TemplateCheck(is_valid=True)

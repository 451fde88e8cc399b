"""
Action normalizer — Single source of truth for action type identity.

The backend reports action types as canonical strings (`CREATE_USER`) or
as legacy numeric codes (`1`, `"1"`, `"01"`). Filtering, disabling and
counting compare types through `normalize` only.

Legacy codes and canonical strings are NOT folded into each other: the
code table is not guaranteed exhaustive, so `"1"` and `"CREATE_USER"`
stay distinct identities that merely share a display entry.
"""

import re
from enum import Enum
from typing import Iterable, Optional, Union

import structlog

from models.actions import ActionDisplay, ActionType
from utils.text_utils import humanize

logger = structlog.get_logger(__name__)

NUMERIC_PREFIX = re.compile(r"^\s*(\d+)")

DEFAULT_ICON = "⚙️"
DEFAULT_COLOR = "default"

_CREATE_USER = ActionDisplay(name="Create user", icon="👤", color="green")
_UPDATE_USER = ActionDisplay(name="Update user", icon="✏️", color="blue")
_DELETE_USER = ActionDisplay(name="Delete user", icon="🗑️", color="red")
_MOVE_USER = ActionDisplay(name="Move user", icon="📁", color="orange")
_CREATE_OU = ActionDisplay(name="Create OU", icon="📂", color="purple")
_UPDATE_OU = ActionDisplay(name="Update OU", icon="📝", color="orange")
_DELETE_OU = ActionDisplay(name="Delete OU", icon="🗂️", color="volcano")
_CREATE_GROUP = ActionDisplay(name="Create group", icon="👥", color="cyan")
_DELETE_GROUP = ActionDisplay(name="Delete group", icon="🗑️", color="red")
_CREATE_STUDENT_FOLDER = ActionDisplay(name="Create student folder", icon="📁", color="geekblue")
_CREATE_CLASS_FOLDER = ActionDisplay(name="Create class group folder", icon="📂", color="lime")
_CREATE_TEAM = ActionDisplay(name="Create team", icon="🏆", color="gold")
_ADD_USER_TO_GROUP = ActionDisplay(name="Add user to group", icon="👤➕", color="cyan")
_CREATE_SECURITY_GROUP = ActionDisplay(name="Create security group", icon="🛡️", color="purple")
_CREATE_DISTRIBUTION_GROUP = ActionDisplay(name="Create distribution group", icon="📧", color="blue")
_ERROR = ActionDisplay(name="Error", icon="❌", color="red")

# Legacy numeric codes as emitted by older backends
LEGACY_CODE_DISPLAY: dict[str, ActionDisplay] = {
    "0": _CREATE_GROUP,
    "1": _CREATE_USER,
    "2": _UPDATE_USER,
    "3": _DELETE_USER,
    "4": _MOVE_USER,
    "5": _CREATE_OU,
    "6": _UPDATE_OU,
    "7": _DELETE_OU,
    "8": _CREATE_STUDENT_FOLDER,
    "9": _CREATE_TEAM,
    "10": _CREATE_CLASS_FOLDER,
    "11": _ADD_USER_TO_GROUP,
    "12": _ERROR,
    "13": _CREATE_DISTRIBUTION_GROUP,
    # Extended codes seen in composite payloads
    "41": _CREATE_OU,
    "42": _CREATE_OU,
    "99": _ERROR,
}

ACTION_TYPE_DISPLAY: dict[str, ActionDisplay] = {
    ActionType.CREATE_USER.value: _CREATE_USER,
    ActionType.UPDATE_USER.value: _UPDATE_USER,
    ActionType.DELETE_USER.value: _DELETE_USER,
    ActionType.MOVE_USER.value: _MOVE_USER,
    ActionType.CREATE_OU.value: _CREATE_OU,
    ActionType.UPDATE_OU.value: _UPDATE_OU,
    ActionType.DELETE_OU.value: _DELETE_OU,
    ActionType.CREATE_GROUP.value: _CREATE_GROUP,
    ActionType.DELETE_GROUP.value: _DELETE_GROUP,
    ActionType.CREATE_STUDENT_FOLDER.value: _CREATE_STUDENT_FOLDER,
    ActionType.CREATE_CLASS_GROUP_FOLDER.value: _CREATE_CLASS_FOLDER,
    ActionType.CREATE_TEAM.value: _CREATE_TEAM,
    ActionType.ADD_USER_TO_GROUP.value: _ADD_USER_TO_GROUP,
    ActionType.CREATE_SECURITY_GROUP.value: _CREATE_SECURITY_GROUP,
    ActionType.CREATE_DISTRIBUTION_GROUP.value: _CREATE_DISTRIBUTION_GROUP,
    ActionType.ERROR.value: _ERROR,
}

# Spellings some payloads use for the same display entry
DISPLAY_SYNONYMS = {
    "CREATE_ORGANIZATIONAL_UNIT": ActionType.CREATE_OU.value,
    "UPDATE_ORGANIZATIONAL_UNIT": ActionType.UPDATE_OU.value,
    "DELETE_ORGANIZATIONAL_UNIT": ActionType.DELETE_OU.value,
}

# Lookup key without separators: "CREATEUSER" -> "CREATE_USER"
_COMPACT_KEYS = {
    key.replace("_", ""): key
    for key in [*ACTION_TYPE_DISPLAY, *DISPLAY_SYNONYMS]
}


def normalize(action_type: Union[ActionType, str, int, None]) -> str:
    """
    Canonical identity of an action type.

    - numbers and numeric-leading strings -> decimal string of the number
      (1, "1", "01", "1 - CreateUser" -> "1")
    - enum members -> their value
    - other strings -> unchanged (no case folding)
    """
    if action_type is None:
        return ""
    if isinstance(action_type, bool):
        return str(int(action_type))
    if isinstance(action_type, int):
        return str(action_type)
    if isinstance(action_type, float) and action_type.is_integer():
        return str(int(action_type))
    if isinstance(action_type, Enum):
        action_type = action_type.value

    text = str(action_type)
    match = NUMERIC_PREFIX.match(text)
    if match:
        return str(int(match.group(1)))
    return text


def is_legacy_code(action_type: Union[ActionType, str, int, None]) -> bool:
    """True when the type normalizes to a numeric code."""
    return normalize(action_type).isdigit()


def same_action_type(
    left: Union[ActionType, str, int, None],
    right: Union[ActionType, str, int, None],
) -> bool:
    """Compare two action types through their normalized identity."""
    return normalize(left) == normalize(right)


def normalize_set(action_types: Optional[Iterable[Union[ActionType, str, int]]]) -> set[str]:
    """Normalized identities of a collection of types."""
    return {normalize(t) for t in (action_types or [])}


def is_disabled(
    action_type: Union[ActionType, str, int, None],
    disabled_types: Optional[Iterable[Union[ActionType, str, int]]],
) -> bool:
    """True when `action_type` is one of the configuration-disabled types."""
    return normalize(action_type) in normalize_set(disabled_types)


def display(action_type: Union[ActionType, str, int, None]) -> ActionDisplay:
    """
    Name, icon and color of an action type.

    Unknown numeric codes get a generic `Action <n>` entry; unknown
    strings get their humanized form. Neither raises.
    """
    key = normalize(action_type)

    if key.isdigit():
        entry = LEGACY_CODE_DISPLAY.get(key)
        if entry is not None:
            return entry
        return ActionDisplay(name=f"Action {key}", icon=DEFAULT_ICON, color=DEFAULT_COLOR)

    lookup = re.sub(r"\s+", "_", key.strip()).upper()
    lookup = DISPLAY_SYNONYMS.get(lookup, lookup)
    if lookup not in ACTION_TYPE_DISPLAY:
        lookup = _COMPACT_KEYS.get(lookup.replace("_", ""), lookup)
        lookup = DISPLAY_SYNONYMS.get(lookup, lookup)

    entry = ACTION_TYPE_DISPLAY.get(lookup)
    if entry is not None:
        return entry

    logger.warning("unknown_action_type", action_type=key)
    return ActionDisplay(
        name=humanize(key) or "Unknown action",
        icon=DEFAULT_ICON,
        color=DEFAULT_COLOR,
    )


def action_type_catalog() -> list[dict]:
    """Every canonical type with its display entry, for filter pickers."""
    return [
        {"actionType": value, **ACTION_TYPE_DISPLAY[value].model_dump()}
        for value in (member.value for member in ActionType)
    ]

"""
Action schemas.

An action is one directory mutation detected by the backend analysis.
The backend reports its type either as a canonical string (`CREATE_USER`)
or as a legacy numeric code (`1`, `"1"`). Compare them only through
`services.action_normalizer`.
"""

from enum import Enum
from typing import Any, Union

from pydantic import Field, field_validator

from models.base import BaseSchema


class ActionType(str, Enum):
    """Canonical action type values."""
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    MOVE_USER = "MOVE_USER"
    CREATE_OU = "CREATE_OU"
    UPDATE_OU = "UPDATE_OU"
    DELETE_OU = "DELETE_OU"
    CREATE_GROUP = "CREATE_GROUP"
    DELETE_GROUP = "DELETE_GROUP"
    CREATE_STUDENT_FOLDER = "CREATE_STUDENT_FOLDER"
    CREATE_CLASS_GROUP_FOLDER = "CREATE_CLASS_GROUP_FOLDER"
    CREATE_TEAM = "CREATE_TEAM"
    ADD_USER_TO_GROUP = "ADD_USER_TO_GROUP"
    CREATE_SECURITY_GROUP = "CREATE_SECURITY_GROUP"
    CREATE_DISTRIBUTION_GROUP = "CREATE_DISTRIBUTION_GROUP"
    ERROR = "ERROR"


# Anything the backend may send as an action type
ActionTypeLike = Union[int, str]


class ActionDisplay(BaseSchema):
    """Label, icon and color of an action type."""

    name: str
    icon: str
    color: str


class ImportAction(BaseSchema):
    """One action as emitted by the backend analysis."""

    action_type: ActionTypeLike
    object_name: str = ""
    path: str = ""
    message: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("action_type", mode="before")
    @classmethod
    def unwrap_enum(cls, v: Any) -> Any:
        if isinstance(v, Enum):
            return v.value
        return v

    @field_validator("object_name", "path", "message", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("attributes", mode="before")
    @classmethod
    def none_to_dict(cls, v: Any) -> Any:
        return {} if v is None else v


class ActionItem(ImportAction):
    """An analyzed action as reviewed by the operator."""

    id: str
    selected: bool = True

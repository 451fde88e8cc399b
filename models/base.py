"""
Base schemas for all models.

The directory backend speaks camelCase (`actionType`, `createCount`);
Python code uses snake_case. Every schema accepts both and serializes
with the camelCase aliases.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - camelCase aliases generated from field names
        - Population by field name or alias
        - Validate on attribute assignment
        - Allow ORM/attribute objects (from_attributes)

    Strings are NOT stripped: templates and rendered values are compared
    verbatim, whitespace included.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        validate_assignment=True,
    )

    def to_wire(self) -> dict:
        """Dump with camelCase keys, JSON-safe values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

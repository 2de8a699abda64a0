"""Shared model helpers."""

import math
from typing import Any, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from tpdesk.errors import InvalidInputError

# Accepted on input for enum filters, never stored.
ALL = "all"

FormT = TypeVar("FormT", bound=BaseModel)
FilterT = TypeVar("FilterT", bound="FilterModel")


class WireModel(BaseModel):
    """Base model for payloads exchanged with the engagement API.

    Attributes are snake_case in Python and camelCase on the wire. Both
    spellings are accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self, exclude_unset: bool = False) -> dict:
        """Serialize to a JSON-ready dict keyed by wire names."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=exclude_unset)


class FilterModel(WireModel):
    """Immutable query predicate; ``None`` means "no constraint"."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def build(cls: type[FilterT], **fields: Any) -> FilterT:
        """Build filters, turning bad values into InvalidInputError."""
        try:
            return cls.model_validate(fields)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid filters: {e.errors()[0]['msg']}") from e

    def merged(self: FilterT, **partial: Any) -> FilterT:
        """
        Shallow-merge a partial update.

        Args:
            **partial: Fields to change; an explicit ``None`` clears the field

        Returns:
            New filters of the same type

        Raises:
            InvalidInputError: Unknown field or invalid value
        """
        unknown = sorted(set(partial) - set(type(self).model_fields))
        if unknown:
            raise InvalidInputError(f"Unknown filter field(s): {', '.join(unknown)}")

        data = self.model_dump()
        data.update(partial)
        return type(self).build(**data)

    def changed_fields(self, other: "FilterModel") -> set[str]:
        """Names of the fields whose values differ from ``other``."""
        return {
            name for name in type(self).model_fields if getattr(self, name) != getattr(other, name)
        }


class ValidationResult(BaseModel):
    """Result of client-side form validation."""

    valid: bool
    errors: list[str] = Field(default_factory=list)


def coerce_form(model: type[FormT], data: Union[FormT, dict[str, Any]]) -> FormT:
    """
    Accept a typed form or a plain dict.

    Raises:
        InvalidInputError: Unknown keys or invalid values
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "input"
        raise InvalidInputError(f"Invalid {field}: {first['msg']}") from e


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (12.5 -> 13)."""
    return int(math.floor(value + 0.5))

"""
Shared base for validated, immutable value objects.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from ..core.errors import InvalidArgumentError


def describe_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic ValidationError into a single message."""
    parts = []
    for err in error.errors():
        location = ".".join(str(loc) for loc in err.get("loc", ())) or "value"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


class ValueObject(BaseModel):
    """
    Immutable pydantic model that reports invalid input as InvalidArgumentError.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise InvalidArgumentError(
                f"Invalid {self.__class__.__name__}: {describe_validation_error(e)}"
            ) from e

    def replace(self, **changes: Any):
        """Return a new, fully re-validated instance with the given changes."""
        data = self.model_dump()
        data.update(changes)
        return type(self)(**data)

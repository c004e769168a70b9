"""Shared request-schema bases."""

from typing import Any, ClassVar

from pydantic import BaseModel, ValidationInfo, field_validator


class PartialUpdate(BaseModel):
    """Base for PATCH/PUT bodies where omitted fields are left unchanged.

    An explicit ``null`` is only accepted for the columns listed in
    ``nullable_fields``; everywhere else it is a 422 rather than a write of
    NULL into a required column.
    """

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @field_validator("*", mode="before")
    @classmethod
    def _reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None and info.field_name not in cls.nullable_fields:
            raise ValueError(f"{info.field_name} may be omitted but cannot be null")
        return value

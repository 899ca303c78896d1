"""Base model for content server payloads.

Every API model inherits from :class:`ContentBaseModel` which provides:

* ``alias_generator=to_camel`` with ``populate_by_name`` so both the
  snake_case (``parent_id``) and camelCase (``parentId``) payload
  spellings served by different backends validate.
* A ``model_validator(mode="before")`` that drops blank values
  (``None``, ``""``) so the field default is used instead.
* Frozen instances, safe to share between the cache and store state.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class ContentBaseModel(BaseModel):
    """Base for content server API models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {key: value for key, value in values.items() if value is not None and value != ""}

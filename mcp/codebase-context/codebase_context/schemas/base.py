"""Strict Pydantic base model."""

from __future__ import annotations

import pydantic

__all__ = [
    'StrictModel',
]


class StrictModel(pydantic.BaseModel):
    """Immutable model that rejects unknown fields and implicit coercion."""

    model_config = pydantic.ConfigDict(
        extra='forbid',
        strict=True,
        frozen=True,
    )

"""Shared base model definitions for LifeWrap domain objects."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


class LifeWrapBaseModel(BaseModel):
    """Base model configured for LifeWrap-wide defaults."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


__all__ = ["LifeWrapBaseModel", "utcnow"]

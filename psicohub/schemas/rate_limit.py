"""Pydantic schemas for rate limit introspection responses."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class RateLimitPolicy(BaseModel):
    """A named quota applied to one kind of operation."""

    name: str = Field(..., description="Preset name (e.g., 'auth', 'password_reset').")
    limit: int = Field(..., description="Maximum attempts per window.", ge=1)
    window_in_seconds: int = Field(..., description="Fixed window size in seconds.", ge=1)


class RateLimitPoliciesResponse(BaseModel):
    """Presets currently enforced by the API."""

    backend: str = Field(
        ..., description="Counter store in use: 'redis' (shared) or 'memory' (per process)."
    )
    policies: List[RateLimitPolicy] = Field(default_factory=list)

"""Schemas for background job runs."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class DailyLearnRunOut(BaseModel):
    """Outcome of one daily learning run."""

    success: bool
    sources_processed: int = Field(..., ge=0)
    new_knowledge: int = Field(..., ge=0)
    unchanged: int = Field(..., ge=0)
    errors: list[str] = Field(default_factory=list)
    timestamp: datetime


class JobStatusOut(BaseModel):
    """Last recorded state of a job."""

    job_name: str
    last_run_at: datetime | None = None
    summary: dict[str, Any] = Field(default_factory=dict)

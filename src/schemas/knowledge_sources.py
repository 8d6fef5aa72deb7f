"""Schemas for knowledge sources polled by the daily learning job."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class KnowledgeSourceCreate(BaseModel):
    name: Annotated[
        str, Field(min_length=1, max_length=100, description="Unique source name")
    ]
    url: Annotated[str, Field(min_length=1, description="URL fetched each run")]
    enabled: Annotated[bool, Field(description="Whether the job fetches it")] = True
    fetch_interval_hours: Annotated[
        int, Field(ge=1, le=24 * 30, description="Intended refresh interval")
    ] = 24

    model_config = ConfigDict(extra="forbid")


class KnowledgeSourceOut(BaseModel):
    id: int
    name: str
    url: str
    enabled: bool
    last_fetched_at: datetime | None = None
    fetch_interval_hours: int

    model_config = ConfigDict(from_attributes=True)

"""Pydantic schemas for the OKR module."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Objective
# ---------------------------------------------------------------------------


class ObjectiveCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    team_id: uuid.UUID | None = None


class ObjectiveResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: str | None
    owner_id: uuid.UUID
    team_id: uuid.UUID | None
    status: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Key result / check-in
# ---------------------------------------------------------------------------


class KeyResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    objective_id: uuid.UUID
    title: str
    current_value: Decimal
    target_value: Decimal
    unit: str


class CheckInCreate(BaseModel):
    value: Decimal
    notes: str | None = None
    checked_in_on: date | None = None


class CheckInResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    key_result_id: uuid.UUID
    value: Decimal
    notes: str | None
    checked_in_on: date | None
    created_by: uuid.UUID | None

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class offering request and response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from classreg.models.common import ClassStatus


class ClassCreateRequest(BaseModel):
    """Request to create a draft class offering.

    Day and block are validated by the schedule validator rather than by
    pydantic so that a missing or illegal slot produces the specific
    MissingField/InvalidDay/InvalidBlock error.
    """

    name: str = Field(..., min_length=1, max_length=200)
    teacher_id: str
    location: str | None = Field(None, max_length=100)
    day: str | None = None
    block: str | None = None
    capacity: int = Field(..., ge=1)
    price: int = Field(0, ge=0, description="Price in cents; 0 means free")


class ClassUpdateRequest(BaseModel):
    """Partial update of a class offering."""

    name: str | None = Field(None, min_length=1, max_length=200)
    teacher_id: str | None = None
    location: str | None = Field(None, max_length=100)
    day: str | None = None
    block: str | None = None
    capacity: int | None = Field(None, ge=1)
    price: int | None = Field(None, ge=0)


class ClassResponse(BaseModel):
    """Class offering details."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    teacher_id: str
    location: str | None = None
    day: str
    block: str
    capacity: int
    price: int
    status: ClassStatus
    confirmed_count: int = 0
    pending_count: int = 0
    waitlist_count: int = 0
    created_at: datetime
    updated_at: datetime


class ScheduleBoard(BaseModel):
    """All active offerings with the ids that collide on teacher or room."""

    classes: list[ClassResponse]
    conflicting_ids: list[str]
    total: int

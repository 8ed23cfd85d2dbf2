"""Schemas for approval workflows."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from .base import OrbitBaseModel


class WorkflowStage(OrbitBaseModel):
    """One stage of a workflow. Orders run 1..n in list order."""

    order: int
    name: str
    color: str


class WorkflowCreate(OrbitBaseModel):
    name: str = Field(..., max_length=255)
    description: str | None = None
    stages: list[WorkflowStage] = Field(default_factory=list)
    is_default: bool = False


class WorkflowUpdate(OrbitBaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    stages: list[WorkflowStage] | None = None
    is_default: bool | None = None
    is_archived: bool | None = None


class WorkflowRef(OrbitBaseModel):
    id: UUID
    name: str
    stages: list[WorkflowStage]


class WorkflowResponse(OrbitBaseModel):
    id: UUID
    organization_id: UUID
    name: str
    description: str | None = None
    stages: list[WorkflowStage]
    is_default: bool
    is_archived: bool
    created_by: UUID
    created_at: datetime
    updated_at: datetime | None = None
    stage_count: int
    project_count: int

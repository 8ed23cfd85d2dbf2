"""Schemas for projects and their stage reviewers."""

from datetime import datetime
from uuid import UUID

from .base import OrbitBaseModel
from .workflows import WorkflowRef


class ProjectCreate(OrbitBaseModel):
    # Length, status and color are checked by the service so that the
    # messages match the rest of the API.
    name: str
    client_name: str | None = None
    description: str | None = None
    status: str = "active"
    color: str | None = None
    workflow_id: UUID | None = None


class ProjectResponse(OrbitBaseModel):
    id: UUID
    organization_id: UUID
    name: str
    client_name: str | None = None
    description: str | None = None
    status: str
    color: str
    workflow_id: UUID | None = None
    created_by: UUID
    created_at: datetime
    updated_at: datetime | None = None
    asset_count: int = 0
    workflow: WorkflowRef | None = None


class StageReviewerCreate(OrbitBaseModel):
    stage_order: int
    user_id: UUID


class StageReviewerResponse(OrbitBaseModel):
    id: UUID
    project_id: UUID
    stage_order: int
    user_id: UUID
    user_name: str
    user_email: str | None = None
    user_image_url: str | None = None
    added_by: UUID
    created_at: datetime


class StageReviewerGroupResponse(OrbitBaseModel):
    stage_order: int
    reviewers: list[StageReviewerResponse]

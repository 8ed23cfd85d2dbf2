"""Schemas for a user's stage review queue."""

from uuid import UUID

from .base import OrbitBaseModel
from .mockups import MockupResponse


class PendingStageReviewResponse(OrbitBaseModel):
    mockup: MockupResponse
    stage_order: int
    stage_name: str
    stage_color: str
    approvals_required: int
    approvals_received: int
    has_approved: bool


class ProjectReviewGroupResponse(OrbitBaseModel):
    project_id: UUID
    project_name: str
    project_color: str
    reviews: list[PendingStageReviewResponse]


class MyStageReviewsResponse(OrbitBaseModel):
    projects: list[ProjectReviewGroupResponse]
    total: int

"""Schemas for mockups (assets), their stage progress and approvals."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from .base import OrbitBaseModel
from .workflows import WorkflowRef


# =============================================================================
# REQUESTS
# =============================================================================


class MockupCreate(OrbitBaseModel):
    name: str = Field(..., max_length=255)
    image_url: str | None = Field(default=None, max_length=1000)
    project_id: UUID | None = None
    folder_id: UUID | None = None


class MockupUpdate(OrbitBaseModel):
    """Partial update. Sending ``project_id`` (even null) moves the mockup."""

    name: str | None = Field(default=None, max_length=255)
    image_url: str | None = Field(default=None, max_length=1000)
    project_id: UUID | None = None


class StageApprovalRequest(OrbitBaseModel):
    notes: str | None = None


class StageReviewRequest(OrbitBaseModel):
    action: str = Field(..., description='"approve" or "request_changes"')
    notes: str | None = None


class FinalApprovalRequest(OrbitBaseModel):
    notes: str | None = None


# =============================================================================
# RESPONSES
# =============================================================================


class StageProgressResponse(OrbitBaseModel):
    id: UUID
    stage_order: int
    stage_name: str
    stage_color: str
    status: str
    approvals_required: int
    approvals_received: int
    is_complete: bool
    reviewed_by: UUID | None = None
    reviewed_by_name: str | None = None
    reviewed_at: datetime | None = None
    notes: str | None = None


class StageProgressListResponse(OrbitBaseModel):
    progress: list[StageProgressResponse]
    workflow: WorkflowRef | None = None


class MockupResponse(OrbitBaseModel):
    id: UUID
    organization_id: UUID
    project_id: UUID | None = None
    folder_id: UUID | None = None
    name: str
    image_url: str | None = None
    created_by: UUID
    created_at: datetime
    updated_at: datetime | None = None
    final_approved_by: UUID | None = None
    final_approved_at: datetime | None = None
    final_approval_notes: str | None = None
    current_stage: int | None = None
    overall_status: str | None = None
    progress: list[StageProgressResponse] = []


class UserApprovalResponse(OrbitBaseModel):
    id: UUID
    asset_id: UUID
    stage_order: int
    user_id: UUID
    user_name: str | None = None
    user_email: str | None = None
    action: str
    notes: str | None = None
    created_at: datetime


class ApprovalProgressResponse(OrbitBaseModel):
    stage_order: int
    stage_name: str
    stage_color: str
    approvals_required: int
    approvals_received: int
    is_complete: bool
    user_approvals: list[UserApprovalResponse]


class FinalApprovalResponse(OrbitBaseModel):
    approved_by: UUID
    approved_at: datetime
    notes: str | None = None


class ApprovalSummaryResponse(OrbitBaseModel):
    approvals_by_stage: dict[int, list[UserApprovalResponse]]
    progress_summary: dict[int, ApprovalProgressResponse]
    final_approval: FinalApprovalResponse | None = None


class FinalApproveResponse(OrbitBaseModel):
    success: bool = True
    message: str
    mockup: MockupResponse
    progress: list[StageProgressResponse]
    final_approval: FinalApprovalResponse


class StageApprovalResponse(OrbitBaseModel):
    success: bool = True
    message: str
    progress: StageProgressResponse
    stage_complete: bool
    advanced_to_next_stage: bool
    next_stage_name: str | None = None
    pending_final_approval: bool = False


# =============================================================================
# INVITED REVIEWERS
# =============================================================================


class ReviewerInviteRequest(OrbitBaseModel):
    reviewer_ids: list[UUID] = Field(..., min_length=1)
    message: str | None = None


class ReviewerStatusRequest(OrbitBaseModel):
    # Checked by the service for a consistent error message
    status: str
    note: str | None = None


class AssetReviewerResponse(OrbitBaseModel):
    id: UUID
    asset_id: UUID
    reviewer_id: UUID
    reviewer_name: str
    reviewer_email: str | None = None
    reviewer_color: str
    status: str
    invitation_message: str | None = None
    response_note: str | None = None
    invited_by: UUID
    viewed_at: datetime | None = None
    responded_at: datetime | None = None
    created_at: datetime

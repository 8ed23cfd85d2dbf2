"""Approval Orbit API Schemas.

Schemas are organized by domain:
- base: Common types and error responses
- mockups: Mockups, stage progress, approvals and invited reviewers
- workflows: Workflow definitions
- projects: Projects and stage reviewers
- reviews: A user's stage review queue
"""

from .base import (
    ErrorDetail,
    ErrorResponse,
    MessageResponse,
    OrbitBaseModel,
    TimestampMixin,
    UserRef,
)
from .mockups import (
    ApprovalProgressResponse,
    ApprovalSummaryResponse,
    AssetReviewerResponse,
    FinalApprovalRequest,
    FinalApprovalResponse,
    FinalApproveResponse,
    MockupCreate,
    MockupResponse,
    MockupUpdate,
    ReviewerInviteRequest,
    ReviewerStatusRequest,
    StageApprovalRequest,
    StageApprovalResponse,
    StageProgressListResponse,
    StageProgressResponse,
    StageReviewRequest,
    UserApprovalResponse,
)
from .projects import (
    ProjectCreate,
    ProjectResponse,
    StageReviewerCreate,
    StageReviewerGroupResponse,
    StageReviewerResponse,
)
from .reviews import (
    MyStageReviewsResponse,
    PendingStageReviewResponse,
    ProjectReviewGroupResponse,
)
from .workflows import (
    WorkflowCreate,
    WorkflowRef,
    WorkflowResponse,
    WorkflowStage,
    WorkflowUpdate,
)

__all__ = [
    # Base
    "OrbitBaseModel",
    "TimestampMixin",
    "ErrorDetail",
    "ErrorResponse",
    "MessageResponse",
    "UserRef",
    # Mockups
    "MockupCreate",
    "MockupUpdate",
    "MockupResponse",
    "StageProgressResponse",
    "StageProgressListResponse",
    "StageApprovalRequest",
    "StageApprovalResponse",
    "StageReviewRequest",
    "FinalApprovalRequest",
    "FinalApprovalResponse",
    "FinalApproveResponse",
    "UserApprovalResponse",
    "ApprovalProgressResponse",
    "ApprovalSummaryResponse",
    "ReviewerInviteRequest",
    "ReviewerStatusRequest",
    "AssetReviewerResponse",
    # Projects
    "ProjectCreate",
    "ProjectResponse",
    "StageReviewerCreate",
    "StageReviewerResponse",
    "StageReviewerGroupResponse",
    # Reviews
    "PendingStageReviewResponse",
    "ProjectReviewGroupResponse",
    "MyStageReviewsResponse",
    # Workflows
    "WorkflowStage",
    "WorkflowCreate",
    "WorkflowUpdate",
    "WorkflowRef",
    "WorkflowResponse",
]

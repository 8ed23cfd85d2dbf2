"""Business logic services for Approval Orbit."""

from .approval_engine import (
    ApprovalEngine,
    ApprovalError,
    UnauthorizedError,
    NotFoundError,
    ForbiddenError,
    InvalidStateError,
    ValidationError,
    ApprovalProgress,
    AssetApprovalSummary,
    AssetDetail,
    FinalApprovalInfo,
    FinalApprovalResult,
    StageApprovalResult,
    StageProgressOverview,
    StageProgressView,
)
from .audit import AuditService
from .notifications import ApprovalNotifier, EmailMessage
from .progress import DerivedProgress, derive_progress_status
from .projects import ProjectService, ProjectSummary, StageReviewerGroup
from .reviews import (
    InviteResult,
    PendingStageReview,
    ProjectReviewGroup,
    ReviewService,
    ReviewerStatusResult,
)
from .workflows import WorkflowService, WorkflowSummary, validate_stages

__all__ = [
    # Approval Engine (primary)
    "ApprovalEngine",
    "ApprovalError",
    "UnauthorizedError",
    "NotFoundError",
    "ForbiddenError",
    "InvalidStateError",
    "ValidationError",
    "ApprovalProgress",
    "AssetApprovalSummary",
    "AssetDetail",
    "FinalApprovalInfo",
    "FinalApprovalResult",
    "StageApprovalResult",
    "StageProgressOverview",
    "StageProgressView",
    # Derivation
    "DerivedProgress",
    "derive_progress_status",
    # Supporting services
    "AuditService",
    "ApprovalNotifier",
    "EmailMessage",
    "ProjectService",
    "ProjectSummary",
    "StageReviewerGroup",
    "ReviewService",
    "InviteResult",
    "PendingStageReview",
    "ProjectReviewGroup",
    "ReviewerStatusResult",
    "WorkflowService",
    "WorkflowSummary",
    "validate_stages",
]

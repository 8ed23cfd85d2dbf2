"""SQLAlchemy ORM Models for Approval Orbit."""

from .base import Base, JSONType, SoftDeleteMixin, TimestampMixin, UUIDMixin, utcnow
from .models import (
    # Enums
    AuditAction,
    OrgRole,
    OverallStatus,
    ProjectStatus,
    ReviewerStatus,
    StageColor,
    StageStatus,
    # Organization & User
    Organization,
    OrganizationMember,
    User,
    # Workflows & Projects
    Project,
    ProjectStageReviewer,
    Workflow,
    # Assets & Approvals
    Asset,
    AssetReviewer,
    StageProgress,
    StageUserApproval,
    # Audit
    AuditLog,
)

__all__ = [
    # Base
    "Base",
    "JSONType",
    "UUIDMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    "utcnow",
    # Enums
    "AuditAction",
    "OrgRole",
    "OverallStatus",
    "ProjectStatus",
    "ReviewerStatus",
    "StageColor",
    "StageStatus",
    # Organization & User
    "Organization",
    "User",
    "OrganizationMember",
    # Workflows & Projects
    "Workflow",
    "Project",
    "ProjectStageReviewer",
    # Assets & Approvals
    "Asset",
    "AssetReviewer",
    "StageProgress",
    "StageUserApproval",
    # Audit
    "AuditLog",
]

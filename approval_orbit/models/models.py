"""SQLAlchemy ORM Models for Approval Orbit.

These models map to the hosted PostgreSQL schema: organizations and their
members, workflows, projects, assets (card mockups), stage reviewer
assignments, per-user stage approvals, stage progress and the audit log.
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, SoftDeleteMixin, TimestampMixin, UUIDMixin, utcnow


def _enum(enum_cls: type[PyEnum], name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda x: [e.value for e in x])


# =============================================================================
# ENUMS
# =============================================================================


class OrgRole(str, PyEnum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class StageColor(str, PyEnum):
    """Fixed palette for workflow stage badges."""
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    PURPLE = "purple"
    RED = "red"
    ORANGE = "orange"
    GRAY = "gray"


class ProjectStatus(str, PyEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class StageStatus(str, PyEnum):
    NOT_STARTED = "not_started"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    PENDING_FINAL_APPROVAL = "pending_final_approval"


class OverallStatus(str, PyEnum):
    """Derived, never stored."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"


class ReviewerStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"


class AuditAction(str, PyEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    ADVANCE = "advance"
    REQUEST_CHANGES = "request_changes"
    RESUBMIT = "resubmit"
    FINAL_APPROVE = "final_approve"
    RESPOND = "respond"


# =============================================================================
# ORGANIZATION & USER MODELS
# =============================================================================


class Organization(Base, UUIDMixin, SoftDeleteMixin, TimestampMixin):
    """Multi-tenant organization."""

    __tablename__ = "organizations"

    slug: Mapped[str] = mapped_column(String(63), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class User(Base, UUIDMixin, SoftDeleteMixin, TimestampMixin):
    """Application user, mirrored from the identity provider."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500))
    auth_provider_id: Mapped[str | None] = mapped_column(
        String(255),
        comment="Subject identifier at the external identity provider",
    )


class OrganizationMember(Base, UUIDMixin, TimestampMixin):
    """Membership linking users to organizations."""

    __tablename__ = "organization_members"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(50), default=OrgRole.MEMBER.value)

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id"),
        Index("idx_org_members_org", "organization_id"),
        Index("idx_org_members_user", "user_id"),
    )


# =============================================================================
# WORKFLOW & PROJECT MODELS
# =============================================================================


class Workflow(Base, UUIDMixin, TimestampMixin):
    """Ordered approval stages owned by an organization.

    ``stages`` holds ``[{"order": 1, "name": "Design", "color": "blue"}, ...]``
    with contiguous orders starting at 1.
    """

    __tablename__ = "workflows"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    stages: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        Index("idx_workflows_org", "organization_id", "is_archived"),
    )

    def get_stage(self, order: int) -> dict | None:
        return next((s for s in self.stages or [] if s.get("order") == order), None)

    @property
    def stage_count(self) -> int:
        return len(self.stages or [])


class Project(Base, UUIDMixin, TimestampMixin):
    """A body of work whose assets share one workflow."""

    __tablename__ = "projects"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    client_name: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ProjectStatus] = mapped_column(
        _enum(ProjectStatus, "project_status"),
        default=ProjectStatus.ACTIVE,
        nullable=False,
    )
    color: Mapped[str] = mapped_column(String(7), default="#3B82F6", nullable=False)
    workflow_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("workflows.id", ondelete="SET NULL"), nullable=True
    )
    created_by: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        comment="Project owner for final approval purposes",
    )

    __table_args__ = (
        Index("idx_projects_org", "organization_id", "status"),
        Index("idx_projects_workflow", "workflow_id"),
    )


class ProjectStageReviewer(Base, UUIDMixin, TimestampMixin):
    """A user allowed to approve at one stage of a project's workflow."""

    __tablename__ = "project_stage_reviewers"

    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    stage_order: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_email: Mapped[str | None] = mapped_column(String(255))
    user_image_url: Mapped[str | None] = mapped_column(String(500))
    added_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("project_id", "stage_order", "user_id"),
        CheckConstraint("stage_order >= 1", name="stage_order_positive"),
        Index("idx_stage_reviewers_project", "project_id", "stage_order"),
        Index("idx_stage_reviewers_user", "user_id"),
    )


# =============================================================================
# ASSET & APPROVAL MODELS
# =============================================================================


class Asset(Base, UUIDMixin, TimestampMixin):
    """A rendered card mockup moving through approval."""

    __tablename__ = "assets"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    folder_id: Mapped[UUID | None] = mapped_column(
        nullable=True,
        comment="Folder in the asset library; the folder tree lives elsewhere",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(1000))
    created_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    # Terminal final-approval fields, null until granted
    final_approved_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    final_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    final_approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_assets_org", "organization_id"),
        Index("idx_assets_project", "project_id"),
    )

    @property
    def is_final_approved(self) -> bool:
        return self.final_approved_by is not None


class StageUserApproval(Base, UUIDMixin, TimestampMixin):
    """One reviewer's approval of one stage for one asset."""

    __tablename__ = "stage_user_approvals"

    asset_id: Mapped[UUID] = mapped_column(
        ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    stage_order: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    user_name: Mapped[str | None] = mapped_column(String(255))
    user_email: Mapped[str | None] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(20), default="approve", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint("asset_id", "stage_order", "user_id"),
        Index("idx_user_approvals_asset", "asset_id", "created_at"),
    )


class StageProgress(Base, UUIDMixin, TimestampMixin):
    """Per (asset, stage) approval counts and status.

    ``approvals_required`` is a snapshot of the stage's reviewer count taken
    when the stage enters review; ``approvals_received`` is a live count.
    """

    __tablename__ = "stage_progress"

    asset_id: Mapped[UUID] = mapped_column(
        ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[UUID] = mapped_column(ForeignKey("projects.id"), nullable=False)
    stage_order: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[StageStatus] = mapped_column(
        _enum(StageStatus, "stage_status"),
        default=StageStatus.NOT_STARTED,
        nullable=False,
    )
    approvals_required: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    approvals_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reviewed_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    reviewed_by_name: Mapped[str | None] = mapped_column(String(255))
    reviewed_at: Mapped[datetime | None] = mapped_column()
    notes: Mapped[str | None] = mapped_column(Text)
    notification_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notification_sent_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        UniqueConstraint("asset_id", "stage_order"),
        Index("idx_stage_progress_asset", "asset_id", "stage_order"),
        Index("idx_stage_progress_project_status", "project_id", "status"),
    )

    @property
    def is_complete(self) -> bool:
        return (self.approvals_received or 0) >= (self.approvals_required or 0)


class AssetReviewer(Base, UUIDMixin, TimestampMixin):
    """An invited reviewer's own verdict on an asset."""

    __tablename__ = "asset_reviewers"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    asset_id: Mapped[UUID] = mapped_column(
        ForeignKey("assets.id", ondelete="CASCADE"), nullable=False
    )
    reviewer_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    reviewer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    reviewer_email: Mapped[str | None] = mapped_column(String(255))
    reviewer_color: Mapped[str] = mapped_column(String(7), nullable=False)
    status: Mapped[ReviewerStatus] = mapped_column(
        _enum(ReviewerStatus, "reviewer_status"),
        default=ReviewerStatus.PENDING,
        nullable=False,
    )
    invitation_message: Mapped[str | None] = mapped_column(Text)
    response_note: Mapped[str | None] = mapped_column(Text)
    invited_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    viewed_at: Mapped[datetime | None] = mapped_column()
    responded_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        UniqueConstraint("asset_id", "reviewer_id"),
        Index("idx_asset_reviewers_asset", "asset_id"),
        Index("idx_asset_reviewers_reviewer", "reviewer_id"),
    )


# =============================================================================
# AUDIT MODELS
# =============================================================================


class AuditLog(Base, UUIDMixin):
    """Append-only audit trail."""

    __tablename__ = "audit_log"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False
    )
    user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    action: Mapped[AuditAction] = mapped_column(
        _enum(AuditAction, "audit_action"), nullable=False
    )
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[UUID] = mapped_column(nullable=False)
    details: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_audit_log_org_time", "organization_id", "created_at"),
        Index("idx_audit_log_resource", "resource_type", "resource_id"),
    )

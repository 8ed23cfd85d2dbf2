"""Review service: invited asset reviewers and a user's stage review queue."""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    Asset,
    AssetReviewer,
    AuditAction,
    OrganizationMember,
    Project,
    ProjectStageReviewer,
    ReviewerStatus,
    StageProgress,
    StageStatus,
    StageUserApproval,
    User,
    Workflow,
    utcnow,
)
from .approval_engine import (
    UNKNOWN_STAGE_COLOR,
    UNKNOWN_STAGE_NAME,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    require_context,
)
from .audit import AuditService
from .notifications import EmailMessage, build_reviewer_invited, build_reviewer_responded

logger = logging.getLogger(__name__)

REVIEWER_COLORS = ["#FF6B6B", "#4ECDC4", "#FFE66D", "#95E1D3", "#A29BFE", "#FD79A8"]

RESPONSE_STATUSES = (ReviewerStatus.APPROVED.value, ReviewerStatus.CHANGES_REQUESTED.value)


@dataclass
class InviteResult:
    reviewers: list[AssetReviewer]
    notifications: list[EmailMessage] = field(default_factory=list)


@dataclass
class ReviewerStatusResult:
    reviewer: AssetReviewer
    notifications: list[EmailMessage] = field(default_factory=list)


@dataclass
class PendingStageReview:
    asset: Asset
    stage_order: int
    stage_name: str
    stage_color: str
    approvals_required: int
    approvals_received: int
    has_approved: bool


@dataclass
class ProjectReviewGroup:
    project_id: UUID
    project_name: str
    project_color: str
    reviews: list[PendingStageReview]


class ReviewService:
    """Service for asset reviewer invitations and review queues."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit = AuditService(session)

    # =========================================================================
    # INVITATIONS
    # =========================================================================

    async def list_asset_reviewers(
        self,
        asset_id: UUID,
        organization_id: UUID,
        user_id: UUID,
    ) -> list[AssetReviewer]:
        require_context(organization_id, user_id)
        asset = await self.session.execute(
            select(Asset.id).where(Asset.id == asset_id, Asset.organization_id == organization_id)
        )
        if asset.first() is None:
            raise NotFoundError("Mockup not found")

        result = await self.session.execute(
            select(AssetReviewer)
            .where(AssetReviewer.asset_id == asset_id)
            .order_by(AssetReviewer.created_at)
        )
        return list(result.scalars().all())

    async def invite_reviewers(
        self,
        asset_id: UUID,
        organization_id: UUID,
        inviter_id: UUID,
        reviewer_ids: list[UUID],
        message: str | None = None,
    ) -> InviteResult:
        """
        Invite org members to review a mockup. Only its creator may invite.

        Ids that are not members of the organization are skipped.
        """
        require_context(organization_id, inviter_id)

        result = await self.session.execute(
            select(Asset).where(
                Asset.id == asset_id,
                Asset.organization_id == organization_id,
                Asset.created_by == inviter_id,
            )
        )
        asset = result.scalar_one_or_none()
        if not asset:
            raise NotFoundError("Mockup not found or you don't have permission to invite reviewers")

        unique_ids = list(dict.fromkeys(reviewer_ids))
        result = await self.session.execute(
            select(User)
            .join(OrganizationMember, OrganizationMember.user_id == User.id)
            .where(
                User.id.in_(unique_ids),
                User.deleted_at.is_(None),
                OrganizationMember.organization_id == organization_id,
            )
        )
        users_by_id = {u.id: u for u in result.scalars().all()}
        valid = [users_by_id[uid] for uid in unique_ids if uid in users_by_id]
        if not valid:
            raise ValidationError("No valid reviewers found")

        existing = await self.session.execute(
            select(AssetReviewer.reviewer_id).where(
                AssetReviewer.asset_id == asset.id,
                AssetReviewer.reviewer_id.in_([u.id for u in valid]),
            )
        )
        if existing.first() is not None:
            raise InvalidStateError("One or more users are already reviewers for this mockup")

        count_result = await self.session.execute(
            select(func.count(AssetReviewer.id)).where(AssetReviewer.asset_id == asset.id)
        )
        offset = count_result.scalar_one()

        reviewers = []
        for i, user in enumerate(valid):
            reviewer = AssetReviewer(
                organization_id=organization_id,
                asset_id=asset.id,
                reviewer_id=user.id,
                reviewer_name=user.name,
                reviewer_email=user.email,
                reviewer_color=REVIEWER_COLORS[(offset + i) % len(REVIEWER_COLORS)],
                status=ReviewerStatus.PENDING,
                invitation_message=message,
                invited_by=inviter_id,
            )
            self.session.add(reviewer)
            reviewers.append(reviewer)
        await self.session.flush()

        self.audit.log_event(
            organization_id=organization_id,
            user_id=inviter_id,
            action=AuditAction.CREATE,
            resource_type="mockup_reviewer",
            resource_id=asset.id,
            details={"reviewer_ids": [str(u.id) for u in valid]},
        )
        logger.info(f"Invited {len(reviewers)} reviewer(s) to mockup {asset.id}")

        inviter = await self.session.get(User, inviter_id)
        emails = [u.email for u in valid if u.email]
        notifications = []
        if emails:
            notifications.append(
                build_reviewer_invited(
                    emails, asset.id, asset.name, inviter.name if inviter else "A teammate", message
                )
            )
        return InviteResult(reviewers=reviewers, notifications=notifications)

    # =========================================================================
    # SELF-SERVICE STATUS
    # =========================================================================

    async def set_reviewer_status(
        self,
        mockup_id: UUID,
        reviewer_id: UUID,
        acting_user_id: UUID,
        organization_id: UUID,
        status: str,
        note: str | None = None,
    ) -> ReviewerStatusResult:
        """
        Record an invited reviewer's own verdict on their reviewer record
        (`reviewer_id` is the record id). Last write wins; stage progress is
        not touched.
        """
        require_context(organization_id, acting_user_id)

        if status not in RESPONSE_STATUSES:
            raise ValidationError('Invalid status. Must be "approved" or "changes_requested"')

        result = await self.session.execute(
            select(AssetReviewer).where(
                AssetReviewer.id == reviewer_id,
                AssetReviewer.asset_id == mockup_id,
                AssetReviewer.organization_id == organization_id,
            )
        )
        reviewer = result.scalar_one_or_none()
        if not reviewer:
            raise NotFoundError("Reviewer record not found")

        if reviewer.reviewer_id != acting_user_id:
            raise ForbiddenError("You can only update your own review status")

        now = utcnow()
        reviewer.status = ReviewerStatus(status)
        reviewer.response_note = note
        reviewer.responded_at = now
        if reviewer.viewed_at is None:
            reviewer.viewed_at = now
        await self.session.flush()

        self.audit.log_event(
            organization_id=organization_id,
            user_id=acting_user_id,
            action=AuditAction.RESPOND,
            resource_type="mockup_reviewer",
            resource_id=reviewer.id,
            details={"mockup_id": str(mockup_id), "status": status},
        )

        notifications = []
        asset = await self.session.get(Asset, mockup_id)
        creator = await self.session.get(User, asset.created_by) if asset else None
        if creator and creator.email and creator.id != acting_user_id:
            notifications.append(
                build_reviewer_responded(
                    [creator.email], asset.id, asset.name, reviewer.reviewer_name, status, note
                )
            )
        return ReviewerStatusResult(reviewer=reviewer, notifications=notifications)

    # =========================================================================
    # MY STAGE REVIEWS
    # =========================================================================

    async def list_my_stage_reviews(self, organization_id: UUID, user_id: UUID) -> list[ProjectReviewGroup]:
        """Assets whose in-review stage the user is assigned to, by project."""
        require_context(organization_id, user_id)

        query = (
            select(StageProgress, Asset, Project)
            .join(Asset, Asset.id == StageProgress.asset_id)
            .join(Project, Project.id == StageProgress.project_id)
            .join(
                ProjectStageReviewer,
                (ProjectStageReviewer.project_id == StageProgress.project_id)
                & (ProjectStageReviewer.stage_order == StageProgress.stage_order),
            )
            .where(
                ProjectStageReviewer.user_id == user_id,
                StageProgress.status == StageStatus.IN_REVIEW,
                Asset.organization_id == organization_id,
                Project.organization_id == organization_id,
                Asset.project_id == Project.id,
            )
            .order_by(Project.name, Asset.created_at.desc())
            .execution_options(populate_existing=True)
        )
        rows = (await self.session.execute(query)).all()
        if not rows:
            return []

        approved = await self.session.execute(
            select(StageUserApproval.asset_id, StageUserApproval.stage_order).where(
                StageUserApproval.user_id == user_id,
                StageUserApproval.asset_id.in_([asset.id for _, asset, _ in rows]),
            )
        )
        approved_keys = {(a, s) for a, s in approved.all()}

        workflows: dict[UUID, Workflow | None] = {}
        groups: dict[UUID, ProjectReviewGroup] = {}
        for progress, asset, project in rows:
            if project.workflow_id not in workflows:
                workflows[project.workflow_id] = (
                    await self.session.get(Workflow, project.workflow_id) if project.workflow_id else None
                )
            workflow = workflows[project.workflow_id]
            stage = workflow.get_stage(progress.stage_order) if workflow else None

            group = groups.setdefault(
                project.id,
                ProjectReviewGroup(
                    project_id=project.id,
                    project_name=project.name,
                    project_color=project.color,
                    reviews=[],
                ),
            )
            group.reviews.append(
                PendingStageReview(
                    asset=asset,
                    stage_order=progress.stage_order,
                    stage_name=stage.get("name", UNKNOWN_STAGE_NAME) if stage else UNKNOWN_STAGE_NAME,
                    stage_color=stage.get("color", UNKNOWN_STAGE_COLOR) if stage else UNKNOWN_STAGE_COLOR,
                    approvals_required=progress.approvals_required,
                    approvals_received=progress.approvals_received,
                    has_approved=(asset.id, progress.stage_order) in approved_keys,
                )
            )
        return list(groups.values())

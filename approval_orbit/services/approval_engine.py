"""
Approval Engine: multi-stage approval progress and the final approval gate.

An asset placed in a project moves through the stages of the project's
workflow:
- Each stage enters review with a snapshot of how many reviewers it needs
- Assigned reviewers record one approval each; the count is bumped atomically
- A complete stage advances the next one into review
- After the last stage the asset waits for final approval by the project
  owner or an organization admin, which is terminal

Every transition is a conditional UPDATE guarded on the expected current
status, so concurrent requests cannot both win the same transition.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    Asset,
    AuditAction,
    OrganizationMember,
    OrgRole,
    OverallStatus,
    Project,
    ProjectStageReviewer,
    StageProgress,
    StageStatus,
    StageUserApproval,
    User,
    Workflow,
    utcnow,
)
from .audit import AuditService
from .notifications import (
    EmailMessage,
    build_changes_requested,
    build_final_approval_pending,
    build_final_approved,
    build_stage_review_requested,
)
from .progress import derive_progress_status

logger = logging.getLogger(__name__)

UNKNOWN_STAGE_NAME = "Unknown"
UNKNOWN_STAGE_COLOR = "gray"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class ApprovalError(Exception):
    """Base exception for approval operations."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthorizedError(ApprovalError):
    """No authenticated caller or organization."""
    pass


class NotFoundError(ApprovalError):
    """Entity missing or owned by another organization."""
    pass


class ForbiddenError(ApprovalError):
    """Caller lacks the required role or relationship."""
    pass


class InvalidStateError(ApprovalError):
    """Operation not allowed in the current state."""

    def __init__(self, message: str, current_status: str | None = None):
        super().__init__(message)
        self.current_status = current_status


class ValidationError(ApprovalError):
    """Malformed input."""
    pass


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class ApprovalProgress:
    """Approval counts for one stage of one asset."""
    stage_order: int
    stage_name: str
    stage_color: str
    approvals_required: int
    approvals_received: int
    is_complete: bool
    user_approvals: list[StageUserApproval]


@dataclass
class FinalApprovalInfo:
    approved_by: UUID
    approved_at: datetime
    notes: str | None


@dataclass
class AssetApprovalSummary:
    approvals_by_stage: dict[int, list[StageUserApproval]]
    progress_summary: dict[int, ApprovalProgress]
    final_approval: FinalApprovalInfo | None


@dataclass
class StageProgressView:
    """A StageProgress row joined with its workflow stage definition."""
    id: UUID
    stage_order: int
    stage_name: str
    stage_color: str
    status: StageStatus
    approvals_required: int
    approvals_received: int
    is_complete: bool
    reviewed_by: UUID | None
    reviewed_by_name: str | None
    reviewed_at: datetime | None
    notes: str | None

    @classmethod
    def from_row(cls, row: StageProgress, workflow: Workflow | None) -> "StageProgressView":
        stage = workflow.get_stage(row.stage_order) if workflow else None
        return cls(
            id=row.id,
            stage_order=row.stage_order,
            stage_name=stage.get("name", UNKNOWN_STAGE_NAME) if stage else UNKNOWN_STAGE_NAME,
            stage_color=stage.get("color", UNKNOWN_STAGE_COLOR) if stage else UNKNOWN_STAGE_COLOR,
            status=StageStatus(row.status),
            approvals_required=row.approvals_required,
            approvals_received=row.approvals_received,
            is_complete=row.is_complete,
            reviewed_by=row.reviewed_by,
            reviewed_by_name=row.reviewed_by_name,
            reviewed_at=row.reviewed_at,
            notes=row.notes,
        )


@dataclass
class StageProgressOverview:
    stages: list[StageProgressView]
    workflow: Workflow | None


@dataclass
class AssetDetail:
    """Asset with its derived approval status."""
    asset: Asset
    current_stage: int
    overall_status: OverallStatus
    progress: list[StageProgressView] = field(default_factory=list)


@dataclass
class FinalApprovalResult:
    asset: Asset
    progress: list[StageProgressView]
    final_approval: FinalApprovalInfo
    notifications: list[EmailMessage] = field(default_factory=list)


@dataclass
class StageApprovalResult:
    """Outcome of a stage approval or review decision."""
    progress: StageProgressView
    message: str
    stage_complete: bool = False
    advanced_to_next_stage: bool = False
    next_stage_name: str | None = None
    pending_final_approval: bool = False
    notifications: list[EmailMessage] = field(default_factory=list)


@dataclass
class _Advance:
    advanced: bool = False
    next_stage_name: str | None = None
    pending_final_approval: bool = False
    notifications: list[EmailMessage] = field(default_factory=list)


# =============================================================================
# SHARED LOOKUPS
# =============================================================================


def require_context(organization_id: UUID | None, user_id: UUID | None = None) -> None:
    """Reject calls without a caller/tenant pair."""
    if organization_id is None or user_id is None:
        raise UnauthorizedError("Authentication required")


async def is_org_admin(session: AsyncSession, organization_id: UUID, user_id: UUID) -> bool:
    result = await session.execute(
        select(OrganizationMember.role).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
        )
    )
    role = result.scalar_one_or_none()
    return role in (OrgRole.OWNER.value, OrgRole.ADMIN.value)


async def count_stage_reviewers(session: AsyncSession, project_id: UUID, stage_order: int) -> int:
    result = await session.execute(
        select(func.count(ProjectStageReviewer.id)).where(
            ProjectStageReviewer.project_id == project_id,
            ProjectStageReviewer.stage_order == stage_order,
        )
    )
    return result.scalar_one()


async def stage_reviewer_emails(session: AsyncSession, project_id: UUID, stage_order: int) -> list[str]:
    result = await session.execute(
        select(ProjectStageReviewer.user_email).where(
            ProjectStageReviewer.project_id == project_id,
            ProjectStageReviewer.stage_order == stage_order,
        )
    )
    return [email for email in result.scalars().all() if email]


# =============================================================================
# APPROVAL ENGINE
# =============================================================================


class ApprovalEngine:
    """
    Core engine for stage approvals and the final approval gate.

    Guarantees:
    1. Tenant scoping is checked before any other business rule
    2. Stage transitions only happen from the expected current status
    3. Final approval is terminal
    4. Every transition writes an audit row in the same transaction
    """

    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def _get_asset(self, asset_id: UUID, organization_id: UUID) -> Asset:
        result = await self._session.execute(
            select(Asset)
            .where(Asset.id == asset_id, Asset.organization_id == organization_id)
            .execution_options(populate_existing=True)
        )
        asset = result.scalar_one_or_none()
        if not asset:
            raise NotFoundError("Mockup not found")
        return asset

    async def _get_project(self, project_id: UUID, organization_id: UUID) -> Project:
        result = await self._session.execute(
            select(Project).where(
                Project.id == project_id,
                Project.organization_id == organization_id,
            )
        )
        project = result.scalar_one_or_none()
        if not project:
            raise NotFoundError("Project not found")
        return project

    async def _get_workflow(self, workflow_id: UUID | None) -> Workflow | None:
        if workflow_id is None:
            return None
        return await self._session.get(Workflow, workflow_id)

    async def _get_user(self, user_id: UUID) -> User | None:
        return await self._session.get(User, user_id)

    async def _list_progress(self, asset_id: UUID) -> Sequence[StageProgress]:
        result = await self._session.execute(
            select(StageProgress)
            .where(StageProgress.asset_id == asset_id)
            .order_by(StageProgress.stage_order)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def _get_progress(self, asset_id: UUID, stage_order: int) -> StageProgress | None:
        result = await self._session.execute(
            select(StageProgress)
            .where(
                StageProgress.asset_id == asset_id,
                StageProgress.stage_order == stage_order,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _get_in_review_stage(self, asset_id: UUID) -> StageProgress | None:
        result = await self._session.execute(
            select(StageProgress)
            .where(
                StageProgress.asset_id == asset_id,
                StageProgress.status == StageStatus.IN_REVIEW,
            )
            .order_by(StageProgress.stage_order)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _is_stage_reviewer(self, project_id: UUID, stage_order: int, user_id: UUID) -> bool:
        result = await self._session.execute(
            select(ProjectStageReviewer.id).where(
                ProjectStageReviewer.project_id == project_id,
                ProjectStageReviewer.stage_order == stage_order,
                ProjectStageReviewer.user_id == user_id,
            )
        )
        return result.first() is not None

    async def _transition(
        self,
        progress_id: UUID,
        from_status: StageStatus,
        to_status: StageStatus,
        **values,
    ) -> bool:
        """Move a stage from one status to another; False if it had moved on."""
        result = await self._session.execute(
            update(StageProgress)
            .where(StageProgress.id == progress_id, StageProgress.status == from_status)
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _progress_views(self, asset_id: UUID, workflow: Workflow | None) -> list[StageProgressView]:
        return [StageProgressView.from_row(r, workflow) for r in await self._list_progress(asset_id)]

    async def _detail(self, asset: Asset) -> AssetDetail:
        rows = await self._list_progress(asset.id)
        workflow = None
        if asset.project_id:
            project = await self._session.get(Project, asset.project_id)
            workflow = await self._get_workflow(project.workflow_id) if project else None
        derived = derive_progress_status(rows)
        return AssetDetail(
            asset=asset,
            current_stage=derived.current_stage,
            overall_status=derived.overall_status,
            progress=[StageProgressView.from_row(r, workflow) for r in rows],
        )

    # =========================================================================
    # PROGRESS SEEDING
    # =========================================================================

    async def seed_stage_progress(self, asset: Asset, project: Project | None) -> list[StageProgress]:
        """Reset an asset's approvals and seed one progress row per stage.

        Stage 1 starts in review; the rest are not started. Only the stage
        entering review gets an ``approvals_required`` snapshot.
        """
        await self._session.execute(
            delete(StageUserApproval).where(StageUserApproval.asset_id == asset.id)
        )
        await self._session.execute(
            delete(StageProgress).where(StageProgress.asset_id == asset.id)
        )

        workflow = await self._get_workflow(project.workflow_id) if project else None
        if not workflow or not workflow.stages:
            return []

        rows = []
        for stage in sorted(workflow.stages, key=lambda s: s["order"]):
            first = stage["order"] == 1
            row = StageProgress(
                asset_id=asset.id,
                project_id=project.id,
                stage_order=stage["order"],
                status=StageStatus.IN_REVIEW if first else StageStatus.NOT_STARTED,
                approvals_required=(
                    await count_stage_reviewers(self._session, project.id, 1) if first else 0
                ),
                approvals_received=0,
            )
            self._session.add(row)
            rows.append(row)

        await self._session.flush()
        logger.info(f"Seeded {len(rows)} stage(s) for mockup {asset.id} in project {project.id}")
        return rows

    # =========================================================================
    # STAGE COMPLETION
    # =========================================================================

    async def _complete_stage(
        self,
        progress: StageProgress,
        asset: Asset,
        project: Project,
        workflow: Workflow,
        actor_id: UUID,
        actor_name: str | None,
        notes: str,
    ) -> _Advance:
        """Close a complete in-review stage and open the next one.

        The last stage goes to pending_final_approval instead. If another
        request already closed the stage, nothing happens.
        """
        now = utcnow()
        last_order = max(s["order"] for s in workflow.stages)
        reviewed = dict(
            reviewed_by=actor_id,
            reviewed_by_name=actor_name,
            reviewed_at=now,
            notes=notes,
        )

        if progress.stage_order >= last_order:
            moved = await self._transition(
                progress.id,
                StageStatus.IN_REVIEW,
                StageStatus.PENDING_FINAL_APPROVAL,
                **reviewed,
            )
            if not moved:
                return _Advance()
            logger.info(f"Mockup {asset.id} completed all stages, awaiting final approval")

            owner = await self._get_user(project.created_by)
            notifications = []
            if owner and owner.email:
                notifications.append(
                    build_final_approval_pending([owner.email], asset.id, asset.name, project.name)
                )
            return _Advance(pending_final_approval=True, notifications=notifications)

        moved = await self._transition(
            progress.id,
            StageStatus.IN_REVIEW,
            StageStatus.APPROVED,
            **reviewed,
        )
        if not moved:
            return _Advance()

        next_order = progress.stage_order + 1
        next_stage = workflow.get_stage(next_order) or {}
        required = await count_stage_reviewers(self._session, project.id, next_order)
        await self._session.execute(
            update(StageProgress)
            .where(
                StageProgress.asset_id == asset.id,
                StageProgress.stage_order == next_order,
            )
            .values(
                status=StageStatus.IN_REVIEW,
                approvals_required=required,
                approvals_received=0,
            )
            .execution_options(synchronize_session=False)
        )

        next_name = next_stage.get("name", UNKNOWN_STAGE_NAME)
        self._audit.log_event(
            organization_id=asset.organization_id,
            user_id=actor_id,
            action=AuditAction.ADVANCE,
            resource_type="mockup",
            resource_id=asset.id,
            details={
                "from_stage": progress.stage_order,
                "to_stage": next_order,
                "approvals_required": required,
            },
        )
        logger.info(f"Mockup {asset.id} advanced from stage {progress.stage_order} to {next_order}")

        notifications = []
        emails = await stage_reviewer_emails(self._session, project.id, next_order)
        if emails:
            notifications.append(
                build_stage_review_requested(emails, asset.id, asset.name, project.name, next_name)
            )
        return _Advance(advanced=True, next_stage_name=next_name, notifications=notifications)

    async def _load_workflow_context(self, asset: Asset) -> tuple[Project, Workflow]:
        if not asset.project_id:
            raise InvalidStateError("Mockup is not assigned to a project")
        project = await self._session.get(Project, asset.project_id)
        workflow = await self._get_workflow(project.workflow_id) if project else None
        if not project or not workflow:
            raise InvalidStateError("Mockup's project has no approval workflow")
        return project, workflow

    # =========================================================================
    # APPROVAL SUMMARY
    # =========================================================================

    async def get_approval_summary(
        self,
        asset_id: UUID,
        organization_id: UUID,
        user_id: UUID,
    ) -> AssetApprovalSummary:
        """
        Assemble approvals grouped by stage, per-stage progress and the final
        approval. Read only.
        """
        require_context(organization_id, user_id)
        asset = await self._get_asset(asset_id, organization_id)

        final = None
        if asset.final_approved_by is not None:
            final = FinalApprovalInfo(
                approved_by=asset.final_approved_by,
                approved_at=asset.final_approved_at,
                notes=asset.final_approval_notes,
            )

        if not asset.project_id:
            return AssetApprovalSummary(approvals_by_stage={}, progress_summary={}, final_approval=final)

        result = await self._session.execute(
            select(StageUserApproval)
            .where(StageUserApproval.asset_id == asset.id)
            .order_by(StageUserApproval.created_at, StageUserApproval.id)
        )
        approvals_by_stage: dict[int, list[StageUserApproval]] = {}
        for approval in result.scalars().all():
            approvals_by_stage.setdefault(approval.stage_order, []).append(approval)

        project = await self._session.get(Project, asset.project_id)
        workflow = await self._get_workflow(project.workflow_id) if project else None

        progress_summary: dict[int, ApprovalProgress] = {}
        for row in await self._list_progress(asset.id):
            view = StageProgressView.from_row(row, workflow)
            progress_summary[row.stage_order] = ApprovalProgress(
                stage_order=row.stage_order,
                stage_name=view.stage_name,
                stage_color=view.stage_color,
                approvals_required=row.approvals_required,
                approvals_received=row.approvals_received,
                is_complete=row.is_complete,
                user_approvals=approvals_by_stage.get(row.stage_order, []),
            )

        return AssetApprovalSummary(
            approvals_by_stage=approvals_by_stage,
            progress_summary=progress_summary,
            final_approval=final,
        )

    # =========================================================================
    # FINAL APPROVAL GATE
    # =========================================================================

    async def record_final_approval(
        self,
        asset_id: UUID,
        organization_id: UUID,
        acting_user_id: UUID,
        notes: str | None = None,
    ) -> FinalApprovalResult:
        """
        Grant the terminal final approval.

        Order of checks:
        1. Asset exists in the organization
        2. Asset belongs to a project
        3. Caller is the project creator or an org admin
        4. The last stage is pending_final_approval

        The last stage is flipped to approved with a conditional UPDATE, so
        of two concurrent callers only one succeeds.
        """
        require_context(organization_id, acting_user_id)
        asset = await self._get_asset(asset_id, organization_id)

        if not asset.project_id:
            raise InvalidStateError("Mockup must be in a project to receive final approval")

        project = await self._get_project(asset.project_id, organization_id)
        if project.created_by != acting_user_id and not await is_org_admin(
            self._session, organization_id, acting_user_id
        ):
            raise ForbiddenError(
                "Only the project owner or an organization admin can give final approval"
            )

        result = await self._session.execute(
            select(StageProgress)
            .where(StageProgress.asset_id == asset.id)
            .order_by(StageProgress.stage_order.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        last = result.scalar_one_or_none()
        if last is None:
            raise InvalidStateError("Cannot give final approval. No review stages exist for this mockup")

        current = StageStatus(last.status)
        if current != StageStatus.PENDING_FINAL_APPROVAL:
            raise InvalidStateError(
                f"Cannot give final approval. Current status: {current.value}",
                current_status=current.value,
            )

        approver = await self._get_user(acting_user_id)
        now = utcnow()
        moved = await self._transition(
            last.id,
            StageStatus.PENDING_FINAL_APPROVAL,
            StageStatus.APPROVED,
            reviewed_by=acting_user_id,
            reviewed_by_name=approver.name if approver else None,
            reviewed_at=now,
        )
        if not moved:
            latest = await self._get_progress(asset.id, last.stage_order)
            status = StageStatus(latest.status).value if latest else None
            raise InvalidStateError(
                f"Cannot give final approval. Current status: {status}",
                current_status=status,
            )

        asset.final_approved_by = acting_user_id
        asset.final_approved_at = now
        asset.final_approval_notes = notes
        await self._session.flush()

        self._audit.log_event(
            organization_id=organization_id,
            user_id=acting_user_id,
            action=AuditAction.FINAL_APPROVE,
            resource_type="mockup",
            resource_id=asset.id,
            details={"project_id": str(project.id), "notes": notes},
        )
        logger.info(f"Final approval recorded for mockup {asset.id} by user {acting_user_id}")

        recipients = set()
        for user_id in (asset.created_by, project.created_by):
            user = await self._get_user(user_id)
            if user and user.email and user.id != acting_user_id:
                recipients.add(user.email)
        notifications = []
        if recipients:
            notifications.append(
                build_final_approved(
                    sorted(recipients),
                    asset.id,
                    asset.name,
                    project.name,
                    approver.name if approver else "An administrator",
                    notes,
                )
            )

        workflow = await self._get_workflow(project.workflow_id)
        return FinalApprovalResult(
            asset=asset,
            progress=await self._progress_views(asset.id, workflow),
            final_approval=FinalApprovalInfo(approved_by=acting_user_id, approved_at=now, notes=notes),
            notifications=notifications,
        )

    # =========================================================================
    # PER-USER STAGE APPROVAL
    # =========================================================================

    async def submit_stage_approval(
        self,
        asset_id: UUID,
        organization_id: UUID,
        acting_user_id: UUID,
        notes: str | None = None,
    ) -> StageApprovalResult:
        """
        Record the caller's approval of the stage currently in review.

        Flow:
        1. Find the in-review stage and check the caller is assigned to it
        2. Insert the per-user approval (one per user per stage)
        3. Atomically increment approvals_received
        4. If the stage is now complete, advance or await final approval
        """
        require_context(organization_id, acting_user_id)
        asset = await self._get_asset(asset_id, organization_id)
        project, workflow = await self._load_workflow_context(asset)

        progress = await self._get_in_review_stage(asset.id)
        if progress is None:
            derived = derive_progress_status(await self._list_progress(asset.id))
            raise InvalidStateError(
                "No stage is currently in review",
                current_status=derived.overall_status.value,
            )

        if not await self._is_stage_reviewer(project.id, progress.stage_order, acting_user_id):
            raise ForbiddenError("You are not a reviewer for this stage")

        existing = await self._session.execute(
            select(StageUserApproval.id).where(
                StageUserApproval.asset_id == asset.id,
                StageUserApproval.stage_order == progress.stage_order,
                StageUserApproval.user_id == acting_user_id,
            )
        )
        if existing.first() is not None:
            raise InvalidStateError("You have already submitted your approval for this stage")

        user = await self._get_user(acting_user_id)
        self._session.add(
            StageUserApproval(
                asset_id=asset.id,
                project_id=project.id,
                stage_order=progress.stage_order,
                user_id=acting_user_id,
                user_name=user.name if user else None,
                user_email=user.email if user else None,
                action="approve",
                notes=notes,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError:
            raise InvalidStateError("You have already submitted your approval for this stage")

        await self._session.execute(
            update(StageProgress)
            .where(StageProgress.id == progress.id)
            .values(approvals_received=StageProgress.approvals_received + 1)
            .execution_options(synchronize_session=False)
        )
        progress = await self._get_progress(asset.id, progress.stage_order)

        self._audit.log_event(
            organization_id=organization_id,
            user_id=acting_user_id,
            action=AuditAction.APPROVE,
            resource_type="mockup",
            resource_id=asset.id,
            details={
                "stage_order": progress.stage_order,
                "approvals_received": progress.approvals_received,
                "approvals_required": progress.approvals_required,
            },
        )

        outcome = _Advance()
        if progress.is_complete:
            outcome = await self._complete_stage(
                progress,
                asset,
                project,
                workflow,
                acting_user_id,
                user.name if user else None,
                f"All {progress.approvals_required} reviewers approved",
            )
            progress = await self._get_progress(asset.id, progress.stage_order)

        if outcome.advanced:
            message = f"Stage complete. Advanced to {outcome.next_stage_name}"
        elif outcome.pending_final_approval:
            message = "All stages approved. Awaiting final approval"
        else:
            message = (
                f"Approval recorded. {progress.approvals_received} of "
                f"{progress.approvals_required} reviewers approved"
            )

        return StageApprovalResult(
            progress=StageProgressView.from_row(progress, workflow),
            message=message,
            stage_complete=progress.is_complete,
            advanced_to_next_stage=outcome.advanced,
            next_stage_name=outcome.next_stage_name,
            pending_final_approval=outcome.pending_final_approval,
            notifications=outcome.notifications,
        )

    # =========================================================================
    # STAGE REVIEW DECISION
    # =========================================================================

    async def review_stage(
        self,
        asset_id: UUID,
        stage_order: int,
        organization_id: UUID,
        acting_user_id: UUID,
        action: str,
        notes: str | None = None,
    ) -> StageApprovalResult:
        """
        Decisive sign-off or change request on one stage.

        ``approve`` completes the stage regardless of the approval count;
        ``request_changes`` needs notes and stops the asset at this stage.
        """
        require_context(organization_id, acting_user_id)
        asset = await self._get_asset(asset_id, organization_id)

        if action not in ("approve", "request_changes"):
            raise ValidationError('Invalid action. Must be "approve" or "request_changes"')
        if action == "request_changes" and not (notes and notes.strip()):
            raise ValidationError("Notes are required when requesting changes")

        project, workflow = await self._load_workflow_context(asset)
        stage = workflow.get_stage(stage_order)
        if stage is None:
            raise ValidationError(f"Stage {stage_order} does not exist in this project's workflow")

        if not await self._is_stage_reviewer(project.id, stage_order, acting_user_id):
            raise ForbiddenError("You are not a reviewer for this stage")

        progress = await self._get_progress(asset.id, stage_order)
        current = StageStatus(progress.status) if progress else StageStatus.NOT_STARTED
        if progress is None or current != StageStatus.IN_REVIEW:
            raise InvalidStateError(
                f"Stage is not in review (current status: {current.value})",
                current_status=current.value,
            )

        user = await self._get_user(acting_user_id)
        user_name = user.name if user else None

        if action == "approve":
            outcome = await self._complete_stage(
                progress,
                asset,
                project,
                workflow,
                acting_user_id,
                user_name,
                notes or "Stage approved",
            )
            if not (outcome.advanced or outcome.pending_final_approval):
                latest = await self._get_progress(asset.id, stage_order)
                raise InvalidStateError(
                    f"Stage is not in review (current status: {StageStatus(latest.status).value})",
                    current_status=StageStatus(latest.status).value,
                )
            self._audit.log_event(
                organization_id=organization_id,
                user_id=acting_user_id,
                action=AuditAction.APPROVE,
                resource_type="mockup",
                resource_id=asset.id,
                details={"stage_order": stage_order, "decisive": True, "notes": notes},
            )
            progress = await self._get_progress(asset.id, stage_order)
            if outcome.advanced:
                message = f"Stage approved. Advanced to {outcome.next_stage_name}"
            else:
                message = "All stages approved. Awaiting final approval"
            return StageApprovalResult(
                progress=StageProgressView.from_row(progress, workflow),
                message=message,
                stage_complete=True,
                advanced_to_next_stage=outcome.advanced,
                next_stage_name=outcome.next_stage_name,
                pending_final_approval=outcome.pending_final_approval,
                notifications=outcome.notifications,
            )

        moved = await self._transition(
            progress.id,
            StageStatus.IN_REVIEW,
            StageStatus.CHANGES_REQUESTED,
            reviewed_by=acting_user_id,
            reviewed_by_name=user_name,
            reviewed_at=utcnow(),
            notes=notes,
        )
        if not moved:
            latest = await self._get_progress(asset.id, stage_order)
            status = StageStatus(latest.status).value
            raise InvalidStateError(
                f"Stage is not in review (current status: {status})",
                current_status=status,
            )

        self._audit.log_event(
            organization_id=organization_id,
            user_id=acting_user_id,
            action=AuditAction.REQUEST_CHANGES,
            resource_type="mockup",
            resource_id=asset.id,
            details={"stage_order": stage_order, "notes": notes},
        )
        logger.info(f"Changes requested on mockup {asset.id} at stage {stage_order}")

        notifications = []
        creator = await self._get_user(asset.created_by)
        if creator and creator.email and creator.id != acting_user_id:
            notifications.append(
                build_changes_requested(
                    [creator.email],
                    asset.id,
                    asset.name,
                    stage.get("name", UNKNOWN_STAGE_NAME),
                    user_name or "A reviewer",
                    notes,
                )
            )

        progress = await self._get_progress(asset.id, stage_order)
        return StageApprovalResult(
            progress=StageProgressView.from_row(progress, workflow),
            message="Changes requested",
            notifications=notifications,
        )

    # =========================================================================
    # RESUBMISSION
    # =========================================================================

    async def resubmit_for_review(
        self,
        asset_id: UUID,
        organization_id: UUID,
        acting_user_id: UUID,
    ) -> AssetDetail:
        """Send an asset with requested changes back to stage 1."""
        require_context(organization_id, acting_user_id)
        asset = await self._get_asset(asset_id, organization_id)
        project, workflow = await self._load_workflow_context(asset)

        if acting_user_id not in (asset.created_by, project.created_by) and not await is_org_admin(
            self._session, organization_id, acting_user_id
        ):
            raise ForbiddenError(
                "Only the mockup creator, project owner or an organization admin can resubmit"
            )

        rows = await self._list_progress(asset.id)
        if not any(StageStatus(r.status) == StageStatus.CHANGES_REQUESTED for r in rows):
            derived = derive_progress_status(rows)
            raise InvalidStateError(
                "Only mockups with requested changes can be resubmitted",
                current_status=derived.overall_status.value,
            )

        await self._session.execute(
            delete(StageUserApproval).where(StageUserApproval.asset_id == asset.id)
        )
        await self._session.execute(
            update(StageProgress)
            .where(StageProgress.asset_id == asset.id)
            .values(
                status=StageStatus.NOT_STARTED,
                approvals_required=0,
                approvals_received=0,
                reviewed_by=None,
                reviewed_by_name=None,
                reviewed_at=None,
                notes=None,
                notification_sent=False,
                notification_sent_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        required = await count_stage_reviewers(self._session, project.id, 1)
        await self._session.execute(
            update(StageProgress)
            .where(StageProgress.asset_id == asset.id, StageProgress.stage_order == 1)
            .values(status=StageStatus.IN_REVIEW, approvals_required=required)
            .execution_options(synchronize_session=False)
        )

        self._audit.log_event(
            organization_id=organization_id,
            user_id=acting_user_id,
            action=AuditAction.RESUBMIT,
            resource_type="mockup",
            resource_id=asset.id,
            details={"project_id": str(project.id)},
        )
        logger.info(f"Mockup {asset.id} resubmitted for review")

        return await self._detail(asset)

    async def review_started_notifications(self, asset: Asset) -> list[EmailMessage]:
        """Stage 1 reviewers of a freshly (re)started asset."""
        if not asset.project_id:
            return []
        project = await self._session.get(Project, asset.project_id)
        workflow = await self._get_workflow(project.workflow_id) if project else None
        if not workflow:
            return []
        emails = await stage_reviewer_emails(self._session, project.id, 1)
        if not emails:
            return []
        stage = workflow.get_stage(1) or {}
        return [
            build_stage_review_requested(
                emails, asset.id, asset.name, project.name, stage.get("name", UNKNOWN_STAGE_NAME)
            )
        ]

    # =========================================================================
    # STAGE PROGRESS VIEW
    # =========================================================================

    async def get_stage_progress(
        self,
        asset_id: UUID,
        organization_id: UUID,
        user_id: UUID,
    ) -> StageProgressOverview:
        require_context(organization_id, user_id)
        asset = await self._get_asset(asset_id, organization_id)
        if not asset.project_id:
            return StageProgressOverview(stages=[], workflow=None)

        project = await self._session.get(Project, asset.project_id)
        workflow = await self._get_workflow(project.workflow_id) if project else None
        if not workflow:
            return StageProgressOverview(stages=[], workflow=None)

        return StageProgressOverview(
            stages=await self._progress_views(asset.id, workflow),
            workflow=workflow,
        )

    # =========================================================================
    # ASSETS
    # =========================================================================

    async def create_asset(
        self,
        organization_id: UUID,
        user_id: UUID,
        name: str,
        image_url: str | None = None,
        project_id: UUID | None = None,
        folder_id: UUID | None = None,
    ) -> AssetDetail:
        """Create a mockup; seeds stage progress when placed in a project."""
        require_context(organization_id, user_id)
        if not name or not name.strip():
            raise ValidationError("Mockup name is required")

        project = None
        if project_id is not None:
            project = await self._get_project(project_id, organization_id)

        asset = Asset(
            organization_id=organization_id,
            project_id=project.id if project else None,
            folder_id=folder_id,
            name=name.strip(),
            image_url=image_url,
            created_by=user_id,
        )
        self._session.add(asset)
        await self._session.flush()

        if project:
            await self.seed_stage_progress(asset, project)

        self._audit.log_event(
            organization_id=organization_id,
            user_id=user_id,
            action=AuditAction.CREATE,
            resource_type="mockup",
            resource_id=asset.id,
            details={"name": asset.name, "project_id": str(project.id) if project else None},
        )
        logger.info(f"Created mockup {asset.id} in organization {organization_id}")
        return await self._detail(asset)

    async def get_asset(
        self,
        asset_id: UUID,
        organization_id: UUID,
        user_id: UUID,
    ) -> AssetDetail:
        require_context(organization_id, user_id)
        asset = await self._get_asset(asset_id, organization_id)
        return await self._detail(asset)

    async def update_asset(
        self,
        asset_id: UUID,
        organization_id: UUID,
        user_id: UUID,
        name: str | None = None,
        image_url: str | None = None,
    ) -> AssetDetail:
        require_context(organization_id, user_id)
        asset = await self._get_asset(asset_id, organization_id)

        changes = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Mockup name is required")
            asset.name = name.strip()
            changes["name"] = asset.name
        if image_url is not None:
            asset.image_url = image_url
            changes["image_url"] = image_url

        if changes:
            await self._session.flush()
            self._audit.log_event(
                organization_id=organization_id,
                user_id=user_id,
                action=AuditAction.UPDATE,
                resource_type="mockup",
                resource_id=asset.id,
                details=changes,
            )
        return await self._detail(asset)

    async def assign_asset_to_project(
        self,
        asset_id: UUID,
        organization_id: UUID,
        user_id: UUID,
        project_id: UUID | None,
    ) -> AssetDetail:
        """Move an asset into (or out of) a project, restarting its review."""
        require_context(organization_id, user_id)
        asset = await self._get_asset(asset_id, organization_id)

        if asset.is_final_approved:
            raise InvalidStateError(
                "Final-approved mockups cannot be moved to another project",
                current_status=OverallStatus.APPROVED.value,
            )

        project = None
        if project_id is not None:
            project = await self._get_project(project_id, organization_id)

        previous = asset.project_id
        asset.project_id = project.id if project else None
        await self._session.flush()
        await self.seed_stage_progress(asset, project)

        self._audit.log_event(
            organization_id=organization_id,
            user_id=user_id,
            action=AuditAction.UPDATE,
            resource_type="mockup",
            resource_id=asset.id,
            details={
                "from_project_id": str(previous) if previous else None,
                "to_project_id": str(asset.project_id) if asset.project_id else None,
            },
        )
        logger.info(f"Mockup {asset.id} moved from project {previous} to {asset.project_id}")
        return await self._detail(asset)

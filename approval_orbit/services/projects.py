"""Project service: projects, their stage reviewers and their assets."""

import logging
import re
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    Asset,
    AuditAction,
    OrganizationMember,
    Project,
    ProjectStageReviewer,
    ProjectStatus,
    StageProgress,
    User,
    Workflow,
)
from .approval_engine import (
    AssetDetail,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    StageProgressView,
    ValidationError,
    is_org_admin,
    require_context,
)
from .audit import AuditService
from .progress import derive_progress_status

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_COLOR = "#3B82F6"
PROJECT_NAME_MAX_LENGTH = 100
HEX_COLOR_RE = re.compile(r"^#[0-9A-F]{6}$", re.IGNORECASE)


@dataclass
class ProjectSummary:
    project: Project
    asset_count: int
    workflow: Workflow | None = None


@dataclass
class StageReviewerGroup:
    stage_order: int
    reviewers: list[ProjectStageReviewer]


class ProjectService:
    """Service for projects and project-stage reviewer assignments."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit = AuditService(session)

    async def _get_project(self, project_id: UUID, organization_id: UUID) -> Project:
        result = await self.session.execute(
            select(Project).where(
                Project.id == project_id,
                Project.organization_id == organization_id,
            )
        )
        project = result.scalar_one_or_none()
        if not project:
            raise NotFoundError("Project not found")
        return project

    async def _asset_count(self, project_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(Asset.id)).where(Asset.project_id == project_id)
        )
        return result.scalar_one()

    async def _require_manager(self, project: Project, user_id: UUID) -> None:
        if project.created_by != user_id and not await is_org_admin(
            self.session, project.organization_id, user_id
        ):
            raise ForbiddenError("Only the project owner or an organization admin can manage reviewers")

    # =========================================================================
    # PROJECTS
    # =========================================================================

    async def create_project(
        self,
        organization_id: UUID,
        user_id: UUID,
        name: str,
        client_name: str | None = None,
        description: str | None = None,
        status: str = ProjectStatus.ACTIVE.value,
        color: str | None = None,
        workflow_id: UUID | None = None,
    ) -> ProjectSummary:
        require_context(organization_id, user_id)

        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name is required")
        if len(name) > PROJECT_NAME_MAX_LENGTH:
            raise ValidationError(
                f"Project name must be less than {PROJECT_NAME_MAX_LENGTH} characters"
            )

        try:
            project_status = ProjectStatus(status)
        except ValueError:
            raise ValidationError(
                f"Invalid status. Must be one of: {', '.join(s.value for s in ProjectStatus)}"
            )

        color = color or DEFAULT_PROJECT_COLOR
        if not HEX_COLOR_RE.match(color):
            raise ValidationError("Invalid color format. Must be a hex color like #3B82F6")

        workflow = None
        if workflow_id is not None:
            result = await self.session.execute(
                select(Workflow).where(
                    Workflow.id == workflow_id,
                    Workflow.organization_id == organization_id,
                )
            )
            workflow = result.scalar_one_or_none()
            if not workflow:
                raise NotFoundError("Workflow not found")

        project = Project(
            organization_id=organization_id,
            name=name,
            client_name=client_name.strip() if client_name else None,
            description=description.strip() if description else None,
            status=project_status,
            color=color,
            workflow_id=workflow.id if workflow else None,
            created_by=user_id,
        )
        self.session.add(project)
        await self.session.flush()

        self.audit.log_event(
            organization_id=organization_id,
            user_id=user_id,
            action=AuditAction.CREATE,
            resource_type="project",
            resource_id=project.id,
            details={"name": name, "workflow_id": str(workflow.id) if workflow else None},
        )
        logger.info(f"Created project {project.id} in organization {organization_id}")
        return ProjectSummary(project=project, asset_count=0, workflow=workflow)

    async def list_projects(
        self,
        organization_id: UUID,
        user_id: UUID,
        status: str | None = None,
    ) -> list[ProjectSummary]:
        require_context(organization_id, user_id)

        asset_counts = (
            select(Asset.project_id, func.count(Asset.id).label("asset_count"))
            .where(Asset.organization_id == organization_id)
            .group_by(Asset.project_id)
            .subquery()
        )
        query = (
            select(Project, func.coalesce(asset_counts.c.asset_count, 0))
            .outerjoin(asset_counts, asset_counts.c.project_id == Project.id)
            .where(Project.organization_id == organization_id)
            .order_by(Project.created_at.desc())
        )
        if status is not None:
            try:
                query = query.where(Project.status == ProjectStatus(status))
            except ValueError:
                raise ValidationError(
                    f"Invalid status. Must be one of: {', '.join(s.value for s in ProjectStatus)}"
                )

        result = await self.session.execute(query)
        return [ProjectSummary(project=p, asset_count=count) for p, count in result.all()]

    async def get_project(self, project_id: UUID, organization_id: UUID, user_id: UUID) -> ProjectSummary:
        require_context(organization_id, user_id)
        project = await self._get_project(project_id, organization_id)
        workflow = await self.session.get(Workflow, project.workflow_id) if project.workflow_id else None
        return ProjectSummary(
            project=project,
            asset_count=await self._asset_count(project.id),
            workflow=workflow,
        )

    # =========================================================================
    # STAGE REVIEWERS
    # =========================================================================

    async def list_stage_reviewers(
        self,
        project_id: UUID,
        organization_id: UUID,
        user_id: UUID,
    ) -> list[StageReviewerGroup]:
        """Reviewers grouped by stage order, ascending."""
        require_context(organization_id, user_id)
        project = await self._get_project(project_id, organization_id)

        result = await self.session.execute(
            select(ProjectStageReviewer)
            .where(ProjectStageReviewer.project_id == project.id)
            .order_by(ProjectStageReviewer.stage_order, ProjectStageReviewer.created_at)
        )
        groups: dict[int, list[ProjectStageReviewer]] = {}
        for reviewer in result.scalars().all():
            groups.setdefault(reviewer.stage_order, []).append(reviewer)
        return [StageReviewerGroup(stage_order=k, reviewers=v) for k, v in sorted(groups.items())]

    async def add_stage_reviewer(
        self,
        project_id: UUID,
        organization_id: UUID,
        acting_user_id: UUID,
        stage_order: int,
        reviewer_user_id: UUID,
    ) -> ProjectStageReviewer:
        require_context(organization_id, acting_user_id)
        project = await self._get_project(project_id, organization_id)
        await self._require_manager(project, acting_user_id)

        if not project.workflow_id:
            raise InvalidStateError("Project has no workflow. Assign a workflow before adding reviewers")
        workflow = await self.session.get(Workflow, project.workflow_id)

        if not isinstance(stage_order, int) or stage_order < 1:
            raise ValidationError("Stage order must be a positive number")
        if workflow.get_stage(stage_order) is None:
            raise ValidationError(f"Stage {stage_order} does not exist in this project's workflow")

        result = await self.session.execute(
            select(User)
            .join(OrganizationMember, OrganizationMember.user_id == User.id)
            .where(
                User.id == reviewer_user_id,
                User.deleted_at.is_(None),
                OrganizationMember.organization_id == organization_id,
            )
        )
        reviewer_user = result.scalar_one_or_none()
        if not reviewer_user:
            raise NotFoundError("User not found in this organization")

        existing = await self.session.execute(
            select(ProjectStageReviewer.id).where(
                ProjectStageReviewer.project_id == project.id,
                ProjectStageReviewer.stage_order == stage_order,
                ProjectStageReviewer.user_id == reviewer_user.id,
            )
        )
        if existing.first() is not None:
            raise InvalidStateError("User is already a reviewer for this stage")

        reviewer = ProjectStageReviewer(
            project_id=project.id,
            stage_order=stage_order,
            user_id=reviewer_user.id,
            user_name=reviewer_user.name,
            user_email=reviewer_user.email,
            user_image_url=reviewer_user.avatar_url,
            added_by=acting_user_id,
        )
        self.session.add(reviewer)
        await self.session.flush()

        self.audit.log_event(
            organization_id=organization_id,
            user_id=acting_user_id,
            action=AuditAction.CREATE,
            resource_type="project_stage_reviewer",
            resource_id=reviewer.id,
            details={
                "project_id": str(project.id),
                "stage_order": stage_order,
                "user_id": str(reviewer_user.id),
            },
        )
        return reviewer

    async def remove_stage_reviewer(
        self,
        project_id: UUID,
        reviewer_id: UUID,
        organization_id: UUID,
        acting_user_id: UUID,
    ) -> None:
        require_context(organization_id, acting_user_id)
        project = await self._get_project(project_id, organization_id)
        await self._require_manager(project, acting_user_id)

        result = await self.session.execute(
            select(ProjectStageReviewer).where(
                ProjectStageReviewer.id == reviewer_id,
                ProjectStageReviewer.project_id == project.id,
            )
        )
        reviewer = result.scalar_one_or_none()
        if not reviewer:
            raise NotFoundError("Reviewer not found")

        self.audit.log_event(
            organization_id=organization_id,
            user_id=acting_user_id,
            action=AuditAction.DELETE,
            resource_type="project_stage_reviewer",
            resource_id=reviewer.id,
            details={"project_id": str(project.id), "stage_order": reviewer.stage_order},
        )
        await self.session.delete(reviewer)
        await self.session.flush()

    # =========================================================================
    # PROJECT ASSETS
    # =========================================================================

    async def list_project_assets(
        self,
        project_id: UUID,
        organization_id: UUID,
        user_id: UUID,
    ) -> list[AssetDetail]:
        """Assets in a project, newest first, each with its derived status."""
        require_context(organization_id, user_id)
        project = await self._get_project(project_id, organization_id)
        workflow = await self.session.get(Workflow, project.workflow_id) if project.workflow_id else None

        result = await self.session.execute(
            select(Asset)
            .where(Asset.project_id == project.id, Asset.organization_id == organization_id)
            .order_by(Asset.created_at.desc())
        )
        assets = result.scalars().all()
        if not assets:
            return []

        progress_result = await self.session.execute(
            select(StageProgress)
            .where(StageProgress.asset_id.in_([a.id for a in assets]))
            .order_by(StageProgress.stage_order)
            .execution_options(populate_existing=True)
        )
        rows_by_asset: dict[UUID, list[StageProgress]] = {}
        for row in progress_result.scalars().all():
            rows_by_asset.setdefault(row.asset_id, []).append(row)

        details = []
        for asset in assets:
            rows = rows_by_asset.get(asset.id, [])
            derived = derive_progress_status(rows)
            details.append(
                AssetDetail(
                    asset=asset,
                    current_stage=derived.current_stage,
                    overall_status=derived.overall_status,
                    progress=[StageProgressView.from_row(r, workflow) for r in rows],
                )
            )
        return details

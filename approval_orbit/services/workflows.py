"""Workflow service: organization-owned approval stage definitions."""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AuditAction, Project, StageColor, Workflow
from .approval_engine import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    is_org_admin,
    require_context,
)
from .audit import AuditService

logger = logging.getLogger(__name__)

VALID_STAGE_COLORS = [c.value for c in StageColor]


@dataclass
class WorkflowSummary:
    workflow: Workflow
    stage_count: int
    project_count: int


def validate_stages(stages: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Check a stage list and return it normalized to ``{order, name, color}``.

    Stages must be non-empty, named, numbered 1..n in list order and use a
    palette color.
    """
    if not stages:
        raise ValidationError("Workflow must have at least one stage")

    normalized = []
    for i, stage in enumerate(stages):
        name = (stage.get("name") or "").strip()
        if not name:
            raise ValidationError(f"Stage {i + 1} must have a name")
        if stage.get("order") != i + 1:
            raise ValidationError("Stage orders must be sequential starting from 1")
        color = stage.get("color")
        if color not in VALID_STAGE_COLORS:
            raise ValidationError(
                f"Stage {i + 1} has invalid color. Must be one of: {', '.join(VALID_STAGE_COLORS)}"
            )
        normalized.append({"order": i + 1, "name": name, "color": color})
    return normalized


class WorkflowService:
    """Service for workflow CRUD. Mutations are restricted to org admins."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit = AuditService(session)

    async def _require_admin(self, organization_id: UUID, user_id: UUID) -> None:
        if not await is_org_admin(self.session, organization_id, user_id):
            raise ForbiddenError("Only organization admins can manage workflows")

    async def _project_count(self, workflow_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(Project.id)).where(Project.workflow_id == workflow_id)
        )
        return result.scalar_one()

    async def _clear_default(self, organization_id: UUID, keep_id: UUID | None = None) -> None:
        query = update(Workflow).where(
            Workflow.organization_id == organization_id,
            Workflow.is_default.is_(True),
        )
        if keep_id is not None:
            query = query.where(Workflow.id != keep_id)
        await self.session.execute(
            query.values(is_default=False).execution_options(synchronize_session=False)
        )

    async def list_workflows(
        self,
        organization_id: UUID,
        user_id: UUID,
        include_archived: bool = False,
    ) -> list[WorkflowSummary]:
        """Workflows for the org, default first then newest."""
        require_context(organization_id, user_id)

        project_counts = (
            select(Project.workflow_id, func.count(Project.id).label("project_count"))
            .where(Project.organization_id == organization_id)
            .group_by(Project.workflow_id)
            .subquery()
        )
        query = (
            select(Workflow, func.coalesce(project_counts.c.project_count, 0))
            .outerjoin(project_counts, project_counts.c.workflow_id == Workflow.id)
            .where(Workflow.organization_id == organization_id)
            .order_by(Workflow.is_default.desc(), Workflow.created_at.desc())
            .execution_options(populate_existing=True)
        )
        if not include_archived:
            query = query.where(Workflow.is_archived.is_(False))

        result = await self.session.execute(query)
        return [
            WorkflowSummary(workflow=wf, stage_count=wf.stage_count, project_count=count)
            for wf, count in result.all()
        ]

    async def get_workflow(self, workflow_id: UUID, organization_id: UUID, user_id: UUID) -> WorkflowSummary:
        require_context(organization_id, user_id)
        result = await self.session.execute(
            select(Workflow)
            .where(Workflow.id == workflow_id, Workflow.organization_id == organization_id)
            .execution_options(populate_existing=True)
        )
        workflow = result.scalar_one_or_none()
        if not workflow:
            raise NotFoundError("Workflow not found")
        return WorkflowSummary(
            workflow=workflow,
            stage_count=workflow.stage_count,
            project_count=await self._project_count(workflow.id),
        )

    async def create_workflow(
        self,
        organization_id: UUID,
        user_id: UUID,
        name: str,
        stages: list[dict[str, Any]],
        description: str | None = None,
        is_default: bool = False,
    ) -> WorkflowSummary:
        require_context(organization_id, user_id)
        await self._require_admin(organization_id, user_id)

        if not name or not name.strip():
            raise ValidationError("Workflow name is required")
        normalized = validate_stages(stages)

        if is_default:
            await self._clear_default(organization_id)

        workflow = Workflow(
            organization_id=organization_id,
            name=name.strip(),
            description=description.strip() if description else None,
            stages=normalized,
            is_default=is_default,
            is_archived=False,
            created_by=user_id,
        )
        self.session.add(workflow)
        await self.session.flush()

        self.audit.log_event(
            organization_id=organization_id,
            user_id=user_id,
            action=AuditAction.CREATE,
            resource_type="workflow",
            resource_id=workflow.id,
            details={"name": workflow.name, "stage_count": len(normalized)},
        )
        logger.info(f"Created workflow {workflow.id} with {len(normalized)} stage(s)")
        return WorkflowSummary(workflow=workflow, stage_count=len(normalized), project_count=0)

    async def update_workflow(
        self,
        workflow_id: UUID,
        organization_id: UUID,
        user_id: UUID,
        name: str | None = None,
        description: str | None = None,
        stages: list[dict[str, Any]] | None = None,
        is_default: bool | None = None,
        is_archived: bool | None = None,
    ) -> WorkflowSummary:
        """Partial update. Stages are frozen once any project uses the workflow."""
        summary = await self.get_workflow(workflow_id, organization_id, user_id)
        await self._require_admin(organization_id, user_id)
        workflow = summary.workflow

        changes: dict[str, Any] = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Workflow name is required")
            workflow.name = name.strip()
            changes["name"] = workflow.name

        if description is not None:
            workflow.description = description.strip() or None
            changes["description"] = workflow.description

        if stages is not None:
            normalized = validate_stages(stages)
            if normalized != workflow.stages:
                if summary.project_count > 0:
                    raise InvalidStateError(
                        f"Cannot change stages: {summary.project_count} project(s) are using this workflow"
                    )
                workflow.stages = normalized
                changes["stage_count"] = len(normalized)

        if is_default is not None:
            if is_default:
                await self._clear_default(organization_id, keep_id=workflow.id)
            workflow.is_default = is_default
            changes["is_default"] = is_default

        if is_archived is not None:
            workflow.is_archived = is_archived
            changes["is_archived"] = is_archived

        await self.session.flush()

        if changes:
            self.audit.log_event(
                organization_id=organization_id,
                user_id=user_id,
                action=AuditAction.UPDATE,
                resource_type="workflow",
                resource_id=workflow.id,
                details=changes,
            )
        return WorkflowSummary(
            workflow=workflow,
            stage_count=workflow.stage_count,
            project_count=summary.project_count,
        )

    async def delete_workflow(self, workflow_id: UUID, organization_id: UUID, user_id: UUID) -> None:
        summary = await self.get_workflow(workflow_id, organization_id, user_id)
        await self._require_admin(organization_id, user_id)

        if summary.project_count > 0:
            raise InvalidStateError(
                f"Cannot delete workflow: {summary.project_count} project(s) are using this workflow. "
                "Please archive it instead or reassign the projects first."
            )

        self.audit.log_event(
            organization_id=organization_id,
            user_id=user_id,
            action=AuditAction.DELETE,
            resource_type="workflow",
            resource_id=summary.workflow.id,
            details={"name": summary.workflow.name},
        )
        await self.session.delete(summary.workflow)
        await self.session.flush()
        logger.info(f"Deleted workflow {workflow_id}")

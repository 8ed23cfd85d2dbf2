"""API routes for projects and their stage reviewers."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..core import OrgContextDep, SessionDep
from ..schemas import (
    MockupResponse,
    ProjectCreate,
    ProjectResponse,
    StageReviewerCreate,
    StageReviewerGroupResponse,
    StageReviewerResponse,
)
from ..services import ProjectService, ProjectSummary
from .mockups import mockup_to_response, workflow_to_ref

router = APIRouter(prefix="/projects", tags=["projects"])


def get_project_service(session: SessionDep) -> ProjectService:
    return ProjectService(session)


ProjectServiceDep = Annotated[ProjectService, Depends(get_project_service)]


def project_to_response(summary: ProjectSummary) -> ProjectResponse:
    project = summary.project
    return ProjectResponse(
        id=project.id,
        organization_id=project.organization_id,
        name=project.name,
        client_name=project.client_name,
        description=project.description,
        status=project.status.value,
        color=project.color,
        workflow_id=project.workflow_id,
        created_by=project.created_by,
        created_at=project.created_at,
        updated_at=project.updated_at,
        asset_count=summary.asset_count,
        workflow=workflow_to_ref(summary.workflow),
    )


# =============================================================================
# PROJECTS
# =============================================================================


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    current_user: OrgContextDep,
    service: ProjectServiceDep,
    status_filter: str | None = Query(default=None, alias="status"),
):
    summaries = await service.list_projects(
        current_user.organization_id, current_user.id, status=status_filter
    )
    return [project_to_response(s) for s in summaries]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    current_user: OrgContextDep,
    service: ProjectServiceDep,
):
    summary = await service.create_project(
        current_user.organization_id,
        current_user.id,
        name=data.name,
        client_name=data.client_name,
        description=data.description,
        status=data.status,
        color=data.color,
        workflow_id=data.workflow_id,
    )
    return project_to_response(summary)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    current_user: OrgContextDep,
    service: ProjectServiceDep,
):
    summary = await service.get_project(project_id, current_user.organization_id, current_user.id)
    return project_to_response(summary)


@router.get("/{project_id}/mockups", response_model=list[MockupResponse])
async def list_project_mockups(
    project_id: UUID,
    current_user: OrgContextDep,
    service: ProjectServiceDep,
):
    """Mockups in a project with their current stage and overall status."""
    details = await service.list_project_assets(
        project_id, current_user.organization_id, current_user.id
    )
    return [mockup_to_response(d) for d in details]


# =============================================================================
# STAGE REVIEWERS
# =============================================================================


@router.get("/{project_id}/reviewers", response_model=list[StageReviewerGroupResponse])
async def list_stage_reviewers(
    project_id: UUID,
    current_user: OrgContextDep,
    service: ProjectServiceDep,
):
    """Stage reviewers grouped by stage order."""
    groups = await service.list_stage_reviewers(
        project_id, current_user.organization_id, current_user.id
    )
    return [
        StageReviewerGroupResponse(
            stage_order=g.stage_order,
            reviewers=[StageReviewerResponse.model_validate(r) for r in g.reviewers],
        )
        for g in groups
    ]


@router.post(
    "/{project_id}/reviewers",
    response_model=StageReviewerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_stage_reviewer(
    project_id: UUID,
    data: StageReviewerCreate,
    current_user: OrgContextDep,
    service: ProjectServiceDep,
):
    reviewer = await service.add_stage_reviewer(
        project_id,
        current_user.organization_id,
        current_user.id,
        stage_order=data.stage_order,
        reviewer_user_id=data.user_id,
    )
    return StageReviewerResponse.model_validate(reviewer)


@router.delete("/{project_id}/reviewers/{reviewer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_stage_reviewer(
    project_id: UUID,
    reviewer_id: UUID,
    current_user: OrgContextDep,
    service: ProjectServiceDep,
):
    await service.remove_stage_reviewer(
        project_id, reviewer_id, current_user.organization_id, current_user.id
    )

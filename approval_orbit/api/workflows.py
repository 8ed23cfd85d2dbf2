"""API routes for workflow management."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..core import OrgContextDep, SessionDep
from ..schemas import WorkflowCreate, WorkflowResponse, WorkflowUpdate
from ..services import WorkflowService, WorkflowSummary

router = APIRouter(prefix="/workflows", tags=["workflows"])


def get_workflow_service(session: SessionDep) -> WorkflowService:
    return WorkflowService(session)


WorkflowServiceDep = Annotated[WorkflowService, Depends(get_workflow_service)]


def workflow_to_response(summary: WorkflowSummary) -> WorkflowResponse:
    wf = summary.workflow
    return WorkflowResponse(
        id=wf.id,
        organization_id=wf.organization_id,
        name=wf.name,
        description=wf.description,
        stages=wf.stages,
        is_default=wf.is_default,
        is_archived=wf.is_archived,
        created_by=wf.created_by,
        created_at=wf.created_at,
        updated_at=wf.updated_at,
        stage_count=summary.stage_count,
        project_count=summary.project_count,
    )


@router.get("", response_model=list[WorkflowResponse])
async def list_workflows(
    current_user: OrgContextDep,
    service: WorkflowServiceDep,
    include_archived: bool = Query(default=False),
):
    """List workflows, default first."""
    summaries = await service.list_workflows(
        current_user.organization_id,
        current_user.id,
        include_archived=include_archived,
    )
    return [workflow_to_response(s) for s in summaries]


@router.post("", response_model=WorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    data: WorkflowCreate,
    current_user: OrgContextDep,
    service: WorkflowServiceDep,
):
    """Create a workflow (admins only)."""
    summary = await service.create_workflow(
        current_user.organization_id,
        current_user.id,
        name=data.name,
        description=data.description,
        stages=[s.model_dump() for s in data.stages],
        is_default=data.is_default,
    )
    return workflow_to_response(summary)


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: UUID,
    current_user: OrgContextDep,
    service: WorkflowServiceDep,
):
    summary = await service.get_workflow(workflow_id, current_user.organization_id, current_user.id)
    return workflow_to_response(summary)


@router.patch("/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: UUID,
    data: WorkflowUpdate,
    current_user: OrgContextDep,
    service: WorkflowServiceDep,
):
    """Partially update a workflow (admins only)."""
    summary = await service.update_workflow(
        workflow_id,
        current_user.organization_id,
        current_user.id,
        name=data.name,
        description=data.description,
        stages=[s.model_dump() for s in data.stages] if data.stages is not None else None,
        is_default=data.is_default,
        is_archived=data.is_archived,
    )
    return workflow_to_response(summary)


@router.delete("/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(
    workflow_id: UUID,
    current_user: OrgContextDep,
    service: WorkflowServiceDep,
):
    """Delete a workflow no project uses (admins only)."""
    await service.delete_workflow(workflow_id, current_user.organization_id, current_user.id)

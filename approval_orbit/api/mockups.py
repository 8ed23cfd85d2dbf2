"""
Mockup API Routes: stage approvals and the final approval gate.

1. GET  /mockups/{id}/approvals - Approvals grouped by stage with progress
2. POST /mockups/{id}/approve - Record the caller's approval of the current stage
3. POST /mockups/{id}/stage-progress/{order} - Approve or request changes on a stage
4. POST /mockups/{id}/final-approve - Terminal final approval
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status

from ..core import OrgContextDep, SessionDep
from ..models import Workflow
from ..schemas import (
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
    WorkflowRef,
)
from ..services import (
    ApprovalEngine,
    ApprovalNotifier,
    AssetDetail,
    EmailMessage,
    ReviewService,
    StageApprovalResult,
    StageProgressView,
)

router = APIRouter(prefix="/mockups", tags=["mockups"])


def get_approval_engine(session: SessionDep) -> ApprovalEngine:
    return ApprovalEngine(session)


def get_review_service(session: SessionDep) -> ReviewService:
    return ReviewService(session)


def get_notifier() -> ApprovalNotifier:
    return ApprovalNotifier()


ApprovalEngineDep = Annotated[ApprovalEngine, Depends(get_approval_engine)]
ReviewServiceDep = Annotated[ReviewService, Depends(get_review_service)]
NotifierDep = Annotated[ApprovalNotifier, Depends(get_notifier)]


# =============================================================================
# HELPERS
# =============================================================================


def queue_notifications(
    background_tasks: BackgroundTasks,
    notifier: ApprovalNotifier,
    messages: list[EmailMessage],
) -> None:
    """Deliver emails after the response has been sent."""
    for message in messages:
        background_tasks.add_task(notifier.send, message)


def progress_to_response(view: StageProgressView) -> StageProgressResponse:
    return StageProgressResponse(
        id=view.id,
        stage_order=view.stage_order,
        stage_name=view.stage_name,
        stage_color=view.stage_color,
        status=view.status.value,
        approvals_required=view.approvals_required,
        approvals_received=view.approvals_received,
        is_complete=view.is_complete,
        reviewed_by=view.reviewed_by,
        reviewed_by_name=view.reviewed_by_name,
        reviewed_at=view.reviewed_at,
        notes=view.notes,
    )


def workflow_to_ref(workflow: Workflow | None) -> WorkflowRef | None:
    if workflow is None:
        return None
    return WorkflowRef(id=workflow.id, name=workflow.name, stages=workflow.stages)


def mockup_to_response(detail: AssetDetail) -> MockupResponse:
    asset = detail.asset
    return MockupResponse(
        id=asset.id,
        organization_id=asset.organization_id,
        project_id=asset.project_id,
        folder_id=asset.folder_id,
        name=asset.name,
        image_url=asset.image_url,
        created_by=asset.created_by,
        created_at=asset.created_at,
        updated_at=asset.updated_at,
        final_approved_by=asset.final_approved_by,
        final_approved_at=asset.final_approved_at,
        final_approval_notes=asset.final_approval_notes,
        current_stage=detail.current_stage,
        overall_status=detail.overall_status.value,
        progress=[progress_to_response(v) for v in detail.progress],
    )


def stage_result_to_response(result: StageApprovalResult) -> StageApprovalResponse:
    return StageApprovalResponse(
        message=result.message,
        progress=progress_to_response(result.progress),
        stage_complete=result.stage_complete,
        advanced_to_next_stage=result.advanced_to_next_stage,
        next_stage_name=result.next_stage_name,
        pending_final_approval=result.pending_final_approval,
    )


def reviewer_to_response(reviewer) -> AssetReviewerResponse:
    return AssetReviewerResponse(
        id=reviewer.id,
        asset_id=reviewer.asset_id,
        reviewer_id=reviewer.reviewer_id,
        reviewer_name=reviewer.reviewer_name,
        reviewer_email=reviewer.reviewer_email,
        reviewer_color=reviewer.reviewer_color,
        status=reviewer.status.value,
        invitation_message=reviewer.invitation_message,
        response_note=reviewer.response_note,
        invited_by=reviewer.invited_by,
        viewed_at=reviewer.viewed_at,
        responded_at=reviewer.responded_at,
        created_at=reviewer.created_at,
    )


# =============================================================================
# MOCKUP CRUD
# =============================================================================


@router.post("", response_model=MockupResponse, status_code=status.HTTP_201_CREATED)
async def create_mockup(
    data: MockupCreate,
    current_user: OrgContextDep,
    engine: ApprovalEngineDep,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
):
    """Create a mockup. Placing it in a project starts stage 1 review."""
    detail = await engine.create_asset(
        organization_id=current_user.organization_id,
        user_id=current_user.id,
        name=data.name,
        image_url=data.image_url,
        project_id=data.project_id,
        folder_id=data.folder_id,
    )
    queue_notifications(background_tasks, notifier, await engine.review_started_notifications(detail.asset))
    return mockup_to_response(detail)


@router.get("/{mockup_id}", response_model=MockupResponse)
async def get_mockup(
    mockup_id: UUID,
    current_user: OrgContextDep,
    engine: ApprovalEngineDep,
):
    """Get a mockup with its current stage and overall status."""
    detail = await engine.get_asset(mockup_id, current_user.organization_id, current_user.id)
    return mockup_to_response(detail)


@router.patch("/{mockup_id}", response_model=MockupResponse)
async def update_mockup(
    mockup_id: UUID,
    data: MockupUpdate,
    current_user: OrgContextDep,
    engine: ApprovalEngineDep,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
):
    """Rename a mockup or move it between projects (restarts its review)."""
    detail = await engine.update_asset(
        mockup_id,
        current_user.organization_id,
        current_user.id,
        name=data.name,
        image_url=data.image_url,
    )
    if "project_id" in data.model_fields_set:
        detail = await engine.assign_asset_to_project(
            mockup_id,
            current_user.organization_id,
            current_user.id,
            data.project_id,
        )
        queue_notifications(background_tasks, notifier, await engine.review_started_notifications(detail.asset))
    return mockup_to_response(detail)


# =============================================================================
# STAGE APPROVALS
# =============================================================================


@router.get("/{mockup_id}/approvals", response_model=ApprovalSummaryResponse)
async def get_approvals(
    mockup_id: UUID,
    current_user: OrgContextDep,
    engine: ApprovalEngineDep,
):
    """Approvals grouped by stage, per-stage progress and the final approval."""
    summary = await engine.get_approval_summary(
        mockup_id, current_user.organization_id, current_user.id
    )
    approvals_by_stage = {
        order: [UserApprovalResponse.model_validate(a) for a in approvals]
        for order, approvals in summary.approvals_by_stage.items()
    }
    return ApprovalSummaryResponse(
        approvals_by_stage=approvals_by_stage,
        progress_summary={
            order: ApprovalProgressResponse(
                stage_order=p.stage_order,
                stage_name=p.stage_name,
                stage_color=p.stage_color,
                approvals_required=p.approvals_required,
                approvals_received=p.approvals_received,
                is_complete=p.is_complete,
                user_approvals=approvals_by_stage.get(order, []),
            )
            for order, p in summary.progress_summary.items()
        },
        final_approval=(
            FinalApprovalResponse(
                approved_by=summary.final_approval.approved_by,
                approved_at=summary.final_approval.approved_at,
                notes=summary.final_approval.notes,
            )
            if summary.final_approval
            else None
        ),
    )


@router.post("/{mockup_id}/approve", response_model=StageApprovalResponse)
async def approve_stage(
    mockup_id: UUID,
    current_user: OrgContextDep,
    engine: ApprovalEngineDep,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
    data: StageApprovalRequest | None = None,
):
    """Record the caller's approval for the stage currently in review."""
    result = await engine.submit_stage_approval(
        mockup_id,
        current_user.organization_id,
        current_user.id,
        notes=data.notes if data else None,
    )
    queue_notifications(background_tasks, notifier, result.notifications)
    return stage_result_to_response(result)


@router.get("/{mockup_id}/stage-progress", response_model=StageProgressListResponse)
async def get_stage_progress(
    mockup_id: UUID,
    current_user: OrgContextDep,
    engine: ApprovalEngineDep,
):
    """Stage progress rows with stage names and colors."""
    overview = await engine.get_stage_progress(
        mockup_id, current_user.organization_id, current_user.id
    )
    return StageProgressListResponse(
        progress=[progress_to_response(v) for v in overview.stages],
        workflow=workflow_to_ref(overview.workflow),
    )


@router.post("/{mockup_id}/stage-progress/{stage_order}", response_model=StageApprovalResponse)
async def review_stage(
    mockup_id: UUID,
    stage_order: int,
    data: StageReviewRequest,
    current_user: OrgContextDep,
    engine: ApprovalEngineDep,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
):
    """Approve a stage outright or request changes (notes required)."""
    result = await engine.review_stage(
        mockup_id,
        stage_order,
        current_user.organization_id,
        current_user.id,
        action=data.action,
        notes=data.notes,
    )
    queue_notifications(background_tasks, notifier, result.notifications)
    return stage_result_to_response(result)


@router.post("/{mockup_id}/resubmit", response_model=MockupResponse)
async def resubmit_mockup(
    mockup_id: UUID,
    current_user: OrgContextDep,
    engine: ApprovalEngineDep,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
):
    """Restart review from stage 1 after changes were requested."""
    detail = await engine.resubmit_for_review(
        mockup_id, current_user.organization_id, current_user.id
    )
    queue_notifications(background_tasks, notifier, await engine.review_started_notifications(detail.asset))
    return mockup_to_response(detail)


@router.post("/{mockup_id}/final-approve", response_model=FinalApproveResponse)
async def final_approve(
    mockup_id: UUID,
    current_user: OrgContextDep,
    engine: ApprovalEngineDep,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
    data: FinalApprovalRequest | None = None,
):
    """Give final approval. Only the project owner or an org admin may."""
    result = await engine.record_final_approval(
        mockup_id,
        current_user.organization_id,
        current_user.id,
        notes=data.notes if data else None,
    )
    queue_notifications(background_tasks, notifier, result.notifications)
    detail = await engine.get_asset(mockup_id, current_user.organization_id, current_user.id)
    return FinalApproveResponse(
        message="Final approval granted",
        mockup=mockup_to_response(detail),
        progress=[progress_to_response(v) for v in result.progress],
        final_approval=FinalApprovalResponse(
            approved_by=result.final_approval.approved_by,
            approved_at=result.final_approval.approved_at,
            notes=result.final_approval.notes,
        ),
    )


# =============================================================================
# INVITED REVIEWERS
# =============================================================================


@router.get("/{mockup_id}/reviewers", response_model=list[AssetReviewerResponse])
async def list_reviewers(
    mockup_id: UUID,
    current_user: OrgContextDep,
    reviews: ReviewServiceDep,
):
    reviewers = await reviews.list_asset_reviewers(
        mockup_id, current_user.organization_id, current_user.id
    )
    return [reviewer_to_response(r) for r in reviewers]


@router.post(
    "/{mockup_id}/reviewers",
    response_model=list[AssetReviewerResponse],
    status_code=status.HTTP_201_CREATED,
)
async def invite_reviewers(
    mockup_id: UUID,
    data: ReviewerInviteRequest,
    current_user: OrgContextDep,
    reviews: ReviewServiceDep,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
):
    """Invite org members to review a mockup (creator only)."""
    result = await reviews.invite_reviewers(
        mockup_id,
        current_user.organization_id,
        current_user.id,
        reviewer_ids=data.reviewer_ids,
        message=data.message,
    )
    queue_notifications(background_tasks, notifier, result.notifications)
    return [reviewer_to_response(r) for r in result.reviewers]


@router.patch("/{mockup_id}/reviewers/{reviewer_id}", response_model=AssetReviewerResponse)
async def update_reviewer_status(
    mockup_id: UUID,
    reviewer_id: UUID,
    data: ReviewerStatusRequest,
    current_user: OrgContextDep,
    reviews: ReviewServiceDep,
    notifier: NotifierDep,
    background_tasks: BackgroundTasks,
):
    """An invited reviewer records their own verdict."""
    result = await reviews.set_reviewer_status(
        mockup_id,
        reviewer_id,
        current_user.id,
        current_user.organization_id,
        status=data.status,
        note=data.note,
    )
    queue_notifications(background_tasks, notifier, result.notifications)
    return reviewer_to_response(result.reviewer)

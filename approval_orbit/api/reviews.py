"""API routes for the current user's review queue."""

from typing import Annotated

from fastapi import APIRouter, Depends

from ..core import OrgContextDep, SessionDep
from ..models import OverallStatus
from ..schemas import (
    MyStageReviewsResponse,
    PendingStageReviewResponse,
    ProjectReviewGroupResponse,
)
from ..services import AssetDetail, ReviewService
from .mockups import mockup_to_response

router = APIRouter(prefix="/reviews", tags=["reviews"])


def get_review_service(session: SessionDep) -> ReviewService:
    return ReviewService(session)


ReviewServiceDep = Annotated[ReviewService, Depends(get_review_service)]


@router.get("/my-stage-reviews", response_model=MyStageReviewsResponse)
async def my_stage_reviews(
    current_user: OrgContextDep,
    service: ReviewServiceDep,
):
    """Mockups waiting on the caller at their current stage, by project."""
    groups = await service.list_my_stage_reviews(current_user.organization_id, current_user.id)

    projects = []
    total = 0
    for group in groups:
        reviews = []
        for review in group.reviews:
            reviews.append(
                PendingStageReviewResponse(
                    mockup=mockup_to_response(
                        AssetDetail(
                            asset=review.asset,
                            current_stage=review.stage_order,
                            overall_status=OverallStatus.IN_PROGRESS,
                        )
                    ),
                    stage_order=review.stage_order,
                    stage_name=review.stage_name,
                    stage_color=review.stage_color,
                    approvals_required=review.approvals_required,
                    approvals_received=review.approvals_received,
                    has_approved=review.has_approved,
                )
            )
        total += len(reviews)
        projects.append(
            ProjectReviewGroupResponse(
                project_id=group.project_id,
                project_name=group.project_name,
                project_color=group.project_color,
                reviews=reviews,
            )
        )
    return MyStageReviewsResponse(projects=projects, total=total)

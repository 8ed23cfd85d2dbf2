"""Tests for invited mockup reviewers and the stage review queue."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from approval_orbit.models import AuditAction, ReviewerStatus
from approval_orbit.services.approval_engine import (
    ApprovalEngine,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from approval_orbit.services.audit import AuditService
from approval_orbit.services.reviews import REVIEWER_COLORS, ReviewService


@pytest.fixture
def service(session: AsyncSession) -> ReviewService:
    return ReviewService(session)


@pytest.fixture
async def mockup(session, world):
    detail = await ApprovalEngine(session).create_asset(
        world.org_id, world.owner.id, "Holiday Card", project_id=world.project.id
    )
    return detail.asset


class TestInviteReviewers:
    async def test_invites_members_and_notifies(self, service, world, mockup):
        result = await service.invite_reviewers(
            mockup.id, world.org_id, world.owner.id,
            [world.member.id, world.reviewer_a.id],
            message="Quick look please",
        )

        by_user = {r.reviewer_id: r for r in result.reviewers}
        assert by_user[world.member.id].reviewer_color == REVIEWER_COLORS[0]
        assert by_user[world.reviewer_a.id].reviewer_color == REVIEWER_COLORS[1]
        assert all(r.status == ReviewerStatus.PENDING for r in result.reviewers)

        [email] = result.notifications
        assert sorted(email.to) == sorted([world.member.email, world.reviewer_a.email])
        assert email.subject == "Olive Owner invited you to review Holiday Card"
        assert "Quick look please" in email.html

    async def test_colors_continue_after_existing(self, service, world, mockup):
        await service.invite_reviewers(
            mockup.id, world.org_id, world.owner.id, [world.member.id, world.reviewer_a.id]
        )
        result = await service.invite_reviewers(mockup.id, world.org_id, world.owner.id, [world.admin.id])

        assert result.reviewers[0].reviewer_color == REVIEWER_COLORS[2]

    async def test_non_members_are_skipped(self, service, world, mockup):
        result = await service.invite_reviewers(
            mockup.id, world.org_id, world.owner.id, [world.outsider.id, world.member.id]
        )
        assert [r.reviewer_id for r in result.reviewers] == [world.member.id]

    async def test_no_valid_reviewers(self, service, world, mockup):
        with pytest.raises(ValidationError, match="No valid reviewers found"):
            await service.invite_reviewers(mockup.id, world.org_id, world.owner.id, [world.outsider.id])

    async def test_duplicate_invite(self, service, world, mockup):
        await service.invite_reviewers(mockup.id, world.org_id, world.owner.id, [world.member.id])
        with pytest.raises(InvalidStateError):
            await service.invite_reviewers(mockup.id, world.org_id, world.owner.id, [world.member.id])

    async def test_only_creator_invites(self, service, world, mockup):
        with pytest.raises(NotFoundError):
            await service.invite_reviewers(mockup.id, world.org_id, world.admin.id, [world.member.id])

    async def test_list_reviewers(self, service, world, mockup):
        await service.invite_reviewers(mockup.id, world.org_id, world.owner.id, [world.member.id])

        reviewers = await service.list_asset_reviewers(mockup.id, world.org_id, world.admin.id)

        assert [r.reviewer_name for r in reviewers] == ["Mo Member"]


class TestSetReviewerStatus:
    @pytest.fixture
    async def invited(self, service, world, mockup):
        result = await service.invite_reviewers(
            mockup.id, world.org_id, world.owner.id, [world.member.id, world.reviewer_a.id]
        )
        return {r.reviewer_id: r for r in result.reviewers}

    async def test_records_verdict(self, session, service, world, mockup, invited):
        record = invited[world.member.id]
        result = await service.set_reviewer_status(
            mockup.id, record.id, world.member.id, world.org_id, "changes_requested", note="Logo too small"
        )

        reviewer = result.reviewer
        assert reviewer.id == record.id
        assert reviewer.status == ReviewerStatus.CHANGES_REQUESTED
        assert reviewer.response_note == "Logo too small"
        assert reviewer.responded_at is not None
        assert reviewer.viewed_at == reviewer.responded_at

        [email] = result.notifications
        assert email.to == [world.owner.email]
        assert "requested changes to" in email.html

        await session.flush()
        history = await AuditService(session).get_resource_history(
            world.org_id, "mockup_reviewer", reviewer.id
        )
        assert [entry.action for entry in history] == [AuditAction.RESPOND]
        assert history[0].details == {"mockup_id": str(mockup.id), "status": "changes_requested"}

    async def test_last_write_wins(self, service, world, mockup, invited):
        record = invited[world.member.id]
        await service.set_reviewer_status(
            mockup.id, record.id, world.member.id, world.org_id, "changes_requested"
        )
        result = await service.set_reviewer_status(
            mockup.id, record.id, world.member.id, world.org_id, "approved"
        )
        assert result.reviewer.status == ReviewerStatus.APPROVED
        assert result.reviewer.response_note is None

    async def test_invalid_status(self, service, world, mockup, invited):
        with pytest.raises(ValidationError):
            await service.set_reviewer_status(
                mockup.id, invited[world.member.id].id, world.member.id, world.org_id, "pending"
            )

    async def test_cannot_answer_on_another_reviewers_record(self, service, world, mockup, invited):
        other = invited[world.reviewer_a.id]

        with pytest.raises(ForbiddenError, match="your own review status"):
            await service.set_reviewer_status(
                mockup.id, other.id, world.member.id, world.org_id, "approved"
            )

        [reviewer] = [
            r for r in await service.list_asset_reviewers(mockup.id, world.org_id, world.owner.id)
            if r.id == other.id
        ]
        assert reviewer.status == ReviewerStatus.PENDING
        assert reviewer.responded_at is None

    async def test_user_id_is_not_a_record_id(self, service, world, mockup, invited):
        with pytest.raises(NotFoundError, match="Reviewer record not found"):
            await service.set_reviewer_status(
                mockup.id, world.member.id, world.member.id, world.org_id, "approved"
            )

    async def test_record_of_another_mockup(self, session, service, world, mockup, invited):
        other = await ApprovalEngine(session).create_asset(world.org_id, world.owner.id, "Other Card")

        with pytest.raises(NotFoundError):
            await service.set_reviewer_status(
                other.asset.id, invited[world.member.id].id, world.member.id, world.org_id, "approved"
            )


class TestMyStageReviews:
    async def test_lists_in_review_assignments(self, session, service, world, mockup):
        groups = await service.list_my_stage_reviews(world.org_id, world.reviewer_a.id)

        [group] = groups
        assert group.project_name == "Spring Campaign"
        [review] = group.reviews
        assert review.asset.id == mockup.id
        assert review.stage_order == 1
        assert review.stage_name == "Design Review"
        assert review.stage_color == "blue"
        assert (review.approvals_required, review.approvals_received) == (2, 0)
        assert review.has_approved is False

    async def test_marks_own_approval(self, session, service, world, mockup):
        await ApprovalEngine(session).submit_stage_approval(mockup.id, world.org_id, world.reviewer_a.id)

        [group] = await service.list_my_stage_reviews(world.org_id, world.reviewer_a.id)

        assert group.reviews[0].has_approved is True
        assert group.reviews[0].approvals_received == 1

    async def test_later_stage_reviewer_waits(self, session, service, world, mockup):
        assert await service.list_my_stage_reviews(world.org_id, world.reviewer_c.id) == []

        engine = ApprovalEngine(session)
        await engine.submit_stage_approval(mockup.id, world.org_id, world.reviewer_a.id)
        await engine.submit_stage_approval(mockup.id, world.org_id, world.reviewer_b.id)

        [group] = await service.list_my_stage_reviews(world.org_id, world.reviewer_c.id)
        assert group.reviews[0].stage_name == "Brand Check"
        assert await service.list_my_stage_reviews(world.org_id, world.reviewer_a.id) == []

    async def test_non_reviewer_has_nothing(self, service, world, mockup):
        assert await service.list_my_stage_reviews(world.org_id, world.member.id) == []

"""Tests for projects, stage reviewer assignment and project asset listing."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from approval_orbit.models import OverallStatus, ProjectStatus
from approval_orbit.services.approval_engine import (
    ApprovalEngine,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from approval_orbit.services.projects import ProjectService


@pytest.fixture
def service(session: AsyncSession) -> ProjectService:
    return ProjectService(session)


class TestCreateProject:
    async def test_defaults(self, service, world):
        summary = await service.create_project(world.org_id, world.member.id, name="Autumn Line")

        project = summary.project
        assert project.status == ProjectStatus.ACTIVE
        assert project.color == "#3B82F6"
        assert project.workflow_id is None
        assert project.created_by == world.member.id

    async def test_with_workflow(self, service, world):
        summary = await service.create_project(
            world.org_id,
            world.member.id,
            name="Autumn Line",
            color="#ff8800",
            workflow_id=world.workflow.id,
        )
        assert summary.workflow.id == world.workflow.id
        assert summary.project.color == "#ff8800"

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"name": ""}, "Project name is required"),
            ({"name": "x" * 101}, "less than 100 characters"),
            ({"name": "Ok", "status": "paused"}, "Invalid status"),
            ({"name": "Ok", "color": "blue"}, "Invalid color"),
        ],
    )
    async def test_validation(self, service, world, kwargs, message):
        with pytest.raises(ValidationError, match=message):
            await service.create_project(world.org_id, world.member.id, **kwargs)

    async def test_workflow_from_other_org(self, service, world):
        with pytest.raises(NotFoundError):
            await service.create_project(
                world.other_org_id, world.outsider.id, name="Steal", workflow_id=world.workflow.id
            )


class TestListProjects:
    async def test_includes_asset_count(self, session, service, world):
        engine = ApprovalEngine(session)
        await engine.create_asset(world.org_id, world.owner.id, "Card A", project_id=world.project.id)
        await engine.create_asset(world.org_id, world.owner.id, "Card B", project_id=world.project.id)

        summaries = await service.list_projects(world.org_id, world.owner.id)

        assert [(s.project.name, s.asset_count) for s in summaries] == [("Spring Campaign", 2)]

    async def test_status_filter(self, service, world):
        assert await service.list_projects(world.org_id, world.owner.id, status="archived") == []

    async def test_get_other_org_not_found(self, service, world):
        with pytest.raises(NotFoundError):
            await service.get_project(world.project.id, world.other_org_id, world.outsider.id)


class TestStageReviewers:
    async def test_grouped_by_stage(self, service, world):
        groups = await service.list_stage_reviewers(world.project.id, world.org_id, world.owner.id)

        assert [g.stage_order for g in groups] == [1, 2]
        assert {r.user_id for r in groups[0].reviewers} == {world.reviewer_a.id, world.reviewer_b.id}
        assert [r.user_id for r in groups[1].reviewers] == [world.reviewer_c.id]

    async def test_add_reviewer(self, service, world):
        reviewer = await service.add_stage_reviewer(
            world.project.id, world.org_id, world.owner.id, stage_order=2, reviewer_user_id=world.member.id
        )

        assert reviewer.user_name == "Mo Member"
        assert reviewer.user_email == world.member.email
        assert reviewer.added_by == world.owner.id

    async def test_stage_must_exist(self, service, world):
        with pytest.raises(ValidationError, match="Stage 3 does not exist"):
            await service.add_stage_reviewer(
                world.project.id, world.org_id, world.owner.id, stage_order=3, reviewer_user_id=world.member.id
            )

    async def test_stage_must_be_positive(self, service, world):
        with pytest.raises(ValidationError):
            await service.add_stage_reviewer(
                world.project.id, world.org_id, world.owner.id, stage_order=0, reviewer_user_id=world.member.id
            )

    async def test_duplicate_reviewer(self, service, world):
        with pytest.raises(InvalidStateError, match="already a reviewer"):
            await service.add_stage_reviewer(
                world.project.id, world.org_id, world.owner.id, stage_order=1, reviewer_user_id=world.reviewer_a.id
            )

    async def test_non_member_not_found(self, service, world):
        with pytest.raises(NotFoundError):
            await service.add_stage_reviewer(
                world.project.id, world.org_id, world.owner.id, stage_order=1, reviewer_user_id=world.outsider.id
            )

    async def test_project_without_workflow(self, service, world):
        summary = await service.create_project(world.org_id, world.owner.id, name="No Flow")
        with pytest.raises(InvalidStateError):
            await service.add_stage_reviewer(
                summary.project.id, world.org_id, world.owner.id, stage_order=1, reviewer_user_id=world.member.id
            )

    async def test_only_owner_or_admin_manage(self, service, world):
        with pytest.raises(ForbiddenError):
            await service.add_stage_reviewer(
                world.project.id, world.org_id, world.member.id, stage_order=1, reviewer_user_id=world.member.id
            )

    async def test_remove_reviewer(self, service, world):
        groups = await service.list_stage_reviewers(world.project.id, world.org_id, world.owner.id)
        stage2 = groups[1].reviewers[0]

        await service.remove_stage_reviewer(world.project.id, stage2.id, world.org_id, world.admin.id)

        groups = await service.list_stage_reviewers(world.project.id, world.org_id, world.owner.id)
        assert [g.stage_order for g in groups] == [1]

    async def test_remove_unknown_reviewer(self, service, world):
        with pytest.raises(NotFoundError, match="Reviewer not found"):
            await service.remove_stage_reviewer(world.project.id, world.workflow.id, world.org_id, world.owner.id)


class TestProjectAssets:
    async def test_assets_carry_derived_status(self, session, service, world):
        engine = ApprovalEngine(session)
        fresh = await engine.create_asset(world.org_id, world.owner.id, "Fresh", project_id=world.project.id)
        rework = await engine.create_asset(world.org_id, world.owner.id, "Rework", project_id=world.project.id)
        await engine.review_stage(
            rework.asset.id, 1, world.org_id, world.reviewer_a.id, "request_changes", notes="Redo colors"
        )

        details = {d.asset.id: d for d in await service.list_project_assets(world.project.id, world.org_id, world.owner.id)}

        assert details[fresh.asset.id].overall_status == OverallStatus.IN_PROGRESS
        assert details[fresh.asset.id].current_stage == 1
        assert details[rework.asset.id].overall_status == OverallStatus.CHANGES_REQUESTED
        assert [p.stage_name for p in details[rework.asset.id].progress] == ["Design Review", "Brand Check"]

    async def test_empty_project(self, service, world):
        summary = await service.create_project(world.org_id, world.owner.id, name="Empty")
        assert await service.list_project_assets(summary.project.id, world.org_id, world.owner.id) == []

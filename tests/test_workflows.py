"""Tests for workflow validation and management."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from approval_orbit.services.approval_engine import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from approval_orbit.services.workflows import WorkflowService, validate_stages


THREE_STAGES = [
    {"order": 1, "name": "Concept", "color": "yellow"},
    {"order": 2, "name": "Design", "color": "blue"},
    {"order": 3, "name": "Legal", "color": "red"},
]


@pytest.fixture
def service(session: AsyncSession) -> WorkflowService:
    return WorkflowService(session)


class TestValidateStages:
    def test_normalizes_names(self):
        stages = validate_stages([{"order": 1, "name": "  Concept ", "color": "green"}])
        assert stages == [{"order": 1, "name": "Concept", "color": "green"}]

    def test_requires_a_stage(self):
        with pytest.raises(ValidationError, match="at least one stage"):
            validate_stages([])

    def test_requires_names(self):
        with pytest.raises(ValidationError, match="Stage 2 must have a name"):
            validate_stages([
                {"order": 1, "name": "Concept", "color": "green"},
                {"order": 2, "name": " ", "color": "green"},
            ])

    def test_orders_must_be_sequential(self):
        with pytest.raises(ValidationError, match="sequential starting from 1"):
            validate_stages([
                {"order": 1, "name": "Concept", "color": "green"},
                {"order": 3, "name": "Design", "color": "green"},
            ])

    def test_colors_come_from_palette(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_stages([{"order": 1, "name": "Concept", "color": "teal"}])
        assert str(exc_info.value) == (
            "Stage 1 has invalid color. Must be one of: "
            "yellow, green, blue, purple, red, orange, gray"
        )


class TestCreateWorkflow:
    async def test_admin_creates_workflow(self, service, world):
        summary = await service.create_workflow(
            world.org_id, world.admin.id, name="Legal Track", stages=THREE_STAGES
        )

        assert summary.workflow.name == "Legal Track"
        assert summary.stage_count == 3
        assert summary.project_count == 0
        assert summary.workflow.is_default is False

    async def test_member_forbidden(self, service, world):
        with pytest.raises(ForbiddenError):
            await service.create_workflow(
                world.org_id, world.member.id, name="Legal Track", stages=THREE_STAGES
            )

    async def test_name_required(self, service, world):
        with pytest.raises(ValidationError, match="Workflow name is required"):
            await service.create_workflow(world.org_id, world.admin.id, name=" ", stages=THREE_STAGES)

    async def test_new_default_replaces_old(self, service, world):
        """Only one default workflow per organization."""
        created = await service.create_workflow(
            world.org_id, world.admin.id, name="Fast Track", stages=THREE_STAGES, is_default=True
        )

        workflows = await service.list_workflows(world.org_id, world.admin.id)

        defaults = [s.workflow.id for s in workflows if s.workflow.is_default]
        assert defaults == [created.workflow.id]
        assert workflows[0].workflow.id == created.workflow.id


class TestListAndGet:
    async def test_counts_projects(self, service, world):
        workflows = await service.list_workflows(world.org_id, world.member.id)

        assert len(workflows) == 1
        assert workflows[0].stage_count == 2
        assert workflows[0].project_count == 1

    async def test_archived_hidden_by_default(self, service, world):
        await service.update_workflow(world.workflow.id, world.org_id, world.admin.id, is_archived=True)

        assert await service.list_workflows(world.org_id, world.admin.id) == []
        archived = await service.list_workflows(world.org_id, world.admin.id, include_archived=True)
        assert [s.workflow.id for s in archived] == [world.workflow.id]

    async def test_other_org_not_found(self, service, world):
        with pytest.raises(NotFoundError):
            await service.get_workflow(world.workflow.id, world.other_org_id, world.outsider.id)


class TestUpdateAndDelete:
    async def test_stage_edit_refused_while_in_use(self, service, world):
        with pytest.raises(InvalidStateError, match="project"):
            await service.update_workflow(
                world.workflow.id, world.org_id, world.admin.id, stages=THREE_STAGES
            )

    async def test_rename_allowed_while_in_use(self, service, world):
        summary = await service.update_workflow(
            world.workflow.id, world.org_id, world.admin.id, name="Standard Review v2"
        )
        assert summary.workflow.name == "Standard Review v2"

    async def test_stage_edit_on_unused_workflow(self, service, world):
        created = await service.create_workflow(
            world.org_id, world.admin.id, name="Draft", stages=THREE_STAGES[:1]
        )
        summary = await service.update_workflow(
            created.workflow.id, world.org_id, world.admin.id, stages=THREE_STAGES
        )
        assert summary.stage_count == 3

    async def test_delete_refused_while_in_use(self, service, world):
        with pytest.raises(InvalidStateError) as exc_info:
            await service.delete_workflow(world.workflow.id, world.org_id, world.admin.id)
        assert str(exc_info.value).startswith(
            "Cannot delete workflow: 1 project(s) are using this workflow."
        )

    async def test_delete_unused(self, service, world):
        created = await service.create_workflow(
            world.org_id, world.admin.id, name="Temp", stages=THREE_STAGES
        )
        await service.delete_workflow(created.workflow.id, world.org_id, world.admin.id)

        with pytest.raises(NotFoundError):
            await service.get_workflow(created.workflow.id, world.org_id, world.admin.id)

    async def test_member_cannot_delete(self, service, world):
        created = await service.create_workflow(
            world.org_id, world.admin.id, name="Temp", stages=THREE_STAGES
        )
        with pytest.raises(ForbiddenError):
            await service.delete_workflow(created.workflow.id, world.org_id, world.member.id)

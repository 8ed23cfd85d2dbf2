"""Shared fixtures: an in-memory database and a small seeded organization."""

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from dataclasses import dataclass
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from approval_orbit.models import (
    Base,
    Organization,
    OrganizationMember,
    OrgRole,
    Project,
    ProjectStageReviewer,
    User,
    Workflow,
)


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# SEED DATA
# =============================================================================


async def add_user(
    session: AsyncSession,
    organization_id: UUID | None,
    name: str,
    role: OrgRole = OrgRole.MEMBER,
) -> User:
    slug = name.lower().replace(" ", ".")
    user = User(email=f"{slug}@example.com", name=name)
    session.add(user)
    await session.flush()
    if organization_id is not None:
        session.add(
            OrganizationMember(organization_id=organization_id, user_id=user.id, role=role.value)
        )
        await session.flush()
    return user


async def add_org(session: AsyncSession, slug: str) -> Organization:
    org = Organization(slug=slug, name=slug.replace("-", " ").title())
    session.add(org)
    await session.flush()
    return org


@pytest.fixture
async def org_id(session: AsyncSession) -> UUID:
    return (await add_org(session, "acme-cards")).id


@pytest.fixture
async def user_id(session: AsyncSession, org_id: UUID) -> UUID:
    return (await add_user(session, org_id, "Olive Owner")).id


@dataclass
class World:
    """An organization with a two-stage workflow and an assigned project.

    Stage 1 ("Design Review") has two reviewers, stage 2 ("Brand Check") one.
    """
    org_id: UUID
    other_org_id: UUID
    owner: User
    admin: User
    reviewer_a: User
    reviewer_b: User
    reviewer_c: User
    member: User
    outsider: User
    workflow: Workflow
    project: Project


@pytest.fixture
async def world(session: AsyncSession, org_id: UUID, user_id: UUID) -> World:
    owner = await session.get(User, user_id)
    admin = await add_user(session, org_id, "Ada Admin", OrgRole.ADMIN)
    reviewer_a = await add_user(session, org_id, "Rae Reviewer")
    reviewer_b = await add_user(session, org_id, "Ben Reviewer")
    reviewer_c = await add_user(session, org_id, "Cy Brand")
    member = await add_user(session, org_id, "Mo Member")
    other_org = await add_org(session, "other-co")
    outsider = await add_user(session, other_org.id, "Otto Outsider")

    workflow = Workflow(
        organization_id=org_id,
        name="Standard Review",
        stages=[
            {"order": 1, "name": "Design Review", "color": "blue"},
            {"order": 2, "name": "Brand Check", "color": "purple"},
        ],
        is_default=True,
        created_by=admin.id,
    )
    session.add(workflow)
    await session.flush()

    project = Project(
        organization_id=org_id,
        name="Spring Campaign",
        workflow_id=workflow.id,
        created_by=owner.id,
    )
    session.add(project)
    await session.flush()

    for stage_order, reviewer in ((1, reviewer_a), (1, reviewer_b), (2, reviewer_c)):
        session.add(
            ProjectStageReviewer(
                project_id=project.id,
                stage_order=stage_order,
                user_id=reviewer.id,
                user_name=reviewer.name,
                user_email=reviewer.email,
                added_by=owner.id,
            )
        )
    await session.flush()

    return World(
        org_id=org_id,
        other_org_id=other_org.id,
        owner=owner,
        admin=admin,
        reviewer_a=reviewer_a,
        reviewer_b=reviewer_b,
        reviewer_c=reviewer_c,
        member=member,
        outsider=outsider,
        workflow=workflow,
        project=project,
    )

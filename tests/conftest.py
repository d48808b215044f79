"""
Shared fixtures: an in-memory SQLite database, a directory of users, a team,
a form template, and a helper that drives tickets through the lifecycle.
"""

import os

# Settings are read at import time; point them at SQLite before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "development")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from feedback_desk.models import (
    AuditLog,
    Base,
    Feedback,
    FormTemplate,
    Notification,
    Pod,
    Team,
    TicketStatus,
    User,
    UserRole,
)
from feedback_desk.services.lifecycle_engine import (
    ApproveResolutionInput,
    AssignToMemberInput,
    AssignToTeamInput,
    LifecycleEngine,
    SubmitTicketInput,
    UpdateStatusInput,
)

PROGRAM = "engineering"


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

    # pysqlite's own transaction handling breaks SAVEPOINT; take it over
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(db_engine) -> AsyncSession:
    async with AsyncSession(db_engine, expire_on_commit=False, autoflush=False) as session:
        yield session


class FrozenClock:
    """Injectable clock for the engine."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine(session: AsyncSession, clock: FrozenClock) -> LifecycleEngine:
    return LifecycleEngine(session, clock=clock)


# =============================================================================
# DIRECTORY
# =============================================================================


@pytest.fixture
async def team(session: AsyncSession) -> Team:
    team = Team(name="Content Quality", lead_id="lead-1")
    session.add(team)
    await session.flush()
    return team


@pytest.fixture
async def other_team(session: AsyncSession) -> Team:
    team = Team(name="Platform", lead_id="lead-2")
    session.add(team)
    await session.flush()
    return team


@pytest.fixture
async def pod(session: AsyncSession, team: Team) -> Pod:
    pod = Pod(team_id=team.id, name="Videos", lead_id="lead-1")
    session.add(pod)
    await session.flush()
    return pod


def _user(user_id: str, role: UserRole, **kwargs) -> User:
    return User(
        id=user_id,
        email=f"{user_id}@school.edu",
        name=user_id.replace("-", " ").title(),
        role=role,
        **kwargs,
    )


@pytest.fixture
async def users(session: AsyncSession, team: Team, other_team: Team) -> dict[str, User]:
    """One user per role (two auditors, two members), keyed by handle."""
    directory = {
        "student": _user("student-1", UserRole.STUDENT, program=PROGRAM),
        "other_student": _user("student-2", UserRole.STUDENT, program=PROGRAM),
        "auditor": _user("auditor-1", UserRole.AUDITOR),
        "auditor2": _user("auditor-2", UserRole.AUDITOR),
        "lead": _user("lead-1", UserRole.TEAM_LEAD, team_id=team.id),
        "other_lead": _user("lead-2", UserRole.TEAM_LEAD, team_id=other_team.id),
        "member_a": _user("member-a", UserRole.TEAM_MEMBER, team_id=team.id),
        "member_b": _user("member-b", UserRole.TEAM_MEMBER, team_id=team.id),
        "admin": _user("admin-1", UserRole.ADMIN),
        "co_admin": _user("co-admin-1", UserRole.CO_ADMIN),
    }
    session.add_all(directory.values())
    await session.flush()
    return directory


@pytest.fixture
async def template(session: AsyncSession) -> FormTemplate:
    template = FormTemplate(
        program_type=PROGRAM,
        name="Engineering Feedback",
        fields=[
            {"name": "course", "label": "Course", "type": "text", "required": True, "order": 1},
            {"name": "unit", "label": "Unit", "type": "text", "required": True, "order": 2},
            {"name": "topic", "label": "Topic", "type": "text", "order": 3},
            {
                "name": "issue_description",
                "label": "Issue",
                "type": "textarea",
                "required": True,
                "validation": {"min": 10},
                "order": 4,
            },
            {
                "name": "rating",
                "label": "Rating",
                "type": "number",
                "validation": {"min": 1, "max": 5},
                "order": 5,
            },
            {
                "name": "category",
                "label": "Category",
                "type": "select",
                "options": ["content", "technical", "other"],
                "order": 6,
            },
        ],
        is_active=True,
        version=1,
    )
    session.add(template)
    await session.flush()
    return template


@pytest.fixture
def form_data() -> dict:
    return {
        "course": "Data Structures",
        "unit": "Unit 3",
        "topic": "Binary Trees",
        "issue_description": "The traversal video cuts off halfway through.",
        "rating": 2,
        "category": "content",
    }


# =============================================================================
# LIFECYCLE DRIVER
# =============================================================================


class Workflow:
    """Moves tickets through the lifecycle with sensible defaults."""

    def __init__(self, engine: LifecycleEngine, users: dict[str, User], team: Team, form_data: dict):
        self.engine = engine
        self.users = users
        self.team = team
        self.form_data = form_data

    async def submit(self, **overrides) -> Feedback:
        return await self.engine.submit_ticket(
            self.users["student"],
            SubmitTicketInput(form_data={**self.form_data, **overrides}),
        )

    async def assign(self, ticket: Feedback, sla_hours: int = 24) -> Feedback:
        return await self.engine.assign_to_team(
            self.users["auditor"],
            ticket.ticket_id,
            AssignToTeamInput(team_id=self.team.id, sla_hours=sla_hours),
        )

    async def delegate(self, ticket: Feedback, member: str = "member_a") -> Feedback:
        return await self.engine.assign_to_member(
            self.users["lead"],
            ticket.ticket_id,
            AssignToMemberInput(member_id=self.users[member].id),
        )

    async def start(self, ticket: Feedback, member: str = "member_a") -> Feedback:
        return await self.engine.update_status(
            self.users[member],
            ticket.ticket_id,
            UpdateStatusInput(status=TicketStatus.IN_PROGRESS),
        )

    async def resolve(self, ticket: Feedback, member: str = "member_a") -> Feedback:
        return await self.engine.update_status(
            self.users[member],
            ticket.ticket_id,
            UpdateStatusInput(
                status=TicketStatus.RESOLVED,
                resolution_text="Re-uploaded the full traversal video.",
                preventive_measures="Check video length on upload.",
                days_taken=1,
            ),
        )

    async def reject(self, ticket: Feedback, reassign_to: str | None = None) -> Feedback:
        return await self.engine.approve_resolution(
            self.users["lead"],
            ticket.ticket_id,
            ApproveResolutionInput(
                approved=False,
                lead_comments="Not fixed on mobile.",
                reassign_to=self.users[reassign_to].id if reassign_to else None,
            ),
        )

    async def resolved_ticket(self) -> Feedback:
        ticket = await self.submit()
        await self.assign(ticket)
        await self.delegate(ticket)
        await self.start(ticket)
        return await self.resolve(ticket)


@pytest.fixture
def make_workflow(users, team, template, form_data):
    """Build a Workflow around a custom engine (e.g. one with recording sinks)."""

    def make(engine: LifecycleEngine) -> Workflow:
        return Workflow(engine, users, team, form_data)

    return make


@pytest.fixture
def workflow(engine, make_workflow) -> Workflow:
    return make_workflow(engine)


# =============================================================================
# QUERY HELPERS
# =============================================================================


async def count_audit(session: AsyncSession, entity_id: str, action=None) -> int:
    query = select(func.count()).select_from(AuditLog).where(AuditLog.entity_id == entity_id)
    if action is not None:
        query = query.where(AuditLog.action == action)
    return (await session.execute(query)).scalar_one()


async def notifications_for(session: AsyncSession, user_id: str) -> list[Notification]:
    result = await session.execute(
        select(Notification).where(Notification.user_id == user_id)
    )
    return list(result.scalars().all())


@pytest.fixture
def audit_count():
    return count_audit


@pytest.fixture
def inbox():
    return notifications_for

"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, rebuilt for each test
- Team, staff, service and roster fixtures on a fixed future week
- JWT session cookies for authenticated tests
- HTTPX AsyncClient with proper headers
"""
import os
from dataclasses import dataclass
from datetime import date, time
from typing import AsyncGenerator, Callable, Generator

# Must be set before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["NOTIFY_WEBHOOK_URL"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from booking_api.core.deps import COOKIE_NAME, get_db
from booking_api.core.security import create_session_token
from booking_api.db.base import Base
from booking_api.db.enums import TeamRole
from booking_api.db.models import (
    Service,
    ServiceMember,
    Team,
    TeamMember,
    User,
)
from booking_api.db.session import SessionLocal, engine
from booking_api.main import app
from tests.helpers import MONDAY, add_weekday_windows


@pytest.fixture
def monday() -> date:
    return MONDAY


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test on a shared in-memory connection.

    App code commits freely; tables are dropped afterwards.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def team(db: Session) -> Team:
    """Create a test team."""
    team = Team(name="Test Clinic", slug="test-clinic", timezone="UTC")
    db.add(team)
    db.commit()
    return team


@pytest.fixture(scope="function")
def make_member(db: Session, team: Team) -> Callable[..., User]:
    """Factory: create a user with membership in `team`."""
    counter = {"n": 0}

    def _make(name: str | None = None, role: TeamRole = TeamRole.MEMBER) -> User:
        counter["n"] += 1
        name = name or f"Staff {counter['n']}"
        user = User(
            email=f"{name.lower().replace(' ', '.')}@test.com",
            display_name=name,
        )
        db.add(user)
        db.flush()
        db.add(TeamMember(team_id=team.id, user_id=user.id, role=role.value))
        db.commit()
        return user

    return _make


@pytest.fixture(scope="function")
def admin_user(make_member) -> User:
    return make_member("Ada Admin", role=TeamRole.ADMIN)


@pytest.fixture(scope="function")
def service(db: Session, team: Team) -> Service:
    """30-minute service, 24h cancellation notice, 2h reschedule notice."""
    service = Service(
        team_id=team.id,
        name="Consultation",
        slug="consultation",
        duration_minutes=30,
        cancellation_buffer_hours=24,
        reschedule_buffer_hours=2,
    )
    db.add(service)
    db.commit()
    return service


@pytest.fixture(scope="function")
def staff(db: Session, team: Team, service: Service, make_member) -> list[User]:
    """Three rostered members (order 0, 1, 2), each free Mon-Fri 09:00-17:00 UTC."""
    users = [make_member(name) for name in ("Alice", "Bob", "Carol")]
    for order, user in enumerate(users):
        db.add(ServiceMember(service_id=service.id, user_id=user.id, order=order))
        add_weekday_windows(db, team, user, time(9, 0), time(17, 0))
    db.commit()
    return users


@pytest.fixture(scope="function")
def solo(db: Session, team: Team, service: Service, make_member) -> User:
    """Single rostered member, free Mon-Fri 09:00-12:00 UTC."""
    user = make_member("Solo")
    db.add(ServiceMember(service_id=service.id, user_id=user.id, order=0))
    add_weekday_windows(db, team, user, time(9, 0), time(12, 0))
    return user


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    __test__ = False

    user: User
    team: Team
    token: str
    cookie_name: str = COOKIE_NAME


@pytest.fixture(scope="function")
def admin_auth(admin_user: User, team: Team) -> TestAuth:
    """JWT session for the team admin."""
    return TestAuth(user=admin_user, team=team, token=create_session_token(admin_user.id, team.id))


@pytest.fixture(scope="function")
def member_auth(staff: list[User], team: Team) -> TestAuth:
    """JWT session for a plain member (Alice)."""
    return TestAuth(user=staff[0], team=team, token=create_session_token(staff[0].id, team.id))


# =============================================================================
# Client Fixtures
# =============================================================================

def _override_db(db: Session):
    def override_get_db():
        yield db
    app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for public endpoints."""
    _override_db(db)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(db: Session, admin_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    """Admin AsyncClient with JWT cookie and CSRF header."""
    _override_db(db)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={admin_auth.cookie_name: admin_auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def member_client(db: Session, member_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    """Member AsyncClient with JWT cookie and CSRF header."""
    _override_db(db)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={member_auth.cookie_name: member_auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},
    ) as c:
        yield c
    app.dependency_overrides.clear()

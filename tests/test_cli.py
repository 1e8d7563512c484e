"""Tests for the admin CLI and session tokens."""

from uuid import uuid4

import jwt
import pytest
from click.testing import CliRunner

from booking_api.cli import cli
from booking_api.core.config import settings
from booking_api.core.security import create_session_token, decode_session_token
from booking_api.db.models import Team, TeamMember, User


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestCreateTeam:
    def test_creates_team_and_super_admin(self, db, runner):
        result = runner.invoke(cli, [
            "create-team", "--name", "Acme Dental", "--slug", "acme",
            "--timezone", "Europe/Berlin", "--admin-email", "Owner@Acme.com",
        ])

        assert result.exit_code == 0
        assert "Created team" in result.output
        team = db.query(Team).filter(Team.slug == "acme").one()
        assert team.timezone == "Europe/Berlin"
        membership = db.query(TeamMember).filter(TeamMember.team_id == team.id).one()
        assert membership.role == "super_admin"
        assert db.get(User, membership.user_id).email == "owner@acme.com"

    def test_reserved_slug_rejected(self, db, runner):
        result = runner.invoke(cli, [
            "create-team", "--name", "X", "--slug", "manage", "--admin-email", "a@b.com",
        ])

        assert "reserved" in result.output
        assert db.query(Team).count() == 0

    def test_unknown_timezone_rejected(self, db, runner):
        result = runner.invoke(cli, [
            "create-team", "--name", "X", "--slug", "x", "--timezone", "Nowhere/Land",
            "--admin-email", "a@b.com",
        ])

        assert "Unknown timezone" in result.output
        assert db.query(Team).count() == 0


class TestMembers:
    def test_add_member_and_issue_session(self, db, team, runner):
        added = runner.invoke(cli, [
            "add-member", "--team-slug", "test-clinic", "--email", "dana@test.com",
            "--name", "Dana", "--role", "admin",
        ])
        assert added.exit_code == 0

        issued = runner.invoke(cli, [
            "issue-session", "--team-slug", "test-clinic", "--email", "dana@test.com",
        ])
        payload = decode_session_token(issued.output.strip())

        user = db.query(User).filter(User.email == "dana@test.com").one()
        assert payload["sub"] == str(user.id)
        assert payload["team_id"] == str(team.id)

    def test_add_member_updates_role(self, db, team, make_member, runner):
        user = make_member("Eve")

        runner.invoke(cli, [
            "add-member", "--team-slug", "test-clinic", "--email", user.email, "--role", "admin",
        ])

        db.expire_all()
        membership = db.query(TeamMember).filter(TeamMember.user_id == user.id).one()
        assert membership.role == "admin"

    def test_issue_session_for_non_member(self, db, team, runner):
        result = runner.invoke(cli, [
            "issue-session", "--team-slug", "test-clinic", "--email", "ghost@test.com",
        ])

        assert "not a member" in result.output


class TestSessionTokens:
    def test_previous_secret_still_accepted(self, monkeypatch):
        user_id, team_id = uuid4(), uuid4()
        token = create_session_token(user_id, team_id)
        monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", settings.JWT_SECRET)
        monkeypatch.setattr(settings, "JWT_SECRET", "rotated-" + settings.JWT_SECRET)

        assert decode_session_token(token)["sub"] == str(user_id)

    def test_unknown_secret_rejected(self):
        token = jwt.encode({"sub": "x"}, "someone-else", algorithm="HS256")

        with pytest.raises(jwt.InvalidTokenError):
            decode_session_token(token)

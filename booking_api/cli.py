"""CLI tools for booking administration."""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import click

from booking_api.core.security import create_session_token
from booking_api.db.base import Base
from booking_api.db.enums import TeamRole
from booking_api.db.models import Team, TeamMember, User
from booking_api.db.session import SessionLocal, engine

# Reserved by the public router (/book/manage/...)
RESERVED_TEAM_SLUGS = {"manage"}


def _get_or_create_user(db, email: str, name: str | None) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(email=email, display_name=name or email.split("@")[0])
    db.add(user)
    db.flush()
    return user


@click.group()
def cli():
    """Booking CLI tools."""
    pass


@cli.command()
def init_db():
    """Create all tables (development and first deploy)."""
    Base.metadata.create_all(bind=engine)
    click.echo("✓ Database tables created")


@cli.command()
@click.option("--name", required=True, help="Team name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, no spaces)")
@click.option("--timezone", "timezone_name", default="UTC", help="IANA timezone (default: UTC)")
@click.option("--admin-email", required=True, help="Owner email address")
@click.option("--admin-name", default=None, help="Owner display name")
def create_team(name: str, slug: str, timezone_name: str, admin_email: str, admin_name: str | None):
    """
    Create a team and its super admin.

    Example:
        python -m booking_api.cli create-team --name "Acme" --slug acme --admin-email owner@acme.com
    """
    db = SessionLocal()
    try:
        slug = slug.lower().strip()
        if not slug.replace("-", "").replace("_", "").isalnum() or slug in RESERVED_TEAM_SLUGS:
            click.echo("❌ Slug must be alphanumeric (with optional hyphens/underscores) and not reserved")
            return
        try:
            ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError):
            click.echo(f"❌ Unknown timezone '{timezone_name}'")
            return

        if db.query(Team).filter(Team.slug == slug).first():
            click.echo(f"❌ Team with slug '{slug}' already exists")
            return

        team = Team(name=name, slug=slug, timezone=timezone_name)
        db.add(team)
        db.flush()

        user = _get_or_create_user(db, admin_email.lower(), admin_name)
        db.add(TeamMember(team_id=team.id, user_id=user.id, role=TeamRole.SUPER_ADMIN.value))
        db.commit()

        click.echo(f"✓ Created team: {name}")
        click.echo(f"  ID: {team.id}")
        click.echo(f"  Slug: {slug}")
        click.echo(f"✓ {admin_email} is super_admin")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--team-slug", required=True, help="Team slug")
@click.option("--email", required=True, help="Member email address")
@click.option("--name", default=None, help="Display name")
@click.option(
    "--role",
    type=click.Choice([r.value for r in TeamRole]),
    default=TeamRole.MEMBER.value,
    help="Team role (default: member)",
)
def add_member(team_slug: str, email: str, name: str | None, role: str):
    """Add a user to a team (creating the user if needed)."""
    db = SessionLocal()
    try:
        team = db.query(Team).filter(Team.slug == team_slug).first()
        if not team:
            click.echo(f"❌ Team '{team_slug}' not found")
            return

        user = _get_or_create_user(db, email.lower(), name)
        membership = db.query(TeamMember).filter(
            TeamMember.team_id == team.id,
            TeamMember.user_id == user.id,
        ).first()
        if membership:
            membership.role = role
        else:
            db.add(TeamMember(team_id=team.id, user_id=user.id, role=role))
        db.commit()
        click.echo(f"✓ {email} is {role} in {team.slug} (user ID: {user.id})")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--team-slug", required=True, help="Team slug")
@click.option("--email", required=True, help="Member email address")
def issue_session(team_slug: str, email: str):
    """Print a session token for a member (for API clients and local testing)."""
    db = SessionLocal()
    try:
        row = (
            db.query(User, Team)
            .join(TeamMember, TeamMember.user_id == User.id)
            .join(Team, Team.id == TeamMember.team_id)
            .filter(User.email == email.lower(), Team.slug == team_slug)
            .first()
        )
        if not row:
            click.echo(f"❌ {email} is not a member of '{team_slug}'")
            return
        user, team = row
        click.echo(create_session_token(user.id, team.id))
    finally:
        db.close()


if __name__ == "__main__":
    cli()

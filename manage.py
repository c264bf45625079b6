from formaflow.app import create_app, db

from flask_migrate import Migrate
from flask.cli import FlaskGroup
import click
from flask import current_app
from formaflow.models import RoleCapability
from formaflow.services.accounts import create_user, get_user_by_email
from formaflow.services.formations import get_formation
from formaflow.services.roster import participants_by_center, roster_csv
from formaflow.services.stats import formation_stats
from formaflow.shared.constants import ADMIN, FORMATION_STATUSES
from formaflow.shared.errors import FormationError
from formaflow.shared.time import fmt_dt


migrate = Migrate()


def create_formaflow_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_formaflow_app)


@cli.command("create_admin")
@click.option("--email", "email", required=True)
@click.option("--name", "full_name", default="Administrator", show_default=True)
@click.option("--password", "password", prompt=True, hide_input=True)
def create_admin(email: str, full_name: str, password: str):
    """Create an administrator, or grant admin to an existing user."""
    try:
        user = get_user_by_email(email)
        if user is None:
            user = create_user(email, full_name, password=password)
        if user.capability(ADMIN) is None:
            user.capabilities.append(RoleCapability(kind=ADMIN))
            db.session.commit()
            current_app.logger.info(f"[ACCOUNT] granted role={ADMIN} user={user.id}")
            click.echo(f"Admin ready: {user.email} (id={user.id})")
        else:
            click.echo(f"{user.email} is already an administrator")
    except FormationError as exc:
        db.session.rollback()
        raise click.ClickException(exc.message)


@cli.command("formation_stats")
def formation_stats_cmd():
    """Print formation counts per workflow status."""
    counts = formation_stats()
    for status in FORMATION_STATUSES:
        click.echo(f"{status}: {counts[status]}")
    click.echo(f"total: {counts['total']}")


@cli.command("roster")
@click.option("--formation", "formation_id", required=True, type=int)
@click.option("--csv", "as_csv", is_flag=True, help="Emit CSV instead of text")
def roster(formation_id: int, as_csv: bool):
    """Print a formation's participants grouped by training center."""
    try:
        if as_csv:
            click.echo(roster_csv(formation_id), nl=False)
            return
        formation = get_formation(formation_id)
        groups = participants_by_center(formation_id)
    except FormationError as exc:
        raise click.ClickException(exc.message)
    click.echo(
        f"{formation.title or '(untitled)'} [{formation.status}] "
        f"{fmt_dt(formation.start_date)} - {fmt_dt(formation.end_date)}"
    )
    if not groups:
        click.echo("No participants")
        return
    for group in groups:
        click.echo(f"{group.center.name} ({len(group.participants)})")
        for entry in group.participants:
            filiere = f" [{entry.filiere.name}]" if entry.filiere else ""
            click.echo(f"  {entry.user.full_name} <{entry.user.email}>{filiere}")


if __name__ == "__main__":
    cli()

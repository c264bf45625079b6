import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from conftest import enroll, make_formation
from formaflow.models import User
from manage import create_admin, formation_stats_cmd, roster


pytestmark = pytest.mark.smoke


@pytest.fixture
def runner(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(formation_stats_cmd)
    app.cli.add_command(roster)
    return app.test_cli_runner()


def test_create_admin(runner, app):
    res = runner.invoke(
        args=["create_admin", "--email", "Boss@example.com", "--password", "pw"]
    )
    assert res.exit_code == 0, res.output
    assert "Admin ready: boss@example.com" in res.output
    user = User.query.filter_by(email="boss@example.com").one()
    assert user.has_role("admin")
    assert user.check_password("pw")

    res = runner.invoke(
        args=["create_admin", "--email", "boss@example.com", "--password", "pw"]
    )
    assert "already an administrator" in res.output


def test_create_admin_grants_existing_user(runner, world):
    res = runner.invoke(
        args=["create_admin", "--email", "fac@example.com", "--password", "ignored"]
    )
    assert res.exit_code == 0, res.output
    user = User.query.filter_by(email="fac@example.com").one()
    assert user.role_kinds() == ["animateur", "admin"]


def test_formation_stats_cli(runner, world):
    make_formation(world)
    res = runner.invoke(args=["formation_stats"])
    assert res.exit_code == 0
    assert "draft: 1" in res.output
    assert "total: 1" in res.output


def test_roster_cli(runner, world):
    f = make_formation(world)
    res = runner.invoke(args=["roster", "--formation", str(f.id)])
    assert "Python basics [draft] 2 Nov 2026 - 6 Nov 2026" in res.output
    assert "No participants" in res.output

    enroll(world, "zoe@example.com", "Zoe", world.ista_beta, formation=f, filiere=world.dev)
    res = runner.invoke(args=["roster", "--formation", str(f.id)])
    assert "Ista Beta (1)" in res.output
    assert "Zoe <zoe@example.com> [Developpement]" in res.output

    res = runner.invoke(args=["roster", "--formation", str(f.id), "--csv"])
    assert res.output.splitlines()[0] == "Center,Participant,Email,Filiere"

    res = runner.invoke(args=["roster", "--formation", "999"])
    assert res.exit_code != 0
    assert "Formation 999 not found" in res.output

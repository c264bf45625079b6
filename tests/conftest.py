import os
import pathlib
import sys
from datetime import date
from types import SimpleNamespace

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from formaflow.app import create_app, db
from formaflow.models import (
    Branche,
    City,
    Filiere,
    Formation,
    Ista,
    Participant,
    Region,
    RoleCapability,
    Site,
    User,
)
from formaflow.shared.acl import resolve_actor


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


@pytest.fixture
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    os.environ["FLASK_SKIP_SEED"] = "1"
    application = create_app()
    application.config["TESTING"] = True
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, full_name, *kinds, region=None, branche=None):
    user = User(email=email, full_name=full_name)
    user.set_password("x")
    for kind in kinds:
        cap = RoleCapability(kind=kind)
        if kind == "dr":
            cap.region = region
        if kind == "cdc":
            cap.branche = branche
        user.capabilities.append(cap)
    db.session.add(user)
    return user


@pytest.fixture
def world(app):
    """Two regions, two branches and one user per role, committed."""

    nord = Region(name="Nord")
    sud = Region(name="Sud")
    tanger = City(name="Tanger", region=nord)
    agadir = City(name="Agadir", region=sud)
    site_tanger = Site(name="Salle A", address="1 rue A", city=tanger)
    site_agadir = Site(name="Salle B", address="2 rue B", city=agadir)
    ista_beta = Ista(name="Ista Beta", city=tanger)
    ista_alpha = Ista(name="ista Alpha", city=agadir)
    digital = Branche(name="Digital")
    btp = Branche(name="BTP")
    dev = Filiere(name="Developpement", branche=digital)
    reseaux = Filiere(name="Reseaux", branche=digital)
    genie = Filiere(name="Genie civil", branche=btp)
    db.session.add_all([nord, sud, digital, btp])

    admin = make_user("admin@example.com", "Admin", "admin")
    drif = make_user("drif@example.com", "Coordinator", "drif")
    cdc = make_user("cdc@example.com", "Chief Digital", "cdc", branche=digital)
    cdc_btp = make_user("cdc2@example.com", "Chief BTP", "cdc", branche=btp)
    dr_nord = make_user("dr@example.com", "Director Nord", "dr", region=nord)
    dr_sud = make_user("dr2@example.com", "Director Sud", "dr", region=sud)
    fac = make_user("fac@example.com", "Facilitator One", "animateur")
    fac2 = make_user("fac2@example.com", "Facilitator Two", "animateur")
    db.session.flush()
    cdc.capabilities[0].filieres.append(dev)
    db.session.commit()

    return SimpleNamespace(
        nord=nord,
        sud=sud,
        tanger=tanger,
        agadir=agadir,
        site_tanger=site_tanger,
        site_agadir=site_agadir,
        ista_beta=ista_beta,
        ista_alpha=ista_alpha,
        digital=digital,
        btp=btp,
        dev=dev,
        reseaux=reseaux,
        genie=genie,
        admin=admin,
        drif=drif,
        cdc=cdc,
        cdc_btp=cdc_btp,
        dr_nord=dr_nord,
        dr_sud=dr_sud,
        fac=fac,
        fac2=fac2,
    )


def make_formation(world, *, city=None, site=None, branche=None, facilitator=None, **overrides):
    """A complete draft formation; pass ``field=None`` to leave a field empty."""

    city = city or world.tanger
    site = site or (world.site_tanger if city is world.tanger else world.site_agadir)
    values = dict(
        title="Python basics",
        description="Intro course",
        start_date=date(2026, 11, 2),
        end_date=date(2026, 11, 6),
        facilitator_id=(facilitator or world.fac).id,
        city_id=city.id,
        site_id=site.id,
        branche_id=(branche or world.digital).id,
    )
    values.update(overrides)
    formation = Formation(**values)
    db.session.add(formation)
    db.session.commit()
    return formation


def enroll(world, email, full_name, ista, formation=None, filiere=None):
    user = make_user(email, full_name)
    participant = Participant(user=user, ista=ista, formation=formation, filiere=filiere)
    db.session.add(participant)
    db.session.commit()
    return participant


def actor_for(user, role=None):
    return resolve_actor(db.session.get(User, user.id), role)


def login(client, user, role=None):
    with client.session_transaction() as sess:
        sess.clear()
        sess["user_id"] = user.id
    if role is None:
        client.delete_cookie("active_role")
    else:
        client.set_cookie("active_role", role)

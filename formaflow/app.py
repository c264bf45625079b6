import logging
import os

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from .models import User, RoleCapability  # noqa: E402
from .shared.constants import ADMIN  # noqa: E402
from .shared.errors import FormationError  # noqa: E402


def create_app():
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")
    app.json.sort_keys = False

    DB_USER = os.getenv("DB_USER", "formaflow")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "formaflow")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    app.logger.setLevel(log_level)
    logging.getLogger("formaflow").setLevel(log_level)

    db.init_app(app)

    @app.errorhandler(FormationError)
    def handle_formation_error(exc: FormationError):
        db.session.rollback()
        if exc.status_code >= 500:
            app.logger.exception("[%s] %s", exc.kind.upper(), exc)
        else:
            app.logger.info("[%s] %s", exc.kind.upper(), exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    from .routes.formations import bp as formations_bp
    from .routes.participants import bp as participants_bp
    from .routes.lookups import bp as lookups_bp
    from .routes.users import bp as users_bp

    app.register_blueprint(formations_bp)
    app.register_blueprint(participants_bp)
    app.register_blueprint(lookups_bp)
    app.register_blueprint(users_bp)

    with app.app_context():
        if not os.getenv("FLASK_SKIP_SEED"):
            seed_initial_admin_safely()

    return app


def seed_initial_admin_safely() -> None:
    """Seed an administrator from FIRST_ADMIN_EMAIL when no user exists yet."""

    first_admin_email = os.getenv("FIRST_ADMIN_EMAIL")
    first_admin_password = os.getenv("FIRST_ADMIN_PASSWORD")
    if not first_admin_email or not first_admin_password:
        return
    try:
        from sqlalchemy import inspect

        insp = inspect(db.engine)
        if "users" not in insp.get_table_names():
            return
        if db.session.query(User.id).first() is not None:
            return
        admin = User(email=first_admin_email, full_name="Administrator")
        admin.set_password(first_admin_password)
        admin.capabilities.append(RoleCapability(kind=ADMIN))
        db.session.add(admin)
        db.session.commit()
        logging.info("Seeded initial administrator %s", first_admin_email)
    except Exception:
        db.session.rollback()
        logging.exception("seed_initial_admin_safely failed")

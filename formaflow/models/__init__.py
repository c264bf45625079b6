from __future__ import annotations

from sqlalchemy.orm import validates

from ..app import db
from ..shared.constants import DRAFT, PARTICIPANT
from ..shared.passwords import hash_password, check_password


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255))
    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.Index("ix_users_email_lower", db.func.lower(email), unique=True),
    )

    capabilities = db.relationship(
        "RoleCapability",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="RoleCapability.id",
    )

    @validates("email")
    def lower_email(self, key, value):  # pragma: no cover - simple normalizer
        return value.lower()

    def set_password(self, plain: str) -> None:
        self.password_hash = hash_password(plain)

    def check_password(self, plain: str) -> bool:
        if not self.password_hash:
            return False
        return check_password(plain, self.password_hash)

    def capability(self, kind: str) -> "RoleCapability | None":
        for cap in self.capabilities:
            if cap.kind == kind:
                return cap
        return None

    def has_role(self, kind: str) -> bool:
        if kind == PARTICIPANT:
            return self.participant is not None
        return self.capability(kind) is not None

    def role_kinds(self) -> list[str]:
        kinds = [cap.kind for cap in self.capabilities]
        if self.participant is not None:
            kinds.append(PARTICIPANT)
        return kinds


cdc_filieres = db.Table(
    "cdc_filieres",
    db.Column(
        "capability_id",
        db.Integer,
        db.ForeignKey("role_capabilities.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "filiere_id",
        db.Integer,
        db.ForeignKey("filieres.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class RoleCapability(db.Model):
    """One role held by a user; ``kind`` selects which scope columns apply."""

    __tablename__ = "role_capabilities"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    user = db.relationship("User", back_populates="capabilities")
    kind = db.Column(db.String(16), nullable=False)
    # dr only
    region_id = db.Column(
        db.Integer, db.ForeignKey("regions.id", ondelete="CASCADE")
    )
    region = db.relationship("Region")
    # cdc only
    branche_id = db.Column(
        db.Integer, db.ForeignKey("branches.id", ondelete="CASCADE")
    )
    branche = db.relationship("Branche")
    filieres = db.relationship(
        "Filiere", secondary="cdc_filieres", backref="curators"
    )
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.UniqueConstraint("user_id", "kind", name="uix_role_capability_user_kind"),
    )


class Region(db.Model):
    __tablename__ = "regions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    cities = db.relationship(
        "City", back_populates="region", cascade="all, delete-orphan"
    )


class City(db.Model):
    __tablename__ = "cities"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    region_id = db.Column(
        db.Integer, db.ForeignKey("regions.id", ondelete="CASCADE"), nullable=False
    )
    region = db.relationship("Region", back_populates="cities")
    istas = db.relationship("Ista", back_populates="city", cascade="all, delete-orphan")
    sites = db.relationship("Site", back_populates="city", cascade="all, delete-orphan")


class Site(db.Model):
    __tablename__ = "sites"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255))
    city_id = db.Column(
        db.Integer, db.ForeignKey("cities.id", ondelete="CASCADE"), nullable=False
    )
    city = db.relationship("City", back_populates="sites")


class Ista(db.Model):
    """A physical training center."""

    __tablename__ = "istas"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255))
    city_id = db.Column(
        db.Integer, db.ForeignKey("cities.id", ondelete="CASCADE"), nullable=False
    )
    city = db.relationship("City", back_populates="istas")


class Branche(db.Model):
    __tablename__ = "branches"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    filieres = db.relationship(
        "Filiere", back_populates="branche", cascade="all, delete-orphan"
    )


class Filiere(db.Model):
    __tablename__ = "filieres"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    branche_id = db.Column(
        db.Integer, db.ForeignKey("branches.id", ondelete="CASCADE"), nullable=False
    )
    branche = db.relationship("Branche", back_populates="filieres")


class Formation(db.Model):
    __tablename__ = "formations"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255))
    description = db.Column(db.Text)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    status = db.Column(
        db.String(16), nullable=False, default=DRAFT, server_default=DRAFT
    )
    approved_by_center_chief = db.Column(
        db.Boolean, nullable=False, default=False, server_default=db.text("false")
    )
    approved_by_coordinator = db.Column(
        db.Boolean, nullable=False, default=False, server_default=db.text("false")
    )
    returned_by = db.Column(db.String(16))
    returned_to = db.Column(db.String(16))
    returned_at = db.Column(db.DateTime(timezone=True))
    facilitator_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE")
    )
    facilitator = db.relationship(
        "User",
        backref=db.backref("facilitated_formations", cascade="all, delete"),
    )
    city_id = db.Column(db.Integer, db.ForeignKey("cities.id", ondelete="CASCADE"))
    city = db.relationship(
        "City", backref=db.backref("formations", cascade="all, delete")
    )
    site_id = db.Column(db.Integer, db.ForeignKey("sites.id", ondelete="CASCADE"))
    site = db.relationship(
        "Site", backref=db.backref("formations", cascade="all, delete")
    )
    branche_id = db.Column(
        db.Integer, db.ForeignKey("branches.id", ondelete="SET NULL")
    )
    branche = db.relationship("Branche", backref="formations")
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('draft','written','validated')",
            name="ck_formations_status",
        ),
        db.CheckConstraint(
            "status != 'validated' OR "
            "(approved_by_center_chief AND approved_by_coordinator)",
            name="ck_formations_validated_approved",
        ),
        db.Index("ix_formations_status", "status"),
    )


class Participant(db.Model):
    __tablename__ = "participants"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    user = db.relationship(
        "User",
        backref=db.backref(
            "participant", uselist=False, cascade="all, delete-orphan"
        ),
    )
    ista_id = db.Column(
        db.Integer, db.ForeignKey("istas.id", ondelete="CASCADE"), nullable=False
    )
    ista = db.relationship(
        "Ista", backref=db.backref("participants", cascade="all, delete-orphan")
    )
    formation_id = db.Column(
        db.Integer, db.ForeignKey("formations.id", ondelete="SET NULL")
    )
    formation = db.relationship("Formation", backref="participants")
    filiere_id = db.Column(
        db.Integer, db.ForeignKey("filieres.id", ondelete="SET NULL")
    )
    filiere = db.relationship("Filiere", backref="participants")
    created_at = db.Column(db.DateTime, server_default=db.func.now())


__all__ = [
    "User",
    "RoleCapability",
    "cdc_filieres",
    "Region",
    "City",
    "Site",
    "Ista",
    "Branche",
    "Filiere",
    "Formation",
    "Participant",
]

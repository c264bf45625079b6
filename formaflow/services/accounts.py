from __future__ import annotations

from typing import Iterable, Optional

from flask import current_app
from sqlalchemy import func

from ..app import db
from ..models import Branche, Filiere, Region, RoleCapability, User
from ..shared.constants import CAPABILITY_KINDS, CENTER_CHIEF, DIRECTOR
from ..shared.errors import NotFoundError, UnknownRoleError, ValidationError
from .store import EntityStore

PROFILE_FIELDS = ("full_name", "email", "phone")
MIN_PASSWORD_LENGTH = 8


def normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()


def get_user_by_email(email: str) -> Optional[User]:
    """Return the user with this email (case-insensitive)."""
    email_norm = normalize_email(email)
    if not email_norm:
        return None
    return User.query.filter(func.lower(User.email) == email_norm).one_or_none()


def create_user(
    email: str,
    full_name: str,
    password: str | None = None,
    phone: str | None = None,
    store: EntityStore | None = None,
) -> User:
    email_norm = normalize_email(email)
    missing = [
        name
        for name, value in (("email", email_norm), ("full_name", (full_name or "").strip()))
        if not value
    ]
    if missing:
        raise ValidationError("Missing required fields: " + ", ".join(missing), fields=missing)
    if "@" not in email_norm:
        raise ValidationError("email is not a valid address.", fields=["email"])
    if get_user_by_email(email_norm):
        raise ValidationError("A user with this email already exists.", fields=["email"])

    store = store or EntityStore()
    with store.unit_of_work():
        user = User(email=email_norm, full_name=full_name.strip(), phone=phone)
        if password:
            user.set_password(password)
        store.save(user)
    current_app.logger.info(f"[ACCOUNT] created user={user.id} email={email_norm}")
    return user


def _curated_filieres(
    store: EntityStore, branche: Branche, filiere_ids: Iterable[int]
) -> list[Filiere]:
    filieres = []
    for filiere_id in dict.fromkeys(filiere_ids):
        filiere = store.get(Filiere, filiere_id)
        if filiere.branche_id != branche.id:
            raise ValidationError(
                "Curated filieres must belong to the center chief's branche.",
                fields=["filiere_ids"],
            )
        filieres.append(filiere)
    return filieres


def grant_role(
    user_id: int,
    kind: str,
    *,
    region_id: int | None = None,
    branche_id: int | None = None,
    filiere_ids: Iterable[int] = (),
    store: EntityStore | None = None,
) -> RoleCapability:
    """Give ``user_id`` the ``kind`` capability with its role-specific scope."""

    if kind not in CAPABILITY_KINDS:
        raise UnknownRoleError(kind)
    store = store or EntityStore()
    with store.unit_of_work():
        user = store.get(User, user_id)
        if user.capability(kind) is not None:
            raise ValidationError(
                f"User already holds the {kind} role.", fields=["kind"]
            )
        cap = RoleCapability(user=user, kind=kind)
        if kind == DIRECTOR:
            if region_id is None:
                raise ValidationError("A regional director needs a region.", fields=["region_id"])
            cap.region = store.get(Region, region_id)
        if kind == CENTER_CHIEF:
            if branche_id is None:
                raise ValidationError("A center chief needs a branche.", fields=["branche_id"])
            cap.branche = store.get(Branche, branche_id)
            cap.filieres.extend(_curated_filieres(store, cap.branche, filiere_ids))
        store.save(cap)
    current_app.logger.info(f"[ACCOUNT] granted role={kind} user={user_id}")
    return cap


def set_cdc_filieres(
    user_id: int, filiere_ids: Iterable[int], store: EntityStore | None = None
) -> RoleCapability:
    """Replace the filieres a center chief curates."""

    store = store or EntityStore()
    with store.unit_of_work():
        user = store.get(User, user_id)
        cap = user.capability(CENTER_CHIEF)
        if cap is None:
            raise NotFoundError("RoleCapability", f"{user_id}/{CENTER_CHIEF}")
        cap.filieres = _curated_filieres(store, cap.branche, filiere_ids)
        store.save(cap)
    ids = ",".join(str(f.id) for f in cap.filieres)
    current_app.logger.info(f"[ACCOUNT] curated filieres={ids} user={user_id}")
    return cap


def revoke_role(user_id: int, kind: str, store: EntityStore | None = None) -> None:
    if kind not in CAPABILITY_KINDS:
        raise UnknownRoleError(kind)
    store = store or EntityStore()
    with store.unit_of_work():
        user = store.get(User, user_id)
        cap = user.capability(kind)
        if cap is None:
            raise NotFoundError("RoleCapability", f"{user_id}/{kind}")
        user.capabilities.remove(cap)
        db.session.flush()
    current_app.logger.info(f"[ACCOUNT] revoked role={kind} user={user_id}")


def delete_user(user_id: int, store: EntityStore | None = None) -> None:
    """Remove a user; their capabilities, participant record and facilitated formations go with it."""

    store = store or EntityStore()
    with store.unit_of_work():
        store.delete(User, user_id)
    current_app.logger.info(f"[ACCOUNT] deleted user={user_id}")


def update_profile(user_id: int, data: dict, store: EntityStore | None = None) -> User:
    """Change a user's own name, email or phone."""

    unknown = sorted(set(data) - set(PROFILE_FIELDS))
    if unknown:
        raise ValidationError("Unknown profile fields: " + ", ".join(unknown), fields=unknown)
    store = store or EntityStore()
    with store.unit_of_work():
        user = store.get(User, user_id)
        if "full_name" in data:
            full_name = (data["full_name"] or "").strip()
            if not full_name:
                raise ValidationError("full_name is required.", fields=["full_name"])
            user.full_name = full_name
        if "email" in data:
            email_norm = normalize_email(data["email"])
            if "@" not in email_norm:
                raise ValidationError("email is not a valid address.", fields=["email"])
            existing = get_user_by_email(email_norm)
            if existing is not None and existing.id != user.id:
                raise ValidationError("A user with this email already exists.", fields=["email"])
            user.email = email_norm
        if "phone" in data:
            user.phone = (data["phone"] or "").strip() or None
        store.save(user)
    current_app.logger.info(f"[ACCOUNT] profile updated user={user_id}")
    return user


def change_password(
    user_id: int,
    current_password: str | None,
    new_password: str | None,
    confirmation: str | None,
    store: EntityStore | None = None,
) -> None:
    store = store or EntityStore()
    with store.unit_of_work():
        user = store.get(User, user_id)
        if not user.check_password(current_password or ""):
            raise ValidationError("Current password is incorrect.", fields=["current_password"])
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"The new password needs at least {MIN_PASSWORD_LENGTH} characters.",
                fields=["new_password"],
            )
        if new_password != confirmation:
            raise ValidationError(
                "The password confirmation does not match.", fields=["confirmation"]
            )
        user.set_password(new_password)
        store.save(user)
    current_app.logger.info(f"[ACCOUNT] password changed user={user_id}")

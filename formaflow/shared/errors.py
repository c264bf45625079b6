"""Typed failures raised by the formation workflow and its collaborators.

Every error carries a ``kind`` tag plus the offending field, role or status so
callers can render an actionable message without parsing the text.
"""

from __future__ import annotations

from typing import Any, Iterable


class FormationError(Exception):
    kind = "error"
    status_code = 400

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = {k: v for k, v in detail.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        payload = {"ok": False, "error": self.kind, "message": self.message}
        payload.update(self.detail)
        return payload


class ValidationError(FormationError, ValueError):
    """Raised when required fields are missing or malformed."""

    kind = "validation"
    status_code = 400

    def __init__(self, message: str, fields: Iterable[str] = (), **detail: Any):
        self.fields = list(fields)
        super().__init__(message, fields=self.fields or None, **detail)


class AuthorizationError(FormationError, PermissionError):
    """Raised when the actor may not perform the requested mutation."""

    kind = "authorization"
    status_code = 403

    def __init__(self, message: str, role: str | None = None, **detail: Any):
        self.role = role
        super().__init__(message, role=role, **detail)


class StateError(FormationError):
    """Raised when an operation is invalid for the current workflow state."""

    kind = "state"
    status_code = 409

    def __init__(self, message: str, status: str | None = None, **detail: Any):
        self.status = status
        super().__init__(message, status=status, **detail)


class PreconditionError(FormationError):
    """Raised when a dependent condition (dual approval) is unmet."""

    kind = "precondition"
    status_code = 409

    def __init__(self, message: str, missing: Iterable[str] = (), **detail: Any):
        self.missing = list(missing)
        super().__init__(message, missing=self.missing or None, **detail)


class NotFoundError(FormationError, LookupError):
    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, ident: Any) -> None:
        self.entity = entity
        self.ident = ident
        super().__init__(f"{entity} {ident} not found", entity=entity, id=ident)


class UnknownRoleError(FormationError):
    """Raised for role tags outside the known set; never mapped to "no rows"."""

    kind = "unknown_role"
    status_code = 400

    def __init__(self, role: Any) -> None:
        self.role = role
        super().__init__(f"Unknown role {role!r}", role=str(role))


class StorageError(FormationError):
    """Wraps entity store failures (connectivity, constraint violations)."""

    kind = "storage"
    status_code = 500

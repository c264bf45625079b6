from functools import wraps

from flask import abort, jsonify, request, session

from ..app import db
from ..models import User
from .acl import is_admin, resolve_actor


def get_active_role(req) -> str | None:
    """Resolve the role the caller asked to act in for this request.

    Explicit ``role`` in the query string or JSON body wins over the
    ``active_role`` cookie; ``None`` means "the user's default role".
    """

    role = req.args.get("role")
    if not role and req.is_json:
        payload = req.get_json(silent=True)
        if isinstance(payload, dict):
            role = payload.get("role")
    if not role:
        role = req.cookies.get("active_role")
    return role or None


def actor_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user_id = session.get("user_id")
        if not user_id:
            return jsonify({"ok": False, "error": "authentication"}), 401
        user = db.session.get(User, user_id)
        if not user:
            abort(403)
        actor = resolve_actor(user, get_active_role(request))
        return fn(*args, **kwargs, actor=actor)

    return wrapper


def admin_required(fn):
    @actor_required
    @wraps(fn)
    def wrapper(*args, actor, **kwargs):
        if not is_admin(actor):
            abort(403)
        return fn(*args, **kwargs, actor=actor)

    return wrapper

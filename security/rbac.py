from functools import wraps
from flask import g, jsonify

from services.errors import ForbiddenError

def has_role(role_name: str) -> bool:
    user = getattr(g, "user", None)
    if not user:
        return False
    return any(r.name == role_name for r in user.roles)

def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN")

    SUPER_ADMIN passes every role check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            user_roles = {r.name for r in user.roles}
            if "SUPER_ADMIN" not in user_roles and not user_roles.intersection(set(role_names)):
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator

def ensure_venue_admin(user, venue):
    """Admins only manage venues they own; SUPER_ADMIN manages all."""
    names = {r.name for r in user.roles}
    if "SUPER_ADMIN" in names:
        return
    if "ADMIN" in names and venue.owner_user_id == user.id:
        return
    raise ForbiddenError("Not an admin of this venue")

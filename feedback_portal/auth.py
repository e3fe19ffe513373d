"""
Principal extraction for the HTTP layer.

Login and token verification happen in the upstream auth gateway, which
forwards the verified claims as X-User-* headers.
"""
import logging
from functools import wraps

from flask import g, request

from feedback_portal.exceptions import AccessScopeError
from feedback_portal.models.records import Principal

logger = logging.getLogger(__name__)

ROLES = ('admin', 'student')


def current_principal():
    """Return the request's Principal, raising AccessScopeError when absent."""
    principal = g.get('principal')
    if principal is not None:
        return principal

    user_id = request.headers.get('X-User-Id', '').strip()
    role = request.headers.get('X-User-Role', '').strip().lower()
    department = request.headers.get('X-User-Department', '').strip()
    if not user_id or role not in ROLES or not department:
        raise AccessScopeError("Not authorized")

    g.principal = Principal(id=user_id, role=role, department=department)
    return g.principal


def require_role(role):
    """Route decorator that rejects principals without *role*."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            principal = current_principal()
            if principal.role != role:
                logger.warning(f"{principal.role} {principal.id} denied access to {request.path}")
                raise AccessScopeError("Access denied")
            return view(*args, **kwargs)
        return wrapped
    return decorator

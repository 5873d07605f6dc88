from __future__ import annotations
from functools import wraps
from flask import request, abort

from clinic_api.errors import error_response
from clinic_api.services import get_services
from clinic_utils.security import AuthError, AuthErrorKind


def jwt_required():
    """Validate the bearer access token and pass its Claims to the view as ``claims``.

    Rejections answer 401 with the AuthErrorKind as the envelope's ``error``.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth:
                return error_response(AuthErrorKind.TOKEN_MISSING.value, "Missing Authorization header", 401)
            if not auth.startswith("Bearer "):
                return error_response(AuthErrorKind.TOKEN_MALFORMED.value, "Invalid Authorization header", 401)
            token = auth.split(" ", 1)[1].strip()

            claims = get_services().signer.validate(token)
            if isinstance(claims, AuthError):
                return error_response(claims.kind.value, claims.message, 401)
            kwargs["claims"] = claims
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the token carries ANY of the required roles.
    Deny (403) only if there is NO overlap between token roles and required_roles.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if not (set(kwargs["claims"].roles) & req):
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator

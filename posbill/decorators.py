# Overview: Authentication and role decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .services import session_service


def get_request_token() -> str | None:
    """Session token from the session cookie, or an Authorization: Bearer header."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get(current_app.config["SESSION_COOKIE_NAME"])


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.store: The user's Store
    - g.store_id: The store ID (tenant context)
    - g.session_context: The full SessionContext object

    Returns 401 when the token is missing, unknown, expired or revoked,
    or the user has been deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_request_token()
        if not token:
            return jsonify({"message": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"message": "Invalid or expired session"}), 401

        g.current_user = context.user
        g.store = context.store
        g.store_id = context.store_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require the authenticated user to hold one of roles. Apply after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"message": "Authentication required"}), 401
            if user.role not in roles:
                current_app.logger.warning(
                    "Role denied: user=%s role=%s required=%s path=%s",
                    user.id, user.role, ",".join(roles), request.path,
                )
                return jsonify({
                    "message": "Permission denied",
                    "requiredRoles": list(roles),
                }), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator

# Overview: Store registration, login/logout and current-user routes.

"""
Authentication API routes

MULTI-TENANT: Login takes a store code plus username/password. The user is
looked up only inside the store the code names.

SESSIONS: The session token is set as an HTTP-only cookie; the database
stores only its SHA-256 hash (see session_service).
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import get_request_token, require_auth
from ..services import auth_service, session_service
from ..services.auth_service import AuthError
from ..validation import ConflictError, ValidationError

auth_bp = Blueprint("auth", __name__, url_prefix="/api")


def _set_session_cookie(response, token: str):
    config = current_app.config
    response.set_cookie(
        config["SESSION_COOKIE_NAME"],
        token,
        max_age=int(config["SESSION_ABSOLUTE_TIMEOUT_HOURS"]) * 3600,
        httponly=True,
        secure=config["SESSION_COOKIE_SECURE"],
        samesite="Lax",
    )
    return response


def _start_session(user, store, status_code: int):
    _session, token = session_service.create_session(
        user,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    response = jsonify({"user": user.to_dict(), "store": store.to_dict()})
    response.status_code = status_code
    return _set_session_cookie(response, token)


@auth_bp.post("/register")
def register_route():
    """
    Register a new store together with its first admin user, then log in.

    Body: {username, password, name, email?, store: {name, code, address?, phone?, email?}}
    """
    data = request.get_json(silent=True) or {}
    try:
        store, user = auth_service.register_store(
            store_data=data.get("store"),
            username=data.get("username"),
            password=data.get("password"),
            name=data.get("name"),
            email=data.get("email"),
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        # Registration form shows this inline, like other field errors
        return jsonify({"message": str(e)}), 400

    return _start_session(user, store, 201)


@auth_bp.post("/login")
def login_route():
    """
    Authenticate against the store named by storeCode.

    Returns user and store; the session token is set as a cookie.
    """
    data = request.get_json(silent=True) or {}
    try:
        user, store = auth_service.authenticate(
            data.get("storeCode"),
            data.get("username"),
            data.get("password"),
        )
    except AuthError as e:
        current_app.logger.info("Login failed for store=%r: %s", data.get("storeCode"), e.message)
        return jsonify({"message": e.message}), e.status_code

    return _start_session(user, store, 200)


@auth_bp.post("/logout")
def logout_route():
    """Revoke the current session (if any) and clear the cookie."""
    session_service.revoke_session(get_request_token(), reason="User logout")
    response = jsonify({"message": "Logged out"})
    response.delete_cookie(current_app.config["SESSION_COOKIE_NAME"])
    return response, 200


@auth_bp.get("/user")
def current_user_route():
    context = session_service.validate_session(get_request_token())
    if not context:
        return jsonify({"message": "Not authenticated"}), 401
    return jsonify({"user": context.user.to_dict(), "store": context.store.to_dict()})


@auth_bp.get("/sessions/current")
@require_auth
def current_session_route():
    return jsonify(g.session_context.session.to_dict())

# Overview: Password hashing, store registration and tenant-scoped authentication.

"""
Authentication Service with Store-Scoped Tenancy

Passwords are stored as bcrypt hashes; bcrypt.checkpw compares in constant
time.

MULTI-TENANT: A user is looked up by (username, store_id) where the store
is resolved from the store code typed at login. Correct credentials for a
different store never authenticate.

SECURITY NOTES:
- Unknown username and wrong password return the same message
- Unknown store code has its own message (store codes are not secret)
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import Store, User
from ..models.auth import ROLE_ADMIN, VALID_ROLES
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError
from .activity_service import log_activity

MIN_PASSWORD_LENGTH = 6
# bcrypt only looks at the first 72 bytes and newer releases reject longer input
MAX_PASSWORD_BYTES = 72
MIN_USERNAME_LENGTH = 3
MIN_NAME_LENGTH = 2
MIN_STORE_CODE_LENGTH = 3

MSG_STORE_CODE_REQUIRED = "Store code is required"
MSG_INVALID_STORE_CODE = "Invalid store code"
MSG_INVALID_CREDENTIALS = "Invalid username or password"


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


class AuthError(Exception):
    """Authentication failure; message is safe to show to the client."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            "Password must be at least 6 characters",
            errors=[{"field": "password", "message": "Password must be at least 6 characters"}],
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordValidationError(
            "Password is too long",
            errors=[{"field": "password", "message": "Password must be at most 72 bytes"}],
        )


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt (cost factor from BCRYPT_ROUNDS, default 12).

    Password is validated before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long input
        return False


def normalize_store_code(code) -> str:
    return str(code or "").strip().upper()


def get_store_by_code(code) -> Store | None:
    normalized = normalize_store_code(code)
    if not normalized:
        return None
    return db.session.query(Store).filter_by(code=normalized).first()


def _validate_user_fields(username, password, name, role) -> list[dict]:
    errors = []
    if not isinstance(username, str) or len(username.strip()) < MIN_USERNAME_LENGTH:
        errors.append({"field": "username", "message": "Username must be at least 3 characters"})
    if not isinstance(name, str) or len(name.strip()) < MIN_NAME_LENGTH:
        errors.append({"field": "name", "message": "Name must be at least 2 characters"})
    if role not in VALID_ROLES:
        errors.append({"field": "role", "message": "Role must be admin, manager, or staff"})
    try:
        validate_password_strength(password)
    except PasswordValidationError as e:
        errors.extend(e.errors)
    return errors


def register_store(*, store_data: dict, username, password, name, email=None) -> tuple[Store, User]:
    """
    Create a store and its first (admin) user in one transaction.

    Raises:
        ValidationError: malformed input
        ConflictError: store code already taken
    """
    if not isinstance(store_data, dict):
        raise ValidationError("Invalid store data", errors=[{"field": "store", "message": "store is required"}])

    errors = _validate_user_fields(username, password, name, ROLE_ADMIN)

    store_name = store_data.get("name")
    code = normalize_store_code(store_data.get("code"))
    if not isinstance(store_name, str) or len(store_name.strip()) < MIN_NAME_LENGTH:
        errors.append({"field": "store.name", "message": "Store name must be at least 2 characters"})
    if len(code) < MIN_STORE_CODE_LENGTH:
        errors.append({"field": "store.code", "message": "Store code must be at least 3 characters"})
    if errors:
        raise ValidationError("Invalid registration data", errors=errors)

    if get_store_by_code(code) is not None:
        raise ConflictError("Store code already exists")

    store = Store(
        name=store_name.strip(),
        code=code,
        address=store_data.get("address"),
        phone=store_data.get("phone"),
        email=store_data.get("email"),
    )
    db.session.add(store)
    db.session.flush()

    user = User(
        store_id=store.id,
        username=username.strip(),
        name=name.strip(),
        email=email,
        role=ROLE_ADMIN,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    db.session.flush()

    log_activity(
        action="Store registered",
        entity_type="store",
        entity_id=store.id,
        details=f"Store {store.code} registered by {user.username}",
        store_id=store.id,
        user_id=user.id,
    )
    db.session.commit()
    return store, user


def create_user(
    *,
    store_id: int,
    username,
    password,
    name,
    email=None,
    role: str = "staff",
    actor_user_id: int | None = None,
) -> User:
    """
    Create a staff account in a store.

    Raises:
        ValidationError: malformed input or weak password
        ConflictError: username already exists in this store
    """
    errors = _validate_user_fields(username, password, name, role)
    if errors:
        raise ValidationError("Invalid user data", errors=errors)

    existing = db.session.query(User).filter_by(store_id=store_id, username=username.strip()).first()
    if existing:
        raise ConflictError("Username already exists in this store")

    user = User(
        store_id=store_id,
        username=username.strip(),
        name=name.strip(),
        email=email,
        role=role,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    db.session.flush()

    log_activity(
        action="User created",
        entity_type="user",
        entity_id=user.id,
        details=f"User {user.username} created with role {user.role}",
        store_id=store_id,
        user_id=actor_user_id,
    )
    db.session.commit()
    return user


def authenticate(store_code, username, password) -> tuple[User, Store]:
    """
    Authenticate staff within the store named by store_code.

    Steps: resolve store by code, look up user by (username, store.id),
    verify bcrypt hash. Updates last_login_at on success.

    Raises:
        AuthError: 400 when the store code is missing, otherwise 401
    """
    if not normalize_store_code(store_code):
        raise AuthError(MSG_STORE_CODE_REQUIRED, status_code=400)

    store = get_store_by_code(store_code)
    if store is None:
        raise AuthError(MSG_INVALID_STORE_CODE)

    user = None
    if isinstance(username, str) and username.strip():
        user = (
            db.session.query(User)
            .filter(
                User.username == username.strip(),
                User.store_id == store.id,
                User.is_active.is_(True),
            )
            .first()
        )

    if user is None:
        # Burn a hash so unknown users take as long as wrong passwords
        verify_password(password or "x", _dummy_hash())
        raise AuthError(MSG_INVALID_CREDENTIALS)

    if not verify_password(password, user.password_hash):
        raise AuthError(MSG_INVALID_CREDENTIALS)

    user.last_login_at = utcnow()
    db.session.commit()
    return user, store


_DUMMY_HASH: str | None = None


def _dummy_hash() -> str:
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = bcrypt.hashpw(b"posbill-dummy", bcrypt.gensalt(rounds=_bcrypt_rounds())).decode("utf-8")
    return _DUMMY_HASH

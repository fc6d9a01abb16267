"""Account lifecycle: registration, login checks, email verification and
password reset.

Verification and reset tokens are signed with the app secret and expire after
``EMAIL_TOKEN_MAX_AGE_SECONDS``; nothing is stored for them. A reset token
carries a fingerprint of the password hash it was issued against, so it stops
working once the password changes.
"""

from __future__ import annotations

import hashlib

from flask import current_app
from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

from pagemark.extensions import db
from pagemark.models import Page, User, utcnow
from pagemark.services.common import clean_email
from pagemark.services.errors import (
    Conflict,
    Forbidden,
    InvalidArgument,
    Unauthorized,
)
from pagemark.services.mail import send_password_reset_email, send_verification_email
from pagemark.services.store import atomic


VERIFY_SALT = "email-verification"
RESET_SALT = "password-reset"
DUPLICATE_EMAIL_MESSAGE = "this email address is already registered"


def _serializer(salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(
        secret_key=current_app.config["SECRET_KEY"], salt=salt
    )


def _load_token(token: str, salt: str) -> dict:
    if not token or not isinstance(token, str):
        raise InvalidArgument("token is required")
    try:
        payload = _serializer(salt).loads(
            token, max_age=current_app.config["EMAIL_TOKEN_MAX_AGE_SECONDS"]
        )
    except SignatureExpired:
        current_app.logger.warning("rejected expired %s token", salt)
        raise InvalidArgument("token has expired") from None
    except BadData:
        current_app.logger.warning("rejected malformed %s token", salt)
        raise InvalidArgument("token is not valid") from None
    if not isinstance(payload, dict) or not isinstance(payload.get("user_id"), int):
        raise InvalidArgument("token is not valid")
    return payload


def _password_fingerprint(user: User) -> str:
    return hashlib.sha256((user.password_hash or "").encode("utf-8")).hexdigest()[:16]


def _check_password_strength(password) -> str:
    minimum = current_app.config["PASSWORD_MIN_LENGTH"]
    if not isinstance(password, str) or len(password) < minimum:
        raise InvalidArgument(f"password must be at least {minimum} characters")
    return password


def _find_user(email) -> User | None:
    text = (email or "").strip().lower() if isinstance(email, str) else ""
    if not text:
        return None
    return User.query.filter_by(email=text).first()


def create_verification_token(user: User) -> str:
    return _serializer(VERIFY_SALT).dumps({"user_id": user.id, "email": user.email})


def create_password_reset_token(user: User) -> str:
    return _serializer(RESET_SALT).dumps(
        {"user_id": user.id, "fingerprint": _password_fingerprint(user)}
    )


def register_user(email, password, name=None) -> User:
    email = clean_email(email)
    password = _check_password_strength(password)

    with atomic(conflict_message=DUPLICATE_EMAIL_MESSAGE):
        if User.query.filter_by(email=email).first() is not None:
            raise Conflict(DUPLICATE_EMAIL_MESSAGE)
        user = User(email=email, name=(name or "").strip() or None)
        user.set_password(password)
        db.session.add(user)
        db.session.flush()

    current_app.logger.info("registered user %s", user.id)
    send_verification_email(user.email, create_verification_token(user))
    return user


def authenticate(email, password) -> User:
    user = _find_user(email)
    if user is None or not isinstance(password, str) or not user.check_password(password):
        current_app.logger.warning("rejected login for %r", email)
        raise Unauthorized("invalid email or password")
    if current_app.config["REQUIRE_EMAIL_VERIFICATION"] and not user.is_verified:
        raise Forbidden("email address is not verified")
    return user


def verify_email(token) -> User:
    payload = _load_token(token, VERIFY_SALT)
    user = db.session.get(User, payload["user_id"])
    if user is None or user.email != payload.get("email"):
        raise InvalidArgument("token is not valid")

    if not user.is_verified:
        with atomic():
            user.email_verified_at = utcnow()
        current_app.logger.info("verified email for user %s", user.id)
    return user


def resend_verification(email) -> bool:
    """Returns False, without revealing why, when no such account exists."""
    user = _find_user(clean_email(email))
    if user is None:
        return False
    if user.is_verified:
        raise InvalidArgument("this email address is already verified")
    send_verification_email(user.email, create_verification_token(user))
    return True


def request_password_reset(email) -> bool:
    user = _find_user(email)
    if user is None or not user.password_hash:
        return False
    send_password_reset_email(user.email, create_password_reset_token(user))
    return True


def reset_password(token, password) -> User:
    password = _check_password_strength(password)
    payload = _load_token(token, RESET_SALT)
    user = db.session.get(User, payload["user_id"])
    if user is None or payload.get("fingerprint") != _password_fingerprint(user):
        raise InvalidArgument("token is not valid")

    with atomic():
        user.set_password(password)
    current_app.logger.info("password reset for user %s", user.id)
    return user


def get_profile(user: User) -> dict:
    return {
        **user.as_dict(),
        "bookmark_count": Page.query.filter_by(user_id=user.id).count(),
    }


def update_profile(user: User, name, email) -> User:
    name = (name or "").strip() if isinstance(name, str) else ""
    if not name:
        raise InvalidArgument("name is required")
    email = clean_email(email)

    with atomic(conflict_message=DUPLICATE_EMAIL_MESSAGE):
        if email != user.email:
            taken = User.query.filter(User.email == email, User.id != user.id).first()
            if taken is not None:
                raise Conflict(DUPLICATE_EMAIL_MESSAGE)
        user.name = name
        user.email = email
    return user

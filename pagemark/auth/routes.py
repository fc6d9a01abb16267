from flask import g, jsonify, request
from flask_login import login_user, logout_user

from pagemark.auth import auth_bp
from pagemark.services.accounts import (
    authenticate,
    get_profile,
    register_user,
    request_password_reset,
    resend_verification,
    reset_password,
    update_profile,
    verify_email,
)
from pagemark.services.security import api_auth_required


def _payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@auth_bp.route("/auth/register", methods=["POST"])
def register():
    payload = _payload()
    user = register_user(
        payload.get("email"), payload.get("password"), payload.get("name")
    )
    return jsonify(user.as_dict()), 201


@auth_bp.route("/auth/login", methods=["POST"])
def login():
    payload = _payload()
    user = authenticate(payload.get("email"), payload.get("password"))
    login_user(user)
    return jsonify(user.as_dict())


@auth_bp.route("/auth/logout", methods=["POST"])
@api_auth_required()
def logout():
    logout_user()
    return jsonify({"status": "logged out"})


@auth_bp.route("/auth/verify-email", methods=["POST"])
def verify_email_route():
    user = verify_email(_payload().get("token"))
    return jsonify({"status": "verified", "email": user.email})


@auth_bp.route("/auth/resend-verification", methods=["POST"])
def resend_verification_route():
    # Same answer whether or not the account exists.
    resend_verification(_payload().get("email"))
    return jsonify({"status": "sent"})


@auth_bp.route("/auth/forgot-password", methods=["POST"])
def forgot_password():
    request_password_reset(_payload().get("email"))
    return jsonify({"status": "sent"})


@auth_bp.route("/auth/new-password", methods=["POST"])
def new_password():
    payload = _payload()
    reset_password(payload.get("token"), payload.get("password"))
    return jsonify({"status": "password updated"})


@auth_bp.route("/profile", methods=["GET"])
@api_auth_required()
def profile():
    return jsonify(get_profile(g.api_user))


@auth_bp.route("/profile", methods=["PUT"])
@api_auth_required()
def profile_update():
    payload = _payload()
    user = update_profile(g.api_user, payload.get("name"), payload.get("email"))
    return jsonify(get_profile(user))

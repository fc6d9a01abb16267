from flask import Blueprint


auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1")

from pagemark.auth import routes  # noqa: E402,F401

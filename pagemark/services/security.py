from functools import wraps

from flask import g, jsonify
from flask_login import current_user

from pagemark.extensions import login_manager


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify({"error": "authentication required"}), 401


def get_authenticated_api_user():
    if current_user.is_authenticated and current_user.is_active:
        return current_user._get_current_object()
    return None


def api_auth_required():
    def decorator(func):
        @wraps(func)
        def wrapped(*args, **kwargs):
            user = get_authenticated_api_user()
            if not user:
                return jsonify({"error": "authentication required"}), 401
            g.api_user = user
            return func(*args, **kwargs)

        return wrapped

    return decorator

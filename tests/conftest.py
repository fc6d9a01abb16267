import pytest

from pagemark import create_app
from pagemark.config import TestConfig
from pagemark.extensions import db
from pagemark.models import User, utcnow


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(email="user@example.com", password="correct-horse", verified=True):
        user = User(email=email, email_verified_at=utcnow() if verified else None)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id

    return _make


@pytest.fixture
def login(client):
    def _login(email="user@example.com", password="correct-horse"):
        response = client.post(
            "/api/v1/auth/login", json={"email": email, "password": password}
        )
        assert response.status_code == 200, response.get_json()
        return response

    return _login

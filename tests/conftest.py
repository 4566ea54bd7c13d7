import pytest

import services
from app import create_app
from models import db


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def session(app):
    with app.app_context():
        yield db.session


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(session):
    def _make_user(username, email=None, password='secret123'):
        return services.register_user(session, username, email or f'{username}@example.com', password)
    return _make_user


@pytest.fixture
def make_post(session):
    def _make_post(user, caption=None, image_url='https://img.example.com/p.jpg'):
        return services.create_post(session, user.id, image_url, caption)
    return _make_post

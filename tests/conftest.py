"""
Shared fixtures: an app on in-memory SQLite with the room catalog seeded.

Route tests use ``client`` without a pushed app context so every request gets
its own ``g``. Service tests ask for ``ctx`` to run inside an app context.
"""
from types import SimpleNamespace

import pytest

from app import create_app
from config import TestingConfig
from extensions import db
from models import ADMIN_ROLE, Profile, Room, User, UserRole

PASSWORD = 'secret123'


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def make_user(app, email, password=PASSWORD, first_name='Test', last_name='Guest',
              confirmed=True, admin=False, profile=True):
    with app.app_context():
        user = User(email=email, email_confirmed=confirmed)
        user.set_password(password)
        db.session.add(user)
        db.session.flush()
        if profile:
            db.session.add(Profile(user_id=user.id, email=email, first_name=first_name, last_name=last_name))
        if admin:
            db.session.add(UserRole(user_id=user.id, role=ADMIN_ROLE))
        db.session.commit()
        return SimpleNamespace(id=user.id, email=user.email)


def find_room(app, name):
    with app.app_context():
        room = Room.query.filter_by(name=name).one()
        return SimpleNamespace(id=room.id, name=room.name, price=room.price, capacity=room.capacity)


@pytest.fixture
def guest(app):
    return make_user(app, 'guest@example.com')


@pytest.fixture
def other_guest(app):
    return make_user(app, 'other@example.com', first_name='Other')


@pytest.fixture
def admin_user(app):
    return make_user(app, 'admin@haven.com', first_name='Hannah', last_name='Reyes', admin=True)


@pytest.fixture
def deluxe_king(app):
    return find_room(app, 'Deluxe King Room')


@pytest.fixture
def corner_suite(app):
    """Seeded as unavailable"""
    return find_room(app, 'Executive Corner Suite')


def login(client, email, password=PASSWORD):
    return client.post('/login', data={'email': email, 'password': password})


def api_token(client, email, password=PASSWORD):
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()['session']['access_token']


def auth_header(token):
    return {'Authorization': f'Bearer {token}'}

"""Shared pytest fixtures for the API test suite.

Fixture overview
----------------
app            -- application built from TestingConfig on an in-memory SQLite
                  database; the app context stays pushed for the whole test
client         -- Flask test client
token_claims   -- registry of fake Firebase tokens (token -> decoded claims);
                  ``verify_firebase_token`` is replaced by a lookup in it
auth_headers   -- ``auth_headers(uid, **claims)`` registers a token and returns
                  the Authorization header for it
make_profile   -- ``make_profile(uid, user_type, **fields)`` inserts a profile
login          -- make_profile + auth_headers in one call
"""

import pytest

from config import TestingConfig
from ethiomaids import create_app, db
from ethiomaids.models import Profile
from ethiomaids.utils.rate_limit import limiter


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    limiter.reset()


@pytest.fixture
def client(app):
    return app.test_client()


# -- Authentication ----------------------------------------------------------


@pytest.fixture
def token_claims(monkeypatch):
    registry = {}
    monkeypatch.setattr('ethiomaids.utils.auth.verify_firebase_token', registry.get)
    return registry


@pytest.fixture
def auth_headers(token_claims):
    def _auth_headers(uid, email=None, **claims):
        token = f'token-{uid}'
        token_claims[token] = dict(
            {'sub': uid, 'user_id': uid, 'email': email or f'{uid}@example.com'},
            **claims
        )
        return {'Authorization': f'Bearer {token}'}
    return _auth_headers


# -- Data ----------------------------------------------------------------------


@pytest.fixture
def make_profile(app):
    def _make_profile(uid, user_type='sponsor', **fields):
        fields.setdefault('full_name', f'{uid.capitalize()} Tester')
        fields.setdefault('email', f'{uid}@example.com')
        profile = Profile(id=uid, user_type=user_type, **fields)
        db.session.add(profile)
        db.session.commit()
        return profile
    return _make_profile


@pytest.fixture
def login(make_profile, auth_headers):
    def _login(uid, user_type='sponsor', **fields):
        profile = make_profile(uid, user_type, **fields)
        return auth_headers(uid, email=profile.email)
    return _login

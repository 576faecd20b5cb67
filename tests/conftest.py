"""
Shared fixtures.

Each test gets a fresh app over in-memory SQLite with Supabase and Stripe
unconfigured, so auth falls back to local password hashes.

Requests are never made while a test holds an app context open: Flask
would reuse it and leak `g` (and the logged-in user) between requests.
"""

import pytest
from werkzeug.security import generate_password_hash

from trustgraph.app import create_app
from trustgraph.models import db, User
from trustgraph.question_bank import ORG_QUESTIONS

PASSWORD = 'correct-horse-battery'
JWT_SECRET = 'test-jwt-secret-with-enough-length-for-hs256'


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SUPABASE_URL': None,
        'SUPABASE_KEY': None,
        'SUPABASE_SERVICE_ROLE_KEY': None,
        'SUPABASE_JWT_SECRET': JWT_SECRET,
        'STRIPE_SECRET_KEY': 'sk_test_123',
        'STRIPE_WEBHOOK_SECRET': 'whsec_test',
        'STRIPE_PRO_MONTHLY_PRICE_ID': 'price_monthly',
        'STRIPE_PRO_YEARLY_PRICE_ID': 'price_yearly',
        'SITE_URL': 'http://localhost:5000',
        'UNLOCK_CODE': 'DEMO-UNLOCK',
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Creates a profile and returns its id."""
    def _make(email='owner@example.com', plan='explorer', **fields):
        with app.app_context():
            user = User(
                email=email,
                password_hash=generate_password_hash(PASSWORD),
                plan=plan,
                **fields
            )
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture
def login(client):
    def _login(email='owner@example.com', password=PASSWORD, using=None):
        res = (using or client).post('/auth/login', json={'email': email, 'password': password})
        assert res.status_code == 200, res.get_json()
        return res
    return _login


@pytest.fixture
def explorer_user(make_user, login):
    user_id = make_user(email='explorer@example.com', plan='explorer', company_name='Acme Ltd')
    login('explorer@example.com')
    return user_id


@pytest.fixture
def pro_user(make_user, login):
    user_id = make_user(email='pro@example.com', plan='pro', company_name='Globex')
    login('pro@example.com')
    return user_id


@pytest.fixture
def all_answers():
    def _answers(value=4):
        return {q['id']: value for q in ORG_QUESTIONS}
    return _answers


@pytest.fixture
def create_org_run(client):
    def _create(invite_count=5, **extra):
        payload = {'orgName': 'Acme Ltd', 'runTitle': 'Q3 Pulse', 'mode': 'org', 'inviteCount': invite_count}
        payload.update(extra)
        res = client.post('/api/create-run', json=payload)
        assert res.status_code == 200, res.get_json()
        return res.get_json()['data']
    return _create

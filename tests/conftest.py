import pytest

from app import create_app


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SESSION_COOKIE_SECURE': False,
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    resp = client.post('/register', json={
        'username': 'admin', 'password': 'secret123',
        'full_name': 'Exam Admin', 'email': 'admin@example.com',
    })
    assert resp.status_code == 201
    resp = client.post('/login', json={'username': 'admin', 'password': 'secret123'})
    assert resp.status_code == 200
    return client

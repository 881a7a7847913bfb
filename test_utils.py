import pytest
from flask import Flask
from utils import instructor_required

@pytest.fixture
def app():
    app = Flask(__name__)
    app.secret_key = "test_secret"

    @app.route('/protected')
    @instructor_required
    def protected():
        return "Instructor Access"

    return app

@pytest.fixture
def client(app):
    return app.test_client()

def test_instructor_required_rejects_if_not_signed_in(client):
    response = client.get('/protected', follow_redirects=False)
    assert response.status_code == 401
    assert response.get_json() == {"ok": False, "error": "Sign in required"}

def test_instructor_required_allows_access_if_signed_in(app, client):
    with client.session_transaction() as sess:
        sess['instructor_id'] = 7
    response = client.get('/protected')
    assert response.status_code == 200
    assert b"Instructor Access" in response.data

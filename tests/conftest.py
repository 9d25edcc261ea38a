import pytest

from app import app as flask_app
from json_store import JsonDocumentStore


@pytest.fixture
def store(tmp_path):
    return JsonDocumentStore(str(tmp_path))


@pytest.fixture
def app(tmp_path):
    flask_app.config.update(TESTING=True, DATA_DIR=str(tmp_path), API_SHARED_KEY=None)
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def signed_in(client):
    with client.session_transaction() as sess:
        sess['user_id'] = 'user_1'
    return client

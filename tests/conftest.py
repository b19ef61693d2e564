import os
import tempfile

# Settings and the engine are built at import time, so the test database has
# to be configured before anything from bizdash is imported.
_DB_DIR = tempfile.mkdtemp(prefix="bizdash-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from bizdash.db.session import engine  # noqa: E402
from bizdash.db.tables import init_db, metadata  # noqa: E402
from bizdash.main import app  # noqa: E402


@pytest.fixture
def client():
    metadata.drop_all(engine)
    init_db(engine)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    resp = client.post(
        "/register",
        json={"username": "admin", "email": "admin@example.com", "password": "secret123", "mobileNo": "9999999999"},
    )
    assert resp.status_code == 201, resp.text
    resp = client.post("/login", json={"username": "admin", "password": "secret123"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['accessToken']}"}


@pytest.fixture
def dealer(client, auth_headers):
    resp = client.post(
        "/backend/dealers",
        json={
            "dealerName": "Acme Traders",
            "products": [
                {"productName": "Rice 25kg", "productPrice": 100},
                {"productName": "Sugar 10kg", "productPrice": 50},
            ],
        },
        headers=auth_headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()

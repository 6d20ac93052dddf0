import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_access_token
from database import get_db
from main import app


@pytest.fixture
def db():
    return mongomock.MongoClient()["product-hunt-test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    # Not used as a context manager so the lifespan never opens a real connection.
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(email, role=None, subscribed=False):
        doc = {"email": email, "name": email.split("@")[0], "role": role, "isSubscribed": subscribed, "paymentVerified": subscribed}
        doc["_id"] = db["user"].insert_one(doc).inserted_id
        return doc
    return _make


@pytest.fixture
def auth_header():
    def _header(email, **claims):
        return {"Authorization": f"Bearer {create_access_token({'email': email, **claims})}"}
    return _header


@pytest.fixture
def make_product(client, db, make_user):
    def _make(owner="owner@mail.com", **fields):
        if not db["user"].find_one({"email": owner}):
            make_user(owner, subscribed=True)
        body = {"name": "Widget", "ownerEmail": owner, "tags": ["tools"], **fields}
        res = client.post("/products", json=body)
        assert res.status_code == 200, res.text
        return res.json()
    return _make

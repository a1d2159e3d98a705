import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from main import app


@pytest.fixture
def client():
    database.connect(mongomock.MongoClient())
    yield TestClient(app)
    database.close()


@pytest.fixture
def db(client):
    return database.get_db()


@pytest.fixture
def make_crop(client):
    def _make(**fields):
        body = {
            "name": "Wheat",
            "type": "Grain",
            "location": "Punjab",
            "quantity": 100,
            "owner": {"ownerEmail": "a@x.com", "ownerName": "Asha"},
        }
        body.update(fields)
        res = client.post("/crops", json=body)
        assert res.status_code == 200
        return res.json()["insertedId"]

    return _make

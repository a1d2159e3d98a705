import pytest

import database
import services


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["timestamp"]


def test_root_lists_endpoints(client):
    body = client.get("/").json()
    assert body["status"] == "success"
    assert body["endpoints"]["latestCrops"] == "/crops/latest"


def test_unknown_route(client):
    res = client.get("/no/such/route")
    assert res.status_code == 404
    assert res.json() == {"message": "Route not found"}


def test_store_failure_becomes_500(client, monkeypatch):
    def broken(search=None):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(services, "list_crops", broken)

    res = client.get("/crops")
    assert res.status_code == 500
    assert res.json() == {"message": "Failed to fetch crops", "error": "connection reset"}


def test_get_db_before_connect():
    database.close()
    with pytest.raises(RuntimeError):
        database.get_db()


def test_serialize_doc_converts_ids_and_dates():
    from datetime import datetime
    from bson import ObjectId

    oid, nested = ObjectId(), ObjectId()
    doc = {
        "_id": oid,
        "createdAt": datetime(2024, 5, 1, 12, 0),
        "interests": [{"_id": nested, "cropId": oid}],
    }
    out = services.serialize_doc(doc)
    assert out["id"] == str(oid)
    assert "_id" not in out
    assert out["createdAt"] == "2024-05-01T12:00:00"
    assert out["interests"] == [{"id": str(nested), "cropId": str(oid)}]


def test_unsupported_method_is_route_not_found(client):
    res = client.patch("/crops")
    assert res.status_code == 404
    assert res.json() == {"message": "Route not found"}


def test_diagnostics_route_is_not_exposed(client):
    assert client.get("/test").status_code == 404

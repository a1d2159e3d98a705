def test_save_new_user(client, db):
    res = client.post("/users", json={"email": "a@x.com", "name": "Asha", "photo": "a.png"})
    assert res.status_code == 200
    body = res.json()
    assert body["upsertedCount"] == 1
    assert body["upsertedId"]

    user = client.get("/users/a@x.com").json()
    assert user["email"] == "a@x.com"
    assert user["name"] == "Asha"
    assert db["users"].count_documents({}) == 1


def test_save_existing_user_keeps_unspecified_fields(client, db):
    client.post("/users", json={"email": "a@x.com", "name": "Asha", "photo": "a.png"})

    res = client.post("/users", json={"email": "a@x.com", "name": "Asha K"})
    assert res.status_code == 200
    assert res.json()["matchedCount"] == 1
    assert res.json()["upsertedCount"] == 0

    user = client.get("/users/a@x.com").json()
    assert user["name"] == "Asha K"
    assert user["photo"] == "a.png"
    assert db["users"].count_documents({}) == 1


def test_save_user_requires_email(client):
    assert client.post("/users", json={"name": "Nobody"}).status_code == 422


def test_unknown_user_is_null(client):
    res = client.get("/users/ghost@x.com")
    assert res.status_code == 200
    assert res.json() is None

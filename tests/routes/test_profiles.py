from tafara.services import models
from tafara.services.secrets import read_api_key


def auth(user_id):
    return {"Authorization": f"Bearer token-{user_id}"}


def test_profile_lifecycle(client, session_factory):
    resp = client.post(
        "/profiles", json={"username": "alice", "api_key": "sk-or-alice"}, headers=auth("u1")
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "id": "u1",
        "username": "alice",
        "email": "u1@example.com",
        "is_preset_account": False,
        "has_api_key": True,
    }
    assert "sk-or-alice" not in resp.text

    # Stored encrypted
    db = session_factory()
    profile = db.query(models.UserProfile).filter(models.UserProfile.id == "u1").first()
    assert profile.api_key != "sk-or-alice"
    assert read_api_key(profile) == "sk-or-alice"
    db.close()

    resp = client.get("/profiles/me", headers=auth("u1"))
    assert resp.json()["username"] == "alice"

    resp = client.put("/profiles/me/api_key", json={"api_key": "sk-or-rotated"}, headers=auth("u1"))
    assert resp.status_code == 200
    assert "sk-or-rotated" not in resp.text
    db = session_factory()
    profile = db.query(models.UserProfile).filter(models.UserProfile.id == "u1").first()
    assert read_api_key(profile) == "sk-or-rotated"
    db.close()


def test_profile_requires_session(client):
    assert client.post("/profiles", json={"username": "x", "api_key": "sk-or-x"}).status_code == 401
    assert client.get("/profiles/me").status_code == 401
    assert client.get("/profiles/me", headers={"Authorization": "Bearer bad"}).status_code == 401


def test_profile_validation(client):
    resp = client.post("/profiles", json={"username": "bob"}, headers=auth("u2"))
    assert resp.status_code == 400

    resp = client.post("/profiles", json={"username": "bob", "api_key": "sk-123"}, headers=auth("u2"))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid OpenRouter API key format"

    resp = client.post("/profiles", json={"username": "bob", "api_key": "sk-or-bob"}, headers=auth("u2"))
    assert resp.status_code == 200

    resp = client.post("/profiles", json={"username": "bob", "api_key": "sk-or-bob"}, headers=auth("u3"))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Username already taken"

    resp = client.post("/profiles", json={"username": "bobby", "api_key": "sk-or-bob"}, headers=auth("u2"))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Profile already exists"

    resp = client.put("/profiles/me/api_key", json={"api_key": "nope"}, headers=auth("u2"))
    assert resp.status_code == 400


def test_preset_account_designated_by_email(client):
    # fake auth gives user "preset" the email preset@example.com
    resp = client.post("/profiles", json={"username": "bree"}, headers=auth("preset"))
    assert resp.status_code == 200
    assert resp.json()["is_preset_account"] is True
    assert resp.json()["has_api_key"] is False


def test_me_without_profile(client):
    assert client.get("/profiles/me", headers=auth("ghost")).status_code == 404

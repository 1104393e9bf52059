import pytest

from tafara.app import main
from tafara.services.openrouter import MalformedResponse, UpstreamError, UpstreamTimeout


CONFIG = {
    "name": "Study Buddy",
    "personality": "patient",
    "instructions": "Quiz me on biology",
    "model": "m1",
}


@pytest.fixture
def upstream(monkeypatch):
    """Record outbound gateway calls instead of making them."""
    calls = []
    state = {"reply": "Let's start with cells.", "error": None}

    async def fake_chat_with_openrouter(api_key, model, messages):
        calls.append({"api_key": api_key, "model": model, "messages": messages})
        if state["error"] is not None:
            raise state["error"]
        return state["reply"]

    monkeypatch.setattr(main, "chat_with_openrouter", fake_chat_with_openrouter)
    return {"calls": calls, "state": state}


def chat_body(token="token-u1", messages=None, config=None):
    body = {
        "messages": messages if messages is not None else [{"role": "user", "content": "Start"}],
        "config": config or CONFIG,
    }
    if token is not None:
        body["sessionToken"] = token
    return body


def test_scenario_upstream_messages(client, make_profile, upstream):
    make_profile("u1", "alice", api_key="sk-or-alice")
    resp = client.post("/api/chat", json=chat_body())
    assert resp.status_code == 200
    assert resp.json() == {"content": "Let's start with cells."}

    call = upstream["calls"][0]
    assert call["model"] == "m1"
    assert call["api_key"] == "sk-or-alice"
    assert call["messages"] == [
        {"role": "system", "content": "You are Study Buddy. Your personality is patient. Quiz me on biology"},
        {"role": "user", "content": "Start"},
    ]


def test_transcript_forwarded_verbatim(client, make_profile, upstream):
    make_profile("u1", "alice", api_key="sk-or-alice")
    transcript = [{"role": "user" if i % 2 == 0 else "assistant", "content": f"t{i}"} for i in range(40)]
    resp = client.post("/api/chat", json=chat_body(messages=transcript))
    assert resp.status_code == 200
    assert upstream["calls"][0]["messages"][1:] == transcript


@pytest.mark.parametrize(
    "body",
    [
        chat_body(token=None),
        chat_body(token=""),
        chat_body(token="garbage"),
        {"sessionToken": "garbage"},
        {"nonsense": True},
        [],
    ],
)
def test_unauthorized_regardless_of_body(client, make_profile, upstream, body):
    make_profile("u1", "alice", api_key="sk-or-alice")
    resp = client.post("/api/chat", json=body)
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}
    assert upstream["calls"] == []


def test_unauthorized_non_json_body(client, upstream):
    resp = client.post("/api/chat", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 401


def test_invalid_body_after_auth(client, make_profile, upstream):
    make_profile("u1", "alice", api_key="sk-or-alice")
    resp = client.post("/api/chat", json={"sessionToken": "token-u1", "messages": "nope"})
    assert resp.status_code == 400
    assert upstream["calls"] == []


def test_profile_missing(client, upstream):
    resp = client.post("/api/chat", json=chat_body(token="token-ghost"))
    assert resp.status_code == 404
    assert resp.json() == {"error": "Profile not found"}


def test_no_api_key_makes_no_upstream_call(client, make_profile, upstream):
    make_profile("u1", "alice")
    resp = client.post("/api/chat", json=chat_body())
    assert resp.status_code == 400
    assert resp.json() == {"error": "No API key found"}
    assert upstream["calls"] == []


def test_preset_account_uses_shared_key(client, make_profile, upstream):
    make_profile("u1", "bree", api_key="sk-or-own-key", preset=True)
    resp = client.post("/api/chat", json=chat_body())
    assert resp.status_code == 200
    assert upstream["calls"][0]["api_key"] == "sk-or-shared"


def test_preset_account_without_shared_key(client, make_profile, upstream, monkeypatch):
    from tafara.services.settings import get_settings

    monkeypatch.delenv("SHARED_API_KEY")
    get_settings.cache_clear()
    make_profile("u1", "bree", api_key="sk-or-own-key", preset=True)
    resp = client.post("/api/chat", json=chat_body())
    assert resp.status_code == 400
    assert upstream["calls"] == []


@pytest.mark.parametrize(
    "error, status, message",
    [
        (UpstreamError("Insufficient credits", status_code=402), 402, "Insufficient credits"),
        (UpstreamError("Rate limited", status_code=429), 429, "Rate limited"),
        (UpstreamTimeout("Upstream request timed out"), 504, "Upstream request timed out"),
        (MalformedResponse("Invalid API response format"), 502, "Invalid API response format"),
        (RuntimeError("boom sk-or-alice"), 500, "Internal server error"),
    ],
)
def test_upstream_failures(client, make_profile, upstream, error, status, message):
    make_profile("u1", "alice", api_key="sk-or-alice")
    upstream["state"]["error"] = error
    resp = client.post("/api/chat", json=chat_body())
    assert resp.status_code == status
    assert resp.json() == {"error": message}
    assert "sk-or-alice" not in resp.text
    assert len(upstream["calls"]) == 1

import pytest

from tafara.services import models, secrets


@pytest.fixture(autouse=True)
def fixed_master_key(monkeypatch):
    monkeypatch.setattr(secrets, "_MASTER_KEY", b"A" * 32)


def test_encrypt_decrypt_roundtrip():
    token = secrets.encrypt("secret")
    assert token != "secret"
    assert secrets.decrypt(token) == "secret"


def test_decrypt_rejects_unknown_version():
    import base64

    bogus = base64.urlsafe_b64encode(b"\x02" + b"0" * 20).decode("ascii")
    with pytest.raises(ValueError):
        secrets.decrypt(bogus)


def test_api_key_format():
    assert secrets.is_valid_api_key("sk-or-v1-abc")
    assert not secrets.is_valid_api_key("sk-or-")
    assert not secrets.is_valid_api_key("sk-abc")
    assert not secrets.is_valid_api_key("")


def test_store_and_read_api_key():
    profile = models.UserProfile(id="u1", username="alice")
    secrets.store_api_key(profile, "sk-or-personal")
    assert profile.api_key != "sk-or-personal"
    assert secrets.read_api_key(profile) == "sk-or-personal"

    secrets.store_api_key(profile, None)
    assert profile.api_key is None
    assert secrets.read_api_key(profile) is None


def test_read_api_key_unreadable_value():
    profile = models.UserProfile(id="u1", username="alice", api_key="not-a-token")
    assert secrets.read_api_key(profile) is None

"""
HTTP-backed collaborators (identity provider, object storage, profiles)
against a stubbed ``requests``.
"""
import pytest
import requests

from chat_api.core import security
from chat_api.core.errors import Internal, Unauthorized
from chat_api.storage import blob, profiles
from chat_api.storage.blob import RemoteBlobStore, StorageError
from chat_api.storage.profiles import NullProfileDirectory, Profile, RemoteProfileDirectory


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


def test_remote_identity_verifier(monkeypatch):
    seen = {}

    def fake_get(url, headers=None, timeout=None):
        seen["url"] = url
        seen["headers"] = headers
        if headers["Authorization"] == "Bearer good":
            return FakeResponse(200, {"id": "user-1", "email": "a@example.com"})
        return FakeResponse(401, {"msg": "invalid"})

    monkeypatch.setattr(security.requests, "get", fake_get)
    verifier = security.RemoteIdentityVerifier("https://id.example.com/", api_key="anon")

    assert verifier.verify("good") == "user-1"
    assert seen["url"] == "https://id.example.com/auth/v1/user"
    assert seen["headers"]["apikey"] == "anon"

    with pytest.raises(Unauthorized):
        verifier.verify("bad")


def test_remote_identity_verifier_unreachable(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(security.requests, "get", boom)
    # an outage is not the caller's fault
    with pytest.raises(Internal):
        security.RemoteIdentityVerifier("https://id.example.com").verify("good")


def test_remote_blob_store_upload(monkeypatch):
    calls = []

    def fake_post(url, data=None, headers=None, timeout=None):
        calls.append((url, data, headers))
        return FakeResponse(200, {"Key": "chat_media/1/a/1-x.txt"})

    monkeypatch.setattr(blob.requests, "post", fake_post)
    store = RemoteBlobStore("https://storage.example.com/storage/v1", "service-key")

    url = store.put("chat_media", "1/a/1-my file.txt", b"data", "text/plain")

    assert url == "https://storage.example.com/storage/v1/object/public/chat_media/1/a/1-my%20file.txt"
    (post_url, data, headers), = calls
    assert post_url == "https://storage.example.com/storage/v1/object/chat_media/1/a/1-my%20file.txt"
    assert data == b"data"
    assert headers["Content-Type"] == "text/plain"
    assert headers["x-upsert"] == "false"


@pytest.mark.parametrize("failure", ["status", "network"])
def test_remote_blob_store_failures(monkeypatch, failure):
    def fake_post(*args, **kwargs):
        if failure == "network":
            raise requests.Timeout("slow")
        return FakeResponse(409, {"error": "Duplicate"})

    monkeypatch.setattr(blob.requests, "post", fake_post)
    with pytest.raises(StorageError):
        RemoteBlobStore("https://storage.example.com", "k").put("chat_media", "p.txt", b"", "text/plain")


def test_remote_profile_directory(monkeypatch):
    def fake_get(url, params=None, headers=None, timeout=None):
        if params["id"] == "eq.bob":
            return FakeResponse(200, [{"id": "bob", "name": "Bob", "avatar_url": "https://cdn/bob.png"}])
        if params["id"] == "eq.broken":
            return FakeResponse(500)
        return FakeResponse(200, [])

    monkeypatch.setattr(profiles.requests, "get", fake_get)
    directory = RemoteProfileDirectory("https://db.example.com/rest/v1/profiles", api_key="k")

    assert directory.lookup("bob") == Profile(id="bob", name="Bob", avatar_url="https://cdn/bob.png")
    assert directory.lookup("ghost") is None
    assert directory.lookup("broken") is None
    assert NullProfileDirectory().lookup("bob") is None

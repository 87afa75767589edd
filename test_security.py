"""
Identity verification, input sanitization, rate limiting, keyed locks and
the on-disk blob store.
"""
import threading
import time

import pytest
from jose import jwt

from chat_api.core.config import settings
from chat_api.core.errors import Unauthorized
from chat_api.core.locks import KeyedLock
from chat_api.core.security import JWTIdentityVerifier, create_access_token, decode_access_token
from chat_api.security.rate_limiter import RateLimiter
from chat_api.security.sanitizer import InputSanitizer
from chat_api.storage.blob import LocalBlobStore, StorageError


def test_jwt_verifier_resolves_subject():
    token = create_access_token("user-123")
    assert JWTIdentityVerifier().verify(token) == "user-123"
    assert decode_access_token(token)["sub"] == "user-123"


@pytest.mark.parametrize("token", ["", "garbage", None])
def test_jwt_verifier_rejects_bad_tokens(token):
    with pytest.raises(Unauthorized):
        JWTIdentityVerifier().verify(token or "")


def test_jwt_verifier_rejects_expired_and_foreign_tokens():
    expired = create_access_token("user-123", expires_minutes=-5)
    with pytest.raises(Unauthorized):
        JWTIdentityVerifier().verify(expired)

    forged = jwt.encode({"sub": "user-123"}, "other-secret", algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(Unauthorized):
        JWTIdentityVerifier().verify(forged)

    no_subject = jwt.encode({"role": "x"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(Unauthorized):
        JWTIdentityVerifier().verify(no_subject)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("report.pdf", "report.pdf"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\me\\photo (1).png", "photo (1).png"),
        ("we<i>rd$name.txt", "weirdname.txt"),
        ("archive..tar.gz", "archive.tar.gz"),
        ("отчёт.txt", "отчёт.txt"),
        ("写真", "写真"),
        ("$$$", "file"),
        ("$$$.pdf", "file.pdf"),
    ],
)
def test_sanitize_filename(raw, expected):
    assert InputSanitizer.sanitize_filename(raw) == expected


@pytest.mark.parametrize("raw", ["", "..", "dir/..", "x" * 300])
def test_sanitize_filename_rejects(raw):
    with pytest.raises(ValueError):
        InputSanitizer.sanitize_filename(raw)


def test_sanitize_text_allows_newlines_but_not_control_chars():
    assert InputSanitizer.sanitize_text("line one  \nline two") == "line one\nline two"
    with pytest.raises(ValueError):
        InputSanitizer.sanitize_text("bad\x00byte")
    with pytest.raises(ValueError):
        InputSanitizer.sanitize_text("bell\x07")
    with pytest.raises(ValueError):
        InputSanitizer.sanitize_identifier("two\nlines")


def test_rate_limiter_window():
    limiter = RateLimiter()
    assert all(limiter.is_allowed("alice", "send_message", max_attempts=3) for _ in range(3))
    assert limiter.is_allowed("alice", "send_message", max_attempts=3) is False
    # other users and operations have their own budget
    assert limiter.is_allowed("bob", "send_message", max_attempts=3) is True
    assert limiter.is_allowed("alice", "report_item", max_attempts=3) is True

    limiter.reset()
    assert limiter.is_allowed("alice", "send_message", max_attempts=3) is True


def test_keyed_lock_serializes_same_key_only():
    locks = KeyedLock()
    inside = []
    overlap = []

    def worker(key):
        with locks.hold(key):
            inside.append(key)
            if inside.count(key) > 1:
                overlap.append(key)
            time.sleep(0.01)
            inside.remove(key)

    threads = [threading.Thread(target=worker, args=(k,)) for k in ["a", "a", "a", "b", "b"]]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlap == []
    assert len(locks) == 0


def test_local_blob_store_writes_once(tmp_path):
    store = LocalBlobStore(str(tmp_path), "http://localhost:8000/media/")
    url = store.put("chat_media", "1/alice/100-note.txt", b"hello", "text/plain")

    assert url == "http://localhost:8000/media/chat_media/1/alice/100-note.txt"
    assert (tmp_path / "chat_media" / "1" / "alice" / "100-note.txt").read_bytes() == b"hello"

    with pytest.raises(StorageError):
        store.put("chat_media", "1/alice/100-note.txt", b"again", "text/plain")
    with pytest.raises(StorageError):
        store.put("chat_media", "../../outside.txt", b"x", "text/plain")

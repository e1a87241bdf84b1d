import threading
import time

import pytest

from core.auth import (
    Session,
    SessionAuthenticator,
    api_key_auth,
    bearer_token_auth,
    plex_token_auth,
    proxmox_token_auth,
)
from core.errors import AuthenticationFailed, DecodeError

NOW = 1_000_000.0


class _LoginClient:
    """Stands in for HTTPClient.post_json on the login path."""

    def __init__(self, response=None, delay: float = 0.0):
        self.response = response or {"session": {"valid": True, "sid": "new-sid", "validity": 1800}}
        self.delay = delay
        self.logins = []
        self._lock = threading.Lock()

    def url(self, path):
        return f"https://pihole.local/{path}"

    def post_json(self, path, json=None, authenticate=True):
        assert authenticate is False
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.logins.append((path, json))
        return self.response


def _authenticator(client) -> SessionAuthenticator:
    return SessionAuthenticator(client, "hunter2", clock=lambda: NOW)


def test_static_header_helpers() -> None:
    assert bearer_token_auth("tok").auth_headers() == {"Authorization": "Bearer tok"}
    assert api_key_auth("key").auth_headers() == {"X-Api-Key": "key"}
    assert plex_token_auth("plex").auth_headers() == {"X-Plex-Token": "plex"}
    assert proxmox_token_auth("root@pam!hub", "s3cret").auth_headers() == {
        "Authorization": "PVEAPIToken=root@pam!hub=s3cret"
    }


def test_static_auth_repr_hides_value() -> None:
    assert "tok" not in repr(bearer_token_auth("tok"))


def test_session_inside_safety_margin_triggers_login() -> None:
    client = _LoginClient()
    auth = _authenticator(client)
    auth._session = Session(sid="old", valid_until=NOW + 30)

    session = auth.ensure_authenticated()

    assert session.sid == "new-sid"
    assert client.logins == [("api/auth", {"password": "hunter2"})]


def test_session_far_from_expiry_is_reused() -> None:
    client = _LoginClient()
    auth = _authenticator(client)
    auth._session = Session(sid="old", valid_until=NOW + 3600)

    assert auth.ensure_authenticated().sid == "old"
    assert client.logins == []


def test_login_sets_expiry_from_validity() -> None:
    auth = _authenticator(_LoginClient())
    session = auth.ensure_authenticated()
    assert session.valid_until == NOW + 1800
    assert auth.auth_headers() == {"sid": "new-sid"}


def test_rejected_login_raises_and_caches_nothing() -> None:
    client = _LoginClient({"session": {"valid": False, "sid": None, "validity": 0}})
    auth = _authenticator(client)

    with pytest.raises(AuthenticationFailed):
        auth.ensure_authenticated()
    assert auth.session is None


def test_malformed_login_response_is_decode_error() -> None:
    auth = _authenticator(_LoginClient({"unexpected": True}))
    with pytest.raises(DecodeError):
        auth.ensure_authenticated()


def test_concurrent_callers_share_one_login() -> None:
    client = _LoginClient(delay=0.05)
    auth = _authenticator(client)
    results = []

    def worker():
        results.append(auth.ensure_authenticated().sid)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(client.logins) == 1
    assert results == ["new-sid"] * 8


def test_invalidate_forces_new_login() -> None:
    client = _LoginClient()
    auth = _authenticator(client)
    auth.ensure_authenticated()
    auth.invalidate()
    auth.ensure_authenticated()
    assert len(client.logins) == 2

import threading
import time

import pytest
import requests

from storepos.client.errors import ApiError, NetworkError, NotAuthenticated, SessionExpired
from storepos.client.http_client import ApiClient
from storepos.client.token_store import MemoryTokenStore, TokenPair


class FakeResponse:
    def __init__(self, status_code, data=None):
        self.status_code = status_code
        self._data = data

    def json(self):
        if self._data is None:
            raise ValueError("no body")
        return self._data


class FakeServer:
    """Accepts one access token; hands out `new-access` on refresh."""

    def __init__(self, valid_access="old-access", refresh_ok=True):
        self.valid_access = valid_access
        self.refresh_ok = refresh_ok
        self.calls = []
        self.refresh_calls = 0
        self.before_401 = None
        self.refresh_delay = 0

    def request(self, method, url, json=None, params=None, headers=None, timeout=None):
        self.calls.append((method, url, headers.get("Authorization")))
        if url.endswith("/auth/refresh-token"):
            self.refresh_calls += 1
            time.sleep(self.refresh_delay)
            if not self.refresh_ok:
                return FakeResponse(401, {"success": False, "message": "Invalid refresh token"})
            self.valid_access = "new-access"
            return FakeResponse(200, {"success": True, "accessToken": "new-access", "refreshToken": "new-refresh"})

        if headers.get("Authorization") != f"Bearer {self.valid_access}":
            if self.before_401:
                self.before_401()
            return FakeResponse(401, {"success": False, "message": "Unauthorized access"})
        return FakeResponse(200, {"success": True, "user": {"id": "u1"}})


@pytest.fixture
def store():
    s = MemoryTokenStore()
    s.set_session({"id": "u1"}, TokenPair("old-access", "old-refresh"))
    return s


def test_attaches_bearer_token(store):
    server = FakeServer()
    api = ApiClient("http://api", store, http=server)
    assert api.get_profile() == {"id": "u1"}
    assert server.calls == [("GET", "http://api/users/me", "Bearer old-access")]


def test_no_tokens_short_circuits_without_network():
    server = FakeServer()
    api = ApiClient("http://api", MemoryTokenStore(), http=server)
    with pytest.raises(NotAuthenticated):
        api.get("/users/me")
    assert server.calls == []


def test_401_refreshes_once_and_replays(store):
    server = FakeServer(valid_access="not-old")
    api = ApiClient("http://api", store, http=server)

    api.get("/users/me")

    assert server.refresh_calls == 1
    assert [c[2] for c in server.calls] == ["Bearer old-access", None, "Bearer new-access"]
    assert store.get_tokens() == TokenPair("new-access", "new-refresh")


def test_refresh_failure_purges_store_and_signals_logout(store):
    expired = []
    server = FakeServer(valid_access="something-else", refresh_ok=False)
    api = ApiClient("http://api", store, http=server, on_session_expired=lambda: expired.append(True))

    with pytest.raises(SessionExpired):
        api.get("/users/me")

    assert expired == [True]
    assert store.get_tokens() is None
    assert store.get_user() is None
    # the original request was not replayed
    assert len(server.calls) == 2


def test_second_401_after_retry_logs_out_instead_of_looping(store):
    class AlwaysUnauthorized(FakeServer):
        def request(self, method, url, **kw):
            if url.endswith("/auth/refresh-token"):
                return super().request(method, url, **kw)
            self.calls.append((method, url, kw["headers"].get("Authorization")))
            return FakeResponse(401, {"message": "Unauthorized access"})

    server = AlwaysUnauthorized()
    api = ApiClient("http://api", store, http=server)

    with pytest.raises(SessionExpired):
        api.get("/users/me")

    assert server.refresh_calls == 1
    assert len([c for c in server.calls if c[1].endswith("/users/me")]) == 2
    assert store.get_tokens() is None

    # next protected call is refused locally
    with pytest.raises(NotAuthenticated):
        api.get("/users/me")


def test_concurrent_401s_share_one_refresh(store):
    server = FakeServer(valid_access="not-old")
    server.refresh_delay = 0.05
    barrier = threading.Barrier(2, timeout=5)
    server.before_401 = barrier.wait
    api = ApiClient("http://api", store, http=server)

    results, errors = [], []

    def call():
        try:
            results.append(api.get("/users/me"))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=call) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    assert errors == []
    assert len(results) == 2
    assert server.refresh_calls == 1


def test_api_error_carries_message_and_reason(store):
    class Rejecting:
        def request(self, method, url, **kw):
            return FakeResponse(400, {"success": False, "message": "Promo code has expired", "reason": "expired"})

    api = ApiClient("http://api", store, http=Rejecting())
    with pytest.raises(ApiError) as e:
        api.validate_promo("OLD")
    assert e.value.status == 400
    assert e.value.reason == "expired"
    assert e.value.message == "Promo code has expired"


def test_network_failure_becomes_network_error(store):
    class Down:
        def request(self, method, url, **kw):
            raise requests.ConnectionError("refused")

    api = ApiClient("http://api", store, http=Down())
    with pytest.raises(NetworkError):
        api.get("/users/me")
    # transport errors do not end the session
    assert store.get_tokens() is not None

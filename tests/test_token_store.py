import json

import pytest

from storepos.client.token_store import FileTokenStore, MemoryTokenStore, TokenPair

PAIR = TokenPair("access-1", "refresh-1")
USER = {"id": "u1", "email": "a@b.com", "name": "a"}


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryTokenStore()
    return FileTokenStore.pos(str(tmp_path / "storage.json"))


def test_session_roundtrip_and_clear(store):
    store.set_session(USER, PAIR)
    assert store.get_tokens() == PAIR
    assert store.get_user() == USER

    store.clear()
    assert store.get_tokens() is None
    assert store.get_user() is None


def test_half_pair_is_purged(store):
    store._write(store.tokens_key, json.dumps({"accessToken": "only-access"}))
    store.set_user(USER)

    assert store.get_tokens() is None
    assert store.get_user() is None


def test_corrupt_user_is_purged(store):
    store.set_tokens(PAIR)
    store._write(store.user_key, "{not json")

    assert store.get_user() is None
    assert store.get_tokens() is None


def test_set_session_is_all_or_nothing():
    class FailingUserStore(MemoryTokenStore):
        def set_user(self, user):
            raise OSError("disk full")

    store = FailingUserStore()
    with pytest.raises(OSError):
        store.set_session(USER, PAIR)
    assert store.get_tokens() is None


def test_admin_and_pos_keys_share_a_file(tmp_path):
    path = str(tmp_path / "storage.json")
    admin = FileTokenStore.admin(path)
    pos = FileTokenStore.pos(path)

    admin.set_session(USER, PAIR)
    assert pos.get_tokens() is None

    with open(path) as f:
        raw = json.load(f)
    assert set(raw) == {"admin_tokens", "admin_user"}
    assert json.loads(raw["admin_tokens"]) == {"accessToken": "access-1", "refreshToken": "refresh-1"}

    admin.clear()
    with open(path) as f:
        assert json.load(f) == {}


def test_missing_file_reads_empty(tmp_path):
    store = FileTokenStore(str(tmp_path / "nested" / "storage.json"))
    assert store.get_tokens() is None
    store.set_tokens(PAIR)
    assert store.get_tokens() == PAIR

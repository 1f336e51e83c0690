"""Client-side storage for the token pair and the cached user profile.

Values are kept as JSON strings under two keys, the way the web clients use
localStorage. A token pair is only ever stored or removed as a whole: a
half-written or unreadable pair is purged on read.
"""
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def to_dict(self) -> dict:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}

    @classmethod
    def from_dict(cls, data) -> "TokenPair":
        if not isinstance(data, dict):
            raise ValueError("token pair must be an object")
        access, refresh = data.get("accessToken"), data.get("refreshToken")
        if not isinstance(access, str) or not access or not isinstance(refresh, str) or not refresh:
            raise ValueError("token pair is incomplete")
        return cls(access, refresh)


class TokenStore:
    """Base store. Subclasses provide `_read`, `_write` and `_delete`."""

    def __init__(self, tokens_key: str = "tokens", user_key: str = "user"):
        self.tokens_key = tokens_key
        self.user_key = user_key

    def _read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _write(self, key: str, value: str):
        raise NotImplementedError

    def _delete(self, key: str):
        raise NotImplementedError

    def get_tokens(self) -> Optional[TokenPair]:
        raw = self._read(self.tokens_key)
        if raw is None:
            return None
        try:
            return TokenPair.from_dict(json.loads(raw))
        except ValueError as e:
            logger.warning("Discarding stored session, bad token data: %s", e)
            self.clear()
            return None

    def set_tokens(self, pair: TokenPair):
        self._write(self.tokens_key, json.dumps(pair.to_dict()))

    def get_user(self) -> Optional[dict]:
        raw = self._read(self.user_key)
        if raw is None:
            return None
        try:
            user = json.loads(raw)
        except ValueError as e:
            logger.warning("Discarding stored session, bad user data: %s", e)
            self.clear()
            return None
        if not isinstance(user, dict):
            self.clear()
            return None
        return user

    def set_user(self, user: dict):
        self._write(self.user_key, json.dumps(user))

    def set_session(self, user: dict, pair: TokenPair):
        """Store profile and tokens together, or neither."""
        try:
            self.set_tokens(pair)
            self.set_user(user)
        except Exception:
            self.clear()
            raise

    def clear(self):
        self._delete(self.tokens_key)
        self._delete(self.user_key)


class MemoryTokenStore(TokenStore):
    def __init__(self, tokens_key: str = "tokens", user_key: str = "user"):
        super().__init__(tokens_key, user_key)
        self._data = {}

    def _read(self, key):
        return self._data.get(key)

    def _write(self, key, value):
        self._data[key] = value

    def _delete(self, key):
        self._data.pop(key, None)


class FileTokenStore(TokenStore):
    """JSON file holding several keys, shared by every store pointed at it."""

    _lock = threading.Lock()

    def __init__(self, path: str, tokens_key: str = "tokens", user_key: str = "user"):
        super().__init__(tokens_key, user_key)
        self.path = path

    @classmethod
    def admin(cls, path: str) -> "FileTokenStore":
        return cls(path, tokens_key="admin_tokens", user_key="admin_user")

    @classmethod
    def pos(cls, path: str) -> "FileTokenStore":
        return cls(path, tokens_key="tokens", user_key="user")

    def _load(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except ValueError:
            logger.warning("Token file %s is corrupt, starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".tokens-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except Exception:
            os.unlink(tmp)
            raise

    def _read(self, key):
        with self._lock:
            return self._load().get(key)

    def _write(self, key, value):
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def _delete(self, key):
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)

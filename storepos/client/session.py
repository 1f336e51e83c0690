import logging
from enum import Enum
from typing import Callable, List, Optional

from storepos.client.errors import ClientError
from storepos.client.token_store import TokenPair, TokenStore

logger = logging.getLogger(__name__)


class SessionState(Enum):
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class Session:
    """Who is logged in on this client, restored from the token store at startup.

    Logout listeners are where a frontend sends the user back to the login
    screen. When a client is given, an expired session reported by the client
    logs this session out too.
    """

    def __init__(self, store: TokenStore, client=None):
        self.store = store
        self.client = client
        self.state = SessionState.LOADING
        self.user: Optional[dict] = None
        self._listeners: List[Callable[[], None]] = []
        self._pollers = []
        if client is not None:
            client.on_session_expired = self.logout

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    def on_logout(self, listener: Callable[[], None]):
        self._listeners.append(listener)

    def track(self, poller):
        """Tie a poller's lifetime to this session and start it."""
        self._pollers.append(poller)
        poller.start()
        return poller

    def restore(self, revalidate: bool = False) -> SessionState:
        self.state = SessionState.LOADING

        tokens = self.store.get_tokens()
        user = self.store.get_user() if tokens else None
        if tokens is None or user is None:
            logger.info("No stored session")
            self._reset()
            return self.state

        self.user = user
        self.state = SessionState.AUTHENTICATED

        if revalidate and self.client is not None:
            try:
                profile = self.client.get_profile()
            except ClientError as e:
                logger.info("Stored session rejected: %s", e)
                # an expired session was already logged out by the client
                if self.state is not SessionState.ANONYMOUS:
                    self.logout()
                return self.state
            self.store.set_user(profile)
            self.user = profile

        return self.state

    def login(self, user: dict, tokens: TokenPair):
        self.store.set_session(user, tokens)
        self.user = user
        self.state = SessionState.AUTHENTICATED
        logger.info("Logged in as %s", user.get("email"))

    def logout(self):
        tokens = self.store.get_tokens()
        if tokens is not None and self.client is not None:
            try:
                self.client.logout(tokens.refresh_token)
            except ClientError as e:
                logger.warning("Server logout failed: %s", e)
        self._reset()

    def _reset(self):
        for poller in self._pollers:
            poller.stop()
        self._pollers = []
        self.store.clear()
        self.user = None
        self.state = SessionState.ANONYMOUS
        for listener in list(self._listeners):
            listener()

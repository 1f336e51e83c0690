import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class IntervalPoller:
    """Calls `callback` every `interval` seconds on a daemon thread.

    `stop()` waits for a callback already in progress, so once it returns the
    callback is not running and will not run again. Called from inside the
    callback it only prevents further runs.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        name: str = "poller",
    ):
        self.interval = interval
        self.callback = callback
        self.on_error = on_error
        self.name = name
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self):
        if self.running:
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def _run(self):
        stop = self._stop
        while not stop.wait(self.interval):
            if stop.is_set():
                break
            self.tick()

    def tick(self):
        try:
            self.callback()
        except Exception as e:
            if self.on_error is None:
                logger.exception("%s callback failed", self.name)
            else:
                self.on_error(e)

    def stop(self):
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None


class NotificationPoller(IntervalPoller):
    """Polls the unread notification count and hands it to `on_count`."""

    def __init__(self, client, on_count: Callable[[int], None], interval: float = 30, on_error=None):
        self.client = client
        self.on_count = on_count
        super().__init__(interval, self._poll, on_error=on_error, name="notification-poller")

    def _poll(self):
        self.on_count(self.client.unread_count())

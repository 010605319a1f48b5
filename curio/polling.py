"""
Background polling with an explicit handle.

``PollingTask.start()`` fetches once right away and then every ``interval``
seconds on a daemon thread until the returned handle is stopped. Results
that come back after ``stop()`` are dropped.
"""
import logging
import threading
from typing import Any, Callable, Optional

from .config import DEFAULT_POLL_INTERVAL
from .errors import CurioError

logger = logging.getLogger("curio.polling")


class PollHandle:
    def __init__(self, task: "PollingTask"):
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task._stopped.is_set()

    def stop(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        """Cancel the task. Safe to call more than once."""
        self._task._stop(wait=wait, timeout=timeout)


class PollingTask:
    """Call ``fetch`` periodically and hand non-None results to ``on_result``."""

    def __init__(
        self,
        fetch: Callable[[], Any],
        on_result: Callable[[Any], None],
        interval: float = DEFAULT_POLL_INTERVAL,
        name: str = "poller",
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.fetch = fetch
        self.on_result = on_result
        self.interval = interval
        self.name = name
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._handle: Optional[PollHandle] = None

    def start(self) -> PollHandle:
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._handle = PollHandle(self)
        self._thread.start()
        logger.debug("%s started (every %ss)", self.name, self.interval)
        return self._handle

    def _run(self) -> None:
        while not self._stopped.is_set():
            self._tick()
            if self._stopped.wait(self.interval):
                break
        logger.debug("%s stopped", self.name)

    def _tick(self) -> None:
        try:
            result = self.fetch()
        except CurioError as e:
            logger.error("%s fetch failed: %s", self.name, e)
            return
        if result is None or self._stopped.is_set():
            return
        self.on_result(result)

    def _stop(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        self._stopped.set()
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)


class UnreadCountPoller(PollingTask):
    """Keeps the unread-notification badge roughly fresh.

    Without a session credential each tick is a no-op.
    """

    def __init__(self, api, session, on_count: Callable[[int], None], interval: float = DEFAULT_POLL_INTERVAL):
        self.api = api
        self.session = session
        super().__init__(self._fetch_count, on_count, interval=interval, name="unread-count-poller")

    def _fetch_count(self) -> Optional[int]:
        if not self.session.is_authenticated:
            return None
        return self.api.get_unread_count()

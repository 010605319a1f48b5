"""Client-side mirror of the viewer's interaction flags.

The server owns the truth. This cache only lets toggle controls render the
right state without asking the server on every keypress. Entries live for as
long as the owning article screen.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Hashable, Tuple

from .data_models import InteractionFlags, InteractionKind
from .errors import CurioError

logger = logging.getLogger("curio.interaction_cache")

# kinds checked by load(), with the API method that answers each one
_STATUS_CHECKS: Tuple[Tuple[InteractionKind, str], ...] = (
    (InteractionKind.LIKED, "get_like_status"),
    (InteractionKind.BOOKMARKED, "get_bookmark_status"),
    (InteractionKind.IN_READING_LIST, "get_reading_list_status"),
)


class InteractionStateCache:
    def __init__(self, api, session):
        self.api = api
        self.session = session
        self._flags: Dict[Tuple[InteractionKind, Hashable], bool] = {}
        self._counts: Dict[Tuple[str, Hashable], int] = {}
        self._lock = threading.Lock()

    def load(self, entity_id: Hashable) -> InteractionFlags:
        """Fetch like/bookmark/reading-list status for one article in parallel.

        A failing check only costs its own flag, which falls back to False.
        """
        if not self.session.is_authenticated:
            results = {kind: False for kind, _ in _STATUS_CHECKS}
        else:
            with ThreadPoolExecutor(max_workers=len(_STATUS_CHECKS)) as pool:
                futures = {
                    kind: pool.submit(self._check, getattr(self.api, method), entity_id, kind)
                    for kind, method in _STATUS_CHECKS
                }
                results = {kind: future.result() for kind, future in futures.items()}

        with self._lock:
            for kind, value in results.items():
                self._flags[(kind, entity_id)] = value
        return self.flags(entity_id)

    @staticmethod
    def _check(fetch: Callable[[Hashable], bool], entity_id: Hashable, kind: InteractionKind) -> bool:
        try:
            return bool(fetch(entity_id))
        except CurioError as e:
            logger.warning("status check %s for %s failed, assuming False: %s", kind.value, entity_id, e)
            return False

    def get(self, entity_id: Hashable, kind: InteractionKind) -> bool:
        with self._lock:
            return self._flags.get((kind, entity_id), False)

    def set(self, entity_id: Hashable, kind: InteractionKind, value: bool) -> None:
        with self._lock:
            self._flags[(kind, entity_id)] = bool(value)

    def flags(self, entity_id: Hashable) -> InteractionFlags:
        return InteractionFlags(
            liked=self.get(entity_id, InteractionKind.LIKED),
            bookmarked=self.get(entity_id, InteractionKind.BOOKMARKED),
            in_reading_list=self.get(entity_id, InteractionKind.IN_READING_LIST),
        )

    def get_count(self, entity_id: Hashable, name: str) -> int:
        with self._lock:
            return self._counts.get((name, entity_id), 0)

    def set_count(self, entity_id: Hashable, name: str, value: int) -> None:
        with self._lock:
            self._counts[(name, entity_id)] = max(0, int(value))

"""
Optimistic mutations.

Each toggle is described as an OptimisticMutation: ``apply`` changes local
state right away, ``commit`` sends the request, and ``rollback`` undoes
``apply``. MutationRunner drives one through
Idle -> Requesting -> Committed | RolledBack, and allows a single in-flight
mutation per (entity, kind) key.
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Hashable, Optional, Set

from .errors import AuthRequiredError, CurioError, MutationInFlightError

logger = logging.getLogger("curio.mutations")

Notify = Callable[..., None]


def log_notice(message: str, severity: str = "information") -> None:
    """Fallback notice sink used when no UI is attached."""
    level = logging.ERROR if severity == "error" else logging.INFO
    logger.log(level, "notice: %s", message)


class MutationState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class OptimisticMutation:
    key: Hashable
    apply: Callable[[], None]
    commit: Callable[[], object]
    rollback: Callable[[], None]
    success_message: Optional[str] = None
    failure_message: Optional[str] = None
    login_prompt: str = "Please login to continue"
    # receives commit()'s result; returns True when it corrected local state
    reconcile: Optional[Callable[[object], bool]] = None
    state: MutationState = MutationState.IDLE
    error: Optional[Exception] = None


class MutationRunner:
    def __init__(self, session, notify: Notify = log_notice, on_change: Optional[Callable[[], None]] = None):
        self.session = session
        self.notify = notify
        # called after every apply and rollback so views can redraw
        self.on_change = on_change
        self._in_flight: Set[Hashable] = set()
        self._lock = threading.Lock()

    def is_pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._in_flight

    def run(self, mutation: OptimisticMutation) -> MutationState:
        """Apply, commit and (on failure) roll back one mutation.

        Raises AuthRequiredError without touching local state when there is
        no session, and MutationInFlightError when the same key is still
        requesting.
        """
        if not self.session.is_authenticated:
            logger.debug("mutation %r aborted: not logged in", mutation.key)
            raise AuthRequiredError(mutation.login_prompt)

        with self._lock:
            if mutation.key in self._in_flight:
                raise MutationInFlightError(mutation.key)
            self._in_flight.add(mutation.key)

        try:
            mutation.apply()
            self._changed()
            mutation.state = MutationState.REQUESTING
            try:
                result = mutation.commit()
            except CurioError as e:
                mutation.rollback()
                self._changed()
                mutation.state = MutationState.ROLLED_BACK
                mutation.error = e
                logger.error("mutation %r failed, rolled back: %s", mutation.key, e)
                self.notify(mutation.failure_message or str(e), severity="error")
                return mutation.state

            if mutation.reconcile is not None and mutation.reconcile(result):
                logger.debug("mutation %r corrected from server response", mutation.key)
                self._changed()
            mutation.state = MutationState.COMMITTED
            if mutation.success_message:
                self.notify(mutation.success_message)
            return mutation.state
        finally:
            with self._lock:
                self._in_flight.discard(mutation.key)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

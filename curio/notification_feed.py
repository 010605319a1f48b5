"""
Notification feed model.

Holds the notifications shown in the bell dropdown (or the full page) and
the session's unread counter. Every local change is applied before the
request goes out and undone if the request fails.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from .config import BADGE_OVERFLOW, NOTIFICATION_DROPDOWN_LIMIT, NOTIFICATION_PAGE_LIMIT
from .data_models import Notification, NotificationType
from .errors import CurioError
from .mutations import MutationRunner, MutationState, OptimisticMutation

logger = logging.getLogger("curio.notifications")


@dataclass(frozen=True)
class NotificationStyle:
    icon: str
    color: str


NOTIFICATION_STYLES: Dict[NotificationType, NotificationStyle] = {
    NotificationType.FOLLOW: NotificationStyle("👥", "blue"),
    NotificationType.COMMENT: NotificationStyle("💬", "green"),
    NotificationType.REPLY: NotificationStyle("💬", "green"),
    NotificationType.LIKE: NotificationStyle("❤️", "red"),
    NotificationType.ARTICLE_APPROVED: NotificationStyle("✅", "green"),
    NotificationType.ARTICLE_REJECTED: NotificationStyle("❌", "red"),
    NotificationType.ARTICLE_PUBLISHED: NotificationStyle("📰", "purple"),
    NotificationType.OTHER: NotificationStyle("🔔", "grey50"),
}

_missing_styles = set(NotificationType) - set(NOTIFICATION_STYLES)
if _missing_styles:
    raise RuntimeError(f"no style for notification types: {sorted(t.value for t in _missing_styles)}")


def style_for(kind: NotificationType) -> NotificationStyle:
    return NOTIFICATION_STYLES[kind]


class UnreadCounter:
    """Unread notification count. Never drops below zero."""

    def __init__(self, value: int = 0):
        self._value = max(0, int(value))
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = max(0, int(value))

    def increment(self) -> None:
        with self._lock:
            self._value += 1

    def decrement(self) -> None:
        with self._lock:
            self._value = max(0, self._value - 1)

    def reset(self) -> None:
        self.set(0)

    def badge(self) -> str:
        if self._value <= 0:
            return ""
        if self._value > BADGE_OVERFLOW:
            return f"{BADGE_OVERFLOW}+"
        return str(self._value)


class NotificationFeed:
    def __init__(self, api, session, counter: UnreadCounter, runner: MutationRunner):
        self.api = api
        self.session = session
        self.counter = counter
        self.runner = runner
        self.items: List[Notification] = []
        self.is_open = False

    # --- loading ---
    def open(self) -> List[Notification]:
        """Closed -> Open: fetch the latest notifications for the dropdown.

        Opening an already-open dropdown does not fetch again.
        """
        if self.is_open:
            return self.items
        self.is_open = True
        return self._fetch(limit=NOTIFICATION_DROPDOWN_LIMIT)

    def close(self) -> None:
        self.is_open = False

    def load_page(self, unread_only: bool = False) -> List[Notification]:
        return self._fetch(limit=NOTIFICATION_PAGE_LIMIT, unread_only=unread_only)

    def _fetch(self, limit: int, unread_only: bool = False) -> List[Notification]:
        if not self.session.is_authenticated:
            logger.debug("notification fetch skipped: not logged in")
            self.items = []
            return self.items
        try:
            self.items = self.api.get_notifications(limit=limit, unread_only=unread_only)
        except CurioError as e:
            logger.error("Error fetching notifications: %s", e)
            self.runner.notify("Failed to load notifications", severity="error")
        return self.items

    # --- partitions ---
    def unread(self) -> List[Notification]:
        return [n for n in self.items if not n.read]

    def read(self) -> List[Notification]:
        return [n for n in self.items if n.read]

    def get(self, notification_id: int) -> Optional[Notification]:
        for n in self.items:
            if n.id == notification_id:
                return n
        return None

    # --- actions ---
    def mark_read(self, notification_id: int) -> MutationState:
        """Mark one notification read. Already-read or unknown ids are a no-op."""
        item = self.get(notification_id)
        if item is None or item.read:
            return MutationState.IDLE

        def apply():
            item.read = True
            self.counter.decrement()

        def rollback():
            item.read = False
            self.counter.increment()

        return self.runner.run(
            OptimisticMutation(
                key=("notification", notification_id),
                apply=apply,
                commit=lambda: self.api.mark_notification_read(notification_id),
                rollback=rollback,
                failure_message="Failed to mark as read",
                login_prompt="Please login to manage notifications",
            )
        )

    def mark_all_read(self) -> MutationState:
        previously_unread = self.unread()
        previous_count = self.counter.value

        def apply():
            for n in self.items:
                n.read = True
            self.counter.reset()

        def rollback():
            for n in previously_unread:
                n.read = False
            self.counter.set(previous_count)

        return self.runner.run(
            OptimisticMutation(
                key=("notifications", "all"),
                apply=apply,
                commit=self.api.mark_all_notifications_read,
                rollback=rollback,
                success_message="All notifications marked as read",
                failure_message="Failed to mark notifications as read",
                login_prompt="Please login to manage notifications",
            )
        )

    def delete(self, notification_id: int) -> MutationState:
        item = self.get(notification_id)
        if item is None:
            return MutationState.IDLE
        index = self.items.index(item)
        was_unread = not item.read

        def apply():
            self.items.remove(item)
            if was_unread:
                self.counter.decrement()

        def rollback():
            self.items.insert(min(index, len(self.items)), item)
            if was_unread:
                self.counter.increment()

        return self.runner.run(
            OptimisticMutation(
                key=("notification", notification_id),
                apply=apply,
                commit=lambda: self.api.delete_notification(notification_id),
                rollback=rollback,
                failure_message="Failed to delete notification",
                login_prompt="Please login to manage notifications",
            )
        )

    def clear_read(self) -> MutationState:
        """Drop every read notification (the full page's "clear read" action)."""
        snapshot = list(self.items)

        def apply():
            self.items[:] = [n for n in snapshot if not n.read]

        def rollback():
            self.items[:] = snapshot

        return self.runner.run(
            OptimisticMutation(
                key=("notifications", "clear-read"),
                apply=apply,
                commit=self.api.clear_read_notifications,
                rollback=rollback,
                success_message="Read notifications cleared",
                failure_message="Failed to clear notifications",
                login_prompt="Please login to manage notifications",
            )
        )

    def activate(self, notification_id: int) -> Optional[str]:
        """Click on the notification body: mark it read, close, and return its link."""
        item = self.get(notification_id)
        if item is None:
            return None
        if not item.read:
            self.mark_read(notification_id)
        self.close()
        return item.link

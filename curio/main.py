import logging
import re
from datetime import datetime
from typing import List, Optional

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, VerticalScroll
from textual.reactive import reactive
from textual.screen import ModalScreen, Screen
from textual.widgets import Button, Input, Static
from textual.worker import get_current_worker

from .api_interface import CurioAPI
from .comment_tree import CommentThread, can_reply, iter_thread
from .config import Settings, configure_logging
from .data_models import Comment, InteractionKind, Notification
from .errors import APIError, AuthRequiredError, CurioError, MutationInFlightError, ValidationError
from .interaction_cache import InteractionStateCache
from .interactions import LIKE_COUNT, InteractionController
from .mutations import MutationRunner
from .notification_feed import NotificationFeed, UnreadCounter, style_for
from .polling import PollHandle, UnreadCountPoller
from .session import Session

logger = logging.getLogger("curio.app")

ARTICLE_LINK = re.compile(r"^/articles?/(?P<slug>[^/?#]+)")
NOTIFICATIONS_LINK = "/notifications"


def format_time_ago(dt: datetime) -> str:
    """Format datetime as 'time ago' string."""
    now = datetime.now(dt.tzinfo) if dt.tzinfo else datetime.now()
    diff = now - dt
    if diff.days > 0:
        return f"{diff.days}d ago"
    if diff.seconds < 60:
        return "just now"
    if diff.seconds < 3600:
        return f"{diff.seconds // 60}m ago"
    return f"{diff.seconds // 3600}h ago"


def article_slug(link: Optional[str]) -> Optional[str]:
    if not link:
        return None
    match = ARTICLE_LINK.match(link)
    return match.group("slug") if match else None


# ───────── Notification bell ─────────
class NotificationBell(Static):
    """Unread badge. The app polls the unread count while any bell is mounted."""

    def __init__(self, **kwargs):
        super().__init__("🔔", **kwargs)

    def on_mount(self) -> None:
        self.app.attach_bell(self)
        self.refresh_badge()

    def on_unmount(self) -> None:
        self.app.detach_bell(self)

    def refresh_badge(self) -> None:
        badge = self.app.counter.badge()
        self.update(f"🔔 {badge}" if badge else "🔔")
        self.set_class(bool(badge), "has-unread")

    def on_click(self) -> None:
        self.app.action_open_notifications()


class NotificationItem(Static):
    def __init__(self, notification: Notification, **kwargs):
        super().__init__(**kwargs)
        self.notification = notification
        self.set_class(not notification.read, "unread")

    def render(self) -> Text:
        n = self.notification
        style = style_for(n.type)
        return Text.assemble(
            ("● " if not n.read else "  ", "bold blue"),
            (f"{style.icon} ", style.color),
            (n.title, "bold"),
            f" • {format_time_ago(n.created_at)}\n    {n.message}",
        )


class NotificationListMixin:
    """Cursor and row actions shared by the dropdown and the full page."""

    feed: NotificationFeed

    def _fill_list(self, container: VerticalScroll, items: List[Notification], empty: str) -> None:
        container.remove_children()
        if not items:
            container.mount(Static(empty, classes="help-text"))
            return
        container.mount_all(NotificationItem(n, classes="notification-item") for n in items)
        self.cursor_position = min(self.cursor_position, len(items) - 1)
        self.call_after_refresh(self._update_cursor)
        self.app.refresh_badge()

    def watch_cursor_position(self) -> None:
        self._update_cursor()

    def _update_cursor(self) -> None:
        items = list(self.query(".notification-item"))
        for item in items:
            item.remove_class("vim-cursor")
        if 0 <= self.cursor_position < len(items):
            items[self.cursor_position].add_class("vim-cursor")
            items[self.cursor_position].scroll_visible()

    def _selected(self) -> Optional[Notification]:
        items = list(self.query(".notification-item"))
        if 0 <= self.cursor_position < len(items):
            return items[self.cursor_position].notification
        return None

    def action_cursor_down(self) -> None:
        if self.cursor_position < len(self.query(".notification-item")) - 1:
            self.cursor_position += 1

    def action_cursor_up(self) -> None:
        if self.cursor_position > 0:
            self.cursor_position -= 1

    def action_mark_read(self) -> None:
        selected = self._selected()
        if selected is not None:
            self._run_feed_action(self.feed.mark_read, selected.id)

    def action_delete(self) -> None:
        selected = self._selected()
        if selected is not None:
            self._run_feed_action(self.feed.delete, selected.id)

    def action_mark_all_read(self) -> None:
        self._run_feed_action(self.feed.mark_all_read)

    @work(thread=True)
    def _run_feed_action(self, action, *args) -> None:
        self.app.run_guarded(action, *args)


class NotificationDropdown(NotificationListMixin, ModalScreen):
    """Latest notifications. Fetched when opened, not kept in sync by polling."""

    BINDINGS = [
        Binding("escape", "close", "Close"),
        Binding("enter", "activate", "Open"),
        Binding("r", "mark_read", "Mark read"),
        Binding("x", "delete", "Delete"),
        Binding("a", "mark_all_read", "Mark all read"),
        Binding("v", "view_all", "View all"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
    ]

    cursor_position = reactive(0)

    def __init__(self, feed: NotificationFeed):
        super().__init__()
        self.feed = feed

    def compose(self) -> ComposeResult:
        with Container(id="dropdown-container"):
            yield Static("Notifications", id="dropdown-title")
            yield VerticalScroll(Static("Loading…", classes="help-text"), id="dropdown-list")
            yield Static(
                "[j/k] Navigate [Enter] Open [r] Read [x] Delete [a] Read all [v] View all [Esc] Close",
                classes="help-text",
                markup=False,
            )

    def on_mount(self) -> None:
        self.load_notifications()

    @work(thread=True, exclusive=True)
    def load_notifications(self) -> None:
        self.feed.open()
        if not get_current_worker().is_cancelled:
            self.app.call_from_thread(self._render_items)

    def _render_items(self) -> None:
        if not self.is_attached:
            return
        counter = self.app.counter
        title = "Notifications"
        if counter.value > 0:
            title += f" ({counter.value} unread)"
        self.query_one("#dropdown-title", Static).update(title)
        # unread first, then read
        self._fill_list(
            self.query_one("#dropdown-list", VerticalScroll),
            self.feed.unread() + self.feed.read(),
            "No notifications yet",
        )

    def refresh_view(self) -> None:
        if self.is_attached and self.feed.is_open:
            self._render_items()

    def action_close(self) -> None:
        self.feed.close()
        self.dismiss(None)

    def action_view_all(self) -> None:
        self.feed.close()
        self.dismiss(NOTIFICATIONS_LINK)

    def action_activate(self) -> None:
        selected = self._selected()
        if selected is not None:
            self._activate(selected.id)

    @work(thread=True)
    def _activate(self, notification_id: int) -> None:
        link = self.app.run_guarded(self.feed.activate, notification_id)
        self.app.call_from_thread(self.dismiss, link)


class NotificationsScreen(NotificationListMixin, Screen):
    """Full notification page: bigger page, unread filter, clear read."""

    BINDINGS = [
        Binding("escape", "back", "Back"),
        Binding("enter", "activate", "Open"),
        Binding("u", "toggle_filter", "All/unread"),
        Binding("r", "mark_read", "Mark read"),
        Binding("x", "delete", "Delete"),
        Binding("a", "mark_all_read", "Mark all read"),
        Binding("C", "clear_read", "Clear read"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
    ]

    cursor_position = reactive(0)
    unread_only = reactive(False, init=False)

    def __init__(self):
        super().__init__()
        self.feed: Optional[NotificationFeed] = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="app-header"):
            yield Static("curio [notifications]", id="header-title", markup=False)
            yield NotificationBell(id="notification-bell")
        yield Static("All notifications", id="notifications-filter", classes="panel-header")
        yield VerticalScroll(Static("Loading…", classes="help-text"), id="notifications-list")
        yield Static(
            "[j/k] Navigate [Enter] Open [u] All/unread [r] Read [x] Delete [a] Read all [C] Clear read [Esc] Back",
            id="app-footer",
            markup=False,
        )

    def on_mount(self) -> None:
        app = self.app
        # separate from the dropdown's feed so the two lists never overwrite each other
        self.feed = NotificationFeed(app.api, app.session, app.counter, app.runner)
        self.load_page()

    def watch_unread_only(self) -> None:
        if self.feed is not None:
            self.load_page()

    @work(thread=True, exclusive=True)
    def load_page(self) -> None:
        self.feed.load_page(unread_only=self.unread_only)
        if not get_current_worker().is_cancelled:
            self.app.call_from_thread(self.refresh_view)

    def refresh_view(self) -> None:
        if not self.is_attached or self.feed is None:
            return
        unread = len(self.feed.unread())
        label = "Unread notifications" if self.unread_only else "All notifications"
        self.query_one("#notifications-filter", Static).update(f"{label} ({unread} unread)")
        items = self.feed.unread() if self.unread_only else self.feed.items
        empty = "No unread notifications" if self.unread_only else "No notifications yet"
        self._fill_list(self.query_one("#notifications-list", VerticalScroll), items, empty)

    def action_back(self) -> None:
        self.app.pop_screen()

    def action_toggle_filter(self) -> None:
        self.unread_only = not self.unread_only

    def action_clear_read(self) -> None:
        self._run_feed_action(self.feed.clear_read)

    def action_activate(self) -> None:
        selected = self._selected()
        if selected is not None:
            self._activate(selected.id)

    @work(thread=True)
    def _activate(self, notification_id: int) -> None:
        link = self.app.run_guarded(self.feed.activate, notification_id)
        self.app.call_from_thread(self.app.open_link, link)


# ───────── Dialogs ─────────
class ConfirmDialog(ModalScreen):
    """Yes/cancel confirmation. Dismisses with True when confirmed."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    cursor_position = reactive(0)  # 0 = Yes, 1 = Cancel

    def __init__(self, title: str, message: str):
        super().__init__()
        self.title_text = title
        self.message = message

    def compose(self) -> ComposeResult:
        with Container(id="dialog-container"):
            yield Static(self.title_text, id="dialog-title", markup=False)
            yield Static(self.message, classes="dialog-message", markup=False)
            with Container(id="action-buttons"):
                yield Button("✓ Yes, Delete", id="confirm-yes", classes="selected")
                yield Button("❌ Cancel", id="confirm-cancel")

    def key_h(self) -> None:
        self.cursor_position = 0

    def key_l(self) -> None:
        self.cursor_position = 1

    def key_enter(self) -> None:
        self.dismiss(self.cursor_position == 0)

    def action_cancel(self) -> None:
        self.dismiss(False)

    def watch_cursor_position(self, new_position: int) -> None:
        if not self.is_mounted:
            return
        self.query_one("#confirm-yes", Button).set_class(new_position == 0, "selected")
        self.query_one("#confirm-cancel", Button).set_class(new_position == 1, "selected")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm-yes")


# ───────── Article screen ─────────
class CommentItem(Static):
    def __init__(self, comment: Comment, depth: int, liked: bool, **kwargs):
        super().__init__(**kwargs)
        self.comment = comment
        self.depth = depth
        self.liked = liked
        self.styles.margin = (0, 0, 1, depth * 4)

    def render(self) -> Text:
        c = self.comment
        heart = "❤️" if self.liked else "🤍"
        return Text.assemble(
            (f"@{c.author}", "bold"),
            f" • {format_time_ago(c.created_at)}\n{c.content}\n{heart} {c.like_count}",
            ("  [r] reply" if can_reply(self.depth) else "", "dim"),
        )


class ArticleScreen(Screen):
    # keys are actions until the comment box is opened explicitly
    AUTO_FOCUS = None

    BINDINGS = [
        Binding("escape", "back", "Back"),
        Binding("l", "like", "Like"),
        Binding("b", "bookmark", "Bookmark"),
        Binding("s", "reading_list", "Reading list"),
        Binding("f", "follow", "Follow author"),
        Binding("P", "report_article", "Report article"),
        Binding("L", "like_comment", "Like comment"),
        Binding("r", "reply", "Reply"),
        Binding("c", "comment", "Comment"),
        Binding("e", "edit_comment", "Edit comment"),
        Binding("d", "delete_comment", "Delete comment"),
        Binding("p", "report_comment", "Report comment"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
    ]

    cursor_position = reactive(0)

    # input modes: what submitting the comment box does
    COMMENT, REPLY, EDIT, DELETE = "comment", "reply", "edit", "delete"
    REPORT_COMMENT, REPORT_ARTICLE = "report", "report-article"

    def __init__(self, slug: str):
        super().__init__()
        self.slug = slug
        self.article: Optional[dict] = None
        self.thread: Optional[CommentThread] = None
        # flags and counts belong to this screen; other stacked screens keep their own
        self.cache: Optional[InteractionStateCache] = None
        self.interactions: Optional[InteractionController] = None
        self.input_mode = self.COMMENT
        self.input_target: Optional[int] = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="app-header"):
            yield Static(f"curio [article] {self.slug}", id="header-title", markup=False)
            yield NotificationBell(id="notification-bell")
        yield Static("Loading…", id="article-body")
        yield Static("", id="article-stats")
        yield Static("─ Comments ─", classes="comment-thread-header", markup=False)
        yield VerticalScroll(id="comment-list")
        yield Input(placeholder="[c] to comment... Press Enter to submit", id="comment-input")
        yield Static(
            "[l] Like [b] Bookmark [s] Reading list [f] Follow [P] Report "
            "[j/k] Comments [L] Like [r] Reply [e] Edit [d] Delete [p] Report [Esc] Back",
            id="app-footer",
            markup=False,
        )

    def on_mount(self) -> None:
        app = self.app
        self.cache = InteractionStateCache(app.api, app.session)
        self.interactions = InteractionController(app.api, self.cache, app.runner)
        self.load_article()

    def on_screen_resume(self) -> None:
        # flags may have changed on another screen showing the same article
        self.reload_interactions()

    @property
    def article_id(self) -> Optional[int]:
        if not self.article:
            return None
        return self.article.get("article_id") or self.article.get("id")

    @property
    def author_id(self) -> Optional[int]:
        if not self.article:
            return None
        return self.article.get("author_id") or self.article.get("user_id")

    @property
    def author_name(self) -> str:
        a = self.article or {}
        return a.get("username") or a.get("author_name") or "unknown"

    @work(thread=True, exclusive=True)
    def load_article(self) -> None:
        app = self.app
        try:
            article = app.api.get_article(self.slug)
        except CurioError as e:
            logger.error("Error fetching article %s: %s", self.slug, e)
            app.call_from_thread(app.notify, "Failed to load article", severity="error")
            return
        try:
            like_count = int(article.get("like_count") or 0)
        except (AttributeError, TypeError, ValueError):
            like_count = None
        if like_count is None or not (article.get("article_id") or article.get("id")):
            logger.error("Unexpected article payload for %s: %r", self.slug, article)
            app.call_from_thread(app.notify, "Failed to load article", severity="error")
            return
        self.article = article
        self.cache.set_count(self.article_id, LIKE_COUNT, like_count)
        self.cache.load(self.article_id)
        self.thread = CommentThread(app.api, app.session, self.article_id)
        app.run_guarded(self.thread.load)
        if not get_current_worker().is_cancelled:
            app.call_from_thread(self._render_all)

    def reload_interactions(self) -> None:
        if self.cache is not None and self.article_id is not None:
            self._reload_flags()

    @work(thread=True, exclusive=True, group="flags")
    def _reload_flags(self) -> None:
        self.cache.load(self.article_id)
        if not get_current_worker().is_cancelled:
            self.app.call_from_thread(self.refresh_view)

    def _render_all(self) -> None:
        if not self.is_attached or not self.article:
            return
        a = self.article
        self.query_one("#article-body", Static).update(
            Text.assemble(
                (a.get("title") or "", "bold"),
                (f"\nby @{self.author_name}\n\n", "dim"),
                a.get("excerpt") or "",
            )
        )
        self._render_stats()
        self._render_comments()

    def refresh_view(self) -> None:
        """Redraw interaction state after a local (optimistic or rolled back) change."""
        if not self.is_attached or self.article_id is None:
            return
        self._render_stats()
        for item in self.query(CommentItem):
            item.liked = self.cache.get(item.comment.id, InteractionKind.COMMENT_LIKED)
            item.refresh()

    def _render_stats(self) -> None:
        cache = self.cache
        flags = cache.flags(self.article_id)
        heart = "❤️" if flags.liked else "🤍"
        mark = "🔖 saved" if flags.bookmarked else "🔖"
        later = "📚 in reading list" if flags.in_reading_list else "📚"
        parts = [f"{heart} {cache.get_count(self.article_id, LIKE_COUNT)}", mark, later]
        if self.author_id is not None:
            following = cache.get(self.author_id, InteractionKind.FOLLOWING)
            parts.append(f"👥 {'following' if following else 'follow'} @{self.author_name}")
        self.query_one("#article-stats", Static).update(Text("   ".join(parts)))

    def _render_comments(self) -> None:
        container = self.query_one("#comment-list", VerticalScroll)
        container.remove_children()
        if self.thread is None or not self.thread.roots:
            container.mount(Static("No comments yet. Be the first to comment!", classes="help-text"))
            return
        container.mount_all(
            CommentItem(c, depth, self.cache.get(c.id, InteractionKind.COMMENT_LIKED), classes="comment-item")
            for depth, c in iter_thread(self.thread.roots)
        )
        self.call_after_refresh(self._update_cursor)

    def watch_cursor_position(self) -> None:
        self._update_cursor()

    def _update_cursor(self) -> None:
        items = list(self.query(".comment-item"))
        for item in items:
            item.remove_class("vim-cursor")
        if 0 <= self.cursor_position < len(items):
            items[self.cursor_position].add_class("vim-cursor")
            items[self.cursor_position].scroll_visible()

    def _selected(self) -> Optional[CommentItem]:
        items = list(self.query(".comment-item"))
        if 0 <= self.cursor_position < len(items):
            return items[self.cursor_position]
        return None

    def _selected_own(self, verb: str) -> Optional[Comment]:
        selected = self._selected()
        if selected is None:
            return None
        user = self.app.session.user
        if user is None or selected.comment.author_id != user.id:
            self.app.notify(f"You can only {verb} your own comments", severity="warning")
            return None
        return selected.comment

    def action_cursor_down(self) -> None:
        if self.cursor_position < len(self.query(".comment-item")) - 1:
            self.cursor_position += 1

    def action_cursor_up(self) -> None:
        if self.cursor_position > 0:
            self.cursor_position -= 1

    def action_back(self) -> None:
        self.app.pop_screen()

    # --- toggles ---
    def action_like(self) -> None:
        if self.article_id is not None:
            self._toggle(self.interactions.toggle_like, self.article_id)

    def action_bookmark(self) -> None:
        if self.article_id is not None:
            self._toggle(self.interactions.toggle_bookmark, self.article_id)

    def action_reading_list(self) -> None:
        if self.article_id is not None:
            self._toggle(self.interactions.toggle_reading_list, self.article_id)

    def action_follow(self) -> None:
        if self.author_id is None:
            return
        user = self.app.session.user
        if user is not None and user.id == self.author_id:
            self.app.notify("You cannot follow yourself", severity="warning")
            return
        self._toggle(self.interactions.toggle_follow, self.author_id)

    def action_like_comment(self) -> None:
        selected = self._selected()
        if selected is not None:
            self._toggle(self.interactions.toggle_comment_like, selected.comment)

    @work(thread=True)
    def _toggle(self, toggle, target) -> None:
        # redraws happen through the runner's on_change hook
        self.app.run_guarded(toggle, target)

    # --- comment box ---
    def _open_input(self, mode: str, target: Optional[int], placeholder: str, value: str = "") -> None:
        self.input_mode = mode
        self.input_target = target
        comment_input = self.query_one("#comment-input", Input)
        comment_input.placeholder = placeholder
        comment_input.value = value
        comment_input.focus()

    def action_comment(self) -> None:
        self._open_input(self.COMMENT, None, "Write a comment...")

    def action_reply(self) -> None:
        selected = self._selected()
        if selected is None:
            return
        if not can_reply(selected.depth):
            self.app.notify("This thread is too deep to reply to", severity="warning")
            return
        self._open_input(self.REPLY, selected.comment.id, f"Reply to @{selected.comment.author}...")

    def action_edit_comment(self) -> None:
        comment = self._selected_own("edit")
        if comment is not None:
            self._open_input(self.EDIT, comment.id, "Edit your comment...", comment.content)

    def action_report_comment(self) -> None:
        selected = self._selected()
        if selected is not None:
            self._open_input(self.REPORT_COMMENT, selected.comment.id, "Why are you reporting this comment?")

    def action_report_article(self) -> None:
        if self.article_id is not None:
            self._open_input(self.REPORT_ARTICLE, self.article_id, "Why are you reporting this article?")

    def action_delete_comment(self) -> None:
        comment = self._selected_own("delete")
        if comment is None:
            return

        def confirmed(ok: Optional[bool]) -> None:
            if ok:
                self._submit(self.DELETE, comment.id, "")

        self.app.push_screen(
            ConfirmDialog("🗑️ Delete Comment?", "Are you sure you want to delete this comment?"),
            confirmed,
        )

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "comment-input" or self.thread is None:
            return
        text = event.value
        event.input.value = ""
        event.input.blur()
        self._submit(self.input_mode, self.input_target, text)
        self.input_mode, self.input_target = self.COMMENT, None

    def _perform(self, mode: str, target: Optional[int], text: str) -> str:
        """Run one comment-box action and return the notice to show."""
        if mode == self.EDIT:
            self.thread.edit(target, text)
            return "Comment updated"
        if mode == self.DELETE:
            self.thread.delete(target)
            return "Comment deleted"
        if mode == self.REPORT_COMMENT:
            self.thread.report(target, text)
            return "Comment reported. Thank you for helping keep our community safe."
        if mode == self.REPORT_ARTICLE:
            self.interactions.report_article(target, text)
            return "Article reported. Thank you for helping keep our community safe."
        self.thread.post(text, target if mode == self.REPLY else None)
        return "Comment posted!"

    @work(thread=True)
    def _submit(self, mode: str, target: Optional[int], text: str) -> None:
        notice = self.app.run_guarded(self._perform, mode, target, text)
        if notice is not None:
            self.app.call_from_thread(self.app.notify, notice)
            self.app.call_from_thread(self._render_comments)


# ───────── Login / register ─────────
class LoginScreen(ModalScreen):
    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def compose(self) -> ComposeResult:
        with Container(id="dialog-container"):
            yield Static("Sign in to Curio", id="dialog-title")
            yield Input(placeholder="Email", id="login-email")
            yield Input(placeholder="Password", password=True, id="login-password")
            yield Static("", id="status-message", classes="status-message")
            with Container(id="action-buttons"):
                yield Button("Login", variant="primary", id="login-button")
                yield Button("Create account", id="register-button")
                yield Button("Cancel", id="cancel-button")

    def on_mount(self) -> None:
        self.query_one("#login-email", Input).focus()

    def action_cancel(self) -> None:
        self.dismiss(False)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "login-button":
            self._submit()
        elif event.button.id == "register-button":
            self.app.push_screen(RegisterScreen(), self._after_register)
        elif event.button.id == "cancel-button":
            self.dismiss(False)

    def _after_register(self, ok: Optional[bool]) -> None:
        if ok:
            self.dismiss(True)

    def _submit(self) -> None:
        email = self.query_one("#login-email", Input).value.strip()
        password = self.query_one("#login-password", Input).value
        if not email or not password:
            self.query_one("#status-message", Static).update("Email and password are required")
            return
        self._login(email, password)

    @work(thread=True, exclusive=True)
    def _login(self, email: str, password: str) -> None:
        app = self.app
        try:
            user = app.session.login(app.api, email, password)
        except APIError as e:
            app.call_from_thread(self.query_one("#status-message", Static).update, e.message)
            return
        app.call_from_thread(app.notify, f"Welcome back, {user.username}!")
        app.call_from_thread(self.dismiss, True)


class RegisterScreen(ModalScreen):
    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def compose(self) -> ComposeResult:
        with Container(id="dialog-container"):
            yield Static("Create your Curio account", id="dialog-title")
            yield Input(placeholder="Username", id="register-username")
            yield Input(placeholder="Full name", id="register-full-name")
            yield Input(placeholder="Email", id="register-email")
            yield Input(placeholder="Password", password=True, id="register-password")
            yield Input(placeholder="Confirm password", password=True, id="register-confirm")
            yield Static("", id="status-message", classes="status-message")
            with Container(id="action-buttons"):
                yield Button("Sign up", variant="primary", id="signup-button")
                yield Button("Cancel", id="cancel-button")

    def on_mount(self) -> None:
        self.query_one("#register-username", Input).focus()

    def action_cancel(self) -> None:
        self.dismiss(False)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "signup-button":
            self._submit()
        elif event.button.id == "cancel-button":
            self.dismiss(False)

    def _value(self, name: str) -> str:
        return self.query_one(f"#register-{name}", Input).value

    def _submit(self) -> None:
        if self._value("password") != self._value("confirm"):
            self.query_one("#status-message", Static).update("Passwords do not match")
            return
        self._register(self._value("username"), self._value("email"), self._value("password"), self._value("full-name"))

    @work(thread=True, exclusive=True)
    def _register(self, username: str, email: str, password: str, full_name: str) -> None:
        app = self.app
        try:
            app.session.register(app.api, username, email, password, full_name)
        except (APIError, ValidationError) as e:
            app.call_from_thread(self.query_one("#status-message", Static).update, str(e))
            return
        app.call_from_thread(app.notify, "Account created successfully!")
        app.call_from_thread(self.dismiss, True)


# ───────── Home ─────────
class HomeScreen(Screen):
    AUTO_FOCUS = None

    BINDINGS = [Binding("o", "focus_open", "Open article")]

    def compose(self) -> ComposeResult:
        with Horizontal(id="app-header"):
            yield Static("curio [home]", id="header-title", markup=False)
            yield NotificationBell(id="notification-bell")
        yield Static("Open an article by slug:", classes="panel-header")
        yield Input(placeholder="article-slug", id="slug-input")
        yield Static(
            "[o] Open article [n] Notifications [N] All notifications [g] Login [G] Logout [q] Quit",
            id="app-footer",
            markup=False,
        )

    def action_focus_open(self) -> None:
        self.query_one("#slug-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        slug = event.value.strip()
        if slug:
            event.input.value = ""
            self.app.push_screen(ArticleScreen(slug))


class CurioApp(App):
    CSS_PATH = "main.tcss"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("q", "quit", "Quit", show=False),
        Binding("n", "open_notifications", "Notifications", show=False),
        Binding("N", "all_notifications", "All notifications", show=False),
        Binding("g", "login", "Login", show=False),
        Binding("G", "logout", "Logout", show=False),
    ]

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[Session] = None,
        api: Optional[CurioAPI] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.settings = settings or Settings.from_env()
        self.session = session or Session.restore()
        self.api = api or CurioAPI(self.settings, self.session)
        self.counter = UnreadCounter()
        self.runner = MutationRunner(
            self.session,
            notify=self._notify_threadsafe,
            on_change=lambda: self._call_threadsafe(self._refresh_views),
        )
        self.feed = NotificationFeed(self.api, self.session, self.counter, self.runner)
        self.unread_poll: Optional[PollHandle] = None
        self._bells: List[NotificationBell] = []
        self.session.subscribe(self._on_session_changed)

    def on_mount(self) -> None:
        self.push_screen(HomeScreen())
        if self.session.is_authenticated:
            self._refresh_profile()

    def _call_threadsafe(self, callback, *args, **kwargs) -> None:
        try:
            self.call_from_thread(callback, *args, **kwargs)
        except RuntimeError:
            # already on the app thread
            callback(*args, **kwargs)

    def _notify_threadsafe(self, message: str, severity: str = "information") -> None:
        self._call_threadsafe(self.notify, message, severity=severity)

    def run_guarded(self, action, *args):
        """Run a client action from a worker thread, turning errors into notices."""
        try:
            return action(*args)
        except (AuthRequiredError, ValidationError) as e:
            self._notify_threadsafe(str(e), severity="warning")
        except MutationInFlightError as e:
            logger.debug("ignored repeated toggle: %s", e)
        except APIError as e:
            logger.error("request failed: %s", e)
            self._notify_threadsafe(e.message, severity="error")
        return None

    # --- unread polling ---
    def attach_bell(self, bell: NotificationBell) -> None:
        """Register a mounted bell; the first one starts the unread poller."""
        self._bells.append(bell)
        if self.unread_poll is None:
            poller = UnreadCountPoller(
                self.api, self.session, on_count=self._deliver_count, interval=self.settings.poll_interval
            )
            self.unread_poll = poller.start()

    def detach_bell(self, bell: NotificationBell) -> None:
        if bell in self._bells:
            self._bells.remove(bell)
        if not self._bells and self.unread_poll is not None:
            self.unread_poll.stop()
            self.unread_poll = None

    def _deliver_count(self, count: int) -> None:
        # runs on the poller thread
        try:
            self.call_from_thread(self._apply_count, count)
        except RuntimeError as e:
            logger.debug("unread count dropped, app not running: %s", e)

    def _apply_count(self, count: int) -> None:
        self.counter.set(count)
        self.refresh_badge()

    def refresh_badge(self) -> None:
        for bell in list(self._bells):
            if bell.is_attached:
                bell.refresh_badge()

    def _refresh_views(self) -> None:
        for screen in self.screen_stack:
            refresh_view = getattr(screen, "refresh_view", None)
            if refresh_view is not None:
                refresh_view()
        self.refresh_badge()

    @work(thread=True, exclusive=True, group="unread")
    def refresh_unread_count(self) -> None:
        if not self.session.is_authenticated:
            return
        try:
            count = self.api.get_unread_count()
        except CurioError as e:
            logger.error("Error fetching unread count: %s", e)
            return
        self.call_from_thread(self._apply_count, count)

    # --- session ---
    def _on_session_changed(self, session: Session) -> None:
        if not session.is_authenticated:
            self.counter.reset()
        self._call_threadsafe(self._after_session_change)

    def _after_session_change(self) -> None:
        for screen in self.screen_stack:
            if isinstance(screen, ArticleScreen):
                screen.reload_interactions()
        self._refresh_views()

    @work(thread=True, exclusive=True, group="session")
    def _refresh_profile(self) -> None:
        """Check a restored session against the server."""
        try:
            user = self.session.refresh(self.api)
        except APIError as e:
            if e.status_code == 401:
                logger.info("stored session rejected: %s", e)
                self.session.logout()
                self._notify_threadsafe("Your session has expired. Please login again", severity="warning")
            else:
                logger.error("Error refreshing profile: %s", e)
            return
        logger.debug("profile refreshed for %s", user.username)

    def action_open_notifications(self) -> None:
        if not self.session.is_authenticated:
            self.notify("Please login to see notifications", severity="warning")
            return
        if self.feed.is_open:
            return
        self.push_screen(NotificationDropdown(self.feed), self._after_dropdown)

    def action_all_notifications(self) -> None:
        if not self.session.is_authenticated:
            self.notify("Please login to see notifications", severity="warning")
            return
        if not isinstance(self.screen, NotificationsScreen):
            self.push_screen(NotificationsScreen())

    def _after_dropdown(self, link: Optional[str]) -> None:
        self.feed.close()
        self.refresh_badge()
        # resync with the server after local mark-read/delete changes
        self.refresh_unread_count()
        self.open_link(link)

    def open_link(self, link: Optional[str]) -> None:
        if not link:
            return
        if link == NOTIFICATIONS_LINK:
            self.action_all_notifications()
            return
        slug = article_slug(link)
        if slug:
            self.push_screen(ArticleScreen(slug))
        else:
            self.notify(f"Open {link} in the browser", severity="information")

    def action_login(self) -> None:
        if self.session.is_authenticated:
            self.notify("Already logged in")
            return
        self.push_screen(LoginScreen(), self._after_login)

    def _after_login(self, ok: Optional[bool]) -> None:
        if ok:
            self.refresh_unread_count()

    def action_logout(self) -> None:
        if not self.session.is_authenticated:
            return
        self._logout()

    @work(thread=True, exclusive=True, group="session")
    def _logout(self) -> None:
        self.session.logout(self.api)
        self._notify_threadsafe("Logged out successfully")


def main():
    configure_logging()
    logger.debug("starting CurioApp")
    try:
        CurioApp().run()
    except Exception:
        logger.exception("Exception occurred while running CurioApp:")
        raise


if __name__ == "__main__":
    main()

"""Shared test fixtures for the curio client tests."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from curio.api_interface import CurioAPI
from curio.config import Settings
from curio.data_models import Comment, Notification, NotificationType
from curio.mutations import MutationRunner
from curio.session import Session


class FakeStorage:
    """In-memory stand-in for curio.auth_storage."""

    def __init__(self, found=None):
        self.found = found
        self.saved = []
        self.cleared = 0

    def load_session(self):
        return self.found

    def save_session(self, token, user=None):
        self.saved.append((token, user))
        self.found = {"token": token, "user": user}

    def clear_session(self):
        self.cleared += 1
        self.found = None


class Notices:
    """Collects notices the way App.notify would show them."""

    def __init__(self):
        self.messages = []

    def __call__(self, message, severity="information"):
        self.messages.append((message, severity))

    @property
    def errors(self):
        return [m for m, s in self.messages if s == "error"]


def make_response(status=200, body=None, content=b"x"):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 400
    resp.content = b"" if status == 204 else content
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


def make_comment(comment_id, parent_id=None, content=None, like_count=0):
    return Comment(
        id=comment_id,
        parent_id=parent_id,
        article_id=7,
        author_id=1,
        author="ann",
        content=content or f"comment {comment_id}",
        like_count=like_count,
        created_at=datetime(2025, 1, 1, 12, 0, comment_id % 60),
    )


def make_notification(notification_id, read=False, kind=NotificationType.COMMENT, link=None):
    return Notification(
        id=notification_id,
        type=kind,
        title=f"Notification {notification_id}",
        message="Someone commented on your article",
        link=link if link is not None else f"/articles/post-{notification_id}",
        created_at=datetime(2025, 1, 1, 12, 0, 0),
        read=read,
    )


@pytest.fixture()
def storage():
    return FakeStorage()


@pytest.fixture()
def session(storage):
    return Session(token="test-token", storage=storage)


@pytest.fixture()
def anon_session(storage):
    return Session(storage=storage)


@pytest.fixture()
def settings():
    return Settings(api_url="http://curio.test/api/v1", timeout=1.0, poll_interval=30.0)


@pytest.fixture()
def http():
    http = MagicMock()
    http.request.return_value = make_response(200, {"success": True})
    return http


@pytest.fixture()
def api():
    return MagicMock(spec=CurioAPI)


@pytest.fixture()
def notices():
    return Notices()


@pytest.fixture()
def runner(session, notices):
    return MutationRunner(session, notify=notices)

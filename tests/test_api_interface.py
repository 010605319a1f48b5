"""Tests for CurioAPI: request shapes, auth gate and error mapping."""

import pytest
import requests

from curio.api_interface import CurioAPI
from curio.data_models import NotificationType
from curio.errors import APIError, AuthRequiredError
from tests.conftest import make_response


@pytest.fixture()
def client(settings, session, http):
    return CurioAPI(settings, session, http=http)


class TestAuthGate:

    def test_no_token_short_circuits(self, settings, anon_session, http):
        """Authenticated calls without a token never reach the network."""
        client = CurioAPI(settings, anon_session, http=http)
        with pytest.raises(AuthRequiredError):
            client.get_unread_count()
        http.request.assert_not_called()

    def test_bearer_header_sent(self, client, http):
        http.request.return_value = make_response(200, {"success": True, "count": 4})
        client.get_unread_count()
        _, kwargs = http.request.call_args
        assert kwargs["headers"] == {"Authorization": "Bearer test-token"}

    def test_public_endpoint_without_token(self, settings, anon_session, http):
        """Comments are readable when logged out."""
        http.request.return_value = make_response(200, {"success": True, "data": []})
        client = CurioAPI(settings, anon_session, http=http)
        assert client.get_comments(7) == []
        _, kwargs = http.request.call_args
        assert "Authorization" not in kwargs["headers"]


class TestRequests:

    def test_unread_count(self, client, http):
        http.request.return_value = make_response(200, {"success": True, "count": 4})
        assert client.get_unread_count() == 4
        method, url = http.request.call_args[0]
        assert method == "GET"
        assert url == "http://curio.test/api/v1/notifications/unread-count"

    def test_get_notifications_parses_rows(self, client, http):
        http.request.return_value = make_response(200, {
            "success": True,
            "data": [
                {"notification_id": 3, "type": "follow", "title": "New follower",
                 "message": "bob followed you", "link": "/users/bob", "is_read": 0,
                 "created_at": "2025-01-01T10:00:00.000Z"},
                {"notification_id": 2, "type": "mystery", "title": "?", "message": "",
                 "link": None, "is_read": 1, "created_at": "2024-12-31T10:00:00.000Z"},
            ],
        })
        items = client.get_notifications(limit=10)

        assert [n.id for n in items] == [3, 2]
        assert items[0].type is NotificationType.FOLLOW
        assert items[0].read is False
        assert items[1].type is NotificationType.OTHER
        assert items[1].read is True
        assert http.request.call_args[1]["params"] == {"limit": 10}

    def test_unread_only_param(self, client, http):
        http.request.return_value = make_response(200, {"success": True, "data": []})
        client.get_notifications(limit=20, unread_only=True)
        assert http.request.call_args[1]["params"] == {"limit": 20, "unread_only": "true"}

    def test_status_checks_unwrap_data(self, client, http):
        http.request.return_value = make_response(200, {"success": True, "data": {"isLiked": True}})
        assert client.get_like_status(7) is True
        http.request.return_value = make_response(200, {"success": True, "data": {"isBookmarked": False}})
        assert client.get_bookmark_status(7) is False
        http.request.return_value = make_response(200, {"success": True, "data": {"inReadingList": True}})
        assert client.get_reading_list_status(7) is True

    def test_create_reply_payload(self, client, http):
        http.request.return_value = make_response(201, {"success": True, "data": {
            "comment_id": 9, "parent_comment_id": 4, "content": "hi", "created_at": "2025-01-01T10:00:00",
        }})
        comment = client.create_comment(7, "hi", parent_id=4)

        method, url = http.request.call_args[0]
        assert (method, url) == ("POST", "http://curio.test/api/v1/comments")
        assert http.request.call_args[1]["json"] == {"article_id": 7, "parent_comment_id": 4, "content": "hi"}
        assert comment.id == 9
        assert comment.parent_id == 4

    def test_reading_list_remove_uses_delete(self, client, http):
        client.remove_from_reading_list(7)
        method, url = http.request.call_args[0]
        assert (method, url) == ("DELETE", "http://curio.test/api/v1/reading-list/7")

    def test_mark_all_read(self, client, http):
        client.mark_all_notifications_read()
        method, url = http.request.call_args[0]
        assert (method, url) == ("PUT", "http://curio.test/api/v1/notifications/read-all")

    def test_no_content_response(self, client, http):
        http.request.return_value = make_response(204)
        assert client.delete_notification(3) is None


class TestErrors:

    def test_server_message_is_kept(self, client, http):
        http.request.return_value = make_response(404, {"success": False, "message": "Notification not found"})
        with pytest.raises(APIError) as exc:
            client.mark_notification_read(3)
        assert exc.value.status_code == 404
        assert exc.value.message == "Notification not found"

    def test_non_json_error(self, client, http):
        http.request.return_value = make_response(502)
        with pytest.raises(APIError) as exc:
            client.get_unread_count()
        assert exc.value.status_code == 502

    def test_transport_error_wrapped(self, client, http):
        http.request.side_effect = requests.ConnectionError("Connection refused")
        with pytest.raises(APIError) as exc:
            client.get_unread_count()
        assert exc.value.status_code is None
        assert "Connection refused" in str(exc.value)

    def test_notification_without_id_is_an_api_error(self, client, http):
        http.request.return_value = make_response(200, {"success": True, "data": [{"type": "like", "title": "x"}]})
        with pytest.raises(APIError, match="Malformed notifications"):
            client.get_notifications()

    def test_non_list_rows_rejected(self, client, http):
        http.request.return_value = make_response(200, {"success": True, "data": {"oops": 1}})
        with pytest.raises(APIError):
            client.get_comments(7)

    def test_garbled_unread_count(self, client, http):
        http.request.return_value = make_response(200, {"success": True, "count": "lots"})
        with pytest.raises(APIError):
            client.get_unread_count()

    def test_like_comment_returns_server_state(self, client, http):
        http.request.return_value = make_response(200, {"success": True, "liked": False})
        assert client.like_comment(5) == {"success": True, "liked": False}

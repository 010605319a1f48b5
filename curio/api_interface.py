import logging
from typing import Any, Dict, List, Optional

import requests
from requests import Session as HTTPSession

from .config import NOTIFICATION_DROPDOWN_LIMIT, Settings
from .data_models import Comment, Notification
from .errors import APIError, AuthRequiredError

logger = logging.getLogger("curio.api")


class CurioAPI:
    """API client that talks to the Curio REST backend.

    Every authenticated call reads the bearer token from the session at call
    time. Without a token the call raises AuthRequiredError and nothing is
    sent.
    """

    def __init__(self, settings: Settings, session, http: Optional[HTTPSession] = None):
        self.base_url = settings.api_url.rstrip("/")
        self.timeout = settings.timeout
        self.session = session
        self.http: HTTPSession = http or requests.Session()

    # --- helpers ---
    def _request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = True,
        params: Dict[str, Any] | None = None,
        json_payload: Dict[str, Any] | None = None,
    ) -> Any:
        headers = {}
        if auth:
            token = self.session.token
            if not token:
                logger.debug("%s %s skipped: no session credential", method, path)
                raise AuthRequiredError(f"{method} {path} requires login")
            headers["Authorization"] = f"Bearer {token}"

        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.http.request(
                method, url, params=params, json=json_payload, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise APIError(f"{method} {path} failed: {e}") from e

        if not resp.ok:
            raise APIError(self._error_message(resp, method, path), status_code=resp.status_code)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise APIError(f"{method} {path} returned invalid JSON", status_code=resp.status_code) from e

    @staticmethod
    def _error_message(resp, method: str, path: str) -> str:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return body["message"]
        return f"{method} {path} failed with HTTP {resp.status_code}"

    @staticmethod
    def _unwrap(body: Any) -> Any:
        # Backend wraps payloads as {success, data, message}
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    @staticmethod
    def _rows(data: Any, model, what: str) -> list:
        if data is None:
            return []
        if not isinstance(data, list):
            raise APIError(f"Expected a list of {what}, got {type(data).__name__}")
        try:
            return [model.from_api(row) for row in data]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise APIError(f"Malformed {what} in server response: {e}") from e

    def _get(self, path: str, params: Dict[str, Any] | None = None, auth: bool = True) -> Any:
        return self._request("GET", path, params=params, auth=auth)

    def _post(self, path: str, json_payload: Dict[str, Any] | None = None, auth: bool = True) -> Any:
        return self._request("POST", path, json_payload=json_payload, auth=auth)

    def _put(self, path: str, json_payload: Dict[str, Any] | None = None) -> Any:
        return self._request("PUT", path, json_payload=json_payload or {})

    def _delete(self, path: str) -> Any:
        return self._request("DELETE", path)

    # --- auth ---
    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._post("/auth/login", json_payload={"email": email, "password": password}, auth=False)

    def register(self, username: str, email: str, password: str, full_name: str = "") -> Dict[str, Any]:
        payload = {"username": username, "email": email, "password": password, "full_name": full_name}
        return self._post("/auth/register", json_payload=payload, auth=False)

    def me(self) -> Dict[str, Any]:
        return self._unwrap(self._get("/auth/me"))

    def logout(self) -> None:
        self._post("/auth/logout")

    # --- articles ---
    def get_article(self, slug: str) -> Dict[str, Any]:
        return self._unwrap(self._get(f"/articles/{slug}", auth=False))

    def like_article(self, article_id: int) -> Dict[str, Any]:
        return self._post(f"/articles/{article_id}/like") or {}

    def bookmark_article(self, article_id: int) -> Dict[str, Any]:
        return self._post(f"/articles/{article_id}/bookmark") or {}

    def report_article(self, article_id: int, reason: str) -> None:
        self._post(f"/articles/{article_id}/report", json_payload={"reason": reason})

    def get_like_status(self, article_id: int) -> bool:
        data = self._unwrap(self._get(f"/articles/{article_id}/like-status")) or {}
        return bool(data.get("isLiked"))

    def get_bookmark_status(self, article_id: int) -> bool:
        data = self._unwrap(self._get(f"/bookmarks/check/{article_id}")) or {}
        return bool(data.get("isBookmarked"))

    def get_reading_list_status(self, article_id: int) -> bool:
        data = self._unwrap(self._get(f"/reading-list/check/{article_id}")) or {}
        return bool(data.get("inReadingList"))

    def add_to_reading_list(self, article_id: int) -> None:
        self._post(f"/reading-list/{article_id}")

    def remove_from_reading_list(self, article_id: int) -> None:
        self._delete(f"/reading-list/{article_id}")

    # --- users ---
    def follow_user(self, user_id: int) -> None:
        self._post(f"/users/{user_id}/follow")

    def unfollow_user(self, user_id: int) -> None:
        self._delete(f"/users/{user_id}/follow")

    # --- comments ---
    def get_comments(self, article_id: int) -> List[Comment]:
        data = self._unwrap(self._get("/comments", params={"article_id": article_id}, auth=False))
        return self._rows(data, Comment, "comments")

    def create_comment(self, article_id: int, content: str, parent_id: Optional[int] = None) -> Optional[Comment]:
        data = self._unwrap(
            self._post(
                "/comments",
                json_payload={"article_id": article_id, "parent_comment_id": parent_id, "content": content},
            )
        )
        if isinstance(data, dict) and data.get("comment_id"):
            return self._rows([data], Comment, "comment")[0]
        return None

    def update_comment(self, comment_id: int, content: str) -> None:
        self._put(f"/comments/{comment_id}", json_payload={"content": content})

    def delete_comment(self, comment_id: int) -> None:
        self._delete(f"/comments/{comment_id}")

    def like_comment(self, comment_id: int) -> Dict[str, Any]:
        return self._post(f"/comments/{comment_id}/like") or {}

    def report_comment(self, comment_id: int, reason: str) -> None:
        self._post(f"/comments/{comment_id}/report", json_payload={"reason": reason})

    # --- notifications ---
    def get_unread_count(self) -> int:
        data = self._get("/notifications/unread-count") or {}
        try:
            return int(data.get("count") or 0)
        except (AttributeError, TypeError, ValueError) as e:
            raise APIError(f"Malformed unread count: {data!r}") from e

    def get_notifications(self, limit: int = NOTIFICATION_DROPDOWN_LIMIT, unread_only: bool = False) -> List[Notification]:
        params: Dict[str, Any] = {"limit": limit}
        if unread_only:
            params["unread_only"] = "true"
        data = self._unwrap(self._get("/notifications", params=params))
        return self._rows(data, Notification, "notifications")

    def mark_notification_read(self, notification_id: int) -> None:
        self._put(f"/notifications/{notification_id}/read")

    def mark_all_notifications_read(self) -> None:
        self._put("/notifications/read-all")

    def delete_notification(self, notification_id: int) -> None:
        self._delete(f"/notifications/{notification_id}")

    def clear_read_notifications(self) -> None:
        self._delete("/notifications/clear-read")

"""
Explicit session context.

A Session is created once at app start from persisted storage and handed to
everything that needs the viewer's credential. It only changes through
login/register/refresh/logout.
"""
import logging
from typing import Callable, List, Optional

from . import auth_storage
from .data_models import User
from .errors import APIError, AuthRequiredError, ValidationError

logger = logging.getLogger("curio.session")


class Session:
    def __init__(self, token: Optional[str] = None, user: Optional[User] = None, storage=auth_storage):
        self._token = token
        self._user = user
        self._storage = storage
        self._listeners: List[Callable[["Session"], None]] = []

    @classmethod
    def restore(cls, storage=auth_storage) -> "Session":
        """Build a session from whatever the storage backend has persisted."""
        try:
            found = storage.load_session()
        except Exception:
            # a broken keyring backend should leave the user logged out, not crash
            logger.exception("could not read stored session")
            found = None

        if not found:
            return cls(storage=storage)
        user = User.from_api(found["user"]) if found.get("user") else None
        logger.debug("restored session for %s", user.username if user else "<unknown>")
        return cls(token=found["token"], user=user, storage=storage)

    # --- read-only state ---
    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def require(self, action: str = "continue") -> str:
        """Return the token or raise AuthRequiredError."""
        if not self._token:
            raise AuthRequiredError(f"Please login to {action}")
        return self._token

    def subscribe(self, listener: Callable[["Session"], None]) -> None:
        self._listeners.append(listener)

    # --- transitions ---
    def login(self, api, email: str, password: str) -> User:
        data = api.login(email, password)
        return self._establish(data)

    def register(self, api, username: str, email: str, password: str, full_name: str = "") -> User:
        check_registration(username, email, password, full_name)
        data = api.register(username.strip(), email.strip(), password, full_name.strip())
        return self._establish(data)

    def refresh(self, api) -> User:
        self.require("refresh your profile")
        self._user = _parse_user(api.me(), "Profile response")
        self._storage.save_session(self._token, self._user.to_dict())
        self._emit()
        return self._user

    def logout(self, api=None) -> None:
        if api is not None and self._token:
            try:
                api.logout()
            except APIError as e:
                logger.error("Logout error: %s", e)
        self._token = None
        self._user = None
        self._storage.clear_session()
        self._emit()

    def _establish(self, data: dict) -> User:
        if not isinstance(data, dict) or not data.get("token"):
            raise APIError("Login response did not include a session token")
        user = _parse_user(data.get("user") or {}, "Login response")
        self._token = data["token"]
        self._user = user
        self._storage.save_session(self._token, self._user.to_dict())
        logger.debug("session established for %s", self._user.username)
        self._emit()
        return self._user

    def _emit(self) -> None:
        for listener in list(self._listeners):
            listener(self)


def _parse_user(data, source: str) -> User:
    if not isinstance(data, dict):
        raise APIError(f"{source} had a malformed user record")
    try:
        return User.from_api(data)
    except (TypeError, ValueError) as e:
        raise APIError(f"{source} had a malformed user record") from e


def check_registration(username: str, email: str, password: str, full_name: str) -> None:
    """Raise ValidationError for the first problem with a sign-up form."""
    if len((username or "").strip()) < 3:
        raise ValidationError("Username must be at least 3 characters")
    if "@" not in (email or ""):
        raise ValidationError("Email is invalid")
    if not (full_name or "").strip():
        raise ValidationError("Full name is required")
    if len(password or "") < 6:
        raise ValidationError("Password must be at least 6 characters")

"""Client configuration and constants"""
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=True)

# Backend
DEFAULT_API_URL = "http://localhost:5000/api/v1"
DEFAULT_TIMEOUT = 5.0

# Notifications
DEFAULT_POLL_INTERVAL = 30.0
NOTIFICATION_DROPDOWN_LIMIT = 10
NOTIFICATION_PAGE_LIMIT = 20
BADGE_OVERFLOW = 9

# Comments
MAX_REPLY_DEPTH = 3

# Storage settings
KEYRING_SERVICE = "curio"
TOKEN_KEY = "token"
USER_KEY = "user.json"

DEBUG_LOG_FILE = Path.home() / ".curio_debug.log"


@dataclass
class Settings:
    api_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_url=os.environ.get("CURIO_API_URL", DEFAULT_API_URL).rstrip("/"),
            timeout=float(os.environ.get("CURIO_TIMEOUT", DEFAULT_TIMEOUT)),
            poll_interval=float(os.environ.get("CURIO_POLL_INTERVAL", DEFAULT_POLL_INTERVAL)),
            debug=bool(os.getenv("CURIO_DEBUG")),
        )


def configure_logging(debug: bool | None = None) -> logging.Logger:
    """Configure the ``curio`` logger once.

    Debug output also goes to ~/.curio_debug.log since Textual captures
    stdout/stderr while the app is running.
    """
    if debug is None:
        debug = bool(os.getenv("CURIO_DEBUG"))

    logger = logging.getLogger("curio")
    if logger.handlers:
        return logger

    level = logging.DEBUG if debug else logging.WARNING
    logger.setLevel(level)
    fmt = logging.Formatter("[%(name)s] %(levelname)s: %(message)s")

    stream = logging.StreamHandler(sys.stderr)
    stream.setLevel(level)
    stream.setFormatter(fmt)
    logger.addHandler(stream)

    if debug:
        try:
            fh = logging.FileHandler(DEBUG_LOG_FILE, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
            logger.addHandler(fh)
        except OSError:
            logger.warning("Could not open debug log file %s", DEBUG_LOG_FILE)

    return logger

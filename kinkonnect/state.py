"""Process-wide configuration and the record store the server works against."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from .constants import DEFAULT_SCAN_TIMEOUT_SECONDS
from .errors import UnauthenticatedError
from .store import RecordStore

# Configuration (set by configure() at startup)
DATA_FILE: Path | None = None
ACTING_USER_ID: str | None = None
SCAN_TIMEOUT: float = DEFAULT_SCAN_TIMEOUT_SECONDS
DESCRIBE_MODEL: str | None = None

# The store every tool reads and writes (replaced by load_store)
store: RecordStore = RecordStore()


def _resolve_data_path() -> Path | None:
    """Get the snapshot path from KINKONNECT_DATA_FILE, or None for a memory-only store.

    A path that does not exist yet is fine; it is created on the first write.
    """
    env_path = os.getenv("KINKONNECT_DATA_FILE")
    if not env_path:
        return None
    return Path(env_path).expanduser().resolve()


def _resolve_scan_timeout() -> float:
    raw = os.getenv("KINKONNECT_SCAN_TIMEOUT")
    if not raw:
        return DEFAULT_SCAN_TIMEOUT_SECONDS
    try:
        timeout = float(raw)
    except ValueError as e:
        raise ValueError(f"KINKONNECT_SCAN_TIMEOUT must be a number of seconds, got {raw!r}") from e
    if timeout <= 0:
        raise ValueError("KINKONNECT_SCAN_TIMEOUT must be positive")
    return timeout


def configure() -> None:
    """Initialize configuration from environment. Called at startup.

    Note: load_dotenv() does NOT override existing env vars by default.
    """
    global DATA_FILE, ACTING_USER_ID, SCAN_TIMEOUT, DESCRIBE_MODEL
    load_dotenv()  # Load .env, won't override existing env vars
    DATA_FILE = _resolve_data_path()
    ACTING_USER_ID = os.getenv("KINKONNECT_USER_ID") or None
    SCAN_TIMEOUT = _resolve_scan_timeout()
    DESCRIBE_MODEL = os.getenv("KINKONNECT_DESCRIBE_MODEL") or None


def load_store() -> RecordStore:
    """Replace the global store with one backed by DATA_FILE and load it."""
    global store
    store = RecordStore(DATA_FILE)
    store.load()
    return store


def resolve_caller(caller_id: str | None = None) -> str:
    """The explicit caller id, else the configured acting user.

    Raises:
        UnauthenticatedError: neither is set.
    """
    user_id = caller_id or ACTING_USER_ID
    if not user_id:
        raise UnauthenticatedError()
    return user_id

"""Persistent application preferences: session, last sync time and theme."""

import logging
from typing import Optional

from shared.db_models import PreferenceEntry
from shared.db_operations import DatabaseOperations

logger = logging.getLogger(__name__)

KEY_IS_LOGGED_IN = "is_logged_in"
KEY_USERNAME = "username"
KEY_LAST_SYNC = "last_sync_time"
KEY_THEME = "selected_theme"

THEME_LIGHT = 0
THEME_DARK = 1
THEME_OCEAN = 2

THEME_NAMES = {
    THEME_LIGHT: "light",
    THEME_DARK: "dark",
    THEME_OCEAN: "ocean",
}


class AppPreferences:
    """Key/value preferences stored next to the post cache.

    The preferences table is not part of the versioned cache tables, so a
    schema reset keeps the session and the last sync time.
    """

    def __init__(self, db_ops: DatabaseOperations):
        self.db_ops = db_ops

    # Session

    def is_logged_in(self) -> bool:
        return self._get(KEY_IS_LOGGED_IN) == "1"

    def get_username(self) -> str:
        return self._get(KEY_USERNAME) or ""

    def login(self, username: str) -> None:
        """Mark the session as logged in for username."""
        self._set(KEY_IS_LOGGED_IN, "1")
        self._set(KEY_USERNAME, username)
        logger.info(f"Session started for {username}")

    def logout(self) -> None:
        """Clear the session flag and username."""
        self._remove(KEY_IS_LOGGED_IN)
        self._remove(KEY_USERNAME)
        logger.info("Session cleared")

    # Sync

    def get_last_sync_time(self) -> int:
        """Epoch milliseconds of the last successful refresh, 0 if never synced."""
        value = self._get(KEY_LAST_SYNC)
        return int(value) if value else 0

    def set_last_sync_time(self, timestamp_ms: int) -> None:
        self._set(KEY_LAST_SYNC, str(int(timestamp_ms)))

    # Theme

    def get_theme(self) -> int:
        value = self._get(KEY_THEME)
        return int(value) if value else THEME_LIGHT

    def set_theme(self, theme: int) -> None:
        if theme not in THEME_NAMES:
            raise ValueError(f"Unknown theme {theme}, expected one of {sorted(THEME_NAMES)}")
        self._set(KEY_THEME, str(theme))

    # Storage

    def _get(self, key: str) -> Optional[str]:
        with self.db_ops.get_session() as session:
            entry = session.get(PreferenceEntry, key)
            return entry.value if entry else None

    def _set(self, key: str, value: str) -> None:
        with self.db_ops.get_session() as session:
            entry = session.get(PreferenceEntry, key)
            if entry:
                entry.value = value
            else:
                session.add(PreferenceEntry(key=key, value=value))
            session.commit()

    def _remove(self, key: str) -> None:
        with self.db_ops.get_session() as session:
            entry = session.get(PreferenceEntry, key)
            if entry:
                session.delete(entry)
                session.commit()

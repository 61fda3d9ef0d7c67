"""
Repository for per-user scoring settings.
"""

from __future__ import annotations

import logging

from otf_calendar.db.repositories.base import BaseRepository
from otf_calendar.models.settings import SETTING_FIELDS, UserSettings

logger = logging.getLogger(__name__)


class UserSettingsRepository(BaseRepository):
    """Read/write access to the ``user_settings`` table."""

    def get(self, user_id: int) -> UserSettings:
        """Fetch settings for ``user_id``.

        A user with no row, or with NULL columns, gets the engine defaults
        for the missing values.

        Returns:
            A fully populated ``UserSettings``.
        """
        row = self.fetchone("SELECT * FROM user_settings WHERE user_id = ?;", (user_id,))
        if row is None:
            logger.debug("No stored settings for user=%d; using defaults.", user_id)
            return UserSettings(user_id=user_id)
        return UserSettings.from_stored(user_id, {k: row[k] for k in row.keys()})

    def exists(self, user_id: int) -> bool:
        return self.fetch_count(
            "SELECT COUNT(*) AS n FROM user_settings WHERE user_id = ?;", (user_id,)
        ) > 0

    def upsert(self, settings: UserSettings) -> None:
        """Persist every field of ``settings`` (defaults included)."""
        cols = ", ".join(SETTING_FIELDS)
        placeholders = ", ".join("?" for _ in SETTING_FIELDS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in SETTING_FIELDS)
        self.execute(
            f"""
            INSERT INTO user_settings (user_id, {cols})
            VALUES (?, {placeholders})
            ON CONFLICT(user_id) DO UPDATE SET
                {updates},
                updated_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now');
            """,
            (settings.user_id, *(getattr(settings, c) for c in SETTING_FIELDS)),
        )

    def set_value(self, user_id: int, name: str, value: float | None) -> UserSettings:
        """Set (or with ``None``, reset to default) a single setting.

        The new value is validated against ``UserSettings`` before it is
        written.

        Args:
            user_id: Owning user.
            name: One of ``SETTING_FIELDS``.
            value: New value, or ``None`` to fall back to the default.

        Returns:
            The settings as stored after the update.

        Raises:
            ValueError: If ``name`` is not a known setting.
            pydantic.ValidationError: If ``value`` is out of range.
        """
        if name not in SETTING_FIELDS:
            raise ValueError(f"Unknown setting '{name}'. Must be one of {list(SETTING_FIELDS)}.")

        current = self.get(user_id)
        if value is not None:
            UserSettings.from_stored(user_id, {**current.model_dump(), name: value})

        self.execute(
            "INSERT OR IGNORE INTO user_settings (user_id) VALUES (?);", (user_id,)
        )
        self.execute(
            f"""
            UPDATE user_settings
            SET {name} = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now')
            WHERE user_id = ?;
            """,
            (value, user_id),
        )
        return self.get(user_id)

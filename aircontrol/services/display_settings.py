"""
Per-owner display settings.

Settings are a small value object merged over defaults. Where they live is
behind SettingsStore so the API does not care whether they come from the
database or from memory.
"""
from typing import Dict, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from aircontrol.config import settings as app_settings
from aircontrol.models import SettingsEntry
from aircontrol.schemas import DisplaySettings, DisplaySettingsUpdate
from aircontrol.services.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)


def default_display_settings() -> DisplaySettings:
    return DisplaySettings(upcoming_days=app_settings.default_upcoming_days)


class SettingsStore:
    """Raw key-value access; values are plain JSON dicts"""

    def get(self, key: str) -> Optional[dict]:
        raise NotImplementedError

    def put(self, key: str, value: dict):
        raise NotImplementedError


class InMemorySettingsStore(SettingsStore):
    def __init__(self):
        self.values: Dict[str, dict] = {}

    def get(self, key: str) -> Optional[dict]:
        value = self.values.get(key)
        return dict(value) if value is not None else None

    def put(self, key: str, value: dict):
        self.values[key] = dict(value)


class DatabaseSettingsStore(SettingsStore):
    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[dict]:
        try:
            entry = self.db.query(SettingsEntry).filter(SettingsEntry.key == key).first()
        except SQLAlchemyError as e:
            logger.error(f"Error loading settings {key}: {e}")
            raise PersistenceError("Could not load settings")
        return dict(entry.value) if entry else None

    def put(self, key: str, value: dict):
        try:
            entry = self.db.query(SettingsEntry).filter(SettingsEntry.key == key).first()
            if entry:
                entry.value = value
            else:
                self.db.add(SettingsEntry(key=key, value=value))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving settings {key}: {e}")
            raise PersistenceError("Could not save settings")


class DisplaySettingsService:
    def __init__(self, store: SettingsStore):
        self.store = store

    @staticmethod
    def _key(owner: str) -> str:
        if not owner or not owner.strip():
            raise ValidationError("Settings owner is required")
        return f"display:{owner.strip()}"

    def load(self, owner: str) -> DisplaySettings:
        """Stored values over defaults; unreadable stored values fall back to defaults"""
        stored = self.store.get(self._key(owner))
        defaults = default_display_settings()
        if not stored:
            return defaults

        merged = defaults.model_dump(by_alias=True)
        merged.update(stored)
        try:
            return DisplaySettings.model_validate(merged)
        except ValueError as e:
            logger.warning(f"Stored display settings for {owner} are invalid, using defaults: {e}")
            return defaults

    def update(self, owner: str, changes: DisplaySettingsUpdate) -> DisplaySettings:
        current = self.load(owner).model_dump(by_alias=True)
        current.update(changes.model_dump(by_alias=True, exclude_none=True))
        try:
            result = DisplaySettings.model_validate(current)
        except ValueError as e:
            raise ValidationError(str(e))

        self.store.put(self._key(owner), result.model_dump(by_alias=True))
        logger.info(f"Display settings updated for {owner}")
        return result

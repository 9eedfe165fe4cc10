"""Read-only access to user settings and dictionaries.

Settings and dictionary CRUD live elsewhere; the coordinator only reads a
user's current values when a session starts.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..models.dictionary import DictionaryEntry, UserSettings

logger = logging.getLogger(__name__)


class UserDataStore(ABC):
    """Source of per-user settings and vocabulary."""

    @abstractmethod
    async def get_settings(self, user_id: str) -> UserSettings:
        """Settings for ``user_id``, defaulted when the user has none."""

    @abstractmethod
    async def list_dictionary(self, user_id: str) -> List[DictionaryEntry]:
        """Dictionary entries of ``user_id`` ordered by priority, highest first."""


class StaticUserDataStore(UserDataStore):
    """User data held in memory, typically loaded from the YAML config."""

    def __init__(self,
                 settings: Optional[Dict[str, UserSettings]] = None,
                 dictionaries: Optional[Dict[str, List[DictionaryEntry]]] = None):
        self.settings = dict(settings or {})
        self.dictionaries = {user: list(entries) for user, entries in (dictionaries or {}).items()}

    async def get_settings(self, user_id: str) -> UserSettings:
        return self.settings.get(user_id) or UserSettings()

    async def list_dictionary(self, user_id: str) -> List[DictionaryEntry]:
        entries = self.dictionaries.get(user_id, [])
        return sorted(entries, key=lambda entry: entry.priority, reverse=True)

    def set_dictionary(self, user_id: str, entries: List[DictionaryEntry]) -> None:
        self.dictionaries[user_id] = list(entries)

    @classmethod
    def from_config(cls, config) -> "StaticUserDataStore":
        """Build from the ``users`` config section.

        Expected layout::

            users:
              local:
                default_language: en-US
                model_identifier: whisper-1
                dictionary:
                  - {phrase: "kube cuddle", canonical: "kubectl", priority: 90}
        """
        settings = {}
        dictionaries = {}
        for user_id, data in (config.get('users', {}) or {}).items():
            data = data or {}
            defaults = UserSettings()
            settings[user_id] = UserSettings(
                default_language=data.get('default_language', defaults.default_language),
                model_identifier=data.get('model_identifier', defaults.model_identifier),
            )
            dictionaries[user_id] = [DictionaryEntry.from_dict(e) for e in data.get('dictionary', []) or []]
            logger.debug(f"Loaded {len(dictionaries[user_id])} dictionary entries for user {user_id}")
        return cls(settings, dictionaries)

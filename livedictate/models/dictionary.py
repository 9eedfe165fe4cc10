"""User-owned data consumed by the coordinator: dictionary, settings, identity."""

from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any


@dataclass(frozen=True)
class DictionaryEntry:
    """A prioritized vocabulary entry (priority 0-100, higher wins)."""
    phrase: str
    canonical: Optional[str] = None
    substitution: Optional[str] = None
    notes: Optional[str] = None
    priority: int = 0
    entry_id: Optional[str] = None

    @property
    def term(self) -> str:
        """The spelling fed to the speech model."""
        return self.canonical or self.phrase

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DictionaryEntry":
        return cls(
            phrase=data["phrase"],
            canonical=data.get("canonical"),
            substitution=data.get("substitution"),
            notes=data.get("notes"),
            priority=int(data.get("priority", 0)),
            entry_id=data.get("entry_id") or data.get("id"),
        )


@dataclass
class UserSettings:
    """Per-user transcription preferences."""
    default_language: str = "en-US"
    model_identifier: str = "whisper-1"


@dataclass
class User:
    """An authenticated caller."""
    id: str
    name: str = ""
    email: str = ""

"""
In-memory collaborator stores.

The UI layer keeps user preferences and past chat sessions; these are the
process-local versions the API uses. Neither survives a restart.
"""

import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from instantsolve.modes import DEFAULT_MODE, Mode
from instantsolve.types import ConversationTurn

DEFAULT_MAX_CHATS = 500
TITLE_LENGTH = 50


@dataclass(frozen=True)
class UserPreferences:
    preferred_mode: Mode = DEFAULT_MODE
    accepted_terms: bool = False


class SettingsStore:
    """Preferred mode and terms acceptance for the single local user."""

    def __init__(self):
        self._preferences = UserPreferences()

    def get(self) -> UserPreferences:
        return self._preferences

    def update(self, preferred_mode: Mode | None = None, accepted_terms: bool | None = None) -> UserPreferences:
        changes: dict[str, Any] = {}
        if preferred_mode is not None:
            changes["preferred_mode"] = Mode(preferred_mode)
        if accepted_terms is not None:
            changes["accepted_terms"] = accepted_terms
        self._preferences = replace(self._preferences, **changes)
        return self._preferences


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ChatSession:
    """A stored chat: id, title (from the first message) and its turns."""

    chat_id: str
    title: str
    history: tuple[ConversationTurn, ...] = ()
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def summary(self) -> dict[str, Any]:
        return {
            "chat_id": self.chat_id,
            "title": self.title,
            "turns": len(self.history),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def make_title(text: str) -> str:
    """Chat title from the first user message."""
    text = " ".join(text.split())
    if len(text) <= TITLE_LENGTH:
        return text
    return text[:TITLE_LENGTH].rstrip() + "..."


class ChatHistoryStore:
    """
    Chat sessions, most recently updated first.

    Holds at most ``max_chats`` sessions; saving past the cap evicts the
    least recently updated one.
    """

    def __init__(self, max_chats: int = DEFAULT_MAX_CHATS):
        if max_chats < 1:
            raise ValueError("max_chats must be at least 1")
        self.max_chats = max_chats
        # Oldest first internally; listing reverses
        self._chats: OrderedDict[str, ChatSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._chats)

    def __contains__(self, chat_id: str) -> bool:
        return chat_id in self._chats

    def get(self, chat_id: str) -> ChatSession | None:
        return self._chats.get(chat_id)

    def list(self) -> list[ChatSession]:
        return list(reversed(self._chats.values()))

    def save(self, history: tuple[ConversationTurn, ...], chat_id: str | None = None) -> ChatSession:
        """Create or replace a session, then evict the oldest beyond the cap."""
        existing = self._chats.pop(chat_id, None) if chat_id else None

        if existing is not None:
            session = replace(existing, history=tuple(history), updated_at=_utcnow())
        else:
            first_text = next((turn.content for turn in history), "New chat")
            session = ChatSession(
                chat_id=chat_id or uuid.uuid4().hex,
                title=make_title(first_text),
                history=tuple(history),
            )

        self._chats[session.chat_id] = session
        while len(self._chats) > self.max_chats:
            self._chats.popitem(last=False)
        return session

    def delete(self, chat_id: str) -> bool:
        return self._chats.pop(chat_id, None) is not None

    def clear(self) -> None:
        self._chats.clear()

"""
Data types shared across the query pipeline.

Everything here is an immutable value object. Conversation history is a
tuple of ConversationTurn; the pipeline hands back a new tuple instead of
touching the caller's sequence.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from instantsolve.errors import ErrorKind
from instantsolve.modes import Mode


class Role(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ConversationTurn:
    """One message in a chat session."""

    role: Role
    content: str
    mode: Mode | None = None
    image_ref: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)
    model: str | None = None  # Model that produced an assistant turn

    def to_message(self) -> dict[str, str]:
        """Render as a chat-completions message."""
        return {"role": self.role.value, "content": self.content}

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "mode": self.mode.value if self.mode else None,
            "image_ref": self.image_ref,
            "timestamp": self.timestamp.isoformat(),
            "model": self.model,
        }


@dataclass(frozen=True)
class Query:
    """Input for one pipeline invocation."""

    text: str
    image_ref: str | None = None
    explicit_mode: Mode | None = None


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of scoring a query against the mode catalog."""

    mode: Mode
    confidence: float  # 0.0 to 1.0
    matched_signals: frozenset[str] = frozenset()
    runner_up_modes: frozenset[Mode] = frozenset()
    scores: dict[Mode, int] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def explicit(cls, mode: Mode) -> "ClassificationResult":
        """Result used when the caller picked the mode."""
        return cls(mode=mode, confidence=1.0)


@dataclass(frozen=True)
class TokenUsage:
    """Token accounting reported by the provider."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class RawModelResponse:
    """Validated completion payload from one backend call."""

    model_id: str
    content: str
    usage: TokenUsage


@dataclass(frozen=True)
class AdapterResponse:
    """Formatted answer from a mode adapter."""

    text: str
    model_id: str
    mode: Mode
    tier: str  # "primary" or "backup"
    usage: TokenUsage
    elapsed_ms: float
    turn: ConversationTurn


@dataclass(frozen=True)
class PipelineResult:
    """Terminal output of one dispatcher invocation."""

    success: bool
    used_mode: Mode
    classification: ClassificationResult
    normalized_text: str | None = None
    used_model: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    usage: TokenUsage | None = None
    elapsed_ms: float = 0.0
    history: tuple[ConversationTurn, ...] = ()
    # Mode originally selected when the quick-answer fallback produced the answer
    fallback_from: Mode | None = None

    def as_answer(self) -> dict[str, Any]:
        """Shape consumed by the UI layer: success, data|error, mode, model."""
        answer: dict[str, Any] = {
            "success": self.success,
            "mode": self.used_mode.value,
            "model": self.used_model,
        }
        if self.success:
            answer["data"] = self.normalized_text
        else:
            answer["error"] = self.error
        return answer

"""
Conversation history windowing.

Chooses which prior turns of a session are sent upstream for the active
mode: every user turn, plus assistant turns produced under the same mode.
System/notification turns are never sent.
"""

from collections.abc import Iterable

from instantsolve.modes import Mode
from instantsolve.types import ConversationTurn, Role


def is_relevant(turn: ConversationTurn, active_mode: Mode) -> bool:
    """Whether a single turn belongs in the upstream window."""
    if turn.role == Role.SYSTEM:
        return False
    return turn.mode == active_mode or turn.role == Role.USER


def window_history(history: Iterable[ConversationTurn], active_mode: Mode) -> tuple[ConversationTurn, ...]:
    """
    Filter a session's turns for the active mode.

    Order is preserved and nothing is deduplicated. The input is not modified.
    """
    return tuple(turn for turn in history if is_relevant(turn, active_mode))


def append_turns(history: Iterable[ConversationTurn], *turns: ConversationTurn) -> tuple[ConversationTurn, ...]:
    """Copy-on-write append: returns a new tuple, leaves the input untouched."""
    return (*history, *turns)

"""
Per-mode response formatters.

Usage:
    from instantsolve.normalizers import format_response
    text = format_response(Mode.LOGICAL_MATH, raw_text)
"""

from instantsolve.modes import Mode
from instantsolve.normalizers.markup import (
    CREATIVE_RULES,
    DETAILED_RULES,
    IMAGE_RULES,
    LOGICAL_MATH_RULES,
    QUICK_ANSWER_RULES,
    Rule,
    compose,
)

FORMAT_RULES: dict[Mode, tuple[Rule, ...]] = {
    Mode.QUICK_ANSWER: QUICK_ANSWER_RULES,
    Mode.LOGICAL_MATH: LOGICAL_MATH_RULES,
    Mode.DETAILED: DETAILED_RULES,
    Mode.IMAGE: IMAGE_RULES,
    Mode.CREATIVE: CREATIVE_RULES,
}

_FORMATTERS = {mode: compose(rules) for mode, rules in FORMAT_RULES.items()}


def get_formatter(mode: Mode) -> Rule:
    """Composed formatter for a mode."""
    return _FORMATTERS[Mode(mode)]


def format_response(mode: Mode, text: str) -> str:
    """Normalize raw backend text with the mode's rule table."""
    return get_formatter(mode)(text)


__all__ = ["FORMAT_RULES", "format_response", "get_formatter"]

"""
Mode catalog.

The five response modes, their descriptions and keyword signatures.
Catalog order matters: the classifier breaks ties in this order.
"""

from enum import Enum


class Mode(str, Enum):
    """Response style governing prompt, parameters and backend pair."""

    QUICK_ANSWER = "quick_answer"
    LOGICAL_MATH = "logical_math"
    DETAILED = "detailed"
    IMAGE = "image"
    CREATIVE = "creative"


DEFAULT_MODE = Mode.QUICK_ANSWER

# Definition order of the enum is the catalog order
CATALOG_ORDER: tuple[Mode, ...] = tuple(Mode)


MODE_DESCRIPTIONS = {
    Mode.QUICK_ANSWER: "Get quick, concise answers to simple questions",
    Mode.LOGICAL_MATH: "Solve mathematical problems and logical queries",
    Mode.DETAILED: "Get comprehensive explanations and detailed answers",
    Mode.IMAGE: "Analyze images and get visual insights",
    Mode.CREATIVE: "Generate creative content and ideas",
}


# Substrings matched anywhere in the lower-cased query
MODE_KEYWORDS: dict[Mode, tuple[str, ...]] = {
    Mode.QUICK_ANSWER: (
        "what is",
        "who is",
        "when",
        "where",
        "define",
        "brief",
        "quick",
        "short",
    ),
    Mode.LOGICAL_MATH: (
        "calculate",
        "solve",
        "compute",
        "math",
        "equation",
        "proof",
        "logic",
        "algorithm",
    ),
    Mode.DETAILED: (
        "explain",
        "describe",
        "elaborate",
        "analyze",
        "compare",
        "contrast",
        "detail",
    ),
    # Image mode is only ever chosen explicitly or by attaching an image
    Mode.IMAGE: (),
    Mode.CREATIVE: (
        "create",
        "write",
        "imagine",
        "story",
        "creative",
        "design",
        "generate",
    ),
}


def parse_mode(value: "str | Mode") -> Mode:
    """Convert a mode name to a Mode, raising ValueError for unknown names."""
    if isinstance(value, Mode):
        return value
    try:
        return Mode(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(m.value for m in Mode)
        raise ValueError(f"Unknown mode '{value}'. Valid modes: {valid}") from None

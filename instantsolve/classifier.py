"""
Query Classifier for InstantSolve.

Scores free text against the mode catalog to pick a response mode when the
caller did not choose one:
- +1 per keyword substring of a mode found in the query
- +2 to LOGICAL_MATH when the query contains mathematical tokens
- +1 to QUICK_ANSWER for short queries, +1 to DETAILED for long ones

Pure and deterministic: no I/O, no state.
"""

import re

from instantsolve.errors import ClassificationError
from instantsolve.modes import CATALOG_ORDER, DEFAULT_MODE, MODE_KEYWORDS, Mode
from instantsolve.types import ClassificationResult

SHORT_QUERY_WORDS = 6
LONG_QUERY_WORDS = 15
MATH_BONUS = 2

# Patterns that indicate a mathematical query
MATH_PATTERNS = [
    # Digits joined by operators: 2+2, 3 * 4, x^2 = 9
    (re.compile(
        r"\d\s*[-+*/^=×÷]\s*(?:\d|\(|[a-z](?![a-z]))|(?<![a-z])[a-z)]\s*[-+*/^=×÷]\s*\d"
    ), "arithmetic expression"),
    # Named functions
    (re.compile(r"\b(?:sin|cos|tan|log|ln|sqrt)\b"), "math function"),
    # Mathematical symbols
    (re.compile(r"[∑∏∫∂√π∞≤≥≠±]"), "math symbol"),
    # Math vocabulary
    (re.compile(
        r"\b(?:integral|derivative|algebra|calculus|geometry|trigonometry|arithmetic|"
        r"percent(?:age)?|ratio|plus|minus|divided\s+by|multiplied\s+by|squared|cubed|"
        r"square\s+root|exponent|factorial|quadratic|polynomial|fraction)\b"
    ), "math vocabulary"),
]

QUESTION_WORDS = ("what", "who", "when", "where", "why", "how")
COMMAND_WORDS = ("calculate", "solve", "explain", "describe")


def contains_mathematical(text: str) -> bool:
    """Check whether text contains any mathematical token."""
    text_lower = text.lower()
    return any(pattern.search(text_lower) for pattern, _ in MATH_PATTERNS)


def _math_signals(text_lower: str) -> list[str]:
    return [f"math:{reason}" for pattern, reason in MATH_PATTERNS if pattern.search(text_lower)]


def classify(text: str) -> ClassificationResult:
    """
    Classify a query into one of the response modes.

    Args:
        text: The user's question/request

    Returns:
        ClassificationResult with mode, confidence, matched signals and runner-ups
    """
    if not isinstance(text, str):
        raise ClassificationError(f"Cannot classify {type(text).__name__}, expected str")

    text_lower = text.lower()
    word_count = len(text_lower.split())

    scores = {mode: 0 for mode in CATALOG_ORDER}
    signals: set[str] = set()

    for mode in CATALOG_ORDER:
        for keyword in MODE_KEYWORDS[mode]:
            if keyword in text_lower:
                scores[mode] += 1
                signals.add(f"keyword:{keyword}")

    math_signals = _math_signals(text_lower)
    if math_signals:
        scores[Mode.LOGICAL_MATH] += MATH_BONUS
        signals.update(math_signals)

    if word_count <= SHORT_QUERY_WORDS:
        scores[Mode.QUICK_ANSWER] += 1
        signals.add("length:short")
    elif word_count >= LONG_QUERY_WORDS:
        scores[Mode.DETAILED] += 1
        signals.add("length:long")

    # Strict comparison keeps the earliest mode in catalog order on ties
    selected = DEFAULT_MODE
    highest = scores[DEFAULT_MODE]
    for mode in CATALOG_ORDER:
        if scores[mode] > highest:
            selected = mode
            highest = scores[mode]

    total = sum(scores.values())
    confidence = highest / total if total > 0 else 0.5

    return ClassificationResult(
        mode=selected,
        confidence=confidence,
        matched_signals=frozenset(signals),
        runner_up_modes=frozenset(m for m, s in scores.items() if s > 0 and m != selected),
        scores=scores,
    )


def extract_features(text: str) -> list[str]:
    """Human-readable features of a query, shown next to the detected mode."""
    text_lower = text.lower().strip()
    features = [f"Word count: {len(text_lower.split())}"]

    if text_lower.startswith(QUESTION_WORDS):
        features.append("Question word detected")
    if contains_mathematical(text_lower):
        features.append("Mathematical expression detected")
    if text_lower.startswith(COMMAND_WORDS):
        features.append("Command detected")

    return features

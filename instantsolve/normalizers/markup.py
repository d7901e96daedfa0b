"""
Response markup normalization.

Converts whatever markup a backend returns into the canonical dialect the
renderer understands:

    {{bold}}text{{/bold}}     emphasis
    • item                    bullet
    1. item                   numbered line
    Step 1: ...               step header
    ### Title ###             section header (detailed mode)

Each rule is a pure ``str -> str`` function. A mode's formatter is an ordered
tuple of rules applied left to right until the text settles, so formatting
an already formatted answer returns it unchanged.
"""

import re
from collections.abc import Callable, Sequence

Rule = Callable[[str], str]

BOLD_OPEN = "{{bold}}"
BOLD_CLOSE = "{{/bold}}"

_ASTERISK_BOLD = re.compile(r"\*\*([^*\n](?:[^\n]*?[^*\n])?)\*\*")
_BRACE_MARKER = re.compile(r"(?<!\{)\{(/?)bold\}(?!\})")
_BOLD_MARKER = re.compile(r"\{\{(/?)bold\}\}")
_BOLD_SPAN = re.compile(r"\{\{bold\}\}(.*?)\{\{/bold\}\}", re.DOTALL)
_SPACE_AFTER_CLOSE = re.compile(r"\{\{/bold\}\}[ \t]*(?=\S)")

_BULLET = re.compile(r"^[ \t]*[•*-][ \t]*", re.MULTILINE)
_NUMBERED = re.compile(r"^[ \t]*(\d+)\.(?!\d)[ \t]*(?=\S)", re.MULTILINE)
_STEP_HEADER = re.compile(r"^[ \t]*(Step \d+):[ \t]*(?=\S)", re.MULTILINE)
_MARKDOWN_HEADER = re.compile(r"^[ \t]*#+[ \t]*([^#\s].*?)[ \t]*#*[ \t]*$", re.MULTILINE)
_QUOTE = re.compile(r"^[ \t]*>[ \t]*(?=\S)", re.MULTILINE)
_TRAILING_WS = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_RUNS = re.compile(r"\n{3,}")

_MATH_OPERATOR = re.compile(r"[ \t]*([-+*/=<>≤≥]+)[ \t]*")
_INNER_SPACES = re.compile(r"(?<=\S)[ \t]{2,}")

ANSWER_PREFIXES = ("Answer:", "Result:", "Therefore:", "Thus:", "The solution is:", "In conclusion:")
_ANSWER_LINE = re.compile(
    r"^(?:\{\{bold\}\})?(?:" + "|".join(re.escape(p) for p in ANSWER_PREFIXES) + r")",
    re.IGNORECASE | re.MULTILINE,
)
_MATH_SECTION = re.compile(
    r"(?<=[^\n])\n(?=(?:Step \d+:|Given:|Solution:|"
    + "|".join(re.escape(p) for p in ANSWER_PREFIXES)
    + r"))",
    re.IGNORECASE,
)
_LIST_PREFIX = re.compile(r"^(?:• |\d+\. )")

IMAGE_LABELS = ("Objects", "People", "Text", "Colors", "Composition", "Analysis", "Summary")
CREATIVE_LABELS = ("Story", "Poem", "Idea", "Concept", "Theme", "Metaphor", "Perspective")


# =============================================================================
# Emphasis
# =============================================================================

def convert_bold_markers(text: str) -> str:
    """
    Rewrite ``**x**`` and ``{bold}`` / ``{/bold}`` as canonical markers.

    Asterisk pairs never span a line break. Single-brace markers are
    converted one by one and left for balance_bold_markers to pair.
    """
    text = _ASTERISK_BOLD.sub(lambda m: f"{BOLD_OPEN}{m.group(1)}{BOLD_CLOSE}", text)
    return _BRACE_MARKER.sub(lambda m: BOLD_CLOSE if m.group(1) else BOLD_OPEN, text)


def balance_bold_markers(text: str) -> str:
    """
    Collapse nested or duplicate markers into flat, balanced spans.

    An open marker inside an open span and a close marker outside any span
    are dropped; an open marker that is never closed is dropped too.
    """
    pieces: list[str] = []
    depth = 0
    open_index = -1
    position = 0

    for match in _BOLD_MARKER.finditer(text):
        pieces.append(text[position:match.start()])
        position = match.end()
        is_close = match.group(1) == "/"

        if not is_close:
            depth += 1
            if depth == 1:
                open_index = len(pieces)
                pieces.append(BOLD_OPEN)
        elif depth > 0:
            depth -= 1
            if depth == 0:
                pieces.append(BOLD_CLOSE)

    pieces.append(text[position:])
    if depth > 0:
        pieces[open_index] = ""

    return "".join(pieces)


def trim_bold_spans(text: str) -> str:
    """Trim whitespace inside bold spans and drop spans left empty."""

    def _trim(match: re.Match) -> str:
        content = match.group(1).strip()
        return f"{BOLD_OPEN}{content}{BOLD_CLOSE}" if content else ""

    return _BOLD_SPAN.sub(_trim, text)


def space_after_bold(text: str) -> str:
    """Exactly one space after a closing marker unless it ends the line."""
    return _SPACE_AFTER_CLOSE.sub(f"{BOLD_CLOSE} ", text)


def normalize_bold(text: str) -> str:
    """Full emphasis normalization."""
    text = convert_bold_markers(text)
    text = balance_bold_markers(text)
    text = trim_bold_spans(text)
    return space_after_bold(text)


# =============================================================================
# Line structure
# =============================================================================

def strip_trailing_whitespace(text: str) -> str:
    return _TRAILING_WS.sub("", text)


def normalize_bullets(text: str) -> str:
    """Lines starting with •, * or - become ``• item``."""
    return _BULLET.sub("• ", text)


def normalize_numbering(text: str) -> str:
    """``1.item`` / ``1.   item`` become ``1. item``."""
    return _NUMBERED.sub(r"\1. ", text)


def normalize_step_headers(text: str) -> str:
    """``Step 2:do`` becomes ``Step 2: do``."""
    return _STEP_HEADER.sub(r"\1: ", text)


def collapse_blank_lines(text: str) -> str:
    """Runs of three or more newlines become one blank line."""
    return _BLANK_RUNS.sub("\n\n", text)


def convert_markdown_headers(text: str) -> str:
    """``## Title`` becomes ``### Title ###``."""
    return _MARKDOWN_HEADER.sub(lambda m: f"### {m.group(1)} ###", text)


def normalize_quotes(text: str) -> str:
    """``>quote`` becomes ``> quote``."""
    return _QUOTE.sub("> ", text)


def bold_labels(labels: Sequence[str]) -> Rule:
    """Build a rule that bolds fixed ``Label:`` prefixes at line start."""
    pattern = re.compile(r"^[ \t]*(" + "|".join(re.escape(label) for label in labels) + r"):[ \t]*", re.MULTILINE)

    def _rule(text: str) -> str:
        return pattern.sub(lambda m: f"{BOLD_OPEN}{m.group(1)}:{BOLD_CLOSE} ", text)

    _rule.__name__ = "bold_labels"
    return _rule


def strip_text(text: str) -> str:
    return text.strip()


# =============================================================================
# Math extras
# =============================================================================

def pad_math_operators(text: str) -> str:
    """
    Surround operators with single spaces.

    Only text outside bold spans is touched, so markers and span content
    stay as normalize_bold left them.
    """
    parts = _BOLD_MARKER.split(text)
    # split() with one group yields [text, group, text, group, ...]
    rebuilt: list[str] = []
    inside_bold = False
    for index, part in enumerate(parts):
        if index % 2 == 1:
            inside_bold = part != "/"
            rebuilt.append(BOLD_OPEN if inside_bold else BOLD_CLOSE)
        elif inside_bold:
            rebuilt.append(part)
        else:
            padded = _MATH_OPERATOR.sub(r" \1 ", part)
            rebuilt.append(_INNER_SPACES.sub(" ", padded))
    return "".join(rebuilt)


def separate_math_sections(text: str) -> str:
    """Put a blank line before step, given, solution and answer lines."""
    return _MATH_SECTION.sub("\n\n", text)


def ensure_answer_line(text: str) -> str:
    """Append ``Answer: <last line>`` unless an answer-style line exists."""
    if not text.strip() or _ANSWER_LINE.search(text):
        return text

    lines = [line for line in text.split("\n") if line.strip()]
    last_line = _LIST_PREFIX.sub("", lines[-1].strip())
    return f"{text.rstrip()}\n\nAnswer: {last_line}"


# =============================================================================
# Rule tables
# =============================================================================

MAX_PASSES = 5


def compose(rules: Sequence[Rule]) -> Rule:
    """
    Compose rules left to right into one formatter.

    The input is stripped first, then the chain is reapplied until the text
    stops changing (at most MAX_PASSES times). A later rule can leave text an
    earlier one would still rewrite, e.g. a copied answer line or a marker
    freed by balancing.
    """
    rules = tuple(rules)

    def _apply(text: str) -> str:
        for rule in rules:
            text = rule(text)
        return text

    def _format(text: str) -> str:
        text = text.strip() if text else ""
        for _ in range(MAX_PASSES):
            if not text:
                return ""
            formatted = _apply(text)
            if formatted == text:
                break
            text = formatted
        return text

    return _format


BASE_RULES: tuple[Rule, ...] = (
    normalize_bold,
    normalize_bullets,
    normalize_numbering,
    normalize_step_headers,
    strip_trailing_whitespace,
    collapse_blank_lines,
    strip_text,
)

QUICK_ANSWER_RULES = BASE_RULES

DETAILED_RULES: tuple[Rule, ...] = (
    normalize_bold,
    convert_markdown_headers,
    normalize_bullets,
    normalize_numbering,
    normalize_step_headers,
    strip_trailing_whitespace,
    collapse_blank_lines,
    strip_text,
)

IMAGE_RULES: tuple[Rule, ...] = (
    normalize_bold,
    bold_labels(IMAGE_LABELS),
    normalize_bullets,
    normalize_numbering,
    normalize_step_headers,
    strip_trailing_whitespace,
    collapse_blank_lines,
    strip_text,
)

CREATIVE_RULES: tuple[Rule, ...] = (
    normalize_bold,
    bold_labels(CREATIVE_LABELS),
    normalize_bullets,
    normalize_numbering,
    normalize_step_headers,
    normalize_quotes,
    strip_trailing_whitespace,
    collapse_blank_lines,
    strip_text,
)

LOGICAL_MATH_RULES: tuple[Rule, ...] = (
    normalize_bold,
    pad_math_operators,
    normalize_bullets,
    normalize_numbering,
    normalize_step_headers,
    strip_trailing_whitespace,
    separate_math_sections,
    collapse_blank_lines,
    strip_text,
    ensure_answer_line,
)

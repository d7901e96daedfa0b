# SPDX-License-Identifier: MIT
"""Tests for the mode classifier."""

import pytest

from instantsolve.classifier import classify, contains_mathematical, extract_features
from instantsolve.errors import ClassificationError
from instantsolve.modes import Mode


SAMPLE_QUERIES = [
    "calculate 2+2",
    "hello there my friend",
    "what is the capital of France",
    "explain in detail how photosynthesis converts sunlight into chemical energy inside the leaves of plants",
    "write a short story about a dragon",
    "",
    "   ",
    "solve x^2 = 9 and explain why",
]


class TestClassifyExamples:
    """Known queries route to the expected mode."""

    def test_calculate_routes_to_math(self):
        """Math bonus dominates for an arithmetic query."""
        result = classify("calculate 2+2")
        assert result.mode == Mode.LOGICAL_MATH
        assert "keyword:calculate" in result.matched_signals
        assert "math:arithmetic expression" in result.matched_signals
        assert result.scores[Mode.LOGICAL_MATH] == 3
        assert result.scores[Mode.QUICK_ANSWER] == 1
        assert result.confidence == pytest.approx(0.75)
        assert result.runner_up_modes == frozenset({Mode.QUICK_ANSWER})

    def test_short_query_without_keywords_is_quick_answer(self):
        """Length heuristic alone picks quick_answer."""
        result = classify("hello there my friend")
        assert result.mode == Mode.QUICK_ANSWER
        assert result.matched_signals == frozenset({"length:short"})
        assert result.confidence == pytest.approx(1.0)
        assert result.runner_up_modes == frozenset()

    def test_all_zero_scores_default_to_quick_answer(self):
        """A medium-length query with no signals gets the default and 0.5 confidence."""
        result = classify("the old lighthouse keeper sat alone by the sea tonight")
        assert result.mode == Mode.QUICK_ANSWER
        assert all(score == 0 for score in result.scores.values())
        assert result.confidence == 0.5

    def test_long_explanation_is_detailed(self):
        """Detailed keywords plus the long-query bonus pick detailed."""
        result = classify(SAMPLE_QUERIES[3])
        assert result.mode == Mode.DETAILED
        assert "length:long" in result.matched_signals
        assert "keyword:explain" in result.matched_signals

    def test_creative_request(self):
        result = classify("write a poem and imagine a story for me")
        assert result.mode == Mode.CREATIVE

    def test_single_keyword_beats_zero(self):
        result = classify("compare these two things for me please now")
        assert result.scores[Mode.DETAILED] == 1
        assert result.scores[Mode.QUICK_ANSWER] == 0
        assert result.mode == Mode.DETAILED

    def test_tie_resolves_to_catalog_order(self):
        """quick_answer and detailed tie at 2; quick_answer comes first."""
        result = classify("briefly explain in detail")
        assert result.scores[Mode.QUICK_ANSWER] == result.scores[Mode.DETAILED] == 2
        assert result.mode == Mode.QUICK_ANSWER
        assert result.confidence == pytest.approx(0.5)
        assert result.runner_up_modes == frozenset({Mode.DETAILED})

    def test_image_mode_never_classified(self):
        """Image mode is only chosen explicitly."""
        for text in SAMPLE_QUERIES:
            assert classify(text).mode != Mode.IMAGE


class TestClassifyProperties:
    """Invariants that hold for every input."""

    @pytest.mark.parametrize("text", SAMPLE_QUERIES)
    def test_deterministic(self, text):
        """Same input, same result."""
        assert classify(text) == classify(text)

    @pytest.mark.parametrize("text", SAMPLE_QUERIES)
    def test_confidence_in_range(self, text):
        result = classify(text)
        assert 0.0 <= result.confidence <= 1.0

    @pytest.mark.parametrize("text", SAMPLE_QUERIES)
    def test_winner_not_a_runner_up(self, text):
        result = classify(text)
        assert result.mode not in result.runner_up_modes
        assert all(result.scores[mode] > 0 for mode in result.runner_up_modes)

    def test_case_insensitive(self):
        assert classify("CALCULATE 2+2").mode == classify("calculate 2+2").mode

    def test_non_string_raises(self):
        """Programmer error surfaces as ClassificationError."""
        with pytest.raises(ClassificationError):
            classify(None)


class TestMathDetection:
    """Mathematical-token patterns."""

    @pytest.mark.parametrize("text", [
        "2+2",
        "3 * 4",
        "x^2 = 9",
        "what is sqrt of 16",
        "∫ x dx",
        "find the derivative",
        "10 divided by 5",
    ])
    def test_detects_math(self, text):
        assert contains_mathematical(text)

    @pytest.mark.parametrize("text", [
        "hello there",
        "tell me about covid-19",
        "the well-known author",
    ])
    def test_ignores_plain_text(self, text):
        assert not contains_mathematical(text)


class TestExtractFeatures:
    """Human-readable query features."""

    def test_question_and_math(self):
        features = extract_features("what is 2+2")
        assert "Word count: 3" in features
        assert "Question word detected" in features
        assert "Mathematical expression detected" in features

    def test_command(self):
        assert "Command detected" in extract_features("Explain gravity")

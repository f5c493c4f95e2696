"""
Tests for query text utilities

Tests tokenization, snippet windows and highlight offsets.
"""

from sayings.utils.text import ELLIPSIS, build_snippet, highlight_spans, normalize_whitespace, tokenize


class TestTokenize:
    """Test query tokenization"""

    def test_tokenize_lowercases_and_splits_on_punctuation(self):
        assert tokenize("Jazz & Blues, night") == ["jazz", "blues", "night"]

    def test_tokenize_removes_duplicates_keeping_order(self):
        assert tokenize("jazz blues JAZZ") == ["jazz", "blues"]

    def test_tokenize_drops_single_characters(self):
        assert tokenize("a b c") == []
        assert tokenize("I love it") == ["love", "it"]

    def test_tokenize_empty(self):
        assert tokenize("") == []
        assert tokenize(None) == []


class TestNormalizeWhitespace:
    def test_collapses_runs(self):
        assert normalize_whitespace("  one \n\t two  ") == "one two"

    def test_none(self):
        assert normalize_whitespace(None) == ""


class TestBuildSnippet:
    """Test snippet extraction around the first match"""

    def test_short_text_returned_whole(self):
        text = "The quick brown fox jumps"
        assert build_snippet(text, "fox") == text

    def test_long_text_window_around_match(self):
        """Test the window starts 60 chars before the match and spans 160 chars"""
        text = " ".join(["filler"] * 20) + " jazz " + " ".join(["tail"] * 40)
        snippet = build_snippet(text, "jazz")

        assert snippet.startswith(ELLIPSIS)
        assert snippet.endswith(ELLIPSIS)
        assert "jazz" in snippet
        assert len(snippet) == 160 + 2
        # Match sits 60 characters into the window
        assert snippet[1:].index("jazz") == 60

    def test_match_near_start_has_no_leading_ellipsis(self):
        text = "jazz " + "word " * 60
        snippet = build_snippet(text, "jazz")
        assert snippet.startswith("jazz")
        assert snippet.endswith(ELLIPSIS)

    def test_no_match_returns_leading_text(self):
        text = "word " * 60
        snippet = build_snippet(text, "missing")
        assert snippet == normalize_whitespace(text)[:160] + ELLIPSIS

    def test_match_is_case_insensitive(self):
        text = "x " * 100 + "JAZZ night"
        assert "JAZZ" in build_snippet(text, "jazz")

    def test_empty_text(self):
        assert build_snippet(None, "jazz") == ""
        assert build_snippet("", "jazz") == ""


class TestHighlightSpans:
    """Test highlight offsets"""

    def test_spans_for_every_occurrence(self):
        assert highlight_spans("Jazz and jazz", "jazz") == [(0, 4), (9, 13)]

    def test_spans_for_multiple_tokens(self):
        text = "late night jazz"
        spans = highlight_spans(text, "jazz night")
        assert [text[start:end] for start, end in spans] == ["night", "jazz"]

    def test_spans_align_with_snippet(self):
        text = " ".join(["filler"] * 20) + " Jazz " + " ".join(["tail"] * 40)
        snippet = build_snippet(text, "jazz")
        spans = highlight_spans(snippet, "jazz")
        assert len(spans) == 1
        start, end = spans[0]
        assert snippet[start:end] == "Jazz"

    def test_no_tokens_no_spans(self):
        assert highlight_spans("some text", "a") == []
        assert highlight_spans("", "jazz") == []


class TestTokenizeStability:
    def test_retokenizing_tokens_is_stable(self):
        for raw in ["Jazz & Blues, JAZZ!", "  x  ", "Émile's café-au-lait 42", "a1 b2 c3 a1"]:
            tokens = tokenize(raw)
            assert tokenize(" ".join(tokens)) == tokens

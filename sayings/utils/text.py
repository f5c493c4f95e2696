"""
Query Text Utilities

Tokenization, snippet extraction and highlight offsets for search results.

All three functions share one token pattern so that highlight spans computed
for a snippet always line up with the tokens the snippet was centred on.
"""

import re

TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")
WHITESPACE_RE = re.compile(r"\s+")
ELLIPSIS = "…"


def tokenize(query: str | None) -> list[str]:
    """
    Split a query into ordered, de-duplicated lowercase tokens.

    Tokens are runs of ASCII letters and digits; single-character tokens are
    dropped.

    Examples:
        "Jazz & Blues, jazz" -> ["jazz", "blues"]
        "a b" -> []
    """
    if not query:
        return []
    parts = TOKEN_SPLIT_RE.split(str(query).lower())
    return list(dict.fromkeys(p for p in parts if len(p) > 1))


def token_pattern(query: str | None) -> re.Pattern | None:
    """Compile a case-insensitive alternation of the query tokens, or None."""
    tokens = tokenize(query)
    if not tokens:
        return None
    return re.compile("|".join(re.escape(t) for t in tokens), re.IGNORECASE | re.ASCII)


def normalize_whitespace(text: str | None) -> str:
    if not text:
        return ""
    return WHITESPACE_RE.sub(" ", str(text)).strip()


def build_snippet(text: str | None, query: str | None, max_len: int = 160) -> str:
    """
    Extract an excerpt of ``text`` around the first query token.

    The window starts 60 characters before the match and ends 100 characters
    after it (for the default ``max_len``). An ellipsis marks each truncated
    side. Without a match the leading ``max_len`` characters are returned.

    Args:
        text: Document text (may be None)
        query: Raw search query
        max_len: Window length

    Returns:
        The snippet, or an empty string for empty text
    """
    normalized = normalize_whitespace(text)
    if not normalized:
        return ""

    pattern = token_pattern(query)
    match = pattern.search(normalized) if pattern else None
    if match is None:
        if len(normalized) > max_len:
            return f"{normalized[:max_len]}{ELLIPSIS}"
        return normalized

    before = max_len * 3 // 8
    idx = match.start()
    start = max(0, idx - before)
    end = min(len(normalized), idx + (max_len - before))

    prefix = ELLIPSIS if start > 0 else ""
    suffix = ELLIPSIS if end < len(normalized) else ""
    return f"{prefix}{normalized[start:end]}{suffix}"


def highlight_spans(text: str | None, query: str | None) -> list[tuple[int, int]]:
    """
    Return ``(start, end)`` offsets of every query token occurrence in ``text``.

    Offsets index into ``text`` exactly as given, so clients can wrap the
    ranges in markup without re-tokenizing.
    """
    if not text:
        return []
    pattern = token_pattern(query)
    if pattern is None:
        return []
    return [m.span() for m in pattern.finditer(text)]

"""
Pagination Utilities

Opaque keyset cursors for search result pagination.

A cursor is URL-safe base64 of a JSON object. Relevance-sorted pages carry
``{"lastScore", "lastId"}``; recency-sorted pages carry
``{"lastCreatedAt", "lastId"}``. Clients treat the token as a black box.
"""

import base64
import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Union

logger = logging.getLogger(__name__)

# Ids are compared against BIGINT-sized columns
MAX_CURSOR_ID = 2**63 - 1


@dataclass(frozen=True)
class RelevanceCursor:
    """Position after the last item of a relevance-sorted page"""

    last_score: float
    last_id: int


@dataclass(frozen=True)
class RecencyCursor:
    """Position after the last item of a recency-sorted page"""

    last_created_at: datetime
    last_id: int


PageCursor = Union[RelevanceCursor, RecencyCursor]


def encode_cursor(obj: Any) -> str:
    """
    Encode a JSON-serializable object as an opaque cursor token.

    Args:
        obj: Cursor payload

    Returns:
        URL-safe base64 string without padding
    """
    json_str = json.dumps(obj, separators=(",", ":"))
    return base64.urlsafe_b64encode(json_str.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str | None) -> Any | None:
    """
    Decode a cursor token produced by :func:`encode_cursor`.

    Returns None for a missing or malformed token instead of raising, so the
    caller restarts pagination from the first page.
    """
    if not cursor:
        return None
    try:
        token = str(cursor).replace("+", "-").replace("/", "_")
        padded = token + "=" * (-len(token) % 4)
        json_str = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
        return json.loads(json_str)
    except (TypeError, ValueError) as e:
        logger.debug(f"Ignoring invalid cursor: {e}")
        return None


def encode_page_cursor(cursor: PageCursor) -> str:
    """Encode a typed page cursor in its wire shape."""
    if isinstance(cursor, RelevanceCursor):
        return encode_cursor({"lastScore": cursor.last_score, "lastId": cursor.last_id})
    return encode_cursor({"lastCreatedAt": cursor.last_created_at.isoformat(), "lastId": cursor.last_id})


def parse_page_cursor(token: str | None) -> PageCursor | None:
    """
    Decode a token into a typed page cursor.

    A payload that decodes but does not have one of the two known shapes, or
    whose values the database could not compare (ids outside the signed
    64-bit range, non-finite scores), is treated the same as garbage: None.
    """
    data = decode_cursor(token)
    if not isinstance(data, dict):
        return None

    last_id = data.get("lastId")
    if isinstance(last_id, bool) or not isinstance(last_id, int):
        return None
    if not -MAX_CURSOR_ID - 1 <= last_id <= MAX_CURSOR_ID:
        return None

    score = data.get("lastScore")
    if score is not None:
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            return None
        try:
            score = float(score)
        except OverflowError:
            return None
        if not math.isfinite(score):
            return None
        return RelevanceCursor(last_score=score, last_id=last_id)

    created_at = data.get("lastCreatedAt")
    if isinstance(created_at, str):
        try:
            last_created_at = datetime.fromisoformat(created_at)
        except ValueError:
            return None
        if last_created_at.tzinfo is not None:
            last_created_at = last_created_at.astimezone(timezone.utc).replace(tzinfo=None)
        return RecencyCursor(last_created_at=last_created_at, last_id=last_id)

    return None


def clamp_limit(limit: int | None, default: int, maximum: int) -> int:
    """Clamp a requested page size to ``[1, maximum]``, using ``default`` when unset."""
    if limit is None:
        return default
    return min(max(int(limit), 1), maximum)

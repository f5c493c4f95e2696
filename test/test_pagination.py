"""
Tests for pagination utilities

Tests cursor encoding/decoding and page size clamping.
"""

import base64
import json
from datetime import datetime

from sayings.utils.pagination import (
    RecencyCursor,
    RelevanceCursor,
    clamp_limit,
    decode_cursor,
    encode_cursor,
    encode_page_cursor,
    parse_page_cursor,
)


class TestCursorEncoding:
    """Test the opaque token format"""

    def test_encoded_cursor_is_url_safe_without_padding(self):
        token = encode_cursor({"lastScore": 1.5, "lastId": 42, "pad": "??>>"})
        assert "=" not in token
        assert "+" not in token
        assert "/" not in token

    def test_decode_accepts_standard_base64_alphabet(self):
        payload = {"lastId": 7, "note": "??>>"}
        standard = base64.b64encode(json.dumps(payload).encode()).decode()
        assert decode_cursor(standard) == payload

    def test_decode_garbage_returns_none(self):
        assert decode_cursor("not-a-cursor!!") is None
        assert decode_cursor("") is None
        assert decode_cursor(None) is None

    def test_decode_non_json_returns_none(self):
        token = base64.urlsafe_b64encode(b"\xff\xfe").decode()
        assert decode_cursor(token) is None


class TestPageCursor:
    """Test typed page cursors"""

    def test_relevance_cursor_wire_shape(self):
        token = encode_page_cursor(RelevanceCursor(last_score=3.25, last_id=10))
        assert decode_cursor(token) == {"lastScore": 3.25, "lastId": 10}
        assert parse_page_cursor(token) == RelevanceCursor(last_score=3.25, last_id=10)

    def test_recency_cursor_wire_shape(self):
        created = datetime(2024, 5, 1, 12, 30, 15, 123456)
        token = encode_page_cursor(RecencyCursor(last_created_at=created, last_id=3))
        assert decode_cursor(token) == {"lastCreatedAt": "2024-05-01T12:30:15.123456", "lastId": 3}
        assert parse_page_cursor(token) == RecencyCursor(last_created_at=created, last_id=3)

    def test_unknown_shape_is_none(self):
        assert parse_page_cursor(encode_cursor({"lastId": 3})) is None
        assert parse_page_cursor(encode_cursor({"lastScore": 1.0})) is None
        assert parse_page_cursor(encode_cursor([1, 2])) is None

    def test_wrong_types_are_none(self):
        assert parse_page_cursor(encode_cursor({"lastScore": "high", "lastId": 3})) is None
        assert parse_page_cursor(encode_cursor({"lastScore": 1.0, "lastId": True})) is None
        assert parse_page_cursor(encode_cursor({"lastCreatedAt": "yesterday", "lastId": 3})) is None

    def test_integer_score_accepted(self):
        assert parse_page_cursor(encode_cursor({"lastScore": 2, "lastId": 1})) == RelevanceCursor(2.0, 1)

    def test_out_of_range_id_is_none(self):
        assert parse_page_cursor(encode_cursor({"lastScore": 1.0, "lastId": 10**30})) is None
        assert parse_page_cursor(encode_cursor({"lastCreatedAt": "2024-05-01T00:00:00", "lastId": -(2**63) - 1})) is None
        assert parse_page_cursor(encode_cursor({"lastScore": 1.0, "lastId": 2**63 - 1})) == RelevanceCursor(1.0, 2**63 - 1)

    def test_non_finite_score_is_none(self):
        assert parse_page_cursor(encode_cursor({"lastScore": float("nan"), "lastId": 1})) is None
        assert parse_page_cursor(encode_cursor({"lastScore": float("inf"), "lastId": 1})) is None
        assert parse_page_cursor(encode_cursor({"lastScore": 10**400, "lastId": 1})) is None

    def test_aware_created_at_becomes_naive_utc(self):
        cursor = parse_page_cursor(encode_cursor({"lastCreatedAt": "2024-05-01T14:00:00+02:00", "lastId": 3}))
        assert cursor == RecencyCursor(last_created_at=datetime(2024, 5, 1, 12, 0, 0), last_id=3)


class TestClampLimit:
    def test_default_when_unset(self):
        assert clamp_limit(None, 20, 50) == 20

    def test_clamps_to_range(self):
        assert clamp_limit(0, 20, 50) == 1
        assert clamp_limit(-5, 20, 50) == 1
        assert clamp_limit(500, 20, 50) == 50
        assert clamp_limit(7, 20, 50) == 7

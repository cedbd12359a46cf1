"""Tests for tier limits, validators, time helpers and rate limiting."""

import base64
from datetime import date, time, timezone

import pytest

from app.core import tiers
from app.core.rate_limit import FixedWindowRateLimiter, limiter
from app.core.timeutils import combine_local, from_unix, parse_datetime
from app.core.validators import clamp_limit, decode_data_url, validate_file_name, validate_upload_type


class TestTiers:

    @pytest.mark.parametrize("used, limit, expected", [
        (0, 1, True),
        (1, 1, False),
        (0, 0, False),
        (10_000, tiers.UNLIMITED, True),
    ])
    def test_within_limit(self, used, limit, expected):
        assert tiers.within_limit(used, limit) is expected

    def test_price_lookup(self):
        assert tiers.tier_for_price_id("price_professional") == tiers.PROFESSIONAL
        assert tiers.tier_for_price_id("price_unknown") is None
        assert tiers.tier_for_price_id(None) is None

    def test_unknown_tier_gets_freemium_limits(self):
        assert tiers.get_tier_limits("platinum") == tiers.TIER_LIMITS[tiers.FREEMIUM]


class TestValidators:

    def test_decode_data_url(self):
        encoded = base64.b64encode(b"png-bytes").decode()
        assert decode_data_url(f"data:image/png;base64,{encoded}") == ("image/png", b"png-bytes")
        assert decode_data_url(encoded, default_mime="image/webp") == ("image/webp", b"png-bytes")

    def test_decode_rejects_garbage(self):
        with pytest.raises(ValueError):
            decode_data_url("data:image/png;base64,***")

    @pytest.mark.parametrize("raw, expected", [
        (None, 50),
        ("10", 10),
        ("1000", 100),
        ("0", 50),
        ("abc", 50),
    ])
    def test_clamp_limit(self, raw, expected):
        assert clamp_limit(raw, default=50, maximum=100) == expected

    def test_upload_type_rules(self):
        assert validate_upload_type("clip.MOV", "video/quicktime") == (True, "")
        assert validate_upload_type("notes.txt", "text/plain")[0] is False
        assert validate_upload_type("photo.png", "image/jpeg")[0] is False
        assert validate_file_name("a/b.png")[0] is False


class TestTimeHelpers:

    def test_combine_local_defaults_to_noon(self):
        assert combine_local(date(2026, 3, 1), None) == "2026-03-01T12:00:00"
        assert combine_local(date(2026, 3, 1), time(8, 5, 9, 123)) == "2026-03-01T08:05:09"

    def test_parse_datetime_assumes_utc(self):
        assert parse_datetime("2026-03-01T08:00:00").tzinfo == timezone.utc
        with pytest.raises(ValueError):
            parse_datetime("next tuesday")

    def test_from_unix(self):
        assert from_unix(None) is None
        assert from_unix(0).year == 1970


class TestRateLimiter:

    async def test_window_allows_limit_then_blocks(self):
        window = FixedWindowRateLimiter(limit=2, window_seconds=60)
        assert await window.hit("1.2.3.4", now=100.0) == (True, 60)
        assert (await window.hit("1.2.3.4", now=101.0))[0] is True
        allowed, retry_after = await window.hit("1.2.3.4", now=102.0)
        assert allowed is False
        assert retry_after > 0
        assert (await window.hit("5.6.7.8", now=102.0))[0] is True

    async def test_window_resets(self):
        window = FixedWindowRateLimiter(limit=1, window_seconds=10)
        await window.hit("k", now=0.0)
        assert (await window.hit("k", now=11.0))[0] is True

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(limit=0, window_seconds=60)

    async def test_api_answers_429_when_exhausted(self, client, monkeypatch):
        monkeypatch.setattr(limiter, "limit", 1)

        first = await client.get("/api/portal/validate")
        second = await client.get("/api/portal/validate")
        health = await client.get("/health")

        assert first.status_code == 400
        assert second.status_code == 429
        assert second.json()["errorKind"] == "rate_limited"
        assert "Retry-After" in second.headers
        assert health.status_code == 200

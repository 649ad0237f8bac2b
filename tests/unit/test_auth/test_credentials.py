"""Tests for CredentialRecord serialization and staleness."""

from datetime import datetime, timedelta, timezone

import pytest

from src.auth.credentials import CredentialRecord
from src.auth.exceptions import StoreCorrupt


NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class TestStaleness:
    """Tests for is_stale."""

    def test_future_expiry_is_fresh(self):
        record = CredentialRecord("a", "tok", expiry=NOW + timedelta(seconds=1))
        assert record.is_stale(NOW) is False

    def test_expiry_equal_to_now_is_stale(self):
        record = CredentialRecord("a", "tok", expiry=NOW)
        assert record.is_stale(NOW) is True

    def test_missing_expiry_is_never_stale(self):
        record = CredentialRecord("a", "tok", expiry=None)
        assert record.is_stale(NOW + timedelta(days=365)) is False

    def test_margin_moves_staleness_earlier(self):
        record = CredentialRecord("a", "tok", expiry=NOW + timedelta(seconds=30))
        assert record.is_stale(NOW, margin=timedelta(seconds=60)) is True


class TestSerialization:
    """Tests for to_dict / from_dict."""

    def test_round_trip_preserves_fields(self):
        record = CredentialRecord(
            account_id="default",
            access_token="access",
            refresh_token="refresh",
            expiry=NOW,
            scopes=frozenset({"b", "a"}),
            updated_at=NOW,
        )

        data = record.to_dict()
        assert data["scope"] == "a b"
        assert data["expiry"] == "2026-01-15T12:00:00+00:00"

        restored = CredentialRecord.from_dict("default", data)
        assert restored == record
        assert restored.updated_at == NOW

    def test_updated_at_not_part_of_equality(self):
        first = CredentialRecord("a", "tok", updated_at=NOW)
        second = CredentialRecord("a", "tok", updated_at=NOW + timedelta(hours=1))
        assert first == second

    def test_legacy_expiry_date_in_milliseconds(self):
        data = {
            "access_token": "tok",
            "refresh_token": "r",
            "expiry_date": int(NOW.timestamp() * 1000),
            "scope": "https://www.googleapis.com/auth/calendar",
        }

        record = CredentialRecord.from_dict("default", data)

        assert record.expiry == NOW
        assert record.scopes == frozenset({"https://www.googleapis.com/auth/calendar"})
        assert record.token_type == "Bearer"

    def test_naive_expiry_taken_as_utc(self):
        record = CredentialRecord.from_dict("a", {"access_token": "t", "expiry": "2026-01-15T12:00:00"})
        assert record.expiry == NOW

    def test_empty_refresh_token_is_none(self):
        record = CredentialRecord.from_dict("a", {"access_token": "t", "refresh_token": ""})
        assert record.refresh_token is None

    @pytest.mark.parametrize(
        "data",
        [
            "not an object",
            ["list"],
            {},
            {"access_token": ""},
            {"access_token": "t", "expiry": "yesterday-ish"},
        ],
    )
    def test_corrupt_blobs_rejected(self, data):
        with pytest.raises(StoreCorrupt):
            CredentialRecord.from_dict("a", data)

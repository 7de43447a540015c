from datetime import datetime, timedelta, timezone

from linkt.expiry import TTL, expires_at, is_expired, isoformat, parse_timestamp

CREATED = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_ttl_is_24_hours():
    assert TTL.total_seconds() * 1000 == 86_400_000


def test_live_just_before_ttl():
    assert not is_expired(CREATED, CREATED + TTL - timedelta(milliseconds=1))


def test_exactly_ttl_is_still_live():
    assert not is_expired(CREATED, CREATED + TTL)


def test_expired_just_after_ttl():
    assert is_expired(CREATED, CREATED + TTL + timedelta(milliseconds=1))


def test_expires_at():
    assert expires_at(CREATED) == datetime(2025, 3, 2, 12, 0, tzinfo=timezone.utc)


def test_isoformat_uses_z_suffix_and_milliseconds():
    assert isoformat(CREATED) == "2025-03-01T12:00:00.000Z"


def test_parse_timestamp_round_trips_isoformat():
    assert parse_timestamp("2025-03-01T12:00:00.000Z") == CREATED


def test_parse_timestamp_treats_naive_as_utc():
    assert parse_timestamp("2025-03-01T12:00:00") == CREATED

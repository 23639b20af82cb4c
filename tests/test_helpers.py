from zoneinfo import available_timezones

import pytest
from werkzeug.exceptions import BadRequest

from inkling.blog import (
    DRAFT,
    PUBLISHED,
    _rfc2822,
    app,
    format_article_dates,
    format_timestamp,
    optional_id,
    tz_name,
)


@pytest.mark.parametrize("iso,shown", [
    ("2024-03-01T12:00:00+00:00", "2024-03-01 12:00:00"),
    ("2024-03-01T12:00:00",       "2024-03-01 12:00:00"),   # naive → UTC
    ("2024-03-01T12:00:00.000Z",  "2024-03-01 12:00:00"),   # legacy JS stamps
    ("2024-03-01T14:30:05+02:00", "2024-03-01 12:30:05"),
])
def test_format_timestamp(iso, shown):
    assert format_timestamp(iso) == shown


@pytest.mark.parametrize("empty", [None, ""])
def test_format_timestamp_keeps_absence(empty):
    assert format_timestamp(empty) is None


def test_format_timestamp_leaves_garbage_alone():
    assert format_timestamp("last tuesday") == "last tuesday"


@pytest.mark.skipif(
    "Europe/Berlin" not in available_timezones(), reason="no tz database"
)
def test_format_timestamp_uses_blog_timezone(monkeypatch):
    monkeypatch.setitem(app.config, "TIMEZONE", "Europe/Berlin")
    assert tz_name() == "Europe/Berlin"
    assert format_timestamp("2024-03-01T12:00:00+00:00") == "2024-03-01 13:00:00"


def test_unknown_timezone_falls_back_to_utc(monkeypatch):
    monkeypatch.setitem(app.config, "TIMEZONE", "Mars/Olympus_Mons")
    assert tz_name() == "UTC"


def _row(status):
    return {
        "article_id": 1,
        "article_status": status,
        "article_creation_datetime": "2024-03-01T10:00:00+00:00",
        "article_modification_datetime": "2024-03-01T11:00:00+00:00",
        "article_publication_datetime": "2024-03-01T12:00:00+00:00",
    }


def test_format_article_dates_published():
    out = format_article_dates(_row(PUBLISHED))
    assert out["article_creation_datetime"] == "2024-03-01 10:00:00"
    assert out["article_modification_datetime"] == "2024-03-01 11:00:00"
    assert out["article_publication_datetime"] == "2024-03-01 12:00:00"


def test_format_article_dates_hides_publication_of_drafts():
    row = _row(DRAFT)
    out = format_article_dates(row)
    assert out["article_publication_datetime"] is None
    # the input is left untouched
    assert row["article_creation_datetime"] == "2024-03-01T10:00:00+00:00"


@pytest.mark.parametrize("raw,expected", [
    (None, None), ("", None), ("  ", None), ("7", 7), (" 12 ", 12),
])
def test_optional_id(raw, expected):
    assert optional_id(raw) == expected


def test_optional_id_rejects_words():
    with pytest.raises(BadRequest):
        optional_id("seven")


@pytest.mark.parametrize("raw", ["0", "-3", "99999999999999999999"])
def test_optional_id_rejects_out_of_range(raw):
    with pytest.raises(BadRequest):
        optional_id(raw)


def test_rfc2822():
    assert _rfc2822("2025-06-24T09:22:20+00:00") == "Tue, 24 Jun 2025 09:22:20 +0000"
    assert _rfc2822(None) == ""


def test_rfc2822_reads_naive_stamps_as_utc():
    assert _rfc2822("2024-01-01 10:00:00") == "Mon, 01 Jan 2024 10:00:00 +0000"

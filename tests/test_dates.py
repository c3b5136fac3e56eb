"""Tests for boundary date and count parsing."""

from datetime import date, datetime

import pytest

from quota_engine.dates import parse_date, parse_non_negative_int, parse_positive_int
from quota_engine.errors import ValidationError


class TestParseDate:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (date(2024, 3, 1), date(2024, 3, 1)),
            (datetime(2024, 3, 1, 15, 30), date(2024, 3, 1)),
            ("2024-03-01", date(2024, 3, 1)),
            (" 2024-03-01 ", date(2024, 3, 1)),
            ("2024-03-01T15:30:00", date(2024, 3, 1)),
            ("2024-03-01 15:30:00", date(2024, 3, 1)),
        ],
    )
    def test_accepted(self, value, expected):
        assert parse_date(value, "issue_date") == expected

    @pytest.mark.parametrize(
        "value",
        [
            "2024-01-01garbage",
            "2024-13-01",
            "2024-02-30",
            "01/03/2024",
            "yesterday",
            12,
        ],
    )
    def test_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_date(value, "issue_date")

        assert exc_info.value.details == {"field": "issue_date"}

    @pytest.mark.parametrize("value", [None, ""])
    def test_required(self, value):
        with pytest.raises(ValidationError, match="issue_date is required"):
            parse_date(value, "issue_date")


class TestParseCounts:
    @pytest.mark.parametrize("value,expected", [(5, 5), ("5", 5), (" 7 ", 7), (3.0, 3)])
    def test_positive_accepted(self, value, expected):
        assert parse_positive_int(value, "vacancy_count") == expected

    @pytest.mark.parametrize("value", [0, -1, "0", "five", "", None, 2.5, True, [1]])
    def test_positive_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_positive_int(value, "vacancy_count")

        assert exc_info.value.details == {"field": "vacancy_count"}

    @pytest.mark.parametrize("value,expected", [(0, 0), ("0", 0), (4, 4), ("4", 4)])
    def test_non_negative_accepted(self, value, expected):
        assert parse_non_negative_int(value, "success_count") == expected

    @pytest.mark.parametrize("value", [-1, "-1", "many", None, 1.5, False])
    def test_non_negative_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_non_negative_int(value, "success_count")

        assert exc_info.value.details == {"field": "success_count"}

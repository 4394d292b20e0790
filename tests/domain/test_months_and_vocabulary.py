"""
Month keys, status vocabulary and clock tests (pure domain, no database).
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from certification_kernel.domain.clock import DeterministicClock, SequentialClock
from certification_kernel.domain.months import (
    first_day,
    first_day_after,
    iter_months,
    month_of,
    recent_window,
    shift_month,
    validate_month,
    validate_range,
)
from certification_kernel.domain.status import (
    UNCATEGORIZED,
    CertificateType,
    CustomerStatus,
    category_of,
    parse_category,
    parse_certificate_type,
    parse_status,
)
from certification_kernel.exceptions import (
    InvalidMonthError,
    InvalidMonthRangeError,
    UnknownCategoryError,
    UnknownStatusError,
)


class TestMonthKeys:

    @pytest.mark.parametrize("month", ["2024-01", "1999-12", "2024-10"])
    def test_valid_keys(self, month):
        assert validate_month(month) == month

    @pytest.mark.parametrize(
        "month",
        [
            "2024-1", "2024-13", "2024-00", "24-01", "2024/01", "", None, 202401,
            "2024-03\n", "\u0662\u0660\u0662\u0664-03",
        ],
    )
    def test_invalid_keys(self, month):
        with pytest.raises(InvalidMonthError):
            validate_month(month)

    def test_range_must_be_ordered(self):
        with pytest.raises(InvalidMonthRangeError) as exc_info:
            validate_range("2024-05", "2024-04")
        assert exc_info.value.code == "INVALID_MONTH_RANGE"

    def test_single_month_range(self):
        assert list(iter_months("2024-03", "2024-03")) == ["2024-03"]

    def test_iter_months_crosses_year(self):
        assert list(iter_months("2023-11", "2024-02")) == [
            "2023-11", "2023-12", "2024-01", "2024-02",
        ]

    def test_first_day_bounds(self):
        assert first_day("2024-02") == date(2024, 2, 1)
        assert first_day_after("2024-12") == date(2025, 1, 1)

    def test_recent_window(self):
        assert recent_window(date(2024, 3, 15), 12) == ("2023-04", "2024-03")
        assert recent_window(date(2024, 3, 15), 1) == ("2024-03", "2024-03")

    def test_recent_window_rejects_zero(self):
        with pytest.raises(ValueError):
            recent_window(date(2024, 3, 15), 0)

    @given(st.dates(min_value=date(1900, 1, 1), max_value=date(2999, 12, 31)))
    def test_month_of_is_valid_and_contains_day(self, day):
        """Every date maps to a valid key whose bounds contain it."""
        month = validate_month(month_of(day))
        assert first_day(month) <= day < first_day_after(month)

    @given(
        st.dates(min_value=date(1900, 1, 1), max_value=date(2900, 12, 31)),
        st.integers(min_value=-600, max_value=600),
    )
    def test_shift_month_round_trips(self, day, delta):
        month = month_of(day)
        assert shift_month(shift_month(month, delta), -delta) == month


class TestStatusVocabulary:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("CERTIFIED", CustomerStatus.CERTIFIED),
            ("certified_elsewhere", CustomerStatus.CERTIFIED_ELSEWHERE),
            ("Certified Elsewhere", CustomerStatus.CERTIFIED_ELSEWHERE),
            (" notified ", CustomerStatus.NOTIFIED),
            (CustomerStatus.NEW, CustomerStatus.NEW),
        ],
    )
    def test_parse_status(self, raw, expected):
        assert parse_status(raw) is expected

    @pytest.mark.parametrize("raw", ["PAID", "", None, 3, "LEAD"])
    def test_unknown_status(self, raw):
        with pytest.raises(UnknownStatusError):
            parse_status(raw)

    def test_str_is_canonical_value(self):
        assert str(CustomerStatus.CERTIFIED_ELSEWHERE) == "CERTIFIED_ELSEWHERE"
        assert CustomerStatus.CERTIFIED_ELSEWHERE.display_name == "Certified Elsewhere"

    def test_certificate_type_parsing(self):
        assert parse_certificate_type("n1_forklift") is CertificateType.N1_FORKLIFT
        assert parse_certificate_type("  ") is None
        assert parse_certificate_type(None) is None
        with pytest.raises(UnknownCategoryError):
            parse_certificate_type("UNDERWATER_BASKET_WEAVING")

    def test_category_of_missing_type_is_uncategorized(self):
        assert category_of(None) == UNCATEGORIZED
        assert category_of(CertificateType.Q2_HOIST) == "Q2_HOIST"

    def test_parse_category_accepts_uncategorized(self):
        assert parse_category("other") == UNCATEGORIZED
        assert parse_category("OTHERS") == "OTHERS"
        with pytest.raises(UnknownCategoryError):
            parse_category(None)


class TestClocks:

    def test_deterministic_clock_is_stable(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()
        assert clock.today() == date(2024, 1, 1)

    def test_set_date_and_advance(self):
        clock = DeterministicClock()
        clock.set_date(date(2024, 3, 15))
        clock.advance(3600)
        assert clock.now() == datetime(2024, 3, 15, 13, tzinfo=timezone.utc)
        assert clock.tick() == datetime(2024, 3, 15, 13, 0, 1, tzinfo=timezone.utc)

    def test_sequential_clock_repeats_last_value(self):
        t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
        clock = SequentialClock([t0, t0 + timedelta(seconds=1)])
        assert clock.now() == t0
        assert clock.now() == t0 + timedelta(seconds=1)
        assert clock.now() == t0 + timedelta(seconds=1)

    def test_sequential_clock_requires_times(self):
        with pytest.raises(ValueError):
            SequentialClock([])

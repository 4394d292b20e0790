"""
Month keys (``yyyy-mm``) used by the monthly aggregates.

Every month key is validated before it reaches a query or a write.
"""

import re
from datetime import date

from certification_kernel.exceptions import InvalidMonthError, InvalidMonthRangeError

MONTH_PATTERN = re.compile(r"[0-9]{4}-(0[1-9]|1[0-2])")


def validate_month(month: str) -> str:
    """Return ``month`` unchanged if it is a ``yyyy-mm`` key, else raise InvalidMonthError."""
    if not isinstance(month, str) or MONTH_PATTERN.fullmatch(month) is None:
        raise InvalidMonthError(month)
    return month


def validate_range(start: str, end: str) -> tuple[str, str]:
    """Validate an inclusive month range; ``start`` must not be after ``end``."""
    validate_month(start)
    validate_month(end)
    # Zero-padded keys order lexically the same as chronologically.
    if start > end:
        raise InvalidMonthRangeError(start, end)
    return start, end


def month_of(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def first_day(month: str) -> date:
    validate_month(month)
    return date(int(month[:4]), int(month[5:]), 1)


def first_day_after(month: str) -> date:
    """First day of the month following ``month`` (exclusive upper bound)."""
    start = first_day(month)
    if start.month == 12:
        return date(start.year + 1, 1, 1)
    return date(start.year, start.month + 1, 1)


def shift_month(month: str, delta: int) -> str:
    start = first_day(month)
    index = start.year * 12 + (start.month - 1) + delta
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def iter_months(start: str, end: str):
    """Yield every month key from ``start`` to ``end`` inclusive."""
    validate_range(start, end)
    current = start
    while current <= end:
        yield current
        current = shift_month(current, 1)


def recent_window(today: date, months: int) -> tuple[str, str]:
    """
    The rolling window of the last ``months`` months ending with the
    month of ``today`` (inclusive).
    """
    if months < 1:
        raise ValueError(f"months must be positive, got {months}")
    end = month_of(today)
    return shift_month(end, -(months - 1)), end

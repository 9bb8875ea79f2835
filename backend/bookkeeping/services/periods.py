import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta

PERIOD_MODES = ("thisMonth", "thisQuarter", "thisFiscalYear", "allTime", "custom")

# Fiscal year runs April 1 to March 31.
FISCAL_YEAR_START_MONTH = 4

_YMD_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True)
class DateRange:
    from_date: str = ""
    to_date: str = ""

    @property
    def bounded(self) -> bool:
        return bool(self.from_date) and bool(self.to_date)

    def as_dict(self) -> dict[str, str]:
        return {"from_date": self.from_date, "to_date": self.to_date}


def parse_local_date(value) -> date | None:
    """Read a ``YYYY-MM-DD`` value as a calendar date, never as an instant.

    Returns None for empty or unparseable input.
    """
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    match = _YMD_RE.match(value.strip())
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def shift_years(value: date, years: int) -> date:
    """Move ``value`` by whole calendar years, clamping Feb 29 to Feb 28."""
    year = value.year + years
    if value.month == 2 and value.day == 29 and not calendar.isleap(year):
        return date(year, 2, 28)
    return value.replace(year=year)


def fiscal_year_start(reference: date) -> date:
    if reference.month >= FISCAL_YEAR_START_MONTH:
        return date(reference.year, FISCAL_YEAR_START_MONTH, 1)
    return date(reference.year - 1, FISCAL_YEAR_START_MONTH, 1)


def resolve_period(mode: str, reference_date: date, custom_range: DateRange | None = None) -> DateRange:
    """Inclusive calendar bounds of ``mode`` around ``reference_date``.

    ``allTime`` is unbounded (both bounds empty) and ``custom`` passes the
    supplied range through untouched.
    """
    if mode == "thisMonth":
        start = reference_date.replace(day=1)
        end = month_end(reference_date.year, reference_date.month)
    elif mode == "thisQuarter":
        first_month = (reference_date.month - 1) // 3 * 3 + 1
        start = date(reference_date.year, first_month, 1)
        end = month_end(reference_date.year, first_month + 2)
    elif mode == "thisFiscalYear":
        start = fiscal_year_start(reference_date)
        end = date(start.year + 1, FISCAL_YEAR_START_MONTH, 1) - timedelta(days=1)
    elif mode == "allTime":
        return DateRange()
    elif mode == "custom":
        return custom_range or DateRange()
    else:
        raise ValueError(f"Unknown period mode: {mode}")
    return DateRange(start.isoformat(), end.isoformat())


def previous_period(period: DateRange) -> DateRange | None:
    """Same-length window starting one calendar year before ``period``.

    None when either bound is empty or unparseable, or the range is inverted.
    """
    if not period.bounded:
        return None
    start = parse_local_date(period.from_date)
    end = parse_local_date(period.to_date)
    if start is None or end is None or end < start:
        return None

    length_days = (end - start).days + 1
    prev_start = shift_years(start, -1)
    prev_end = prev_start + timedelta(days=length_days - 1)
    return DateRange(prev_start.isoformat(), prev_end.isoformat())

"""
Resolution of reporting periods into concrete local day boundaries.
"""
import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Any, Iterator, Mapping, Optional, Tuple

from api.common.config import DEFAULT_PERIOD, get_report_timezone
from api.common.schemas import parse_timestamp
from .schemas import PeriodRange

logger = logging.getLogger(__name__)

# Rolling windows, inclusive of today
SYMBOLIC_PERIODS = {
    "7days": 7,
    "30days": 30,
    "90days": 90,
    "365days": 365,
}
THIS_YEAR = "thisYear"
FALLBACK_PERIOD = "30days"

END_OF_DAY = time(23, 59, 59, 999000)


def to_local(moment: datetime, tz) -> datetime:
    """Express a timestamp in the report timezone; naive values are taken as local."""
    if moment.tzinfo is None:
        return tz.localize(moment)
    return moment.astimezone(tz)


def start_of_day(day: date, tz) -> datetime:
    return tz.localize(datetime.combine(day, time.min))


def end_of_day(day: date, tz) -> datetime:
    return tz.localize(datetime.combine(day, END_OF_DAY))


def count_days(start: datetime, end: datetime) -> int:
    """
    Number of days covered by [start, end], never less than one.

    Measured on local wall-clock time so a DST shift inside the range does
    not add or drop a day.
    """
    elapsed = end.replace(tzinfo=None) - start.replace(tzinfo=None)
    return max(1, math.ceil(elapsed / timedelta(days=1)))


def _build(start_day: date, end_day: date, tz) -> PeriodRange:
    start = start_of_day(start_day, tz)
    end = end_of_day(end_day, tz)
    return PeriodRange(start=start, end=end, days=count_days(start, end), timezone=tz.zone)


def _resolve_token(token: str, today: date, tz) -> PeriodRange:
    if token == THIS_YEAR:
        return _build(date(today.year, 1, 1), today, tz)

    window = SYMBOLIC_PERIODS.get(token)
    if window is None:
        logger.warning("Unknown period '%s', falling back to %s", token, FALLBACK_PERIOD)
        window = SYMBOLIC_PERIODS[FALLBACK_PERIOD]

    return _build(today - timedelta(days=window - 1), today, tz)


def _to_local_date(value: Any, tz) -> Optional[date]:
    if isinstance(value, datetime):
        return to_local(value, tz).date() if value.tzinfo else value.date()
    if isinstance(value, date):
        return value

    parsed = parse_timestamp(value)
    if isinstance(parsed, datetime):
        # Offset-carrying strings are moved into local time first
        return to_local(parsed, tz).date() if parsed.tzinfo else parsed.date()
    return None


def _explicit_bounds(spec: Any) -> Optional[Tuple[Any, Any]]:
    if isinstance(spec, Mapping):
        start = spec.get("startDate", spec.get("start_date", spec.get("start")))
        end = spec.get("endDate", spec.get("end_date", spec.get("end")))
        return start, end
    if isinstance(spec, (tuple, list)) and len(spec) == 2:
        return spec[0], spec[1]
    return None


def resolve_period(spec: Any = None, now: Optional[datetime] = None, tz=None) -> PeriodRange:
    """
    Turn a period token or an explicit date pair into a PeriodRange.

    Args:
        spec: One of "7days", "30days", "90days", "365days", "thisYear", or a
            {startDate, endDate} mapping / (start, end) pair of dates, datetimes
            or strings. None means the configured default period.
        now: Reference time; defaults to the current time.
        tz: pytz timezone for day boundaries; defaults to the report timezone.

    Returns:
        PeriodRange whose start is 00:00:00.000 and end 23:59:59.999 local.
        Unknown tokens and unusable pairs resolve to the last 30 days.
    """
    tz = tz or get_report_timezone()
    if now is None:
        now = datetime.now(tz)
    today = to_local(now, tz).date()

    if spec is None:
        spec = DEFAULT_PERIOD

    if isinstance(spec, str):
        return _resolve_token(spec.strip(), today, tz)

    bounds = _explicit_bounds(spec)
    if bounds is None:
        logger.warning("Unsupported period %r, falling back to %s", spec, FALLBACK_PERIOD)
        return _resolve_token(FALLBACK_PERIOD, today, tz)

    start_day = _to_local_date(bounds[0], tz)
    end_day = _to_local_date(bounds[1], tz)
    if start_day is None or end_day is None:
        logger.warning("Unparseable period bounds %r, falling back to %s", bounds, FALLBACK_PERIOD)
        return _resolve_token(FALLBACK_PERIOD, today, tz)

    if start_day > end_day:
        logger.warning("Period start %s is after end %s, swapping", start_day, end_day)
        start_day, end_day = end_day, start_day

    return _build(start_day, end_day, tz)


def iter_days(period: PeriodRange) -> Iterator[date]:
    """Yield every local calendar day of the period, in order."""
    tz = period.tz
    current = to_local(period.start, tz).date()
    last = to_local(period.end, tz).date()
    while current <= last:
        yield current
        current += timedelta(days=1)


def day_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")

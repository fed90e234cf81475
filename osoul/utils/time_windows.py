from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple

from osoul.constants import Period, TREND_DEFAULT_WINDOWS
from osoul.errors import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; they are stored in UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_date(raw: Optional[str], field: str) -> Optional[date]:
    """
    Accepts 'YYYY-MM-DD' or a full ISO-8601 timestamp (with 'Z' or offset)
    and keeps the calendar date.
    """
    if raw is None or str(raw).strip() == "":
        return None
    s = str(raw).strip()
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        raise ValidationError(
            f"Invalid {field}: {raw}. Use 'YYYY-MM-DD' or ISO 8601.",
            details=[{"field": field, "message": "must be an ISO-8601 date"}],
        )


def date_window(dfrom: date, dto: date) -> Tuple[datetime, datetime]:
    """
    Inclusive calendar dates -> (start_utc, end_utc_exclusive), both aware.
    [dfrom 00:00:00, dto + 1 day 00:00:00)
    """
    if dto < dfrom:
        raise ValidationError("endDate must not be before startDate",
                              details=[{"field": "endDate", "message": "must be >= startDate"}])
    start = datetime.combine(dfrom, time.min).replace(tzinfo=timezone.utc)
    end_excl = datetime.combine(dto, time.min).replace(tzinfo=timezone.utc) + timedelta(days=1)
    return start, end_excl


def optional_window(start_raw: Optional[str], end_raw: Optional[str]) -> Optional[Tuple[datetime, datetime]]:
    """Both dates or neither; a lone bound is ignored like the legacy API did."""
    dfrom = parse_iso_date(start_raw, "startDate")
    dto = parse_iso_date(end_raw, "endDate")
    if dfrom and dto:
        return date_window(dfrom, dto)
    return None


def previous_window(start: datetime, end_excl: datetime) -> Tuple[datetime, datetime]:
    """Same-length window that ends right before `start`."""
    length = end_excl - start
    return start - length, start


def last_days_window(days: int, today: Optional[date] = None) -> Tuple[datetime, datetime]:
    today = today or utcnow().date()
    return date_window(today - timedelta(days=days), today)


# ---------- periods ----------

def parse_period(raw: Optional[str]) -> Period:
    try:
        return Period((raw or "").strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid period: {raw}. Use daily, weekly or monthly.",
            details=[{"field": "period", "message": "must be one of daily, weekly, monthly"}],
        )


def truncate(d: date, period: Period) -> date:
    if period == Period.WEEKLY:
        return d - timedelta(days=d.weekday())  # ISO week starts Monday
    if period == Period.MONTHLY:
        return d.replace(day=1)
    return d


def next_period(d: date, period: Period) -> date:
    if period == Period.WEEKLY:
        return d + timedelta(weeks=1)
    if period == Period.MONTHLY:
        return date(d.year + (d.month // 12), d.month % 12 + 1, 1)
    return d + timedelta(days=1)


def period_series(dfrom: date, dto: date, period: Period) -> List[date]:
    """Every period start touching [dfrom, dto], ascending, no gaps."""
    out = []
    cur = truncate(dfrom, period)
    last = truncate(dto, period)
    while cur <= last:
        out.append(cur)
        cur = next_period(cur, period)
    return out


def period_label(d: date, period: Period) -> str:
    if period == Period.WEEKLY:
        iso_year, iso_week, _ = d.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if period == Period.MONTHLY:
        return d.strftime("%Y-%m")
    return d.isoformat()


def default_trend_range(period: Period, today: Optional[date] = None) -> Tuple[date, date]:
    today = today or utcnow().date()
    span = TREND_DEFAULT_WINDOWS[period]
    if "months" in span:
        start = truncate(today, Period.MONTHLY)
        for _ in range(span["months"]):
            start = date(start.year - (1 if start.month == 1 else 0), (start.month - 2) % 12 + 1, 1)
        return start, today
    return today - timedelta(**span), today


def as_date(value) -> Optional[date]:
    """func.date() gives `date` on PostgreSQL and 'YYYY-MM-DD' on SQLite."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def window_dates(start: datetime, end_excl: datetime) -> Tuple[date, date]:
    """Calendar dates covered by a half-open window."""
    return start.date(), (end_excl - timedelta(microseconds=1)).date()

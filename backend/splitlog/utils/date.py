from datetime import UTC, date, datetime, timedelta


def dt_utc() -> datetime:
    return datetime.now(UTC)


def dt_utc_offset(min: int) -> datetime:
    return dt_utc() + timedelta(minutes=min)


def iter_dates(start: date, end: date) -> list[date]:
    # Inclusive on both ends, empty when end precedes start
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def shift_days(d: date | None, days: int) -> date | None:
    if d is None:
        return None
    return d + timedelta(days=days)

from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

SECONDS_PER_DAY = 24 * 3600
WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def parse_hhmmss_to_seconds(t: Optional[str]) -> Optional[int]:
    """Convierte 'HH:MM:SS' a segundos desde medianoche. Devuelve None si t es None o inválido.

    Las horas pueden superar 23 (viajes después de medianoche).
    """
    if not t or not isinstance(t, str):
        return None
    parts = t.strip().split(":")
    if len(parts) != 3:
        return None
    try:
        h, m, s = (int(p) for p in parts)
    except ValueError:
        return None
    return h * 3600 + m * 60 + s


def seconds_of_day(moment: datetime) -> int:
    return moment.hour * 3600 + moment.minute * 60 + moment.second


def timestamp_to_seconds_of_day(timestamp: int, tz: Optional[tzinfo] = None) -> int:
    """Seconds since midnight of a unix timestamp, in `tz` (system local time when None)."""
    return seconds_of_day(datetime.fromtimestamp(timestamp, tz))


def yyyymmdd(day: date) -> str:
    return day.strftime("%Y%m%d")


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def previous_day(day: date) -> date:
    return day - timedelta(days=1)

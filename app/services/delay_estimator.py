"""Delay estimates from vehicle telemetry, for trips without a TripUpdate."""
import math
from datetime import tzinfo
from typing import Dict, Mapping, Optional

from app.services.realtime_index import IN_TRANSIT_TO, STOPPED_AT, VehicleStatus
from app.services.static_index import StaticIndex
from app.utils.geo import haversine_m, parse_coordinate
from app.utils.time_utils import SECONDS_PER_DAY, parse_hhmmss_to_seconds, timestamp_to_seconds_of_day

DEFAULT_SPEED_MPS = 5.0
MIN_SPEED_MPS = 1.0


def _wrap_delay(delay: int) -> int:
    """Fold a time-of-day difference into [-12h, +12h).

    Reports are mapped to a clock time while schedules may run past 24:00:00,
    so a bus 1 minute late on a 24:05:00 stop reports 00:06 and would
    otherwise look almost a day early.
    """
    half_day = SECONDS_PER_DAY // 2
    return (delay + half_day) % SECONDS_PER_DAY - half_day


def _stopped_at_delay(status: VehicleStatus, stop_time: Mapping[str, str], tz: Optional[tzinfo]) -> Optional[int]:
    if status.latitude is None or status.longitude is None:
        return None
    scheduled = parse_hhmmss_to_seconds(stop_time.get("departure_time"))
    if scheduled is None:
        return None
    return timestamp_to_seconds_of_day(status.timestamp, tz) - scheduled


def _in_transit_delay(
    status: VehicleStatus,
    stop_time: Mapping[str, str],
    stop: Optional[Mapping[str, str]],
    tz: Optional[tzinfo],
) -> Optional[int]:
    scheduled = parse_hhmmss_to_seconds(stop_time.get("arrival_time"))
    if scheduled is None or stop is None:
        return None
    stop_lat = parse_coordinate(stop.get("stop_lat"))
    stop_lon = parse_coordinate(stop.get("stop_lon"))
    if status.latitude is None or status.longitude is None:
        return None
    if any(math.isnan(v) for v in (stop_lat, stop_lon, status.latitude, status.longitude)):
        return None
    distance = haversine_m(status.latitude, status.longitude, stop_lat, stop_lon)
    speed = status.speed if status.speed is not None else DEFAULT_SPEED_MPS
    travel = distance / max(speed, MIN_SPEED_MPS)
    eta = timestamp_to_seconds_of_day(status.timestamp + round(travel), tz)
    return eta - scheduled


def estimate_delays(
    index: StaticIndex,
    vehicles: Mapping[str, VehicleStatus],
    trip_updates: Mapping[str, object],
    tz: Optional[tzinfo] = None,
) -> Dict[str, int]:
    """Estimated delay in seconds per trip id.

    Only trips without an explicit TripUpdate get an estimate. A vehicle
    STOPPED_AT a stop is compared with the scheduled departure there; one
    IN_TRANSIT_TO a stop is projected forward at its reported speed and
    compared with the scheduled arrival. Anything missing means no estimate.
    """
    delays: Dict[str, int] = {}
    for trip_id, status in vehicles.items():
        if trip_id in trip_updates or not status.stop_id:
            continue
        stop_time = index.stop_times.get((trip_id, status.stop_id))
        if stop_time is None:
            continue
        delay = None
        if status.current_status == STOPPED_AT:
            delay = _stopped_at_delay(status, stop_time, tz)
        elif status.current_status == IN_TRANSIT_TO:
            delay = _in_transit_delay(status, stop_time, index.stops.get(status.stop_id), tz)
        if delay is not None:
            delays[trip_id] = _wrap_delay(delay)
    return delays

"""Fusion of schedule, TripUpdates and telemetry into candidate departures."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Iterable, List, Mapping, Optional

from google.transit import gtfs_realtime_pb2

from app.core.static_dataset import Record
from app.services.realtime_index import STOPPED_AT, VehicleStatus
from app.services.static_index import StaticIndex
from app.utils.time_utils import SECONDS_PER_DAY, parse_hhmmss_to_seconds, seconds_of_day

ARRIVED_MARK = "**"
PAST_WINDOW_SECONDS = 120
ARRIVED_REPORT_MAX_AGE = 90
ABSOLUTE_TIME_AFTER_MINUTES = 30


@dataclass(frozen=True)
class BoardOptions:
    stop_id: str
    platform_stop_ids: FrozenSet[str]
    window_minutes: int = 90
    departures_per_post: int = 5
    # target stop id -> direction_id -> display name
    direction_names: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    pinned_group_name: str = ""


@dataclass(frozen=True)
class PotentialDeparture:
    trip_id: str
    route_id: str
    line_name: str
    final_stop: str
    is_low_floor: bool
    grouping_key: str
    platform: str
    scheduled_time: int
    effective_time: int
    time_mark: str
    stop_id: str


def time_mark(effective_time: int, now_seconds: int) -> str:
    """Display text for a departure: '0min', '<N>min' or an absolute 'HH:MM'."""
    diff = effective_time - now_seconds
    if diff < 60:
        return "0min"
    # half minutes round up
    minutes = int(diff / 60 + 0.5)
    if minutes > ABSOLUTE_TIME_AFTER_MINUTES:
        total_minutes = effective_time // 60
        return f"{(total_minutes // 60) % 24:02d}:{total_minutes % 60:02d}"
    return f"{minutes}min"


def trip_update_delay(
    trip_update: gtfs_realtime_pb2.TripUpdate, stop_id: str, stop_sequence: Optional[int]
) -> Optional[int]:
    """Departure delay of the first StopTimeUpdate matching the stop id or sequence."""
    for stu in trip_update.stop_time_update:
        by_stop = stu.HasField("stop_id") and stu.stop_id == stop_id
        by_sequence = stop_sequence is not None and stu.HasField("stop_sequence") and stu.stop_sequence == stop_sequence
        if by_stop or by_sequence:
            if stu.HasField("departure") and stu.departure.HasField("delay"):
                return stu.departure.delay
            return None
    return None


def _stop_sequence(row: Record) -> Optional[int]:
    try:
        return int(row.get("stop_sequence") or "")
    except ValueError:
        return None


class DepartureCalculator:
    """Turns stop_times rows at the target platforms into PotentialDepartures.

    One instance serves one pass: it is built from the indices of that pass
    and the pass's `now`.
    """

    def __init__(
        self,
        index: StaticIndex,
        options: BoardOptions,
        now: datetime,
        active_services: FrozenSet[str],
        previous_day_services: FrozenSet[str] = frozenset(),
        trip_updates: Optional[Mapping[str, gtfs_realtime_pb2.TripUpdate]] = None,
        vehicles: Optional[Mapping[str, VehicleStatus]] = None,
        estimated_delays: Optional[Mapping[str, int]] = None,
    ) -> None:
        self.index = index
        self.options = options
        self.active_services = active_services
        self.previous_day_services = previous_day_services
        self.trip_updates = trip_updates or {}
        self.vehicles = vehicles or {}
        self.estimated_delays = estimated_delays or {}
        self.now_seconds = seconds_of_day(now)
        self.now_timestamp = int(now.timestamp())
        self.window_start = self.now_seconds - PAST_WINDOW_SECONDS
        self.window_end = self.now_seconds + options.window_minutes * 60

    def calculate(self, stop_times: Iterable[Record]) -> List[PotentialDeparture]:
        departures: List[PotentialDeparture] = []
        for row in stop_times:
            if row.get("stop_id") not in self.options.platform_stop_ids:
                continue
            departures.extend(self._departures_for_row(row))
        return departures

    def _service_days(self, service_id: str, scheduled: int) -> List[int]:
        """Offsets (seconds) to subtract from the schedule for each active service day."""
        offsets = []
        if service_id in self.active_services:
            offsets.append(0)
        # 24:00:00+ rows of yesterday's service run today
        if scheduled >= SECONDS_PER_DAY and service_id in self.previous_day_services:
            offsets.append(SECONDS_PER_DAY)
        return offsets

    def _departures_for_row(self, row: Record) -> List[PotentialDeparture]:
        scheduled = parse_hhmmss_to_seconds(row.get("departure_time"))
        if scheduled is None:
            return []
        trip = self.index.trips.get(row.get("trip_id", ""))
        if trip is None:
            return []
        offsets = self._service_days(trip.get("service_id", ""), scheduled)
        if not offsets:
            return []
        route = self.index.routes.get(trip.get("route_id", ""))
        if route is None:
            return []

        delay = self._delay(trip["trip_id"], row)
        out = []
        for offset in offsets:
            scheduled_today = scheduled - offset
            effective = scheduled_today + delay
            if self.window_start <= effective <= self.window_end:
                out.append(self._emit(row, trip, route, scheduled_today, effective))
        return out

    def _delay(self, trip_id: str, row: Record) -> int:
        trip_update = self.trip_updates.get(trip_id)
        if trip_update is not None:
            delay = trip_update_delay(trip_update, row.get("stop_id", ""), _stop_sequence(row))
            if delay is not None:
                return delay
        return self.estimated_delays.get(trip_id, 0)

    def grouping_key(self, trip: Record) -> str:
        direction_id = trip.get("direction_id") or None
        if direction_id is not None:
            configured = self.options.direction_names.get(self.options.stop_id, {}).get(direction_id)
            if configured:
                return configured
            return f"Direction {direction_id}"
        return trip.get("trip_headsign") or "Unknown Destination"

    def _is_arrived(self, trip_id: str, stop_id: str, effective: int) -> bool:
        """Vehicle physically at this platform although its slot has elapsed."""
        if self.now_seconds <= effective:
            return False
        status = self.vehicles.get(trip_id)
        if status is None:
            return False
        return (
            status.current_status == STOPPED_AT
            and status.stop_id == stop_id
            and self.now_timestamp - status.timestamp < ARRIVED_REPORT_MAX_AGE
        )

    def _emit(self, row: Record, trip: Record, route: Record, scheduled: int, effective: int) -> PotentialDeparture:
        stop_id = row["stop_id"]
        stop = self.index.stops.get(stop_id, {})
        mark = time_mark(effective, self.now_seconds)
        if self._is_arrived(trip["trip_id"], stop_id, effective):
            mark = ARRIVED_MARK
        return PotentialDeparture(
            trip_id=trip["trip_id"],
            route_id=route["route_id"],
            line_name=route.get("route_short_name") or route.get("route_long_name") or "N/A",
            final_stop=trip.get("trip_headsign") or "N/A",
            is_low_floor=trip.get("wheelchair_accessible") == "1",
            grouping_key=self.grouping_key(trip),
            platform=row.get("stop_platform") or stop.get("platform_code") or "",
            scheduled_time=scheduled,
            effective_time=effective,
            time_mark=mark,
            stop_id=stop_id,
        )

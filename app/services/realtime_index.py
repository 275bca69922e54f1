"""Per-trip indices over a GTFS-RT feed snapshot."""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from google.transit import gtfs_realtime_pb2

STOPPED_AT = "STOPPED_AT"
IN_TRANSIT_TO = "IN_TRANSIT_TO"
INCOMING_AT = "INCOMING_AT"


@dataclass(frozen=True)
class VehicleStatus:
    current_status: str
    stop_id: Optional[str]
    timestamp: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    speed: Optional[float] = None


def _status_name(vehicle: gtfs_realtime_pb2.VehiclePosition) -> str:
    return gtfs_realtime_pb2.VehiclePosition.VehicleStopStatus.Name(vehicle.current_status)


def vehicle_status(vehicle: gtfs_realtime_pb2.VehiclePosition) -> Optional[VehicleStatus]:
    """Flatten a VehiclePosition; reports without a timestamp are ignored."""
    if not vehicle.HasField("timestamp") or not vehicle.timestamp:
        return None
    lat = lon = speed = None
    if vehicle.HasField("position"):
        lat = vehicle.position.latitude
        lon = vehicle.position.longitude
        if vehicle.position.HasField("speed"):
            speed = vehicle.position.speed
    return VehicleStatus(
        current_status=_status_name(vehicle),
        stop_id=vehicle.stop_id if vehicle.HasField("stop_id") and vehicle.stop_id else None,
        timestamp=int(vehicle.timestamp),
        latitude=lat,
        longitude=lon,
        speed=speed,
    )


def _newer_trip_update(current: gtfs_realtime_pb2.TripUpdate, candidate: gtfs_realtime_pb2.TripUpdate) -> bool:
    # equal or missing timestamps: the later entity in the feed wins
    cur_ts = current.timestamp if current.HasField("timestamp") else 0
    new_ts = candidate.timestamp if candidate.HasField("timestamp") else 0
    return new_ts >= cur_ts


def index_realtime(
    feed: Optional[gtfs_realtime_pb2.FeedMessage],
) -> Tuple[Dict[str, gtfs_realtime_pb2.TripUpdate], Dict[str, VehicleStatus]]:
    """Return (trip_id -> latest TripUpdate, trip_id -> latest VehicleStatus).

    Vehicle reports are folded by keeping the greatest timestamp per trip; on
    a tie the first report seen is kept.
    """
    trip_updates: Dict[str, gtfs_realtime_pb2.TripUpdate] = {}
    vehicles: Dict[str, VehicleStatus] = {}
    if feed is None:
        return trip_updates, vehicles

    for entity in feed.entity:
        if entity.is_deleted:
            continue
        if entity.HasField("trip_update"):
            tu = entity.trip_update
            trip_id = tu.trip.trip_id
            if trip_id:
                current = trip_updates.get(trip_id)
                if current is None or _newer_trip_update(current, tu):
                    trip_updates[trip_id] = tu
        if entity.HasField("vehicle"):
            trip_id = entity.vehicle.trip.trip_id
            status = vehicle_status(entity.vehicle) if trip_id else None
            if status is not None:
                current_status = vehicles.get(trip_id)
                if current_status is None or status.timestamp > current_status.timestamp:
                    vehicles[trip_id] = status
    return trip_updates, vehicles

"""Id-keyed lookups over one static GTFS snapshot."""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Tuple

from app.core.static_dataset import Record, StaticDataset


def _empty() -> Mapping:
    return MappingProxyType({})


@dataclass(frozen=True)
class StaticIndex:
    trips: Mapping[str, Record] = field(default_factory=_empty)
    routes: Mapping[str, Record] = field(default_factory=_empty)
    stops: Mapping[str, Record] = field(default_factory=_empty)
    # (trip_id, stop_id) -> stop_times row
    stop_times: Mapping[Tuple[str, str], Record] = field(default_factory=_empty)


def _by_key(rows: Iterable[Record], key: str) -> Mapping[str, Record]:
    out: Dict[str, Record] = {}
    for row in rows:
        value = row.get(key)
        if value:
            out[value] = row
    return MappingProxyType(out)


def build_static_index(dataset: StaticDataset) -> StaticIndex:
    """Build the trip/route/stop/stop-time lookups for a dataset.

    Missing tables simply produce empty mappings.
    """
    stop_times: Dict[Tuple[str, str], Record] = {}
    for row in dataset.stop_times:
        trip_id = row.get("trip_id")
        stop_id = row.get("stop_id")
        if trip_id and stop_id:
            stop_times[(trip_id, stop_id)] = row
    return StaticIndex(
        trips=_by_key(dataset.trips, "trip_id"),
        routes=_by_key(dataset.routes, "route_id"),
        stops=_by_key(dataset.stops, "stop_id"),
        stop_times=MappingProxyType(stop_times),
    )


def resolve_platform_stop_ids(
    stop_id: str,
    stops: Mapping[str, Record],
    template: str = "U{stop_id}Z",
) -> FrozenSet[str]:
    """Stop ids of the platforms that belong to the logical stop `stop_id`.

    A platform matches when its id starts with the prefix built from
    `template` (``U1455Z`` matches ``U1455Z1``, ``U1455Z2``...) or when its
    ``parent_station`` is `stop_id`. With no platform found, a stop id that
    exists on its own is its own platform.
    """
    if not stop_id:
        return frozenset()
    prefix = template.format(stop_id=stop_id) if template else None
    ids = set()
    for sid, stop in stops.items():
        if prefix and sid.startswith(prefix):
            ids.add(sid)
        elif stop.get("parent_station") == stop_id:
            ids.add(sid)
    if not ids and stop_id in stops:
        ids.add(stop_id)
    return frozenset(ids)

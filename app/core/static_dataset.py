from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Tuple

import pandas as pd

Record = Mapping[str, str]
Table = Tuple[Record, ...]


def _records(df: Optional[pd.DataFrame]) -> Table:
    if df is None or df.empty:
        return ()
    return tuple(df.fillna("").astype(str).to_dict(orient="records"))


@dataclass(frozen=True)
class StaticDataset:
    """Immutable snapshot of the GTFS tables used by the departure board.

    Every record is a flat mapping of GTFS column name to text; an empty
    string means the optional field is absent.
    """

    routes: Table = ()
    trips: Table = ()
    stops: Table = ()
    stop_times: Table = ()
    calendar: Table = ()
    calendar_dates: Table = ()
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_frames(cls, frames: Dict[str, pd.DataFrame]) -> "StaticDataset":
        return cls(
            routes=_records(frames.get("routes")),
            trips=_records(frames.get("trips")),
            stops=_records(frames.get("stops")),
            stop_times=_records(frames.get("stop_times")),
            calendar=_records(frames.get("calendar")),
            calendar_dates=_records(frames.get("calendar_dates")),
        )

    def counts(self) -> Dict[str, int]:
        return {
            "routes": len(self.routes),
            "trips": len(self.trips),
            "stops": len(self.stops),
            "stop_times": len(self.stop_times),
            "calendar": len(self.calendar),
            "calendar_dates": len(self.calendar_dates),
        }

"""Schemas del tablero de salidas."""
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel


class Departure(BaseModel):
    """Una salida tal como se muestra en el tablero."""
    LineId: str  # route_id
    LineName: str
    RouteId: str  # trip_id, unique per departure
    FinalStop: str
    IsLowFloor: bool = False
    Platform: str = ""
    TimeMark: str  # "0min", "3min", "14:35" or "**" when the vehicle is at the platform


class DeparturePost(BaseModel):
    PostID: int
    Name: str
    Departures: List[Departure] = []


class DeparturesResult(BaseModel):
    StopID: Union[int, str, None] = None
    Message: str = ""
    PostList: List[DeparturePost] = []
    Error: str = ""


class BoardState(BaseModel):
    """Estado visible del tablero: último resultado más carga/error combinados."""
    stop_id: Optional[str] = None
    departures: DeparturesResult
    loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[datetime] = None


class VehicleInfo(BaseModel):
    trip_id: str
    current_status: str
    stop_id: Optional[str] = None
    timestamp: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    speed: Optional[float] = None


def display_stop_id(stop_id: Optional[str]) -> Union[int, str, None]:
    """Numeric stop ids are shown as numbers, anything else as given."""
    if not stop_id:
        return None
    try:
        return int(stop_id)
    except ValueError:
        return stop_id

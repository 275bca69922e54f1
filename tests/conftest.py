from datetime import datetime, timezone

import pytest

from app.core.static_dataset import StaticDataset

# Monday
MONDAY = datetime(2024, 5, 6, 7, 59, 0, tzinfo=timezone.utc)


def _rows(header, *rows):
    keys = header.split(",")
    return tuple(dict(zip(keys, r.split(","))) for r in rows)


def make_dataset() -> StaticDataset:
    """Small feed around stop 1455 with two platforms and one unrelated stop."""
    return StaticDataset(
        stops=_rows(
            "stop_id,stop_name,stop_lat,stop_lon,location_type,parent_station,platform_code",
            "1455,Náměstí,50.0,14.0,1,,",
            "U1455Z1,Náměstí,50.0,14.0,0,1455,1",
            "U1455Z2,Náměstí,50.0001,14.0001,0,1455,2",
            "U999Z1,Jinde,50.1,14.1,0,,",
        ),
        routes=_rows(
            "route_id,route_short_name,route_long_name",
            "R1,10,Mesto - Sídliště",
            "R2,,Centrum",
        ),
        trips=_rows(
            "trip_id,route_id,service_id,trip_headsign,direction_id,wheelchair_accessible",
            "T1,R1,WK,Mesto,0,1",
            "T2,R1,WK,Sídliště,1,0",
            "T3,R2,WK,Depo,,",
            "TN,R1,WK,Mesto,0,",
        ),
        stop_times=_rows(
            "trip_id,arrival_time,departure_time,stop_id,stop_sequence",
            "T1,07:50:00,07:50:00,U999Z1,2",
            "T1,07:59:30,08:00:00,U1455Z1,3",
            "T2,08:10:00,08:10:00,U1455Z2,1",
            "T3,08:20:00,08:20:00,U1455Z1,5",
            "TN,24:10:00,24:10:00,U1455Z1,7",
        ),
        calendar=_rows(
            "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date",
            "WK,1,1,1,1,1,0,0,20240101,20241231",
        ),
        calendar_dates=_rows(
            "service_id,date,exception_type",
            "WK,20240510,2",
            "EXTRA,20240511,1",
        ),
    )


@pytest.fixture
def dataset() -> StaticDataset:
    return make_dataset()


@pytest.fixture
def monday_morning() -> datetime:
    return MONDAY

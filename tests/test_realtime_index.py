from google.transit import gtfs_realtime_pb2

from app.services.realtime_index import IN_TRANSIT_TO, STOPPED_AT, index_realtime, vehicle_status


def add_trip_update(feed, entity_id, trip_id, timestamp=None, delay=None):
    e = feed.entity.add()
    e.id = entity_id
    tu = e.trip_update
    tu.trip.trip_id = trip_id
    if timestamp is not None:
        tu.timestamp = timestamp
    if delay is not None:
        stu = tu.stop_time_update.add()
        stu.stop_id = "U1455Z1"
        stu.departure.delay = delay
    return e


def add_vehicle(feed, entity_id, trip_id, timestamp=None, status=gtfs_realtime_pb2.VehiclePosition.STOPPED_AT, stop_id="U1455Z1"):
    e = feed.entity.add()
    e.id = entity_id
    vp = e.vehicle
    vp.trip.trip_id = trip_id
    vp.current_status = status
    if stop_id:
        vp.stop_id = stop_id
    if timestamp is not None:
        vp.timestamp = timestamp
    return e


def test_empty_feed():
    assert index_realtime(None) == ({}, {})
    assert index_realtime(gtfs_realtime_pb2.FeedMessage()) == ({}, {})


def test_latest_trip_update_wins():
    feed = gtfs_realtime_pb2.FeedMessage()
    add_trip_update(feed, "a", "T1", timestamp=200, delay=60)
    add_trip_update(feed, "b", "T1", timestamp=100, delay=30)
    trip_updates, _ = index_realtime(feed)
    assert trip_updates["T1"].stop_time_update[0].departure.delay == 60


def test_trip_update_tie_keeps_later_entity():
    feed = gtfs_realtime_pb2.FeedMessage()
    add_trip_update(feed, "a", "T1", timestamp=100, delay=60)
    add_trip_update(feed, "b", "T1", timestamp=100, delay=30)
    trip_updates, _ = index_realtime(feed)
    assert trip_updates["T1"].stop_time_update[0].departure.delay == 30


def test_latest_vehicle_wins_and_tie_keeps_first():
    feed = gtfs_realtime_pb2.FeedMessage()
    add_vehicle(feed, "a", "T1", timestamp=100, stop_id="A")
    add_vehicle(feed, "b", "T1", timestamp=300, stop_id="B")
    add_vehicle(feed, "c", "T1", timestamp=300, stop_id="C")
    _, vehicles = index_realtime(feed)
    assert vehicles["T1"].stop_id == "B"
    assert vehicles["T1"].timestamp == 300


def test_deleted_and_untimed_entities_are_skipped():
    feed = gtfs_realtime_pb2.FeedMessage()
    deleted = add_vehicle(feed, "a", "T1", timestamp=100)
    deleted.is_deleted = True
    add_vehicle(feed, "b", "T2")
    add_trip_update(feed, "c", "")
    trip_updates, vehicles = index_realtime(feed)
    assert vehicles == {}
    assert trip_updates == {}


def test_vehicle_status_flattens_position():
    vp = gtfs_realtime_pb2.VehiclePosition()
    vp.trip.trip_id = "T1"
    vp.timestamp = 1000
    vp.current_status = gtfs_realtime_pb2.VehiclePosition.IN_TRANSIT_TO
    vp.stop_id = "U1455Z1"
    vp.position.latitude = 50.0
    vp.position.longitude = 14.0
    status = vehicle_status(vp)
    assert status.current_status == IN_TRANSIT_TO
    assert status.latitude == 50.0
    assert status.speed is None

    vp.position.speed = 7.5
    vp.current_status = gtfs_realtime_pb2.VehiclePosition.STOPPED_AT
    status = vehicle_status(vp)
    assert status.speed == 7.5
    assert status.current_status == STOPPED_AT

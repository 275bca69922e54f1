import zipfile

import pytest

from app.config.settings import settings
from app.core.gtfs_manager import GTFSManager, gtfs_manager
from app.core.load_gtfs import load_gtfs_from_directory, load_gtfs_from_zip
from app.core.static_dataset import StaticDataset
from app.services import gtfs_service

STOPS = "\ufeffstop_id,stop_name,parent_station,platform_code\n01455,Náměstí  Míru,,\nU1455Z1,Náměstí,01455,1\n"
TRIPS = "trip_id,route_id,service_id,trip_headsign,direction_id\nT1,R1,WK,Mesto,0\n"
STOP_TIMES = "trip_id,arrival_time,departure_time,stop_id,stop_sequence\nT1,08:00:00,08:00:00,U1455Z1,1\n"


def write_zip(path, folder=""):
    with zipfile.ZipFile(path, "w") as z:
        z.writestr(f"{folder}stops.txt", STOPS)
        z.writestr(f"{folder}trips.txt", TRIPS)
        z.writestr(f"{folder}stop_times.txt", STOP_TIMES)
        z.writestr(f"{folder}shapes.txt", "shape_id\nS1\n")
    return path


def test_load_zip_keeps_text(tmp_path):
    frames = load_gtfs_from_zip(str(write_zip(tmp_path / "gtfs.zip")))
    assert set(frames) == {"stops", "trips", "stop_times"}
    ds = StaticDataset.from_frames(frames)
    assert ds.stops[0]["stop_id"] == "01455"
    assert ds.stops[0]["stop_name"] == "Náměstí Míru"
    assert ds.stops[0]["parent_station"] == ""
    assert ds.stops[1]["parent_station"] == "01455"
    assert ds.calendar == ()
    assert ds.counts()["stop_times"] == 1


def test_load_zip_with_nested_folder(tmp_path):
    frames = load_gtfs_from_zip(str(write_zip(tmp_path / "gtfs.zip", folder="feed/")))
    assert list(frames["trips"]["trip_id"]) == ["T1"]


def test_load_directory(tmp_path):
    (tmp_path / "trips.txt").write_text(TRIPS, encoding="utf-8")
    (tmp_path / "stops.txt").write_bytes("stop_id,stop_name\nA,Plaça\n".encode("latin-1"))
    frames = load_gtfs_from_directory(str(tmp_path))
    assert frames["stops"]["stop_name"][0] == "Plaça"
    assert "routes" not in frames


def test_manager_load_publishes_dataset(tmp_path):
    store = GTFSManager()
    calls = []
    store.subscribe(lambda: calls.append(store.static))
    store.static_error = "previous failure"
    dataset = store.load(str(write_zip(tmp_path / "gtfs.zip")))
    assert store.static is dataset
    assert store.static_error is None
    assert store.static_loading is False
    assert calls == [dataset]
    assert store.get_metadata()["static_loaded"] is True


def test_manager_load_failure_sets_error(tmp_path):
    bad = tmp_path / "gtfs.zip"
    bad.write_bytes(b"not a zip")
    store = GTFSManager()
    with pytest.raises(zipfile.BadZipFile):
        store.load(str(bad))
    assert store.static is None
    assert store.static_error.startswith("Failed to load GTFS")
    assert store.static_loading is False


def test_load_if_present_without_feed(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "AUTO_DOWNLOAD_GTFS", False)
    monkeypatch.setattr(settings, "GTFS_DATA_DIR", str(tmp_path))
    gtfs_manager.reset()
    assert gtfs_service.load_if_present() is False
    assert "GTFS not found" in gtfs_manager.static_error
    gtfs_manager.reset()


def test_load_if_present_from_zip(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "AUTO_DOWNLOAD_GTFS", False)
    monkeypatch.setattr(settings, "GTFS_DATA_DIR", str(tmp_path))
    monkeypatch.setattr(settings, "GTFS_PATH", "gtfs.zip")
    write_zip(tmp_path / "gtfs.zip")
    gtfs_manager.reset()
    assert gtfs_service.load_if_present() is True
    assert gtfs_manager.static.counts()["trips"] == 1
    gtfs_manager.reset()

from google.transit import gtfs_realtime_pb2

from app.services.alerts import extract_alert_message


def make_alert_feed():
    feed = gtfs_realtime_pb2.FeedMessage()
    e = feed.entity.add()
    e.id = "a1"
    e.alert.informed_entity.add().stop_id = "U1455Z1"
    header = e.alert.header_text.translation.add()
    header.text = "Výluka"
    header.language = "cs"
    en = e.alert.header_text.translation.add()
    en.text = "Closure"
    en.language = "en"
    e.alert.description_text.translation.add().text = "Tram 10 diverted"

    other = feed.entity.add()
    other.id = "a2"
    other.alert.informed_entity.add().stop_id = "U999Z1"
    other.alert.header_text.translation.add().text = "Elsewhere"

    route_only = feed.entity.add()
    route_only.id = "a3"
    route_only.alert.informed_entity.add().route_id = "R1"
    route_only.alert.header_text.translation.add().text = "Route notice"
    return feed


def test_alert_message_for_stop():
    assert extract_alert_message(make_alert_feed(), "1455") == "Výluka\n\nTram 10 diverted"


def test_alert_message_preferred_language():
    assert extract_alert_message(make_alert_feed(), "1455", "en") == "Closure\n\nTram 10 diverted"
    # unknown language falls back to the first translation
    assert extract_alert_message(make_alert_feed(), "1455", "de").startswith("Výluka")


def test_no_alerts():
    assert extract_alert_message(make_alert_feed(), "4242") == ""
    assert extract_alert_message(None, "1455") == ""
    assert extract_alert_message(make_alert_feed(), None) == ""

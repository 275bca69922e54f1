from typing import List, Optional

from google.transit import gtfs_realtime_pb2


def _translated(text: gtfs_realtime_pb2.TranslatedString, language: str = "") -> Optional[str]:
    """Text of the translation in `language`, falling back to the first one."""
    if not text.translation:
        return None
    if language:
        for t in text.translation:
            if t.language == language and t.text:
                return t.text
    return text.translation[0].text or None


def _concerns_stop(alert: gtfs_realtime_pb2.Alert, stop_id: str) -> bool:
    # platform ids embed the stop id (U1455Z1 for stop 1455)
    return any(e.stop_id and stop_id in e.stop_id for e in alert.informed_entity)


def extract_alert_message(
    feed: Optional[gtfs_realtime_pb2.FeedMessage],
    stop_id: Optional[str],
    language: str = "",
) -> str:
    """Header and description of every alert affecting `stop_id`, in feed order."""
    if feed is None or not stop_id:
        return ""
    parts: List[str] = []
    for entity in feed.entity:
        if not entity.HasField("alert") or not _concerns_stop(entity.alert, stop_id):
            continue
        header = _translated(entity.alert.header_text, language)
        description = _translated(entity.alert.description_text, language)
        if header:
            parts.append(header)
        if description and description != header:
            parts.append(description)
    return "\n\n".join(parts)

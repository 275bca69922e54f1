import logging
import os
from datetime import datetime, timezone
from time import perf_counter
from typing import Callable, Dict, List, Optional

from google.transit import gtfs_realtime_pb2

from app.core.static_dataset import StaticDataset

logger = logging.getLogger("departures")

Listener = Callable[[], None]


def merge_feeds(feeds: List[gtfs_realtime_pb2.FeedMessage]) -> Optional[gtfs_realtime_pb2.FeedMessage]:
    """Combine several GTFS-RT messages into one snapshot, keeping entity order."""
    if not feeds:
        return None
    if len(feeds) == 1:
        return feeds[0]
    merged = gtfs_realtime_pb2.FeedMessage()
    merged.header.CopyFrom(feeds[0].header)
    merged.header.timestamp = max(f.header.timestamp for f in feeds)
    for f in feeds:
        merged.entity.extend(f.entity)
    return merged


class GTFSManager:
    """Holds the latest static dataset and GTFS-RT snapshot plus provider state.

    Providers write here; the refresh controller subscribes to be told when
    either input changes.
    """

    def __init__(self) -> None:
        self.static: Optional[StaticDataset] = None
        self.static_loading = False
        self.static_error: Optional[str] = None
        # last decoded feed per URL, merged into `realtime`
        self.rt_feeds: Dict[str, gtfs_realtime_pb2.FeedMessage] = {}
        self.realtime: Optional[gtfs_realtime_pb2.FeedMessage] = None
        self.rt_loading = False
        self.rt_error: Optional[str] = None
        # Example keys: last_downloaded_at, etag, last_modified, file_size, file_hash, last_checked_at, last_reload_at, status
        self.metadata: Dict[str, str] = {}
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("GTFS data listener failed")

    def load(self, path: str) -> StaticDataset:
        """Load a GTFS zip or extracted directory and publish it."""
        from app.core.load_gtfs import load_gtfs_from_directory, load_gtfs_from_zip

        start = perf_counter()
        self.static_loading = True
        try:
            frames = load_gtfs_from_directory(path) if os.path.isdir(path) else load_gtfs_from_zip(path)
            dataset = StaticDataset.from_frames(frames)
        except Exception as e:
            self.set_static_error(f"Failed to load GTFS from {path}: {e}")
            raise
        finally:
            self.static_loading = False
        elapsed_ms = (perf_counter() - start) * 1000.0
        counts = dataset.counts()
        logger.info(
            f"GTFS loaded: routes={counts['routes']} stops={counts['stops']} trips={counts['trips']} "
            f"stop_times={counts['stop_times']} calendar={counts['calendar']} "
            f"calendar_dates={counts['calendar_dates']}; build_time={elapsed_ms:.1f}ms"
        )
        self.set_static(dataset)
        return dataset

    def set_static(self, dataset: StaticDataset) -> None:
        self.static = dataset
        self.static_error = None
        self.metadata["last_reload_at"] = datetime.now(timezone.utc).isoformat()
        self.metadata.setdefault("status", "loaded")
        self._notify()

    def set_static_error(self, message: str) -> None:
        self.static_error = message
        self._notify()

    def set_realtime_feed(self, url: str, feed: gtfs_realtime_pb2.FeedMessage, order: Optional[List[str]] = None) -> None:
        """Store the feed decoded from `url` and rebuild the merged snapshot."""
        self.rt_feeds[url] = feed
        order = order or list(self.rt_feeds)
        self.realtime = merge_feeds([self.rt_feeds[u] for u in order if u in self.rt_feeds])
        self.rt_error = None
        self._notify()

    def set_realtime_error(self, message: str) -> None:
        self.rt_error = message
        self._notify()

    def update_metadata(self, meta: Dict[str, str]) -> None:
        """Merge provided metadata into manager.metadata."""
        if not isinstance(meta, dict):
            return
        self.metadata.update({k: v for k, v in meta.items() if v is not None})

    def get_metadata(self) -> Dict[str, object]:
        """Return a shallow copy of known metadata plus provider state."""
        meta = dict(self.metadata)
        meta["static_loaded"] = self.static is not None
        meta["static_error"] = self.static_error
        meta["realtime_feeds"] = len(self.rt_feeds)
        meta["realtime_error"] = self.rt_error
        return meta

    def reset(self) -> None:
        """Drop all data and provider state; listeners are kept."""
        listeners = self._listeners
        self.__init__()
        self._listeners = listeners


gtfs_manager = GTFSManager()

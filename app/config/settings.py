import os
from typing import Optional


def _bool_env(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).lower() in ("1", "true", "yes", "on")


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


class Settings:
    """Simple settings loader that reads from environment with sensible defaults.

    This avoids a hard dependency on pydantic-settings while keeping behavior
    predictable for tests and runtime.
    """

    def __init__(self) -> None:
        # Directory where the GTFS zip, its extracted copy and metadata live
        self.GTFS_DATA_DIR: str = os.getenv("GTFS_DATA_DIR", "data/gtfs")
        # GTFS filename (relative to GTFS_DATA_DIR if GTFS_PATH is not absolute)
        self.GTFS_PATH: str = os.getenv("GTFS_PATH", "gtfs.zip")
        self.API_KEY: Optional[str] = os.getenv("API_KEY")

        # Logging
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        self.LOG_TO_CONSOLE: bool = _bool_env("LOG_TO_CONSOLE", True)
        self.LOG_FILE: Optional[str] = os.getenv("LOG_FILE")
        self.LOG_FORMAT: str = os.getenv("LOG_FORMAT", "%(asctime)s | %(levelname)s | %(name)s | %(message)s")

        # Static GTFS downloader
        self.GTFS_ZIP_URL: str = os.getenv("GTFS_ZIP_URL", "")
        self.AUTO_DOWNLOAD_GTFS: bool = _bool_env("AUTO_DOWNLOAD_GTFS", False)
        self.GTFS_DOWNLOAD_INTERVAL_HOURS: int = _int_env("GTFS_DOWNLOAD_INTERVAL_HOURS", 24)

        # GTFS-RT: either one combined feed or separate feeds per entity kind
        self.RT_FEED_URL: str = os.getenv("RT_FEED_URL", "")
        self.RT_TRIP_UPDATES_URL: str = os.getenv("RT_TRIP_UPDATES_URL", "")
        self.RT_VEHICLES_URL: str = os.getenv("RT_VEHICLES_URL", "")
        self.RT_ALERTS_URL: str = os.getenv("RT_ALERTS_URL", "")
        self.RT_POLL_INTERVAL: int = _int_env("RT_POLL_INTERVAL", 30)
        self.RT_TIMEOUT: int = _int_env("RT_TIMEOUT", 10)
        self.RT_MAX_RETRIES: int = _int_env("RT_MAX_RETRIES", 3)

        # Departure board
        self.STOP_ID: str = os.getenv("STOP_ID", "1455")
        self.PLATFORM_ID_TEMPLATE: str = os.getenv("PLATFORM_ID_TEMPLATE", "U{stop_id}Z")
        self.DEPARTURES_PER_POST: int = _int_env("DEPARTURES_PER_POST", 5)
        self.TIME_WINDOW_MINUTES: int = _int_env("TIME_WINDOW_MINUTES", 90)
        self.REFRESH_INTERVAL: int = _int_env("REFRESH_INTERVAL", 5)
        self.PINNED_GROUP_NAME: str = os.getenv("PINNED_GROUP_NAME", "Mesto")
        self.DIRECTIONS_FILE: str = os.getenv("DIRECTIONS_FILE", "config/directions.json")
        # IANA zone name; empty means the system local time
        self.BOARD_TIMEZONE: str = os.getenv("BOARD_TIMEZONE", "")
        self.ALERT_LANGUAGE: str = os.getenv("ALERT_LANGUAGE", "")

    def rt_feed_urls(self) -> list:
        """Configured GTFS-RT URLs, de-duplicated, in a stable order."""
        urls = []
        for url in (self.RT_FEED_URL, self.RT_TRIP_UPDATES_URL, self.RT_VEHICLES_URL, self.RT_ALERTS_URL):
            if url and url not in urls:
                urls.append(url)
        return urls


settings = Settings()

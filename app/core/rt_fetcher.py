import asyncio
import logging
from typing import List, Optional

import aiohttp
from google.transit import gtfs_realtime_pb2

from app.config.settings import settings
from app.core.gtfs_manager import gtfs_manager

logger = logging.getLogger("departures.rt_fetcher")


def decode_feed(data: bytes) -> gtfs_realtime_pb2.FeedMessage:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.ParseFromString(data)
    return feed


class RTFetcher:
    def __init__(self, urls: Optional[List[str]] = None):
        self._tasks = []
        self._stop = asyncio.Event()
        self._urls = urls

    @property
    def urls(self) -> List[str]:
        return self._urls if self._urls is not None else settings.rt_feed_urls()

    async def fetch_once(self, session: aiohttp.ClientSession, url: str) -> gtfs_realtime_pb2.FeedMessage:
        """Download and decode one feed, retrying up to RT_MAX_RETRIES times."""
        timeout = aiohttp.ClientTimeout(total=settings.RT_TIMEOUT)
        attempts = max(1, settings.RT_MAX_RETRIES)
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                async with session.get(url, timeout=timeout) as resp:
                    if resp.status != 200:
                        raise RuntimeError(f"GTFS-RT {url} returned status {resp.status}")
                    data = await resp.read()
                return decode_feed(data)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                logger.warning(f"RT fetch attempt {attempt}/{attempts} for {url} failed: {e}")
        raise last_error

    def _handle_feed(self, url: str, feed: gtfs_realtime_pb2.FeedMessage) -> None:
        gtfs_manager.set_realtime_feed(url, feed, order=self.urls)
        logger.debug(f"Parsed {len(feed.entity)} entities from {url}")

    async def _fetch_loop(self, url: str, interval: int):
        """Loop que consulta `url` cada `interval` segundos y publica el feed decodificado."""
        backoff = 1
        async with aiohttp.ClientSession() as session:
            while not self._stop.is_set():
                wait = interval
                try:
                    feed = await self.fetch_once(session, url)
                    self._handle_feed(url, feed)
                    backoff = 1
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    logger.exception(f"Error fetching RT {url}: {e}")
                    gtfs_manager.set_realtime_error(f"Realtime feed error: {e}")
                    wait = min(backoff, 60)
                    backoff = backoff * 2
                finally:
                    gtfs_manager.rt_loading = False
                # sleep until next poll (unless stopped)
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=wait)
                except asyncio.TimeoutError:
                    continue

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        urls = self.urls
        if not urls:
            logger.warning("No GTFS-RT URL configured; boards will use the static schedule only")
            return
        loop = loop or asyncio.get_event_loop()
        self._stop = asyncio.Event()
        gtfs_manager.rt_loading = True
        for url in urls:
            self._tasks.append(loop.create_task(self._fetch_loop(url, settings.RT_POLL_INTERVAL)))
        logger.info(f"RTFetcher started {len(urls)} background task(s)")

    async def stop(self):
        self._stop.set()
        for t in self._tasks:
            t.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("RTFetcher stopped")


rt_fetcher = RTFetcher()

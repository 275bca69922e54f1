import asyncio
import hashlib
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiohttp

from app.config.settings import settings
from app.core.gtfs_manager import gtfs_manager

logger = logging.getLogger("departures.gtfs_downloader")


def gtfs_zip_path() -> str:
    """Full path of the GTFS zip (GTFS_PATH may be absolute or relative to GTFS_DATA_DIR)."""
    path = settings.GTFS_PATH
    if os.path.isabs(path):
        return path
    return os.path.join(settings.GTFS_DATA_DIR or "data", path)


def _sha256(path: str):
    sha256 = hashlib.sha256()
    size = 0
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 64), b""):
            sha256.update(chunk)
            size += len(chunk)
    return sha256.hexdigest(), size


class GTFSDownloader:
    def __init__(self, url: Optional[str] = None, dest: Optional[str] = None):
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self._url = url
        self._dest = dest

    @property
    def url(self) -> str:
        return self._url if self._url is not None else settings.GTFS_ZIP_URL

    @property
    def dest(self) -> str:
        return self._dest or gtfs_zip_path()

    @property
    def meta_path(self) -> str:
        return f"{self.dest}.meta"

    def _read_meta(self) -> Dict[str, Any]:
        """Load metadata persisted next to the zip; {} when absent or unreadable."""
        if not os.path.exists(self.meta_path):
            return {}
        try:
            with open(self.meta_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError):
            logger.exception("Failed to read GTFS meta file")
            return {}

    def _write_meta(self, meta: Dict[str, Any]) -> None:
        try:
            with open(self.meta_path, "w", encoding="utf-8") as f:
                json.dump(meta, f, ensure_ascii=False, indent=2)
        except OSError:
            logger.exception("Failed to write GTFS meta file")

    def get_metadata(self) -> Dict[str, Any]:
        return self._read_meta()

    async def _download_once(self) -> bool:
        """Download the GTFS zip if changed. Returns True if downloaded (and reloaded), False otherwise."""
        dest = self.dest
        os.makedirs(os.path.dirname(dest) or ".", exist_ok=True)
        meta = self._read_meta()
        headers = {}
        if meta.get("etag"):
            headers["If-None-Match"] = meta["etag"]
        if meta.get("last_modified"):
            headers["If-Modified-Since"] = meta["last_modified"]

        meta["last_checked_at"] = datetime.now(timezone.utc).isoformat()
        if gtfs_manager.static is None:
            gtfs_manager.static_loading = True
        try:
            timeout = aiohttp.ClientTimeout(total=max(settings.RT_TIMEOUT, 60))
            async with aiohttp.ClientSession() as session:
                async with session.get(self.url, headers=headers, timeout=timeout) as resp:
                    if resp.status == 304:
                        logger.debug("GTFS not modified (304)")
                        meta["status"] = "not_modified"
                        self._write_meta(meta)
                        gtfs_manager.update_metadata({"last_checked_at": meta["last_checked_at"], "status": "not_modified"})
                        if gtfs_manager.static is None and os.path.exists(dest):
                            await asyncio.to_thread(gtfs_manager.load, dest)
                        return False
                    if resp.status != 200:
                        raise RuntimeError(f"GTFS download returned status {resp.status}")
                    # write to temp file first
                    tmp = dest + ".tmp"
                    with open(tmp, "wb") as f:
                        async for chunk in resp.content.iter_chunked(1024 * 32):
                            f.write(chunk)
                    new_etag = resp.headers.get("ETag")
                    new_lm = resp.headers.get("Last-Modified")
            file_hash, size = _sha256(tmp)
            os.replace(tmp, dest)
            meta.update({
                "etag": new_etag,
                "last_modified": new_lm,
                "last_downloaded_at": datetime.now(timezone.utc).isoformat(),
                "file_size": size,
                "file_hash": file_hash,
                "status": "downloaded",
            })
            self._write_meta(meta)

            await asyncio.to_thread(gtfs_manager.load, dest)

            meta["last_reload_at"] = datetime.now(timezone.utc).isoformat()
            meta["status"] = "reloaded"
            meta.pop("error_message", None)
            self._write_meta(meta)
            gtfs_manager.update_metadata(meta)
            logger.info("GTFS downloaded and reloaded from %s", self.url)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Error downloading GTFS: {e}")
            meta["status"] = "error"
            meta["error_message"] = str(e)
            self._write_meta(meta)
            gtfs_manager.set_static_error(f"Static GTFS error: {e}")
            return False
        finally:
            gtfs_manager.static_loading = False

    async def _loop(self):
        interval = max(1, settings.GTFS_DOWNLOAD_INTERVAL_HOURS) * 3600
        await self._download_once()
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                # time to check
                await self._download_once()

    def start(self):
        if self._task and not self._task.done():
            return
        if not self.url:
            logger.warning("AUTO_DOWNLOAD_GTFS is enabled but GTFS_ZIP_URL is empty; downloader not started")
            return
        meta = self._read_meta()
        if meta:
            gtfs_manager.update_metadata(meta)
        self._stop = asyncio.Event()
        loop = asyncio.get_event_loop()
        self._task = loop.create_task(self._loop())
        logger.info("GTFSDownloader started")

    async def stop(self):
        self._stop.set()
        if self._task:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        logger.info("GTFSDownloader stopped")


gtfs_downloader = GTFSDownloader()

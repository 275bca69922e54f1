import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Set, Tuple

from app.config.settings import settings
from app.core.gtfs_manager import GTFSManager, gtfs_manager
from app.core.static_dataset import StaticDataset
from app.schemas.departures import BoardState, DeparturesResult, display_stop_id
from app.services.departures_service import BoardConfig, board_now, build_departures
from app.services.static_index import StaticIndex, build_static_index

logger = logging.getLogger("departures.refresh")


class RefreshController:
    """Keeps the departure board of one stop up to date.

    Passes are triggered by a periodic tick, by new static or realtime data
    and by a change of target stop. Only one pass runs at a time; triggers
    that arrive meanwhile collapse into a single follow-up pass.
    """

    def __init__(
        self,
        store: GTFSManager = gtfs_manager,
        stop_id: Optional[str] = None,
        interval: Optional[int] = None,
        clock: Callable[[], datetime] = board_now,
        config_factory: Callable[[], BoardConfig] = BoardConfig.from_settings,
        compute: Callable[..., DeparturesResult] = build_departures,
    ):
        self._store = store
        self._stop_id = stop_id if stop_id is not None else settings.STOP_ID
        self._interval = interval
        self._clock = clock
        self._config_factory = config_factory
        self._compute = compute

        self.result = self._fresh_result(self._stop_id)
        self.is_computing = False
        self.last_error = ""
        self.last_updated: Optional[datetime] = None
        self._pending = False
        # set when the running sequence of passes (including queued follow-ups) ends
        self._idle: Optional[asyncio.Event] = None
        self._generation = 0
        self._indexed: Optional[Tuple[StaticDataset, StaticIndex]] = None

        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._triggered: Set[asyncio.Task] = set()

    @staticmethod
    def _fresh_result(stop_id: Optional[str]) -> DeparturesResult:
        return DeparturesResult(StopID=display_stop_id(stop_id))

    @property
    def stop_id(self) -> Optional[str]:
        return self._stop_id

    @property
    def interval(self) -> int:
        return self._interval if self._interval is not None else settings.REFRESH_INTERVAL

    @property
    def loading(self) -> bool:
        store = self._store
        return store.static_loading or self.is_computing or (store.rt_loading and store.realtime is None)

    @property
    def error(self) -> Optional[str]:
        store = self._store
        return self.last_error or store.static_error or store.rt_error or self.result.Error or None

    def state(self) -> BoardState:
        return BoardState(
            stop_id=self._stop_id,
            departures=self.result,
            loading=self.loading,
            error=self.error,
            last_updated=self.last_updated,
        )

    def set_stop(self, stop_id: str) -> None:
        """Switch the target stop and reset the board; in-flight results get discarded."""
        if stop_id == self._stop_id:
            return
        logger.info("Target stop changed from %s to %s", self._stop_id, stop_id)
        self._stop_id = stop_id
        self._generation += 1
        self.result = self._fresh_result(stop_id)
        self.last_error = ""
        self.last_updated = None

    async def change_stop(self, stop_id: str) -> BoardState:
        self.set_stop(stop_id)
        await self.refresh()
        return self.state()

    async def refresh(self) -> None:
        """Run a pass now and return once the board reflects it.

        With a pass already in flight the request is queued as the single
        follow-up pass, and this call waits until that pass has finished.
        """
        if self.is_computing:
            self._pending = True
            await self._idle.wait()
            return
        self.is_computing = True
        self._idle = asyncio.Event()
        try:
            while True:
                self._pending = False
                await self._run_pass()
                if not self._pending:
                    break
        finally:
            self.is_computing = False
            self._idle.set()

    def _index_for(self, dataset: StaticDataset) -> StaticIndex:
        # datasets are immutable, so the index lives as long as the dataset does
        if self._indexed is None or self._indexed[0] is not dataset:
            self._indexed = (dataset, build_static_index(dataset))
        return self._indexed[1]

    def _pass(self, stop_id, dataset, feed, now, config) -> DeparturesResult:
        index = self._index_for(dataset) if dataset is not None else None
        return self._compute(stop_id, dataset, feed, now, config, index)

    async def _run_pass(self) -> None:
        store = self._store
        dataset = store.static
        if dataset is None and store.static_loading:
            logger.debug("Static GTFS still loading; pass skipped")
            return
        stop_id = self._stop_id
        generation = self._generation
        now = self._clock()
        config = self._config_factory()

        result = await asyncio.to_thread(self._pass, stop_id, dataset, store.realtime, now, config)

        if generation != self._generation:
            logger.debug("Discarding board for stop %s: target changed during the pass", stop_id)
            return
        calculation_error = result.Error
        if calculation_error:
            result.PostList = []
        result.Error = calculation_error or store.static_error or store.rt_error or ""
        self.last_error = calculation_error
        self.result = result
        self.last_updated = now

    def notify(self) -> None:
        """Feed store listener: schedule a pass on the controller's loop.

        May be called from worker threads (the static loader runs in one).
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._spawn_refresh)

    def _spawn_refresh(self) -> None:
        task = self._loop.create_task(self.refresh())
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)

    async def _tick_loop(self) -> None:
        while not self._stop.is_set():
            try:
                await self.refresh()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Board refresh failed")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        if self._task and not self._task.done():
            return
        self._loop = loop or asyncio.get_event_loop()
        self._stop = asyncio.Event()
        self._store.subscribe(self.notify)
        self._task = self._loop.create_task(self._tick_loop())
        logger.info("RefreshController started for stop %s (every %ss)", self._stop_id, self.interval)

    async def stop(self) -> None:
        self._stop.set()
        self._store.unsubscribe(self.notify)
        tasks = [t for t in [self._task, *self._triggered] if t is not None]
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        logger.info("RefreshController stopped")


refresh_controller = RefreshController()

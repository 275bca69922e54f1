import asyncio
import threading
import time

from app.core.gtfs_manager import GTFSManager
from app.core.refresh_controller import RefreshController
from app.schemas.departures import DeparturePost, DeparturesResult, display_stop_id
from app.services.departures_service import BoardConfig

from conftest import MONDAY, make_dataset


class FakeCompute:
    """Stand-in for build_departures that records calls."""

    def __init__(self, error="", delay=0.0, gate=None):
        self.calls = []
        self.error = error
        self.delay = delay
        self.gate = gate

    def __call__(self, stop_id, dataset, feed, now, config, index):
        self.calls.append(stop_id)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.delay:
            time.sleep(self.delay)
        return DeparturesResult(
            StopID=display_stop_id(stop_id),
            PostList=[DeparturePost(PostID=1, Name="Mesto")],
            Error=self.error,
        )


def make_controller(compute, store=None, stop_id="1455"):
    store = store or GTFSManager()
    if store.static is None:
        store.static = make_dataset()
    return RefreshController(
        store=store,
        stop_id=stop_id,
        interval=3600,
        clock=lambda: MONDAY,
        config_factory=BoardConfig,
        compute=compute,
    ), store


def test_pass_publishes_result():
    compute = FakeCompute()
    controller, _ = make_controller(compute)
    asyncio.run(controller.refresh())
    state = controller.state()
    assert compute.calls == ["1455"]
    assert state.departures.StopID == 1455
    assert len(state.departures.PostList) == 1
    assert state.loading is False
    assert state.error is None
    assert state.last_updated == MONDAY


def test_triggers_during_a_pass_coalesce():
    compute = FakeCompute(delay=0.2)
    controller, _ = make_controller(compute)

    async def scenario():
        first = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0.05)
        assert controller.is_computing
        await asyncio.gather(controller.refresh(), controller.refresh(), controller.refresh())
        await first

    asyncio.run(scenario())
    assert len(compute.calls) == 2
    assert controller.is_computing is False


def test_result_for_previous_stop_is_discarded():
    gate = threading.Event()
    compute = FakeCompute(gate=gate)
    controller, _ = make_controller(compute)

    async def scenario():
        task = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0.05)
        controller.set_stop("2000")
        gate.set()
        await task

    asyncio.run(scenario())
    assert compute.calls == ["1455"]
    assert controller.stop_id == "2000"
    assert controller.result.StopID == 2000
    assert controller.result.PostList == []
    assert controller.last_updated is None


def test_change_stop_recomputes_for_new_stop():
    compute = FakeCompute()
    controller, _ = make_controller(compute)
    state = asyncio.run(controller.change_stop("U1455Z1"))
    assert compute.calls == ["U1455Z1"]
    assert state.stop_id == "U1455Z1"
    assert state.departures.StopID == "U1455Z1"


def test_calculation_error_clears_posts():
    compute = FakeCompute(error="boom")
    controller, store = make_controller(compute)
    store.static_error = "static broken"
    asyncio.run(controller.refresh())
    assert controller.result.Error == "boom"
    assert controller.result.PostList == []
    assert controller.state().error == "boom"


def test_provider_errors_surface_in_result():
    compute = FakeCompute()
    controller, store = make_controller(compute)
    store.rt_error = "Realtime feed error: timeout"
    asyncio.run(controller.refresh())
    assert controller.result.Error == "Realtime feed error: timeout"
    assert len(controller.result.PostList) == 1

    store.static_error = "Static GTFS error: 404"
    asyncio.run(controller.refresh())
    assert controller.result.Error == "Static GTFS error: 404"


def test_pass_skipped_while_static_loading():
    compute = FakeCompute()
    store = GTFSManager()
    store.static_loading = True
    controller = RefreshController(store=store, stop_id="1455", clock=lambda: MONDAY, config_factory=BoardConfig, compute=compute)
    asyncio.run(controller.refresh())
    assert compute.calls == []
    assert controller.state().loading is True


def test_store_updates_trigger_a_pass():
    compute = FakeCompute()
    controller, store = make_controller(compute)

    async def scenario():
        controller.start()
        await asyncio.sleep(0.1)
        store.set_realtime_error("Realtime feed error: 503")
        await asyncio.sleep(0.1)
        await controller.stop()

    asyncio.run(scenario())
    assert len(compute.calls) >= 2
    assert controller.result.Error == "Realtime feed error: 503"
    assert controller.notify not in store._listeners


def test_index_reused_for_same_dataset():
    built = []

    def compute(stop_id, dataset, feed, now, config, index):
        built.append(index)
        return DeparturesResult(StopID=display_stop_id(stop_id))

    controller, _ = make_controller(compute)
    asyncio.run(controller.refresh())
    asyncio.run(controller.refresh())
    assert built[0] is built[1]


def test_refresh_during_a_pass_waits_for_its_follow_up():
    gate = threading.Event()
    compute = FakeCompute(gate=gate)
    controller, _ = make_controller(compute)

    async def scenario():
        first = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0.05)
        second = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0.05)
        assert not second.done()
        gate.set()
        await second
        assert first.done()

    asyncio.run(scenario())
    assert compute.calls == ["1455", "1455"]
    assert controller.last_updated == MONDAY
    assert len(controller.result.PostList) == 1
    assert controller.state().loading is False

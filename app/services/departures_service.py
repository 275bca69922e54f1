"""Departure board pipeline.

One pass is a pure function of (static dataset, GTFS-RT snapshot, now):

    static index -> active services -> realtime indices -> delay estimates
    -> candidate departures -> posts -> DeparturesResult

Nothing here keeps state between passes; callers may hand in a prebuilt
StaticIndex for the same immutable dataset to skip re-indexing.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Mapping, Optional
from zoneinfo import ZoneInfo

from google.transit import gtfs_realtime_pb2

from app.config.directions import load_direction_names
from app.config.settings import settings
from app.core.static_dataset import StaticDataset
from app.schemas.departures import Departure, DeparturePost, DeparturesResult, display_stop_id
from app.services.alerts import extract_alert_message
from app.services.calendar import active_service_ids
from app.services.delay_estimator import estimate_delays
from app.services.departure_calculator import BoardOptions, DepartureCalculator, PotentialDeparture
from app.services.post_aggregator import PostGroup, aggregate_posts
from app.services.realtime_index import index_realtime
from app.services.static_index import StaticIndex, build_static_index, resolve_platform_stop_ids
from app.utils.time_utils import previous_day

logger = logging.getLogger("departures.pipeline")

MISSING_DATA_ERROR = "Missing data or relevant stops for calculation."


@dataclass(frozen=True)
class BoardConfig:
    window_minutes: int = 90
    departures_per_post: int = 5
    pinned_group_name: str = ""
    platform_id_template: str = "U{stop_id}Z"
    direction_names: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    alert_language: str = ""

    @classmethod
    def from_settings(cls) -> "BoardConfig":
        return cls(
            window_minutes=settings.TIME_WINDOW_MINUTES,
            departures_per_post=settings.DEPARTURES_PER_POST,
            pinned_group_name=settings.PINNED_GROUP_NAME,
            platform_id_template=settings.PLATFORM_ID_TEMPLATE,
            direction_names=load_direction_names(),
            alert_language=settings.ALERT_LANGUAGE,
        )


def board_now() -> datetime:
    """Current time in the board's timezone (system local time when unset)."""
    if settings.BOARD_TIMEZONE:
        return datetime.now(ZoneInfo(settings.BOARD_TIMEZONE))
    return datetime.now()


def compute_potential_departures(
    index: StaticIndex,
    dataset: StaticDataset,
    feed: Optional[gtfs_realtime_pb2.FeedMessage],
    now: datetime,
    options: BoardOptions,
) -> List[PotentialDeparture]:
    today = now.date()
    active_today = active_service_ids(dataset, today)
    active_yesterday = active_service_ids(dataset, previous_day(today))
    trip_updates, vehicles = index_realtime(feed)
    estimated = estimate_delays(index, vehicles, trip_updates, now.tzinfo)
    calculator = DepartureCalculator(
        index,
        options,
        now,
        active_services=active_today,
        previous_day_services=active_yesterday,
        trip_updates=trip_updates,
        vehicles=vehicles,
        estimated_delays=estimated,
    )
    return calculator.calculate(dataset.stop_times)


def to_departure_posts(posts: List[PostGroup]) -> List[DeparturePost]:
    return [
        DeparturePost(
            PostID=post.post_id,
            Name=post.name,
            Departures=[
                Departure(
                    LineId=dep.route_id,
                    LineName=dep.line_name,
                    RouteId=dep.trip_id,
                    FinalStop=dep.final_stop,
                    IsLowFloor=dep.is_low_floor,
                    Platform=dep.platform,
                    TimeMark=dep.time_mark,
                )
                for dep in post.departures
            ],
        )
        for post in posts
    ]


def build_departures(
    stop_id: Optional[str],
    dataset: Optional[StaticDataset],
    feed: Optional[gtfs_realtime_pb2.FeedMessage],
    now: datetime,
    config: Optional[BoardConfig] = None,
    index: Optional[StaticIndex] = None,
) -> DeparturesResult:
    """Run one full pass and return the board for `stop_id`.

    Missing prerequisites and unexpected failures never raise: the result
    carries an empty PostList and the error text instead.
    """
    config = config or BoardConfig.from_settings()
    result = DeparturesResult(StopID=display_stop_id(stop_id))
    try:
        result.Message = extract_alert_message(feed, stop_id, config.alert_language)
        if not stop_id or dataset is None:
            result.Error = MISSING_DATA_ERROR
            return result
        index = index or build_static_index(dataset)
        platform_ids = resolve_platform_stop_ids(stop_id, index.stops, config.platform_id_template)
        if not platform_ids:
            result.Error = MISSING_DATA_ERROR
            return result
        options = BoardOptions(
            stop_id=stop_id,
            platform_stop_ids=platform_ids,
            window_minutes=config.window_minutes,
            departures_per_post=config.departures_per_post,
            direction_names=config.direction_names,
            pinned_group_name=config.pinned_group_name,
        )
        candidates = compute_potential_departures(index, dataset, feed, now, options)
        posts = aggregate_posts(candidates, config.departures_per_post, config.pinned_group_name)
        result.PostList = to_departure_posts(posts)
        logger.debug(
            "Pass for stop %s: %d platforms, %d candidates, %d posts",
            stop_id, len(platform_ids), len(candidates), len(posts),
        )
    except Exception as e:
        logger.exception("Departure calculation failed for stop %s", stop_id)
        result.PostList = []
        result.Error = str(e) or e.__class__.__name__
    return result

from datetime import date
from typing import FrozenSet

from app.core.static_dataset import StaticDataset
from app.utils.time_utils import weekday_name, yyyymmdd


def active_service_ids(dataset: StaticDataset, day: date) -> FrozenSet[str]:
    """Compute the set of service_id values active on `day`.

    Weekly rules from `calendar` first, then the `calendar_dates` exceptions
    for exactly that date in file order: type 1 adds, type 2 removes.
    """
    date_str = yyyymmdd(day)
    weekday_flag = weekday_name(day)
    active = set()
    for row in dataset.calendar:
        sid = row.get("service_id")
        if not sid or row.get(weekday_flag) != "1":
            continue
        start = row.get("start_date") or ""
        end = row.get("end_date") or ""
        if (not start or start <= date_str) and (not end or date_str <= end):
            active.add(sid)
    # apply calendar_dates overrides
    for row in dataset.calendar_dates:
        if row.get("date") != date_str:
            continue
        sid = row.get("service_id")
        if not sid:
            continue
        et = row.get("exception_type")
        if et == "1":
            active.add(sid)
        elif et == "2":
            active.discard(sid)
    return frozenset(active)

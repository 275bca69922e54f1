from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from app.services.departure_calculator import PotentialDeparture


@dataclass(frozen=True)
class PostGroup:
    post_id: int
    name: str
    departures: Tuple[PotentialDeparture, ...]


def _post_sort_key(pinned_name: str):
    def key(post: PostGroup):
        return (post.name != pinned_name if pinned_name else True, post.name.casefold(), post.name)

    return key


def aggregate_posts(
    departures: Iterable[PotentialDeparture],
    per_post: int = 5,
    pinned_name: str = "",
) -> List[PostGroup]:
    """Group departures into posts by grouping key.

    Each post keeps its `per_post` soonest departures by effective time.
    PostIDs follow first appearance of the group; the returned list is sorted
    by name with `pinned_name` always first.
    """
    groups: Dict[str, List[PotentialDeparture]] = {}
    for dep in departures:
        groups.setdefault(dep.grouping_key, []).append(dep)

    posts: List[PostGroup] = []
    post_id = 1
    for name, members in groups.items():
        members.sort(key=lambda d: d.effective_time)
        kept = tuple(members[: max(per_post, 0)])
        if kept:
            posts.append(PostGroup(post_id=post_id, name=name, departures=kept))
            post_id += 1
    posts.sort(key=_post_sort_key(pinned_name))
    return posts

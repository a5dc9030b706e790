from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from . import places
from .db import create_group, find_group_by_place_id, list_groups, list_user_group_ids
from .schemas import Group

logger = logging.getLogger(__name__)

SERVICE_STATE = "MI"
SERVICE_CITY = "Detroit"

# (first three zip digits low, high, state); ranges are inclusive.
_ZIP_PREFIX_STATES = [
    (100, 149, "NY"),
    (300, 319, "GA"),
    (320, 342, "FL"),
    (344, 344, "FL"),
    (346, 346, "FL"),
    (480, 499, "MI"),
    (600, 629, "IL"),
    (750, 799, "TX"),
    (900, 908, "CA"),
    (910, 928, "CA"),
    (930, 961, "CA"),
]


def state_from_zip(zip_code: str) -> Optional[str]:
    prefix = zip_code.strip()[:3]
    if len(prefix) != 3 or not prefix.isdigit():
        return None
    value = int(prefix)
    for low, high, state in _ZIP_PREFIX_STATES:
        if low <= value <= high:
            return state
    return None


def _visible_for_zip(group: Group, zip_code: str) -> bool:
    if not group.is_external:
        return True
    if zip_code.startswith("48"):
        return group.state == SERVICE_STATE or group.city == SERVICE_CITY or not group.city
    user_state = state_from_zip(zip_code)
    if user_state and group.state:
        return group.state == user_state
    return group.city != SERVICE_CITY and group.state != SERVICE_STATE


def filter_groups_for_zip(groups: Iterable[Group], zip_code: Optional[str]) -> List[Group]:
    if not zip_code:
        return list(groups)
    return [group for group in groups if _visible_for_zip(group, zip_code.strip())]


def browse_groups(user_id: Optional[int] = None, zip_code: Optional[str] = None) -> List[Group]:
    groups = filter_groups_for_zip(list_groups(), zip_code)
    if user_id is None:
        return groups
    joined = list_user_group_ids(user_id)
    return [group.model_copy(update={"user_membership": group.id in joined}) for group in groups]


async def import_local_groups(zip_code: str) -> List[Group]:
    """Create external groups for nearby maternal health resources not seen before."""
    candidates = await places.search_maternal_health_resources(zip_code)
    imported = []
    for candidate in candidates:
        if find_group_by_place_id(candidate["google_place_id"]):
            continue
        imported.append(
            create_group(
                {
                    **candidate,
                    "type": "resource",
                    "zip_code": zip_code,
                    "is_external": True,
                }
            )
        )
    logger.info(
        "local groups imported",
        extra={"zip_code": zip_code, "candidates": len(candidates), "imported": len(imported)},
    )
    return imported

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from apps.edusave.errors import ValidationError
from apps.edusave.services.models import SCHEDULE_TYPES, TopUpSchedule

STATUS_GROUPS = {
    "all": None,
    "scheduled": ("scheduled", "processing"),
    "completed": ("completed", "failed"),
}

SORT_ORDERS = ("created_desc", "scheduled_earliest", "scheduled_latest")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created(s: TopUpSchedule) -> datetime:
    return s.created_at or _EPOCH


def filter_schedules(
    schedules: Iterable[TopUpSchedule],
    status: str = "all",
    type_: str = "all",
    min_amount: Optional[Decimal] = None,
    sort: str = "created_desc",
) -> List[TopUpSchedule]:
    if status not in STATUS_GROUPS:
        raise ValidationError(f"Unknown status filter: {status}")
    if sort not in SORT_ORDERS:
        raise ValidationError(f"Unknown sort order: {sort}")
    if type_ not in (None, "", "all") and type_ not in SCHEDULE_TYPES:
        raise ValidationError(f"Unknown schedule type: {type_}")

    group = STATUS_GROUPS[status]
    out = [
        s
        for s in schedules
        if (group is None or s.status in group)
        and (type_ in (None, "", "all") or s.type == type_)
        and (min_amount is None or s.amount >= min_amount)
    ]

    if sort == "created_desc":
        out.sort(key=_created, reverse=True)
    else:
        out.sort(key=lambda s: s.scheduled_at(), reverse=(sort == "scheduled_latest"))
    return out


def upcoming_schedules(schedules: Iterable[TopUpSchedule]) -> List[TopUpSchedule]:
    pending = [s for s in schedules if s.status in STATUS_GROUPS["scheduled"]]
    return sorted(pending, key=lambda s: s.scheduled_at())


def schedule_counts(schedules: Iterable[TopUpSchedule]) -> Dict[str, int]:
    counts = {"scheduled": 0, "completed": 0}
    for s in schedules:
        if s.status in counts:
            counts[s.status] += 1
    return counts

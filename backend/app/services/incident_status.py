"""Incident workflow status derived from info completeness and deadlines.

The status is never trusted from storage. It is recomputed from the incident
snapshot, the current instant and the configured deadline days:

1. 3rd info complete -> Completed (terminal, regardless of lateness)
2. 2nd info complete -> ThirdInfoDelayed once now > input_date + third days,
   otherwise ThirdInfoInvestigation
3. otherwise         -> SecondInfoDelayed once now > creation_date + second days,
   otherwise SecondInfoInvestigation
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable


DEFAULT_DEADLINE_DAYS = 7


class IncidentStatus(str, Enum):
    SECOND_INFO_INVESTIGATION = "SecondInfoInvestigation"
    SECOND_INFO_DELAYED = "SecondInfoDelayed"
    THIRD_INFO_INVESTIGATION = "ThirdInfoInvestigation"
    THIRD_INFO_DELAYED = "ThirdInfoDelayed"
    COMPLETED = "Completed"

    def __str__(self) -> str:
        return self.value


SECOND_INFO_STATUSES: frozenset[IncidentStatus] = frozenset(
    {IncidentStatus.SECOND_INFO_INVESTIGATION, IncidentStatus.SECOND_INFO_DELAYED}
)
THIRD_INFO_STATUSES: frozenset[IncidentStatus] = frozenset(
    {IncidentStatus.THIRD_INFO_INVESTIGATION, IncidentStatus.THIRD_INFO_DELAYED}
)


STATUS_LABELS_JA: dict[IncidentStatus, str] = {
    IncidentStatus.SECOND_INFO_INVESTIGATION: "2次情報調査中",
    IncidentStatus.SECOND_INFO_DELAYED: "2次情報遅延",
    IncidentStatus.THIRD_INFO_INVESTIGATION: "3次情報調査中",
    IncidentStatus.THIRD_INFO_DELAYED: "3次情報遅延",
    IncidentStatus.COMPLETED: "完了",
}


@dataclass(frozen=True)
class DeadlineDays:
    second_info: int = DEFAULT_DEADLINE_DAYS
    third_info: int = DEFAULT_DEADLINE_DAYS


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive values are stored as UTC, so treat them that way."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_status(value: str | IncidentStatus | None) -> IncidentStatus | None:
    """Map a stored/submitted status (enum value or Japanese label) to the enum."""
    if value is None:
        return None
    if isinstance(value, IncidentStatus):
        return value
    candidate = value.strip()
    for status in IncidentStatus:
        if candidate == status.value or candidate == STATUS_LABELS_JA[status]:
            return status
    return None


def _has_text(value: str | None) -> bool:
    return bool(value)


def has_second_info(incident: Any) -> bool:
    """2nd info has been started (input date entered)."""
    return incident.input_date is not None


def has_third_info(incident: Any) -> bool:
    """3rd info has been started (input date entered)."""
    return incident.input_date3 is not None


def is_second_info_completed(incident: Any) -> bool:
    return (
        incident.input_date is not None
        and _has_text(incident.process_description)
        and _has_text(incident.cause)
    )


def is_third_info_completed(incident: Any) -> bool:
    return (
        is_second_info_completed(incident)
        and incident.input_date3 is not None
        and _has_text(incident.recurrence_prevention_measures)
    )


def second_info_deadline(incident: Any, *, days: int = DEFAULT_DEADLINE_DAYS) -> datetime:
    return as_utc(incident.creation_date) + timedelta(days=days)


def third_info_deadline(incident: Any, *, days: int = DEFAULT_DEADLINE_DAYS) -> datetime | None:
    if incident.input_date is None:
        return None
    return as_utc(incident.input_date) + timedelta(days=days)


def incident_status_deadline(incident: Any, *, deadline_days: DeadlineDays | None = None) -> datetime | None:
    """Return the instant after which the incident's current phase counts as delayed.

    None for completed incidents, which have no further deadline.
    """
    days = deadline_days or DeadlineDays()
    if is_third_info_completed(incident):
        return None
    if is_second_info_completed(incident):
        return third_info_deadline(incident, days=days.third_info)
    return second_info_deadline(incident, days=days.second_info)


def calculate_incident_status(
    incident: Any,
    *,
    now: datetime | None = None,
    second_info_deadline_days: int = DEFAULT_DEADLINE_DAYS,
    third_info_deadline_days: int = DEFAULT_DEADLINE_DAYS,
) -> IncidentStatus:
    current = as_utc(now) if now is not None else now_utc()

    if is_third_info_completed(incident):
        return IncidentStatus.COMPLETED

    if is_second_info_completed(incident):
        deadline = third_info_deadline(incident, days=third_info_deadline_days)
        if deadline is not None and current > deadline:
            return IncidentStatus.THIRD_INFO_DELAYED
        return IncidentStatus.THIRD_INFO_INVESTIGATION

    if current > second_info_deadline(incident, days=second_info_deadline_days):
        return IncidentStatus.SECOND_INFO_DELAYED
    return IncidentStatus.SECOND_INFO_INVESTIGATION


def calculate_with_deadline_days(
    incident: Any,
    *,
    deadline_days: DeadlineDays,
    now: datetime | None = None,
) -> IncidentStatus:
    return calculate_incident_status(
        incident,
        now=now,
        second_info_deadline_days=deadline_days.second_info,
        third_info_deadline_days=deadline_days.third_info,
    )


def calculate_incident_statuses(
    incidents: Iterable[Any],
    *,
    deadline_days: DeadlineDays | None = None,
    now: datetime | None = None,
) -> dict[int, IncidentStatus]:
    """Compute statuses for a batch; every incident is evaluated on its own."""
    days = deadline_days or DeadlineDays()
    current = now or now_utc()
    return {
        incident.id: calculate_with_deadline_days(incident, deadline_days=days, now=current)
        for incident in incidents
    }

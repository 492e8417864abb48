"""Role/status gates for creating and updating each incident info stage."""

from __future__ import annotations

from collections.abc import Mapping
from enum import IntEnum
from typing import Any

from .incident_status import (
    SECOND_INFO_STATUSES,
    THIRD_INFO_STATUSES,
    IncidentStatus,
    has_second_info,
    has_third_info,
    parse_status,
)


class UserRole(IntEnum):
    SYSTEM_ADMIN = 1
    OFFICE_ADMIN = 2
    GENERAL_OFFICE = 3
    THREE_PL = 4


ADMIN_ROLES: frozenset[UserRole] = frozenset({UserRole.SYSTEM_ADMIN, UserRole.OFFICE_ADMIN})
FIRST_INFO_ROLES: frozenset[UserRole] = ADMIN_ROLES | {UserRole.GENERAL_OFFICE}
FOLLOW_UP_ROLES: frozenset[UserRole] = ADMIN_ROLES | {UserRole.THREE_PL}

FIRST_INFO_FIELDS: tuple[str, ...] = (
    "creation_date",
    "organization",
    "creator",
    "occurrence_datetime",
    "occurrence_location",
    "shipping_warehouse",
    "shipping_company",
    "trouble_category",
    "trouble_detail_category",
    "details",
    "voucher_number",
    "customer_code",
    "product_code",
    "quantity",
    "unit",
)
SECOND_INFO_FIELDS: tuple[str, ...] = ("input_date", "process_description", "cause", "photo_data_uri")
THIRD_INFO_FIELDS: tuple[str, ...] = ("input_date3", "recurrence_prevention_measures")

# Blank strings in these fields are treated as "not submitted".
_TEXT_FIELDS_REQUIRING_CONTENT: frozenset[str] = frozenset(
    {"details", "process_description", "cause", "photo_data_uri", "recurrence_prevention_measures"}
)

PERMISSION_KEYS: tuple[str, ...] = (
    "canCreateFirstInfo",
    "canUpdateFirstInfo",
    "canCreateSecondInfo",
    "canUpdateSecondInfo",
    "canCreateThirdInfo",
    "canUpdateThirdInfo",
)


def parse_role(role_id: Any) -> UserRole | None:
    """Map a stored role id to `UserRole`, or None when it is not an exact known id."""
    if isinstance(role_id, bool):
        return None
    if isinstance(role_id, str):
        role_id = role_id.strip()
        if not role_id.isdigit():
            return None
        role_id = int(role_id)
    if not isinstance(role_id, int):
        return None
    try:
        return UserRole(role_id)
    except ValueError:
        return None


def can_create_first_info(role_id: Any) -> bool:
    return parse_role(role_id) in FIRST_INFO_ROLES


def can_update_first_info(role_id: Any, status: str | IncidentStatus | None, *, has_second_info: bool = False) -> bool:
    role = parse_role(role_id)
    if role in ADMIN_ROLES:
        return True
    if role is UserRole.GENERAL_OFFICE:
        # 1st info locks for general office once 2nd info has been started.
        return parse_status(status) in SECOND_INFO_STATUSES and not has_second_info
    return False


def can_create_second_info(role_id: Any, status: str | IncidentStatus | None, *, has_second_info: bool = False) -> bool:
    if parse_role(role_id) not in FOLLOW_UP_ROLES:
        return False
    # Once started, further 2nd info writes are updates.
    return parse_status(status) in SECOND_INFO_STATUSES and not has_second_info


def can_update_second_info(role_id: Any, status: str | IncidentStatus | None, *, has_third_info: bool = False) -> bool:
    role = parse_role(role_id)
    if role in ADMIN_ROLES:
        return True
    if role is UserRole.THREE_PL:
        return parse_status(status) in THIRD_INFO_STATUSES and not has_third_info
    return False


def can_create_third_info(role_id: Any, status: str | IncidentStatus | None, *, has_third_info: bool = False) -> bool:
    if parse_role(role_id) not in FOLLOW_UP_ROLES:
        return False
    return parse_status(status) in THIRD_INFO_STATUSES and not has_third_info


def can_update_third_info(
    role_id: Any,
    status: str | IncidentStatus | None,
    *,
    has_third_info: bool = False,
    recurrence_text_empty: bool = True,
) -> bool:
    if parse_role(role_id) not in FOLLOW_UP_ROLES:
        return False

    current = parse_status(status)
    if has_third_info:
        if current is IncidentStatus.COMPLETED:
            return True
        return current in THIRD_INFO_STATUSES and recurrence_text_empty

    # Completed implies 3rd info was started, so this branch is not expected to be hit.
    return current is IncidentStatus.COMPLETED


def get_incident_permissions(role_id: Any, status: str | IncidentStatus | None, incident: Any | None) -> dict[str, bool]:
    """Return all six stage permissions for a role against an incident snapshot.

    With no incident (new record form) only 1st info creation can be granted.
    """
    if incident is None:
        return {key: key == "canCreateFirstInfo" and can_create_first_info(role_id) for key in PERMISSION_KEYS}

    second_started = has_second_info(incident)
    third_started = has_third_info(incident)
    return {
        "canCreateFirstInfo": can_create_first_info(role_id),
        "canUpdateFirstInfo": can_update_first_info(role_id, status, has_second_info=second_started),
        "canCreateSecondInfo": can_create_second_info(role_id, status, has_second_info=second_started),
        "canUpdateSecondInfo": second_started and can_update_second_info(role_id, status, has_third_info=third_started),
        "canCreateThirdInfo": can_create_third_info(role_id, status, has_third_info=third_started),
        "canUpdateThirdInfo": can_update_third_info(
            role_id,
            status,
            has_third_info=third_started,
            recurrence_text_empty=not incident.recurrence_prevention_measures,
        ),
    }


def _is_submitted(field: str, value: Any) -> bool:
    if value is None:
        return False
    if field in _TEXT_FIELDS_REQUIRING_CONTENT and isinstance(value, str):
        return value != ""
    return True


def submitted_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Drop unset values and blank text so only real changes reach the incident."""
    return {field: value for field, value in payload.items() if _is_submitted(field, value)}


def touched_info_phases(payload: Mapping[str, Any]) -> set[int]:
    """Return every info stage that has at least one submitted field in the payload."""
    submitted = submitted_fields(payload)
    phases: set[int] = set()
    for phase, fields in ((1, FIRST_INFO_FIELDS), (2, SECOND_INFO_FIELDS), (3, THIRD_INFO_FIELDS)):
        if any(field in submitted for field in fields):
            phases.add(phase)
    return phases


def get_updated_info_levels(payload: Mapping[str, Any], incident: Any) -> list[int]:
    """Classify a partial update into the info stages it creates or modifies.

    A stage counts when its fields are submitted and the stage is either already
    started or the payload supplies its input date. 1st info is only reported when
    no 2nd/3rd info field is submitted; mixed payloads are attributed to the later
    stage and the 1st info part must be authorised separately by the caller.
    """
    touched = touched_info_phases(payload)
    levels: list[int] = []

    if 2 in touched and (has_second_info(incident) or payload.get("input_date") is not None):
        levels.append(2)
    if 3 in touched and (has_third_info(incident) or payload.get("input_date3") is not None):
        levels.append(3)
    if touched == {1}:
        levels.append(1)

    return levels


def check_info_level_permission(level: int, role_id: Any, status: str | IncidentStatus | None, incident: Any) -> bool:
    """Apply the create-or-update rule matching `level` for an existing incident."""
    if level == 1:
        return can_update_first_info(role_id, status, has_second_info=has_second_info(incident))
    if level == 2:
        if not has_second_info(incident):
            return can_create_second_info(role_id, status, has_second_info=False)
        return can_update_second_info(role_id, status, has_third_info=has_third_info(incident))
    if level == 3:
        if not has_third_info(incident):
            return can_create_third_info(role_id, status, has_third_info=False)
        return can_update_third_info(
            role_id,
            status,
            has_third_info=True,
            recurrence_text_empty=not incident.recurrence_prevention_measures,
        )
    return False

"""Incident lifecycle use-cases used by incident router endpoints."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import extract, func, or_
from sqlalchemy.orm import Session

from ..config import settings
from ..domain_errors import DomainError
from ..models import Incident, User
from ..schemas import (
    IncidentCreate,
    IncidentListResponse,
    IncidentPermissionsResponse,
    IncidentResponse,
    IncidentSearch,
    IncidentUpdate,
)
from ..services.incident_permissions import (
    ADMIN_ROLES,
    can_create_first_info,
    check_info_level_permission,
    get_incident_permissions,
    get_updated_info_levels,
    parse_role,
    submitted_fields,
    touched_info_phases,
)
from ..services.incident_status import (
    STATUS_LABELS_JA,
    DeadlineDays,
    IncidentStatus,
    calculate_with_deadline_days,
    now_utc,
)
from ..services.status_cache import IncidentStatusCache
from ..services.system_parameters import SystemParameterService, resolve_deadline_days

logger = logging.getLogger(__name__)


def _get_incident_or_404(*, db: Session, incident_id: int) -> Incident:
    incident = db.query(Incident).filter(Incident.id == incident_id).first()
    if not incident:
        raise DomainError(
            code="INCIDENT_NOT_FOUND",
            http_status=404,
            message="Incident not found",
            details={"incident_id": incident_id},
        )
    return incident


def build_incident_response(incident: Incident, status: IncidentStatus) -> IncidentResponse:
    data: dict[str, Any] = {
        field: getattr(incident, field)
        for field in IncidentResponse.model_fields
        if field not in {"status", "status_label"}
    }
    return IncidentResponse(**data, status=status, status_label=STATUS_LABELS_JA[status])


def normalize_pagination(search: IncidentSearch) -> IncidentSearch:
    """Clamp page/limit to sane values instead of rejecting the request."""
    page = search.page
    limit = search.limit
    if page < 1:
        logger.info("Incident list page < 1, using 1 (got %s)", page)
        page = 1
    if limit < 1:
        logger.info("Incident list limit < 1, using default (got %s)", limit)
        limit = settings.INCIDENT_PAGE_SIZE_DEFAULT
    if limit > settings.INCIDENT_PAGE_SIZE_MAX:
        logger.info("Incident list limit above maximum, clamping (got %s)", limit)
        limit = settings.INCIDENT_PAGE_SIZE_MAX
    return search.model_copy(update={"page": page, "limit": limit})


def apply_incident_filters(query: Any, search: IncidentSearch) -> Any:
    """Apply the search form filters (status is derived and filtered separately)."""
    if search.search:
        term = search.search.lower()
        query = query.filter(
            or_(
                func.lower(Incident.details).contains(term, autoescape=True),
                func.lower(Incident.voucher_number).contains(term, autoescape=True),
                func.lower(Incident.customer_code).contains(term, autoescape=True),
                func.lower(Incident.product_code).contains(term, autoescape=True),
            )
        )
    if search.year is not None:
        query = query.filter(extract("year", Incident.occurrence_datetime) == search.year)
    if search.month is not None:
        query = query.filter(extract("month", Incident.occurrence_datetime) == search.month)
    if search.warehouse is not None:
        query = query.filter(Incident.shipping_warehouse == search.warehouse)
    if search.trouble_category is not None:
        query = query.filter(Incident.trouble_category == search.trouble_category)
    return query


def _statuses_for(
    incidents: list[Incident],
    *,
    deadline_days: DeadlineDays,
    status_cache: IncidentStatusCache | None,
    now: datetime,
) -> dict[int, IncidentStatus]:
    if status_cache is None:
        return {
            incident.id: calculate_with_deadline_days(incident, deadline_days=deadline_days, now=now)
            for incident in incidents
        }
    status_cache.clear_expired(incidents, deadline_days=deadline_days, now=now)
    return status_cache.get_statuses(incidents, deadline_days=deadline_days, now=now)


def list_incidents_use_case(
    *,
    db: Session,
    search: IncidentSearch,
    parameters: SystemParameterService | None = None,
    status_cache: IncidentStatusCache | None = None,
    now: datetime | None = None,
) -> IncidentListResponse:
    """Search incidents, newest occurrence first, each with its derived status."""
    search = normalize_pagination(search)
    current = now or now_utc()
    deadline_days = resolve_deadline_days(parameters)
    offset = (search.page - 1) * search.limit

    query = apply_incident_filters(db.query(Incident), search).order_by(Incident.occurrence_datetime.desc())

    if search.status is not None:
        # Status depends on the clock; derive it for every match before paging.
        incidents = query.all()
        statuses = _statuses_for(incidents, deadline_days=deadline_days, status_cache=status_cache, now=current)
        matching = [incident for incident in incidents if statuses[incident.id] == search.status]
        total = len(matching)
        page_items = matching[offset : offset + search.limit]
    else:
        total = query.count()
        page_items = query.offset(offset).limit(search.limit).all()
        statuses = _statuses_for(page_items, deadline_days=deadline_days, status_cache=status_cache, now=current)

    return IncidentListResponse(
        incidents=[build_incident_response(incident, statuses[incident.id]) for incident in page_items],
        total=total,
        page=search.page,
        limit=search.limit,
    )


def get_incident_use_case(
    *,
    db: Session,
    incident_id: int,
    parameters: SystemParameterService | None = None,
    now: datetime | None = None,
) -> IncidentResponse:
    incident = _get_incident_or_404(db=db, incident_id=incident_id)
    status = calculate_with_deadline_days(incident, deadline_days=resolve_deadline_days(parameters), now=now)
    return build_incident_response(incident, status)


def create_incident_use_case(
    *,
    db: Session,
    payload: IncidentCreate,
    current_user: User,
    parameters: SystemParameterService | None = None,
    now: datetime | None = None,
) -> IncidentResponse:
    """Record a new incident (1st info)."""
    if not can_create_first_info(current_user.role_id):
        raise DomainError(
            code="INCIDENT_CREATE_FORBIDDEN",
            http_status=403,
            message="Your role cannot register new incidents",
        )

    incident = Incident(
        **payload.model_dump(),
        created_by=current_user.id,
        updated_by=current_user.id,
    )
    status = calculate_with_deadline_days(incident, deadline_days=resolve_deadline_days(parameters), now=now)
    incident.status = status.value

    db.add(incident)
    db.commit()
    db.refresh(incident)

    logger.info("Incident %s created by user %s", incident.id, current_user.id)
    return build_incident_response(incident, status)


def _apply_update(incident: Incident, changes: dict[str, Any]) -> None:
    # Blank text counts as not submitted and is never written.
    for field, value in submitted_fields(changes).items():
        setattr(incident, field, value)


def update_incident_use_case(
    *,
    db: Session,
    incident_id: int,
    payload: IncidentUpdate,
    current_user: User,
    parameters: SystemParameterService | None = None,
    status_cache: IncidentStatusCache | None = None,
    now: datetime | None = None,
) -> IncidentResponse:
    """Apply a single-stage partial update after checking stage permissions."""
    incident = _get_incident_or_404(db=db, incident_id=incident_id)
    changes = payload.model_dump(exclude_unset=True)

    touched = touched_info_phases(changes)
    if not touched:
        raise DomainError(
            code="INCIDENT_EMPTY_UPDATE",
            http_status=400,
            message="No incident fields were submitted",
        )
    if 1 in touched and len(touched) > 1:
        raise DomainError(
            code="INCIDENT_MIXED_PHASE_UPDATE",
            http_status=400,
            message="1st info cannot be changed together with 2nd/3rd info; submit them separately",
            details={"info_levels": sorted(touched)},
        )

    deadline_days = resolve_deadline_days(parameters)
    current_status = calculate_with_deadline_days(incident, deadline_days=deadline_days, now=now)

    levels = get_updated_info_levels(changes, incident)
    unclassified = sorted(touched - set(levels))
    if unclassified:
        raise DomainError(
            code="INCIDENT_INPUT_DATE_REQUIRED",
            http_status=400,
            message="Input date is required when registering this info stage",
            details={"info_levels": unclassified},
        )

    for level in levels:
        if not check_info_level_permission(level, current_user.role_id, current_status, incident):
            raise DomainError(
                code="INCIDENT_UPDATE_FORBIDDEN",
                http_status=403,
                message=f"Your role cannot change info level {level} in the current status",
                details={"info_level": level, "status": current_status.value},
            )

    _apply_update(incident, changes)
    incident.updated_by = current_user.id
    incident.updated_at = datetime.now(timezone.utc)

    new_status = calculate_with_deadline_days(incident, deadline_days=deadline_days, now=now)
    incident.status = new_status.value
    db.commit()

    if status_cache is not None:
        status_cache.invalidate(incident.id)

    if new_status != current_status:
        logger.info(
            "Incident %s status %s -> %s (user %s)",
            incident.id,
            current_status.value,
            new_status.value,
            current_user.id,
        )
    return build_incident_response(incident, new_status)


def delete_incident_use_case(
    *,
    db: Session,
    incident_id: int,
    current_user: User,
    status_cache: IncidentStatusCache | None = None,
) -> None:
    if parse_role(current_user.role_id) not in ADMIN_ROLES:
        raise DomainError(
            code="INCIDENT_DELETE_FORBIDDEN",
            http_status=403,
            message="Only administrators can delete incidents",
        )

    incident = _get_incident_or_404(db=db, incident_id=incident_id)
    db.delete(incident)
    db.commit()

    if status_cache is not None:
        status_cache.invalidate(incident_id)
    logger.info("Incident %s deleted by user %s", incident_id, current_user.id)


def get_incident_permissions_use_case(
    *,
    db: Session,
    incident_id: int | None,
    current_user: User,
    parameters: SystemParameterService | None = None,
    now: datetime | None = None,
) -> IncidentPermissionsResponse:
    """Stage permissions of the current user for an incident (or a new one)."""
    if incident_id is None:
        return IncidentPermissionsResponse(
            role_id=current_user.role_id,
            permissions=get_incident_permissions(current_user.role_id, None, None),
        )

    incident = _get_incident_or_404(db=db, incident_id=incident_id)
    status = calculate_with_deadline_days(incident, deadline_days=resolve_deadline_days(parameters), now=now)
    return IncidentPermissionsResponse(
        incident_id=incident.id,
        status=status,
        role_id=current_user.role_id,
        permissions=get_incident_permissions(current_user.role_id, status, incident),
    )

"""Incident endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..dependencies import get_parameter_service, get_status_cache
from ..models import User
from ..schemas import (
    DashboardStatsResponse,
    IncidentCreate,
    IncidentListResponse,
    IncidentPermissionsResponse,
    IncidentResponse,
    IncidentSearch,
    IncidentUpdate,
)
from ..services.incident_status import IncidentStatus
from ..services.status_cache import IncidentStatusCache
from ..services.system_parameters import SystemParameterService
from ..use_cases.incident_reports import export_incidents_csv_use_case, get_dashboard_stats_use_case
from ..use_cases.incidents import (
    create_incident_use_case,
    delete_incident_use_case,
    get_incident_permissions_use_case,
    get_incident_use_case,
    list_incidents_use_case,
    update_incident_use_case,
)

router = APIRouter(prefix="/incidents", tags=["incidents"])

EXPORT_FILE_PREFIX = "物流品質トラブル一覧"


def incident_search_params(
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    warehouse: Optional[int] = None,
    status: Optional[IncidentStatus] = None,
    trouble_category: Optional[int] = None,
) -> IncidentSearch:
    return IncidentSearch(
        page=page,
        limit=limit,
        search=search,
        year=year,
        month=month,
        warehouse=warehouse,
        status=status,
        trouble_category=trouble_category,
    )


@router.get("", response_model=IncidentListResponse)
def list_incidents(
    search: IncidentSearch = Depends(incident_search_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    parameters: SystemParameterService = Depends(get_parameter_service),
    status_cache: IncidentStatusCache = Depends(get_status_cache),
):
    """Search incidents (paginated)."""
    return list_incidents_use_case(db=db, search=search, parameters=parameters, status_cache=status_cache)


# Fixed paths must be registered before /{incident_id}.
@router.get("/export")
def export_incidents(
    search: IncidentSearch = Depends(incident_search_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    parameters: SystemParameterService = Depends(get_parameter_service),
):
    """Download matching incidents as CSV."""
    content = export_incidents_csv_use_case(db=db, search=search, parameters=parameters)
    stamp = datetime.now().strftime("%Y%m%d")
    filename = f"{EXPORT_FILE_PREFIX}_{stamp}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": (
                f"attachment; filename=\"incidents_{stamp}.csv\"; filename*=UTF-8''{quote(filename)}"
            )
        },
    )


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
def dashboard_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    parameters: SystemParameterService = Depends(get_parameter_service),
):
    return get_dashboard_stats_use_case(db=db, parameters=parameters)


@router.get("/permissions", response_model=IncidentPermissionsResponse)
def new_incident_permissions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Permissions of the caller for an incident that does not exist yet."""
    return get_incident_permissions_use_case(db=db, incident_id=None, current_user=current_user)


@router.get("/{incident_id}", response_model=IncidentResponse)
def get_incident(
    incident_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    parameters: SystemParameterService = Depends(get_parameter_service),
):
    return get_incident_use_case(db=db, incident_id=incident_id, parameters=parameters)


@router.get("/{incident_id}/permissions", response_model=IncidentPermissionsResponse)
def incident_permissions(
    incident_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    parameters: SystemParameterService = Depends(get_parameter_service),
):
    """Which info stages the caller may create or update right now."""
    return get_incident_permissions_use_case(
        db=db,
        incident_id=incident_id,
        current_user=current_user,
        parameters=parameters,
    )


@router.post("", response_model=IncidentResponse, status_code=201)
def create_incident(
    payload: IncidentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    parameters: SystemParameterService = Depends(get_parameter_service),
):
    """Register a new incident (1st info)."""
    return create_incident_use_case(db=db, payload=payload, current_user=current_user, parameters=parameters)


@router.put("/{incident_id}", response_model=IncidentResponse)
def update_incident(
    incident_id: int,
    payload: IncidentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    parameters: SystemParameterService = Depends(get_parameter_service),
    status_cache: IncidentStatusCache = Depends(get_status_cache),
):
    """Update one info stage of an incident."""
    return update_incident_use_case(
        db=db,
        incident_id=incident_id,
        payload=payload,
        current_user=current_user,
        parameters=parameters,
        status_cache=status_cache,
    )


@router.delete("/{incident_id}", status_code=204)
def delete_incident(
    incident_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    status_cache: IncidentStatusCache = Depends(get_status_cache),
):
    delete_incident_use_case(db=db, incident_id=incident_id, current_user=current_user, status_cache=status_cache)
    return Response(status_code=204)

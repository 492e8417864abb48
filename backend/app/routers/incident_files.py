"""Incident attachment endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import IncidentFileCreate, IncidentFileResponse
from ..use_cases.incident_files import (
    create_incident_file_use_case,
    delete_incident_file_use_case,
    list_incident_files_use_case,
)

router = APIRouter(prefix="/incidents/{incident_id}/files", tags=["incident-files"])


@router.get("", response_model=list[IncidentFileResponse])
def list_incident_files(
    incident_id: int,
    info_level: Optional[int] = Query(None, ge=1, le=2),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Files of an incident, optionally for one info level."""
    return list_incident_files_use_case(db=db, incident_id=incident_id, info_level=info_level)


@router.post("", response_model=IncidentFileResponse, status_code=201)
def create_incident_file(
    incident_id: int,
    payload: IncidentFileCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return create_incident_file_use_case(db=db, incident_id=incident_id, payload=payload, current_user=current_user)


@router.delete("/{file_id}", status_code=204)
def delete_incident_file(
    incident_id: int,
    file_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    delete_incident_file_use_case(db=db, incident_id=incident_id, file_id=file_id, current_user=current_user)
    return Response(status_code=204)

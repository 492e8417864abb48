"""Incident attachment use-cases (files stored inline as data URIs)."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..config import settings
from ..domain_errors import DomainError
from ..models import Incident, IncidentFile, User
from ..schemas import IncidentFileCreate

logger = logging.getLogger(__name__)


def _ensure_incident_exists(*, db: Session, incident_id: int) -> None:
    exists = db.query(Incident.id).filter(Incident.id == incident_id).first()
    if not exists:
        raise DomainError(
            code="INCIDENT_NOT_FOUND",
            http_status=404,
            message="Incident not found",
            details={"incident_id": incident_id},
        )


def _data_uri_media_type(data_uri: str) -> str | None:
    """Media type of a `data:<type>[;params],<payload>` URI, or None if malformed."""
    if not data_uri.startswith("data:") or "," not in data_uri:
        return None
    header = data_uri[len("data:") : data_uri.index(",")]
    return header.split(";", 1)[0].strip().lower()


def validate_incident_file(payload: IncidentFileCreate) -> None:
    file_type = payload.file_type.strip().lower()
    if file_type not in settings.allowed_file_types_list:
        raise DomainError(
            code="INCIDENT_FILE_TYPE_NOT_ALLOWED",
            http_status=400,
            message=f"File type is not allowed: {payload.file_type}",
            details={"allowed": settings.allowed_file_types_list},
        )

    if payload.file_size > settings.MAX_UPLOAD_SIZE:
        raise DomainError(
            code="INCIDENT_FILE_TOO_LARGE",
            http_status=400,
            message=f"File too large. Max size: {settings.MAX_UPLOAD_SIZE // 1024 // 1024}MB",
            details={"file_size": payload.file_size, "max_size": settings.MAX_UPLOAD_SIZE},
        )

    media_type = _data_uri_media_type(payload.file_data_uri)
    if media_type != file_type:
        raise DomainError(
            code="INCIDENT_FILE_INVALID_DATA_URI",
            http_status=400,
            message="File data must be a data URI matching the declared file type",
        )


def list_incident_files_use_case(
    *,
    db: Session,
    incident_id: int,
    info_level: int | None = None,
) -> list[IncidentFile]:
    _ensure_incident_exists(db=db, incident_id=incident_id)
    query = db.query(IncidentFile).filter(IncidentFile.incident_id == incident_id)
    if info_level is not None:
        query = query.filter(IncidentFile.info_level == info_level)
    return query.order_by(IncidentFile.created_at, IncidentFile.id).all()


def create_incident_file_use_case(
    *,
    db: Session,
    incident_id: int,
    payload: IncidentFileCreate,
    current_user: User,
) -> IncidentFile:
    _ensure_incident_exists(db=db, incident_id=incident_id)
    validate_incident_file(payload)

    incident_file = IncidentFile(
        incident_id=incident_id,
        info_level=payload.info_level,
        file_data_uri=payload.file_data_uri,
        file_name=payload.file_name,
        file_type=payload.file_type.strip().lower(),
        file_size=payload.file_size,
    )
    db.add(incident_file)
    db.commit()
    db.refresh(incident_file)

    logger.info(
        "File %s attached to incident %s (info level %s) by user %s",
        incident_file.id,
        incident_id,
        payload.info_level,
        current_user.id,
    )
    return incident_file


def delete_incident_file_use_case(
    *,
    db: Session,
    incident_id: int,
    file_id: int,
    current_user: User,
) -> None:
    incident_file = db.query(IncidentFile).filter(
        IncidentFile.id == file_id,
        IncidentFile.incident_id == incident_id,
    ).first()
    if not incident_file:
        raise DomainError(
            code="INCIDENT_FILE_NOT_FOUND",
            http_status=404,
            message="File not found",
            details={"incident_id": incident_id, "file_id": file_id},
        )

    db.delete(incident_file)
    db.commit()
    logger.info("File %s removed from incident %s by user %s", file_id, incident_id, current_user.id)

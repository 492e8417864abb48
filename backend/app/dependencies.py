"""FastAPI dependencies for the incident workflow services."""
from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_db
from .services.status_cache import IncidentStatusCache
from .services.system_parameters import SystemParameterService


def get_parameter_service(db: Session = Depends(get_db)) -> SystemParameterService:
    """Parameter reader bound to the request session."""
    return SystemParameterService(db)


def get_status_cache() -> IncidentStatusCache:
    return IncidentStatusCache()

"""System parameter endpoints (deadline thresholds etc.)."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..dependencies import get_parameter_service
from ..domain_errors import DomainError
from ..models import User
from ..schemas import SystemParameterResponse, SystemParameterUpdate
from ..services.incident_permissions import UserRole, parse_role
from ..services.system_parameters import SystemParameterService

router = APIRouter(prefix="/system-parameters", tags=["system-parameters"])


@router.get("", response_model=list[SystemParameterResponse])
def list_system_parameters(
    current_user: User = Depends(get_current_user),
    parameters: SystemParameterService = Depends(get_parameter_service),
):
    return parameters.list_parameters()


@router.get("/{parameter_key}", response_model=SystemParameterResponse)
def get_system_parameter(
    parameter_key: str,
    current_user: User = Depends(get_current_user),
    parameters: SystemParameterService = Depends(get_parameter_service),
):
    parameter = parameters.get_parameter(parameter_key)
    if parameter is None:
        raise DomainError(
            code="PARAMETER_NOT_FOUND",
            http_status=404,
            message=f"System parameter not found: {parameter_key}",
        )
    return parameter


@router.put("/{parameter_key}", response_model=SystemParameterResponse)
def update_system_parameter(
    parameter_key: str,
    payload: SystemParameterUpdate,
    current_user: User = Depends(get_current_user),
    parameters: SystemParameterService = Depends(get_parameter_service),
):
    """Change a parameter value; the cached value is dropped immediately."""
    if parse_role(current_user.role_id) != UserRole.SYSTEM_ADMIN:
        raise DomainError(
            code="PARAMETER_UPDATE_FORBIDDEN",
            http_status=403,
            message="Only system administrators can change system parameters",
        )
    return parameters.update_parameter_value(parameter_key, payload.value, user_id=current_user.id)

"""Typed access to system_parameters rows with a Redis read-through cache."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, TypeVar

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..cache import get_redis
from ..config import settings
from ..domain_errors import DomainError
from ..models import SystemParameter
from .incident_status import DEFAULT_DEADLINE_DAYS, DeadlineDays

logger = logging.getLogger(__name__)

T = TypeVar("T")

SECOND_INFO_DEADLINE_DAYS = "SECOND_INFO_DEADLINE_DAYS"
THIRD_INFO_DEADLINE_DAYS = "THIRD_INFO_DEADLINE_DAYS"
DEADLINE_PARAMETER_KEYS: tuple[str, ...] = (SECOND_INFO_DEADLINE_DAYS, THIRD_INFO_DEADLINE_DAYS)

CACHE_KEY_PREFIX = "system_parameter:"

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


def parameter_cache_key(parameter_key: str) -> str:
    return f"{CACHE_KEY_PREFIX}{parameter_key}"


def _to_int(raw: str) -> int:
    return int(raw.strip())


def _to_bool(raw: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean: {raw!r}")


def _to_decimal(raw: str) -> Decimal:
    try:
        return Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal: {raw!r}") from exc


_CONVERTERS: dict[type, Callable[[str], Any]] = {
    int: _to_int,
    bool: _to_bool,
    Decimal: _to_decimal,
    str: str,
}

_DATA_TYPE_CONVERTERS: dict[str, Callable[[str], Any]] = {
    "int": _to_int,
    "bool": _to_bool,
    "decimal": _to_decimal,
    "string": str,
}


class SystemParameterService:
    """Resolve configuration parameters, never failing a read.

    Missing, inactive or malformed parameters resolve to the caller's default.
    Reads are cached for PARAMETER_CACHE_TTL_SECONDS; a write clears the cache
    entry of the parameter it changed.
    """

    def __init__(self, db: Session, *, cache_client: Any | None = None, ttl_seconds: int | None = None) -> None:
        self.db = db
        self._cache_client = cache_client
        self.ttl_seconds = ttl_seconds or settings.PARAMETER_CACHE_TTL_SECONDS

    def _redis(self):
        return self._cache_client if self._cache_client is not None else get_redis()

    def _read_cached(self, parameter_key: str) -> str | None:
        try:
            return self._redis().get(parameter_cache_key(parameter_key))
        except RedisError:
            logger.exception("Redis error reading parameter cache (fail-open)")
            return None

    def _write_cached(self, parameter_key: str, raw_value: str) -> None:
        try:
            self._redis().set(parameter_cache_key(parameter_key), raw_value, ex=self.ttl_seconds)
        except RedisError:
            logger.exception("Redis error writing parameter cache (ignored)")

    def invalidate(self, parameter_key: str) -> None:
        try:
            self._redis().delete(parameter_cache_key(parameter_key))
        except RedisError:
            logger.exception("Redis error clearing parameter cache (ignored)")

    def _load_raw_value(self, parameter_key: str) -> str | None:
        cached = self._read_cached(parameter_key)
        if cached is not None:
            return cached

        try:
            parameter = self.get_parameter(parameter_key)
        except SQLAlchemyError:
            logger.exception("Failed to load system parameter %s (using default)", parameter_key)
            return None

        if parameter is None:
            logger.warning("System parameter not found: %s", parameter_key)
            return None

        self._write_cached(parameter_key, parameter.parameter_value)
        return parameter.parameter_value

    def get_parameter_value(self, parameter_key: str, default: T, value_type: type[T]) -> T:
        raw = self._load_raw_value(parameter_key)
        if raw is None:
            return default

        converter = _CONVERTERS.get(value_type)
        if converter is None:
            raise TypeError(f"Unsupported parameter type: {value_type!r}")

        try:
            return converter(raw)
        except ValueError:
            logger.error(
                "System parameter type conversion failed: %s, value=%r, type=%s",
                parameter_key,
                raw,
                value_type.__name__,
            )
            return default

    def get_string_parameter_value(self, parameter_key: str, default: str = "") -> str:
        return self.get_parameter_value(parameter_key, default, str)

    def get_int_parameter_value(self, parameter_key: str, default: int = 0) -> int:
        return self.get_parameter_value(parameter_key, default, int)

    def get_bool_parameter_value(self, parameter_key: str, default: bool = False) -> bool:
        return self.get_parameter_value(parameter_key, default, bool)

    def get_decimal_parameter_value(self, parameter_key: str, default: Decimal = Decimal("0")) -> Decimal:
        return self.get_parameter_value(parameter_key, default, Decimal)

    def get_deadline_days(self, parameter_key: str, default: int = DEFAULT_DEADLINE_DAYS) -> int:
        return self.get_int_parameter_value(parameter_key, default)

    def get_deadline_settings(self) -> DeadlineDays:
        """Both stage deadlines, each falling back to the default independently."""
        return DeadlineDays(
            second_info=self.get_deadline_days(SECOND_INFO_DEADLINE_DAYS),
            third_info=self.get_deadline_days(THIRD_INFO_DEADLINE_DAYS),
        )

    def get_parameter(self, parameter_key: str) -> SystemParameter | None:
        return self.db.query(SystemParameter).filter(
            SystemParameter.parameter_key == parameter_key,
            SystemParameter.is_active.is_(True),
        ).first()

    def list_parameters(self) -> list[SystemParameter]:
        return (
            self.db.query(SystemParameter)
            .filter(SystemParameter.is_active.is_(True))
            .order_by(SystemParameter.parameter_key)
            .all()
        )

    def update_parameter_value(self, parameter_key: str, value: str, *, user_id: int) -> SystemParameter:
        parameter = self.db.query(SystemParameter).filter(
            SystemParameter.parameter_key == parameter_key,
        ).first()
        if not parameter:
            raise DomainError(
                code="PARAMETER_NOT_FOUND",
                http_status=404,
                message=f"System parameter not found: {parameter_key}",
            )

        _validate_parameter_value(parameter, value)

        parameter.parameter_value = value.strip()
        parameter.updated_by = user_id
        parameter.updated_at = datetime.now(timezone.utc)
        self.db.commit()

        self.invalidate(parameter_key)
        logger.info("System parameter %s updated by user %s", parameter_key, user_id)
        return parameter


def _validate_parameter_value(parameter: SystemParameter, value: str) -> None:
    converter = _DATA_TYPE_CONVERTERS.get(parameter.data_type, str)
    try:
        converted = converter(value)
    except ValueError:
        raise DomainError(
            code="PARAMETER_INVALID_VALUE",
            http_status=400,
            message=f"Value is not a valid {parameter.data_type}",
            details={"parameter_key": parameter.parameter_key, "value": value},
        )

    if parameter.parameter_key in DEADLINE_PARAMETER_KEYS and (not isinstance(converted, int) or converted < 0):
        raise DomainError(
            code="PARAMETER_INVALID_VALUE",
            http_status=400,
            message="Deadline days must be a non-negative integer",
            details={"parameter_key": parameter.parameter_key, "value": value},
        )


def resolve_deadline_days(service: SystemParameterService | None) -> DeadlineDays:
    """Deadline days from parameters, or the built-in defaults when no source is available."""
    if service is None:
        return DeadlineDays()
    return service.get_deadline_settings()

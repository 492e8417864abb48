"""Read-through Redis cache for computed incident statuses."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable

from redis.exceptions import RedisError

from ..cache import get_redis
from ..config import settings
from .incident_status import (
    DeadlineDays,
    IncidentStatus,
    as_utc,
    calculate_with_deadline_days,
    incident_status_deadline,
    now_utc,
    parse_status,
)

logger = logging.getLogger(__name__)

KEY_PREFIX = "incident:status:"
_SHORT_TTL_WINDOW = timedelta(hours=1)


def status_cache_key(incident_id: int, deadline_days: DeadlineDays) -> str:
    """One entry per incident and deadline setting."""
    return f"{KEY_PREFIX}{incident_id}:{deadline_days.second_info}:{deadline_days.third_info}"


def _incident_key_pattern(incident_id: int) -> str:
    return f"{KEY_PREFIX}{incident_id}:*"


def _deadline_passed(incident: Any, *, deadline_days: DeadlineDays, now: datetime) -> bool:
    deadline = incident_status_deadline(incident, deadline_days=deadline_days)
    return deadline is not None and now > deadline


class IncidentStatusCache:
    """Cache of computed statuses keyed by incident id and deadline settings.

    The cache is only an optimisation: every failure falls back to recomputing,
    and an entry is ignored once the incident's current deadline has passed.
    """

    def __init__(
        self,
        client: Any | None = None,
        *,
        ttl_seconds: int | None = None,
        short_ttl_seconds: int | None = None,
    ) -> None:
        self._client = client
        self.ttl_seconds = ttl_seconds or settings.STATUS_CACHE_TTL_SECONDS
        self.short_ttl_seconds = short_ttl_seconds or settings.STATUS_CACHE_SHORT_TTL_SECONDS

    def _redis(self):
        return self._client if self._client is not None else get_redis()

    def get(self, incident_id: int, *, deadline_days: DeadlineDays) -> IncidentStatus | None:
        try:
            raw = self._redis().get(status_cache_key(incident_id, deadline_days))
        except RedisError:
            logger.exception("Redis error reading incident status cache (fail-open)")
            return None
        return parse_status(raw)

    def set(
        self,
        incident_id: int,
        status: IncidentStatus,
        *,
        deadline_days: DeadlineDays,
        ttl_seconds: int,
    ) -> None:
        try:
            self._redis().set(status_cache_key(incident_id, deadline_days), status.value, ex=ttl_seconds)
        except RedisError:
            logger.exception("Redis error writing incident status cache (ignored)")

    def invalidate(self, incident_id: int) -> None:
        """Drop every cached status of the incident, whatever deadline settings produced it."""
        try:
            client = self._redis()
            keys = list(client.scan_iter(match=_incident_key_pattern(incident_id)))
            if keys:
                client.delete(*keys)
        except RedisError:
            logger.exception("Redis error clearing incident status cache (ignored)")

    def ttl_for(self, incident: Any, *, deadline_days: DeadlineDays, now: datetime) -> int:
        deadline = incident_status_deadline(incident, deadline_days=deadline_days)
        if deadline is not None and deadline - as_utc(now) < _SHORT_TTL_WINDOW:
            return self.short_ttl_seconds
        return self.ttl_seconds

    def clear_expired(
        self,
        incidents: Iterable[Any],
        *,
        deadline_days: DeadlineDays,
        now: datetime | None = None,
    ) -> None:
        """Drop cached statuses whose underlying deadline has already passed."""
        current = as_utc(now) if now is not None else now_utc()
        expired = [
            status_cache_key(incident.id, deadline_days)
            for incident in incidents
            if _deadline_passed(incident, deadline_days=deadline_days, now=current)
        ]
        if not expired:
            return
        try:
            self._redis().delete(*expired)
        except RedisError:
            logger.exception("Redis error clearing expired incident statuses (ignored)")

    def get_statuses(
        self,
        incidents: Iterable[Any],
        *,
        deadline_days: DeadlineDays,
        now: datetime | None = None,
    ) -> dict[int, IncidentStatus]:
        """Return one status per incident, recomputing stale or missing entries."""
        current = as_utc(now) if now is not None else now_utc()
        statuses: dict[int, IncidentStatus] = {}

        for incident in incidents:
            if not _deadline_passed(incident, deadline_days=deadline_days, now=current):
                cached = self.get(incident.id, deadline_days=deadline_days)
                if cached is not None:
                    statuses[incident.id] = cached
                    continue

            status = calculate_with_deadline_days(incident, deadline_days=deadline_days, now=current)
            statuses[incident.id] = status
            self.set(
                incident.id,
                status,
                deadline_days=deadline_days,
                ttl_seconds=self.ttl_for(incident, deadline_days=deadline_days, now=current),
            )

        return statuses

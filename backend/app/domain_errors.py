"""Errors raised by incident and parameter use-cases.

Each error carries a stable code (e.g. ``INCIDENT_UPDATE_FORBIDDEN``) that
clients switch on, plus the HTTP status it maps to.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class DomainError(Exception):
    code: str
    http_status: int
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message

    @property
    def problem_slug(self) -> str:
        """URL-safe form of the code used in the problem ``type`` URI."""
        return self.code.lower().replace("_", "-")

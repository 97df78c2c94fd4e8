"""Shared service instances for the API layer."""

from __future__ import annotations

from functools import lru_cache

from ..services.alerts.service import AlertService
from ..services.navigation.registry import SessionRegistry
from ..services.routing.service import RouteAssembler


@lru_cache(maxsize=1)
def get_assembler() -> RouteAssembler:
    return RouteAssembler()


@lru_cache(maxsize=1)
def get_registry() -> SessionRegistry:
    return SessionRegistry(get_assembler())


@lru_cache(maxsize=1)
def get_alert_service() -> AlertService:
    return AlertService()

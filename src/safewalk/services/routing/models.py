"""Routing domain models and collaborator contracts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol

from ...models.domain import Coordinates


@dataclass(slots=True)
class PathCandidate:
    """Raw path as returned by a path provider, before scoring."""

    waypoints: List[Coordinates]
    polyline: str
    distance_meters: float
    duration_seconds: float


class PathProvider(Protocol):
    def get_route(self, origin: Coordinates, destination: Coordinates, prefer_safe: bool) -> PathCandidate:
        ...

    def get_alternatives(
        self, origin: Coordinates, destination: Coordinates, prefer_safe: bool
    ) -> List[PathCandidate]:
        ...

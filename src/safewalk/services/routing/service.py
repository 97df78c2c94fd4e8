"""Route assembly: path provider + risk scoring + instruction synthesis."""

from __future__ import annotations

import functools
import logging
import uuid
from typing import Optional, Sequence

from ...config import settings
from ...data.risk_regions_repository import CachedRiskRegionSource, FileRiskRegionSource, RiskRegionSource
from ...errors import InvalidInput, RouteUnavailable
from ...models.domain import Coordinates, Route, RoutePreference, validate_coordinates
from ..geospatial import bounding_box, polyline_length_meters
from ..navigation.instructions import InstructionSynthesizer
from ..risk.scorer import RiskAnalysis, RiskScorer, compare_route_safety
from .models import PathCandidate, PathProvider
from .osrm_client import OSRMClient
from .polyline import encode_polyline

logger = logging.getLogger(__name__)


class RouteAssembler:
    """Builds scored, annotated routes. Holds no per-request state."""

    def __init__(
        self,
        provider: Optional[PathProvider] = None,
        risk_source: Optional[RiskRegionSource] = None,
        *,
        scorer: Optional[RiskScorer] = None,
        synthesizer: Optional[InstructionSynthesizer] = None,
        safe_route_max_distance_increase: float | None = None,
        region_padding_meters: float | None = None,
    ) -> None:
        self._provider = provider
        self.risk_source = risk_source or CachedRiskRegionSource(FileRiskRegionSource())
        self.scorer = scorer or RiskScorer()
        self.synthesizer = synthesizer or InstructionSynthesizer()
        self.max_distance_increase = (
            safe_route_max_distance_increase
            if safe_route_max_distance_increase is not None
            else settings.safe_route_max_distance_increase
        )
        self.region_padding_meters = (
            region_padding_meters if region_padding_meters is not None else settings.risk_region_padding_meters
        )

    @property
    def provider(self) -> PathProvider:
        if self._provider is None:
            try:
                self._provider = OSRMClient()
            except ValueError as exc:
                raise RouteUnavailable("Routing service is not configured. Check SAFEWALK_OSRM_BASE_URL.") from exc
        return self._provider

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compute_route(
        self,
        origin: Coordinates,
        destination: Coordinates,
        preference: RoutePreference | str | None = None,
    ) -> Route:
        """Compute the route for a preference (safest when unspecified).

        Raises:
            InvalidInput: malformed coordinates.
            RouteUnavailable: the path provider failed or returned no path.
        """
        validate_coordinates(origin)
        validate_coordinates(destination)
        preference = RoutePreference.coerce(preference)

        try:
            primary = self.provider.get_route(origin, destination, prefer_safe=preference.prefer_safe)
        except RouteUnavailable:
            raise
        except Exception as exc:
            logger.warning(f"Path provider failed for {preference.value} route: {exc}")
            raise RouteUnavailable(f"Unable to calculate a route: {exc}") from exc
        if primary is None:
            raise RouteUnavailable("Path provider returned no path.")

        candidates = [primary]
        if preference is RoutePreference.SAFEST:
            candidates.extend(self._safe_alternatives(origin, destination, primary))

        scored = [self._score(candidate) for candidate in candidates]
        if preference is RoutePreference.SAFEST and len(scored) > 1:
            candidate, analysis = self._select_safest(scored)
        else:
            candidate, analysis = scored[0]

        route = self._build_route(candidate, analysis, origin, destination, preference)
        logger.info(
            f"Route {route.id} ({preference.value}): {route.distance_meters:.0f} m, "
            f"{len(route.instructions)} instructions, max risk {route.max_risk_index:.0f}"
        )
        return route

    def compute_alternatives(
        self,
        origin: Coordinates,
        destination: Coordinates,
        preference: RoutePreference | str | None = None,
    ) -> list[Route]:
        """Candidate routes; any failure yields an empty list."""
        preference = RoutePreference.coerce(preference)
        try:
            validate_coordinates(origin)
            validate_coordinates(destination)
            candidates = self.provider.get_alternatives(origin, destination, prefer_safe=preference.prefer_safe)
            routes = []
            for candidate in candidates or []:
                scored_candidate, analysis = self._score(candidate)
                routes.append(self._build_route(scored_candidate, analysis, origin, destination, preference))
            return routes
        except Exception as exc:
            logger.warning(f"Alternative routes unavailable: {exc}")
            return []

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _safe_alternatives(
        self, origin: Coordinates, destination: Coordinates, primary: PathCandidate
    ) -> list[PathCandidate]:
        try:
            alternatives = self.provider.get_alternatives(origin, destination, prefer_safe=True)
        except Exception as exc:
            logger.info(f"No alternatives for safest route, keeping the primary path: {exc}")
            return []
        return [alt for alt in alternatives or [] if alt.polyline != primary.polyline]

    def _score(self, candidate: PathCandidate) -> tuple[PathCandidate, RiskAnalysis]:
        if candidate is None or len(candidate.waypoints) < 2:
            raise RouteUnavailable("Path provider returned an empty path.")
        try:
            box = bounding_box(candidate.waypoints, self.region_padding_meters)
            regions = self.risk_source.get_regions_near(box)
        except InvalidInput:
            raise
        except Exception as exc:
            logger.error(f"Risk region lookup failed: {exc}")
            raise RouteUnavailable(f"Unable to evaluate route risk: {exc}") from exc
        return candidate, self.scorer.score(candidate.waypoints, regions)

    def _select_safest(
        self, scored: Sequence[tuple[PathCandidate, RiskAnalysis]]
    ) -> tuple[PathCandidate, RiskAnalysis]:
        """Lowest risk among candidates no more than the allowed increase over the shortest."""
        shortest = min(self._distance(candidate) for candidate, _ in scored)
        allowed = shortest * self.max_distance_increase
        eligible = [item for item in scored if self._distance(item[0]) <= allowed] or list(scored)

        def _order(a: tuple[PathCandidate, RiskAnalysis], b: tuple[PathCandidate, RiskAnalysis]) -> int:
            safety = compare_route_safety(a[1], b[1])
            if safety:
                return safety
            da, db = self._distance(a[0]), self._distance(b[0])
            return (da > db) - (da < db)

        return sorted(eligible, key=functools.cmp_to_key(_order))[0]

    @staticmethod
    def _distance(candidate: PathCandidate) -> float:
        if candidate.distance_meters > 0:
            return candidate.distance_meters
        return polyline_length_meters(candidate.waypoints)

    def _build_route(
        self,
        candidate: PathCandidate,
        analysis: RiskAnalysis,
        origin: Coordinates,
        destination: Coordinates,
        preference: RoutePreference,
    ) -> Route:
        waypoints = tuple(candidate.waypoints)
        distance = self._distance(candidate)
        duration = candidate.duration_seconds
        if duration <= 0:
            duration = distance / (settings.walking_speed_kmh / 3.6)
        return Route(
            id=uuid.uuid4().hex,
            origin=origin,
            destination=destination,
            waypoints=waypoints,
            polyline=candidate.polyline or encode_polyline(waypoints),
            distance_meters=distance,
            duration_seconds=duration,
            max_risk_index=analysis.max_risk_index,
            average_risk_index=analysis.average_risk_index,
            requires_warning=analysis.requires_warning,
            warning_message=analysis.warning_message,
            instructions=tuple(self.synthesizer.synthesize(waypoints)),
            risk_regions_on_route=analysis.regions_on_route,
            preference=preference,
            risk_level=analysis.risk_level,
        )

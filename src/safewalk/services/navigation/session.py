"""Per-trip navigation session.

A session owns the active route, the traveller's position and the alert
history for one trip. It is driven entirely by caller-issued calls and is not
thread-safe; callers serialize access to a given session.

Lifecycle::

    created --start()--> active --deviation--> recalculating --> active
                           |                                      |
                           +---------------- end() ---------------+--> ended

Mutations after ``end()`` are silent no-ops so late GPS fixes or provider
responses arriving during teardown are absorbed.
"""

from __future__ import annotations

import logging
import math
import time
import uuid
from typing import Callable, Iterable, List, Optional, Set

from ...config import settings
from ...errors import RecalculationFailed
from ...models.domain import (
    Alert,
    Coordinates,
    Instruction,
    RiskRegion,
    Route,
    RoutePreference,
    SessionState,
    validate_coordinates,
)
from ..alerts.preferences import AlertPreferences
from ..alerts.service import AlertService
from ..geospatial import (
    bounding_box,
    cumulative_distances,
    distance_meters,
    distance_to_polyline,
    nearest_point_index,
    polyline_progress_percent,
)
from ..routing.service import RouteAssembler
from .events import EventSink, LoggingEventSink
from .models import NavigationEvent, ProgressSnapshot, RecalculationOutcome

logger = logging.getLogger(__name__)


def _instruction_offsets(instructions: Iterable[Instruction], waypoints: List[Coordinates], totals: List[float]) -> List[float]:
    """Distance from the route start to each instruction point."""
    offsets: List[float] = []
    search_from = 0
    for instruction in instructions:
        index = None
        for candidate in range(search_from, len(waypoints)):
            if waypoints[candidate] == instruction.coordinates:
                index = candidate
                break
        if index is None:
            index = search_from + nearest_point_index(instruction.coordinates, waypoints[search_from:])
        offsets.append(totals[index])
        search_from = index
    return offsets


class NavigationSession:
    def __init__(
        self,
        assembler: RouteAssembler,
        *,
        alert_service: Optional[AlertService] = None,
        event_sink: Optional[EventSink] = None,
        session_id: Optional[str] = None,
        deviation_threshold_meters: float | None = None,
        recalculation_cooldown_seconds: float | None = None,
        traffic_time_improvement_ratio: float | None = None,
        traffic_risk_improvement_points: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_id = session_id or f"nav_{uuid.uuid4().hex}"
        self.assembler = assembler
        self.alert_service = alert_service or AlertService()
        self.event_sink: EventSink = event_sink or LoggingEventSink()
        self.deviation_threshold = (
            deviation_threshold_meters if deviation_threshold_meters is not None else settings.deviation_threshold_meters
        )
        self.recalculation_cooldown = (
            recalculation_cooldown_seconds
            if recalculation_cooldown_seconds is not None
            else settings.recalculation_cooldown_seconds
        )
        self.traffic_time_ratio = (
            traffic_time_improvement_ratio
            if traffic_time_improvement_ratio is not None
            else settings.traffic_time_improvement_ratio
        )
        self.traffic_risk_points = (
            traffic_risk_improvement_points
            if traffic_risk_improvement_points is not None
            else settings.traffic_risk_improvement_points
        )
        self._clock = clock

        self.state = SessionState.CREATED
        self.preference = RoutePreference.SAFEST
        self.route: Optional[Route] = None
        self.current_position: Optional[Coordinates] = None
        self.current_speed_kmh = 0.0
        self.traveled_index = 0
        self.current_instruction_index = 0
        self.alerted_region_ids: Set[str] = set()
        self.pending_alternative_route: Optional[Route] = None
        self.pending_alert: Optional[Alert] = None
        self.last_error: Optional[RecalculationFailed] = None
        self._waypoints: List[Coordinates] = []
        self._totals: List[float] = []
        self._offsets: List[float] = []
        self._generation = 0
        self._last_recalculation_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, route: Route, preference: RoutePreference | str | None = None) -> None:
        """Install the first route and go straight to ``active``."""
        if self.state is SessionState.ENDED:
            return
        if self.state is not SessionState.CREATED:
            raise RuntimeError(f"Session {self.session_id} has already been started.")
        self.preference = RoutePreference.coerce(preference)
        self._install_route(route)
        self.state = SessionState.ACTIVE
        logger.info(f"Navigation session {self.session_id} started ({self.preference.value}, route {route.id})")

    def end(self) -> None:
        if self.state is SessionState.ENDED:
            return
        self.state = SessionState.ENDED
        self._generation += 1
        self.route = None
        self.current_position = None
        self.current_speed_kmh = 0.0
        self.traveled_index = 0
        self.current_instruction_index = 0
        self.pending_alternative_route = None
        self.pending_alert = None
        self.alerted_region_ids.clear()
        self._waypoints, self._totals, self._offsets = [], [], []
        self._emit("ended")
        logger.info(f"Navigation session {self.session_id} ended")

    @property
    def is_ended(self) -> bool:
        return self.state is SessionState.ENDED

    def _install_route(self, route: Route) -> None:
        self.route = route
        self._waypoints = list(route.waypoints)
        self._totals = cumulative_distances(self._waypoints)
        self._offsets = _instruction_offsets(route.instructions, self._waypoints, self._totals)
        self.traveled_index = 0
        self.current_instruction_index = 0
        self._generation += 1

    # ------------------------------------------------------------------
    # Position tracking
    # ------------------------------------------------------------------

    def update_position(self, point: Coordinates, speed_kmh: Optional[float] = 0.0) -> Optional[ProgressSnapshot]:
        """Record a GPS fix and advance progress. Returns None once the session has ended."""
        if self.state is SessionState.ENDED or self.route is None:
            return None
        validate_coordinates(point)

        self.current_position = point
        self.current_speed_kmh = speed_kmh if speed_kmh is not None and math.isfinite(speed_kmh) and speed_kmh > 0 else 0.0
        self.traveled_index = nearest_point_index(point, self._waypoints)

        traveled_distance = self._totals[self.traveled_index]
        upcoming = next(
            (index for index, offset in enumerate(self._offsets) if offset > traveled_distance),
            len(self._offsets) - 1,
        )
        # the instruction pointer never regresses, even when GPS noise does
        self.current_instruction_index = max(self.current_instruction_index, upcoming)
        return self.snapshot()

    @property
    def current_instruction(self) -> Optional[Instruction]:
        if self.route is None:
            return None
        return self.route.instructions[self.current_instruction_index]

    @property
    def traveled(self) -> List[Coordinates]:
        """Polyline up to the progress point, with the current position appended."""
        if self.route is None:
            return []
        head = self._waypoints[: self.traveled_index + 1]
        if self.current_position is None:
            return head
        return head + [self.current_position]

    @property
    def remaining(self) -> List[Coordinates]:
        """Current position followed by the polyline after the progress point."""
        if self.route is None:
            return []
        if self.current_position is None:
            return list(self._waypoints)
        return [self.current_position] + self._waypoints[self.traveled_index + 1 :]

    @property
    def progress_percent(self) -> float:
        return polyline_progress_percent(self._waypoints, self.current_position)

    @property
    def remaining_distance_meters(self) -> float:
        if self.route is None:
            return 0.0
        if self.current_position is None:
            return self._totals[-1]
        next_index = self.traveled_index + 1
        if next_index >= len(self._waypoints):
            return distance_meters(self.current_position, self._waypoints[-1])
        return distance_meters(self.current_position, self._waypoints[next_index]) + (
            self._totals[-1] - self._totals[next_index]
        )

    @property
    def remaining_duration_seconds(self) -> float:
        if self.route is None:
            return 0.0
        remaining = self.remaining_distance_meters
        if self.current_speed_kmh > 0:
            return remaining / (self.current_speed_kmh / 3.6)
        total = self._totals[-1]
        if total <= 0:
            return 0.0
        return self.route.duration_seconds * min(1.0, remaining / total)

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            state=self.state,
            traveled_index=self.traveled_index,
            current_instruction_index=self.current_instruction_index,
            current_instruction=self.current_instruction,
            traveled=self.traveled,
            remaining=self.remaining,
            progress_percent=self.progress_percent,
            remaining_distance_meters=self.remaining_distance_meters,
            remaining_duration_seconds=self.remaining_duration_seconds,
        )

    # ------------------------------------------------------------------
    # Deviation and recalculation
    # ------------------------------------------------------------------

    def distance_from_route(self) -> float:
        if self.current_position is None or not self._waypoints:
            return 0.0
        distance, _ = distance_to_polyline(self.current_position, self._waypoints)
        return distance

    def check_deviation(self) -> bool:
        """True when the traveller is more than the threshold away from the route."""
        return self.evaluate_deviation().deviated

    def evaluate_deviation(self) -> RecalculationOutcome:
        """Detect deviation and recalculate with the session's own preference.

        Recalculation failures are returned in the outcome and kept in
        ``last_error``; navigation continues on the current route.
        """
        if self.state is not SessionState.ACTIVE or self.current_position is None or self.route is None:
            return RecalculationOutcome(deviated=False, distance_from_route_meters=0.0)

        distance = self.distance_from_route()
        if distance <= self.deviation_threshold:
            return RecalculationOutcome(deviated=False, distance_from_route_meters=distance)

        now = self._clock()
        if (
            self._last_recalculation_at is not None
            and now - self._last_recalculation_at < self.recalculation_cooldown
        ):
            return RecalculationOutcome(deviated=True, distance_from_route_meters=distance)

        logger.info(
            f"Session {self.session_id} is {distance:.1f} m off route, recalculating ({self.preference.value})"
        )
        self.state = SessionState.RECALCULATING
        generation = self._generation
        origin = self.current_position
        destination = self.route.destination
        try:
            new_route = self.assembler.compute_route(origin, destination, self.preference)
        except Exception as exc:
            error = RecalculationFailed(f"Route recalculation failed: {exc}", cause=exc)
            if self.state is SessionState.RECALCULATING:
                self.state = SessionState.ACTIVE
            self.last_error = error
            self._last_recalculation_at = self._clock()
            logger.warning(f"Session {self.session_id} stays on its current route: {exc}")
            self._emit("recalculation_failed", {"message": str(error)})
            return RecalculationOutcome(deviated=True, distance_from_route_meters=distance, error=error)

        self._last_recalculation_at = self._clock()
        if self.state is SessionState.ENDED or generation != self._generation:
            logger.info(f"Discarding late recalculation result for session {self.session_id}")
            return RecalculationOutcome(deviated=True, distance_from_route_meters=distance)

        self._install_route(new_route)
        self.pending_alternative_route = None
        self.last_error = None
        self.state = SessionState.ACTIVE
        self._emit(
            "recalculated",
            {"route_id": new_route.id, "preference": self.preference.value, "max_risk_index": new_route.max_risk_index},
        )
        return RecalculationOutcome(
            deviated=True, distance_from_route_meters=distance, recalculated=True, route=new_route
        )

    # ------------------------------------------------------------------
    # Alternatives
    # ------------------------------------------------------------------

    def _is_meaningfully_better(self, candidate: Route) -> bool:
        current = self.route
        if current is None:
            return False
        # provider estimate for the rest of the current route, comparable with the candidate's
        total = self._totals[-1] if self._totals else 0.0
        remaining_duration = current.duration_seconds
        if self.current_position is not None and total > 0:
            remaining_duration *= min(1.0, self.remaining_distance_meters / total)
        faster = candidate.duration_seconds <= remaining_duration * (1.0 - self.traffic_time_ratio)
        safer = candidate.max_risk_index <= current.max_risk_index - self.traffic_risk_points
        return faster or safer

    def check_traffic_update(self) -> Optional[Route]:
        """Look for a better route and surface it as ``pending_alternative_route``.

        Driven by a caller-owned timer; never replaces the active route.
        """
        if self.state is not SessionState.ACTIVE or self.current_position is None or self.route is None:
            return None

        generation = self._generation
        candidates = self.assembler.compute_alternatives(
            self.current_position, self.route.destination, self.preference
        )
        if self.state is not SessionState.ACTIVE or generation != self._generation:
            return None

        better = [candidate for candidate in candidates if self._is_meaningfully_better(candidate)]
        if not better:
            return None
        if self.preference is RoutePreference.SAFEST:
            better.sort(key=lambda r: (r.max_risk_index, r.average_risk_index, r.duration_seconds))
        else:
            better.sort(key=lambda r: (r.duration_seconds, r.max_risk_index))
        self.pending_alternative_route = better[0]
        self._emit(
            "alternative_available",
            {
                "route_id": better[0].id,
                "duration_seconds": better[0].duration_seconds,
                "max_risk_index": better[0].max_risk_index,
            },
        )
        return better[0]

    def accept_alternative_route(self) -> bool:
        if self.state is not SessionState.ACTIVE or self.pending_alternative_route is None:
            return False
        route = self.pending_alternative_route
        self.pending_alternative_route = None
        self._install_route(route)
        logger.info(f"Session {self.session_id} switched to alternative route {route.id}")
        return True

    def reject_alternative_route(self) -> bool:
        if self.state is SessionState.ENDED or self.pending_alternative_route is None:
            return False
        self.pending_alternative_route = None
        return True

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def _regions_near_position(self) -> List[RiskRegion]:
        reach = self.alert_service.calculate_alert_distance(self.current_speed_kmh)
        try:
            return self.assembler.risk_source.get_regions_near(bounding_box([self.current_position], reach))
        except Exception as exc:
            logger.warning(f"Risk regions unavailable for alert check: {exc}")
            return list(self.route.risk_regions_on_route) if self.route else []

    def evaluate_alerts(
        self,
        regions: Optional[Iterable[RiskRegion]] = None,
        preferences: Optional[AlertPreferences] = None,
    ) -> List[Alert]:
        """Raise proximity alerts for the current position, each region at most once per session."""
        if self.state is not SessionState.ACTIVE or self.current_position is None:
            return []
        if regions is None:
            regions = self._regions_near_position()
        alerts = self.alert_service.check_alert_conditions(
            self.current_position,
            self.current_speed_kmh,
            regions,
            self.alerted_region_ids,
            preferences,
        )
        if alerts:
            self.pending_alert = alerts[0]
            for alert in alerts:
                self.event_sink.emit(NavigationEvent.for_alert(self.session_id, alert))
        return alerts

    def dismiss_alert(self) -> None:
        self.pending_alert = None

    def _emit(self, kind: str, payload: Optional[dict] = None) -> None:
        self.event_sink.emit(NavigationEvent(kind=kind, session_id=self.session_id, payload=payload or {}))

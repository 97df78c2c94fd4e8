"""Navigation session result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from ...errors import RecalculationFailed
from ...models.domain import Alert, Coordinates, Instruction, Route, SessionState


@dataclass(slots=True)
class ProgressSnapshot:
    """Display state returned after every position update."""

    state: SessionState
    traveled_index: int
    current_instruction_index: int
    current_instruction: Optional[Instruction]
    traveled: List[Coordinates]
    remaining: List[Coordinates]
    progress_percent: float
    remaining_distance_meters: float
    remaining_duration_seconds: float


@dataclass(slots=True)
class RecalculationOutcome:
    """Result of a deviation check; failures are values, not exceptions."""

    deviated: bool
    distance_from_route_meters: float
    recalculated: bool = False
    route: Optional[Route] = None
    error: Optional[RecalculationFailed] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(slots=True)
class NavigationEvent:
    """Event handed to the notification/voice/haptic sink."""

    kind: str
    session_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_alert(cls, session_id: str, alert: Alert) -> "NavigationEvent":
        return cls(
            kind="alert",
            session_id=session_id,
            payload={
                "risk_region_id": alert.risk_region_id,
                "crime_type": alert.crime_type,
                "distance_meters": alert.distance_meters,
                "risk_index": alert.risk_index,
            },
        )

"""Turn-by-turn instruction synthesis from a dense waypoint polyline.

Consecutive waypoint triples are inspected for changes in bearing. Only
turns that are both significant and far enough from the previous maneuver
become instructions, long straight stretches are broken up, and the list is
always framed by ``depart`` and ``arrive``.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ...config import settings
from ...errors import InvalidInput
from ...models.domain import Coordinates, Instruction, Maneuver, validate_coordinates
from ..geospatial import bearing_degrees, bearing_delta, distance_meters

STRAIGHT_MAX_DEGREES = 30.0
SLIGHT_MAX_DEGREES = 60.0
TURN_MAX_DEGREES = 120.0
UTURN_MIN_DEGREES = 150.0

_COMPASS = ("north", "northeast", "east", "southeast", "south", "southwest", "west", "northwest")

_TEMPLATES: dict[Maneuver, str] = {
    Maneuver.DEPART: "Head {heading}",
    Maneuver.ARRIVE: "You have arrived at your destination",
    Maneuver.STRAIGHT: "Continue straight for {distance}",
    Maneuver.TURN_SLIGHT_LEFT: "In {distance}, bear slightly left",
    Maneuver.TURN_SLIGHT_RIGHT: "In {distance}, bear slightly right",
    Maneuver.TURN_LEFT: "In {distance}, turn left",
    Maneuver.TURN_RIGHT: "In {distance}, turn right",
    Maneuver.TURN_SHARP_LEFT: "In {distance}, turn sharp left",
    Maneuver.TURN_SHARP_RIGHT: "In {distance}, turn sharp right",
    Maneuver.UTURN: "In {distance}, make a U-turn",
}
# Used only if a maneuver is added to the enum without a template.
_DEFAULT_TEMPLATE = "Continue for {distance}"


def format_distance(meters: float) -> str:
    """Render ``X m`` below one kilometre and ``X.Y km`` above."""

    if meters < 1000:
        return f"{int(round(meters))} m"
    return f"{meters / 1000:.1f} km"


def compass_direction(bearing: float) -> str:
    return _COMPASS[int(((bearing % 360) + 22.5) // 45) % 8]


def instruction_text(maneuver: Maneuver, distance: float, heading: Optional[float] = None) -> str:
    template = _TEMPLATES.get(maneuver, _DEFAULT_TEMPLATE)
    text = template.format(
        distance=format_distance(distance),
        heading=compass_direction(heading) if heading is not None else "out",
    )
    if heading is not None and maneuver is not Maneuver.DEPART:
        text = f"{text} heading {compass_direction(heading)}"
    return text


def classify_maneuver(delta: float) -> Maneuver:
    """Map a signed bearing change to a maneuver."""

    magnitude = abs(delta)
    if magnitude < STRAIGHT_MAX_DEGREES:
        return Maneuver.STRAIGHT
    if magnitude > UTURN_MIN_DEGREES:
        return Maneuver.UTURN
    right = delta > 0
    if magnitude < SLIGHT_MAX_DEGREES:
        return Maneuver.TURN_SLIGHT_RIGHT if right else Maneuver.TURN_SLIGHT_LEFT
    if magnitude < TURN_MAX_DEGREES:
        return Maneuver.TURN_RIGHT if right else Maneuver.TURN_LEFT
    return Maneuver.TURN_SHARP_RIGHT if right else Maneuver.TURN_SHARP_LEFT


def classify_by_quadrant(bearing: float) -> Maneuver:
    """Classify the opening maneuver from the absolute heading alone."""

    bearing %= 360
    if bearing < 45 or bearing >= 315:
        return Maneuver.STRAIGHT
    if bearing < 135:
        return Maneuver.TURN_RIGHT
    if bearing < 225:
        return Maneuver.UTURN
    return Maneuver.TURN_LEFT


class InstructionSynthesizer:
    """Stateless; thresholds default to the application settings."""

    def __init__(
        self,
        *,
        turn_threshold_degrees: float | None = None,
        min_spacing_meters: float | None = None,
        max_straight_meters: float | None = None,
        min_trailing_meters: float | None = None,
    ) -> None:
        self.turn_threshold = (
            turn_threshold_degrees if turn_threshold_degrees is not None else settings.turn_threshold_degrees
        )
        self.min_spacing = min_spacing_meters if min_spacing_meters is not None else settings.min_instruction_spacing_meters
        self.max_straight = max_straight_meters if max_straight_meters is not None else settings.max_straight_segment_meters
        self.min_trailing = min_trailing_meters if min_trailing_meters is not None else settings.min_trailing_segment_meters

    def synthesize(self, waypoints: Sequence[Coordinates]) -> list[Instruction]:
        if len(waypoints) < 2:
            raise InvalidInput("At least two waypoints are required to build instructions.")
        for point in waypoints:
            validate_coordinates(point)

        origin, destination = waypoints[0], waypoints[-1]
        initial_heading = bearing_degrees(origin, waypoints[1])
        instructions = [
            Instruction(
                maneuver=Maneuver.DEPART,
                text=instruction_text(Maneuver.DEPART, 0.0, initial_heading),
                distance_meters=0.0,
                coordinates=origin,
            )
        ]

        last = len(waypoints) - 1
        accumulated = 0.0
        # origin/destination with at most one point between them collapse to depart/arrive
        if len(waypoints) > 3:
            for index in range(1, last):
                prev, curr, nxt = waypoints[index - 1], waypoints[index], waypoints[index + 1]
                accumulated += distance_meters(prev, curr)
                bearing_in = bearing_degrees(prev, curr)
                bearing_out = bearing_degrees(curr, nxt)
                delta = bearing_delta(bearing_in, bearing_out)
                significant = abs(delta) > self.turn_threshold

                emit = (
                    (significant and accumulated > self.min_spacing)
                    or accumulated > self.max_straight
                    or (significant and index == last - 1)
                )
                if not emit:
                    continue

                if len(instructions) == 1:
                    maneuver = classify_by_quadrant(bearing_out)
                    heading: Optional[float] = bearing_out
                else:
                    maneuver = classify_maneuver(delta)
                    heading = None
                instructions.append(
                    Instruction(
                        maneuver=maneuver,
                        text=instruction_text(maneuver, accumulated, heading),
                        distance_meters=accumulated,
                        coordinates=curr,
                    )
                )
                accumulated = 0.0

            if len(instructions) > 1 and accumulated > self.min_trailing:
                instructions.append(
                    Instruction(
                        maneuver=Maneuver.STRAIGHT,
                        text=instruction_text(Maneuver.STRAIGHT, accumulated),
                        distance_meters=accumulated,
                        coordinates=waypoints[last - 1],
                    )
                )

        instructions.append(
            Instruction(
                maneuver=Maneuver.ARRIVE,
                text=instruction_text(Maneuver.ARRIVE, 0.0),
                distance_meters=0.0,
                coordinates=destination,
            )
        )
        return instructions


def synthesize_instructions(waypoints: Sequence[Coordinates]) -> list[Instruction]:
    """Build instructions with the default thresholds."""
    return InstructionSynthesizer().synthesize(waypoints)

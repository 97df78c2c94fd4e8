"""Serializers for route outputs consumed by presentation layers."""

from __future__ import annotations

from typing import Any, Dict, List

from ...models.domain import Instruction, Route


def instruction_to_json(instruction: Instruction) -> dict:
    return {
        "maneuver": instruction.maneuver.value,
        "text": instruction.text,
        "distance": instruction.distance_meters,
        "coordinates": instruction.coordinates.to_dict(),
    }


def route_to_json(route: Route) -> dict:
    """camelCase route shape: id, distance, duration, risk summary, instructions, polyline."""
    return {
        "id": route.id,
        "distance": route.distance_meters,
        "duration": route.duration_seconds,
        "maxRiskIndex": route.max_risk_index,
        "averageRiskIndex": route.average_risk_index,
        "requiresWarning": route.requires_warning,
        "warningMessage": route.warning_message,
        "riskLevel": route.risk_level,
        "preference": route.preference.value,
        "instructions": [instruction_to_json(instruction) for instruction in route.instructions],
        "polyline": route.polyline,
    }


def route_to_geojson(route: Route) -> Dict[str, Any]:
    """FeatureCollection with the route line and one point per instruction.

    GeoJSON positions are [lon, lat].
    """
    features: List[Dict[str, Any]] = [
        {
            "type": "Feature",
            "geometry": {
                "type": "LineString",
                "coordinates": [[point.longitude, point.latitude] for point in route.waypoints],
            },
            "properties": {
                "route_id": route.id,
                "distance_meters": route.distance_meters,
                "duration_seconds": route.duration_seconds,
                "max_risk_index": route.max_risk_index,
                "risk_level": route.risk_level,
            },
        }
    ]
    for sequence, instruction in enumerate(route.instructions):
        features.append(
            {
                "type": "Feature",
                "geometry": {
                    "type": "Point",
                    "coordinates": [instruction.coordinates.longitude, instruction.coordinates.latitude],
                },
                "properties": {
                    "sequence": sequence,
                    "maneuver": instruction.maneuver.value,
                    "text": instruction.text,
                },
            }
        )
    return {"type": "FeatureCollection", "features": features}

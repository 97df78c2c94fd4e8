"""Navigation session endpoints."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import RouteUnavailable
from ...models.domain import Alert, Route
from ...schemas.alerts import AlertModel
from ...schemas.navigation import (
    DeviationResponse,
    PositionUpdateRequest,
    SessionResponse,
    StartSessionRequest,
    TrafficResponse,
)
from ...schemas.routing import CoordinatesModel, RouteResponse
from ...services.navigation.registry import SessionNotFound, SessionRegistry
from ...services.navigation.session import NavigationSession
from ...services.outputs.route_formatter import instruction_to_json, route_to_json
from ..dependencies import get_registry

router = APIRouter(prefix="/navigation/sessions", tags=["navigation"])


def alert_to_model(alert: Alert) -> AlertModel:
    return AlertModel(
        riskRegionId=alert.risk_region_id,
        crimeType=alert.crime_type,
        distance=alert.distance_meters,
        riskIndex=alert.risk_index,
        alertType=alert.alert_type,
        triggeredAt=alert.triggered_at,
    )


def _route_model(route: Optional[Route]) -> Optional[RouteResponse]:
    if route is None:
        return None
    return RouteResponse.model_validate(route_to_json(route))


def session_to_response(session: NavigationSession, alerts: Iterable[Alert] = ()) -> SessionResponse:
    instruction = session.current_instruction
    return SessionResponse(
        sessionId=session.session_id,
        state=session.state.value,
        preference=session.preference.value,
        route=_route_model(session.route),
        currentInstructionIndex=session.current_instruction_index,
        currentInstruction=instruction_to_json(instruction) if instruction else None,
        traveled=[CoordinatesModel(**point.to_dict()) for point in session.traveled],
        remaining=[CoordinatesModel(**point.to_dict()) for point in session.remaining],
        progressPercent=session.progress_percent,
        remainingDistance=session.remaining_distance_meters,
        remainingDuration=session.remaining_duration_seconds,
        pendingAlternative=_route_model(session.pending_alternative_route),
        alerts=[alert_to_model(alert) for alert in alerts],
        lastError=str(session.last_error) if session.last_error else None,
    )


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Navigation session {session_id} not found")


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def start_session(
    payload: StartSessionRequest, registry: SessionRegistry = Depends(get_registry)
) -> SessionResponse:
    try:
        route = registry.assembler.compute_route(
            payload.origin.to_domain(), payload.destination.to_domain(), payload.preference
        )
        session = registry.create(route, payload.preference)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RouteUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error starting navigation session: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to start navigation: {str(exc)}",
        ) from exc
    return session_to_response(session)


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> SessionResponse:
    try:
        with registry.locked(session_id) as session:
            return session_to_response(session)
    except SessionNotFound as exc:
        raise _not_found(session_id) from exc


@router.post("/{session_id}/position", response_model=SessionResponse)
def update_position(
    session_id: str, payload: PositionUpdateRequest, registry: SessionRegistry = Depends(get_registry)
) -> SessionResponse:
    """Record a GPS fix, advance progress and raise any proximity alerts."""
    preferences = payload.preferences.to_domain() if payload.preferences else None
    try:
        with registry.locked(session_id) as session:
            session.update_position(payload.position.to_domain(), payload.speedKmh)
            alerts = session.evaluate_alerts(preferences=preferences)
            return session_to_response(session, alerts)
    except SessionNotFound as exc:
        raise _not_found(session_id) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/{session_id}/deviation", response_model=DeviationResponse)
def check_deviation(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> DeviationResponse:
    """Check for deviation and recalculate; a failed recalculation keeps the current route."""
    try:
        with registry.locked(session_id) as session:
            outcome = session.evaluate_deviation()
            return DeviationResponse(
                deviated=outcome.deviated,
                distanceFromRoute=outcome.distance_from_route_meters,
                recalculated=outcome.recalculated,
                error=str(outcome.error) if outcome.error else None,
                session=session_to_response(session),
            )
    except SessionNotFound as exc:
        raise _not_found(session_id) from exc


@router.post("/{session_id}/traffic", response_model=TrafficResponse)
def check_traffic(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> TrafficResponse:
    try:
        with registry.locked(session_id) as session:
            alternative = session.check_traffic_update()
    except SessionNotFound as exc:
        raise _not_found(session_id) from exc
    return TrafficResponse(alternativeAvailable=alternative is not None, alternative=_route_model(alternative))


@router.post("/{session_id}/alternative/accept", response_model=SessionResponse)
def accept_alternative(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> SessionResponse:
    try:
        with registry.locked(session_id) as session:
            if not session.accept_alternative_route():
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT, detail="No alternative route is pending."
                )
            return session_to_response(session)
    except SessionNotFound as exc:
        raise _not_found(session_id) from exc


@router.post("/{session_id}/alternative/reject", response_model=SessionResponse)
def reject_alternative(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> SessionResponse:
    try:
        with registry.locked(session_id) as session:
            session.reject_alternative_route()
            return session_to_response(session)
    except SessionNotFound as exc:
        raise _not_found(session_id) from exc


@router.get("/{session_id}/events")
def drain_events(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> dict:
    """Events emitted since the last call (alerts, recalculations, alternatives)."""
    try:
        events = registry.events(session_id).drain()
    except SessionNotFound as exc:
        raise _not_found(session_id) from exc
    return {
        "events": [
            {"kind": event.kind, "payload": event.payload, "createdAt": event.created_at.isoformat()}
            for event in events
        ]
    }


@router.delete("/{session_id}", status_code=status.HTTP_200_OK)
def end_session(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> dict:
    try:
        registry.end(session_id)
    except SessionNotFound as exc:
        raise _not_found(session_id) from exc
    return {"success": True, "message": f"Navigation session {session_id} ended"}

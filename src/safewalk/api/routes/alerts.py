"""Stateless proximity alert check."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...schemas.alerts import AlertCheckRequest, AlertCheckResponse
from ...services.alerts.service import AlertService
from ...services.geospatial import bounding_box
from ...services.routing.service import RouteAssembler
from ..dependencies import get_alert_service, get_assembler
from .navigation import alert_to_model

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.post("/check", response_model=AlertCheckResponse, status_code=status.HTTP_200_OK)
def check_alerts(
    payload: AlertCheckRequest,
    alert_service: AlertService = Depends(get_alert_service),
    assembler: RouteAssembler = Depends(get_assembler),
) -> AlertCheckResponse:
    position = payload.position.to_domain()
    alert_distance = alert_service.calculate_alert_distance(payload.speedKmh)
    try:
        if payload.regions is not None:
            regions = [region.to_domain() for region in payload.regions]
        else:
            regions = assembler.risk_source.get_regions_near(bounding_box([position], alert_distance))
        alerts = alert_service.check_alert_conditions(
            position,
            payload.speedKmh,
            regions,
            set(payload.alreadyAlerted),
            payload.preferences.to_domain() if payload.preferences else None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error checking alerts: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check alerts: {str(exc)}",
        ) from exc
    return AlertCheckResponse(alertDistance=alert_distance, alerts=[alert_to_model(alert) for alert in alerts])

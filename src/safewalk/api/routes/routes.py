"""Route computation endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import RouteUnavailable
from ...schemas.routing import AlternativesResponse, RouteRequest, RouteResponse
from ...services.outputs.route_formatter import route_to_geojson, route_to_json
from ...services.routing.service import RouteAssembler
from ..dependencies import get_assembler

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("", response_model=RouteResponse, status_code=status.HTTP_200_OK)
def compute_route(payload: RouteRequest, assembler: RouteAssembler = Depends(get_assembler)) -> RouteResponse:
    try:
        route = assembler.compute_route(
            payload.origin.to_domain(), payload.destination.to_domain(), payload.preference
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RouteUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error computing route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute route: {str(exc)}",
        ) from exc
    return RouteResponse.model_validate(route_to_json(route))


@router.post("/geojson", status_code=status.HTTP_200_OK)
def compute_route_geojson(payload: RouteRequest, assembler: RouteAssembler = Depends(get_assembler)) -> dict:
    """Same as ``POST /routes`` but returns a GeoJSON FeatureCollection for map layers."""
    try:
        route = assembler.compute_route(
            payload.origin.to_domain(), payload.destination.to_domain(), payload.preference
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RouteUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return route_to_geojson(route)


@router.post("/alternatives", response_model=AlternativesResponse, status_code=status.HTTP_200_OK)
def compute_alternatives(
    payload: RouteRequest, assembler: RouteAssembler = Depends(get_assembler)
) -> AlternativesResponse:
    """Alternative routes; an unavailable provider yields an empty list."""
    try:
        routes = assembler.compute_alternatives(
            payload.origin.to_domain(), payload.destination.to_domain(), payload.preference
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return AlternativesResponse(routes=[RouteResponse.model_validate(route_to_json(route)) for route in routes])

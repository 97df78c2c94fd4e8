"""Data access helpers for aggregated risk regions."""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path
from typing import Iterable, Optional, Protocol, Sequence

from ..config import settings
from ..models.domain import Coordinates, RiskRegion
from ..services.cache import Cache, TTLCache
from ..services.geospatial import point_in_bounding_box

logger = logging.getLogger(__name__)

BoundingBox = tuple[float, float, float, float]


class RiskRegionSource(Protocol):
    def get_regions_near(self, bbox: BoundingBox) -> list[RiskRegion]:
        ...


def _region_from_record(record: dict) -> RiskRegion:
    centroid = record.get("centroid") or {}
    return RiskRegion(
        id=str(record.get("id") or record.get("region_id")),
        centroid=Coordinates.from_dict(
            {
                "latitude": centroid.get("latitude", record.get("latitude")),
                "longitude": centroid.get("longitude", record.get("longitude")),
            }
        ),
        radius_meters=float(record.get("radius_meters", record.get("radius", 0.0))),
        risk_index=float(record.get("risk_index", record.get("value", 0.0))),
        dominant_crime_type=(record.get("dominant_crime_type") or None),
    )


@functools.lru_cache(maxsize=1)
def load_risk_regions(source: Optional[Path] = None) -> tuple[RiskRegion, ...]:
    """Load risk regions from the configured JSON export."""

    json_path = source or settings.risk_regions_file
    if not json_path.exists():
        raise FileNotFoundError(f"Risk region file not found: {json_path}")

    with json_path.open(mode="r", encoding="utf-8") as handle:
        payload = json.load(handle)
    records = payload.get("regions", []) if isinstance(payload, dict) else payload
    if not isinstance(records, list):
        raise ValueError(f"Risk region file '{json_path}' must contain a list of regions.")

    regions = []
    for record in records:
        try:
            regions.append(_region_from_record(record))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Skipping malformed risk region record {record!r}: {exc}")
    logger.info(f"Loaded {len(regions)} risk regions from {json_path}")
    return tuple(regions)


def filter_regions(regions: Iterable[RiskRegion], bbox: BoundingBox) -> list[RiskRegion]:
    """Regions whose circle may overlap the bounding box."""

    return [region for region in regions if point_in_bounding_box(region.centroid, bbox, region.radius_meters)]


class StaticRiskRegionSource:
    """Serves a fixed set of regions, e.g. a pre-aggregated snapshot."""

    def __init__(self, regions: Sequence[RiskRegion] = ()) -> None:
        self._regions = tuple(regions)

    def get_regions_near(self, bbox: BoundingBox) -> list[RiskRegion]:
        return filter_regions(self._regions, bbox)


class FileRiskRegionSource:
    """Reads regions from the JSON export; missing files mean no known risk."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path or settings.risk_regions_file

    def get_regions_near(self, bbox: BoundingBox) -> list[RiskRegion]:
        try:
            regions = load_risk_regions(self.path)
        except FileNotFoundError:
            logger.warning(f"Risk region file {self.path} is missing; scoring routes without risk data")
            return []
        return filter_regions(regions, bbox)


class CachedRiskRegionSource:
    """Wraps another source with an injectable expiring cache keyed by bounding box."""

    def __init__(
        self,
        source: RiskRegionSource,
        cache: Optional[Cache[list[RiskRegion]]] = None,
        ttl_seconds: float | None = None,
    ) -> None:
        self.source = source
        self.cache = cache if cache is not None else TTLCache()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.risk_regions_cache_ttl_seconds

    @staticmethod
    def _key(bbox: BoundingBox) -> tuple[float, ...]:
        # ~1 m resolution so jittering GPS-derived boxes share entries
        return tuple(round(value, 5) for value in bbox)

    def get_regions_near(self, bbox: BoundingBox) -> list[RiskRegion]:
        key = self._key(bbox)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)
        regions = self.source.get_regions_near(bbox)
        self.cache.put(key, list(regions), self.ttl_seconds)
        return regions

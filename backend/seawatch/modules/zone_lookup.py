"""Restricted-zone reference data.

Shallow-water and coastal zones are static reference data owned outside the
engine.  They are loaded from a YAML file of polygons::

    zones:
      - name: Lakshadweep shoals
        zone_type: shallow_water
        coordinates: [[72.0, 10.0], [72.5, 10.0], [72.5, 10.5], [72.0, 10.5]]

Coordinates are ``[lon, lat]`` pairs (GeoJSON order).  Alternatively a zone
may carry ``geometry_wkt``.  The engine only ever calls
``is_in_restricted_zone(lat, lon)``; any callable with that shape can be
injected instead of a ``ZoneLookup``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import yaml
from shapely import wkt as shapely_wkt
from shapely.geometry import Point, Polygon
from shapely.geometry.base import BaseGeometry

logger = logging.getLogger(__name__)

ZoneCheck = Callable[[float, float], bool]


@dataclass
class RestrictedZone:
    name: str
    zone_type: str
    geometry: BaseGeometry


class ZoneLookup:
    def __init__(self, zones: list[RestrictedZone] | None = None):
        self.zones: list[RestrictedZone] = list(zones or [])

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ZoneLookup":
        """Load zones from YAML; a missing file yields an empty lookup."""
        config_path = Path(path)
        if not config_path.exists():
            logger.warning("Zone config %s not found — grounding detection disabled", config_path)
            return cls()
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_config(data)

    @classmethod
    def from_config(cls, data: dict) -> "ZoneLookup":
        zones: list[RestrictedZone] = []
        for entry in data.get("zones", []) or []:
            name = str(entry.get("name", "unnamed"))
            try:
                if entry.get("geometry_wkt"):
                    geometry = shapely_wkt.loads(entry["geometry_wkt"])
                else:
                    geometry = Polygon([(float(x), float(y)) for x, y in entry["coordinates"]])
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping zone %r: invalid geometry (%s)", name, exc)
                continue
            if geometry.is_empty or not geometry.is_valid:
                logger.warning("Skipping zone %r: empty or invalid geometry", name)
                continue
            zones.append(RestrictedZone(name=name, zone_type=str(entry.get("zone_type", "restricted")), geometry=geometry))
        logger.info("Loaded %d restricted zones", len(zones))
        return cls(zones)

    def zone_at(self, lat: float, lon: float) -> RestrictedZone | None:
        """First zone covering (lat, lon); boundary points count as inside."""
        point = Point(lon, lat)
        for zone in self.zones:
            if zone.geometry.covers(point):
                return zone
        return None

    def is_in_restricted_zone(self, lat: float, lon: float) -> bool:
        return self.zone_at(lat, lon) is not None

    __call__ = is_in_restricted_zone

    def __len__(self) -> int:
        return len(self.zones)

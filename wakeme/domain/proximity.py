"""Proximity evaluation: decide when a trip enters its alert zone.

Everything here is a pure function of the snapshot, the destination, the
alert marker and the thresholds. Unresolvable inputs produce a neutral
result instead of raising.
"""

import math
from dataclasses import dataclass

from wakeme.core.settings import Settings
from wakeme.schemas import AlertZone, BusPosition, GeoPoint, TrainProgress

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class AlertThresholds:
    """Distances and counts that trigger notifications and calls."""

    bus_alert_km: float = 7.0
    bus_warning_km: float = 15.0
    bus_info_km: float = 30.0
    bus_speed_kmh: float = 40.0
    train_alert_stations: int = 2
    train_alert_km: float = 50.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "AlertThresholds":
        return cls(
            bus_alert_km=settings.bus_alert_radius_km,
            bus_warning_km=settings.bus_warning_radius_km,
            bus_info_km=settings.bus_info_radius_km,
            bus_speed_kmh=settings.bus_average_speed_kmh,
            train_alert_stations=settings.train_alert_stations,
            train_alert_km=settings.train_alert_distance_km,
        )


@dataclass(frozen=True)
class ProximityResult:
    """Outcome of one evaluation."""

    should_alert: bool
    evaluable: bool
    zone: AlertZone = AlertZone.NONE
    distance_km: float | None = None
    eta_minutes: int | None = None
    stations_remaining: int | None = None
    reason: str | None = None

    @classmethod
    def neutral(cls, reason: str) -> "ProximityResult":
        """Result for a snapshot that cannot be evaluated."""
        return cls(should_alert=False, evaluable=False, reason=reason)


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.lng - a.lng)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def eta_minutes(distance_km: float, speed_kmh: float) -> int:
    """Rough arrival estimate at a constant speed."""
    if speed_kmh <= 0:
        return 0
    return round(distance_km / speed_kmh * 60)


def bus_zone(distance_km: float, thresholds: AlertThresholds) -> AlertZone:
    if distance_km <= thresholds.bus_alert_km:
        return AlertZone.CRITICAL
    if distance_km <= thresholds.bus_warning_km:
        return AlertZone.WARNING
    if distance_km <= thresholds.bus_info_km:
        return AlertZone.INFO
    return AlertZone.NONE


def evaluate_bus_distance(
    distance_km: float, alert_marker_set: bool, thresholds: AlertThresholds
) -> ProximityResult:
    """Evaluate a bus trip from an already computed distance."""
    if math.isnan(distance_km) or distance_km < 0:
        return ProximityResult.neutral("invalid distance")

    zone = bus_zone(distance_km, thresholds)
    return ProximityResult(
        should_alert=zone is AlertZone.CRITICAL and not alert_marker_set,
        evaluable=True,
        zone=zone,
        distance_km=distance_km,
        eta_minutes=eta_minutes(distance_km, thresholds.bus_speed_kmh),
    )


def evaluate_bus(
    position: BusPosition | None,
    destination: GeoPoint | None,
    alert_marker_set: bool,
    thresholds: AlertThresholds,
) -> ProximityResult:
    """Evaluate a bus trip from its latest position."""
    if position is None:
        return ProximityResult.neutral("position unavailable")
    if destination is None:
        return ProximityResult.neutral("destination coordinates unknown")

    return evaluate_bus_distance(
        haversine_km(position.point, destination), alert_marker_set, thresholds
    )


def evaluate_train(
    progress: TrainProgress | None,
    alert_marker_set: bool,
    thresholds: AlertThresholds,
) -> ProximityResult:
    """Evaluate a train trip from its live progress."""
    if progress is None:
        return ProximityResult.neutral("train progress unavailable")

    near = (
        progress.stations_remaining <= thresholds.train_alert_stations
        or progress.distance_remaining_km <= thresholds.train_alert_km
    )
    return ProximityResult(
        should_alert=near and not alert_marker_set,
        evaluable=True,
        zone=AlertZone.CRITICAL if near else AlertZone.NONE,
        distance_km=progress.distance_remaining_km,
        stations_remaining=progress.stations_remaining,
    )

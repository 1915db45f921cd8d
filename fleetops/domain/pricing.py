"""
Trip cost estimate
==================

Cost = Base_Fare + Distance x Rate_Per_KM

The distance is the one recorded on the booking; when only coordinates are
known the great-circle distance is used instead.
"""

from __future__ import annotations

from typing import Any, Optional

from .distance import haversine_km


class PricingEngine:
    def __init__(self, base_fare: float, rate_per_km: float):
        self.base_fare = base_fare
        self.rate_per_km = rate_per_km

    @staticmethod
    def estimate_distance(trip: Any) -> Optional[float]:
        if trip.distance_km is not None:
            return float(trip.distance_km)
        coords = (
            trip.pickup_lat,
            trip.pickup_lng,
            trip.destination_lat,
            trip.destination_lng,
        )
        if any(c is None for c in coords):
            return None
        return round(haversine_km(*coords), 2)

    def cost_for(self, distance_km: Optional[float]) -> Optional[float]:
        if distance_km is None:
            return None
        return round(self.base_fare + distance_km * self.rate_per_km, 2)

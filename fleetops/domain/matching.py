"""
Merge candidate discovery
=========================

Finds trips an admin could fold into a master trip.

1. **Same day**      -- only trips booked for the master's date.
2. **Spatial bin**   -- pickups are mapped to H3 hexagons (resolution 7,
   ~5.16 km²); a candidate must share the master's pickup cell.  Trips
   booked without coordinates fall back to matching pickup and destination
   text.
3. **Ordering**      -- candidates are ranked by how far their destination
   is from the master's destination.

Complexity: O(N) over the trips of the day, one H3 call per trip.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

import h3

from .availability import as_day
from .distance import haversine_km
from .enums import TripStatus

_MERGEABLE = {TripStatus.PENDING, TripStatus.APPROVED}


def pickup_cell(trip: Any, resolution: int = 7) -> Optional[str]:
    """H3 cell of the trip's pickup, or None when it has no coordinates."""
    if trip.pickup_lat is None or trip.pickup_lng is None:
        return None
    return h3.latlng_to_cell(trip.pickup_lat, trip.pickup_lng, resolution)


def _same_text(a: Optional[str], b: Optional[str]) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower() != ""


def _destination_gap(master: Any, trip: Any) -> float:
    coords = (
        master.destination_lat,
        master.destination_lng,
        trip.destination_lat,
        trip.destination_lng,
    )
    if any(c is None for c in coords):
        return 0.0 if _same_text(master.destination, trip.destination) else float("inf")
    return haversine_km(*coords)


def is_mergeable(trip: Any) -> bool:
    return (
        TripStatus(trip.status) in _MERGEABLE
        and not trip.master_trip_id
        and not trip.linked_proposal_trip_id
    )


def merge_candidates(
    master: Any, trips: Iterable[Any], resolution: int = 7
) -> list[Any]:
    """Trips that could be proposed for a merge into *master*, best first."""
    master_day = as_day(master.date)
    master_cell = pickup_cell(master, resolution)
    found = []
    for trip in trips:
        if trip.id == master.id or trip.requester_id == master.requester_id:
            continue
        if not is_mergeable(trip) or as_day(trip.date) != master_day:
            continue
        cell = pickup_cell(trip, resolution)
        if master_cell is not None and cell is not None:
            if cell != master_cell:
                continue
        elif not (
            _same_text(master.pickup, trip.pickup)
            and _same_text(master.destination, trip.destination)
        ):
            continue
        found.append(trip)
    return sorted(found, key=lambda t: _destination_gap(master, t))

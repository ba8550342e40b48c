"""Great-circle distances and nearby-restaurant ranking."""
import math
from typing import Iterable, List, Tuple

from delivery_engine.models import Coordinate, Restaurant

EARTH_RADIUS_KM = 6371.0
MAX_SEARCH_RADIUS_KM = 50.0


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two coordinates in kilometers."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def rank_by_distance(restaurants: Iterable[Restaurant], point: Coordinate) -> List[Tuple[Restaurant, float]]:
    """
    Pair restaurants with their distance to `point`, nearest first.

    Ties are broken by restaurant id; restaurants without coordinates are
    dropped.
    """
    ranked = [
        (restaurant, haversine_km(restaurant.coordinate, point))
        for restaurant in restaurants
        if restaurant.coordinate is not None
    ]
    ranked.sort(key=lambda pair: (pair[1], pair[0].id))
    return ranked


def find_nearby_restaurants(
    restaurants: Iterable[Restaurant],
    point: Coordinate,
    radius_km: float = 10.0,
    delivery_active: bool = False,
    pickup_active: bool = False
) -> List[Tuple[Restaurant, float]]:
    """
    Active restaurants within `radius_km` of the point, nearest first.

    Args:
        radius_km: search radius, capped at MAX_SEARCH_RADIUS_KM
        delivery_active: only restaurants that accept delivery
        pickup_active: only restaurants that accept pickup
    """
    radius_km = min(float(radius_km), MAX_SEARCH_RADIUS_KM)

    candidates = []
    for restaurant in restaurants:
        if not restaurant.is_active:
            continue
        if delivery_active and not restaurant.accepts_delivery:
            continue
        if pickup_active and not restaurant.accepts_pickup:
            continue
        candidates.append(restaurant)

    return [pair for pair in rank_by_distance(candidates, point) if pair[1] <= radius_km]

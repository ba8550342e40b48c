"""
Geofence service - delivery eligibility by point-in-polygon.

Parsed polygons are cached in Redis for GEOFENCE_CACHE_TTL seconds under
geofence:{restaurant_id}:{sha256(raw geofence)}, so editing a geofence
changes the key and never serves a stale polygon.
"""
import hashlib
import logging
from typing import Iterable, List, Optional

from flask import current_app, has_app_context

from delivery_engine.exceptions import InvalidPolygonDescription
from delivery_engine.metrics import geofence_cache_requests_total, geofence_invalid_total
from delivery_engine.models import Coordinate, Restaurant, DeliveryValidationResult
from delivery_engine.services.cache_service import CacheService, get_cache
from delivery_engine.services.distance_service import haversine_km, rank_by_distance
from delivery_engine.services.polygon_parser import parse_polygon

logger = logging.getLogger(__name__)

GEOFENCE_CACHE_MODULE = 'geofence'
DEFAULT_GEOFENCE_TTL = 86400  # 24 hours
NO_COVERAGE_MESSAGE = 'No tenemos cobertura de delivery en esta ubicación'
MIN_POLYGON_VERTICES = 3


def geofence_cache_key(restaurant: Restaurant) -> str:
    digest = hashlib.sha256(restaurant.geofence.encode('utf-8')).hexdigest()
    return f"{restaurant.id}:{digest}"


def _resolve_cache(cache: Optional[CacheService]) -> Optional[CacheService]:
    if cache is None:
        try:
            cache = get_cache()
        except RuntimeError:
            return None
    return cache if cache.is_available() else None


def _geofence_ttl() -> int:
    if has_app_context():
        return current_app.config.get('GEOFENCE_CACHE_TTL', DEFAULT_GEOFENCE_TTL)
    return DEFAULT_GEOFENCE_TTL


def load_polygon(restaurant: Restaurant, cache: Optional[CacheService] = None) -> List[Coordinate]:
    """
    Parsed geofence of a restaurant, from cache when possible.

    Raises:
        InvalidPolygonDescription: if the stored geofence is unparseable.
    """
    if not restaurant.has_geofence:
        return []

    cache = _resolve_cache(cache)
    key = geofence_cache_key(restaurant)

    if cache is not None:
        cached = cache.get(GEOFENCE_CACHE_MODULE, key)
        if cached is not None:
            geofence_cache_requests_total.labels(result='hit').inc()
            logger.debug(f"[CACHE] Geofence HIT: restaurant={restaurant.id}")
            return [Coordinate(latitude=lat, longitude=lng) for lat, lng in cached]
        geofence_cache_requests_total.labels(result='miss').inc()
        logger.debug(f"[CACHE] Geofence MISS: restaurant={restaurant.id}")
    else:
        geofence_cache_requests_total.labels(result='disabled').inc()

    vertices = parse_polygon(restaurant.geofence)

    if cache is not None:
        cache.set(
            GEOFENCE_CACHE_MODULE,
            key,
            [[vertex.latitude, vertex.longitude] for vertex in vertices],
            ttl=_geofence_ttl()
        )
    return vertices


def invalidate_geofence_cache(restaurant_id: int, cache: Optional[CacheService] = None) -> int:
    """Drop every cached polygon of a restaurant (all content hashes)."""
    cache = _resolve_cache(cache)
    if cache is None:
        return 0
    return cache.delete_pattern(GEOFENCE_CACHE_MODULE, f"{restaurant_id}:*")


def is_point_in_polygon(point: Coordinate, polygon: List[Coordinate]) -> bool:
    """
    Even-odd ray casting.

    Latitude plays the role of "x" and longitude of "y": an edge toggles the
    result when it straddles the point's longitude and the point lies below
    the edge's latitude at that longitude. Points on the boundary may land
    either way.
    """
    if len(polygon) < MIN_POLYGON_VERTICES:
        return False

    lat, lng = point.latitude, point.longitude
    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        xi, yi = polygon[i].latitude, polygon[i].longitude
        xj, yj = polygon[j].latitude, polygon[j].longitude
        if (yi > lng) != (yj > lng):
            crossing_lat = (xj - xi) * (lng - yi) / (yj - yi) + xi
            if lat < crossing_lat:
                inside = not inside
        j = i
    return inside


def restaurant_can_deliver(
    restaurant: Restaurant,
    point: Coordinate,
    cache: Optional[CacheService] = None
) -> bool:
    """True if the point falls inside the restaurant's geofence."""
    if not restaurant.has_geofence:
        return False

    try:
        polygon = load_polygon(restaurant, cache)
    except InvalidPolygonDescription as e:
        geofence_invalid_total.inc()
        logger.warning(f"[GEOFENCE] Restaurant {restaurant.id} has an invalid geofence: {e.message}")
        return False

    if len(polygon) < MIN_POLYGON_VERTICES:
        logger.debug(f"[GEOFENCE] Restaurant {restaurant.id} geofence has {len(polygon)} vertices, ignored")
        return False

    return is_point_in_polygon(point, polygon)


def find_eligible_restaurants(
    restaurants: Iterable[Restaurant],
    point: Coordinate,
    cache: Optional[CacheService] = None
) -> List[Restaurant]:
    """Active, delivery-enabled restaurants whose geofence contains the point, by id."""
    eligible = [
        restaurant for restaurant in restaurants
        if restaurant.accepts_delivery and restaurant_can_deliver(restaurant, point, cache)
    ]
    eligible.sort(key=lambda restaurant: restaurant.id)
    return eligible


def best_restaurant_for(
    restaurants: Iterable[Restaurant],
    point: Coordinate,
    cache: Optional[CacheService] = None
) -> Optional[Restaurant]:
    """
    Nearest eligible restaurant to the point.

    Distance is measured from the restaurant's own coordinate; restaurants
    without one rank after all others. Ties go to the lowest id.
    """
    eligible = find_eligible_restaurants(restaurants, point, cache)
    if not eligible:
        return None

    def sort_key(restaurant):
        if restaurant.coordinate is None:
            return (float('inf'), restaurant.id)
        return (haversine_km(restaurant.coordinate, point), restaurant.id)

    return min(eligible, key=sort_key)


def validate_delivery(
    restaurants: Iterable[Restaurant],
    point: Coordinate,
    nearby_limit: int = 3,
    cache: Optional[CacheService] = None
) -> DeliveryValidationResult:
    """
    Resolve the delivering restaurant for a coordinate.

    When nobody covers the point, suggests up to `nearby_limit` active pickup
    restaurants, nearest first.
    """
    restaurants = list(restaurants)
    restaurant = best_restaurant_for(restaurants, point, cache)

    if restaurant is not None:
        logger.info(f"[GEOFENCE] Point {point} covered by restaurant {restaurant.id}")
        return DeliveryValidationResult(
            is_valid=True,
            restaurant=restaurant,
            zone=restaurant.price_location
        )

    pickup = [r for r in restaurants if r.accepts_pickup]
    nearby = [
        {
            'id': r.id,
            'name': r.name,
            'address': r.address,
            'distance_km': round(distance, 2),
        }
        for r, distance in rank_by_distance(pickup, point)[:nearby_limit]
    ]
    logger.info(f"[GEOFENCE] No delivery coverage for {point}, {len(nearby)} pickup suggestions")
    return DeliveryValidationResult(
        is_valid=False,
        error_message=NO_COVERAGE_MESSAGE,
        nearby_pickup_restaurants=nearby
    )

"""Geographic snapshots: coordinates and restaurants."""
import math
from dataclasses import dataclass
from typing import Optional

from delivery_engine.exceptions import ValidationError


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point. Latitude in [-90, 90], longitude in [-180, 180]."""

    latitude: float
    longitude: float

    def __post_init__(self):
        for field, value, limit in (('latitud', self.latitude, 90), ('longitud', self.longitude, 180)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f'La {field} debe ser numérica: {value!r}')
            if not math.isfinite(value):
                raise ValidationError(f'La {field} debe ser un número finito')
            if abs(value) > limit:
                raise ValidationError(f'La {field} {value} está fuera de rango (±{limit})')
        object.__setattr__(self, 'latitude', float(self.latitude))
        object.__setattr__(self, 'longitude', float(self.longitude))

    def __repr__(self):
        return f"<Coordinate(lat={self.latitude}, lng={self.longitude})>"


@dataclass(frozen=True)
class Restaurant:
    """
    Read-only restaurant snapshot supplied by the caller.

    `geofence` holds the raw polygon description exactly as stored
    (a KML document or plain "lng,lat[,alt]" vertex text).
    """

    id: int
    name: str = ''
    coordinate: Optional[Coordinate] = None
    is_active: bool = True
    delivery_active: bool = False
    pickup_active: bool = False
    geofence: Optional[str] = None
    price_location: str = 'capital'
    address: str = ''

    @property
    def has_geofence(self) -> bool:
        return bool(self.geofence and self.geofence.strip())

    @property
    def accepts_delivery(self) -> bool:
        """Active, delivery enabled and with a geofence defined."""
        return self.is_active and self.delivery_active and self.has_geofence

    @property
    def accepts_pickup(self) -> bool:
        return self.is_active and self.pickup_active

    def __repr__(self):
        return f"<Restaurant(id={self.id}, name='{self.name}')>"

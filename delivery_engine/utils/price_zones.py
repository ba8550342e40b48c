"""
Zone-aware prices.

Every product variant carries four prices, one per (zone, service type).
Unknown combinations fall back to the capital pickup price.
"""
from decimal import Decimal
from typing import Mapping, Any

from delivery_engine.exceptions import ValidationError
from delivery_engine.utils.money import to_price

ZONES = ('capital', 'interior')
SERVICE_TYPES = ('pickup', 'delivery')

PRICE_FIELDS = {
    ('capital', 'pickup'): 'precio_pickup_capital',
    ('capital', 'delivery'): 'precio_domicilio_capital',
    ('interior', 'pickup'): 'precio_pickup_interior',
    ('interior', 'delivery'): 'precio_domicilio_interior',
}
DEFAULT_PRICE_FIELD = 'precio_pickup_capital'
DAILY_SPECIAL_PREFIX = 'daily_special_'


def _normalize(value) -> str:
    return (value or '').strip().lower()


def price_field(zone: str, service_type: str) -> str:
    """Name of the price field for a zone and service type."""
    return PRICE_FIELDS.get((_normalize(zone), _normalize(service_type)), DEFAULT_PRICE_FIELD)


def daily_special_field(zone: str, service_type: str) -> str:
    """Name of the "Sub del Día" price field for a zone and service type."""
    return DAILY_SPECIAL_PREFIX + price_field(zone, service_type)


def resolve_unit_price(prices: Mapping[str, Any], zone: str, service_type: str) -> Decimal:
    """
    Read the zone price out of a price mapping.

    Raises:
        ValidationError: if the field is missing, empty or not a valid price.
    """
    field = price_field(zone, service_type)
    value = prices.get(field)
    if value is None or value == '':
        raise ValidationError(
            f'No hay precio {field} para la zona {zone} ({service_type})',
            payload={'field': field}
        )
    return to_price(value, field)

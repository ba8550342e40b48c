"""
Snapshot loader - builds engine snapshots from JSON-shaped dicts.

The engine never reads a database; callers (and the CLI) hand it plain
dicts such as:

    restaurant: {"id": 1, "name": "Zona 10", "latitude": 14.6, "longitude": -90.5,
                 "delivery_active": true, "geofence": "<kml>...</kml>"}
    line:       {"id": 7, "quantity": 2, "product_id": 3, "variant_id": 9,
                 "prices": {"precio_pickup_capital": "35.00", ...},
                 "daily_special_days": [1, 3],
                 "options": [{"option_id": 4, "section_id": 2, "price_modifier": "11", "is_extra": true}]}
    promotion:  {"id": 5, "type": "percentage_discount", "value": 15,
                 "scope": {"kind": "category", "id": 2},
                 "validity": {"kind": "weekdays", "weekdays": [5, 6]}}
"""
import logging
from datetime import date, time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from delivery_engine.exceptions import ValidationError
from delivery_engine.models import (
    Coordinate, Restaurant, CartLineItem, SelectedOption, SectionConfig, DailySpecial,
    Promotion, PromotionType, Validity, ValidityType, Scope, SCOPE_KINDS
)
from delivery_engine.utils.money import to_price
from delivery_engine.utils.price_zones import resolve_unit_price, daily_special_field

logger = logging.getLogger(__name__)


def _require(data: Mapping[str, Any], field: str):
    value = data.get(field)
    if value is None:
        raise ValidationError(f'El campo {field} es requerido', payload={'field': field})
    return value


def _as_int(value, field: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f'El campo {field} debe ser un entero', payload={'field': field})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'El campo {field} debe ser un entero', payload={'field': field})


def _as_bool(data: Mapping[str, Any], field: str, default: bool) -> bool:
    value = data.get(field)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f'El campo {field} debe ser true o false', payload={'field': field})
    return value


def _optional_int(data: Mapping[str, Any], field: str) -> Optional[int]:
    value = data.get(field)
    return None if value is None else _as_int(value, field)


def _as_date(value, field: str) -> Optional[date]:
    if value in (None, ''):
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f'Fecha inválida en {field}: {value!r}', payload={'field': field})


def _as_time(value, field: str) -> Optional[time]:
    if value in (None, ''):
        return None
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f'Hora inválida en {field}: {value!r}', payload={'field': field})


def _as_weekdays(value, field: str):
    if value in (None, ''):
        return None
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ValidationError(f'El campo {field} debe ser una lista de días', payload={'field': field})
    return frozenset(_as_int(day, field) for day in value)


# Restaurants

def load_restaurant(data: Mapping[str, Any]) -> Restaurant:
    """Restaurant snapshot; latitude/longitude are optional but must come together."""
    latitude, longitude = data.get('latitude'), data.get('longitude')
    coordinate = None
    if latitude is not None or longitude is not None:
        if latitude is None or longitude is None:
            raise ValidationError(
                f"El restaurante {data.get('id')} debe tener latitud y longitud",
                payload={'id': data.get('id')}
            )
        coordinate = Coordinate(latitude=latitude, longitude=longitude)

    return Restaurant(
        id=_as_int(_require(data, 'id'), 'id'),
        name=data.get('name') or '',
        coordinate=coordinate,
        is_active=_as_bool(data, 'is_active', True),
        delivery_active=_as_bool(data, 'delivery_active', False),
        pickup_active=_as_bool(data, 'pickup_active', False),
        geofence=data.get('geofence') or data.get('geofence_kml'),
        price_location=data.get('price_location') or 'capital',
        address=data.get('address') or '',
    )


def load_restaurants(items: Iterable[Mapping[str, Any]]) -> List[Restaurant]:
    return [load_restaurant(item) for item in items]


# Cart

def load_option(data: Mapping[str, Any]) -> SelectedOption:
    return SelectedOption(
        option_id=_as_int(_require(data, 'option_id'), 'option_id'),
        section_id=_optional_int(data, 'section_id'),
        price_modifier=data.get('price_modifier', 0),
        is_extra=_as_bool(data, 'is_extra', False),
    )


def load_section(data: Mapping[str, Any]) -> SectionConfig:
    return SectionConfig(
        section_id=_as_int(_require(data, 'id'), 'id'),
        bundle_discount_enabled=_as_bool(data, 'bundle_discount_enabled', False),
        bundle_discount_amount=data.get('bundle_discount_amount') or 0,
        bundle_size=_as_int(data.get('bundle_size', 2), 'bundle_size'),
    )


def load_sections(items: Iterable[Mapping[str, Any]]) -> Dict[int, SectionConfig]:
    sections = {}
    for item in items:
        section = load_section(item)
        sections[section.section_id] = section
    return sections


def _load_daily_special(data: Mapping[str, Any], zone: str, service_type: str) -> Optional[DailySpecial]:
    days = _as_weekdays(data.get('daily_special_days'), 'daily_special_days')
    if not days:
        return None

    field = daily_special_field(zone, service_type)
    special_price = (data.get('prices') or {}).get(field)
    if special_price in (None, ''):
        logger.debug(f"[PRICING] Line {data.get('id')} has daily special days but no {field}")
        return None
    return DailySpecial(weekdays=days, special_price=to_price(special_price, field))


def load_line(data: Mapping[str, Any], zone: str = 'capital', service_type: str = 'pickup') -> CartLineItem:
    """
    Cart line snapshot with its unit price resolved for the zone.

    An explicit `unit_price` wins over the `prices` mapping (combos carry a
    single price).
    """
    line_id = _as_int(_require(data, 'id'), 'id')

    if data.get('unit_price') is not None:
        unit_price = to_price(data['unit_price'], 'unit_price')
    else:
        prices = data.get('prices')
        if not isinstance(prices, Mapping):
            raise ValidationError(f'El item {line_id} no tiene precios', payload={'id': line_id})
        unit_price = resolve_unit_price(prices, zone, service_type)

    return CartLineItem(
        id=line_id,
        quantity=_as_int(_require(data, 'quantity'), 'quantity'),
        unit_price=unit_price,
        product_id=_optional_int(data, 'product_id'),
        combo_id=_optional_int(data, 'combo_id'),
        variant_id=_optional_int(data, 'variant_id'),
        category_id=_optional_int(data, 'category_id'),
        options=tuple(load_option(option) for option in data.get('options') or ()),
        daily_special=_load_daily_special(data, zone, service_type),
        name=data.get('name') or '',
    )


# Promotions

def load_scope(data: Mapping[str, Any]) -> Scope:
    kind = _require(data, 'kind')
    scope_class = SCOPE_KINDS.get(kind)
    if scope_class is None:
        raise ValidationError(f'Tipo de alcance desconocido: {kind}', payload={'kind': kind})
    return scope_class(_as_int(_require(data, 'id'), 'id'))


def load_validity(data: Optional[Mapping[str, Any]]) -> Validity:
    if not data:
        return Validity()
    try:
        kind = ValidityType(data.get('kind') or ValidityType.PERMANENT.value)
    except ValueError:
        raise ValidationError(f"Tipo de vigencia desconocido: {data.get('kind')}")
    return Validity(
        kind=kind,
        weekdays=_as_weekdays(data.get('weekdays'), 'weekdays'),
        valid_from=_as_date(data.get('valid_from'), 'valid_from'),
        valid_until=_as_date(data.get('valid_until'), 'valid_until'),
        time_from=_as_time(data.get('time_from'), 'time_from'),
        time_until=_as_time(data.get('time_until'), 'time_until'),
    )


def load_promotion(data: Mapping[str, Any]) -> Promotion:
    try:
        promotion_type = PromotionType(_require(data, 'type'))
    except ValueError:
        raise ValidationError(f"Tipo de promoción desconocido: {data.get('type')}")

    scope = data.get('scope')
    return Promotion(
        id=_as_int(_require(data, 'id'), 'id'),
        type=promotion_type,
        name=data.get('name') or '',
        scope=load_scope(scope) if scope else None,
        value=data.get('value'),
        validity=load_validity(data.get('validity')),
        is_active=_as_bool(data, 'is_active', True),
        bundle_items=tuple(load_scope(item) for item in data.get('bundle_items') or ()),
    )


def load_cart(
    data: Mapping[str, Any],
    zone: str = 'capital',
    service_type: str = 'pickup'
) -> Tuple[List[CartLineItem], List[Promotion], Dict[int, SectionConfig]]:
    """Lines, promotions and section settings of a cart document."""
    lines = [load_line(item, zone, service_type) for item in data.get('lines') or ()]
    promotions = [load_promotion(item) for item in data.get('promotions') or ()]
    sections = load_sections(data.get('sections') or ())
    return lines, promotions, sections

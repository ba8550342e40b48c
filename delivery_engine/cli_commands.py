"""
Flask CLI commands for the delivery engine.

Commands:
- flask delivery-check: Resolve the restaurant that delivers to a coordinate
- flask price-cart: Price a cart document and print the result as JSON
- flask geofence-invalidate: Drop the cached polygons of a restaurant
- flask engine-metrics: Print the Prometheus metrics
"""

import json
import sys
from datetime import datetime

import click
from flask import current_app

from delivery_engine.exceptions import EngineError
from delivery_engine.utils.money import money_gt
from delivery_engine.utils.price_zones import ZONES, SERVICE_TYPES


def _fail(message):
    click.echo(click.style(f'❌ {message}', fg='red'), err=True)
    sys.exit(1)


def _read_json(file):
    try:
        return json.load(file)
    except json.JSONDecodeError as e:
        _fail(f'El archivo {file.name} no es JSON válido: {e}')


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('delivery-check')
    @click.option('--lat', type=float, required=True, help='Latitud del cliente')
    @click.option('--lng', type=float, required=True, help='Longitud del cliente')
    @click.option('--restaurants', 'restaurants_file', type=click.File('r'), required=True,
                  help='JSON con la lista de restaurantes')
    def delivery_check(lat, lng, restaurants_file):
        """Find the restaurant that delivers to a coordinate."""
        from delivery_engine.models import Coordinate
        from delivery_engine.services.geofence_service import validate_delivery
        from delivery_engine.services.snapshot_loader import load_restaurants

        data = _read_json(restaurants_file)
        if isinstance(data, dict):
            data = data.get('restaurants') or []

        try:
            point = Coordinate(latitude=lat, longitude=lng)
            restaurants = load_restaurants(data)
            result = validate_delivery(
                restaurants, point,
                nearby_limit=current_app.config.get('NEARBY_PICKUP_LIMIT', 3)
            )
        except EngineError as e:
            _fail(e.message)

        if result.is_valid:
            restaurant = result.restaurant
            click.echo(click.style('✅ Cobertura de delivery disponible', fg='green', bold=True))
            click.echo(f'   Restaurante: {restaurant.name} (ID {restaurant.id})')
            click.echo(f'   Zona de precios: {result.zone}')
            return

        click.echo(click.style(f'⚠️  {result.error_message}', fg='yellow', bold=True))
        if result.nearby_pickup_restaurants:
            click.echo('   Puedes recoger tu pedido en:')
            for nearby in result.nearby_pickup_restaurants:
                click.echo(f"   - {nearby['name']} (ID {nearby['id']}) a {nearby['distance_km']} km")
        sys.exit(2)

    @app.cli.command('price-cart')
    @click.argument('cart_file', type=click.File('r'))
    @click.option('--at', 'as_of', default=None, help='Fecha/hora ISO-8601 de evaluación (default: ahora)')
    @click.option('--zone', type=click.Choice(ZONES, case_sensitive=False), default=None,
                  help='Zona de precios')
    @click.option('--service-type', type=click.Choice(SERVICE_TYPES, case_sensitive=False), default=None,
                  help='Tipo de servicio')
    def price_cart(cart_file, as_of, zone, service_type):
        """Price a cart document and print lines and totals as JSON."""
        from delivery_engine.services.discount_service import calculate_cart_totals
        from delivery_engine.services.snapshot_loader import load_cart

        data = _read_json(cart_file)
        if not isinstance(data, dict):
            _fail('El carrito debe ser un objeto JSON con "lines"')

        zone = zone or data.get('zone') or current_app.config.get('DEFAULT_ZONE', 'capital')
        service_type = (
            service_type or data.get('service_type')
            or current_app.config.get('DEFAULT_SERVICE_TYPE', 'pickup')
        )

        as_of = as_of or data.get('as_of')
        try:
            moment = datetime.fromisoformat(as_of) if as_of else datetime.now()
        except ValueError:
            _fail(f'Fecha inválida: {as_of}')

        try:
            lines, promotions, sections = load_cart(data, zone, service_type)
            totals = calculate_cart_totals(lines, promotions, moment, sections)
        except EngineError as e:
            _fail(e.message)

        payload = totals.to_dict()
        payload['zone'] = zone
        payload['service_type'] = service_type
        payload['as_of'] = moment.isoformat()
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        click.echo(
            click.style(f'Total: {money_gt(totals.total)} (ahorro {money_gt(totals.total_discount)})', fg='green'),
            err=True
        )

    @app.cli.command('geofence-invalidate')
    @click.option('--restaurant-id', type=int, required=True, help='ID del restaurante')
    def geofence_invalidate(restaurant_id):
        """Drop the cached parsed geofences of a restaurant."""
        from delivery_engine.services.geofence_service import invalidate_geofence_cache

        deleted = invalidate_geofence_cache(restaurant_id)
        click.echo(click.style(f'✅ {deleted} geocercas invalidadas para el restaurante {restaurant_id}', fg='green'))

    @app.cli.command('engine-metrics')
    def engine_metrics():
        """Print the engine metrics in Prometheus format."""
        from delivery_engine.metrics import render_metrics

        payload, _content_type = render_metrics()
        click.echo(payload.decode('utf-8'))

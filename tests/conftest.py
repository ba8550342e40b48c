import pytest
from datetime import datetime
from decimal import Decimal

from delivery_engine import create_app
from delivery_engine.models import (
    CartLineItem, Coordinate, Restaurant, Promotion, PromotionType,
    ProductScope, CategoryScope
)

# Friday, 13:30
FRIDAY_NOON = datetime(2024, 5, 17, 13, 30)

SQUARE_VERTICES = (
    '-90.5150,14.6450,0 -90.5050,14.6450,0 '
    '-90.5050,14.6350,0 -90.5150,14.6350,0'
)

SQUARE_KML = f'''<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <Placemark>
      <name>Zona 10</name>
      <Polygon>
        <outerBoundaryIs>
          <LinearRing>
            <coordinates>
              {SQUARE_VERTICES}
            </coordinates>
          </LinearRing>
        </outerBoundaryIs>
      </Polygon>
    </Placemark>
  </Document>
</kml>'''


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(scope='function')
def cli_runner(app):
    """Create CLI runner."""
    return app.test_cli_runner()


@pytest.fixture
def square_vertices():
    return SQUARE_VERTICES


@pytest.fixture
def square_kml():
    return SQUARE_KML


@pytest.fixture
def as_of():
    return FRIDAY_NOON


@pytest.fixture
def inside_point():
    return Coordinate(latitude=14.6400, longitude=-90.5100)


@pytest.fixture
def outside_point():
    return Coordinate(latitude=14.6500, longitude=-90.5100)


@pytest.fixture
def zona10(inside_point):
    """Delivery restaurant covering the square around zona 10."""
    return Restaurant(
        id=1,
        name='Zona 10',
        coordinate=Coordinate(latitude=14.6410, longitude=-90.5110),
        delivery_active=True,
        pickup_active=True,
        geofence=SQUARE_KML,
        address='4a Avenida 12-50, Zona 10',
    )


@pytest.fixture
def make_line():
    """Factory for product cart lines with sensible defaults."""
    counter = {'id': 0}

    def _make_line(unit_price='35.00', quantity=1, **kwargs):
        counter['id'] += 1
        kwargs.setdefault('id', counter['id'])
        if 'combo_id' not in kwargs:
            kwargs.setdefault('product_id', 100 + kwargs['id'])
        return CartLineItem(quantity=quantity, unit_price=Decimal(unit_price), **kwargs)

    return _make_line


@pytest.fixture
def two_for_one():
    def _build(scope=None, promotion_id=10, **kwargs):
        return Promotion(
            id=promotion_id,
            type=PromotionType.TWO_FOR_ONE,
            name='2x1 en subs',
            scope=scope or ProductScope(101),
            **kwargs
        )
    return _build


@pytest.fixture
def percentage():
    def _build(value=15, scope=None, promotion_id=20, **kwargs):
        return Promotion(
            id=promotion_id,
            type=PromotionType.PERCENTAGE_DISCOUNT,
            name='Descuento',
            value=Decimal(str(value)),
            scope=scope or CategoryScope(7),
            **kwargs
        )
    return _build


@pytest.fixture
def bundle_special():
    def _build(items, value='60.00', promotion_id=30, **kwargs):
        return Promotion(
            id=promotion_id,
            type=PromotionType.BUNDLE_SPECIAL,
            name='Combinado Sub + Bebida',
            value=Decimal(value),
            bundle_items=tuple(items),
            **kwargs
        )
    return _build


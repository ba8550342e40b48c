"""
Utilidades de dinero para el motor de precios.
Todos los montos se manejan como Decimal redondeado a 2 decimales (quetzales).
"""
import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union, Optional

from delivery_engine.exceptions import ValidationError

CENTS = Decimal('0.01')
ZERO = Decimal('0.00')

Number = Union[int, float, Decimal, str]


def to_decimal(value: Number, field: str = 'monto') -> Decimal:
    """
    Convert an input number to Decimal without rounding.

    Floats go through str() so 11.1 becomes Decimal('11.1') and not its
    binary expansion.

    Raises:
        ValidationError: if the value is empty, not numeric or not finite.
    """
    if value is None or value == '' or isinstance(value, bool):
        raise ValidationError(f'El campo {field} es requerido')

    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f'El campo {field} debe ser un número finito')

    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f'El campo {field} no es un número válido: {value!r}')

    if not number.is_finite():
        raise ValidationError(f'El campo {field} debe ser un número finito')
    return number


def round_money(value: Decimal) -> Decimal:
    """Round to cents using half-up, the way prices are displayed to customers."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_money(value: Number, field: str = 'monto') -> Decimal:
    """Parse and round a money amount to 2 decimals."""
    return round_money(to_decimal(value, field))


def to_price(value: Number, field: str = 'precio') -> Decimal:
    """Parse a non-negative price."""
    amount = to_money(value, field)
    if amount < 0:
        raise ValidationError(f'El campo {field} no puede ser negativo')
    return amount


def money_gt(value: Optional[Number], symbol: str = 'Q') -> str:
    """
    Formatea un monto en quetzales con exactamente 2 decimales.

    Examples:
        money_gt(22) -> "Q22.00"
        money_gt(1500.5) -> "Q1,500.50"
        money_gt(None) -> "-"
    """
    if value is None or value == '':
        return '-'

    try:
        num = round_money(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError):
        return '-'

    sign = '-' if num < 0 else ''
    return f"{sign}{symbol}{abs(num):,.2f}"


def format_percent(value: Number) -> str:
    """Render a percentage without trailing zeros (15.00 -> '15', 12.5 -> '12.5')."""
    num = Decimal(str(value))
    if num == num.to_integral_value():
        return str(int(num))
    return format(num.normalize(), 'f')

"""Cart snapshots: line items, selected add-ons and section bundle settings."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple, FrozenSet

from delivery_engine.exceptions import ValidationError
from delivery_engine.utils.money import to_price, ZERO


@dataclass(frozen=True)
class SelectedOption:
    """An add-on chosen inside a customizable product section."""

    option_id: int
    section_id: Optional[int] = None
    price_modifier: Decimal = ZERO
    is_extra: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'price_modifier', to_price(self.price_modifier, 'price_modifier'))

    @property
    def charged_price(self) -> Decimal:
        """Only paid extras are charged; other options are free."""
        return self.price_modifier if self.is_extra else ZERO


@dataclass(frozen=True)
class SectionConfig:
    """Same-price bundling settings of a product customization section."""

    section_id: int
    bundle_discount_enabled: bool = False
    bundle_discount_amount: Decimal = ZERO
    bundle_size: int = 2

    def __post_init__(self):
        object.__setattr__(
            self, 'bundle_discount_amount', to_price(self.bundle_discount_amount or 0, 'bundle_discount_amount')
        )
        if self.bundle_discount_enabled and (not isinstance(self.bundle_size, int) or self.bundle_size < 2):
            raise ValidationError(
                f'La sección {self.section_id} debe tener bundle_size de al menos 2'
            )


@dataclass(frozen=True)
class DailySpecial:
    """
    "Sub del Día" attached to a product variant.

    `special_price` must already be resolved for the cart's zone and
    service type (see price_zones.daily_special_field).
    """

    weekdays: FrozenSet[int]
    special_price: Decimal

    def __post_init__(self):
        days = frozenset(int(day) for day in self.weekdays)
        if any(day < 1 or day > 7 for day in days):
            raise ValidationError('Los días del Sub del Día deben estar entre 1 (lunes) y 7 (domingo)')
        object.__setattr__(self, 'weekdays', days)
        object.__setattr__(self, 'special_price', to_price(self.special_price, 'daily_special_price'))

    def is_active_on(self, iso_weekday: int) -> bool:
        return iso_weekday in self.weekdays


@dataclass(frozen=True)
class CartLineItem:
    """
    One cart line. References either a product (optionally a variant) or a
    combo, never both.
    """

    id: int
    quantity: int
    unit_price: Decimal
    product_id: Optional[int] = None
    combo_id: Optional[int] = None
    variant_id: Optional[int] = None
    category_id: Optional[int] = None
    options: Tuple[SelectedOption, ...] = field(default_factory=tuple)
    daily_special: Optional[DailySpecial] = None
    name: str = ''

    def __post_init__(self):
        if (self.product_id is None) == (self.combo_id is None):
            raise ValidationError(
                f'El item {self.id} debe referenciar un producto o un combo, no ambos'
            )
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValidationError(f'La cantidad del item {self.id} debe ser un entero')
        if self.quantity < 1:
            raise ValidationError(f'La cantidad del item {self.id} debe ser mayor a 0')
        if self.variant_id is not None and self.product_id is None:
            raise ValidationError(f'El item {self.id} tiene variante pero no producto')
        object.__setattr__(self, 'unit_price', to_price(self.unit_price, 'unit_price'))
        object.__setattr__(self, 'options', tuple(self.options))

    @property
    def is_combo(self) -> bool:
        return self.combo_id is not None

    def __repr__(self):
        return f"<CartLineItem(id={self.id}, qty={self.quantity}, unit_price={self.unit_price})>"

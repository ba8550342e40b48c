"""Promotion snapshots: type, scope, validity."""
import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, Tuple, FrozenSet

from delivery_engine.exceptions import ValidationError
from delivery_engine.models.cart import CartLineItem
from delivery_engine.utils.money import to_decimal


class PromotionType(str, enum.Enum):
    """Closed set of promotion types handled by the discount engine."""
    DAILY_SPECIAL = 'daily_special'
    PERCENTAGE_DISCOUNT = 'percentage_discount'
    TWO_FOR_ONE = 'two_for_one'
    BUNDLE_SPECIAL = 'bundle_special'


class ValidityType(str, enum.Enum):
    """How a promotion's validity window is evaluated."""
    PERMANENT = 'permanent'
    WEEKDAYS = 'weekdays'
    DATE_RANGE = 'date_range'
    TIME_RANGE = 'time_range'
    DATE_TIME_RANGE = 'date_time_range'


# Scope: variant > product > category

@dataclass(frozen=True)
class Scope:
    """Base class of the promotion scope variants."""

    id: int
    specificity = 0

    def matches(self, line: CartLineItem) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class VariantScope(Scope):
    specificity = 3

    def matches(self, line: CartLineItem) -> bool:
        return line.variant_id is not None and line.variant_id == self.id


@dataclass(frozen=True)
class ProductScope(Scope):
    specificity = 2

    def matches(self, line: CartLineItem) -> bool:
        return line.product_id is not None and line.product_id == self.id


@dataclass(frozen=True)
class CategoryScope(Scope):
    specificity = 1

    def matches(self, line: CartLineItem) -> bool:
        return line.category_id is not None and line.category_id == self.id


SCOPE_KINDS = {
    'variant': VariantScope,
    'product': ProductScope,
    'category': CategoryScope,
}


@dataclass(frozen=True)
class Validity:
    """
    Validity window of a promotion.

    Weekdays (ISO-8601, 1=Monday .. 7=Sunday) are checked for every kind
    when set; date and time bounds are inclusive.
    """

    kind: ValidityType = ValidityType.PERMANENT
    weekdays: Optional[FrozenSet[int]] = None
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    time_from: Optional[time] = None
    time_until: Optional[time] = None

    def __post_init__(self):
        object.__setattr__(self, 'kind', ValidityType(self.kind))
        if self.weekdays:
            days = frozenset(int(day) for day in self.weekdays)
            if any(day < 1 or day > 7 for day in days):
                raise ValidationError('Los días de la promoción deben estar entre 1 y 7')
            object.__setattr__(self, 'weekdays', days)
        else:
            object.__setattr__(self, 'weekdays', None)

    def contains(self, moment: datetime) -> bool:
        if self.weekdays and moment.isoweekday() not in self.weekdays:
            return False

        if self.kind in (ValidityType.PERMANENT, ValidityType.WEEKDAYS):
            return True

        if self.kind in (ValidityType.DATE_RANGE, ValidityType.DATE_TIME_RANGE):
            if self.valid_from is None or self.valid_until is None:
                return False
            if not (self.valid_from <= moment.date() <= self.valid_until):
                return False

        if self.kind in (ValidityType.TIME_RANGE, ValidityType.DATE_TIME_RANGE):
            if self.time_from is None or self.time_until is None:
                return False
            current = moment.time().replace(microsecond=0)
            if not (self.time_from <= current <= self.time_until):
                return False

        return True


@dataclass(frozen=True)
class Promotion:
    """
    Read-only promotion definition.

    `value` is the percentage for percentage discounts and the aggregate
    special price for bundle specials; 2x1 and daily specials ignore it.
    """

    id: int
    type: PromotionType
    name: str = ''
    scope: Optional[Scope] = None
    value: Optional[Decimal] = None
    validity: Validity = field(default_factory=Validity)
    is_active: bool = True
    bundle_items: Tuple[Scope, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, 'type', PromotionType(self.type))
        object.__setattr__(self, 'bundle_items', tuple(self.bundle_items))
        if self.value is not None:
            object.__setattr__(self, 'value', to_decimal(self.value, 'value'))

        if self.type == PromotionType.BUNDLE_SPECIAL:
            if not self.bundle_items:
                raise ValidationError(f'El combinado {self.id} no tiene productos')
            if self.value is None or self.value < 0:
                raise ValidationError(f'El combinado {self.id} requiere un precio especial válido')
        elif self.type == PromotionType.PERCENTAGE_DISCOUNT:
            if self.value is None or not (0 < self.value <= 100):
                raise ValidationError(f'La promoción {self.id} requiere un porcentaje entre 0 y 100')

    @property
    def scopes(self) -> Tuple[Scope, ...]:
        if self.type == PromotionType.BUNDLE_SPECIAL:
            return self.bundle_items
        return (self.scope,) if self.scope is not None else ()

    def match_specificity(self, line: CartLineItem) -> int:
        """Specificity of the most specific scope matching the line, 0 if none."""
        return max((scope.specificity for scope in self.scopes if scope.matches(line)), default=0)

    def is_valid_at(self, moment: datetime) -> bool:
        return self.is_active and self.validity.contains(moment)

    def __repr__(self):
        return f"<Promotion(id={self.id}, type={self.type.value}, name='{self.name}')>"

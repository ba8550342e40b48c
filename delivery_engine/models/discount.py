"""Computed results returned by the engine (never persisted by it)."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple, List, Dict, Any

from delivery_engine.models.geo import Restaurant
from delivery_engine.models.promotion import PromotionType
from delivery_engine.utils.money import ZERO


@dataclass(frozen=True)
class AppliedPromotion:
    """Descriptor of the promotion(s) priced into a line."""

    type: PromotionType
    label: str
    promotion_id: Optional[int] = None
    name: str = ''
    components: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.promotion_id,
            'name': self.name,
            'type': self.type.value,
            'label': self.label,
            'components': list(self.components),
        }


@dataclass(frozen=True)
class PriceGroupDetail:
    """Bundling detail of the paid add-ons sharing one unit price."""

    price: Decimal
    count: int
    bundles: int
    savings: Decimal


@dataclass(frozen=True)
class OptionsPriceResult:
    total: Decimal = ZERO
    savings: Decimal = ZERO
    details: Tuple[PriceGroupDetail, ...] = ()


@dataclass(frozen=True)
class DiscountResult:
    """Priced cart line."""

    line_id: int
    original_price: Decimal
    discount_amount: Decimal
    final_price: Decimal
    is_daily_special: bool = False
    applied_promotion: Optional[AppliedPromotion] = None
    options_total: Decimal = ZERO
    options_savings: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            'line_id': self.line_id,
            'original_price': str(self.original_price),
            'discount_amount': str(self.discount_amount),
            'final_price': str(self.final_price),
            'is_daily_special': self.is_daily_special,
            'applied_promotion': self.applied_promotion.to_dict() if self.applied_promotion else None,
            'options_total': str(self.options_total),
            'options_savings': str(self.options_savings),
        }


@dataclass(frozen=True)
class CartTotals:
    lines: Tuple[DiscountResult, ...]
    subtotal: Decimal
    total_discount: Decimal
    total: Decimal

    @property
    def items_count(self) -> int:
        return len(self.lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [line.to_dict() for line in self.lines],
            'subtotal': str(self.subtotal),
            'total_discount': str(self.total_discount),
            'total': str(self.total),
            'items_count': self.items_count,
        }


@dataclass
class DeliveryValidationResult:
    """Outcome of checking whether a coordinate has delivery coverage."""

    is_valid: bool
    restaurant: Optional[Restaurant] = None
    zone: Optional[str] = None
    error_message: Optional[str] = None
    nearby_pickup_restaurants: List[Dict[str, Any]] = field(default_factory=list)

"""Models package - exports all engine snapshots and results."""
# Geography
from delivery_engine.models.geo import Coordinate, Restaurant

# Cart
from delivery_engine.models.cart import CartLineItem, SelectedOption, SectionConfig, DailySpecial

# Promotions
from delivery_engine.models.promotion import (
    Promotion, PromotionType, Validity, ValidityType,
    Scope, VariantScope, ProductScope, CategoryScope, SCOPE_KINDS
)

# Results
from delivery_engine.models.discount import (
    AppliedPromotion, DiscountResult, CartTotals,
    OptionsPriceResult, PriceGroupDetail, DeliveryValidationResult
)

__all__ = [
    'Coordinate', 'Restaurant',
    'CartLineItem', 'SelectedOption', 'SectionConfig', 'DailySpecial',
    'Promotion', 'PromotionType', 'Validity', 'ValidityType',
    'Scope', 'VariantScope', 'ProductScope', 'CategoryScope', 'SCOPE_KINDS',
    'AppliedPromotion', 'DiscountResult', 'CartTotals',
    'OptionsPriceResult', 'PriceGroupDetail', 'DeliveryValidationResult',
]

"""
Discount engine - prices every cart line against the active promotions.

Priority pipeline, evaluated in this fixed order:

1. Bundle specials (cart level). Lines consumed by a complete bundle share
   the bundle's aggregate price and receive nothing else.
2. 2x1. floor(q/2) pairs pay one unit each; the leftover unit is priced by
   the next line strategy that applies (Sub del Día, then % discount).
3. Sub del Día. Beats percentage discounts outright; they never stack.
4. Percentage discount.
5. No promotion: final price = original price.

Discounts only ever touch the base price; paid add-ons are always charged
in full. Every amount is rounded to cents where it is computed.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from delivery_engine.exceptions import AmbiguousBundleMembership, ValidationError
from delivery_engine.metrics import (
    promotions_applied_total, ambiguous_bundles_total, cart_pricing_duration_seconds
)
from delivery_engine.models import (
    CartLineItem, Promotion, PromotionType, SectionConfig,
    AppliedPromotion, DiscountResult, CartTotals, OptionsPriceResult
)
from delivery_engine.services.bundle_option_service import price_line_options
from delivery_engine.services.promotion_catalog_service import (
    applicable_promotions, active_bundle_specials, DAILY_SPECIAL_NAME
)
from delivery_engine.utils.money import round_money, format_percent, ZERO

logger = logging.getLogger(__name__)

TWO_FOR_ONE_LABEL = '2x1'
BUNDLE_FALLBACK_NAME = 'Combinado'
LABEL_SEPARATOR = ' + '


@dataclass(frozen=True)
class LineContext:
    """Everything a line strategy needs to price one cart line."""

    line: CartLineItem
    candidates: Sequence[Promotion]
    options: OptionsPriceResult

    def first(self, promotion_type: PromotionType) -> Optional[Promotion]:
        """Best candidate of a type (candidates arrive most specific first)."""
        for promotion in self.candidates:
            if promotion.type == promotion_type:
                return promotion
        return None

    @property
    def original_price(self) -> Decimal:
        return round_money((self.line.unit_price + self.options.total) * self.line.quantity)


@dataclass(frozen=True)
class Component:
    """Discount one promotion contributes to a number of units."""

    promotion: Promotion
    amount: Decimal
    label: str


def _build_result(
    ctx: LineContext,
    discount: Decimal,
    applied: Optional[AppliedPromotion] = None,
    is_daily_special: bool = False
) -> DiscountResult:
    original = ctx.original_price
    discount = min(round_money(discount), original)
    return DiscountResult(
        line_id=ctx.line.id,
        original_price=original,
        discount_amount=discount,
        final_price=original - discount,
        is_daily_special=is_daily_special,
        applied_promotion=applied,
        options_total=ctx.options.total,
        options_savings=ctx.options.savings,
    )


def _no_promotion(ctx: LineContext) -> DiscountResult:
    return _build_result(ctx, ZERO)


# Line strategies: price(ctx) returns a DiscountResult ("handled") or None
# ("pass to next"). component(ctx, units) prices a subset of units and is
# what the 2x1 uses for its leftover.

class PromotionStrategy:
    promotion_type: PromotionType = None

    def component(self, ctx: LineContext, units: int) -> Optional[Component]:
        raise NotImplementedError

    def price(self, ctx: LineContext) -> Optional[DiscountResult]:
        component = self.component(ctx, ctx.line.quantity)
        if component is None:
            return None
        applied = AppliedPromotion(
            type=self.promotion_type,
            label=component.label,
            promotion_id=component.promotion.id,
            name=component.promotion.name,
            components=(component.label,),
        )
        return _build_result(
            ctx, component.amount, applied,
            is_daily_special=self.promotion_type == PromotionType.DAILY_SPECIAL
        )


class DailySpecialStrategy(PromotionStrategy):
    """Sub del Día: the variant's special price replaces the base price."""

    promotion_type = PromotionType.DAILY_SPECIAL

    def component(self, ctx, units):
        promotion = ctx.first(PromotionType.DAILY_SPECIAL)
        if promotion is None or promotion.value is None or promotion.value >= ctx.line.unit_price:
            return None
        per_unit = ctx.line.unit_price - promotion.value
        return Component(promotion, round_money(per_unit * units), DAILY_SPECIAL_NAME)


class PercentageDiscountStrategy(PromotionStrategy):
    promotion_type = PromotionType.PERCENTAGE_DISCOUNT

    def component(self, ctx, units):
        promotion = ctx.first(PromotionType.PERCENTAGE_DISCOUNT)
        if promotion is None:
            return None
        amount = round_money(ctx.line.unit_price * units * promotion.value / Decimal('100'))
        return Component(promotion, amount, f"-{format_percent(promotion.value)}%")


class TwoForOneStrategy(PromotionStrategy):
    """
    2x1 over the line's own quantity.

    Pairs always use the normal price; only the odd unit left over may get
    another promotion, chosen from LEFTOVER_STRATEGIES in order.
    """

    promotion_type = PromotionType.TWO_FOR_ONE

    def component(self, ctx, units):
        promotion = ctx.first(PromotionType.TWO_FOR_ONE)
        pairs = units // 2
        if promotion is None or pairs == 0:
            return None
        return Component(promotion, round_money(ctx.line.unit_price * pairs), TWO_FOR_ONE_LABEL)

    def price(self, ctx):
        pair_component = self.component(ctx, ctx.line.quantity)
        if pair_component is None:
            return None

        components = [pair_component]
        leftover = ctx.line.quantity % 2
        if leftover:
            for strategy in LEFTOVER_STRATEGIES:
                leftover_component = strategy.component(ctx, leftover)
                if leftover_component is not None:
                    components.append(leftover_component)
                    break

        labels = tuple(component.label for component in components)
        applied = AppliedPromotion(
            type=PromotionType.TWO_FOR_ONE,
            label=LABEL_SEPARATOR.join(labels),
            promotion_id=pair_component.promotion.id,
            name=pair_component.promotion.name,
            components=labels,
        )
        return _build_result(ctx, sum((c.amount for c in components), ZERO), applied)


LEFTOVER_STRATEGIES = (DailySpecialStrategy(), PercentageDiscountStrategy())
LINE_STRATEGIES = (TwoForOneStrategy(),) + LEFTOVER_STRATEGIES

# Every PromotionType must be priced somewhere: bundles at cart level, the rest per line.
HANDLED_TYPES = frozenset(
    [PromotionType.BUNDLE_SPECIAL] + [strategy.promotion_type for strategy in LINE_STRATEGIES]
)


# Bundle specials (cart level)

def _bundle_membership(lines: Sequence[CartLineItem], bundles: Sequence[Promotion]) -> Dict[int, Promotion]:
    """
    Map line id -> the single bundle special it belongs to.

    Raises:
        AmbiguousBundleMembership: if a line matches several bundle specials.
    """
    membership = {}
    for line in lines:
        if line.is_combo:
            continue
        matched = [bundle for bundle in bundles if bundle.match_specificity(line)]
        if len(matched) > 1:
            ambiguous_bundles_total.inc()
            logger.error(
                f"[PRICING] Line {line.id} matches bundle specials {[b.id for b in matched]}"
            )
            raise AmbiguousBundleMembership(line.id, [bundle.id for bundle in matched])
        if matched:
            membership[line.id] = matched[0]
    return membership


def _consume_bundle_units(bundle: Promotion, members: Sequence[CartLineItem], instances: int) -> Optional[Dict[int, int]]:
    """
    Units each line contributes to `instances` copies of the bundle, or None
    if the bundle items cannot all be filled.

    Bundle item units are matched to line units with augmenting paths, so a
    unit taken early by a broad scope is moved when a narrower scope needs
    that line. Items are tried most specific first and lines by id, which
    makes the outcome independent of cart order.
    """
    items = sorted(bundle.bundle_items, key=lambda scope: -scope.specificity)
    item_units = [scope for scope in items for _ in range(instances)]
    candidates = sorted(members, key=lambda line: line.id)
    assigned = {line.id: [] for line in candidates}

    def place(unit, visited):
        scope = item_units[unit]
        for line in candidates:
            if line.id in visited or not scope.matches(line):
                continue
            visited.add(line.id)
            if len(assigned[line.id]) < line.quantity:
                assigned[line.id].append(unit)
                return True
            for other in list(assigned[line.id]):
                if place(other, visited):
                    assigned[line.id].remove(other)
                    assigned[line.id].append(unit)
                    return True
        return False

    for unit in range(len(item_units)):
        if not place(unit, set()):
            return None
    return {line_id: len(units) for line_id, units in assigned.items() if units}


def _price_bundle_group(
    bundle: Promotion,
    members: Sequence[CartLineItem],
    options: Mapping[int, OptionsPriceResult]
) -> Dict[int, DiscountResult]:
    max_instances = sum(line.quantity for line in members) // len(bundle.bundle_items)
    consumed = None
    instances = max_instances
    while instances > 0:
        consumed = _consume_bundle_units(bundle, members, instances)
        if consumed is not None:
            break
        instances -= 1
    if not consumed:
        return {}

    grouped = sorted((line for line in members if consumed.get(line.id)), key=lambda line: line.id)
    values = {line.id: round_money(line.unit_price * consumed[line.id]) for line in grouped}
    normal_value = sum(values.values(), ZERO)
    bundle_total = round_money(bundle.value * instances)
    total_discount = max(normal_value - bundle_total, ZERO)

    name = bundle.name or BUNDLE_FALLBACK_NAME
    applied = AppliedPromotion(
        type=PromotionType.BUNDLE_SPECIAL,
        label=name,
        promotion_id=bundle.id,
        name=name,
        components=(name,),
    )

    results = {}
    distributed = ZERO
    for index, line in enumerate(grouped):
        if index == len(grouped) - 1:
            share = total_discount - distributed
        elif normal_value:
            share = round_money(total_discount * values[line.id] / normal_value)
        else:
            share = ZERO
        distributed += share
        ctx = LineContext(line=line, candidates=(bundle,), options=options[line.id])
        results[line.id] = _build_result(ctx, share, applied)

    logger.debug(
        f"[PRICING] Bundle {bundle.id} x{instances}: normal={normal_value} "
        f"bundle={bundle_total} lines={[line.id for line in grouped]}"
    )
    return results


def apply_bundle_specials(
    lines: Sequence[CartLineItem],
    promotions: Sequence[Promotion],
    as_of: datetime,
    options: Mapping[int, OptionsPriceResult]
) -> Dict[int, DiscountResult]:
    """Price the lines consumed by bundle specials; they are excluded from every other promotion."""
    bundles = active_bundle_specials(promotions, as_of)
    if not bundles:
        return {}

    membership = _bundle_membership(lines, bundles)
    results = {}
    for bundle in bundles:
        members = [line for line in lines if membership.get(line.id) is bundle]
        if members:
            results.update(_price_bundle_group(bundle, members, options))
    return results


# Public API

def _validate_inputs(lines: Sequence[CartLineItem], as_of: datetime) -> None:
    if not isinstance(as_of, datetime):
        raise ValidationError('La fecha de evaluación debe ser un datetime')
    seen = set()
    for line in lines:
        if not isinstance(line, CartLineItem):
            raise ValidationError(f'Item de carrito inválido: {line!r}')
        if line.id in seen:
            raise ValidationError(f'El item {line.id} está repetido en el carrito')
        seen.add(line.id)


def calculate_item_discounts(
    lines: Iterable[CartLineItem],
    promotions: Iterable[Promotion],
    as_of: datetime,
    sections: Optional[Mapping[int, SectionConfig]] = None
) -> List[DiscountResult]:
    """
    Price every line of a cart, in cart order.

    Args:
        lines: cart line snapshots (unit prices already zone-resolved)
        promotions: promotion definitions to consider
        as_of: evaluation moment; fix it to get reproducible results
        sections: bundle settings of the customization sections, by id

    Raises:
        ValidationError: on malformed input
        AmbiguousBundleMembership: if a line matches several bundle specials
    """
    lines = list(lines)
    promotions = list(promotions)
    _validate_inputs(lines, as_of)

    options = {line.id: price_line_options(line.options, sections or {}) for line in lines}
    bundled = apply_bundle_specials(lines, promotions, as_of, options)

    results = []
    for line in lines:
        result = bundled.get(line.id)
        if result is None:
            candidates = [
                promotion for promotion in applicable_promotions(line, as_of, promotions)
                if promotion.type != PromotionType.BUNDLE_SPECIAL
            ]
            ctx = LineContext(line=line, candidates=candidates, options=options[line.id])
            for strategy in LINE_STRATEGIES:
                result = strategy.price(ctx)
                if result is not None:
                    break
            else:
                result = _no_promotion(ctx)

        if result.applied_promotion is not None:
            promotions_applied_total.labels(promotion_type=result.applied_promotion.type.value).inc()
        results.append(result)

    return results


def calculate_cart_totals(
    lines: Iterable[CartLineItem],
    promotions: Iterable[Promotion],
    as_of: datetime,
    sections: Optional[Mapping[int, SectionConfig]] = None
) -> CartTotals:
    """Priced lines plus subtotal, total discount and total."""
    started = time.perf_counter()
    results = calculate_item_discounts(lines, promotions, as_of, sections)

    subtotal = sum((r.original_price for r in results), ZERO)
    total_discount = sum((r.discount_amount for r in results), ZERO)
    total = sum((r.final_price for r in results), ZERO)

    cart_pricing_duration_seconds.observe(time.perf_counter() - started)
    logger.info(
        f"[PRICING] Cart priced: {len(results)} lines, subtotal={subtotal}, "
        f"discount={total_discount}, total={total}"
    )
    return CartTotals(
        lines=tuple(results),
        subtotal=round_money(subtotal),
        total_discount=round_money(total_discount),
        total=round_money(total),
    )

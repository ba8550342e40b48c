"""
Promotion catalog - candidate promotions for each cart line.

Validity rules (ISO-8601 weekdays, 1=Monday .. 7=Sunday):
- weekdays, when set, must contain the evaluation day
- permanent/weekdays: always valid otherwise
- date ranges and time windows are inclusive
Inactive promotions never match.
"""
import logging
from datetime import datetime
from typing import Iterable, List

from delivery_engine.models import CartLineItem, Promotion, PromotionType, VariantScope

logger = logging.getLogger(__name__)

DAILY_SPECIAL_NAME = 'Sub del Día'


def is_valid_at(promotion: Promotion, as_of: datetime) -> bool:
    """True if the promotion is active and its validity window contains `as_of`."""
    return promotion.is_valid_at(as_of)


def active_bundle_specials(promotions: Iterable[Promotion], as_of: datetime) -> List[Promotion]:
    """Bundle specials valid at `as_of`, by id."""
    bundles = [
        promotion for promotion in promotions
        if promotion.type == PromotionType.BUNDLE_SPECIAL and is_valid_at(promotion, as_of)
    ]
    bundles.sort(key=lambda promotion: promotion.id)
    return bundles


def daily_special_candidate(line: CartLineItem, as_of: datetime):
    """
    Synthetic `daily_special` promotion for a line whose variant is
    "Sub del Día" today, or None.

    The special only counts when it is actually cheaper than the base price.
    """
    special = line.daily_special
    if special is None or line.variant_id is None:
        return None
    if not special.is_active_on(as_of.isoweekday()):
        return None
    if special.special_price >= line.unit_price:
        return None

    return Promotion(
        id=None,
        type=PromotionType.DAILY_SPECIAL,
        name=DAILY_SPECIAL_NAME,
        scope=VariantScope(line.variant_id),
        value=special.special_price,
    )


def applicable_promotions(line: CartLineItem, as_of: datetime, promotions: Iterable[Promotion]) -> List[Promotion]:
    """
    Every promotion that may price `line` at `as_of`.

    All matching promotions of every type are returned; the discount engine
    decides between them. Order: most specific scope first (variant, product,
    category), then the most recently defined promotion (highest id).
    Combo lines have fixed prices and get no candidates.
    """
    if line.is_combo:
        return []

    matched = []
    for promotion in promotions:
        if not promotion.is_active:
            continue
        specificity = promotion.match_specificity(line)
        if not specificity:
            continue
        if not is_valid_at(promotion, as_of):
            continue
        matched.append((specificity, promotion))

    matched.sort(key=lambda pair: (-pair[0], -(pair[1].id or 0)))
    candidates = [promotion for _, promotion in matched]

    daily = daily_special_candidate(line, as_of)
    if daily is not None:
        candidates.insert(0, daily)

    if candidates:
        logger.debug(
            f"[PRICING] Line {line.id}: candidates "
            f"{[(p.type.value, p.id) for p in candidates]}"
        )
    return candidates

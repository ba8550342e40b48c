"""
Same-price bundling of paid add-ons inside one customizable line.

Example (bundle_size=2, bundle_discount_amount=Q5): four Q11 extras cost
2 * (Q22 - Q5) = Q34; a third Q11 extra alone stays at full price.
"""
from collections import OrderedDict
from typing import Iterable, Mapping, Optional

from delivery_engine.models import SelectedOption, SectionConfig, OptionsPriceResult, PriceGroupDetail
from delivery_engine.utils.money import round_money, ZERO


def calculate_options_price(section: Optional[SectionConfig], options: Iterable[SelectedOption]) -> OptionsPriceResult:
    """
    Price the options selected in one section.

    Only paid extras are grouped by unit price; repeated option ids count
    once per occurrence (the same extra on two subs of a combo). Non-extra
    options are free and never join a bundle.
    """
    extras = [option.price_modifier for option in options if option.is_extra]
    plain_total = sum(extras, ZERO)

    if section is None or not section.bundle_discount_enabled or len(extras) < section.bundle_size:
        return OptionsPriceResult(total=round_money(plain_total), savings=ZERO)

    grouped = OrderedDict()
    for price in extras:
        grouped[price] = grouped.get(price, 0) + 1

    total = ZERO
    savings = ZERO
    details = []
    for price, count in grouped.items():
        bundles = count // section.bundle_size
        group_savings = round_money(bundles * section.bundle_discount_amount)
        total += round_money(count * price) - group_savings
        savings += group_savings
        details.append(PriceGroupDetail(price=price, count=count, bundles=bundles, savings=group_savings))

    return OptionsPriceResult(
        total=round_money(total),
        savings=round_money(savings),
        details=tuple(details)
    )


def price_line_options(
    options: Iterable[SelectedOption],
    sections: Mapping[int, SectionConfig]
) -> OptionsPriceResult:
    """
    Price all options of a line (per unit), section by section.

    Options whose section has no bundle configuration are summed plainly.
    """
    by_section = OrderedDict()
    for option in options:
        by_section.setdefault(option.section_id, []).append(option)

    total = ZERO
    savings = ZERO
    details = []
    for section_id, section_options in by_section.items():
        result = calculate_options_price(sections.get(section_id), section_options)
        total += result.total
        savings += result.savings
        details.extend(result.details)

    return OptionsPriceResult(total=round_money(total), savings=round_money(savings), details=tuple(details))

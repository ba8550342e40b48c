"""
Unit tests for the discount engine priority pipeline.
"""

import pytest
from decimal import Decimal

from delivery_engine.exceptions import AmbiguousBundleMembership, ValidationError
from delivery_engine.models import (
    DailySpecial, PromotionType, SelectedOption, SectionConfig,
    VariantScope, ProductScope, CategoryScope
)
from delivery_engine.services.discount_service import (
    calculate_item_discounts, calculate_cart_totals, HANDLED_TYPES, LINE_STRATEGIES
)


def friday_special(price='22.00'):
    return DailySpecial(weekdays={5}, special_price=Decimal(price))


class TestPipeline:
    """Tests for the strategy registry itself."""

    def test_every_promotion_type_is_handled(self):
        assert HANDLED_TYPES == frozenset(PromotionType)

    def test_line_strategy_order(self):
        assert [s.promotion_type for s in LINE_STRATEGIES] == [
            PromotionType.TWO_FOR_ONE,
            PromotionType.DAILY_SPECIAL,
            PromotionType.PERCENTAGE_DISCOUNT,
        ]


class TestSingleLinePromotions:
    """Tests for each promotion on its own."""

    def test_no_promotion(self, make_line, as_of):
        [result] = calculate_item_discounts([make_line('35.00', 2)], [], as_of)

        assert result.original_price == Decimal('70.00')
        assert result.discount_amount == Decimal('0.00')
        assert result.final_price == Decimal('70.00')
        assert result.applied_promotion is None
        assert result.is_daily_special is False

    def test_percentage_discount(self, make_line, as_of, percentage):
        line = make_line('35.00', 2, category_id=7)
        [result] = calculate_item_discounts([line], [percentage(15)], as_of)

        assert result.discount_amount == Decimal('10.50')
        assert result.final_price == Decimal('59.50')
        assert result.applied_promotion.type == PromotionType.PERCENTAGE_DISCOUNT
        assert result.applied_promotion.label == '-15%'

    def test_percentage_rounds_half_up(self, make_line, as_of, percentage):
        line = make_line('10.05', 1, category_id=7)
        [result] = calculate_item_discounts([line], [percentage(50)], as_of)

        assert result.discount_amount == Decimal('5.03')
        assert result.final_price == Decimal('5.02')

    def test_daily_special(self, make_line, as_of):
        line = make_line('35.00', 2, product_id=3, variant_id=9, daily_special=friday_special())
        [result] = calculate_item_discounts([line], [], as_of)

        assert result.is_daily_special is True
        assert result.discount_amount == Decimal('26.00')
        assert result.final_price == Decimal('44.00')
        assert result.applied_promotion.label == 'Sub del Día'
        assert result.applied_promotion.promotion_id is None

    def test_daily_special_beats_percentage(self, make_line, as_of, percentage):
        line = make_line(
            '35.00', 1, product_id=3, variant_id=9, category_id=7, daily_special=friday_special()
        )
        [result] = calculate_item_discounts([line], [percentage(50)], as_of)

        assert result.is_daily_special is True
        assert result.applied_promotion.type == PromotionType.DAILY_SPECIAL
        assert result.discount_amount == Decimal('13.00')

    def test_daily_special_other_weekday_falls_back_to_percentage(self, make_line, as_of, percentage):
        line = make_line(
            '35.00', 1, product_id=3, variant_id=9, category_id=7,
            daily_special=DailySpecial(weekdays={1}, special_price=Decimal('22.00'))
        )
        [result] = calculate_item_discounts([line], [percentage(10)], as_of)

        assert result.is_daily_special is False
        assert result.discount_amount == Decimal('3.50')


class TestTwoForOne:
    """Tests for 2x1 and its hybrids."""

    def test_three_units(self, make_line, as_of, two_for_one):
        line = make_line('35.00', 3, product_id=3)
        [result] = calculate_item_discounts([line], [two_for_one(ProductScope(3))], as_of)

        assert result.original_price == Decimal('105.00')
        assert result.discount_amount == Decimal('35.00')
        assert result.final_price == Decimal('70.00')
        assert result.applied_promotion.label == '2x1'

    def test_four_units(self, make_line, as_of, two_for_one):
        line = make_line('35.00', 4, product_id=3)
        [result] = calculate_item_discounts([line], [two_for_one(ProductScope(3))], as_of)

        assert result.discount_amount == Decimal('70.00')

    def test_single_unit_passes_to_next_strategy(self, make_line, as_of, two_for_one, percentage):
        line = make_line('35.00', 1, product_id=3, category_id=7)
        [result] = calculate_item_discounts(
            [line], [two_for_one(ProductScope(3)), percentage(10)], as_of
        )

        assert result.applied_promotion.type == PromotionType.PERCENTAGE_DISCOUNT
        assert result.discount_amount == Decimal('3.50')

    def test_leftover_priced_by_daily_special(self, make_line, as_of, two_for_one):
        line = make_line('35.00', 3, product_id=3, variant_id=9, daily_special=friday_special())
        [result] = calculate_item_discounts([line], [two_for_one(ProductScope(3))], as_of)

        assert result.discount_amount == Decimal('48.00')
        assert result.final_price == Decimal('57.00')
        assert result.applied_promotion.label == '2x1 + Sub del Día'
        assert result.applied_promotion.components == ('2x1', 'Sub del Día')

    def test_leftover_priced_by_percentage(self, make_line, as_of, two_for_one, percentage):
        line = make_line('35.00', 3, product_id=3, category_id=7)
        [result] = calculate_item_discounts([line], [two_for_one(ProductScope(3)), percentage(20)], as_of)

        assert result.discount_amount == Decimal('42.00')
        assert result.applied_promotion.label == '2x1 + -20%'

    @pytest.mark.parametrize('reverse', [False, True])
    def test_three_way_tie_prefers_daily_special(self, make_line, as_of, two_for_one, percentage, reverse):
        """Outcome does not depend on the order promotions are listed in."""
        line = make_line(
            '35.00', 3, product_id=3, variant_id=9, category_id=7, daily_special=friday_special()
        )
        promotions = [two_for_one(ProductScope(3)), percentage(50)]
        if reverse:
            promotions.reverse()

        [result] = calculate_item_discounts([line], promotions, as_of)

        assert result.discount_amount == Decimal('48.00')
        assert result.applied_promotion.label == '2x1 + Sub del Día'

    def test_even_quantity_has_no_leftover_component(self, make_line, as_of, two_for_one):
        line = make_line('35.00', 2, product_id=3, variant_id=9, daily_special=friday_special())
        [result] = calculate_item_discounts([line], [two_for_one(ProductScope(3))], as_of)

        assert result.discount_amount == Decimal('35.00')
        assert result.applied_promotion.label == '2x1'


class TestBundleSpecials:
    """Tests for cart-level bundle specials."""

    def test_two_lines_share_bundle_price(self, make_line, as_of, bundle_special):
        sub = make_line('50.00', 1, product_id=1)
        drink = make_line('30.00', 1, product_id=2)
        bundle = bundle_special([ProductScope(1), ProductScope(2)], value='60.00')

        results = calculate_item_discounts([sub, drink], [bundle], as_of)

        assert sum(r.discount_amount for r in results) == Decimal('20.00')
        assert sum(r.final_price for r in results) == Decimal('60.00')
        assert [r.discount_amount for r in results] == [Decimal('12.50'), Decimal('7.50')]
        assert all(r.applied_promotion.type == PromotionType.BUNDLE_SPECIAL for r in results)

    def test_bundle_is_exclusive(self, make_line, as_of, bundle_special, percentage):
        sub = make_line('50.00', 1, product_id=1, category_id=7)
        drink = make_line('30.00', 1, product_id=2, category_id=7)
        bundle = bundle_special([ProductScope(1), ProductScope(2)], value='60.00')

        results = calculate_item_discounts([sub, drink], [bundle, percentage(50)], as_of)

        assert sum(r.discount_amount for r in results) == Decimal('20.00')

    def test_incomplete_bundle_falls_through(self, make_line, as_of, bundle_special, percentage):
        sub = make_line('50.00', 1, product_id=1, category_id=7)
        bundle = bundle_special([ProductScope(1), ProductScope(2)], value='60.00')

        [result] = calculate_item_discounts([sub], [bundle, percentage(10)], as_of)

        assert result.applied_promotion.type == PromotionType.PERCENTAGE_DISCOUNT
        assert result.discount_amount == Decimal('5.00')

    def test_multiple_instances(self, make_line, as_of, bundle_special):
        sub = make_line('50.00', 2, product_id=1)
        drink = make_line('30.00', 3, product_id=2)
        bundle = bundle_special([ProductScope(1), ProductScope(2)], value='60.00')

        results = calculate_item_discounts([sub, drink], [bundle], as_of)

        # two bundles: 160 normal -> 120; the extra drink is part of the group line
        assert sum(r.discount_amount for r in results) == Decimal('40.00')
        assert results[1].original_price == Decimal('90.00')

    def test_bundle_with_repeated_item(self, make_line, as_of, bundle_special):
        subs = make_line('40.00', 2, category_id=5)
        bundle = bundle_special([CategoryScope(5), CategoryScope(5)], value='60.00')

        [result] = calculate_item_discounts([subs], [bundle], as_of)

        assert result.discount_amount == Decimal('20.00')

    @pytest.mark.parametrize('reverse', [False, True])
    def test_cart_order_does_not_change_bundle(self, make_line, as_of, bundle_special, reverse):
        """A broad bundle item leaves the line a narrower item needs."""
        sub = make_line('50.00', 1, id=1, product_id=1, category_id=5)
        other_sub = make_line('30.00', 1, id=2, product_id=2, category_id=5)
        bundle = bundle_special([CategoryScope(5), ProductScope(1)], value='60.00')
        lines = [sub, other_sub]
        if reverse:
            lines.reverse()

        results = calculate_item_discounts(lines, [bundle], as_of)
        by_line = {r.line_id: r.discount_amount for r in results}

        assert by_line == {1: Decimal('12.50'), 2: Decimal('7.50')}

    def test_bundle_not_cheaper_stays_exclusive(self, make_line, as_of, bundle_special, percentage):
        sub = make_line('50.00', 1, product_id=1, category_id=7)
        drink = make_line('30.00', 1, product_id=2, category_id=7)
        bundle = bundle_special([ProductScope(1), ProductScope(2)], value='100.00')

        results = calculate_item_discounts([sub, drink], [bundle, percentage(50)], as_of)

        assert [r.discount_amount for r in results] == [Decimal('0.00'), Decimal('0.00')]
        assert [r.final_price for r in results] == [Decimal('50.00'), Decimal('30.00')]
        assert all(r.applied_promotion.type == PromotionType.BUNDLE_SPECIAL for r in results)

    def test_ambiguous_membership_is_rejected(self, make_line, as_of, bundle_special):
        sub = make_line('50.00', 1, product_id=1, category_id=7)
        first = bundle_special([ProductScope(1), ProductScope(2)], promotion_id=30)
        second = bundle_special([CategoryScope(7), ProductScope(3)], promotion_id=31)

        with pytest.raises(AmbiguousBundleMembership) as exc_info:
            calculate_item_discounts([sub], [first, second], as_of)

        assert exc_info.value.line_id == sub.id
        assert exc_info.value.promotion_ids == (30, 31)
        assert exc_info.value.status_code == 409

    def test_combo_lines_never_join_bundles(self, make_line, as_of, bundle_special):
        combo = make_line('45.00', 1, combo_id=4, category_id=7)
        drink = make_line('30.00', 1, product_id=2)
        bundle = bundle_special([CategoryScope(7), ProductScope(2)], value='50.00')

        results = calculate_item_discounts([combo, drink], [bundle], as_of)

        assert [r.discount_amount for r in results] == [Decimal('0.00'), Decimal('0.00')]


class TestOptions:
    """Paid add-ons are charged in full on top of the discounted base price."""

    def test_options_are_not_discounted(self, make_line, as_of, percentage):
        section = SectionConfig(section_id=2, bundle_discount_enabled=True,
                                bundle_discount_amount=Decimal('5.00'))
        options = [
            SelectedOption(option_id=i, section_id=2, price_modifier=Decimal('11.00'), is_extra=True)
            for i in range(4)
        ]
        line = make_line('35.00', 2, category_id=7, options=options)

        [result] = calculate_item_discounts([line], [percentage(10)], as_of, sections={2: section})

        assert result.options_total == Decimal('34.00')
        assert result.options_savings == Decimal('10.00')
        assert result.original_price == Decimal('138.00')   # (35 + 34) * 2
        assert result.discount_amount == Decimal('7.00')
        assert result.final_price == Decimal('131.00')


class TestCartTotals:
    """Tests for whole-cart pricing."""

    def test_totals(self, make_line, as_of, two_for_one, percentage):
        lines = [
            make_line('35.00', 3, product_id=3),
            make_line('20.00', 1, product_id=4, category_id=7),
            make_line('45.00', 1, combo_id=1, category_id=7),
        ]
        totals = calculate_cart_totals(lines, [two_for_one(ProductScope(3)), percentage(10)], as_of)

        assert totals.subtotal == Decimal('170.00')
        assert totals.total_discount == Decimal('37.00')
        assert totals.total == Decimal('133.00')
        assert totals.items_count == 3
        assert totals.to_dict()['total'] == '133.00'

    def test_idempotent(self, make_line, as_of, two_for_one, percentage, bundle_special):
        lines = [
            make_line('35.00', 3, product_id=3, variant_id=9, daily_special=friday_special()),
            make_line('50.00', 1, product_id=1),
            make_line('30.00', 1, product_id=2),
        ]
        promotions = [
            two_for_one(ProductScope(3)),
            percentage(15, scope=VariantScope(9)),
            bundle_special([ProductScope(1), ProductScope(2)]),
        ]

        first = calculate_cart_totals(lines, promotions, as_of)
        second = calculate_cart_totals(lines, promotions, as_of)

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_empty_cart(self, as_of):
        totals = calculate_cart_totals([], [], as_of)
        assert totals.total == Decimal('0.00')
        assert totals.items_count == 0

    def test_duplicate_line_ids(self, make_line, as_of):
        with pytest.raises(ValidationError):
            calculate_item_discounts([make_line(id=1), make_line(id=1)], [], as_of)

    def test_as_of_must_be_datetime(self, make_line):
        with pytest.raises(ValidationError):
            calculate_item_discounts([make_line()], [], '2024-05-17')


class TestLineValidation:
    """Malformed lines are rejected before pricing."""

    @pytest.mark.parametrize('quantity', [0, -1, 1.5, True])
    def test_bad_quantity(self, make_line, quantity):
        with pytest.raises(ValidationError):
            make_line(quantity=quantity)

    def test_product_and_combo(self, make_line):
        with pytest.raises(ValidationError):
            make_line(product_id=1, combo_id=2)

    def test_negative_price(self, make_line):
        with pytest.raises(ValidationError):
            make_line(unit_price='-1.00')

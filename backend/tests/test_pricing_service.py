import unittest
from decimal import Decimal

from stockpilot.services.pricing_service import (
    DISCOUNT_FIXED,
    DISCOUNT_PERCENTAGE,
    PricingLine,
    compute_discount_cents,
    compute_order_totals,
)


class OrderTotalsTests(unittest.TestCase):
    def test_two_line_order_with_percentage_discount_and_shipping(self):
        totals = compute_order_totals(
            [
                PricingLine(quantity=3, unit_price_cents=1000, cost_cents=400),
                PricingLine(quantity=1, unit_price_cents=2500, cost_cents=1000),
            ],
            discount_type=DISCOUNT_PERCENTAGE,
            discount_value=10,
            shipping_fee_cents=500,
        )

        self.assertEqual(totals.subtotal_cents, 5500)
        self.assertEqual(totals.discount_amount_cents, 550)
        self.assertEqual(totals.total_amount_cents, 5450)
        self.assertEqual(totals.cost_of_goods_sold_cents, 2200)
        self.assertEqual(totals.profit_cents, 3250)

    def test_no_discount(self):
        totals = compute_order_totals([PricingLine(2, 750, 300)])
        self.assertEqual(totals.discount_amount_cents, 0)
        self.assertEqual(totals.total_amount_cents, 1500)
        self.assertEqual(totals.profit_cents, 900)

    def test_fixed_discount_larger_than_subtotal_is_clamped(self):
        totals = compute_order_totals(
            [PricingLine(1, 1000, 200)],
            discount_type=DISCOUNT_FIXED,
            discount_value=5000,
            shipping_fee_cents=300,
        )
        self.assertEqual(totals.discount_amount_cents, 1000)
        self.assertEqual(totals.total_amount_cents, 300)
        self.assertEqual(totals.profit_cents, 100)

    def test_total_identity_holds(self):
        for discount_type, value in ((None, None), (DISCOUNT_PERCENTAGE, "12.5"), (DISCOUNT_FIXED, 199)):
            totals = compute_order_totals(
                [PricingLine(3, 333, 100), PricingLine(7, 1299, 650)],
                discount_type=discount_type,
                discount_value=value,
                shipping_fee_cents=450,
            )
            self.assertEqual(
                totals.total_amount_cents,
                totals.subtotal_cents - totals.discount_amount_cents + totals.shipping_fee_cents,
            )
            self.assertTrue(0 <= totals.discount_amount_cents <= totals.subtotal_cents)
            self.assertEqual(totals.profit_cents, totals.total_amount_cents - totals.cost_of_goods_sold_cents)


class DiscountRoundingTests(unittest.TestCase):
    def test_percentage_rounds_half_up_to_the_cent(self):
        # 15% of 10.10 = 1.515 -> 1.52
        self.assertEqual(compute_discount_cents(1010, DISCOUNT_PERCENTAGE, 15), 152)
        # 33% of 0.05 = 0.0165 -> 0.02
        self.assertEqual(compute_discount_cents(5, DISCOUNT_PERCENTAGE, 33), 2)

    def test_fractional_percentage(self):
        self.assertEqual(compute_discount_cents(10000, DISCOUNT_PERCENTAGE, Decimal("2.5")), 250)

    def test_negative_discount_clamps_to_zero(self):
        self.assertEqual(compute_discount_cents(1000, DISCOUNT_FIXED, -50), 0)

    def test_percentage_over_hundred_clamps_to_subtotal(self):
        self.assertEqual(compute_discount_cents(1000, DISCOUNT_PERCENTAGE, 150), 1000)

    def test_unknown_type_means_no_discount(self):
        self.assertEqual(compute_discount_cents(1000, "bogus", 10), 0)

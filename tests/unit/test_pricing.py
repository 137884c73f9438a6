"""Tests for the pricing engine."""

from decimal import Decimal

import pytest

from invoicing_kernel.db.types import fits_money_column, has_cent_precision
from invoicing_kernel.domain import pricing
from invoicing_kernel.domain.values import LineItem, TaxCategory
from invoicing_kernel.exceptions import (
    InvalidDiscountError,
    InvalidLineItemError,
    InvalidTaxCategoryError,
    ValidationError,
)


def D(value: str) -> Decimal:
    return Decimal(value)


DEV_AND_TEST = (
    LineItem("Dev", 40, D("50.00")),
    LineItem("Test", 20, D("45.00")),
)


class TestSubtotal:

    def test_sums_products(self):
        assert pricing.subtotal(DEV_AND_TEST) == D("2900.00")

    def test_empty_items_is_zero(self):
        assert pricing.subtotal([]) == D("0.00")

    def test_rounds_once_over_unrounded_products(self):
        # Sum 0.015 rounds to 0.02; rounding each item first would give 0.03
        items = [LineItem("x", 1, D("0.005")) for _ in range(3)]
        assert pricing.subtotal(items) == D("0.02")
        assert sum(item.amount for item in items) == D("0.03")

    def test_half_up(self):
        assert pricing.subtotal([LineItem("x", 1, D("0.125"))]) == D("0.13")


class TestTax:

    @pytest.mark.parametrize(
        "category, expected",
        [
            (TaxCategory.STANDARD, D("609.00")),
            (TaxCategory.REDUCED, D("290.00")),
            (TaxCategory.SUPER_REDUCED, D("116.00")),
            (TaxCategory.EXEMPT, D("0.00")),
        ],
    )
    def test_percentages(self, category, expected):
        assert pricing.tax(D("2900.00"), category) == expected

    def test_rounds_half_up(self):
        # 0.05 x 21% = 0.0105 -> 0.01; 12.50 x 21% = 2.625 -> 2.63
        assert pricing.tax(D("0.05"), TaxCategory.STANDARD) == D("0.01")
        assert pricing.tax(D("12.50"), TaxCategory.STANDARD) == D("2.63")

    def test_accepts_category_value_or_name(self):
        assert pricing.tax(D("100.00"), "reduced") == D("10.00")
        assert pricing.tax(D("100.00"), "SUPER_REDUCED") == D("4.00")

    def test_unknown_category_rejected(self):
        with pytest.raises(InvalidTaxCategoryError) as exc_info:
            pricing.tax(D("100.00"), "luxury")
        assert exc_info.value.field == "tax_category"
        assert isinstance(exc_info.value, ValidationError)


class TestDiscount:

    def test_zero_and_full_subtotal_allowed(self):
        assert pricing.validate_discount(D("0"), D("100.00")) == D("0.00")
        assert pricing.validate_discount(D("100.00"), D("100.00")) == D("100.00")

    def test_negative_rejected(self):
        with pytest.raises(InvalidDiscountError, match="negative"):
            pricing.validate_discount(D("-0.01"), D("100.00"))

    def test_above_subtotal_rejected(self):
        with pytest.raises(InvalidDiscountError) as exc_info:
            pricing.validate_discount(D("100.01"), D("100.00"))
        assert exc_info.value.discount == "100.01"
        assert exc_info.value.subtotal == "100.00"

    def test_sub_cent_rejected(self):
        with pytest.raises(InvalidDiscountError, match="two decimal places"):
            pricing.validate_discount(D("1.005"), D("100.00"))

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            pricing.validate_discount(1.5, D("100.00"))


class TestPrice:

    def test_standard_example(self):
        result = pricing.price(DEV_AND_TEST, TaxCategory.STANDARD, D("0"))
        assert result.subtotal == D("2900.00")
        assert result.tax == D("609.00")
        assert result.total == D("3509.00")

    def test_reduced_example(self):
        items = [LineItem("Books", 16, D("50.00"))]
        result = pricing.price(items, TaxCategory.REDUCED)
        assert result.subtotal == D("800.00")
        assert result.tax == D("80.00")
        assert result.total == D("880.00")

    def test_discount_subtracted_after_tax(self):
        result = pricing.price(DEV_AND_TEST, TaxCategory.STANDARD, D("100.00"))
        assert result.total == D("3409.00")
        assert result.total == result.subtotal + result.tax - result.discount

    def test_discount_above_subtotal_rejected(self):
        with pytest.raises(ValidationError):
            pricing.price(DEV_AND_TEST, TaxCategory.STANDARD, D("2900.01"))

    def test_idempotent(self):
        first = pricing.price(DEV_AND_TEST, TaxCategory.SUPER_REDUCED, D("12.34"))
        second = pricing.price(DEV_AND_TEST, TaxCategory.SUPER_REDUCED, D("12.34"))
        assert first == second


class TestMoneyBounds:

    def test_huge_unit_price_rejected(self):
        with pytest.raises(InvalidLineItemError, match="subtotal exceeds"):
            pricing.subtotal([LineItem("x", 1, D("1E27"))])

    def test_items_summing_past_column_limit_rejected(self):
        items = [LineItem("x", 1, D("60000000000000000.00"))] * 2
        with pytest.raises(InvalidLineItemError):
            pricing.subtotal(items)

    def test_rounding_up_to_limit_rejected(self):
        with pytest.raises(InvalidLineItemError):
            pricing.subtotal([LineItem("x", 1, D("99999999999999999.995"))])

    def test_largest_storable_subtotal_accepted(self):
        assert pricing.subtotal([LineItem("x", 1, D("99999999999999999.99"))]) == D("99999999999999999.99")

    def test_total_past_column_limit_rejected(self):
        items = [LineItem("x", 1, D("90000000000000000.00"))]
        with pytest.raises(InvalidLineItemError, match="total exceeds"):
            pricing.price(items, TaxCategory.STANDARD)

    def test_huge_discount_rejected_without_decimal_error(self):
        with pytest.raises(InvalidDiscountError):
            pricing.validate_discount(D("1E40"), D("100.00"))


class TestMoneyHelpers:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (D("1E40"), True),
            (D("0.0000"), True),
            (D("1.230"), True),
            (D("12"), True),
            (D("1.235"), False),
            (D("123456789012345678901234567890.001"), False),
        ],
    )
    def test_has_cent_precision(self, value, expected):
        assert has_cent_precision(value) is expected

    def test_fits_money_column(self):
        assert fits_money_column(D("99999999999999999.99"))
        assert fits_money_column(D("-99999999999999999.99"))
        assert not fits_money_column(D("1E17"))

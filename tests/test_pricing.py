import pytest
from pydantic import ValidationError

from pharmacy_purchasing.models import (
    AppSettings, Compared, InvoiceItem, ItemInput, ItemType, NoHistory, TaxMethod,
)
from pharmacy_purchasing.utils.history import PurchaseHistory
from pharmacy_purchasing.utils.pricing import calculate_item, category_rate, is_fake_discount


def line(**kw) -> ItemInput:
    base = dict(id="L1", name="Panadol", category=ItemType.NORMAL, qty=1, pharma_price=10.0)
    base.update(kw)
    return ItemInput(**base)


class TestCostModel:
    def test_worked_example(self, settings: AppSettings):
        item = line(
            pharma_price=100, qty=10, bonus=1, extra_discount_pct=5,
            supplier_discount_val=50, tax_value=3, tax_method=TaxMethod.PER_UNIT,
            public_price=150,
        )
        r = calculate_item(item, settings)

        assert r.base_total == 1000
        assert r.category_discount_value == 200
        assert r.after_category_discount == 800
        assert r.extra_discount_value == 40
        assert r.tax_total == 30
        assert r.net_total_cost == 740
        assert r.total_units == 11
        assert r.net_unit_cost == pytest.approx(67.27, abs=0.01)
        assert r.real_discount_pct == pytest.approx(55.15, abs=0.01)
        assert r.is_fake_discount is False
        assert r.history == NoHistory()

    def test_no_units_gives_zero_unit_cost_and_discount(self, settings):
        r = calculate_item(line(qty=0, bonus=0, public_price=50, tax_value=5,
                                tax_method=TaxMethod.TOTAL), settings)
        assert r.total_units == 0
        assert r.net_unit_cost == 0
        assert r.real_discount_pct == 0

    def test_zero_public_price_gives_zero_real_discount(self, settings):
        r = calculate_item(line(qty=5, public_price=0), settings)
        assert r.net_unit_cost > 0
        assert r.real_discount_pct == 0

    def test_real_discount_can_be_negative(self, settings):
        r = calculate_item(line(category=ItemType.OTHER, pharma_price=12, public_price=10), settings)
        assert r.real_discount_pct == pytest.approx(-20.0)

    def test_flat_discount_comes_after_percentage_discounts(self, settings):
        r = calculate_item(
            line(category=ItemType.OTHER, pharma_price=100, qty=10,
                 extra_discount_pct=10, supplier_discount_val=50),
            settings,
        )
        assert r.net_total_cost == pytest.approx(850.0)
        # flat first would have been (1000 - 50) * 0.9
        assert r.net_total_cost != pytest.approx(855.0)

    def test_bonus_units_are_free(self, settings):
        r = calculate_item(line(category=ItemType.OTHER, pharma_price=10, qty=10, bonus=10), settings)
        assert r.base_total == 100
        assert r.total_units == 20
        assert r.net_unit_cost == pytest.approx(5.0)

    @pytest.mark.parametrize("method,expected", [(TaxMethod.PER_UNIT, 20), (TaxMethod.TOTAL, 2)])
    def test_tax_modes(self, settings, method, expected):
        r = calculate_item(line(qty=10, bonus=3, tax_value=2, tax_method=method), settings)
        assert r.tax_total == expected

    def test_same_input_same_output(self, settings):
        item = line(qty=7, bonus=1, public_price=20, extra_discount_pct=3)
        assert calculate_item(item, settings) == calculate_item(item, settings)

    def test_result_is_frozen(self, settings):
        r = calculate_item(line(), settings)
        with pytest.raises(ValidationError):
            r.net_unit_cost = 1.0

    def test_settings_drive_category_rate(self):
        generous = AppSettings(discount_normal=50, discount_special=0, discount_other=0)
        r = calculate_item(line(pharma_price=10, qty=1), generous)
        assert r.net_total_cost == pytest.approx(5.0)

    def test_unknown_category_has_no_rate(self, settings):
        assert category_rate(settings, "BOGUS") == 0.0
        assert category_rate(settings, ItemType.SPECIAL) == pytest.approx(0.10)


class TestFakeDiscount:
    def test_flags_when_real_discount_trails_nominal(self, settings):
        # 112.5 * 0.8 = 90 per unit against a public price of 100 -> 10% real
        r = calculate_item(line(pharma_price=112.5, public_price=100), settings)
        assert r.real_discount_pct == pytest.approx(10.0)
        assert r.is_fake_discount is True

    def test_within_tolerance_is_not_flagged(self, settings):
        # 105 * 0.8 = 84 -> 16% real, nominal 20%, tolerance 5
        r = calculate_item(line(pharma_price=105, public_price=100), settings)
        assert r.real_discount_pct == pytest.approx(16.0)
        assert r.is_fake_discount is False

    def test_exactly_at_tolerance_is_not_flagged(self, settings):
        rate = category_rate(settings, ItemType.NORMAL)
        assert is_fake_discount(15.0, rate) is False
        assert is_fake_discount(14.99, rate) is True


class TestHistoryComparison:
    @pytest.fixture
    def history(self, settings):
        prior = calculate_item(
            line(id="OLD", category=ItemType.OTHER, pharma_price=10, qty=10), settings
        )
        assert prior.net_unit_cost == pytest.approx(10.0)
        return PurchaseHistory([[prior]])

    def test_cheaper_now_is_better(self, settings, history):
        r = calculate_item(line(category=ItemType.OTHER, pharma_price=9, qty=10), settings, history)
        assert isinstance(r.history, Compared)
        assert r.history_comparison == "better"
        assert r.price_difference_pct == pytest.approx(10.0)
        assert r.savings_vs_history == pytest.approx(1.0 * r.total_units)

    def test_dearer_now_is_worse_with_negative_savings(self, settings, history):
        r = calculate_item(line(category=ItemType.OTHER, pharma_price=11, qty=4), settings, history)
        assert r.history_comparison == "worse"
        assert r.price_difference_pct == pytest.approx(10.0)
        assert r.savings_vs_history == pytest.approx(-4.0)

    def test_float_noise_counts_as_same(self, settings, history):
        r = calculate_item(
            line(name="  PANADOL ", category=ItemType.OTHER, pharma_price=10.0004, qty=10),
            settings, history,
        )
        assert r.history_comparison == "same"
        assert r.savings_vs_history is None

    def test_unknown_name_is_new(self, settings, history):
        r = calculate_item(line(name="Brufen"), settings, history)
        assert r.history_comparison == "new"
        assert r.price_difference_pct is None
        assert r.savings_vs_history is None

    def test_prior_zero_cost_gives_zero_pct(self, settings):
        free = calculate_item(line(id="F", category=ItemType.OTHER, qty=0, bonus=5), settings)
        r = calculate_item(line(category=ItemType.OTHER), settings, PurchaseHistory([[free]]))
        assert r.history_comparison == "worse"
        assert r.price_difference_pct == 0

    def test_prior_negative_cost_gives_zero_pct(self, settings):
        # flat discount larger than the line pushes the old unit cost below zero
        prior = calculate_item(
            line(id="NEG", category=ItemType.OTHER, supplier_discount_val=20), settings
        )
        assert prior.net_unit_cost == pytest.approx(-10.0)
        r = calculate_item(line(category=ItemType.OTHER), settings, PurchaseHistory([[prior]]))
        assert r.history_comparison == "worse"
        assert r.price_difference_pct == 0


class TestBoundary:
    def test_malformed_numbers_become_zero(self):
        item = ItemInput(name="X", qty="abc", bonus=None, pharma_price="", tax_value="nan",
                         public_price="12.5")
        assert item.qty == 0
        assert item.bonus == 0
        assert item.pharma_price == 0
        assert item.tax_value == 0
        assert item.public_price == 12.5

    def test_whole_number_floats_are_units(self):
        assert ItemInput(name="X", qty=3.0, bonus="2").qty == 3

    @pytest.mark.parametrize("qty", [2.5, -0.5, "1.25"])
    def test_fractional_units_are_rejected(self, qty):
        with pytest.raises(ValidationError):
            ItemInput(name="Strip", qty=qty, pharma_price=10)
        with pytest.raises(ValidationError):
            ItemInput(name="Strip", qty=1, bonus=qty, pharma_price=10)

    def test_stored_line_reads_back_unchanged(self, settings):
        prior = calculate_item(line(id="OLD", category=ItemType.OTHER, pharma_price=10, qty=10), settings)
        r = calculate_item(line(category=ItemType.OTHER, pharma_price=9, qty=10, bonus=2),
                           settings, PurchaseHistory([[prior]]))
        assert InvoiceItem.from_calculated(r, position=0).to_calculated() == r

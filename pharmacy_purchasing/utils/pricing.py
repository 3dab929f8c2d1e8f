"""
Line-item cost model for supplier purchases.

The steps in `calculate_item` run in a fixed order: category discount,
extra percentage discount, flat supplier discount, then tax. Changing the
order changes the numbers.
"""
from typing import Optional

from pharmacy_purchasing.models import (
    CalculatedItem, Compared, HistoryResult, ItemInput, ItemType, NoHistory, TaxMethod,
)
from pharmacy_purchasing.utils.history import PurchaseHistory

# Tunable thresholds. Neither has a derivation behind it; they only keep
# float noise and small hidden costs from producing alarms.
HISTORY_EPSILON = 0.001
FAKE_DISCOUNT_TOLERANCE = 5.0    # percentage points


def category_rate(settings, category) -> float:
    """Category discount as a fraction (0.2 for 20%). Unknown categories get 0."""
    rates = {
        ItemType.NORMAL: settings.discount_normal,
        ItemType.SPECIAL: settings.discount_special,
        ItemType.OTHER: settings.discount_other,
    }
    return float(rates.get(category, 0.0) or 0.0) / 100.0


def compare_with_history(
    net_unit_cost: float, total_units: int, last: Optional[CalculatedItem]
) -> HistoryResult:
    if last is None:
        return NoHistory()

    diff = net_unit_cost - last.net_unit_cost
    pct = abs(diff / last.net_unit_cost) * 100 if last.net_unit_cost > 0 else 0.0

    if diff < -HISTORY_EPSILON:
        return Compared(verdict="better", price_difference_pct=pct,
                        savings_vs_history=abs(diff) * total_units)
    if diff > HISTORY_EPSILON:
        return Compared(verdict="worse", price_difference_pct=pct,
                        savings_vs_history=-abs(diff) * total_units)
    return Compared(verdict="same", price_difference_pct=pct)


def is_fake_discount(real_discount_pct: float, rate: float) -> bool:
    """
    Heuristic: the advertised category discount is not reaching the buyer.

    Fires when the real discount trails the nominal one by more than the
    tolerance, which happens whenever fees, tax or a poor bonus ratio eat
    the discount. It is a warning, not proof.
    """
    return real_discount_pct < rate * 100 - FAKE_DISCOUNT_TOLERANCE


def calculate_item(
    item: ItemInput, settings, history: Optional[PurchaseHistory] = None
) -> CalculatedItem:
    rate = category_rate(settings, item.category)

    total_units = item.qty + item.bonus
    base_total = item.pharma_price * item.qty          # bonus units are free

    category_discount_value = base_total * rate
    after_category_discount = base_total - category_discount_value

    extra_discount_value = after_category_discount * (item.extra_discount_pct / 100)
    subtotal = after_category_discount - extra_discount_value

    # flat cash discount comes after the percentage discounts
    subtotal = subtotal - item.supplier_discount_val

    if item.tax_method == TaxMethod.PER_UNIT:
        tax_total = item.tax_value * item.qty          # purchased units only
    else:
        tax_total = item.tax_value

    net_total_cost = subtotal + tax_total
    # a line with no units has no unit cost and no real discount
    if total_units > 0:
        net_unit_cost = net_total_cost / total_units
        real_discount_pct = (
            (1 - net_unit_cost / item.public_price) * 100 if item.public_price > 0 else 0.0
        )
    else:
        net_unit_cost = 0.0
        real_discount_pct = 0.0

    last = history.last_purchase(item.name) if history is not None else None

    return CalculatedItem(
        **item.model_dump(include=set(ItemInput.model_fields)),
        total_units=total_units,
        base_total=base_total,
        category_discount_value=category_discount_value,
        after_category_discount=after_category_discount,
        extra_discount_value=extra_discount_value,
        tax_total=tax_total,
        net_total_cost=net_total_cost,
        net_unit_cost=net_unit_cost,
        real_discount_pct=real_discount_pct,
        is_fake_discount=is_fake_discount(real_discount_pct, rate),
        history=compare_with_history(net_unit_cost, total_units, last),
    )

from collections import defaultdict
from typing import List, Optional

from pharmacy_purchasing.models import (
    DailySpend, ExtraDiscountLine, ExtraDiscountReportOut, InvoiceOut, MonthlyReportOut,
)


def round2(x: float) -> float:
    return float(f"{x:.2f}")


def monthly_report(invoices: List[InvoiceOut], year: int, month: int) -> MonthlyReportOut:
    prefix = f"{year:04d}-{month:02d}"
    in_month = [inv for inv in invoices if inv.date[:7] == prefix]

    total_spent = sum(inv.total_value for inv in in_month)

    # average of per-line real discount, lines of every invoice weigh the same
    discounts = [item.real_discount_pct for inv in in_month for item in inv.items]
    avg_discount = sum(discounts) / len(discounts) if discounts else 0.0

    per_day = defaultdict(float)
    for inv in in_month:
        per_day[int(inv.date[8:10])] += inv.total_value

    daily = [
        DailySpend(day=d, amount=round2(amount))
        for d, amount in sorted(per_day.items())
        if amount > 0
    ]
    return MonthlyReportOut(
        year=year,
        month=month,
        total_spent=round2(total_spent),
        invoice_count=len(in_month),
        avg_discount=round2(avg_discount),
        daily=daily,
    )


def extra_discount_report(
    invoices: List[InvoiceOut],
    from_date: str,
    to_date: str,
    supplier_id: Optional[int] = None,
) -> ExtraDiscountReportOut:
    """Lines that carried an extra discount, within an inclusive date range."""
    lines: List[ExtraDiscountLine] = []
    total = 0.0
    for inv in invoices:
        d = inv.date[:10]
        if d < from_date or d > to_date:
            continue
        if supplier_id is not None and inv.supplier_id != supplier_id:
            continue
        for item in inv.items:
            if item.extra_discount_value > 0 or item.extra_discount_pct > 0:
                lines.append(ExtraDiscountLine(
                    invoice_id=inv.id,
                    invoice_date=inv.date,
                    supplier_name=inv.supplier_name,
                    name=item.name,
                    qty=item.qty,
                    extra_discount_pct=item.extra_discount_pct,
                    extra_discount_value=round2(item.extra_discount_value),
                ))
                total += item.extra_discount_value
    return ExtraDiscountReportOut(items=lines, total_extra_value=round2(total))

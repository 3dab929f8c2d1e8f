from itertools import groupby
from typing import Dict, Iterable, List, Optional, Sequence

from sqlmodel import select

from pharmacy_purchasing.models import CalculatedItem, InvoiceItem


def normalize_name(s: Optional[str]) -> str:
    return (s or "").strip().lower()


class PurchaseHistory:
    """
    Read-only lookups over saved purchase lines.

    `invoices` is an iterable of line lists in store order: newest saved
    invoice first, lines in the order they were entered. The index keeps the
    first match per normalized name, which is exactly what a front-to-back
    scan of that order would return.
    """

    def __init__(self, invoices: Iterable[Sequence[CalculatedItem]] = ()):
        self._last: Dict[str, CalculatedItem] = {}
        self._last_with_bonus: Dict[str, CalculatedItem] = {}
        self._names: Dict[str, None] = {}

        for lines in invoices:
            for line in lines:
                key = normalize_name(line.name)
                self._last.setdefault(key, line)
                if line.bonus > 0:
                    self._last_with_bonus.setdefault(key, line)
                self._names.setdefault(line.name, None)

    @classmethod
    def from_session(cls, session) -> "PurchaseHistory":
        # draft lines (invoice_id IS NULL) are not history yet
        rows = session.exec(
            select(InvoiceItem)
            .where(InvoiceItem.invoice_id.is_not(None))
            .order_by(InvoiceItem.invoice_id.desc(), InvoiceItem.position, InvoiceItem.id)
        ).all()
        grouped = (
            [r.to_calculated() for r in lines]
            for _, lines in groupby(rows, key=lambda r: r.invoice_id)
        )
        return cls(grouped)

    def last_purchase(self, name: str) -> Optional[CalculatedItem]:
        return self._last.get(normalize_name(name))

    def last_purchase_with_bonus(self, name: str) -> Optional[CalculatedItem]:
        return self._last_with_bonus.get(normalize_name(name))

    def item_names(self) -> List[str]:
        """Distinct item names as entered, in first-seen order."""
        return list(self._names)


def suggest_bonus(item, history: PurchaseHistory) -> Optional[CalculatedItem]:
    """
    Suggest a past bonus deal for an item entered without bonus.

    Only surfaces when that deal needed a strictly larger purchased quantity
    than the one currently entered (the user would have to buy more to get it).
    """
    if item.bonus != 0 or item.qty <= 0:
        return None
    past = history.last_purchase_with_bonus(item.name)
    if past is not None and past.qty > item.qty:
        return past
    return None

import logging
from typing import Iterable, Optional

from pharmacy_purchasing.models import (
    CalculatedItem, Client, ClientTransaction, ItemType, TransactionType, now_ts,
)

logger = logging.getLogger("ledger")


def signed_amount(tx_type: TransactionType, amount: float) -> float:
    return amount if tx_type == TransactionType.SALE else -amount


def post_transaction(
    session,
    client: Client,
    *,
    tx_type: TransactionType,
    amount: float,
    notes: Optional[str] = None,
    related_invoice_id: Optional[int] = None,
    invoice_number: Optional[str] = None,
) -> ClientTransaction:
    """
    Append a ledger row and move the client's running balance with it.
    Nothing is committed here: the caller commits both in one go.
    """
    tx = ClientTransaction(
        client_id=int(client.id),
        date=now_ts(),
        type=tx_type,
        amount=float(amount),
        notes=notes,
        related_invoice_id=related_invoice_id,
        invoice_number=invoice_number,
    )
    client.balance = float(client.balance or 0) + signed_amount(tx_type, float(amount))
    client.updated_at = now_ts()
    session.add(tx)
    session.add(client)
    logger.info("client %s: %s %.2f -> balance %.2f", client.id, tx_type.value, amount, client.balance)
    return tx


def ledger_totals(transactions: Iterable[ClientTransaction]):
    sales = 0.0
    payments = 0.0
    for t in transactions:
        if t.type == TransactionType.SALE:
            sales += float(t.amount or 0)
        else:
            payments += float(t.amount or 0)
    return sales, payments


def ledger_balance(transactions: Iterable[ClientTransaction]) -> float:
    sales, payments = ledger_totals(transactions)
    return sales - payments


def resell_total(items: Iterable[CalculatedItem], rates) -> float:
    """
    Selling value of a whole invoice: public price less the per-category
    resale discount, for every unit received (bonus included).
    """
    by_type = {
        ItemType.NORMAL: rates.discount_normal,
        ItemType.SPECIAL: rates.discount_special,
        ItemType.OTHER: rates.discount_other,
    }
    total = 0.0
    for item in items:
        pct = float(by_type.get(item.category, 0.0) or 0.0)
        total += item.public_price * (1 - pct / 100) * item.total_units
    return total

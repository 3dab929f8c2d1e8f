from typing import List

from sqlmodel import select

from pharmacy_purchasing.models import (
    AppSettings, Invoice, InvoiceItem, InvoiceOut, default_settings,
)


def load_settings(session) -> AppSettings:
    """Stored settings row, or unsaved defaults on first run."""
    row = session.get(AppSettings, 1)
    return row if row is not None else default_settings()


def save_settings(session, discount_normal: float, discount_special: float,
                  discount_other: float, pharmacy_name: str) -> AppSettings:
    # wholesale replace, never a partial patch
    row = session.get(AppSettings, 1)
    if row is None:
        row = AppSettings(id=1)
    row.discount_normal = float(discount_normal)
    row.discount_special = float(discount_special)
    row.discount_other = float(discount_other)
    row.pharmacy_name = pharmacy_name
    session.add(row)
    return row


def draft_rows(session):
    return session.exec(
        select(InvoiceItem)
        .where(InvoiceItem.invoice_id.is_(None))
        .order_by(InvoiceItem.position, InvoiceItem.id)
    ).all()


def invoice_out(session, inv: Invoice) -> InvoiceOut:
    rows = session.exec(
        select(InvoiceItem)
        .where(InvoiceItem.invoice_id == inv.id)
        .order_by(InvoiceItem.position, InvoiceItem.id)
    ).all()
    return InvoiceOut(
        id=inv.id,
        date=inv.date,
        invoice_number=inv.invoice_number,
        supplier_id=inv.supplier_id,
        supplier_name=inv.supplier_name,
        total_value=inv.total_value,
        total_items=inv.total_items,
        total_units=inv.total_units,
        is_sold=inv.is_sold,
        sold_to_client_id=inv.sold_to_client_id,
        sold_date=inv.sold_date,
        items=[r.to_calculated() for r in rows],
    )


def load_invoices(session) -> List[InvoiceOut]:
    """All saved invoices with their lines, newest first."""
    invoices = session.exec(select(Invoice).order_by(Invoice.id.desc())).all()
    return [invoice_out(session, inv) for inv in invoices]

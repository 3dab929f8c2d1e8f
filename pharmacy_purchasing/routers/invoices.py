# pharmacy_purchasing/routers/invoices.py
import logging
import math
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Response
from sqlalchemy import delete
from sqlmodel import select

from pharmacy_purchasing.db import get_session
from pharmacy_purchasing.models import (
    Client, Invoice, InvoiceCreate, InvoiceItem, InvoiceOut, ItemType,
    ResellCreate, ResellOut, Supplier, TransactionOut, TransactionType, now_ts,
)
from pharmacy_purchasing.utils.history import PurchaseHistory
from pharmacy_purchasing.utils.ledger import post_transaction, resell_total
from pharmacy_purchasing.utils.store import draft_rows, invoice_out

logger = logging.getLogger("api.invoices")

router = APIRouter()


def round2(x: float) -> float:
    return float(f"{x:.2f}")


@router.post("/", response_model=InvoiceOut, status_code=201)
def save_invoice(payload: InvoiceCreate):
    """Turn the current draft into a saved invoice."""
    if payload.supplier_id is None:
        raise HTTPException(status_code=400, detail="Select a supplier before saving the invoice")

    with get_session() as session:
        supplier = session.get(Supplier, payload.supplier_id)
        if not supplier:
            raise HTTPException(status_code=404, detail="Supplier not found")

        rows = draft_rows(session)
        if not rows:
            raise HTTPException(status_code=400, detail="Invoice must have at least one item")

        number = (payload.invoice_number or "").strip() or None
        inv = Invoice(
            date=now_ts(),
            invoice_number=number,
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            total_value=sum(r.net_total_cost for r in rows),
            total_items=len(rows),
            total_units=sum(r.total_units for r in rows),
        )
        session.add(inv)
        session.flush()     # to get invoice id

        for pos, r in enumerate(rows):
            r.invoice_id = inv.id
            r.position = pos
            session.add(r)

        session.commit()
        session.refresh(inv)
        logger.info(
            "invoice %s saved: supplier=%s lines=%s total=%.2f",
            inv.id, inv.supplier_name, inv.total_items, inv.total_value,
        )
        return invoice_out(session, inv)


@router.get("/", response_model=List[InvoiceOut])
def list_invoices(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    supplier_id: Optional[int] = Query(None),
    q: Optional[str] = Query(None, description="Search invoice number / supplier"),
    from_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    to_date: Optional[str] = Query(None, description="YYYY-MM-DD (inclusive)"),
):
    with get_session() as session:
        stmt = select(Invoice)
        if supplier_id is not None:
            stmt = stmt.where(Invoice.supplier_id == supplier_id)
        if from_date:
            stmt = stmt.where(Invoice.date >= f"{from_date}T00:00:00")
        if to_date:
            stmt = stmt.where(Invoice.date <= f"{to_date}T23:59:59")
        stmt = stmt.order_by(Invoice.id.desc())
        rows = session.exec(stmt).all()

        qq = (q or "").strip().lower()
        if qq:
            rows = [
                inv for inv in rows
                if qq in (inv.invoice_number or "").lower() or qq in inv.supplier_name.lower()
            ]

        return [invoice_out(session, inv) for inv in rows[offset:offset + limit]]


# must be declared before "/{invoice_id}"
@router.get("/item-names", response_model=List[str])
def item_names():
    with get_session() as session:
        return PurchaseHistory.from_session(session).item_names()


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(invoice_id: int):
    with get_session() as session:
        inv = session.get(Invoice, invoice_id)
        if not inv:
            raise HTTPException(status_code=404, detail="Invoice not found")
        return invoice_out(session, inv)


@router.delete("/{invoice_id}", status_code=204)
def delete_invoice(invoice_id: int) -> Response:
    with get_session() as session:
        inv = session.get(Invoice, invoice_id)
        if not inv:
            raise HTTPException(status_code=404, detail="Invoice not found")
        session.execute(delete(InvoiceItem).where(InvoiceItem.invoice_id == invoice_id))
        session.delete(inv)
        session.commit()
        logger.info("invoice %s deleted", invoice_id)
        return Response(status_code=204)


@router.post("/{invoice_id}/resell", response_model=ResellOut)
def resell_invoice(invoice_id: int, payload: ResellCreate):
    """
    Sell a whole purchased invoice on to a client, once.
    Records a SALE on the client's ledger and marks the invoice sold.
    """
    for pct in (payload.discount_normal, payload.discount_special, payload.discount_other):
        if not math.isfinite(pct) or pct < 0 or pct > 100:
            raise HTTPException(status_code=400, detail="Discount must be between 0 and 100")

    with get_session() as session:
        inv = session.get(Invoice, invoice_id)
        if not inv:
            raise HTTPException(status_code=404, detail="Invoice not found")
        if inv.is_sold:
            raise HTTPException(status_code=409, detail="Invoice already sold")

        client = session.get(Client, payload.client_id)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")

        current = invoice_out(session, inv)
        amount = round2(resell_total(current.items, payload))
        ref = inv.invoice_number or str(inv.id)

        tx = post_transaction(
            session,
            client,
            tx_type=TransactionType.SALE,
            amount=amount,
            notes=(
                f"Resale of invoice #{ref} "
                f"({ItemType.NORMAL.short}:{payload.discount_normal:g}%, "
                f"{ItemType.SPECIAL.short}:{payload.discount_special:g}%, "
                f"{ItemType.OTHER.short}:{payload.discount_other:g}%)"
            ),
            related_invoice_id=inv.id,
            invoice_number=ref,
        )

        inv.is_sold = True
        inv.sold_to_client_id = client.id
        inv.sold_date = now_ts()
        session.add(inv)

        session.commit()
        session.refresh(inv)
        session.refresh(tx)
        logger.info("invoice %s resold to client %s for %.2f", inv.id, client.id, amount)
        return ResellOut(
            invoice=invoice_out(session, inv),
            transaction=TransactionOut.model_validate(tx, from_attributes=True),
        )

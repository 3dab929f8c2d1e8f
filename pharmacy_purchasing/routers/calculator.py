# pharmacy_purchasing/routers/calculator.py
import logging

from fastapi import APIRouter, HTTPException, Query, Response
from sqlmodel import select

from pharmacy_purchasing.db import get_session
from pharmacy_purchasing.models import (
    CalculatedItem, DraftOut, InvoiceItem, ItemAdvice, ItemInput,
)
from pharmacy_purchasing.utils.history import PurchaseHistory, suggest_bonus
from pharmacy_purchasing.utils.pricing import calculate_item
from pharmacy_purchasing.utils.store import draft_rows, load_settings

logger = logging.getLogger("api.calculator")

router = APIRouter()


def round2(x: float) -> float:
    return float(f"{x:.2f}")


def _validate_line(item: ItemInput):
    if not item.name.strip():
        raise HTTPException(status_code=400, detail="Item name is required")
    if item.pharma_price <= 0:
        raise HTTPException(status_code=400, detail="Pharmacy price must be > 0")
    if item.qty < 0 or item.bonus < 0:
        raise HTTPException(status_code=400, detail="Quantity and bonus cannot be negative")


def _calculate(session, item: ItemInput) -> CalculatedItem:
    return calculate_item(item, load_settings(session), PurchaseHistory.from_session(session))


def draft_out(rows) -> DraftOut:
    items = [r.to_calculated() for r in rows]
    return DraftOut(
        items=items,
        total_value=round2(sum(i.net_total_cost for i in items)),
        total_items=len(items),
        total_units=sum(i.total_units for i in items),
    )


@router.post("/preview", response_model=CalculatedItem)
def preview_item(payload: ItemInput):
    """Calculate a line without adding it to the draft."""
    _validate_line(payload)
    with get_session() as session:
        return _calculate(session, payload)


@router.get("/advice", response_model=ItemAdvice)
def item_advice(
    name: str = Query(..., min_length=1),
    qty: int = Query(0, ge=0),
    bonus: int = Query(0, ge=0),
):
    with get_session() as session:
        history = PurchaseHistory.from_session(session)
        current = ItemInput(name=name, qty=qty, bonus=bonus)
        return ItemAdvice(
            last_purchase=history.last_purchase(name),
            bonus_suggestion=suggest_bonus(current, history),
        )


# ---------- Draft invoice ----------

@router.get("/draft", response_model=DraftOut)
def get_draft():
    with get_session() as session:
        return draft_out(draft_rows(session))


@router.post("/draft/items", response_model=CalculatedItem, status_code=201)
def add_draft_item(payload: ItemInput):
    _validate_line(payload)
    with get_session() as session:
        rows = draft_rows(session)
        if any(r.line_id == payload.id for r in rows):
            raise HTTPException(status_code=400, detail="Line id already in draft")

        calculated = _calculate(session, payload)
        position = max((r.position for r in rows), default=-1) + 1
        session.add(InvoiceItem.from_calculated(calculated, position=position))
        session.commit()
        logger.info(
            "draft line %s added: %s net unit %.2f (%s)",
            calculated.id, calculated.name, calculated.net_unit_cost,
            calculated.history_comparison,
        )
        return calculated


@router.delete("/draft/items/{line_id}", status_code=204)
def remove_draft_item(line_id: str):
    with get_session() as session:
        row = session.exec(
            select(InvoiceItem)
            .where(InvoiceItem.invoice_id.is_(None))
            .where(InvoiceItem.line_id == line_id)
        ).first()
        if not row:
            raise HTTPException(status_code=404, detail="Draft line not found")
        session.delete(row)
        session.commit()
        return Response(status_code=204)


@router.delete("/draft", status_code=204)
def clear_draft():
    with get_session() as session:
        for row in draft_rows(session):
            session.delete(row)
        session.commit()
        return Response(status_code=204)

# pharmacy_purchasing/routers/clients.py
import logging
import math
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Response
from sqlalchemy import func, or_
from sqlmodel import select

from pharmacy_purchasing.db import get_session
from pharmacy_purchasing.models import (
    Client, ClientCreate, ClientUpdate, ClientOut, ClientStatementOut,
    ClientTransaction, TransactionCreate, TransactionOut, TransactionType, now_ts,
)
from pharmacy_purchasing.utils.ledger import ledger_totals, post_transaction

logger = logging.getLogger("api.clients")

router = APIRouter()


def _normalize_name(v: Optional[str]) -> str:
    return " ".join(str(v or "").strip().split())


def _clean(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _name_exists(session, name: str, exclude_id: Optional[int] = None) -> bool:
    normalized = _normalize_name(name).lower()
    if not normalized:
        return False

    stmt = select(Client.id).where(
        func.lower(func.trim(func.coalesce(Client.name, ""))) == normalized
    )
    if exclude_id is not None:
        stmt = stmt.where(Client.id != int(exclude_id))

    return session.exec(stmt.limit(1)).first() is not None


def _get_client(session, client_id: int) -> Client:
    row = session.get(Client, client_id)
    if not row:
        raise HTTPException(status_code=404, detail="Client not found")
    return row


def _client_transactions(session, client_id: int) -> List[ClientTransaction]:
    return session.exec(
        select(ClientTransaction)
        .where(ClientTransaction.client_id == client_id)
        .order_by(ClientTransaction.date.desc(), ClientTransaction.id.desc())
    ).all()


@router.post("/", response_model=ClientOut, status_code=201)
def create_client(payload: ClientCreate) -> ClientOut:
    name = _normalize_name(payload.name)
    if not name:
        raise HTTPException(status_code=400, detail="Client name is required")
    opening = float(payload.opening_balance or 0)
    if not math.isfinite(opening):
        raise HTTPException(status_code=400, detail="Opening balance must be a number")

    now = now_ts()
    with get_session() as session:
        if _name_exists(session, name):
            raise HTTPException(status_code=400, detail="Client name already exists")

        row = Client(
            name=name,
            phone=_clean(payload.phone),
            notes=_clean(payload.notes),
            balance=0.0,
            created_at=now,
            updated_at=now,
        )
        session.add(row)
        session.flush()     # need the id for the opening entry

        if opening != 0:
            post_transaction(
                session,
                row,
                tx_type=TransactionType.SALE if opening > 0 else TransactionType.PAYMENT,
                amount=abs(opening),
                notes="Opening balance",
            )

        session.commit()
        session.refresh(row)
        return row


@router.get("/", response_model=List[ClientOut])
def list_clients(
    q: Optional[str] = Query(None, description="Search name/phone"),
    with_debt: bool = Query(False, description="Only clients that owe money"),
) -> List[ClientOut]:
    with get_session() as session:
        stmt = select(Client)
        qq = (q or "").strip()
        if qq:
            like = f"%{qq.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(func.coalesce(Client.name, "")).like(like),
                    func.lower(func.coalesce(Client.phone, "")).like(like),
                )
            )
        if with_debt:
            stmt = stmt.where(Client.balance > 0)
        stmt = stmt.order_by(func.lower(Client.name).asc(), Client.id.desc())
        return session.exec(stmt).all()


@router.get("/{client_id}", response_model=ClientOut)
def get_client(client_id: int):
    with get_session() as session:
        return _get_client(session, client_id)


@router.patch("/{client_id}", response_model=ClientOut)
def update_client(client_id: int, payload: ClientUpdate) -> ClientOut:
    # balance only moves through the ledger
    with get_session() as session:
        row = _get_client(session, client_id)

        data = payload.model_dump(exclude_unset=True)
        if "name" in data:
            nm = _normalize_name(data.get("name"))
            if not nm:
                raise HTTPException(status_code=400, detail="Client name is required")
            if _name_exists(session, nm, exclude_id=client_id):
                raise HTTPException(status_code=400, detail="Client name already exists")
            row.name = nm
        if "phone" in data:
            row.phone = _clean(data.get("phone"))
        if "notes" in data:
            row.notes = _clean(data.get("notes"))

        row.updated_at = now_ts()
        session.add(row)
        session.commit()
        session.refresh(row)
        return row


@router.delete("/{client_id}", status_code=204)
def delete_client(client_id: int) -> Response:
    with get_session() as session:
        row = _get_client(session, client_id)
        has_ledger = session.exec(
            select(ClientTransaction.id).where(ClientTransaction.client_id == client_id).limit(1)
        ).first() is not None
        if has_ledger:
            raise HTTPException(
                status_code=400,
                detail="Cannot delete client because ledger transactions already exist for this client",
            )
        session.delete(row)
        session.commit()
        return Response(status_code=204)


# ---------- Ledger ----------

@router.get("/{client_id}/transactions", response_model=List[TransactionOut])
def list_transactions(
    client_id: int,
    type: Optional[TransactionType] = Query(None, description="SALE or PAYMENT"),
):
    with get_session() as session:
        _get_client(session, client_id)
        rows = _client_transactions(session, client_id)
        if type is not None:
            rows = [t for t in rows if t.type == type]
        return rows


@router.post("/{client_id}/transactions", response_model=TransactionOut, status_code=201)
def add_transaction(client_id: int, payload: TransactionCreate):
    amount = float(payload.amount or 0)
    if not math.isfinite(amount) or amount <= 0:
        raise HTTPException(status_code=400, detail="amount must be > 0")

    with get_session() as session:
        client = _get_client(session, client_id)

        notes = _clean(payload.notes)
        if payload.settles:
            if payload.type != TransactionType.PAYMENT:
                raise HTTPException(status_code=400, detail="Only payments can settle sales")
            sales = session.exec(
                select(ClientTransaction)
                .where(ClientTransaction.client_id == client_id)
                .where(ClientTransaction.type == TransactionType.SALE)
                .where(ClientTransaction.id.in_(payload.settles))
            ).all()
            if len(sales) != len(set(payload.settles)):
                raise HTTPException(status_code=400, detail="Unknown sale transaction in settles")
            refs = ", ".join(t.invoice_number or f"#{t.id}" for t in sales)
            notes = f"{notes or ''} (settles: {refs})".strip()

        if notes is None and payload.type == TransactionType.PAYMENT:
            notes = "Cash payment"

        tx = post_transaction(session, client, tx_type=payload.type, amount=amount, notes=notes)
        session.commit()
        session.refresh(tx)
        return tx


@router.get("/{client_id}/statement", response_model=ClientStatementOut)
def client_statement(client_id: int):
    with get_session() as session:
        client = _get_client(session, client_id)
        rows = _client_transactions(session, client_id)
        sales, payments = ledger_totals(rows)
        return ClientStatementOut(
            client_id=client.id,
            balance=round(float(client.balance or 0), 2),
            total_sales=round(sales, 2),
            total_payments=round(payments, 2),
            ledger_balance=round(sales - payments, 2),
            transaction_count=len(rows),
        )

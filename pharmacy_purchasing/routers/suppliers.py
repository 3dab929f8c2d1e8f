# pharmacy_purchasing/routers/suppliers.py
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Response
from sqlalchemy import func, or_
from sqlmodel import select

from pharmacy_purchasing.db import get_session
from pharmacy_purchasing.models import Supplier, SupplierCreate, SupplierUpdate, SupplierOut

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

    stmt = select(Supplier.id).where(
        func.lower(func.trim(func.coalesce(Supplier.name, ""))) == normalized
    )
    if exclude_id is not None:
        stmt = stmt.where(Supplier.id != int(exclude_id))

    return session.exec(stmt.limit(1)).first() is not None


@router.post("/", response_model=SupplierOut, status_code=201)
def create_supplier(payload: SupplierCreate) -> SupplierOut:
    name = _normalize_name(payload.name)
    if not name:
        raise HTTPException(status_code=400, detail="Supplier name is required")

    with get_session() as session:
        if _name_exists(session, name):
            raise HTTPException(status_code=400, detail="Supplier name already exists")

        row = Supplier(name=name, phone=_clean(payload.phone), notes=_clean(payload.notes))
        session.add(row)
        session.commit()
        session.refresh(row)
        return row


@router.get("/", response_model=List[SupplierOut])
def list_suppliers(
    q: Optional[str] = Query(None, description="Search name/phone"),
) -> List[SupplierOut]:
    with get_session() as session:
        stmt = select(Supplier)
        qq = (q or "").strip()
        if qq:
            like = f"%{qq.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(func.coalesce(Supplier.name, "")).like(like),
                    func.lower(func.coalesce(Supplier.phone, "")).like(like),
                )
            )
        stmt = stmt.order_by(func.lower(Supplier.name).asc(), Supplier.id.desc())
        return session.exec(stmt).all()


@router.get("/{supplier_id}", response_model=SupplierOut)
def get_supplier(supplier_id: int):
    with get_session() as session:
        row = session.get(Supplier, supplier_id)
        if not row:
            raise HTTPException(status_code=404, detail="Supplier not found")
        return row


@router.patch("/{supplier_id}", response_model=SupplierOut)
def update_supplier(supplier_id: int, payload: SupplierUpdate) -> SupplierOut:
    with get_session() as session:
        row = session.get(Supplier, supplier_id)
        if not row:
            raise HTTPException(status_code=404, detail="Supplier not found")

        data = payload.model_dump(exclude_unset=True)
        if "name" in data:
            nm = _normalize_name(data.get("name"))
            if not nm:
                raise HTTPException(status_code=400, detail="Supplier name is required")
            if _name_exists(session, nm, exclude_id=supplier_id):
                raise HTTPException(status_code=400, detail="Supplier name already exists")
            row.name = nm
        if "phone" in data:
            row.phone = _clean(data.get("phone"))
        if "notes" in data:
            row.notes = _clean(data.get("notes"))

        session.add(row)
        session.commit()
        session.refresh(row)
        return row


@router.delete("/{supplier_id}", status_code=204)
def delete_supplier(supplier_id: int) -> Response:
    # saved invoices keep the denormalized supplier name
    with get_session() as session:
        row = session.get(Supplier, supplier_id)
        if not row:
            raise HTTPException(status_code=404, detail="Supplier not found")
        session.delete(row)
        session.commit()
        return Response(status_code=204)

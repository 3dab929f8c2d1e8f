# pharmacy_purchasing/routers/reports.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from pharmacy_purchasing.db import get_session
from pharmacy_purchasing.models import ExtraDiscountReportOut, MonthlyReportOut
from pharmacy_purchasing.utils.reports import extra_discount_report, monthly_report
from pharmacy_purchasing.utils.store import load_invoices

router = APIRouter()


def _parse_ymd(date_str: str) -> str:
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date().isoformat()
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD")


@router.get("/monthly", response_model=MonthlyReportOut)
def monthly(
    year: Optional[int] = Query(None, ge=2000, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
):
    today = datetime.now()
    y = year if year is not None else today.year
    m = month if month is not None else today.month
    with get_session() as session:
        return monthly_report(load_invoices(session), y, m)


@router.get("/extra-discounts", response_model=ExtraDiscountReportOut)
def extra_discounts(
    from_date: Optional[str] = Query(None, description="YYYY-MM-DD, default first of month"),
    to_date: Optional[str] = Query(None, description="YYYY-MM-DD (inclusive), default today"),
    supplier_id: Optional[int] = Query(None),
):
    today = datetime.now().date()
    f = _parse_ymd(from_date) if from_date else today.replace(day=1).isoformat()
    t = _parse_ymd(to_date) if to_date else today.isoformat()
    if f > t:
        raise HTTPException(status_code=400, detail="from_date must not be after to_date")
    with get_session() as session:
        return extra_discount_report(load_invoices(session), f, t, supplier_id)

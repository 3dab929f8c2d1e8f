# pharmacy_purchasing/routers/settings.py
import logging
import math

from fastapi import APIRouter, HTTPException

from pharmacy_purchasing.db import get_session
from pharmacy_purchasing.models import SettingsIn, SettingsOut, default_settings
from pharmacy_purchasing.utils.store import load_settings, save_settings

logger = logging.getLogger("api.settings")

router = APIRouter()


def _check_rate(label: str, v: float):
    if not math.isfinite(v) or v < 0 or v > 100:
        raise HTTPException(status_code=400, detail=f"{label} discount must be between 0 and 100")


@router.get("/", response_model=SettingsOut)
def get_settings():
    with get_session() as session:
        return load_settings(session)


@router.put("/", response_model=SettingsOut)
def put_settings(payload: SettingsIn):
    _check_rate("Normal", payload.discount_normal)
    _check_rate("Special", payload.discount_special)
    _check_rate("Other", payload.discount_other)
    name = (payload.pharmacy_name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Pharmacy name is required")

    with get_session() as session:
        row = save_settings(
            session,
            payload.discount_normal,
            payload.discount_special,
            payload.discount_other,
            name,
        )
        session.commit()
        session.refresh(row)
        logger.info(
            "settings saved: normal=%s special=%s other=%s",
            row.discount_normal, row.discount_special, row.discount_other,
        )
        return row


@router.post("/reset", response_model=SettingsOut)
def reset_settings():
    d = default_settings()
    with get_session() as session:
        row = save_settings(
            session, d.discount_normal, d.discount_special, d.discount_other, d.pharmacy_name
        )
        session.commit()
        session.refresh(row)
        logger.info("settings reset to defaults")
        return row

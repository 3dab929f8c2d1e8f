import json
import logging

from pydantic import ValidationError
from sqlalchemy import delete
from sqlmodel import select

from pharmacy_purchasing.models import (
    BACKUP_VERSION, BackupSnapshot, Client, ClientOut, ClientTransaction, Invoice,
    InvoiceItem, SettingsOut, Supplier, SupplierOut, TransactionOut, now_ts,
)
from pharmacy_purchasing.utils.store import load_invoices, load_settings, save_settings

logger = logging.getLogger("backup")


def create_backup(session) -> dict:
    settings = load_settings(session)
    suppliers = session.exec(select(Supplier).order_by(Supplier.id)).all()
    clients = session.exec(select(Client).order_by(Client.id)).all()
    transactions = session.exec(select(ClientTransaction).order_by(ClientTransaction.id)).all()

    return {
        "settings": SettingsOut.model_validate(settings, from_attributes=True).model_dump(mode="json"),
        "suppliers": [SupplierOut.model_validate(s, from_attributes=True).model_dump(mode="json") for s in suppliers],
        "clients": [ClientOut.model_validate(c, from_attributes=True).model_dump(mode="json") for c in clients],
        "invoices": [inv.model_dump(mode="json") for inv in load_invoices(session)],
        "transactions": [
            TransactionOut.model_validate(t, from_attributes=True).model_dump(mode="json")
            for t in transactions
        ],
        "version": BACKUP_VERSION,
        "date": now_ts(),
    }


def _parse(raw) -> BackupSnapshot:
    data = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
    if not isinstance(data, dict) or not data.get("version"):
        raise ValueError("Invalid backup format")
    return BackupSnapshot.model_validate(data)


def restore_backup(session, raw) -> bool:
    """
    Replace every collection present in the snapshot; absent ones are kept.
    Any problem aborts before anything is written. Draft lines are untouched.
    """
    try:
        snap = _parse(raw)
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning("restore rejected: %s", e)
        return False

    try:
        if snap.settings is not None:
            s = snap.settings
            save_settings(session, s.discount_normal, s.discount_special,
                          s.discount_other, s.pharmacy_name)

        if snap.suppliers is not None:
            session.execute(delete(Supplier))
            for s in snap.suppliers:
                session.add(Supplier(**s.model_dump()))

        if snap.clients is not None:
            session.execute(delete(Client))
            for c in snap.clients:
                session.add(Client(**c.model_dump()))

        if snap.invoices is not None:
            session.execute(delete(InvoiceItem).where(InvoiceItem.invoice_id.is_not(None)))
            session.execute(delete(Invoice))
            for inv in snap.invoices:
                session.add(Invoice(**inv.model_dump(exclude={"items"})))
                for pos, item in enumerate(inv.items):
                    session.add(InvoiceItem.from_calculated(item, position=pos, invoice_id=inv.id))

        if snap.transactions is not None:
            session.execute(delete(ClientTransaction))
            for t in snap.transactions:
                session.add(ClientTransaction(**t.model_dump()))

        session.commit()
    except Exception:
        session.rollback()
        logger.exception("restore failed, nothing written")
        return False

    logger.info("restored backup version %s from %s", snap.version, snap.date)
    return True

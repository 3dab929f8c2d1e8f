# pharmacy_purchasing/routers/backup.py
from datetime import datetime

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from pharmacy_purchasing.db import get_session
from pharmacy_purchasing.utils.backup import create_backup, restore_backup

router = APIRouter()


def _restore(raw: bytes) -> bool:
    with get_session() as session:
        return restore_backup(session, raw)


@router.get("/")
def download_backup():
    with get_session() as session:
        data = create_backup(session)
    filename = f"pharmacy_backup_{datetime.now().date().isoformat()}.json"
    return JSONResponse(
        content=data,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/restore")
async def upload_backup(request: Request):
    """Body is the raw backup document. Answers {"ok": bool}."""
    raw = await request.body()
    # sqlite work runs in the threadpool
    ok = await run_in_threadpool(_restore, raw)
    return JSONResponse(content={"ok": ok}, status_code=200 if ok else 400)

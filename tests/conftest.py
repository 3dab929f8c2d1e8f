# tests/conftest.py
# ---------------------------------------------------------------------
# - Point the app at a throwaway SQLite file before anything imports db.py
# - Every API test starts from empty tables
# ---------------------------------------------------------------------
import os
import tempfile
from pathlib import Path

_TMP_DB = Path(tempfile.mkdtemp(prefix="pharmacy-tests-")) / "test.db"
os.environ["PHARMACY_DB_FILE"] = str(_TMP_DB)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from pharmacy_purchasing.db import engine, init_db  # noqa: E402
from pharmacy_purchasing.main import app  # noqa: E402
from pharmacy_purchasing.models import AppSettings  # noqa: E402


@pytest.fixture
def api():
    SQLModel.metadata.drop_all(engine)
    init_db()
    with TestClient(app) as c:
        yield c


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(id=1, discount_normal=20, discount_special=10, discount_other=0)


@pytest.fixture
def supplier(api) -> dict:
    r = api.post("/suppliers/", json={"name": "Delta Pharma"})
    assert r.status_code == 201
    return r.json()


@pytest.fixture
def customer(api) -> dict:
    r = api.post("/clients/", json={"name": "Nile Clinic"})
    assert r.status_code == 201
    return r.json()

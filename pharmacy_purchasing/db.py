# pharmacy_purchasing/db.py
import os
from contextlib import contextmanager
from pathlib import Path
from sqlmodel import create_engine, Session, SQLModel

BASE_DIR = Path(__file__).resolve().parent.parent   # project root
DB_FILE = Path(os.environ.get("PHARMACY_DB_FILE", BASE_DIR / "pharmacy_purchasing.db"))

engine = create_engine(
    f"sqlite:///{DB_FILE}",
    echo=False,
    connect_args={"check_same_thread": False},
)


def init_db():
    # models must be imported so every table is registered on the metadata
    from pharmacy_purchasing import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


@contextmanager
def get_session():
    with Session(engine) as session:
        yield session

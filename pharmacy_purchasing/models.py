# pharmacy_purchasing/models.py
import math
from enum import Enum
from typing import Annotated, Optional, List, Union, Literal
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import Field as PydanticField
from sqlmodel import SQLModel, Field


def now_ts() -> str:
    return datetime.now().isoformat(timespec="seconds")


BACKUP_VERSION = "1.0"


# ---------- Enums (stable keys; short codes are display only) ----------
class ItemType(str, Enum):
    NORMAL = "NORMAL"
    SPECIAL = "SPECIAL"
    OTHER = "OTHER"

    @property
    def short(self) -> str:
        return {"NORMAL": "REG", "SPECIAL": "SPE", "OTHER": "OTH"}[self.value]


class TaxMethod(str, Enum):
    PER_UNIT = "PER_UNIT"
    TOTAL = "TOTAL"


class TransactionType(str, Enum):
    SALE = "SALE"           # increases client debt
    PAYMENT = "PAYMENT"     # decreases client debt


# ---------- DB Tables ----------
class AppSettings(SQLModel, table=True):
    # single row, id is always 1
    id: Optional[int] = Field(default=None, primary_key=True)
    discount_normal: float = 20.0
    discount_special: float = 10.0
    discount_other: float = 0.0
    pharmacy_name: str = "My Smart Pharmacy"


def default_settings() -> AppSettings:
    return AppSettings(id=1)


class Supplier(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = Field(default_factory=now_ts)


class Client(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    phone: Optional[str] = None
    notes: Optional[str] = None
    balance: float = 0.0                # positive => client owes us
    created_at: str = Field(default_factory=now_ts)
    updated_at: str = Field(default_factory=now_ts)


class ClientTransaction(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: int = Field(index=True)
    date: str = Field(default_factory=now_ts)
    type: TransactionType
    amount: float
    notes: Optional[str] = None
    related_invoice_id: Optional[int] = None    # set when the sale is an invoice resale
    invoice_number: Optional[str] = None        # denormalized for display


class Invoice(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    date: str = Field(default_factory=now_ts)
    invoice_number: Optional[str] = None
    supplier_id: Optional[int] = Field(default=None, index=True)
    supplier_name: str = ""             # denormalized for history
    total_value: float = 0.0            # sum of line net totals
    total_items: int = 0
    total_units: int = 0

    # resell status, set at most once
    is_sold: bool = False
    sold_to_client_id: Optional[int] = None
    sold_date: Optional[str] = None


class InvoiceItem(SQLModel, table=True):
    """
    One calculated purchase line. Lines with invoice_id = NULL form the
    current draft; saving an invoice attaches them.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: Optional[int] = Field(default=None, index=True)
    position: int = 0
    line_id: str = Field(index=True)

    name: str = Field(index=True)
    category: ItemType = ItemType.NORMAL
    qty: int = 0
    bonus: int = 0
    public_price: float = 0.0
    pharma_price: float = 0.0
    supplier_discount_val: float = 0.0
    extra_discount_pct: float = 0.0
    tax_value: float = 0.0
    tax_method: TaxMethod = TaxMethod.PER_UNIT

    total_units: int = 0
    base_total: float = 0.0
    category_discount_value: float = 0.0
    after_category_discount: float = 0.0
    extra_discount_value: float = 0.0
    tax_total: float = 0.0
    net_total_cost: float = 0.0
    net_unit_cost: float = 0.0
    real_discount_pct: float = 0.0

    history_comparison: str = "new"
    price_difference_pct: Optional[float] = None
    savings_vs_history: Optional[float] = None
    is_fake_discount: bool = False

    @classmethod
    def from_calculated(
        cls, item: "CalculatedItem", position: int, invoice_id: Optional[int] = None
    ) -> "InvoiceItem":
        data = item.model_dump(exclude={"id", "history"})
        return cls(
            invoice_id=invoice_id,
            position=position,
            line_id=item.id,
            history_comparison=item.history_comparison,
            price_difference_pct=item.price_difference_pct,
            savings_vs_history=item.savings_vs_history,
            **data,
        )

    def to_calculated(self) -> "CalculatedItem":
        if self.history_comparison == "new":
            history: HistoryResult = NoHistory()
        else:
            history = Compared(
                verdict=self.history_comparison,
                price_difference_pct=self.price_difference_pct or 0.0,
                savings_vs_history=self.savings_vs_history,
            )
        data = self.model_dump(
            exclude={
                "id", "invoice_id", "position", "line_id",
                "history_comparison", "price_difference_pct", "savings_vs_history",
            }
        )
        return CalculatedItem(id=self.line_id, history=history, **data)


# ---------- Pricing types (immutable values) ----------
def _coerce_number(v) -> float:
    # numeric input that is absent or malformed counts as 0
    try:
        f = float(v)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


class ItemInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = PydanticField(default_factory=lambda: uuid4().hex)
    name: str = ""
    category: ItemType = ItemType.NORMAL
    qty: int = 0
    bonus: int = 0
    public_price: float = 0.0
    pharma_price: float = 0.0
    supplier_discount_val: float = 0.0     # flat currency amount
    extra_discount_pct: float = 0.0
    tax_value: float = 0.0
    tax_method: TaxMethod = TaxMethod.PER_UNIT

    @field_validator(
        "public_price", "pharma_price", "supplier_discount_val",
        "extra_discount_pct", "tax_value",
        mode="before",
    )
    @classmethod
    def _numbers(cls, v):
        return _coerce_number(v)

    @field_validator("qty", "bonus", mode="before")
    @classmethod
    def _units(cls, v):
        f = _coerce_number(v)
        if not f.is_integer():
            raise ValueError("qty and bonus must be whole units")
        return int(f)

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        return "" if v is None else str(v)


class NoHistory(BaseModel):
    model_config = ConfigDict(frozen=True)

    verdict: Literal["new"] = "new"


class Compared(BaseModel):
    model_config = ConfigDict(frozen=True)

    verdict: Literal["better", "worse", "same"]
    price_difference_pct: float
    savings_vs_history: Optional[float] = None   # + saved, - lost, None when same


HistoryResult = Annotated[Union[NoHistory, Compared], PydanticField(discriminator="verdict")]


class CalculatedItem(ItemInput):
    total_units: int
    base_total: float
    category_discount_value: float
    after_category_discount: float
    extra_discount_value: float
    tax_total: float
    net_total_cost: float
    net_unit_cost: float
    real_discount_pct: float
    is_fake_discount: bool = False
    history: HistoryResult = PydanticField(default_factory=NoHistory)

    @property
    def history_comparison(self) -> str:
        return self.history.verdict

    @property
    def price_difference_pct(self) -> Optional[float]:
        return getattr(self.history, "price_difference_pct", None)

    @property
    def savings_vs_history(self) -> Optional[float]:
        return getattr(self.history, "savings_vs_history", None)


# ---------- Schemas (requests / responses) ----------
class SettingsIn(SQLModel):
    discount_normal: float
    discount_special: float
    discount_other: float
    pharmacy_name: str


class SettingsOut(SQLModel):
    discount_normal: float
    discount_special: float
    discount_other: float
    pharmacy_name: str


class SupplierCreate(SQLModel):
    name: str
    phone: Optional[str] = None
    notes: Optional[str] = None


class SupplierUpdate(SQLModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


class SupplierOut(SQLModel):
    id: int
    name: str
    phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: str


class ClientCreate(SQLModel):
    name: str
    phone: Optional[str] = None
    notes: Optional[str] = None
    opening_balance: float = 0.0       # recorded as the first ledger entry


class ClientUpdate(SQLModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


class ClientOut(SQLModel):
    id: int
    name: str
    phone: Optional[str] = None
    notes: Optional[str] = None
    balance: float
    created_at: str
    updated_at: str


class TransactionCreate(SQLModel):
    type: TransactionType
    amount: float
    notes: Optional[str] = None
    settles: List[int] = []             # SALE transaction ids a payment covers


class TransactionOut(SQLModel):
    id: int
    client_id: int
    date: str
    type: TransactionType
    amount: float
    notes: Optional[str] = None
    related_invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None


class ClientStatementOut(SQLModel):
    client_id: int
    balance: float
    total_sales: float
    total_payments: float
    ledger_balance: float
    transaction_count: int


class ItemAdvice(BaseModel):
    last_purchase: Optional[CalculatedItem] = None
    bonus_suggestion: Optional[CalculatedItem] = None


class DraftOut(BaseModel):
    items: List[CalculatedItem]
    total_value: float
    total_items: int
    total_units: int


class InvoiceCreate(SQLModel):
    supplier_id: Optional[int] = None
    invoice_number: Optional[str] = None


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: str
    invoice_number: Optional[str] = None
    supplier_id: Optional[int] = None
    supplier_name: str
    total_value: float
    total_items: int
    total_units: int
    is_sold: bool = False
    sold_to_client_id: Optional[int] = None
    sold_date: Optional[str] = None
    items: List[CalculatedItem] = []


class ResellCreate(SQLModel):
    client_id: int
    discount_normal: float = 0.0
    discount_special: float = 0.0
    discount_other: float = 0.0


class ResellOut(BaseModel):
    invoice: InvoiceOut
    transaction: TransactionOut


# ---------- Reports ----------
class DailySpend(BaseModel):
    day: int
    amount: float


class MonthlyReportOut(BaseModel):
    year: int
    month: int
    total_spent: float
    invoice_count: int
    avg_discount: float
    daily: List[DailySpend]


class ExtraDiscountLine(BaseModel):
    invoice_id: int
    invoice_date: str
    supplier_name: str
    name: str
    qty: int
    extra_discount_pct: float
    extra_discount_value: float


class ExtraDiscountReportOut(BaseModel):
    items: List[ExtraDiscountLine]
    total_extra_value: float


# ---------- Backup ----------
class BackupSnapshot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: str
    date: Optional[str] = None
    settings: Optional[SettingsOut] = None
    suppliers: Optional[List[SupplierOut]] = None
    clients: Optional[List[ClientOut]] = None
    invoices: Optional[List[InvoiceOut]] = None
    transactions: Optional[List[TransactionOut]] = None

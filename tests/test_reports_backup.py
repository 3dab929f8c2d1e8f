import json
from datetime import datetime

import pytest

from pharmacy_purchasing.models import InvoiceOut, ItemInput
from pharmacy_purchasing.utils.pricing import calculate_item
from pharmacy_purchasing.utils.reports import extra_discount_report, monthly_report


def add_and_save(api, supplier, number, **line):
    body = {"name": "Panadol", "category": "OTHER", "qty": 10, "public_price": 20, "pharma_price": 10}
    body.update(line)
    assert api.post("/calculator/draft/items", json=body).status_code == 201
    r = api.post("/invoices/", json={"supplier_id": supplier["id"], "invoice_number": number})
    assert r.status_code == 201
    return r.json()


def _invoice(inv_id, date, total, items=(), supplier_id=1):
    return InvoiceOut(
        id=inv_id, date=date, supplier_id=supplier_id, supplier_name="Delta",
        total_value=total, total_items=len(items), total_units=0, items=list(items),
    )


class TestMonthlyReport:
    def test_groups_by_day_and_skips_other_months(self):
        invoices = [
            _invoice(3, "2024-03-15T10:00:00", 50),
            _invoice(2, "2024-03-15T09:00:00", 25),
            _invoice(1, "2024-03-02T09:00:00", 100),
            _invoice(0, "2024-02-28T09:00:00", 999),
        ]
        r = monthly_report(invoices, 2024, 3)
        assert r.invoice_count == 3
        assert r.total_spent == 175
        assert [(d.day, d.amount) for d in r.daily] == [(2, 100), (15, 75)]
        assert r.avg_discount == 0

    def test_empty_month(self):
        r = monthly_report([], 2024, 1)
        assert r.invoice_count == 0
        assert r.daily == []

    def test_api_current_month(self, api, supplier):
        add_and_save(api, supplier, "A")                    # 50% real discount
        add_and_save(api, supplier, "B", pharma_price=15)   # 25% real discount
        now = datetime.now()
        r = api.get("/reports/monthly", params={"year": now.year, "month": now.month}).json()
        assert r["invoice_count"] == 2
        assert r["total_spent"] == pytest.approx(250.0)
        assert r["avg_discount"] == pytest.approx(37.5)

    def test_month_out_of_range(self, api):
        assert api.get("/reports/monthly", params={"year": 2024, "month": 13}).status_code == 422


class TestExtraDiscountReport:
    def test_filters_lines_dates_and_supplier(self, api, supplier):
        add_and_save(api, supplier, "A", extra_discount_pct=10)
        add_and_save(api, supplier, "B", name="Brufen")
        today = datetime.now().date().isoformat()

        r = api.get("/reports/extra-discounts", params={"from_date": today, "to_date": today}).json()
        assert [i["name"] for i in r["items"]] == ["Panadol"]
        assert r["total_extra_value"] == pytest.approx(10.0)

        r = api.get("/reports/extra-discounts", params={
            "from_date": today, "to_date": today, "supplier_id": 999,
        }).json()
        assert r["items"] == []

    def test_bad_dates(self, api):
        assert api.get("/reports/extra-discounts", params={"from_date": "15/03/2024"}).status_code == 400
        r = api.get("/reports/extra-discounts", params={"from_date": "2024-03-10", "to_date": "2024-03-01"})
        assert r.status_code == 400

    def test_range_is_inclusive(self, settings):
        item = calculate_item(
            ItemInput(name="Panadol", qty=10, pharma_price=10, extra_discount_pct=10), settings
        )
        inv = _invoice(1, "2024-03-31T23:00:00", item.net_total_cost, items=[item])
        assert len(extra_discount_report([inv], "2024-03-01", "2024-03-31").items) == 1
        assert extra_discount_report([inv], "2024-03-01", "2024-03-30").items == []


class TestBackup:
    def test_snapshot_shape(self, api, supplier, customer):
        add_and_save(api, supplier, "A")
        snap = api.get("/backup/").json()
        assert snap["version"] == "1.0"
        assert snap["date"]
        assert set(snap) >= {"settings", "suppliers", "clients", "invoices", "transactions"}
        assert snap["invoices"][0]["items"][0]["name"] == "Panadol"

    def test_restore_round_trip(self, api, supplier, customer):
        inv = add_and_save(api, supplier, "A")
        api.post(f"/clients/{customer['id']}/transactions", json={"type": "SALE", "amount": 70})
        snap = api.get("/backup/").json()

        api.delete(f"/invoices/{inv['id']}")
        api.delete(f"/suppliers/{supplier['id']}")
        api.post("/clients/", json={"name": "Temp"})

        r = api.post("/backup/restore", content=json.dumps(snap))
        assert r.status_code == 200
        assert r.json() == {"ok": True}

        assert api.get(f"/invoices/{inv['id']}").json()["items"][0]["name"] == "Panadol"
        assert [s["name"] for s in api.get("/suppliers/").json()] == ["Delta Pharma"]
        assert [c["name"] for c in api.get("/clients/").json()] == ["Nile Clinic"]
        assert api.get(f"/clients/{customer['id']}").json()["balance"] == pytest.approx(70.0)

        # restored lines are history again
        r = api.post("/calculator/preview", json={
            "name": "Panadol", "category": "OTHER", "qty": 10, "pharma_price": 9,
        })
        assert r.json()["history"]["verdict"] == "better"

    @pytest.mark.parametrize("raw", [
        "{not json",
        json.dumps({"suppliers": []}),
        json.dumps({"version": "", "suppliers": []}),
        json.dumps({"version": "1.0", "suppliers": [{"name": "missing id"}]}),
        json.dumps([1, 2, 3]),
    ])
    def test_bad_snapshot_changes_nothing(self, api, supplier, raw):
        r = api.post("/backup/restore", content=raw)
        assert r.status_code == 400
        assert r.json() == {"ok": False}
        assert [s["name"] for s in api.get("/suppliers/").json()] == ["Delta Pharma"]

    def test_partial_snapshot_only_touches_included_collections(self, api, supplier, customer):
        add_and_save(api, supplier, "A")
        snap = {"version": "1.0", "suppliers": [
            {"id": 50, "name": "Omega", "created_at": "2024-01-01T00:00:00"},
        ]}
        r = api.post("/backup/restore", content=json.dumps(snap))
        assert r.json() == {"ok": True}
        assert [s["name"] for s in api.get("/suppliers/").json()] == ["Omega"]
        assert len(api.get("/invoices/").json()) == 1
        assert [c["name"] for c in api.get("/clients/").json()] == ["Nile Clinic"]

    def test_restore_keeps_draft(self, api, supplier):
        snap = api.get("/backup/").json()
        api.post("/calculator/draft/items", json={"name": "Brufen", "qty": 1, "pharma_price": 5})
        assert api.post("/backup/restore", content=json.dumps(snap)).json() == {"ok": True}
        assert api.get("/calculator/draft").json()["total_items"] == 1

"""
Integration Tests for the Ledger HTTP API

Exercises products, repairs, warranty status and reports against an
in-memory database.
"""

import pytest
from datetime import date, timedelta
from dateutil.relativedelta import relativedelta
from fastapi.testclient import TestClient

from repair_ledger.compute.warranty import utc_today
from repair_ledger.db import LedgerRepository


def product_payload(serial: str, **overrides) -> dict:
    payload = {
        "name": "Laptop",
        "serial": serial,
        "purchase_date": (utc_today() - relativedelta(months=6)).isoformat(),
        "warranty_months": 12,
        "brand": "Acme",
        "retailer": "Shop",
        "price": 799.0
    }
    payload.update(overrides)
    return payload


def create_product(client: TestClient, serial: str = "SN-0001", **overrides) -> dict:
    response = client.post("/products", json=product_payload(serial, **overrides))
    assert response.status_code == 201, response.text
    return response.json()


def create_repair(client: TestClient, product_id: int, **overrides) -> dict:
    payload = {"product_id": product_id}
    payload.update(overrides)
    response = client.post("/repairs", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def patch_status(client: TestClient, repair_id: int, status: str):
    return client.patch(f"/repairs/{repair_id}", json={"status": status})


class TestProductEndpoints:
    """Tests for product intake and lookup."""

    def test_create_product(self, client):
        """Test product creation returns the stored product and its location."""
        response = client.post("/products", json=product_payload("SN-100", name="  Camera  "))

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Camera"
        assert body["serial"] == "SN-100"
        assert body["warranty_months"] == 12
        assert body["price"] == 799.0
        assert response.headers["location"] == f"/products/{body['id']}"

    def test_missing_warranty_months_uses_default(self, client):
        payload = product_payload("SN-101")
        del payload["warranty_months"]

        response = client.post("/products", json=payload)

        assert response.status_code == 201
        assert response.json()["warranty_months"] == 24

    def test_duplicate_serial_is_rejected(self, client):
        """Test the serial uniqueness rule."""
        create_product(client, "SN-DUP")

        response = client.post("/products", json=product_payload(" SN-DUP "))

        assert response.status_code == 400
        assert response.json()["errors"]["serial"] == ["Serial must be unique."]

    def test_duplicate_serial_caught_by_database(self, client, monkeypatch):
        """Test a unique-constraint failure on insert maps to the same 400 problem."""
        create_product(client, "SN-RACE")
        monkeypatch.setattr(LedgerRepository, "serial_exists", lambda self, serial: False)

        response = client.post("/products", json=product_payload("SN-RACE"))

        assert response.status_code == 400
        assert response.json()["errors"] == {"serial": ["Serial must be unique."]}
        assert len(client.get("/products").json()) == 1

    def test_length_limits_apply_after_trimming(self, client):
        padded = "     " + "n" * 200 + "     "

        response = client.post("/products", json=product_payload("SN-LONG", name=padded))

        assert response.status_code == 201
        assert response.json()["name"] == "n" * 200

        too_long = client.post("/products", json=product_payload("SN-LONG-2", name="n" * 201))
        assert too_long.status_code == 400
        assert "name" in too_long.json()["errors"]

    @pytest.mark.parametrize("field,value", [
        ("name", "   "),
        ("serial", ""),
        ("warranty_months", 0),
        ("warranty_months", -5),
        ("price", -1),
    ])
    def test_invalid_product_is_rejected(self, client, field, value):
        """Test request validation failures surface as 400 problems."""
        payload = product_payload("SN-BAD")
        payload[field] = value

        response = client.post("/products", json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["title"] == "One or more validation errors occurred."
        assert field in body["errors"]

    def test_get_product(self, client):
        created = create_product(client)

        response = client.get(f"/products/{created['id']}")

        assert response.status_code == 200
        assert response.json() == created

    def test_get_missing_product(self, client):
        assert client.get("/products/999").status_code == 404

    def test_list_products_filters_and_orders(self, client):
        """Test search by name or serial, ordered by name."""
        create_product(client, "SN-A", name="Washer")
        create_product(client, "SN-B", name="Dryer")
        create_product(client, "TV-C", name="Television")

        names = [p["name"] for p in client.get("/products").json()]
        assert names == ["Dryer", "Television", "Washer"]

        filtered = [p["name"] for p in client.get("/products", params={"q": "sn-"}).json()]
        assert filtered == ["Dryer", "Washer"]

        by_name = [p["name"] for p in client.get("/products", params={"q": "tele"}).json()]
        assert by_name == ["Television"]

    def test_delete_product_cascades_to_repairs(self, client):
        """Test deleting a product removes its repairs."""
        product = create_product(client)
        repair = create_repair(client, product["id"])

        response = client.delete(f"/products/{product['id']}")

        assert response.status_code == 204
        assert client.get(f"/products/{product['id']}").status_code == 404
        assert client.get(f"/repairs/{repair['id']}").status_code == 404
        assert client.get("/repairs").json() == []


class TestWarrantyEndpoints:
    """Tests for warranty status and expiring products."""

    def test_in_warranty(self, client):
        purchase_date = utc_today() - relativedelta(months=6)
        product = create_product(client, purchase_date=purchase_date.isoformat(), warranty_months=12)

        response = client.get(f"/products/{product['id']}/in-warranty")

        assert response.status_code == 200
        body = response.json()
        expires_on = purchase_date + relativedelta(months=12)
        assert body["in_warranty"] is True
        assert body["expires_on"] == expires_on.isoformat()
        assert body["reason"] == f"Warranty valid until {expires_on.isoformat()}"

    def test_expired_product(self, client):
        purchase_date = utc_today() - relativedelta(months=25)
        product = create_product(client, purchase_date=purchase_date.isoformat(), warranty_months=24)

        body = client.get(f"/products/{product['id']}/in-warranty").json()

        assert body["in_warranty"] is False
        assert body["reason"].startswith("Warranty expired on")

    def test_consumer_opted_repair_extends_warranty(self, client):
        """Test that fixing an opted-in repair extends an expired warranty."""
        purchase_date = utc_today() - relativedelta(months=30)
        product = create_product(client, purchase_date=purchase_date.isoformat(), warranty_months=24)
        repair = create_repair(client, product["id"], consumer_opted_for_repair=True)

        assert patch_status(client, repair["id"], "InProgress").status_code == 200
        fixed = patch_status(client, repair["id"], "Fixed")
        assert fixed.status_code == 200

        body = client.get(f"/products/{product['id']}/in-warranty").json()

        closed_on = date.fromisoformat(fixed.json()["closed_at"][:10])
        assert body["in_warranty"] is True
        assert body["expires_on"] == (closed_on + relativedelta(months=12)).isoformat()

    def test_repair_without_opt_in_does_not_extend(self, client):
        purchase_date = utc_today() - relativedelta(months=30)
        product = create_product(client, purchase_date=purchase_date.isoformat(), warranty_months=24)
        repair = create_repair(client, product["id"])

        patch_status(client, repair["id"], "InProgress")
        patch_status(client, repair["id"], "Fixed")

        body = client.get(f"/products/{product['id']}/in-warranty").json()

        assert body["in_warranty"] is False
        assert body["expires_on"] == (purchase_date + relativedelta(months=24)).isoformat()

    def test_expiring_products(self, client):
        """Test the expiring list includes upcoming and excludes expired products."""
        soon_purchase = utc_today() + timedelta(days=10) - relativedelta(months=24)
        soon = create_product(client, "SN-SOON", name="Soon", purchase_date=soon_purchase.isoformat(), warranty_months=24)
        create_product(client, "SN-LATER", name="Later", warranty_months=60)
        create_product(
            client,
            "SN-GONE",
            name="Gone",
            purchase_date=(utc_today() - relativedelta(months=30)).isoformat(),
            warranty_months=24
        )

        response = client.get("/products/expiring", params={"days": 30})

        assert response.status_code == 200
        body = response.json()
        expected_days = (soon_purchase + relativedelta(months=24) - utc_today()).days
        assert [entry["product"]["id"] for entry in body] == [soon["id"]]
        assert body[0]["days_remaining"] == expected_days

    @pytest.mark.parametrize("days", [0, -7])
    def test_expiring_rejects_non_positive_days(self, client, days):
        response = client.get("/products/expiring", params={"days": days})

        assert response.status_code == 400
        assert response.json()["errors"]["days"] == ["Days must be greater than zero."]


class TestRepairEndpoints:
    """Tests for repair creation and the status workflow."""

    def test_create_repair_starts_open(self, client):
        product = create_product(client)

        repair = create_repair(client, product["id"], cost=120.5, notes="  Screen flicker  ")

        assert repair["status"] == "Open"
        assert repair["closed_at"] is None
        assert repair["notes"] == "Screen flicker"
        assert repair["cost"] == 120.5
        assert repair["consumer_opted_for_repair"] is False

    def test_create_repair_for_missing_product(self, client):
        response = client.post("/repairs", json={"product_id": 404})

        assert response.status_code == 404

    def test_create_repair_with_other_status_is_rejected(self, client):
        """Test that only Open is accepted as an initial status."""
        product = create_product(client)

        response = client.post("/repairs", json={"product_id": product["id"], "status": "Fixed"})

        assert response.status_code == 400
        assert response.json()["errors"]["status"] == ["New repairs must start in the Open status."]

    def test_negative_cost_is_rejected(self, client):
        product = create_product(client)

        response = client.post("/repairs", json={"product_id": product["id"], "cost": -10})

        assert response.status_code == 400
        assert "cost" in response.json()["errors"]

    def test_skipping_states_is_rejected(self, client):
        """Test Open -> Fixed is refused."""
        product = create_product(client)
        repair = create_repair(client, product["id"])

        response = patch_status(client, repair["id"], "Fixed")

        assert response.status_code == 400
        assert response.json()["errors"]["status"] == ["Allowed transitions: Open -> InProgress -> Fixed|Rejected."]

    def test_sequential_flow(self, client):
        """Test Open -> InProgress -> Fixed sets closed_at only at the end."""
        product = create_product(client)
        repair = create_repair(client, product["id"])

        in_progress = patch_status(client, repair["id"], "InProgress")
        assert in_progress.status_code == 200
        assert in_progress.json()["status"] == "InProgress"
        assert in_progress.json()["closed_at"] is None

        fixed = patch_status(client, repair["id"], "Fixed")
        assert fixed.status_code == 200
        assert fixed.json()["status"] == "Fixed"
        assert fixed.json()["closed_at"] is not None

        stored = client.get(f"/repairs/{repair['id']}").json()
        assert stored["status"] == "Fixed"
        assert stored["closed_at"] is not None

    def test_closed_repair_cannot_transition(self, client):
        product = create_product(client)
        repair = create_repair(client, product["id"])
        patch_status(client, repair["id"], "InProgress")
        patch_status(client, repair["id"], "Rejected")

        response = patch_status(client, repair["id"], "InProgress")

        assert response.status_code == 400
        assert response.json()["errors"]["status"] == ["Closed repairs cannot transition to a new status."]

    def test_same_status_is_rejected(self, client):
        product = create_product(client)
        repair = create_repair(client, product["id"])

        response = patch_status(client, repair["id"], "Open")

        assert response.status_code == 400
        assert response.json()["errors"]["status"] == ["Repair is already in the requested status."]

    def test_unknown_status_is_rejected(self, client):
        product = create_product(client)
        repair = create_repair(client, product["id"])

        response = patch_status(client, repair["id"], "Lost")

        assert response.status_code == 400
        assert "status" in response.json()["errors"]

    def test_patch_missing_repair(self, client):
        assert patch_status(client, 999, "InProgress").status_code == 404

    def test_list_repairs_by_status(self, client):
        product = create_product(client)
        first = create_repair(client, product["id"])
        create_repair(client, product["id"])
        patch_status(client, first["id"], "InProgress")

        in_progress = client.get("/repairs", params={"status": "InProgress"}).json()
        open_repairs = client.get("/repairs", params={"status": "Open"}).json()

        assert [r["id"] for r in in_progress] == [first["id"]]
        assert len(open_repairs) == 1

    def test_list_product_repairs(self, client):
        product = create_product(client, "SN-1")
        other = create_product(client, "SN-2")
        repair = create_repair(client, product["id"])
        create_repair(client, other["id"])

        response = client.get(f"/products/{product['id']}/repairs")

        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == [repair["id"]]


class TestReportEndpoints:
    """Tests for the summary report."""

    def test_summary_reflects_open_repairs_and_expiring_products(self, client):
        purchase_date = utc_today() + timedelta(days=10) - relativedelta(months=24)
        product = create_product(client, "SN-LEGACY", purchase_date=purchase_date.isoformat(), warranty_months=24)
        create_repair(client, product["id"])

        response = client.get("/reports/summary")

        assert response.status_code == 200
        summary = response.json()
        assert summary["counts_by_status"]["Open"] == 1
        assert summary["counts_by_status"]["Fixed"] == 0
        assert summary["expiring_products"] >= 1
        assert summary["average_days_open"] is not None

    def test_empty_summary(self, client):
        summary = client.get("/reports/summary").json()

        assert summary["average_days_open"] is None
        assert summary["expiring_products"] == 0


class TestDiagnostics:
    """Tests for health and error handling."""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_unhandled_error_returns_problem(self, app):
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/diagnostics/throw")

        assert response.status_code == 500
        body = response.json()
        assert body["title"] == "An unexpected error occurred."
        assert "Simulated" not in body["detail"]

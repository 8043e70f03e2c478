import time
import unittest

from fastapi.testclient import TestClient

from treeops import invoices
from treeops.app import create_app
from treeops.db import InMemoryDbClient
from treeops.dependencies import get_db_client

DAY_MS = 24 * 60 * 60 * 1000

WORK_ORDER = {
    "customer_name": "Pat Green",
    "customer_email": "pat@example.com",
    "property_address": "40 Oak Ave",
    "service_type": "removal",
    "job_description": "Remove two dead pines",
    "estimated_cost": 400,
    "scheduled_date": 1_700_000_000_000,
}


def _calculation(tree_id, total_cost, species=None):
    measurements = {"height": 50, "canopy_radius": 15, "dbh": 24}
    if species:
        measurements["species"] = species
    return {
        "tree_id": tree_id,
        "measurements": measurements,
        "hazard_factors": {},
        "results": {
            "base_tree_score": 3000,
            "hazard_impact": 0,
            "final_tree_score": 3000,
            "total_cost": total_cost,
        },
    }


def _line_item(**overrides):
    item = {
        "id": "li-1",
        "description": "Remove leaning oak",
        "quantity": 1,
        "unit": "tree",
        "unit_price": 1800,
        "total_price": 1800,
        "labor_hours": 6,
        "complexity": "high",
        "service_category": "removal",
    }
    item.update(overrides)
    return item


def _proposal(**overrides):
    proposal = {
        "customer_name": "Dana Whitfield",
        "customer_email": "dana@example.com",
        "property_address": "12 Elm St",
        "line_items": [_line_item(), _line_item(id="li-2", description="Grind stump")],
        "subtotal": 1800,
        "tax_rate": 8.5,
        "tax_amount": 153,
        "total_amount": 1953,
        "valid_until": int(time.time() * 1000) + 2 * DAY_MS,
    }
    proposal.update(overrides)
    return proposal


class InvoiceApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(create_app())
        self.db = get_db_client()
        if isinstance(self.db, InMemoryDbClient):
            self.db.reset()

    def test_create_invoice_totals(self):
        response = self.client.post(
            "/api/invoices",
            json={
                "customer_name": "Morgan Blake",
                "billing_address": "9 Cedar Ln",
                "line_items": [
                    {"description": "Trim", "quantity": 2, "unit_price": 150, "total_price": 300},
                    {"description": "Haul", "quantity": 1, "unit_price": 100, "total_price": 100},
                ],
                "tax_rate": 10,
            },
        )
        self.assertEqual(response.status_code, 201)

        invoice = self.client.get(f"/api/invoices/{response.json()['id']}").json()
        self.assertEqual(invoice["subtotal"], 400)
        self.assertEqual(invoice["tax_amount"], 40)
        self.assertEqual(invoice["total_amount"], 440)
        self.assertEqual(invoice["balance"], 440)
        self.assertEqual(invoice["payment_status"], "pending")
        self.assertTrue(invoice["invoice_number"].startswith("INV-"))
        self.assertEqual(invoice["due_date"] - invoice["issue_date"], 30 * DAY_MS)

        untaxed = self.client.post(
            "/api/invoices",
            json={"customer_name": "Other", "billing_address": "1 Main St", "line_items": []},
        ).json()["id"]
        self.assertEqual(self.client.get(f"/api/invoices/{untaxed}").json()["tax_amount"], 0)

    def test_invoice_from_work_order_tree_scores(self):
        work_order_id = self.client.post("/api/work-orders", json=WORK_ORDER).json()["id"]
        url = f"/api/work-orders/{work_order_id}/tree-scores"
        self.client.post(url, json=_calculation("tree-1", 1000))
        self.client.post(url, json=_calculation("tree-2", 500, species="Loblolly Pine"))

        response = self.client.post(f"/api/invoices/from-work-order/{work_order_id}")
        self.assertEqual(response.status_code, 201)
        invoice = self.client.get(f"/api/invoices/{response.json()['id']}").json()

        descriptions = sorted(item["description"] for item in invoice["line_items"])
        self.assertEqual(
            descriptions,
            [
                "Tree removal - Loblolly Pine (50ft H x 24in DBH)",
                "Tree removal - Unknown species (50ft H x 24in DBH)",
            ],
        )
        self.assertEqual(
            sorted(item["tree_score_id"] for item in invoice["line_items"]), ["tree-1", "tree-2"]
        )
        self.assertEqual(invoice["subtotal"], 1500)
        self.assertEqual(invoice["tax_rate"], 8.5)
        self.assertEqual(invoice["tax_amount"], 127.5)
        self.assertEqual(invoice["total_amount"], 1627.5)
        self.assertEqual(invoice["billing_address"], "40 Oak Ave")
        self.assertEqual(invoice["customer_email"], "pat@example.com")
        self.assertEqual(invoice["service_date"], WORK_ORDER["scheduled_date"])
        self.assertEqual(invoice["terms"], "Payment due within 30 days")
        self.assertEqual(invoice["work_order_id"], work_order_id)

    def test_invoice_from_work_order_without_tree_scores(self):
        work_order_id = self.client.post("/api/work-orders", json=WORK_ORDER).json()["id"]
        estimate = self.client.post(f"/api/invoices/from-work-order/{work_order_id}").json()["id"]
        line = self.client.get(f"/api/invoices/{estimate}").json()["line_items"][0]
        self.assertEqual(line["description"], "Remove two dead pines")
        self.assertEqual(line["total_price"], 400)

        self.client.patch(f"/api/work-orders/{work_order_id}", json={"actual_cost": 450})
        actual = self.client.post(f"/api/invoices/from-work-order/{work_order_id}").json()["id"]
        self.assertEqual(self.client.get(f"/api/invoices/{actual}").json()["subtotal"], 450)

        missing = self.client.post("/api/invoices/from-work-order/missing")
        self.assertEqual(missing.status_code, 404)

    def test_payments_update_balance_and_status(self):
        work_order_id = self.client.post("/api/work-orders", json=WORK_ORDER).json()["id"]
        invoice_id = self.client.post(
            f"/api/invoices/from-work-order/{work_order_id}"
        ).json()["id"]
        # 400 + 8.5% tax
        payments = f"/api/invoices/{invoice_id}/payments"

        partial = self.client.post(
            payments, json={"amount": 134, "payment_method": "check", "payment_date": 5}
        ).json()
        self.assertEqual(partial["amount_paid"], 134)
        self.assertEqual(partial["balance"], 300)
        self.assertEqual(partial["payment_status"], "partial")
        self.assertEqual(partial["payment_date"], 5)

        paid = self.client.post(payments, json={"amount": 300, "payment_method": "card"}).json()
        self.assertEqual(paid["amount_paid"], 434)
        self.assertEqual(paid["balance"], 0)
        self.assertEqual(paid["payment_status"], "paid")
        self.assertEqual(paid["payment_method"], "card")

        self.assertEqual(
            [i["id"] for i in self.client.get("/api/invoices", params={"payment_status": "paid"}).json()],
            [invoice_id],
        )
        self.assertEqual(
            self.client.post(payments, json={"amount": 0, "payment_method": "card"}).status_code,
            422,
        )
        self.assertEqual(
            self.client.post(
                "/api/invoices/missing/payments", json={"amount": 5, "payment_method": "cash"}
            ).status_code,
            404,
        )

    def test_update_amount_paid_recomputes_balance(self):
        work_order_id = self.client.post("/api/work-orders", json=WORK_ORDER).json()["id"]
        invoice_id = self.client.post(
            f"/api/invoices/from-work-order/{work_order_id}"
        ).json()["id"]

        updated = self.client.patch(
            f"/api/invoices/{invoice_id}", json={"amount_paid": 34, "notes": "Deposit"}
        ).json()
        self.assertEqual(updated["balance"], 400)
        self.assertEqual(updated["payment_status"], "partial")
        self.assertEqual(updated["notes"], "Deposit")

        settled = self.client.patch(f"/api/invoices/{invoice_id}", json={"amount_paid": 434}).json()
        self.assertEqual(settled["payment_status"], "paid")
        self.assertEqual(settled["balance"], 0)

        self.assertEqual(
            self.client.patch(f"/api/invoices/{invoice_id}", json={"amount_paid": -1}).status_code,
            422,
        )

    def test_overdue_and_customer_filters(self):
        first = self.client.post(
            "/api/invoices",
            json={"customer_name": "Morgan Blake", "billing_address": "9 Cedar Ln"},
        ).json()["id"]
        second = self.client.post(
            "/api/invoices",
            json={"customer_name": "Other", "billing_address": "1 Main St"},
        ).json()["id"]
        self.client.patch(f"/api/invoices/{first}", json={"due_date": 1000})
        self.client.patch(f"/api/invoices/{second}", json={"due_date": 2000})

        overdue = self.client.get("/api/invoices/overdue").json()
        self.assertEqual([i["id"] for i in overdue], [first, second])

        self.client.patch(f"/api/invoices/{second}", json={"payment_status": "paid"})
        self.client.delete(f"/api/invoices/{first}")
        self.assertEqual(self.client.get("/api/invoices/overdue").json(), [])
        self.assertEqual(invoices.list_overdue_invoices(self.db, now=500), [])

        by_customer = self.client.get("/api/invoices", params={"customer_name": "Other"}).json()
        self.assertEqual([i["id"] for i in by_customer], [second])
        self.assertFalse(self.client.get(f"/api/invoices/{first}").json()["is_active"])
        self.assertEqual(len(self.client.get("/api/invoices").json()), 2)
        self.assertEqual(self.client.get("/api/invoices/missing").status_code, 404)


class ProposalApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(create_app())
        db = get_db_client()
        if isinstance(db, InMemoryDbClient):
            db.reset()

    def _create(self, **overrides):
        response = self.client.post("/api/proposals", json=_proposal(**overrides))
        self.assertEqual(response.status_code, 201)
        return response.json()["id"]

    def test_create_send_view(self):
        proposal_id = self._create()
        proposal = self.client.get(f"/api/proposals/{proposal_id}").json()
        self.assertEqual(proposal["status"], "draft")
        self.assertEqual(proposal["version"], 1)
        self.assertRegex(proposal["proposal_number"], r"^PROP-\d{4}-\d{6}$")

        sent = self.client.post(f"/api/proposals/{proposal_id}/send").json()
        self.assertEqual(sent["status"], "sent")
        self.assertIsNotNone(sent["sent_at"])

        viewed = self.client.post(f"/api/proposals/{proposal_id}/viewed").json()
        self.assertEqual(viewed["status"], "viewed")
        self.assertIsNotNone(viewed["viewed_at"])

        self.assertEqual(self.client.post("/api/proposals/missing/send").status_code, 404)
        self.assertEqual(self.client.get("/api/proposals/missing").status_code, 404)

    def test_accept_creates_one_work_order(self):
        proposal_id = self._create(lead_id="lead-7")
        response = self.client.post(f"/api/proposals/{proposal_id}/accept")
        self.assertEqual(response.status_code, 201)
        work_order_id = response.json()["id"]

        work_order = self.client.get(f"/api/work-orders/{work_order_id}").json()
        self.assertEqual(work_order["lead_id"], "lead-7")
        self.assertEqual(work_order["customer_name"], "Dana Whitfield")
        self.assertEqual(work_order["service_type"], "removal")
        self.assertEqual(work_order["job_description"], "Remove leaning oak; Grind stump")
        self.assertEqual(work_order["estimated_cost"], 1953)
        self.assertEqual(work_order["status"], "pending")
        self.assertEqual(work_order["priority"], "medium")

        proposal = self.client.get(f"/api/proposals/{proposal_id}").json()
        self.assertEqual(proposal["status"], "approved")
        self.assertEqual(proposal["work_order_id"], work_order_id)
        self.assertIsNotNone(proposal["conversion_date"])

        again = self.client.post(f"/api/proposals/{proposal_id}/accept").json()
        self.assertEqual(again["id"], work_order_id)
        self.assertEqual(len(self.client.get("/api/work-orders").json()), 1)
        self.assertEqual(self.client.post("/api/proposals/missing/accept").status_code, 404)

    def test_reject_appends_reason(self):
        with_notes = self._create(notes="Includes cleanup")
        rejected = self.client.post(
            f"/api/proposals/{with_notes}/reject", json={"reason": "Too expensive"}
        ).json()
        self.assertEqual(rejected["status"], "rejected")
        self.assertEqual(rejected["notes"], "Includes cleanup\n\nRejection reason: Too expensive")
        self.assertIsNotNone(rejected["responded_at"])

        without_notes = self._create()
        self.assertEqual(
            self.client.post(
                f"/api/proposals/{without_notes}/reject", json={"reason": "Went elsewhere"}
            ).json()["notes"],
            "Rejection reason: Went elsewhere",
        )
        no_reason = self._create(notes="Keep")
        self.assertEqual(
            self.client.post(f"/api/proposals/{no_reason}/reject").json()["notes"], "Keep"
        )

    def test_duplicate_starts_a_fresh_draft(self):
        proposal_id = self._create()
        self.client.post(f"/api/proposals/{proposal_id}/send")

        response = self.client.post(f"/api/proposals/{proposal_id}/duplicate")
        self.assertEqual(response.status_code, 201)
        draft = self.client.get(f"/api/proposals/{response.json()['id']}").json()

        self.assertEqual(draft["status"], "draft")
        self.assertEqual(draft["parent_proposal_id"], proposal_id)
        self.assertEqual(draft["revision_reason"], "Duplicated proposal")
        self.assertEqual(draft["version"], 1)
        self.assertIsNone(draft["sent_at"])
        self.assertEqual(len(draft["line_items"]), 2)
        self.assertNotEqual(draft["id"], proposal_id)

    def test_update_and_filters(self):
        now = int(time.time() * 1000)
        soon = self._create(valid_until=now + DAY_MS)
        later = self._create(valid_until=now + 30 * DAY_MS)
        draft = self._create(customer_name="Sam Ortiz", valid_until=now + DAY_MS)
        for proposal_id in (soon, later):
            self.client.post(f"/api/proposals/{proposal_id}/send")

        expiring = self.client.get("/api/proposals/expiring").json()
        self.assertEqual([p["id"] for p in expiring], [soon])
        wide = self.client.get("/api/proposals/expiring", params={"days_ahead": 60}).json()
        self.assertEqual([p["id"] for p in wide], [soon, later])

        self.assertEqual(
            [p["id"] for p in self.client.get("/api/proposals", params={"status": "draft"}).json()],
            [draft],
        )
        self.assertEqual(len(self.client.get("/api/proposals", params={"status": "all"}).json()), 3)
        by_customer = self.client.get("/api/proposals", params={"customer_name": "Sam Ortiz"}).json()
        self.assertEqual([p["id"] for p in by_customer], [draft])

        updated = self.client.patch(
            f"/api/proposals/{draft}", json={"total_amount": 2100, "notes": "Revised"}
        ).json()
        self.assertEqual(updated["total_amount"], 2100)
        self.assertIsNotNone(updated["last_updated"])
        self.assertEqual(
            self.client.patch(f"/api/proposals/{draft}", json={"customer_name": ""}).status_code,
            422,
        )
        self.assertEqual(self.client.get("/api/proposals").status_code, 200)


if __name__ == "__main__":
    unittest.main()

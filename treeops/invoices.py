"""
Invoice handlers: billing from work orders and payment tracking.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from treeops.db import DbClient, Document, RecordNotFoundError, now_ms
from treeops.schemas import (
    InvoiceCreate,
    InvoiceUpdate,
    PaymentStatus,
    RecordPaymentRequest,
)
from treeops.work_orders import WORK_ORDERS

logger = logging.getLogger(__name__)

INVOICES = "invoices"
DAY_MS = 24 * 60 * 60 * 1000
PAYMENT_TERM_DAYS = 30
DEFAULT_TAX_RATE = 8.5  # percent
DEFAULT_TERMS = f"Payment due within {PAYMENT_TERM_DAYS} days"


def _money(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def _totals(line_items: list[dict], tax_rate: Optional[float]) -> dict:
    subtotal = _money(sum(item["total_price"] for item in line_items))
    tax_amount = _money(subtotal * tax_rate / 100) if tax_rate else 0
    total_amount = _money(subtotal + tax_amount)
    return {
        "subtotal": subtotal,
        "tax_amount": tax_amount,
        "total_amount": total_amount,
        "balance": total_amount,
    }


def _payment_state(total_amount: float, amount_paid: float) -> tuple[float, Optional[str]]:
    balance = _money(total_amount - amount_paid)
    if balance <= 0:
        return balance, PaymentStatus.PAID.value
    if amount_paid > 0:
        return balance, PaymentStatus.PARTIAL.value
    return balance, None


def _new_invoice(doc: Document) -> Document:
    issue_date = now_ms()
    doc.update(
        {
            "invoice_number": f"INV-{issue_date}",
            "issue_date": issue_date,
            "due_date": issue_date + PAYMENT_TERM_DAYS * DAY_MS,
            "payment_status": PaymentStatus.PENDING.value,
            "created_at": issue_date,
            "is_active": True,
        }
    )
    return doc


def list_invoices(db: DbClient) -> list[Document]:
    return db.query(INVOICES)


def list_invoices_by_status(db: DbClient, payment_status: str) -> list[Document]:
    return db.query(INVOICES, index=("payment_status", payment_status))


def list_invoices_by_customer(db: DbClient, customer_name: str) -> list[Document]:
    return db.query(INVOICES, index=("customer_name", customer_name))


def list_overdue_invoices(db: DbClient, now: Optional[int] = None) -> list[Document]:
    cutoff = now if now is not None else now_ms()

    def overdue(doc: Document) -> bool:
        return (
            doc.get("is_active") is not False
            and doc["due_date"] < cutoff
            and doc.get("payment_status") != PaymentStatus.PAID.value
        )

    docs = db.query(INVOICES, where=overdue, order="asc")
    return sorted(docs, key=lambda d: d["due_date"])


def get_invoice(db: DbClient, invoice_id: str) -> Optional[Document]:
    return db.get(INVOICES, invoice_id)


def create_invoice(db: DbClient, payload: InvoiceCreate) -> str:
    doc = payload.model_dump(mode="json", exclude_none=True)
    doc.update(_totals(doc["line_items"], payload.tax_rate))
    invoice_id = db.insert(INVOICES, _new_invoice(doc))
    logger.info("Created invoice %s for %s", invoice_id, payload.customer_name)
    return invoice_id


def _line_item_description(calculation: dict) -> str:
    measurements = calculation["measurements"]
    species = measurements.get("species") or "Unknown species"
    return (
        f"Tree removal - {species} "
        f"({measurements['height']:g}ft H x {measurements['dbh']:g}in DBH)"
    )


def create_invoice_from_work_order(db: DbClient, work_order_id: str) -> str:
    """
    Bill a work order.

    Each attached tree score becomes one line item. A work order without tree
    scores is billed as a single line at its actual cost, or its estimate when
    no actual cost was recorded. Tax is charged at the default rate and the
    invoice is due in 30 days.
    """
    work_order = db.get(WORK_ORDERS, work_order_id)
    if not work_order:
        raise RecordNotFoundError(WORK_ORDERS, work_order_id)

    line_items = [
        {
            "description": _line_item_description(calc),
            "quantity": 1,
            "unit_price": calc["results"]["total_cost"],
            "total_price": calc["results"]["total_cost"],
            "tree_score_id": calc["tree_id"],
        }
        for calc in work_order.get("tree_score_calculations") or []
    ]
    if not line_items:
        price = work_order.get("actual_cost") or work_order.get("estimated_cost") or 0
        line_items.append(
            {
                "description": work_order["job_description"],
                "quantity": 1,
                "unit_price": price,
                "total_price": price,
            }
        )

    doc = {
        "work_order_id": work_order_id,
        "customer_name": work_order["customer_name"],
        "customer_email": work_order.get("customer_email"),
        "customer_phone": work_order.get("customer_phone"),
        "billing_address": work_order["property_address"],
        "service_date": work_order.get("scheduled_date"),
        "line_items": line_items,
        "tax_rate": DEFAULT_TAX_RATE,
        "terms": DEFAULT_TERMS,
    }
    doc = {k: v for k, v in doc.items() if v is not None}
    doc.update(_totals(line_items, DEFAULT_TAX_RATE))
    invoice_id = db.insert(INVOICES, _new_invoice(doc))
    logger.info("Invoiced work order %s as %s", work_order_id, invoice_id)
    return invoice_id


def update_invoice(db: DbClient, invoice_id: str, payload: InvoiceUpdate) -> Document:
    updates = payload.model_dump(mode="json", exclude_none=True)
    if payload.amount_paid is not None:
        invoice = db.get(INVOICES, invoice_id)
        if not invoice:
            raise RecordNotFoundError(INVOICES, invoice_id)
        balance, status = _payment_state(invoice["total_amount"], payload.amount_paid)
        updates["balance"] = balance
        if status:
            updates["payment_status"] = status
    updates["last_updated"] = now_ms()
    return db.patch(INVOICES, invoice_id, updates)


def record_payment(
    db: DbClient, invoice_id: str, payload: RecordPaymentRequest
) -> Document:
    invoice = db.get(INVOICES, invoice_id)
    if not invoice:
        raise RecordNotFoundError(INVOICES, invoice_id)

    amount_paid = _money((invoice.get("amount_paid") or 0) + payload.amount)
    balance, status = _payment_state(invoice["total_amount"], amount_paid)
    now = now_ms()
    logger.info("Recorded payment of %.2f on invoice %s", payload.amount, invoice_id)
    return db.patch(
        INVOICES,
        invoice_id,
        {
            "amount_paid": amount_paid,
            "balance": balance,
            "payment_status": status,
            "payment_method": payload.payment_method,
            "payment_date": payload.payment_date or now,
            "last_updated": now,
        },
    )


def remove_invoice(db: DbClient, invoice_id: str) -> Document:
    return db.patch(INVOICES, invoice_id, {"is_active": False, "last_updated": now_ms()})

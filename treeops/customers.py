"""
Customer handlers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from treeops.db import DbClient, Document, RecordNotFoundError
from treeops.schemas import (
    CustomerCreate,
    CustomerStatus,
    CustomerUpdate,
    PredictiveIntelligenceUpdate,
    ServiceHistoryEntry,
    TreeInventoryItem,
)

logger = logging.getLogger(__name__)

CUSTOMERS = "customers"


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _not_removed(doc: Document) -> bool:
    return doc.get("is_active") is not False


def _matches_term(doc: Document, term: str) -> bool:
    lowered = term.lower()
    for field_name in ("customer_name", "email", "property_address"):
        value = doc.get(field_name)
        if value and lowered in value.lower():
            return True
    phone = doc.get("phone")
    return bool(phone and term in phone)


def list_customers(db: DbClient) -> list[Document]:
    return db.query(CUSTOMERS, where=_not_removed)


def search_customers(
    db: DbClient,
    term: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
) -> list[Document]:
    def matches(doc: Document) -> bool:
        if not _not_removed(doc):
            return False
        if term and not _matches_term(doc, term):
            return False
        if status and doc.get("status") != status:
            return False
        if priority and doc.get("priority") != priority:
            return False
        return True

    return db.query(CUSTOMERS, where=matches)


def get_customer(db: DbClient, customer_id: str) -> Optional[Document]:
    return db.get(CUSTOMERS, customer_id)


def create_customer(db: DbClient, payload: CustomerCreate) -> str:
    now = _iso_now()
    doc = payload.model_dump(mode="json", exclude_none=True)
    doc.update(
        {
            "created_at": now,
            "updated_at": now,
            "is_active": True,
            "status": (payload.status or CustomerStatus.ACTIVE).value,
        }
    )
    customer_id = db.insert(CUSTOMERS, doc)
    logger.info("Created customer %s", customer_id)
    return customer_id


def update_customer(
    db: DbClient, customer_id: str, payload: CustomerUpdate
) -> Document:
    updates = payload.model_dump(mode="json", exclude_none=True)
    updates["updated_at"] = _iso_now()
    return db.patch(CUSTOMERS, customer_id, updates)


def _require(db: DbClient, customer_id: str) -> Document:
    customer = db.get(CUSTOMERS, customer_id)
    if not customer:
        raise RecordNotFoundError(CUSTOMERS, customer_id)
    return customer


def add_tree_to_inventory(
    db: DbClient, customer_id: str, tree: TreeInventoryItem
) -> Document:
    customer = _require(db, customer_id)
    inventory = list(customer.get("tree_inventory") or [])
    inventory.append(tree.model_dump(mode="json", exclude_none=True))
    return db.patch(
        CUSTOMERS,
        customer_id,
        {"tree_inventory": inventory, "updated_at": _iso_now()},
    )


def add_service_history(
    db: DbClient, customer_id: str, service: ServiceHistoryEntry
) -> Document:
    customer = _require(db, customer_id)
    history = list(customer.get("service_history") or [])
    history.append(service.model_dump(mode="json", exclude_none=True))
    return db.patch(
        CUSTOMERS,
        customer_id,
        {"service_history": history, "updated_at": _iso_now()},
    )


def update_predictive_intelligence(
    db: DbClient, customer_id: str, predictions: PredictiveIntelligenceUpdate
) -> Document:
    customer = _require(db, customer_id)
    merged = dict(customer.get("predictive_intelligence") or {})
    merged.update(predictions.model_dump(mode="json", exclude_none=True))
    return db.patch(
        CUSTOMERS,
        customer_id,
        {"predictive_intelligence": merged, "updated_at": _iso_now()},
    )


def remove_customer(db: DbClient, customer_id: str) -> Document:
    return db.patch(
        CUSTOMERS, customer_id, {"is_active": False, "updated_at": _iso_now()}
    )

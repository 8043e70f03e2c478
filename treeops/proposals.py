"""
Proposal handlers: the quote workflow from draft to an accepted work order.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from treeops.db import DbClient, Document, RecordNotFoundError, now_ms
from treeops.schemas import (
    ProposalCreate,
    ProposalStatus,
    ProposalUpdate,
    WorkOrderStatus,
)
from treeops.work_orders import DEFAULT_PRIORITY, WORK_ORDERS, new_work_order_number

logger = logging.getLogger(__name__)

PROPOSALS = "proposals"
DAY_MS = 24 * 60 * 60 * 1000
DEFAULT_EXPIRY_WINDOW_DAYS = 7
DEFAULT_SERVICE_TYPE = "tree_service"
AWAITING_RESPONSE = (ProposalStatus.SENT.value, ProposalStatus.VIEWED.value)

# Workflow fields that a duplicated proposal starts without.
RESPONSE_FIELDS = (
    "sent_at",
    "viewed_at",
    "responded_at",
    "work_order_id",
    "conversion_date",
    "last_updated",
)


def new_proposal_number() -> str:
    year = datetime.now(timezone.utc).year
    return f"PROP-{year}-{str(now_ms())[-6:]}"


def _active(doc: Document) -> bool:
    return doc.get("is_active") is True


def _require(db: DbClient, proposal_id: str) -> Document:
    proposal = db.get(PROPOSALS, proposal_id)
    if not proposal:
        raise RecordNotFoundError(PROPOSALS, proposal_id)
    return proposal


def list_proposals(db: DbClient, status: Optional[str] = None) -> list[Document]:
    if status and status != "all":
        return db.query(PROPOSALS, index=("status", status), where=_active)
    return db.query(PROPOSALS, where=_active)


def list_proposals_by_customer(db: DbClient, customer_name: str) -> list[Document]:
    return db.query(PROPOSALS, index=("customer_name", customer_name), where=_active)


def list_expiring_proposals(
    db: DbClient, days_ahead: int = DEFAULT_EXPIRY_WINDOW_DAYS
) -> list[Document]:
    """Open proposals whose validity ends within ``days_ahead`` days, soonest first."""
    cutoff = now_ms() + days_ahead * DAY_MS

    def expiring(doc: Document) -> bool:
        return (
            _active(doc)
            and doc.get("status") in AWAITING_RESPONSE
            and doc["valid_until"] <= cutoff
        )

    docs = db.query(PROPOSALS, where=expiring, order="asc")
    return sorted(docs, key=lambda d: d["valid_until"])


def get_proposal(db: DbClient, proposal_id: str) -> Optional[Document]:
    return db.get(PROPOSALS, proposal_id)


def create_proposal(db: DbClient, payload: ProposalCreate) -> str:
    doc = payload.model_dump(mode="json", exclude_none=True)
    doc.update(
        {
            "proposal_number": new_proposal_number(),
            "status": ProposalStatus.DRAFT.value,
            "version": 1,
            "created_at": now_ms(),
            "is_active": True,
        }
    )
    proposal_id = db.insert(PROPOSALS, doc)
    logger.info("Created proposal %s (%s)", proposal_id, doc["proposal_number"])
    return proposal_id


def send_proposal(db: DbClient, proposal_id: str) -> Document:
    now = now_ms()
    logger.info("Sending proposal %s", proposal_id)
    return db.patch(
        PROPOSALS,
        proposal_id,
        {"status": ProposalStatus.SENT.value, "sent_at": now, "last_updated": now},
    )


def mark_proposal_viewed(db: DbClient, proposal_id: str) -> Document:
    now = now_ms()
    return db.patch(
        PROPOSALS,
        proposal_id,
        {"status": ProposalStatus.VIEWED.value, "viewed_at": now, "last_updated": now},
    )


def accept_proposal(db: DbClient, proposal_id: str) -> str:
    """
    Approve a proposal and open a pending work order for it.

    Returns the work order id. Accepting an already converted proposal returns
    the work order it was converted into.
    """
    proposal = _require(db, proposal_id)
    if proposal.get("work_order_id"):
        return proposal["work_order_id"]

    line_items = proposal.get("line_items") or []
    service_type = DEFAULT_SERVICE_TYPE
    if line_items and line_items[0].get("service_category"):
        service_type = line_items[0]["service_category"]
    now = now_ms()
    work_order = {
        "lead_id": proposal.get("lead_id"),
        "work_order_number": new_work_order_number(),
        "customer_name": proposal["customer_name"],
        "customer_phone": proposal.get("customer_phone"),
        "customer_email": proposal.get("customer_email"),
        "property_address": proposal["property_address"],
        "service_type": service_type,
        "job_description": "; ".join(item["description"] for item in line_items),
        "estimated_cost": proposal["total_amount"],
        "assigned_crew": [],
        "required_equipment": [],
        "status": WorkOrderStatus.PENDING.value,
        "priority": DEFAULT_PRIORITY,
        "created_at": now,
        "is_active": True,
    }
    work_order_id = db.insert(
        WORK_ORDERS, {k: v for k, v in work_order.items() if v is not None}
    )

    db.patch(
        PROPOSALS,
        proposal_id,
        {
            "status": ProposalStatus.APPROVED.value,
            "responded_at": now,
            "work_order_id": work_order_id,
            "conversion_date": now,
            "last_updated": now,
        },
    )
    logger.info("Accepted proposal %s as work order %s", proposal_id, work_order_id)
    return work_order_id


def reject_proposal(
    db: DbClient, proposal_id: str, reason: Optional[str] = None
) -> Document:
    proposal = _require(db, proposal_id)
    now = now_ms()
    updates = {
        "status": ProposalStatus.REJECTED.value,
        "responded_at": now,
        "last_updated": now,
    }
    if reason:
        notes = proposal.get("notes") or ""
        updates["notes"] = f"{notes}\n\nRejection reason: {reason}".strip()
    logger.info("Rejected proposal %s", proposal_id)
    return db.patch(PROPOSALS, proposal_id, updates)


def update_proposal(db: DbClient, proposal_id: str, payload: ProposalUpdate) -> Document:
    updates = payload.model_dump(mode="json", exclude_none=True)
    updates["last_updated"] = now_ms()
    return db.patch(PROPOSALS, proposal_id, updates)


def duplicate_proposal(db: DbClient, proposal_id: str) -> str:
    """Copy a proposal into a fresh draft that points back at the original."""
    original = _require(db, proposal_id)
    draft = {
        k: v
        for k, v in original.items()
        if k not in RESPONSE_FIELDS and k not in ("id", "creation_time")
    }
    draft.update(
        {
            "proposal_number": new_proposal_number(),
            "status": ProposalStatus.DRAFT.value,
            "parent_proposal_id": proposal_id,
            "revision_reason": "Duplicated proposal",
            "version": 1,
            "created_at": now_ms(),
            "is_active": True,
        }
    )
    new_id = db.insert(PROPOSALS, draft)
    logger.info("Duplicated proposal %s as %s", proposal_id, new_id)
    return new_id

"""
Lead handlers, including conversion of a lead into a work order.
"""

from __future__ import annotations

import logging
from typing import Optional

from treeops.db import DbClient, Document, RecordNotFoundError, now_ms
from treeops.schemas import (
    ConvertLeadRequest,
    LeadCreate,
    LeadStatus,
    LeadUpdate,
    WorkOrderStatus,
)
from treeops.work_orders import WORK_ORDERS, new_work_order_number

logger = logging.getLogger(__name__)

LEADS = "leads"


def list_leads(db: DbClient) -> list[Document]:
    return db.query(LEADS)


def list_leads_by_status(db: DbClient, status: str) -> list[Document]:
    return db.query(LEADS, index=("status", status))


def get_lead(db: DbClient, lead_id: str) -> Optional[Document]:
    return db.get(LEADS, lead_id)


def create_lead(db: DbClient, payload: LeadCreate) -> str:
    now = now_ms()
    doc = payload.model_dump(mode="json", exclude_none=True)
    doc.update(
        {
            "status": (payload.status or LeadStatus.NEW).value,
            "created_at": now,
            "last_updated": now,
            "is_active": True,
        }
    )
    lead_id = db.insert(LEADS, doc)
    logger.info("Created lead %s from %s", lead_id, payload.lead_source)
    return lead_id


def update_lead(db: DbClient, lead_id: str, payload: LeadUpdate) -> Document:
    updates = payload.model_dump(mode="json", exclude_none=True)
    updates["last_updated"] = now_ms()
    return db.patch(LEADS, lead_id, updates)


def remove_lead(db: DbClient, lead_id: str) -> Document:
    return db.patch(LEADS, lead_id, {"is_active": False, "last_updated": now_ms()})


def convert_lead_to_work_order(
    db: DbClient, lead_id: str, payload: ConvertLeadRequest
) -> str:
    """
    Create a pending work order from a lead and mark the lead as won.

    Returns the new work order id. Raises RecordNotFoundError if the lead
    does not exist.
    """
    lead = db.get(LEADS, lead_id)
    if not lead:
        raise RecordNotFoundError(LEADS, lead_id)

    job_description = lead.get("notes") or (
        f"{lead['service_type']} service for {lead['estimated_tree_count']} trees"
    )
    priority = "emergency" if lead.get("urgency_level") == "emergency" else "medium"

    work_order = {
        "lead_id": lead_id,
        "work_order_number": new_work_order_number(),
        "customer_name": lead["customer_name"],
        "customer_phone": lead.get("phone"),
        "customer_email": lead.get("email"),
        "property_address": lead["property_address"],
        "service_type": lead["service_type"],
        "job_description": job_description,
        "scheduled_date": payload.scheduled_date,
        "estimated_duration": payload.estimated_duration,
        "assigned_crew": list(payload.assigned_crew),
        "required_equipment": list(payload.required_equipment),
        # Priced later through tree score calculations.
        "estimated_cost": 0,
        "status": WorkOrderStatus.PENDING.value,
        "priority": priority,
        "created_at": now_ms(),
        "is_active": True,
    }
    work_order_id = db.insert(
        WORK_ORDERS, {k: v for k, v in work_order.items() if v is not None}
    )

    db.patch(
        LEADS,
        lead_id,
        {"status": LeadStatus.WON.value, "last_updated": now_ms()},
    )
    logger.info("Converted lead %s into work order %s", lead_id, work_order_id)
    return work_order_id

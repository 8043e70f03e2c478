"""
Work order handlers.
"""

from __future__ import annotations

import logging
from typing import Optional

from treeops.db import DbClient, Document, RecordNotFoundError, now_ms
from treeops.schemas import (
    CompleteWorkRequest,
    TreeScoreCalculation,
    WorkOrderCreate,
    WorkOrderStatus,
    WorkOrderUpdate,
)

logger = logging.getLogger(__name__)

WORK_ORDERS = "work_orders"
DEFAULT_PRIORITY = "medium"


def new_work_order_number() -> str:
    return f"WO-{now_ms()}"


def list_work_orders(db: DbClient) -> list[Document]:
    return db.query(WORK_ORDERS)


def list_work_orders_by_status(db: DbClient, status: str) -> list[Document]:
    return db.query(WORK_ORDERS, index=("status", status))


def list_work_orders_by_crew_lead(db: DbClient, crew_lead_id: str) -> list[Document]:
    return db.query(WORK_ORDERS, index=("crew_lead_id", crew_lead_id))


def list_work_orders_by_date_range(
    db: DbClient, start_date: int, end_date: int
) -> list[Document]:
    def in_range(doc: Document) -> bool:
        scheduled = doc.get("scheduled_date")
        return scheduled is not None and start_date <= scheduled <= end_date

    docs = db.query(WORK_ORDERS, where=in_range, order="asc")
    return sorted(docs, key=lambda d: d["scheduled_date"])


def get_work_order(db: DbClient, work_order_id: str) -> Optional[Document]:
    return db.get(WORK_ORDERS, work_order_id)


def create_work_order(db: DbClient, payload: WorkOrderCreate) -> str:
    doc = payload.model_dump(mode="json", exclude_none=True)
    doc.update(
        {
            "work_order_number": new_work_order_number(),
            "status": WorkOrderStatus.PENDING.value,
            "priority": payload.priority or DEFAULT_PRIORITY,
            "created_at": now_ms(),
            "is_active": True,
        }
    )
    work_order_id = db.insert(WORK_ORDERS, doc)
    logger.info("Created work order %s (%s)", work_order_id, doc["work_order_number"])
    return work_order_id


def update_work_order(
    db: DbClient, work_order_id: str, payload: WorkOrderUpdate
) -> Document:
    updates = payload.model_dump(mode="json", exclude_none=True)
    updates["last_updated"] = now_ms()
    return db.patch(WORK_ORDERS, work_order_id, updates)


def add_tree_score_calculation(
    db: DbClient, work_order_id: str, calculation: TreeScoreCalculation
) -> Document:
    """
    Attach a tree score to a work order.

    A previous calculation for the same tree is replaced, and the estimated
    cost becomes the sum of every attached calculation's total cost.
    """
    work_order = db.get(WORK_ORDERS, work_order_id)
    if not work_order:
        raise RecordNotFoundError(WORK_ORDERS, work_order_id)

    existing = work_order.get("tree_score_calculations") or []
    calculations = [c for c in existing if c.get("tree_id") != calculation.tree_id]
    calculations.append(calculation.model_dump(mode="json"))
    total = sum(c["results"]["total_cost"] for c in calculations)

    return db.patch(
        WORK_ORDERS,
        work_order_id,
        {
            "tree_score_calculations": calculations,
            "estimated_cost": total,
            "last_updated": now_ms(),
        },
    )


def start_work(db: DbClient, work_order_id: str) -> Document:
    now = now_ms()
    logger.info("Starting work order %s", work_order_id)
    return db.patch(
        WORK_ORDERS,
        work_order_id,
        {
            "status": WorkOrderStatus.IN_PROGRESS.value,
            "actual_start_time": now,
            "last_updated": now,
        },
    )


def complete_work(
    db: DbClient, work_order_id: str, payload: CompleteWorkRequest
) -> Document:
    now = now_ms()
    updates = payload.model_dump(mode="json", exclude_none=True)
    updates.update(
        {
            "status": WorkOrderStatus.COMPLETED.value,
            "actual_end_time": now,
            "last_updated": now,
        }
    )
    logger.info("Completing work order %s", work_order_id)
    return db.patch(WORK_ORDERS, work_order_id, updates)


def remove_work_order(db: DbClient, work_order_id: str) -> Document:
    return db.patch(
        WORK_ORDERS, work_order_id, {"is_active": False, "last_updated": now_ms()}
    )

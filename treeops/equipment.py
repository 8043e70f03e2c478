"""
Equipment inventory handlers.

Equipment is soft-deleted through ``is_active`` and moves between
``available`` and ``in_use`` as it is assigned to and returned from work
orders.
"""

from __future__ import annotations

import logging
from typing import Optional

from treeops.db import DbClient, Document, now_ms
from treeops.schemas import EquipmentCreate, EquipmentStatus, EquipmentUpdate

logger = logging.getLogger(__name__)

EQUIPMENT = "equipment"


def _is_active(doc: Document) -> bool:
    return doc.get("is_active") is True


def list_equipment(db: DbClient) -> list[Document]:
    return db.query(EQUIPMENT)


def list_available_equipment(db: DbClient) -> list[Document]:
    return db.query(
        EQUIPMENT,
        index=("status", EquipmentStatus.AVAILABLE.value),
        where=_is_active,
    )


def list_equipment_by_category(db: DbClient, category: str) -> list[Document]:
    return db.query(EQUIPMENT, index=("category", category), where=_is_active)


def get_equipment(db: DbClient, equipment_id: str) -> Optional[Document]:
    return db.get(EQUIPMENT, equipment_id)


def create_equipment(db: DbClient, payload: EquipmentCreate) -> str:
    now = now_ms()
    doc = payload.model_dump(mode="json", exclude_none=True)
    doc.update(
        {
            "status": EquipmentStatus.AVAILABLE.value,
            "is_active": True,
            "created_at": now,
            "last_updated": now,
        }
    )
    equipment_id = db.insert(EQUIPMENT, doc)
    logger.info("Created equipment %s (%s)", equipment_id, payload.category)
    return equipment_id


def update_equipment(
    db: DbClient, equipment_id: str, payload: EquipmentUpdate
) -> Document:
    updates = payload.model_dump(mode="json", exclude_none=True)
    updates["last_updated"] = now_ms()
    return db.patch(EQUIPMENT, equipment_id, updates)


def assign_equipment_to_work_order(
    db: DbClient, equipment_id: str, work_order_id: str
) -> Document:
    logger.info("Assigning equipment %s to work order %s", equipment_id, work_order_id)
    return db.patch(
        EQUIPMENT,
        equipment_id,
        {
            "status": EquipmentStatus.IN_USE.value,
            "assigned_to_work_order_id": work_order_id,
            "last_updated": now_ms(),
        },
    )


def return_equipment_from_work_order(db: DbClient, equipment_id: str) -> Document:
    return db.patch(
        EQUIPMENT,
        equipment_id,
        {"status": EquipmentStatus.AVAILABLE.value, "last_updated": now_ms()},
        unset=("assigned_to_work_order_id",),
    )


def remove_equipment(db: DbClient, equipment_id: str) -> Document:
    return db.patch(
        EQUIPMENT, equipment_id, {"is_active": False, "last_updated": now_ms()}
    )

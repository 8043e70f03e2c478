"""
Employee roster handlers.
"""

from __future__ import annotations

import logging
from typing import Optional

from treeops.db import DbClient, Document, now_ms
from treeops.schemas import EmployeeCreate, EmployeeUpdate

logger = logging.getLogger(__name__)

EMPLOYEES = "employees"


def _is_active(doc: Document) -> bool:
    return doc.get("is_active") is True


def list_employees(db: DbClient) -> list[Document]:
    return db.query(EMPLOYEES)


def list_active_employees(db: DbClient) -> list[Document]:
    return db.query(EMPLOYEES, where=_is_active)


def list_employees_by_position(db: DbClient, position: str) -> list[Document]:
    return db.query(EMPLOYEES, index=("position", position), where=_is_active)


def get_employee(db: DbClient, employee_id: str) -> Optional[Document]:
    return db.get(EMPLOYEES, employee_id)


def create_employee(db: DbClient, payload: EmployeeCreate) -> str:
    now = now_ms()
    doc = payload.model_dump(mode="json", exclude_none=True)
    doc.update({"is_active": True, "created_at": now, "last_updated": now})
    employee_id = db.insert(EMPLOYEES, doc)
    logger.info("Created employee %s (%s)", employee_id, payload.position)
    return employee_id


def update_employee(db: DbClient, employee_id: str, payload: EmployeeUpdate) -> Document:
    updates = payload.model_dump(mode="json", exclude_none=True)
    updates["last_updated"] = now_ms()
    return db.patch(EMPLOYEES, employee_id, updates)


def deactivate_employee(db: DbClient, employee_id: str) -> Document:
    logger.info("Deactivating employee %s", employee_id)
    return db.patch(
        EMPLOYEES, employee_id, {"is_active": False, "last_updated": now_ms()}
    )

"""
HTTP routes for business records, billing, tree scoring and job photos.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from treeops import (
    customers,
    employees,
    equipment,
    invoices,
    leads,
    photos,
    proposals,
    tree_score,
    work_orders,
)
from treeops.db import DbClient, Document
from treeops.dependencies import get_db_client, get_storage_client
from treeops.schemas import (
    AssignEquipmentRequest,
    CompleteWorkRequest,
    ConvertLeadRequest,
    CustomerCreate,
    CustomerRecord,
    CustomerUpdate,
    EmployeeCreate,
    EmployeeRecord,
    EmployeeUpdate,
    EquipmentCreate,
    EquipmentRecord,
    EquipmentUpdate,
    IdResponse,
    InvoiceCreate,
    InvoiceRecord,
    InvoiceUpdate,
    LeadCreate,
    LeadRecord,
    LeadUpdate,
    PhotoRecord,
    PhotoUpdate,
    PhotoUploadResponse,
    PredictiveIntelligenceUpdate,
    ProposalCreate,
    ProposalRecord,
    ProposalUpdate,
    QuickEstimateResponse,
    RecordPaymentRequest,
    RejectProposalRequest,
    ServiceHistoryEntry,
    TreeInventoryItem,
    TreeScoreCalculation,
    TreeScoreRequest,
    TreeScoreResponse,
    WorkOrderCreate,
    WorkOrderRecord,
    WorkOrderUpdate,
)
from treeops.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()


def _found(doc: Optional[Document], label: str) -> Document:
    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return doc


# Employees


@router.get("/employees", response_model=list[EmployeeRecord])
def list_employees(db: DbClient = Depends(get_db_client)):
    return employees.list_employees(db)


@router.get("/employees/active", response_model=list[EmployeeRecord])
def list_active_employees(db: DbClient = Depends(get_db_client)):
    return employees.list_active_employees(db)


@router.get("/employees/position/{position}", response_model=list[EmployeeRecord])
def list_employees_by_position(position: str, db: DbClient = Depends(get_db_client)):
    return employees.list_employees_by_position(db, position)


@router.get("/employees/{employee_id}", response_model=EmployeeRecord)
def get_employee(employee_id: str, db: DbClient = Depends(get_db_client)):
    return _found(employees.get_employee(db, employee_id), "Employee")


@router.post("/employees", response_model=IdResponse, status_code=201)
def create_employee(payload: EmployeeCreate, db: DbClient = Depends(get_db_client)):
    return IdResponse(id=employees.create_employee(db, payload))


@router.patch("/employees/{employee_id}", response_model=EmployeeRecord)
def update_employee(
    employee_id: str, payload: EmployeeUpdate, db: DbClient = Depends(get_db_client)
):
    return employees.update_employee(db, employee_id, payload)


@router.post("/employees/{employee_id}/deactivate", response_model=EmployeeRecord)
def deactivate_employee(employee_id: str, db: DbClient = Depends(get_db_client)):
    return employees.deactivate_employee(db, employee_id)


# Equipment


@router.get("/equipment", response_model=list[EquipmentRecord])
def list_equipment(db: DbClient = Depends(get_db_client)):
    return equipment.list_equipment(db)


@router.get("/equipment/available", response_model=list[EquipmentRecord])
def list_available_equipment(db: DbClient = Depends(get_db_client)):
    return equipment.list_available_equipment(db)


@router.get("/equipment/category/{category}", response_model=list[EquipmentRecord])
def list_equipment_by_category(category: str, db: DbClient = Depends(get_db_client)):
    return equipment.list_equipment_by_category(db, category)


@router.get("/equipment/{equipment_id}", response_model=EquipmentRecord)
def get_equipment(equipment_id: str, db: DbClient = Depends(get_db_client)):
    return _found(equipment.get_equipment(db, equipment_id), "Equipment")


@router.post("/equipment", response_model=IdResponse, status_code=201)
def create_equipment(payload: EquipmentCreate, db: DbClient = Depends(get_db_client)):
    return IdResponse(id=equipment.create_equipment(db, payload))


@router.post("/equipment/{equipment_id}/assign", response_model=EquipmentRecord)
def assign_equipment(
    equipment_id: str,
    payload: AssignEquipmentRequest,
    db: DbClient = Depends(get_db_client),
):
    return equipment.assign_equipment_to_work_order(
        db, equipment_id, payload.work_order_id
    )


@router.post("/equipment/{equipment_id}/return", response_model=EquipmentRecord)
def return_equipment(equipment_id: str, db: DbClient = Depends(get_db_client)):
    return equipment.return_equipment_from_work_order(db, equipment_id)


@router.patch("/equipment/{equipment_id}", response_model=EquipmentRecord)
def update_equipment(
    equipment_id: str, payload: EquipmentUpdate, db: DbClient = Depends(get_db_client)
):
    return equipment.update_equipment(db, equipment_id, payload)


@router.delete("/equipment/{equipment_id}", response_model=EquipmentRecord)
def remove_equipment(equipment_id: str, db: DbClient = Depends(get_db_client)):
    return equipment.remove_equipment(db, equipment_id)


# Leads


@router.get("/leads", response_model=list[LeadRecord])
def list_leads(
    status: Optional[str] = Query(None), db: DbClient = Depends(get_db_client)
):
    if status:
        return leads.list_leads_by_status(db, status)
    return leads.list_leads(db)


@router.get("/leads/{lead_id}", response_model=LeadRecord)
def get_lead(lead_id: str, db: DbClient = Depends(get_db_client)):
    return _found(leads.get_lead(db, lead_id), "Lead")


@router.post("/leads", response_model=IdResponse, status_code=201)
def create_lead(payload: LeadCreate, db: DbClient = Depends(get_db_client)):
    return IdResponse(id=leads.create_lead(db, payload))


@router.post("/leads/{lead_id}/convert", response_model=IdResponse, status_code=201)
def convert_lead(
    lead_id: str, payload: ConvertLeadRequest, db: DbClient = Depends(get_db_client)
):
    """
    Turn a lead into a pending work order; the response carries the work order id.
    """
    return IdResponse(id=leads.convert_lead_to_work_order(db, lead_id, payload))


@router.patch("/leads/{lead_id}", response_model=LeadRecord)
def update_lead(lead_id: str, payload: LeadUpdate, db: DbClient = Depends(get_db_client)):
    return leads.update_lead(db, lead_id, payload)


@router.delete("/leads/{lead_id}", response_model=LeadRecord)
def remove_lead(lead_id: str, db: DbClient = Depends(get_db_client)):
    return leads.remove_lead(db, lead_id)


# Work orders


@router.get("/work-orders", response_model=list[WorkOrderRecord])
def list_work_orders(
    status: Optional[str] = Query(None),
    crew_lead_id: Optional[str] = Query(None),
    start_date: Optional[int] = Query(None),
    end_date: Optional[int] = Query(None),
    db: DbClient = Depends(get_db_client),
):
    """
    One filter applies per request: date range, then status, then crew lead.
    """
    if (start_date is None) != (end_date is None):
        raise HTTPException(
            status_code=400, detail="start_date and end_date must be given together"
        )
    if start_date is not None:
        return work_orders.list_work_orders_by_date_range(db, start_date, end_date)
    if status:
        return work_orders.list_work_orders_by_status(db, status)
    if crew_lead_id:
        return work_orders.list_work_orders_by_crew_lead(db, crew_lead_id)
    return work_orders.list_work_orders(db)


@router.get("/work-orders/{work_order_id}", response_model=WorkOrderRecord)
def get_work_order(work_order_id: str, db: DbClient = Depends(get_db_client)):
    return _found(work_orders.get_work_order(db, work_order_id), "Work order")


@router.post("/work-orders", response_model=IdResponse, status_code=201)
def create_work_order(payload: WorkOrderCreate, db: DbClient = Depends(get_db_client)):
    return IdResponse(id=work_orders.create_work_order(db, payload))


@router.post("/work-orders/{work_order_id}/tree-scores", response_model=WorkOrderRecord)
def add_tree_score(
    work_order_id: str,
    payload: TreeScoreCalculation,
    db: DbClient = Depends(get_db_client),
):
    return work_orders.add_tree_score_calculation(db, work_order_id, payload)


@router.post("/work-orders/{work_order_id}/start", response_model=WorkOrderRecord)
def start_work(work_order_id: str, db: DbClient = Depends(get_db_client)):
    return work_orders.start_work(db, work_order_id)


@router.post("/work-orders/{work_order_id}/complete", response_model=WorkOrderRecord)
def complete_work(
    work_order_id: str,
    payload: CompleteWorkRequest,
    db: DbClient = Depends(get_db_client),
):
    return work_orders.complete_work(db, work_order_id, payload)


@router.patch("/work-orders/{work_order_id}", response_model=WorkOrderRecord)
def update_work_order(
    work_order_id: str, payload: WorkOrderUpdate, db: DbClient = Depends(get_db_client)
):
    return work_orders.update_work_order(db, work_order_id, payload)


@router.delete("/work-orders/{work_order_id}", response_model=WorkOrderRecord)
def remove_work_order(work_order_id: str, db: DbClient = Depends(get_db_client)):
    return work_orders.remove_work_order(db, work_order_id)


# Customers


@router.get("/customers", response_model=list[CustomerRecord])
def list_customers(db: DbClient = Depends(get_db_client)):
    return customers.list_customers(db)


@router.get("/customers/search", response_model=list[CustomerRecord])
def search_customers(
    q: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    db: DbClient = Depends(get_db_client),
):
    return customers.search_customers(db, q, status, priority)


@router.get("/customers/{customer_id}", response_model=CustomerRecord)
def get_customer(customer_id: str, db: DbClient = Depends(get_db_client)):
    return _found(customers.get_customer(db, customer_id), "Customer")


@router.post("/customers", response_model=IdResponse, status_code=201)
def create_customer(payload: CustomerCreate, db: DbClient = Depends(get_db_client)):
    return IdResponse(id=customers.create_customer(db, payload))


@router.post("/customers/{customer_id}/trees", response_model=CustomerRecord)
def add_tree(
    customer_id: str, payload: TreeInventoryItem, db: DbClient = Depends(get_db_client)
):
    return customers.add_tree_to_inventory(db, customer_id, payload)


@router.post("/customers/{customer_id}/service-history", response_model=CustomerRecord)
def add_service_history(
    customer_id: str,
    payload: ServiceHistoryEntry,
    db: DbClient = Depends(get_db_client),
):
    return customers.add_service_history(db, customer_id, payload)


@router.patch("/customers/{customer_id}", response_model=CustomerRecord)
def update_customer(
    customer_id: str, payload: CustomerUpdate, db: DbClient = Depends(get_db_client)
):
    return customers.update_customer(db, customer_id, payload)


@router.patch("/customers/{customer_id}/predictions", response_model=CustomerRecord)
def update_predictions(
    customer_id: str,
    payload: PredictiveIntelligenceUpdate,
    db: DbClient = Depends(get_db_client),
):
    return customers.update_predictive_intelligence(db, customer_id, payload)


@router.delete("/customers/{customer_id}", response_model=CustomerRecord)
def remove_customer(customer_id: str, db: DbClient = Depends(get_db_client)):
    return customers.remove_customer(db, customer_id)


# Invoices


@router.get("/invoices", response_model=list[InvoiceRecord])
def list_invoices(
    payment_status: Optional[str] = Query(None),
    customer_name: Optional[str] = Query(None),
    db: DbClient = Depends(get_db_client),
):
    if payment_status:
        return invoices.list_invoices_by_status(db, payment_status)
    if customer_name:
        return invoices.list_invoices_by_customer(db, customer_name)
    return invoices.list_invoices(db)


@router.get("/invoices/overdue", response_model=list[InvoiceRecord])
def list_overdue_invoices(db: DbClient = Depends(get_db_client)):
    return invoices.list_overdue_invoices(db)


@router.get("/invoices/{invoice_id}", response_model=InvoiceRecord)
def get_invoice(invoice_id: str, db: DbClient = Depends(get_db_client)):
    return _found(invoices.get_invoice(db, invoice_id), "Invoice")


@router.post("/invoices", response_model=IdResponse, status_code=201)
def create_invoice(payload: InvoiceCreate, db: DbClient = Depends(get_db_client)):
    return IdResponse(id=invoices.create_invoice(db, payload))


@router.post(
    "/invoices/from-work-order/{work_order_id}", response_model=IdResponse, status_code=201
)
def create_invoice_from_work_order(
    work_order_id: str, db: DbClient = Depends(get_db_client)
):
    return IdResponse(id=invoices.create_invoice_from_work_order(db, work_order_id))


@router.post("/invoices/{invoice_id}/payments", response_model=InvoiceRecord)
def record_payment(
    invoice_id: str,
    payload: RecordPaymentRequest,
    db: DbClient = Depends(get_db_client),
):
    return invoices.record_payment(db, invoice_id, payload)


@router.patch("/invoices/{invoice_id}", response_model=InvoiceRecord)
def update_invoice(
    invoice_id: str, payload: InvoiceUpdate, db: DbClient = Depends(get_db_client)
):
    return invoices.update_invoice(db, invoice_id, payload)


@router.delete("/invoices/{invoice_id}", response_model=InvoiceRecord)
def remove_invoice(invoice_id: str, db: DbClient = Depends(get_db_client)):
    return invoices.remove_invoice(db, invoice_id)


# Proposals


@router.get("/proposals", response_model=list[ProposalRecord])
def list_proposals(
    status: Optional[str] = Query(None),
    customer_name: Optional[str] = Query(None),
    db: DbClient = Depends(get_db_client),
):
    if customer_name:
        return proposals.list_proposals_by_customer(db, customer_name)
    return proposals.list_proposals(db, status)


@router.get("/proposals/expiring", response_model=list[ProposalRecord])
def list_expiring_proposals(
    days_ahead: int = Query(proposals.DEFAULT_EXPIRY_WINDOW_DAYS, ge=0),
    db: DbClient = Depends(get_db_client),
):
    return proposals.list_expiring_proposals(db, days_ahead)


@router.get("/proposals/{proposal_id}", response_model=ProposalRecord)
def get_proposal(proposal_id: str, db: DbClient = Depends(get_db_client)):
    return _found(proposals.get_proposal(db, proposal_id), "Proposal")


@router.post("/proposals", response_model=IdResponse, status_code=201)
def create_proposal(payload: ProposalCreate, db: DbClient = Depends(get_db_client)):
    return IdResponse(id=proposals.create_proposal(db, payload))


@router.post("/proposals/{proposal_id}/send", response_model=ProposalRecord)
def send_proposal(proposal_id: str, db: DbClient = Depends(get_db_client)):
    return proposals.send_proposal(db, proposal_id)


@router.post("/proposals/{proposal_id}/viewed", response_model=ProposalRecord)
def mark_proposal_viewed(proposal_id: str, db: DbClient = Depends(get_db_client)):
    return proposals.mark_proposal_viewed(db, proposal_id)


@router.post("/proposals/{proposal_id}/accept", response_model=IdResponse, status_code=201)
def accept_proposal(proposal_id: str, db: DbClient = Depends(get_db_client)):
    """
    Approve a proposal; the response carries the id of its work order.
    """
    return IdResponse(id=proposals.accept_proposal(db, proposal_id))


@router.post("/proposals/{proposal_id}/reject", response_model=ProposalRecord)
def reject_proposal(
    proposal_id: str,
    payload: Optional[RejectProposalRequest] = None,
    db: DbClient = Depends(get_db_client),
):
    reason = payload.reason if payload else None
    return proposals.reject_proposal(db, proposal_id, reason)


@router.post("/proposals/{proposal_id}/duplicate", response_model=IdResponse, status_code=201)
def duplicate_proposal(proposal_id: str, db: DbClient = Depends(get_db_client)):
    return IdResponse(id=proposals.duplicate_proposal(db, proposal_id))


@router.patch("/proposals/{proposal_id}", response_model=ProposalRecord)
def update_proposal(
    proposal_id: str, payload: ProposalUpdate, db: DbClient = Depends(get_db_client)
):
    return proposals.update_proposal(db, proposal_id, payload)


# Tree scoring


@router.post("/tree-score/calculate", response_model=TreeScoreResponse)
def calculate_tree_score(payload: TreeScoreRequest):
    return tree_score.calculate_tree_score(
        payload.measurements, payload.hazard_factors, payload.cost_parameters
    )


@router.get("/tree-score/quick-estimate", response_model=QuickEstimateResponse)
def quick_estimate(
    height: float = Query(..., gt=0),
    canopy_radius: float = Query(..., gt=0),
    dbh: float = Query(..., gt=0),
):
    return tree_score.quick_estimate(height, canopy_radius, dbh)


# Photos


@router.post("/photos", response_model=PhotoUploadResponse, status_code=201)
async def upload_photo(
    file: UploadFile = File(...),
    entity_type: str = Form(...),
    entity_id: str = Form(...),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Image file required")
    data = await file.read()
    try:
        return photos.upload_photo(
            db,
            storage,
            data=data,
            filename=file.filename or "photo",
            content_type=content_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            category=category,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/photos", response_model=list[PhotoRecord])
def list_photos(
    limit: int = Query(photos.DEFAULT_LIST_LIMIT, ge=1, le=500),
    entity_type: Optional[str] = Query(None),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    return photos.list_photos(db, storage, limit=limit, entity_type=entity_type)


@router.get("/photos/{entity_type}/{entity_id}", response_model=list[PhotoRecord])
def list_photos_for_entity(
    entity_type: str,
    entity_id: str,
    category: Optional[str] = Query(None),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    return photos.list_photos_for_entity(db, storage, entity_type, entity_id, category)


@router.patch("/photos/{photo_id}", response_model=PhotoRecord)
def update_photo(
    photo_id: str, payload: PhotoUpdate, db: DbClient = Depends(get_db_client)
):
    return photos.update_photo(db, photo_id, payload)


@router.delete("/photos/{photo_id}", response_model=PhotoRecord)
def delete_photo(
    photo_id: str,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    return photos.delete_photo(db, storage, photo_id)

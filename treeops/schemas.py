"""
Pydantic schemas for the operations backend.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL_SENT = "proposal_sent"
    WON = "won"
    LOST = "lost"


class WorkOrderStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EquipmentStatus(str, Enum):
    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"


class CustomerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PROSPECTIVE = "prospective"
    BLACKLISTED = "blacklisted"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class ProposalStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class IdResponse(BaseModel):
    id: str


class RecordModel(BaseModel):
    """Stored documents may carry fields beyond the declared ones."""

    model_config = ConfigDict(extra="allow")

    id: str
    creation_time: int
    is_active: Optional[bool] = None


# Employees


class PerformanceMetrics(BaseModel):
    total_hours: float
    avg_efficiency: float
    safety_score: float
    quality_rating: float
    customer_satisfaction: float


class EmployeeCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    employee_id: Optional[str] = None
    position: str
    skill_level: str
    hire_date: Optional[str] = None
    employment_type: Optional[str] = None
    hourly_rate: float = Field(..., ge=0)
    overtime_rate: Optional[float] = None
    skill_premium: Optional[float] = None
    certifications: list[str] = Field(default_factory=list)
    specialties: Optional[list[str]] = None
    equipment_certified: Optional[list[str]] = None
    max_hours_per_week: Optional[float] = None


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    employee_id: Optional[str] = None
    position: Optional[str] = None
    skill_level: Optional[str] = None
    hire_date: Optional[str] = None
    employment_type: Optional[str] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    overtime_rate: Optional[float] = None
    skill_premium: Optional[float] = None
    certifications: Optional[list[str]] = None
    specialties: Optional[list[str]] = None
    equipment_certified: Optional[list[str]] = None
    max_hours_per_week: Optional[float] = None
    performance_metrics: Optional[PerformanceMetrics] = None


class EmployeeRecord(RecordModel, EmployeeCreate):
    performance_metrics: Optional[PerformanceMetrics] = None
    created_at: int
    last_updated: int


# Equipment


class EquipmentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    category: str
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    year: Optional[int] = None
    serial_number: Optional[str] = None
    purchase_price: Optional[float] = None
    current_value: Optional[float] = None
    hourly_rate: float = Field(..., ge=0)
    hourly_depreciation_rate: Optional[float] = None
    required_for_complexity: list[str] = Field(default_factory=list)
    max_operating_hours: Optional[float] = None
    current_hours: Optional[float] = None
    last_maintenance_date: Optional[str] = None
    next_maintenance_hours: Optional[float] = None
    maintenance_cost_per_hour: Optional[float] = None
    location: Optional[str] = None
    description: str
    operating_notes: Optional[str] = None


class EquipmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = None
    model: Optional[str] = None
    manufacturer: Optional[str] = None
    year: Optional[int] = None
    serial_number: Optional[str] = None
    purchase_price: Optional[float] = None
    current_value: Optional[float] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    hourly_depreciation_rate: Optional[float] = None
    required_for_complexity: Optional[list[str]] = None
    max_operating_hours: Optional[float] = None
    current_hours: Optional[float] = None
    last_maintenance_date: Optional[str] = None
    next_maintenance_hours: Optional[float] = None
    maintenance_cost_per_hour: Optional[float] = None
    status: Optional[EquipmentStatus] = None
    location: Optional[str] = None
    assigned_to_work_order_id: Optional[str] = None
    description: Optional[str] = None
    operating_notes: Optional[str] = None


class EquipmentRecord(RecordModel, EquipmentCreate):
    status: EquipmentStatus
    assigned_to_work_order_id: Optional[str] = None
    created_at: int
    last_updated: int


class AssignEquipmentRequest(BaseModel):
    work_order_id: str = Field(..., min_length=1)


# Leads


class LeadCreate(BaseModel):
    customer_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    property_address: str
    service_type: str
    urgency_level: str
    lead_source: str
    estimated_tree_count: int = Field(..., ge=0)
    estimated_project_value: str
    notes: Optional[str] = None
    status: Optional[LeadStatus] = None
    assigned_to: Optional[str] = None
    follow_up_date: Optional[int] = None


class LeadUpdate(BaseModel):
    customer_name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    property_address: Optional[str] = None
    service_type: Optional[str] = None
    urgency_level: Optional[str] = None
    lead_source: Optional[str] = None
    estimated_tree_count: Optional[int] = Field(default=None, ge=0)
    estimated_project_value: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[LeadStatus] = None
    qualification_score: Optional[float] = None
    assigned_to: Optional[str] = None
    follow_up_date: Optional[int] = None


class LeadRecord(RecordModel, LeadCreate):
    status: LeadStatus
    qualification_score: Optional[float] = None
    created_at: int
    last_updated: Optional[int] = None


class ConvertLeadRequest(BaseModel):
    scheduled_date: Optional[int] = None
    estimated_duration: Optional[float] = None
    assigned_crew: list[str] = Field(default_factory=list)
    required_equipment: list[str] = Field(default_factory=list)


# Work orders and tree scores


class TreeMeasurements(BaseModel):
    height: float = Field(..., ge=0)
    canopy_radius: float = Field(..., ge=0)
    dbh: float = Field(..., ge=0)
    species: Optional[str] = None


class HazardFactors(BaseModel):
    pool: bool = False
    fence: bool = False
    structures: bool = False
    utilities: bool = False
    permitting: bool = False
    steep_terrain: bool = False
    soft_soil: bool = False
    limited_access: bool = False
    nearby_vehicles: bool = False
    glass_windows: bool = False
    septic_tank: bool = False
    overhead_lines: bool = False
    underground_utilities: bool = False


class TreeScoreResults(BaseModel):
    base_tree_score: float
    hazard_impact: float
    final_tree_score: float
    total_cost: float = Field(..., ge=0)
    business_rules: list[str] = Field(default_factory=list)
    risk_flags: list[str] = Field(default_factory=list)


class TreeScoreCalculation(BaseModel):
    tree_id: str = Field(..., min_length=1)
    measurements: TreeMeasurements
    hazard_factors: HazardFactors
    results: TreeScoreResults


class WorkOrderCreate(BaseModel):
    lead_id: Optional[str] = None
    customer_name: str = Field(..., min_length=1)
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    property_address: str
    service_type: str
    job_description: str
    scheduled_date: Optional[int] = None
    estimated_duration: Optional[float] = None
    assigned_crew: list[str] = Field(default_factory=list)
    required_equipment: list[str] = Field(default_factory=list)
    crew_lead_id: Optional[str] = None
    estimated_cost: float = Field(..., ge=0)
    priority: Optional[str] = None


class WorkOrderUpdate(BaseModel):
    customer_name: Optional[str] = Field(default=None, min_length=1)
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    property_address: Optional[str] = None
    service_type: Optional[str] = None
    job_description: Optional[str] = None
    scheduled_date: Optional[int] = None
    estimated_duration: Optional[float] = None
    actual_start_time: Optional[int] = None
    actual_end_time: Optional[int] = None
    assigned_crew: Optional[list[str]] = None
    required_equipment: Optional[list[str]] = None
    crew_lead_id: Optional[str] = None
    estimated_cost: Optional[float] = Field(default=None, ge=0)
    actual_cost: Optional[float] = Field(default=None, ge=0)
    labor_hours: Optional[float] = Field(default=None, ge=0)
    material_costs: Optional[float] = Field(default=None, ge=0)
    equipment_costs: Optional[float] = Field(default=None, ge=0)
    status: Optional[WorkOrderStatus] = None
    priority: Optional[str] = None
    completion_notes: Optional[str] = None
    customer_signature: Optional[str] = None
    photos: Optional[list[str]] = None


class CompleteWorkRequest(BaseModel):
    completion_notes: Optional[str] = None
    customer_signature: Optional[str] = None
    photos: Optional[list[str]] = None
    actual_cost: Optional[float] = Field(default=None, ge=0)
    labor_hours: Optional[float] = Field(default=None, ge=0)
    material_costs: Optional[float] = Field(default=None, ge=0)
    equipment_costs: Optional[float] = Field(default=None, ge=0)


class WorkOrderRecord(RecordModel, WorkOrderCreate):
    work_order_number: str
    status: WorkOrderStatus
    priority: str
    actual_start_time: Optional[int] = None
    actual_end_time: Optional[int] = None
    tree_score_calculations: Optional[list[TreeScoreCalculation]] = None
    created_at: int
    last_updated: Optional[int] = None


class CostParameters(BaseModel):
    setup_cost: float = Field(default=200.0, ge=0)
    rate_per_point: float = Field(default=0.75, ge=0)
    profit_multiplier: float = Field(default=1.5, ge=0)


class TreeScoreRequest(BaseModel):
    measurements: TreeMeasurements
    hazard_factors: HazardFactors = Field(default_factory=HazardFactors)
    cost_parameters: Optional[CostParameters] = None


class TreeScoreBreakdown(BaseModel):
    setup_cost: float
    score_cost: float
    subtotal: float
    markup: float
    final_cost: float
    additional_fees: dict[str, float] = Field(default_factory=dict)


class TreeScoreResponse(TreeScoreResults):
    breakdown: TreeScoreBreakdown


class QuickEstimateResponse(BaseModel):
    base_score: float
    estimated_cost: float
    category: str


# Customers


class Coordinates(BaseModel):
    lat: float
    lng: float


class TreeInventoryItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    species: str
    health: Literal["poor", "fair", "good", "excellent"]
    age: Optional[str] = None
    dbh: Optional[float] = None
    height: Optional[float] = None
    tree_score: Optional[float] = None
    risk_factors: Optional[list[str]] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class ServiceHistoryEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    date: str
    services: list[str]
    crew: Optional[str] = None
    equipment: Optional[list[str]] = None
    cost: Optional[float] = None
    duration: Optional[float] = None
    satisfaction: Optional[float] = None
    notes: Optional[str] = None
    work_order_id: Optional[str] = None


class CustomerCreate(BaseModel):
    customer_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    property_address: str
    property_coordinates: Optional[Coordinates] = None
    property_intelligence: Optional[dict[str, Any]] = None
    tree_inventory: Optional[list[TreeInventoryItem]] = None
    financial_intelligence: Optional[dict[str, Any]] = None
    communication_intelligence: Optional[dict[str, Any]] = None
    service_history: Optional[list[ServiceHistoryEntry]] = None
    risk_assessment: Optional[dict[str, Any]] = None
    predictive_intelligence: Optional[dict[str, Any]] = None
    relationship_mapping: Optional[dict[str, Any]] = None
    ai_insights: Optional[dict[str, Any]] = None
    evolution_tracking: Optional[dict[str, Any]] = None
    status: Optional[CustomerStatus] = None
    tags: Optional[list[str]] = None
    priority: Optional[Literal["low", "medium", "high", "vip"]] = None
    created_by: Optional[str] = None
    assigned_to: Optional[str] = None


class CustomerUpdate(BaseModel):
    customer_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    property_address: Optional[str] = None
    property_coordinates: Optional[Coordinates] = None
    property_intelligence: Optional[dict[str, Any]] = None
    financial_intelligence: Optional[dict[str, Any]] = None
    communication_intelligence: Optional[dict[str, Any]] = None
    risk_assessment: Optional[dict[str, Any]] = None
    relationship_mapping: Optional[dict[str, Any]] = None
    ai_insights: Optional[dict[str, Any]] = None
    evolution_tracking: Optional[dict[str, Any]] = None
    status: Optional[CustomerStatus] = None
    tags: Optional[list[str]] = None
    priority: Optional[Literal["low", "medium", "high", "vip"]] = None
    assigned_to: Optional[str] = None


class CustomerRecord(RecordModel, CustomerCreate):
    status: CustomerStatus
    created_at: str
    updated_at: str


class PredictiveIntelligenceUpdate(BaseModel):
    next_service_predicted: Optional[dict[str, Any]] = None
    seasonal_cycle: Optional[dict[str, list[str]]] = None


# Invoices


class InvoiceLineItem(BaseModel):
    description: str
    quantity: float = Field(..., ge=0)
    unit_price: float = Field(..., ge=0)
    total_price: float = Field(..., ge=0)
    tree_score_id: Optional[str] = None


class InvoiceCreate(BaseModel):
    work_order_id: Optional[str] = None
    customer_name: str = Field(..., min_length=1)
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    billing_address: str
    service_date: Optional[int] = None
    line_items: list[InvoiceLineItem] = Field(default_factory=list)
    tax_rate: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    terms: Optional[str] = None


class InvoiceUpdate(BaseModel):
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    billing_address: Optional[str] = None
    due_date: Optional[int] = None
    service_date: Optional[int] = None
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = None
    payment_date: Optional[int] = None
    amount_paid: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    terms: Optional[str] = None


class RecordPaymentRequest(BaseModel):
    amount: float = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1)
    payment_date: Optional[int] = None


class InvoiceRecord(RecordModel, InvoiceCreate):
    invoice_number: str
    issue_date: int
    due_date: int
    subtotal: float
    tax_amount: float
    total_amount: float
    amount_paid: Optional[float] = None
    balance: Optional[float] = None
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    payment_date: Optional[int] = None
    created_at: int
    last_updated: Optional[int] = None


# Proposals


class ProposalTreeScoreData(BaseModel):
    height: float
    canopy_radius: float
    dbh: float
    base_score: float
    risk_multiplier: float
    final_score: float
    business_rules_applied: list[str] = Field(default_factory=list)


class AfissFactors(BaseModel):
    access_score: float
    fall_zone_score: float
    interference_score: float
    severity_score: float
    site_conditions_score: float
    composite_score: float


class ProposalLineItem(BaseModel):
    id: str
    description: str
    quantity: float = Field(..., ge=0)
    unit: str
    unit_price: float = Field(..., ge=0)
    total_price: float = Field(..., ge=0)
    tree_score_data: Optional[ProposalTreeScoreData] = None
    equipment_required: list[str] = Field(default_factory=list)
    labor_hours: float = Field(..., ge=0)
    complexity: Literal["low", "moderate", "high", "extreme"]
    labor_cost: Optional[float] = None
    equipment_cost: Optional[float] = None
    material_cost: Optional[float] = None
    overhead_cost: Optional[float] = None
    profit_margin: Optional[float] = None
    afiss_factors: Optional[AfissFactors] = None
    isa_arborist_required: bool = False
    special_certifications_required: list[str] = Field(default_factory=list)
    service_category: str
    urgency_level: Optional[str] = None
    seasonal_factors: Optional[list[str]] = None
    permits_required: Optional[list[str]] = None


class ProposalCreate(BaseModel):
    lead_id: Optional[str] = None
    customer_name: str = Field(..., min_length=1)
    customer_email: str
    customer_phone: Optional[str] = None
    property_address: str
    line_items: list[ProposalLineItem] = Field(default_factory=list)
    subtotal: float = Field(..., ge=0)
    tax_rate: float = Field(..., ge=0)
    tax_amount: float = Field(..., ge=0)
    total_amount: float = Field(..., ge=0)
    valid_until: int
    notes: Optional[str] = None


class ProposalUpdate(BaseModel):
    customer_name: Optional[str] = Field(default=None, min_length=1)
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    property_address: Optional[str] = None
    line_items: Optional[list[ProposalLineItem]] = None
    subtotal: Optional[float] = Field(default=None, ge=0)
    tax_rate: Optional[float] = Field(default=None, ge=0)
    tax_amount: Optional[float] = Field(default=None, ge=0)
    total_amount: Optional[float] = Field(default=None, ge=0)
    valid_until: Optional[int] = None
    notes: Optional[str] = None


class RejectProposalRequest(BaseModel):
    reason: Optional[str] = None


class ProposalRecord(RecordModel, ProposalCreate):
    proposal_number: str
    status: ProposalStatus
    version: int
    sent_at: Optional[int] = None
    viewed_at: Optional[int] = None
    responded_at: Optional[int] = None
    work_order_id: Optional[str] = None
    conversion_date: Optional[int] = None
    parent_proposal_id: Optional[str] = None
    revision_reason: Optional[str] = None
    created_at: int
    last_updated: Optional[int] = None


# Photos


class PhotoRecord(RecordModel):
    storage_path: str
    filename: str
    content_type: str
    entity_type: str
    entity_id: str
    description: Optional[str] = None
    category: Optional[str] = None
    uploaded_at: int
    url: Optional[str] = None


class PhotoUploadResponse(BaseModel):
    photo_id: str
    storage_path: str
    url: str


class PhotoUpdate(BaseModel):
    description: Optional[str] = None
    category: Optional[str] = None


# Maps


class GeocodeBatchRequest(BaseModel):
    addresses: list[str] = Field(default_factory=list)


class RouteWorkOrder(BaseModel):
    id: str
    address: Optional[str] = None
    estimated_duration: Optional[float] = None
    priority: Optional[str] = None


class OptimizeRoutesRequest(BaseModel):
    work_orders: list[RouteWorkOrder] = Field(default_factory=list)
    crew_location: Optional[str] = None
    optimize_for: Literal["time", "distance", "fuel", "balanced"] = "time"
    max_travel_time: float = 480
    departure_time: str = "now"


# Crew tracking


class CrewLocationUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    crew_id: Optional[str] = None
    crew_name: Optional[str] = None
    coordinates: Optional[dict[str, Any]] = None
    accuracy: Optional[float] = None
    status: str = "active"
    current_job: Optional[Any] = None
    assigned_jobs: list[Any] = Field(default_factory=list)
    notes: Optional[str] = None
    vehicle_info: Optional[dict[str, Any]] = None


class CrewStatusUpdate(BaseModel):
    crew_id: Optional[str] = None
    status: Optional[str] = None
    current_job: Optional[Any] = None
    assigned_jobs: Optional[list[Any]] = None
    notes: Optional[str] = None


# Auth


class SessionUser(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None


class SessionResponse(BaseModel):
    user: Optional[SessionUser] = None
    expires: Optional[str] = None

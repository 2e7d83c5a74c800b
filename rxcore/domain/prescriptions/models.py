"""
Prescriptions Domain Models

Implements the records tracked through the pharmacy workflow:
- Prescription aggregate with patient, details, validation, metadata and timestamps
- Medication line items and interaction warnings
- Operational alerts tied to a prescription
- Structured audit trail entries
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import enum
import uuid

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PrescriptionStatus(str, enum.Enum):
    """Prescription workflow status"""
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    DISPENSED = "dispensed"
    EXPIRED = "expired"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class InteractionSeverity(str, enum.Enum):
    """Severity of a drug interaction"""
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"


class AlertType(str, enum.Enum):
    """Type of operational alert"""
    CONTROLLED_SUBSTANCE = "controlled_substance"
    READY_FOR_PICKUP = "ready_for_pickup"
    OVERDUE = "overdue"
    DRUG_INTERACTION = "drug_interaction"


class AlertSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuditAction(str, enum.Enum):
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    VALIDATED = "validated"


class Medication(BaseModel):
    """One prescribed drug line item"""
    id: str = Field(default_factory=lambda: f"med_{uuid.uuid4().hex[:10]}")
    name: str = Field(..., min_length=1)
    generic_name: Optional[str] = None
    dosage: str
    frequency: str
    duration: str
    quantity: int = Field(..., gt=0)
    unit: str
    instructions: str = ""
    is_controlled: bool = False


class InteractionWarning(BaseModel):
    """A flagged risk between medications of the same prescription"""
    drug1: str
    drug2: str
    medications: List[str] = []
    severity: InteractionSeverity
    description: str
    recommendation: str


class PatientInfo(BaseModel):
    """Patient reference copied at creation time"""
    patient_id: str
    patient_name: str
    patient_phone: str
    patient_email: Optional[str] = None


class PrescriptionDetails(BaseModel):
    prescription_number: str
    doctor_name: str
    doctor_license: str
    medications: List[Medication]
    instructions: str = ""
    notes: Optional[str] = None
    prescription_date: Optional[datetime] = None


class ValidationInfo(BaseModel):
    is_validated: bool = False
    validated_by: Optional[str] = None
    validation_notes: Optional[str] = None
    drug_interactions: List[InteractionWarning] = []


class PrescriptionMetadata(BaseModel):
    created_by: str
    last_modified_by: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    is_insurance: bool = False
    total_items: int = 0


class PrescriptionTimestamps(BaseModel):
    date_created: datetime
    date_due: datetime
    date_processed: Optional[datetime] = None
    date_ready: Optional[datetime] = None
    date_dispensed: Optional[datetime] = None
    date_expired: Optional[datetime] = None


class AuditEntry(BaseModel):
    """Append-only audit trail entry"""
    actor: str
    timestamp: datetime
    action: AuditAction
    message: Optional[str] = None
    from_status: Optional[PrescriptionStatus] = None
    to_status: Optional[PrescriptionStatus] = None


class Prescription(BaseModel):
    """Prescription aggregate root"""
    model_config = ConfigDict(validate_assignment=True)

    id: str
    patient_info: PatientInfo
    prescription_details: PrescriptionDetails
    status: PrescriptionStatus = PrescriptionStatus.PENDING
    validation: ValidationInfo = Field(default_factory=ValidationInfo)
    metadata: PrescriptionMetadata
    timestamps: PrescriptionTimestamps
    audit_log: List[AuditEntry] = []

    @property
    def has_controlled_substance(self) -> bool:
        return any(m.is_controlled for m in self.prescription_details.medications)


class Alert(BaseModel):
    """Operational notification tied to a prescription"""
    id: str
    type: AlertType
    severity: AlertSeverity
    message: str
    related_prescription_id: str
    patient_name: Optional[str] = None
    action_required: Optional[str] = None
    created_at: datetime
    is_read: bool = False
    is_resolved: bool = False
    resolved_at: Optional[datetime] = None
    metadata: Dict[str, Any] = {}


class PrescriptionInput(BaseModel):
    """Creation payload, already checked by the input validator"""
    patient_info: PatientInfo
    doctor_name: str
    doctor_license: str
    medications: List[Medication]
    instructions: str = ""
    notes: Optional[str] = None
    prescription_date: Optional[datetime] = None
    priority: Priority = Priority.MEDIUM
    is_insurance: bool = False
    created_by: str


class PrescriptionStats(BaseModel):
    total: int = 0
    by_status: Dict[PrescriptionStatus, int]
    by_priority: Dict[Priority, int]
    ready_count: int = 0
    overdue_count: int = 0
    controlled_substance_count: int = 0
    average_processing_hours: float = 0.0


class MonitoringReport(BaseModel):
    """Outcome of one automated monitoring sweep"""
    checked: int = 0
    overdue_alerts: List[str] = []
    expired: List[str] = []
    ran_at: datetime

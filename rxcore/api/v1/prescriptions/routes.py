"""
Prescriptions API Routes

API endpoints for the prescription lifecycle: creation, status transitions,
validation, interaction checks, alerts, monitoring and reporting.
"""

from fastapi import APIRouter, Depends, status, Query
from typing import List, Optional

from rxcore.api.deps import get_prescription_service
from rxcore.core.exceptions import ConflictError, NotFoundError, ValidationError
from rxcore.domain.prescriptions.models import (
    Alert, InteractionWarning, MonitoringReport, Prescription,
    PrescriptionInput, PrescriptionStats, PrescriptionStatus
)
from rxcore.domain.prescriptions.service import PrescriptionService
from rxcore.domain.prescriptions.validators import validate_prescription_input
from rxcore.api.v1.prescriptions.schemas import (
    InteractionCheckRequest, MessageResponse, MonitoringRunRequest,
    PrescriptionCreate, PrescriptionValidate, StatusUpdate
)

router = APIRouter()


def _get_or_404(service: PrescriptionService, prescription_id: str) -> Prescription:
    prescription = service.get_prescription(prescription_id)
    if prescription is None:
        raise NotFoundError(
            message="Prescription not found",
            details={"prescription_id": prescription_id}
        )
    return prescription


# ==================== Prescription Endpoints ====================

@router.post("/", response_model=Prescription, status_code=status.HTTP_201_CREATED)
def create_prescription(
    prescription_in: PrescriptionCreate,
    service: PrescriptionService = Depends(get_prescription_service)
):
    """Validate form input and create a pending prescription"""
    raw = prescription_in.model_dump()
    result = validate_prescription_input(raw, config=service.config)
    if not result.is_valid:
        raise ValidationError(
            message="Prescription validation failed",
            details={"errors": result.errors, "warnings": result.warnings}
        )
    return service.create_prescription(PrescriptionInput.model_validate(raw))


@router.get("/", response_model=List[Prescription])
def list_prescriptions(
    status_filter: Optional[PrescriptionStatus] = Query(None, alias="status"),
    patient_id: Optional[str] = None,
    q: Optional[str] = Query(None, max_length=200),
    service: PrescriptionService = Depends(get_prescription_service)
):
    """List prescriptions with optional status, patient and text filters"""
    if q:
        prescriptions = service.search_prescriptions(q)
    else:
        prescriptions = service.get_prescriptions()

    if status_filter is not None:
        prescriptions = [p for p in prescriptions if p.status == status_filter]
    if patient_id:
        prescriptions = [p for p in prescriptions if p.patient_info.patient_id == patient_id]
    return prescriptions


@router.get("/overdue", response_model=List[Prescription])
def list_overdue_prescriptions(service: PrescriptionService = Depends(get_prescription_service)):
    return service.get_overdue_prescriptions()


@router.get("/ready", response_model=List[Prescription])
def list_ready_prescriptions(service: PrescriptionService = Depends(get_prescription_service)):
    return service.get_ready_prescriptions()


@router.get("/stats", response_model=PrescriptionStats)
def prescription_stats(service: PrescriptionService = Depends(get_prescription_service)):
    return service.get_prescription_stats()


# ==================== Alert Endpoints ====================

@router.get("/alerts", response_model=List[Alert])
def list_alerts(
    active_only: bool = False,
    service: PrescriptionService = Depends(get_prescription_service)
):
    if active_only:
        return service.get_active_alerts()
    return service.get_prescription_alerts()


@router.post("/alerts/{alert_id}/read", response_model=MessageResponse)
def mark_alert_read(alert_id: str, service: PrescriptionService = Depends(get_prescription_service)):
    if not service.mark_alert_read(alert_id):
        raise NotFoundError(message="Alert not found", details={"alert_id": alert_id})
    return MessageResponse(message="Alert marked as read")


@router.post("/alerts/{alert_id}/resolve", response_model=MessageResponse)
def resolve_alert(alert_id: str, service: PrescriptionService = Depends(get_prescription_service)):
    if not service.resolve_alert(alert_id):
        raise NotFoundError(message="Alert not found", details={"alert_id": alert_id})
    return MessageResponse(message="Alert resolved")


# ==================== Engine Endpoints ====================

@router.post("/interactions/check", response_model=List[InteractionWarning])
def check_interactions(
    request: InteractionCheckRequest,
    service: PrescriptionService = Depends(get_prescription_service)
):
    return service.check_drug_interactions(request.medications)


@router.post("/monitoring/run", response_model=MonitoringReport)
def run_monitoring(
    request: Optional[MonitoringRunRequest] = None,
    service: PrescriptionService = Depends(get_prescription_service)
):
    """Run one automated monitoring sweep"""
    actor = request.actor if request else "System"
    return service.perform_automated_monitoring(actor=actor)


# ==================== Single Prescription Endpoints ====================

@router.get("/{prescription_id}", response_model=Prescription)
def get_prescription(prescription_id: str, service: PrescriptionService = Depends(get_prescription_service)):
    return _get_or_404(service, prescription_id)


@router.post("/{prescription_id}/status", response_model=Prescription)
def update_prescription_status(
    prescription_id: str,
    update: StatusUpdate,
    service: PrescriptionService = Depends(get_prescription_service)
):
    """Move a prescription through its workflow"""
    _get_or_404(service, prescription_id)
    if not service.update_prescription_status(prescription_id, update.status, update.actor, update.note):
        current = _get_or_404(service, prescription_id)
        raise ConflictError(
            message=f"Cannot move prescription from {current.status.value} to {update.status.value}",
            details={"prescription_id": prescription_id, "current_status": current.status.value},
            error_code="ILLEGAL_STATUS_TRANSITION"
        )
    return _get_or_404(service, prescription_id)


@router.post("/{prescription_id}/validate", response_model=Prescription)
def validate_prescription(
    prescription_id: str,
    request: PrescriptionValidate,
    service: PrescriptionService = Depends(get_prescription_service)
):
    if not service.validate_prescription(prescription_id, request.actor, request.notes):
        raise NotFoundError(
            message="Prescription not found",
            details={"prescription_id": prescription_id}
        )
    return _get_or_404(service, prescription_id)

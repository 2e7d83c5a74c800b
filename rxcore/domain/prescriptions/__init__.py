# Prescription lifecycle domain module
from rxcore.domain.prescriptions.models import (
    Alert,
    AlertSeverity,
    AlertType,
    AuditEntry,
    InteractionSeverity,
    InteractionWarning,
    Medication,
    MonitoringReport,
    PatientInfo,
    Prescription,
    PrescriptionInput,
    PrescriptionStats,
    PrescriptionStatus,
    Priority,
)
from rxcore.domain.prescriptions.service import PrescriptionService

__all__ = [
    "Alert",
    "AlertSeverity",
    "AlertType",
    "AuditEntry",
    "InteractionSeverity",
    "InteractionWarning",
    "Medication",
    "MonitoringReport",
    "PatientInfo",
    "Prescription",
    "PrescriptionInput",
    "PrescriptionStats",
    "PrescriptionStatus",
    "Priority",
    "PrescriptionService",
]

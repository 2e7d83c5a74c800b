"""
Prescriptions Service Layer

Business logic for the prescription lifecycle: creation, status transitions,
validation sign-off, alerting, the automated monitoring sweep, and read-only
queries and statistics.

Every mutating operation is one read-modify-write cycle against the record
store, wrapped in the store's ``atomic()`` block.
"""

from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Union
from datetime import datetime, timedelta
import logging
import secrets
import string
import uuid

from pydantic import ValidationError as PydanticValidationError

from rxcore.core.config import Settings, settings
from rxcore.core.exceptions import ConflictError, ValidationError
from rxcore.domain.prescriptions.alerts import AlertGenerator
from rxcore.domain.prescriptions.interactions import check_interactions
from rxcore.domain.prescriptions.models import (
    Alert, AlertSeverity, AlertType, AuditAction, AuditEntry,
    InteractionSeverity, InteractionWarning, Medication, MonitoringReport,
    Prescription, PrescriptionDetails, PrescriptionInput, PrescriptionMetadata,
    PrescriptionStats, PrescriptionStatus, PrescriptionTimestamps, Priority,
    ValidationInfo, utcnow
)
from rxcore.domain.prescriptions.repository import PrescriptionRepository
from rxcore.domain.prescriptions.state_machine import (
    STATUS_LABELS, TERMINAL_STATUSES, can_transition, timestamp_field
)
from rxcore.infrastructure.notifications import send_notification
from rxcore.infrastructure.record_store import RecordStore

logger = logging.getLogger(__name__)

NUMBER_ALPHABET = string.ascii_uppercase + string.digits

INTERACTION_ALERT_SEVERITY = {
    InteractionSeverity.MAJOR: AlertSeverity.HIGH,
    InteractionSeverity.CRITICAL: AlertSeverity.CRITICAL,
}


class Notification(NamedTuple):
    recipient: str
    subject: str
    body: str
    channel: str


class PrescriptionService:
    """Service layer for the prescription lifecycle"""

    def __init__(
        self,
        store: RecordStore,
        config: Settings = settings,
        notifier: Callable[..., Any] = send_notification,
        clock: Callable[[], datetime] = utcnow
    ):
        self.config = config
        self.repo = PrescriptionRepository(
            store,
            prescriptions_key=config.PRESCRIPTIONS_COLLECTION,
            alerts_key=config.ALERTS_COLLECTION
        )
        self.notifier = notifier
        self.clock = clock

    # ==================== Factory ====================

    def _generate_prescription_number(self, now: datetime, taken: set) -> str:
        """Generate a prescription number unique across the store"""
        prefix = f"RX{now:%y%m%d}"
        for _ in range(self.config.PRESCRIPTION_NUMBER_MAX_ATTEMPTS):
            suffix = "".join(secrets.choice(NUMBER_ALPHABET) for _ in range(4))
            number = prefix + suffix
            if number not in taken:
                return number
        raise ConflictError(
            message="Could not generate a unique prescription number",
            details={"prefix": prefix, "attempts": self.config.PRESCRIPTION_NUMBER_MAX_ATTEMPTS},
            error_code="PRESCRIPTION_NUMBER_EXHAUSTED"
        )

    def create_prescription(self, data: Union[PrescriptionInput, Dict[str, Any]]) -> Prescription:
        """Create a new prescription in pending status"""
        if not isinstance(data, PrescriptionInput):
            try:
                data = PrescriptionInput.model_validate(data)
            except PydanticValidationError as e:
                raise ValidationError(
                    message="Invalid prescription input",
                    details={"error_count": e.error_count()}
                ) from e

        if not data.medications:
            raise ValidationError(
                message="At least one medication must be prescribed",
                details={"field": "medications"},
                error_code="EMPTY_MEDICATION_LIST"
            )

        now = self.clock()
        interactions = check_interactions(data.medications)
        notifications: List[Notification] = []

        with self.repo.atomic():
            prescriptions = self.repo.load_prescriptions()
            alerts = self.repo.load_alerts()
            taken = {p.prescription_details.prescription_number for p in prescriptions}

            prescription = Prescription(
                id=f"rx_{uuid.uuid4().hex[:16]}",
                patient_info=data.patient_info.model_copy(),
                prescription_details=PrescriptionDetails(
                    prescription_number=self._generate_prescription_number(now, taken),
                    doctor_name=data.doctor_name,
                    doctor_license=data.doctor_license,
                    medications=[m.model_copy() for m in data.medications],
                    instructions=data.instructions,
                    notes=data.notes,
                    prescription_date=data.prescription_date
                ),
                status=PrescriptionStatus.PENDING,
                validation=ValidationInfo(drug_interactions=interactions),
                metadata=PrescriptionMetadata(
                    created_by=data.created_by,
                    priority=data.priority,
                    is_insurance=data.is_insurance,
                    total_items=len(data.medications)
                ),
                timestamps=PrescriptionTimestamps(
                    date_created=now,
                    date_due=now + timedelta(days=self.config.PRESCRIPTION_VALIDITY_DAYS)
                ),
                audit_log=[AuditEntry(
                    actor=data.created_by,
                    timestamp=now,
                    action=AuditAction.CREATED,
                    to_status=PrescriptionStatus.PENDING
                )]
            )

            generator = AlertGenerator(alerts)
            for medication in prescription.prescription_details.medications:
                if medication.is_controlled:
                    generator.raise_alert(
                        AlertType.CONTROLLED_SUBSTANCE,
                        AlertSeverity.MEDIUM,
                        f"Prescription contains controlled substance: {medication.name}",
                        prescription,
                        action_required="Verify patient ID and maintain proper documentation",
                        metadata={"medication_id": medication.id, "medication": medication.name},
                        now=now
                    )

            for warning in interactions:
                severity = INTERACTION_ALERT_SEVERITY.get(warning.severity)
                if severity is None:
                    continue
                generator.raise_alert(
                    AlertType.DRUG_INTERACTION,
                    severity,
                    f"Drug interaction detected: {warning.drug1} and {warning.drug2}",
                    prescription,
                    action_required="Review interaction and consult prescriber if necessary",
                    metadata={"interaction": warning.model_dump(mode="json")},
                    now=now
                )
                notifications.append(Notification(
                    recipient="pharmacy",
                    subject="Drug Interaction Alert",
                    body=f"Potential interaction detected between {warning.drug1} and {warning.drug2}",
                    channel="dashboard"
                ))

            prescriptions.append(prescription)
            self.repo.save_prescriptions(prescriptions)
            self.repo.save_alerts(alerts)

        logger.info(
            f"Prescription {prescription.prescription_details.prescription_number} "
            f"created for patient {prescription.patient_info.patient_id} by {data.created_by}"
        )
        self._dispatch(notifications)
        return prescription

    # ==================== State Machine ====================

    def _apply_transition(
        self,
        prescription: Prescription,
        generator: AlertGenerator,
        target: PrescriptionStatus,
        actor: str,
        note: Optional[str],
        now: datetime,
        notifications: List[Notification]
    ) -> bool:
        current = prescription.status
        if not can_transition(current, target):
            logger.warning(
                f"Rejected transition {current.value} -> {target.value} for {prescription.id}"
            )
            return False

        prescription.status = target
        field = timestamp_field(target)
        if field and getattr(prescription.timestamps, field) is None:
            setattr(prescription.timestamps, field, now)
        prescription.metadata.last_modified_by = actor

        label = STATUS_LABELS[target]
        prescription.audit_log.append(AuditEntry(
            actor=actor,
            timestamp=now,
            action=AuditAction.STATUS_CHANGED,
            message=f"{label}: {note}" if note else label,
            from_status=current,
            to_status=target
        ))

        if target == PrescriptionStatus.READY:
            patient = prescription.patient_info
            if not generator.has_unresolved(prescription.id, AlertType.READY_FOR_PICKUP):
                generator.raise_alert(
                    AlertType.READY_FOR_PICKUP,
                    AlertSeverity.MEDIUM,
                    f"Prescription {prescription.prescription_details.prescription_number} "
                    f"for {patient.patient_name} is ready for pickup",
                    prescription,
                    action_required="Contact patient for pickup",
                    metadata={
                        "patient_phone": patient.patient_phone,
                        "patient_email": patient.patient_email,
                        "medications": [m.name for m in prescription.prescription_details.medications],
                    },
                    now=now
                )
            notifications.append(Notification(
                recipient=patient.patient_phone,
                subject="Prescription Ready",
                body=f"Prescription for {patient.patient_name} is ready for pickup",
                channel="sms"
            ))
        elif target in TERMINAL_STATUSES:
            generator.resolve_all(
                prescription.id,
                [AlertType.READY_FOR_PICKUP, AlertType.OVERDUE],
                now=now
            )

        logger.info(
            f"Prescription {prescription.id} moved {current.value} -> {target.value} by {actor}"
        )
        return True

    def update_prescription_status(
        self,
        prescription_id: str,
        new_status: Union[PrescriptionStatus, str],
        actor: str,
        note: Optional[str] = None
    ) -> bool:
        """Move a prescription to a new status; False if unknown or illegal"""
        try:
            target = PrescriptionStatus(new_status)
        except ValueError as e:
            raise ValidationError(
                message=f"Unknown prescription status: {new_status}",
                details={"field": "status"}
            ) from e

        now = self.clock()
        notifications: List[Notification] = []

        with self.repo.atomic():
            prescriptions = self.repo.load_prescriptions()
            prescription = self._find(prescriptions, prescription_id)
            if prescription is None:
                return False

            alerts = self.repo.load_alerts()
            generator = AlertGenerator(alerts)
            if not self._apply_transition(
                prescription, generator, target, actor, note, now, notifications
            ):
                return False

            self.repo.save_prescriptions(prescriptions)
            self.repo.save_alerts(alerts)

        self._dispatch(notifications)
        return True

    def validate_prescription(
        self,
        prescription_id: str,
        actor: str,
        notes: Optional[str] = None
    ) -> bool:
        """Record pharmacist validation; False if the id is unknown"""
        now = self.clock()
        with self.repo.atomic():
            prescriptions = self.repo.load_prescriptions()
            prescription = self._find(prescriptions, prescription_id)
            if prescription is None:
                return False

            prescription.validation.is_validated = True
            prescription.validation.validated_by = actor
            prescription.validation.validation_notes = notes
            prescription.metadata.last_modified_by = actor
            prescription.audit_log.append(AuditEntry(
                actor=actor,
                timestamp=now,
                action=AuditAction.VALIDATED,
                message=notes
            ))
            self.repo.save_prescriptions(prescriptions)

        logger.info(f"Prescription {prescription_id} validated by {actor}")
        return True

    def check_drug_interactions(self, medications: Sequence[Medication]) -> List[InteractionWarning]:
        return check_interactions(medications)

    # ==================== Automated Monitor ====================

    @staticmethod
    def _days_since(moment: datetime, now: datetime) -> int:
        return (now - moment) // timedelta(days=1)

    def perform_automated_monitoring(self, actor: str = "System") -> MonitoringReport:
        """Raise overdue-pickup alerts and expire prescriptions past their due date.

        Safe to re-run: a prescription with an unresolved overdue alert gets no
        second one, and expired records are terminal.
        """
        now = self.clock()
        notifications: List[Notification] = []

        with self.repo.atomic():
            prescriptions = self.repo.load_prescriptions()
            alerts = self.repo.load_alerts()
            generator = AlertGenerator(alerts)
            report = MonitoringReport(checked=len(prescriptions), ran_at=now)

            for prescription in prescriptions:
                date_ready = prescription.timestamps.date_ready
                if prescription.status == PrescriptionStatus.READY and date_ready:
                    days = self._days_since(date_ready, now)
                    if (
                        days >= self.config.OVERDUE_PICKUP_DAYS
                        and not generator.has_unresolved(prescription.id, AlertType.OVERDUE)
                    ):
                        severity = (
                            AlertSeverity.HIGH
                            if days >= self.config.OVERDUE_ESCALATION_DAYS
                            else AlertSeverity.MEDIUM
                        )
                        generator.raise_alert(
                            AlertType.OVERDUE,
                            severity,
                            f"Prescription {prescription.prescription_details.prescription_number} "
                            f"has been ready for pickup for {days} day{'' if days == 1 else 's'}",
                            prescription,
                            action_required="Contact patient for pickup or return to stock",
                            metadata={
                                "days_since_ready": days,
                                "patient_phone": prescription.patient_info.patient_phone,
                            },
                            now=now
                        )
                        report.overdue_alerts.append(prescription.id)

                if (
                    prescription.status not in TERMINAL_STATUSES
                    and now > prescription.timestamps.date_due
                ):
                    if self._apply_transition(
                        prescription, generator, PrescriptionStatus.EXPIRED, actor,
                        "Prescription passed its due date", now, notifications
                    ):
                        report.expired.append(prescription.id)

            if report.overdue_alerts or report.expired:
                self.repo.save_prescriptions(prescriptions)
                self.repo.save_alerts(alerts)

        logger.info(
            f"Monitoring sweep checked {report.checked} prescriptions: "
            f"{len(report.overdue_alerts)} overdue, {len(report.expired)} expired"
        )
        self._dispatch(notifications)
        return report

    # ==================== Queries ====================

    @staticmethod
    def _find(prescriptions: List[Prescription], prescription_id: str) -> Optional[Prescription]:
        return next((p for p in prescriptions if p.id == prescription_id), None)

    def get_prescriptions(self) -> List[Prescription]:
        return self.repo.load_prescriptions()

    def get_prescription(self, prescription_id: str) -> Optional[Prescription]:
        return self._find(self.repo.load_prescriptions(), prescription_id)

    def get_prescriptions_by_status(self, status: Union[PrescriptionStatus, str]) -> List[Prescription]:
        status = PrescriptionStatus(status)
        return [p for p in self.repo.load_prescriptions() if p.status == status]

    def get_prescriptions_by_patient(self, patient_id: str) -> List[Prescription]:
        return [
            p for p in self.repo.load_prescriptions()
            if p.patient_info.patient_id == patient_id
        ]

    def get_ready_prescriptions(self) -> List[Prescription]:
        return self.get_prescriptions_by_status(PrescriptionStatus.READY)

    def _is_overdue(self, prescription: Prescription, now: datetime) -> bool:
        date_ready = prescription.timestamps.date_ready
        return (
            prescription.status == PrescriptionStatus.READY
            and date_ready is not None
            and self._days_since(date_ready, now) >= self.config.OVERDUE_PICKUP_DAYS
        )

    def get_overdue_prescriptions(self) -> List[Prescription]:
        now = self.clock()
        return [p for p in self.repo.load_prescriptions() if self._is_overdue(p, now)]

    def search_prescriptions(self, query: str) -> List[Prescription]:
        """Case-insensitive match on patient, doctor, number or medication"""
        prescriptions = self.repo.load_prescriptions()
        needle = (query or "").strip().lower()
        if not needle:
            return prescriptions

        def matches(p: Prescription) -> bool:
            details = p.prescription_details
            if needle in p.patient_info.patient_name.lower():
                return True
            if needle in details.doctor_name.lower():
                return True
            if needle in details.prescription_number.lower():
                return True
            return any(
                needle in m.name.lower() or needle in (m.generic_name or "").lower()
                for m in details.medications
            )

        return [p for p in prescriptions if matches(p)]

    def get_prescription_stats(self) -> PrescriptionStats:
        prescriptions = self.repo.load_prescriptions()
        now = self.clock()

        by_status = {s: 0 for s in PrescriptionStatus}
        by_priority = {p: 0 for p in Priority}
        processing_hours: List[float] = []
        controlled = 0
        overdue = 0

        for p in prescriptions:
            by_status[p.status] += 1
            by_priority[p.metadata.priority] += 1
            if p.status == PrescriptionStatus.DISPENSED and p.timestamps.date_dispensed:
                elapsed = p.timestamps.date_dispensed - p.timestamps.date_created
                processing_hours.append(elapsed.total_seconds() / 3600)
            if p.has_controlled_substance:
                controlled += 1
            if self._is_overdue(p, now):
                overdue += 1

        return PrescriptionStats(
            total=len(prescriptions),
            by_status=by_status,
            by_priority=by_priority,
            ready_count=by_status[PrescriptionStatus.READY],
            overdue_count=overdue,
            controlled_substance_count=controlled,
            average_processing_hours=(
                sum(processing_hours) / len(processing_hours) if processing_hours else 0.0
            )
        )

    # ==================== Alerts ====================

    def get_prescription_alerts(self) -> List[Alert]:
        return self.repo.load_alerts()

    def get_active_alerts(self) -> List[Alert]:
        return [a for a in self.repo.load_alerts() if not a.is_resolved]

    def _update_alert(self, alert_id: str, mutate: Callable[[Alert], None]) -> bool:
        with self.repo.atomic():
            alerts = self.repo.load_alerts()
            alert = next((a for a in alerts if a.id == alert_id), None)
            if alert is None:
                return False
            mutate(alert)
            self.repo.save_alerts(alerts)
        return True

    def mark_alert_read(self, alert_id: str) -> bool:
        def mark(alert: Alert) -> None:
            alert.is_read = True
        return self._update_alert(alert_id, mark)

    def resolve_alert(self, alert_id: str) -> bool:
        now = self.clock()

        def resolve(alert: Alert) -> None:
            if not alert.is_resolved:
                alert.is_resolved = True
                alert.resolved_at = now
        return self._update_alert(alert_id, resolve)

    # ==================== Notifications ====================

    def _dispatch(self, notifications: List[Notification]) -> None:
        for n in notifications:
            try:
                self.notifier(n.recipient, n.subject, n.body, n.channel)
            except Exception as e:
                # state is already persisted; a failed notification is not retried
                logger.error(f"Failed to send {n.channel} notification to {n.recipient}: {e}")

from typing import Any, Dict, Iterable, List, Optional
from datetime import datetime
import logging
import uuid

from rxcore.domain.prescriptions.models import (
    Alert, AlertSeverity, AlertType, Prescription, utcnow
)

logger = logging.getLogger(__name__)


class AlertGenerator:
    """Raises and resolves alerts over a loaded alert collection"""

    def __init__(self, alerts: List[Alert]):
        self.alerts = alerts

    def raise_alert(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        message: str,
        prescription: Prescription,
        action_required: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> Alert:
        alert = Alert(
            id=f"alert_{uuid.uuid4().hex}",
            type=alert_type,
            severity=severity,
            message=message,
            related_prescription_id=prescription.id,
            patient_name=prescription.patient_info.patient_name,
            action_required=action_required,
            created_at=now or utcnow(),
            metadata=metadata or {}
        )
        self.alerts.append(alert)
        logger.info(
            f"Alert {alert.type.value} ({alert.severity.value}) raised for {prescription.id}"
        )
        return alert

    def unresolved(self, prescription_id: str, alert_type: AlertType) -> List[Alert]:
        return [
            a for a in self.alerts
            if a.related_prescription_id == prescription_id
            and a.type == alert_type
            and not a.is_resolved
        ]

    def has_unresolved(self, prescription_id: str, alert_type: AlertType) -> bool:
        return bool(self.unresolved(prescription_id, alert_type))

    def resolve(
        self,
        prescription_id: str,
        alert_type: AlertType,
        now: Optional[datetime] = None
    ) -> Optional[Alert]:
        """Resolve the most recent unresolved alert of a type"""
        matches = self.unresolved(prescription_id, alert_type)
        if not matches:
            return None
        alert = matches[-1]
        alert.is_resolved = True
        alert.resolved_at = now or utcnow()
        return alert

    def resolve_all(
        self,
        prescription_id: str,
        alert_types: Iterable[AlertType],
        now: Optional[datetime] = None
    ) -> int:
        resolved_at = now or utcnow()
        count = 0
        for alert_type in alert_types:
            for alert in self.unresolved(prescription_id, alert_type):
                alert.is_resolved = True
                alert.resolved_at = resolved_at
                count += 1
        return count

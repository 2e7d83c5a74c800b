"""
Prescription status transitions.

pending -> processing -> ready -> dispensed, forward only (steps may be
skipped). Any non-terminal status may move to expired. dispensed and expired
are terminal.
"""

from typing import Dict, FrozenSet, Optional, Tuple

from rxcore.domain.prescriptions.models import PrescriptionStatus


FORWARD_ORDER: Tuple[PrescriptionStatus, ...] = (
    PrescriptionStatus.PENDING,
    PrescriptionStatus.PROCESSING,
    PrescriptionStatus.READY,
    PrescriptionStatus.DISPENSED,
)

TERMINAL_STATUSES: FrozenSet[PrescriptionStatus] = frozenset({
    PrescriptionStatus.DISPENSED,
    PrescriptionStatus.EXPIRED,
})

# timestamp field stamped the first time a status is reached
TIMESTAMP_FIELDS: Dict[PrescriptionStatus, str] = {
    PrescriptionStatus.PROCESSING: "date_processed",
    PrescriptionStatus.READY: "date_ready",
    PrescriptionStatus.DISPENSED: "date_dispensed",
    PrescriptionStatus.EXPIRED: "date_expired",
}

STATUS_LABELS: Dict[PrescriptionStatus, str] = {
    PrescriptionStatus.PENDING: "Pending",
    PrescriptionStatus.PROCESSING: "Processing",
    PrescriptionStatus.READY: "Ready for pickup",
    PrescriptionStatus.DISPENSED: "Dispensed",
    PrescriptionStatus.EXPIRED: "Expired",
}


def is_terminal(status: PrescriptionStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: PrescriptionStatus, target: PrescriptionStatus) -> bool:
    """Check whether ``current`` may move to ``target``"""
    if is_terminal(current):
        return False
    if target == PrescriptionStatus.EXPIRED:
        return True
    return FORWARD_ORDER.index(target) > FORWARD_ORDER.index(current)


def timestamp_field(status: PrescriptionStatus) -> Optional[str]:
    return TIMESTAMP_FIELDS.get(status)

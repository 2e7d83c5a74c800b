from fastapi import Depends

from rxcore.core.config import settings
from rxcore.domain.prescriptions.service import PrescriptionService
from rxcore.infrastructure.record_store import RecordStore, get_record_store


def get_prescription_service(
    store: RecordStore = Depends(get_record_store),
) -> PrescriptionService:
    return PrescriptionService(store, config=settings)

from typing import Any, Dict

from loguru import logger

from rxcore.core.config import settings
from rxcore.core.exceptions import StorageError
from rxcore.domain.prescriptions.service import PrescriptionService
from rxcore.infrastructure.record_store import get_record_store
from rxcore.workers.celery_app import celery_app


@celery_app.task(bind=True, max_retries=3, name="rxcore.workers.tasks.run_prescription_monitoring")
def run_prescription_monitoring(self, actor: str = "System") -> Dict[str, Any]:
    """Periodic sweep: overdue pickup alerts and expiry of stale prescriptions"""
    logger.info("Starting automated prescription monitoring")
    service = PrescriptionService(get_record_store(), config=settings)
    try:
        report = service.perform_automated_monitoring(actor=actor)
    except StorageError as exc:
        logger.error(f"Prescription monitoring failed: {exc.message}")
        # Retry with exponential backoff
        raise self.retry(exc=exc, countdown=2 ** self.request.retries)

    logger.info(
        f"Prescription monitoring completed: {len(report.overdue_alerts)} overdue alerts, "
        f"{len(report.expired)} expired"
    )
    return report.model_dump(mode="json")

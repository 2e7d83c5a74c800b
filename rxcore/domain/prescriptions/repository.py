"""
Prescriptions Repository Layer

Typed access to the prescription and alert collections of a record store.
"""

from typing import List, Type, TypeVar
import logging

from pydantic import BaseModel, ValidationError as PydanticValidationError

from rxcore.core.exceptions import StorageError
from rxcore.domain.prescriptions.models import Alert, Prescription
from rxcore.infrastructure.record_store import RecordStore

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class PrescriptionRepository:
    """Repository for prescription and alert collections"""

    def __init__(
        self,
        store: RecordStore,
        prescriptions_key: str = "prescriptions",
        alerts_key: str = "prescription_alerts"
    ):
        self.store = store
        self.prescriptions_key = prescriptions_key
        self.alerts_key = alerts_key

    def atomic(self):
        return self.store.atomic()

    def _load(self, collection: str, model: Type[ModelT]) -> List[ModelT]:
        records = self.store.load(collection)
        try:
            return [model.model_validate(r) for r in records]
        except PydanticValidationError as e:
            logger.error(f"Stored {collection} failed validation: {e}")
            raise StorageError(
                message=f"Stored {collection} are corrupt",
                details={"collection": collection, "error_count": e.error_count()},
                error_code="STORAGE_CORRUPT_RECORD"
            ) from e

    def _save(self, collection: str, items: List[BaseModel]) -> None:
        self.store.save(collection, [i.model_dump(mode="json") for i in items])

    def load_prescriptions(self) -> List[Prescription]:
        return self._load(self.prescriptions_key, Prescription)

    def save_prescriptions(self, prescriptions: List[Prescription]) -> None:
        self._save(self.prescriptions_key, prescriptions)

    def load_alerts(self) -> List[Alert]:
        return self._load(self.alerts_key, Alert)

    def save_alerts(self, alerts: List[Alert]) -> None:
        self._save(self.alerts_key, alerts)

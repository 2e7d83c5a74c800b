"""
Field validation for raw prescription form input.

Runs before the factory; returns every problem found instead of stopping at
the first one.
"""

from typing import Any, Dict, List, Optional, Union
from datetime import datetime, timedelta, timezone
import re

from pydantic import BaseModel, TypeAdapter, ValidationError as PydanticValidationError

from rxcore.core.config import Settings, settings

DOCTOR_NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-\.]+$")
DOCTOR_LICENSE_PATTERN = re.compile(r"^[A-Z0-9\-]+$", re.IGNORECASE)
NOTES_MAX_LENGTH = 500

_datetime_adapter = TypeAdapter(datetime)


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _check_medication(index: int, med: Dict[str, Any], config: Settings, errors: List[str], warnings: List[str]) -> None:
    if len(_text(med.get("name"))) < 2:
        errors.append(f"Medication {index}: Name is required")
    for field in ("dosage", "frequency", "duration"):
        if not _text(med.get(field)):
            errors.append(f"Medication {index}: {field.capitalize()} is required")

    quantity = med.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        errors.append(f"Medication {index}: Quantity must be greater than 0")
        return

    if med.get("is_controlled"):
        if quantity > config.CONTROLLED_SUPPLY_LIMIT:
            errors.append(
                f"Medication {index}: Controlled substances limited to "
                f"{config.CONTROLLED_SUPPLY_LIMIT}-day supply"
            )
        else:
            warnings.append(f"Medication {index}: Controlled substance, verify patient ID")


def _check_prescription_date(value: Any, config: Settings, now: datetime, errors: List[str]) -> None:
    try:
        written = _datetime_adapter.validate_python(value)
    except PydanticValidationError:
        errors.append("Prescription date is invalid")
        return
    if written.tzinfo is None:
        written = written.replace(tzinfo=timezone.utc)

    if written < now - timedelta(days=config.PRESCRIPTION_MAX_AGE_DAYS):
        errors.append(f"Prescription is too old (more than {config.PRESCRIPTION_MAX_AGE_DAYS} days)")
    elif written > now:
        errors.append("Prescription date cannot be in the future")


def validate_prescription_input(
    data: Union[Dict[str, Any], BaseModel],
    config: Settings = settings,
    now: Optional[datetime] = None
) -> ValidationResult:
    """Check raw prescription input and collect errors and warnings"""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    now = now or datetime.now(timezone.utc)
    errors: List[str] = []
    warnings: List[str] = []

    patient = data.get("patient_info") or {}
    if not _text(patient.get("patient_id")):
        errors.append("Patient selection is required")
    if not _text(patient.get("patient_name")):
        errors.append("Patient name is required")
    if not _text(patient.get("patient_phone")):
        errors.append("Patient phone is required")

    doctor_name = _text(data.get("doctor_name"))
    if len(doctor_name) < 2:
        errors.append("Doctor name must be at least 2 characters long")
    elif len(doctor_name) > 100 or not DOCTOR_NAME_PATTERN.match(doctor_name):
        errors.append("Doctor name contains invalid characters")

    doctor_license = _text(data.get("doctor_license"))
    if len(doctor_license) < 3:
        errors.append("Doctor license number is required")
    elif not DOCTOR_LICENSE_PATTERN.match(doctor_license):
        errors.append("Doctor license number contains invalid characters")

    medications = data.get("medications") or []
    if not medications:
        errors.append("At least one medication must be prescribed")
    for index, med in enumerate(medications, start=1):
        if isinstance(med, BaseModel):
            med = med.model_dump()
        _check_medication(index, med, config, errors, warnings)

    if len(_text(data.get("notes"))) > NOTES_MAX_LENGTH:
        errors.append(f"Prescription notes cannot exceed {NOTES_MAX_LENGTH} characters")

    if data.get("prescription_date") is not None:
        _check_prescription_date(data["prescription_date"], config, now, errors)

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

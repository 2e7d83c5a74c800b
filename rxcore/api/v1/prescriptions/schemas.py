"""
Prescriptions API Schemas

Pydantic models for prescription-related API requests and responses.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from rxcore.domain.prescriptions.models import (
    Medication, PatientInfo, PrescriptionStatus, Priority
)


class MedicationCreate(BaseModel):
    """Schema for a prescribed medication line"""
    name: str
    generic_name: Optional[str] = None
    dosage: str
    frequency: str
    duration: str
    quantity: int
    unit: str = "tablets"
    instructions: str = ""
    is_controlled: bool = False


class PrescriptionCreate(BaseModel):
    """Schema for creating a prescription"""
    patient_info: PatientInfo
    doctor_name: str
    doctor_license: str
    medications: List[MedicationCreate]
    instructions: str = ""
    notes: Optional[str] = None
    prescription_date: Optional[datetime] = None
    priority: Priority = Priority.MEDIUM
    is_insurance: bool = False
    created_by: str = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    """Schema for a status transition"""
    status: PrescriptionStatus
    actor: str = Field(..., min_length=1)
    note: Optional[str] = Field(None, max_length=500)


class PrescriptionValidate(BaseModel):
    """Schema for pharmacist validation"""
    actor: str = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=500)


class InteractionCheckRequest(BaseModel):
    medications: List[Medication]


class MonitoringRunRequest(BaseModel):
    actor: str = "System"


class MessageResponse(BaseModel):
    message: str

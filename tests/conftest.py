import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator
from fastapi.testclient import TestClient

from rxcore.core.config import Settings
from rxcore.domain.prescriptions.service import PrescriptionService
from rxcore.infrastructure.record_store import MemoryRecordStore, get_record_store


FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


class FrozenClock:
    """Controllable clock injected into the service"""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="function")
def test_settings() -> Settings:
    return Settings(RECORD_STORE_BACKEND="memory", _env_file=None)


@pytest.fixture(scope="function")
def store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture(scope="function")
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture(scope="function")
def sent_notifications() -> list:
    return []


@pytest.fixture(scope="function")
def service(store, test_settings, clock, sent_notifications) -> PrescriptionService:
    """Prescription service over an in-memory store with a frozen clock"""
    def notifier(recipient, subject, body, channel="sms"):
        sent_notifications.append({"recipient": recipient, "subject": subject, "channel": channel})
        return {"status": "sent"}

    return PrescriptionService(store, config=test_settings, notifier=notifier, clock=clock)


@pytest.fixture(scope="function")
def client(store) -> Generator[TestClient, None, None]:
    """Test client with the record store dependency overridden"""
    from rxcore.main import app

    app.dependency_overrides[get_record_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_medication(name: str, **overrides) -> dict:
    medication = {
        "name": name,
        "dosage": "10mg",
        "frequency": "Once daily",
        "duration": "30 days",
        "quantity": 30,
        "unit": "tablets",
        "instructions": "Take with food",
        "is_controlled": False,
    }
    medication.update(overrides)
    return medication


@pytest.fixture(scope="function")
def sample_prescription_data() -> dict:
    """Sample creation payload for testing."""
    return {
        "patient_info": {
            "patient_id": "pat123",
            "patient_name": "John Doe",
            "patient_phone": "+1234567890",
            "patient_email": "john@example.com",
        },
        "doctor_name": "Dr. Jane Smith",
        "doctor_license": "MD12345",
        "medications": [make_medication("Lisinopril", generic_name="Lisinopril")],
        "instructions": "Take as directed",
        "notes": "Patient has no known allergies",
        "priority": "medium",
        "is_insurance": False,
        "created_by": "TestUser",
    }


@pytest.fixture(scope="function")
def warfarin_aspirin() -> list:
    return [
        make_medication("Warfarin", dosage="5mg", instructions="Take as directed"),
        make_medication("Aspirin", dosage="81mg"),
    ]


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "storage: mark test as record store related"
    )
    config.addinivalue_line(
        "markers", "monitoring: mark test as automated monitoring related"
    )

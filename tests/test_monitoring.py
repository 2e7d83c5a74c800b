import pytest
from datetime import timedelta

from rxcore.domain.prescriptions.models import AlertSeverity, AlertType, PrescriptionStatus
from tests.conftest import FIXED_NOW


def overdue_alerts(service) -> list:
    return [a for a in service.get_prescription_alerts() if a.type == AlertType.OVERDUE]


@pytest.fixture
def ready_prescription(service, sample_prescription_data):
    prescription = service.create_prescription(sample_prescription_data)
    service.update_prescription_status(prescription.id, "ready", "PharmacistUser")
    return service.get_prescription(prescription.id)


@pytest.mark.monitoring
class TestOverduePickup:
    """Test overdue pickup detection in the monitoring sweep."""

    def test_not_overdue_before_threshold(self, service, ready_prescription, clock) -> None:
        clock.advance(days=2, hours=23)

        report = service.perform_automated_monitoring()

        assert report.overdue_alerts == []
        assert overdue_alerts(service) == []
        assert service.get_overdue_prescriptions() == []

    def test_overdue_after_threshold(self, service, ready_prescription, clock) -> None:
        clock.advance(days=4)

        report = service.perform_automated_monitoring()

        assert report.checked == 1
        assert report.overdue_alerts == [ready_prescription.id]
        assert report.ran_at == FIXED_NOW + timedelta(days=4)
        alerts = overdue_alerts(service)
        assert len(alerts) == 1
        assert alerts[0].severity == AlertSeverity.MEDIUM
        assert "4 days" in alerts[0].message
        assert alerts[0].metadata["days_since_ready"] == 4
        assert [p.id for p in service.get_overdue_prescriptions()] == [ready_prescription.id]

    def test_backdated_ready_timestamp(self, service, ready_prescription) -> None:
        with service.repo.atomic():
            prescriptions = service.repo.load_prescriptions()
            prescriptions[0].timestamps.date_ready = FIXED_NOW - timedelta(days=4)
            service.repo.save_prescriptions(prescriptions)

        service.perform_automated_monitoring()

        alerts = overdue_alerts(service)
        assert len(alerts) == 1
        assert "4 days" in alerts[0].message

    def test_sweep_is_idempotent(self, service, ready_prescription, clock) -> None:
        clock.advance(days=4)
        service.perform_automated_monitoring()

        clock.advance(hours=1)
        second = service.perform_automated_monitoring()

        assert second.overdue_alerts == []
        assert len(overdue_alerts(service)) == 1

    def test_escalates_after_a_week(self, service, ready_prescription, clock) -> None:
        clock.advance(days=7)

        service.perform_automated_monitoring()

        alerts = overdue_alerts(service)
        assert len(alerts) == 1
        assert alerts[0].severity == AlertSeverity.HIGH
        assert service.get_prescription(ready_prescription.id).status == PrescriptionStatus.READY

    def test_new_alert_after_resolution(self, service, ready_prescription, clock) -> None:
        clock.advance(days=4)
        service.perform_automated_monitoring()
        service.resolve_alert(overdue_alerts(service)[0].id)

        clock.advance(days=1)
        report = service.perform_automated_monitoring()

        assert report.overdue_alerts == [ready_prescription.id]
        alerts = overdue_alerts(service)
        assert len(alerts) == 2
        assert "5 days" in alerts[1].message

    def test_dispensing_resolves_overdue_alert(self, service, ready_prescription, clock) -> None:
        clock.advance(days=4)
        service.perform_automated_monitoring()

        service.update_prescription_status(ready_prescription.id, "dispensed", "PharmacistUser")

        assert all(a.is_resolved for a in overdue_alerts(service))
        assert service.get_active_alerts() == []


@pytest.mark.monitoring
class TestExpiry:
    """Test automatic expiry of prescriptions past their due date."""

    def test_not_expired_on_due_date(self, service, sample_prescription_data, clock) -> None:
        prescription = service.create_prescription(sample_prescription_data)
        clock.advance(days=7)

        report = service.perform_automated_monitoring()

        assert report.expired == []
        assert service.get_prescription(prescription.id).status == PrescriptionStatus.PENDING

    def test_expires_after_due_date(self, service, sample_prescription_data, clock) -> None:
        prescription = service.create_prescription(sample_prescription_data)
        clock.advance(days=7, minutes=1)

        report = service.perform_automated_monitoring()

        assert report.expired == [prescription.id]
        expired = service.get_prescription(prescription.id)
        assert expired.status == PrescriptionStatus.EXPIRED
        assert expired.timestamps.date_expired == FIXED_NOW + timedelta(days=7, minutes=1)
        entry = expired.audit_log[-1]
        assert entry.actor == "System"
        assert entry.from_status == PrescriptionStatus.PENDING
        assert entry.to_status == PrescriptionStatus.EXPIRED
        assert entry.message == "Expired: Prescription passed its due date"

    def test_backdated_due_date(self, service, sample_prescription_data) -> None:
        prescription = service.create_prescription(sample_prescription_data)
        with service.repo.atomic():
            prescriptions = service.repo.load_prescriptions()
            prescriptions[0].timestamps.date_due = FIXED_NOW - timedelta(days=1)
            service.repo.save_prescriptions(prescriptions)

        report = service.perform_automated_monitoring(actor="NightlySweep")

        assert report.expired == [prescription.id]
        expired = service.get_prescription(prescription.id)
        assert expired.status == PrescriptionStatus.EXPIRED
        assert expired.metadata.last_modified_by == "NightlySweep"

    def test_terminal_prescriptions_untouched(self, service, sample_prescription_data, clock) -> None:
        prescription = service.create_prescription(sample_prescription_data)
        service.update_prescription_status(prescription.id, "dispensed", "PharmacistUser")
        before = service.get_prescription(prescription.id)
        clock.advance(days=30)

        report = service.perform_automated_monitoring()

        assert report.expired == []
        assert service.get_prescription(prescription.id) == before

    def test_expiring_ready_prescription_resolves_pickup_alerts(self, service, ready_prescription, clock) -> None:
        clock.advance(days=8)

        report = service.perform_automated_monitoring()

        assert report.overdue_alerts == [ready_prescription.id]
        assert report.expired == [ready_prescription.id]
        assert service.get_prescription(ready_prescription.id).status == PrescriptionStatus.EXPIRED
        assert service.get_active_alerts() == []

    def test_expired_once(self, service, sample_prescription_data, clock) -> None:
        service.create_prescription(sample_prescription_data)
        clock.advance(days=8)

        service.perform_automated_monitoring()
        second = service.perform_automated_monitoring()

        assert second.expired == []
        assert second.checked == 1

    def test_empty_store(self, service) -> None:
        report = service.perform_automated_monitoring()

        assert report.checked == 0
        assert report.overdue_alerts == []
        assert report.expired == []

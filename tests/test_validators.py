import pytest
from datetime import timedelta

from rxcore.domain.prescriptions.validators import validate_prescription_input
from tests.conftest import FIXED_NOW, make_medication


def validate(data, test_settings):
    return validate_prescription_input(data, config=test_settings, now=FIXED_NOW)


@pytest.mark.unit
class TestPrescriptionInputValidator:
    """Test field validation of raw prescription input."""

    def test_valid_input(self, sample_prescription_data, test_settings) -> None:
        result = validate(sample_prescription_data, test_settings)

        assert result.is_valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_missing_patient(self, sample_prescription_data, test_settings) -> None:
        sample_prescription_data["patient_info"] = {}

        result = validate(sample_prescription_data, test_settings)

        assert result.is_valid is False
        assert "Patient selection is required" in result.errors
        assert "Patient name is required" in result.errors
        assert "Patient phone is required" in result.errors

    @pytest.mark.parametrize("doctor_name,message", [
        ("D", "Doctor name must be at least 2 characters long"),
        ("Dr. Smith 3rd", "Doctor name contains invalid characters"),
        ("x" * 101, "Doctor name contains invalid characters"),
    ])
    def test_invalid_doctor_name(self, sample_prescription_data, test_settings, doctor_name, message) -> None:
        sample_prescription_data["doctor_name"] = doctor_name

        result = validate(sample_prescription_data, test_settings)

        assert result.errors == [message]

    @pytest.mark.parametrize("license_number,message", [
        ("", "Doctor license number is required"),
        ("MD", "Doctor license number is required"),
        ("MD 123/45", "Doctor license number contains invalid characters"),
    ])
    def test_invalid_license(self, sample_prescription_data, test_settings, license_number, message) -> None:
        sample_prescription_data["doctor_license"] = license_number

        result = validate(sample_prescription_data, test_settings)

        assert result.errors == [message]

    def test_no_medications(self, sample_prescription_data, test_settings) -> None:
        sample_prescription_data["medications"] = []

        result = validate(sample_prescription_data, test_settings)

        assert result.errors == ["At least one medication must be prescribed"]

    def test_medication_fields_reported_per_line(self, sample_prescription_data, test_settings) -> None:
        sample_prescription_data["medications"] = [
            make_medication("Lisinopril"),
            make_medication("X", dosage="", quantity=0),
        ]

        result = validate(sample_prescription_data, test_settings)

        assert result.errors == [
            "Medication 2: Name is required",
            "Medication 2: Dosage is required",
            "Medication 2: Quantity must be greater than 0",
        ]

    def test_controlled_substance_within_limit_warns(self, sample_prescription_data, test_settings) -> None:
        sample_prescription_data["medications"] = [
            make_medication("Oxycodone", quantity=90, is_controlled=True)
        ]

        result = validate(sample_prescription_data, test_settings)

        assert result.is_valid is True
        assert result.warnings == ["Medication 1: Controlled substance, verify patient ID"]

    def test_controlled_substance_over_limit(self, sample_prescription_data, test_settings) -> None:
        sample_prescription_data["medications"] = [
            make_medication("Oxycodone", quantity=120, is_controlled=True)
        ]

        result = validate(sample_prescription_data, test_settings)

        assert result.is_valid is False
        assert result.errors == ["Medication 1: Controlled substances limited to 90-day supply"]
        assert result.warnings == []

    def test_notes_too_long(self, sample_prescription_data, test_settings) -> None:
        sample_prescription_data["notes"] = "n" * 501

        result = validate(sample_prescription_data, test_settings)

        assert result.errors == ["Prescription notes cannot exceed 500 characters"]

    @pytest.mark.parametrize("offset,message", [
        (timedelta(days=-31), "Prescription is too old (more than 30 days)"),
        (timedelta(days=1), "Prescription date cannot be in the future"),
    ])
    def test_prescription_date_window(self, sample_prescription_data, test_settings, offset, message) -> None:
        sample_prescription_data["prescription_date"] = FIXED_NOW + offset

        result = validate(sample_prescription_data, test_settings)

        assert result.errors == [message]

    def test_prescription_date_accepted(self, sample_prescription_data, test_settings) -> None:
        sample_prescription_data["prescription_date"] = (FIXED_NOW - timedelta(days=2)).isoformat()

        assert validate(sample_prescription_data, test_settings).is_valid is True

    def test_unparseable_prescription_date(self, sample_prescription_data, test_settings) -> None:
        sample_prescription_data["prescription_date"] = "yesterday-ish"

        result = validate(sample_prescription_data, test_settings)

        assert result.errors == ["Prescription date is invalid"]

    def test_collects_all_errors(self, test_settings) -> None:
        result = validate({}, test_settings)

        assert result.is_valid is False
        assert len(result.errors) == 6

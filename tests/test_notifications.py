from rxcore.infrastructure.notifications import send_notification


def test_send_notification_sms():
    """Test SMS notification"""
    result = send_notification(
        recipient="+1234567890",
        subject="Prescription Ready",
        body="Prescription for John Doe is ready for pickup"
    )
    assert result["status"] == "sent"
    assert result["recipient"] == "+1234567890"
    assert result["channel"] == "sms"


def test_send_notification_dashboard():
    """Test dashboard notification"""
    result = send_notification(
        recipient="pharmacy",
        subject="Drug Interaction Alert",
        body="Potential interaction detected between Warfarin and Aspirin",
        channel="dashboard"
    )
    assert result["status"] == "sent"
    assert result["channel"] == "dashboard"
    assert "Warfarin" in result["body"]

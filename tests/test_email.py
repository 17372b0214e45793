from unittest.mock import patch

import pytest

from app.services.email import EmailService, NotificationError

BOOKING = {
    "id": "b-1",
    "service_type": "Repair",
    "scheduled_date": "2025-04-01",
    "scheduled_time": "10:00",
    "status": "confirmed",
    "notes": "Gate code <1234>",
    "vendors": {"name": "CoolFix", "contact_email": "ops@coolfix.ng"},
    "appliances": {"name": "Living room AC", "type": "HVAC"},
    "profiles": {"full_name": "Ada", "email": "ada@example.com"},
}


@pytest.fixture
def send():
    with patch("app.services.email.resend.Emails.send", return_value={"id": "email-1"}) as send:
        yield send


def test_booking_notification_emails_customer_and_vendor(send):
    sent = EmailService().send_booking_notification(BOOKING, "create")

    assert sent == 2
    customer, vendor = (c.args[0] for c in send.call_args_list)
    assert customer["to"] == ["ada@example.com"]
    assert customer["subject"] == "Service Booking Scheduled - CoolFix"
    assert "Apr 01, 2025" in customer["html"]
    assert "Gate code &lt;1234&gt;" in customer["html"]
    assert vendor["to"] == ["ops@coolfix.ng"]
    assert vendor["subject"] == "Service Booking Scheduled - Apr 01, 2025"


def test_vendor_without_contact_email_is_skipped(send):
    booking = {**BOOKING, "vendors": {"name": "CoolFix"}}
    assert EmailService().send_booking_notification(booking, "cancel") == 1
    assert send.call_args.args[0]["subject"] == "Service Booking Cancelled - CoolFix"


def test_booking_without_customer_email(send):
    with pytest.raises(NotificationError):
        EmailService().send_booking_notification({**BOOKING, "profiles": None}, "update")
    send.assert_not_called()


def test_admin_notification(send):
    EmailService().send_admin_notification("new_subscriber", {"userEmail": "ada@example.com", "plan": "Pro", "amount": 5000})

    message = send.call_args.args[0]
    assert message["subject"] == "New Paid Subscriber on FixSense"
    assert message["to"] == ["admin@fixsense.com"]
    assert "₦5,000" in message["html"]


def test_send_failure_propagates(send):
    send.side_effect = RuntimeError("resend down")
    with pytest.raises(RuntimeError):
        EmailService().send_admin_notification("churn", {})


def test_maintenance_reminder(send):
    EmailService().send_maintenance_reminder({
        "user_email": "ada@example.com",
        "appliance_name": "Kitchen fridge",
        "appliance_type": "Refrigerator",
        "property_name": "Lekki flat",
        "maintenance_date": "2025-04-03",
    })

    message = send.call_args.args[0]
    assert message["to"] == ["ada@example.com"]
    assert message["subject"] == "Maintenance Reminder: Kitchen fridge"
    assert "Apr 03, 2025" in message["html"]
    assert "Lekki flat" in message["html"]
    assert '/calendar"' in message["html"]


class TestCriticalAlert:

    DIAGNOSTIC = {
        "urgency": "critical",
        "diagnosis_summary": "Compressor <failing>",
        "estimated_cost_min": 120,
        "estimated_cost_max": 300,
        "appliances": {"name": "Living room AC", "type": "HVAC"},
        "properties": {"name": "Lekki flat"},
    }

    def test_critical_alert(self, send):
        EmailService().send_critical_alert(
            {"email": "ada@example.com", "full_name": "Ada"}, self.DIAGNOSTIC, "diag-1"
        )

        message = send.call_args.args[0]
        assert message["to"] == ["ada@example.com"]
        assert message["subject"] == "CRITICAL: Living room AC Needs Attention"
        assert "#dc2626" in message["html"]
        assert "Compressor &lt;failing&gt;" in message["html"]
        assert "$120 - $300" in message["html"]
        assert '/result/diag-1"' in message["html"]

    def test_warning_without_appliance(self, send):
        diagnostic = {**self.DIAGNOSTIC, "urgency": "warning", "appliances": None, "estimated_cost_max": None}
        EmailService().send_critical_alert({"email": "ada@example.com"}, diagnostic, "diag-1")

        message = send.call_args.args[0]
        assert message["subject"] == "WARNING: Appliance Needs Attention"
        assert "Hi there," in message["html"]
        assert "Estimated Cost" not in message["html"]

    def test_routine_diagnostic_is_not_sent(self, send):
        with pytest.raises(NotificationError):
            EmailService().send_critical_alert({"email": "ada@example.com"}, {"urgency": "routine"}, "diag-1")
        send.assert_not_called()

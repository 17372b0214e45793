import html
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

import resend

from app.core.config import get_settings
from app.core.features import parse_timestamp

logger = logging.getLogger(__name__)

BOOKING_ACTION_LABELS = {
    "create": "Scheduled",
    "update": "Updated",
    "cancel": "Cancelled",
}

ADMIN_SUBJECTS = {
    "new_subscriber": "New Paid Subscriber on FixSense",
    "churn": "User Cancelled Subscription",
    "system_error": "System Error Detected",
    "failed_diagnostic": "Diagnostic Failed",
}

ADMIN_TIMEZONE = ZoneInfo("Africa/Lagos")

# Diagnostic urgencies that trigger an alert, with their banner colour
ALERT_URGENCIES = {
    "critical": ("CRITICAL", "#dc2626"),
    "warning": ("WARNING", "#f59e0b"),
}


class NotificationError(Exception):
    """Raised when a notification cannot be assembled (e.g. missing booking)."""


def _e(value) -> str:
    return html.escape(str(value)) if value is not None else ""


def _format_booking_date(value: str | None) -> str:
    if not value:
        return "Not scheduled"
    try:
        parsed = parse_timestamp(value if "T" in value else f"{value}T00:00:00")
    except ValueError:
        return value
    return parsed.strftime("%b %d, %Y")


class EmailService:
    """Service for sending transactional emails via Resend."""

    def __init__(self):
        settings = get_settings()
        self.api_key = settings.resend_api_key
        resend.api_key = self.api_key
        self.sender = settings.email_from
        self.admin_sender = settings.admin_email_from
        self.admin_emails = list(settings.admin_emails)
        self.web_app_url = settings.web_app_url.rstrip("/")

        # Log configuration status (without exposing full key)
        if self.api_key:
            logger.info(f"Resend configured with key: {self.api_key[:10]}...")
        else:
            logger.warning("RESEND_API_KEY is not set!")

    def _send(self, sender: str, to: list[str], subject: str, html_content: str) -> dict:
        try:
            result = resend.Emails.send({
                "from": sender,
                "to": to,
                "subject": subject,
                "html": html_content,
            })
            logger.info(f"Email '{subject}' sent to {to}: {result}")
            return result
        except Exception as e:
            logger.error(f"Failed to send email '{subject}' to {to}: {e}")
            raise

    def send_booking_notification(self, booking: dict, action: str) -> int:
        """Email the customer, and the vendor when it has a contact email.

        Returns the number of emails sent.
        """
        vendor = booking.get("vendors") or {}
        appliance = booking.get("appliances")
        customer = booking.get("profiles") or {}
        if not customer.get("email"):
            raise NotificationError("Booking has no customer email")

        status_text = BOOKING_ACTION_LABELS.get(action, booking.get("status") or "Updated")
        scheduled = _format_booking_date(booking.get("scheduled_date"))
        appliance_text = (
            f"{_e(appliance.get('name'))} ({_e(appliance.get('type'))})" if appliance else "Not specified"
        )
        details = f"""
      <li><strong>Service Type:</strong> {_e(booking.get('service_type'))}</li>
      <li><strong>Appliance:</strong> {appliance_text}</li>
      <li><strong>Date:</strong> {scheduled}</li>
      <li><strong>Time:</strong> {_e(booking.get('scheduled_time'))}</li>
      <li><strong>Status:</strong> {_e(booking.get('status'))}</li>"""
        notes = booking.get("notes")

        customer_html = f"""
    <h2>Booking {status_text}</h2>
    <p>Hello {_e(customer.get('full_name'))},</p>
    <p>Your service booking has been {status_text.lower()}.</p>
    <h3>Booking Details:</h3>
    <ul>
      <li><strong>Vendor:</strong> {_e(vendor.get('name'))}</li>{details}
    </ul>
    {f"<p><strong>Notes:</strong> {_e(notes)}</p>" if notes else ""}
    <p>If you have any questions, please contact the vendor directly.</p>
"""
        self._send(
            self.sender,
            [customer["email"]],
            f"Service Booking {status_text} - {vendor.get('name', '')}",
            customer_html,
        )
        sent = 1

        if vendor.get("contact_email"):
            vendor_html = f"""
    <h2>New Service Booking {status_text}</h2>
    <p>Hello {_e(vendor.get('name'))},</p>
    <p>A service booking has been {status_text.lower()}.</p>
    <h3>Booking Details:</h3>
    <ul>
      <li><strong>Customer:</strong> {_e(customer.get('full_name'))} ({_e(customer.get('email'))})</li>{details}
    </ul>
    {f"<p><strong>Customer Notes:</strong> {_e(notes)}</p>" if notes else ""}
"""
            self._send(
                self.sender,
                [vendor["contact_email"]],
                f"Service Booking {status_text} - {scheduled}",
                vendor_html,
            )
            sent += 1

        return sent

    def send_maintenance_reminder(self, reminder: dict) -> dict:
        """Remind a user that an appliance is due for maintenance.

        ``reminder`` carries ``user_email``, ``appliance_name``,
        ``appliance_type``, ``property_name`` and ``maintenance_date``.
        """
        html_content = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #2563eb;">Maintenance Reminder</h1>
  <p>This is a friendly reminder that the following appliance needs maintenance soon:</p>
  <div style="background: #f3f4f6; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <h2 style="margin: 0 0 10px 0; color: #1f2937;">{_e(reminder.get('appliance_name'))}</h2>
    <p style="margin: 5px 0;"><strong>Type:</strong> {_e(reminder.get('appliance_type'))}</p>
    <p style="margin: 5px 0;"><strong>Property:</strong> {_e(reminder.get('property_name'))}</p>
    <p style="margin: 5px 0;"><strong>Scheduled Date:</strong> {_format_booking_date(reminder.get('maintenance_date'))}</p>
  </div>
  <p>Regular maintenance helps prevent costly breakdowns and extends the life of your appliances.</p>
  <a href="{self.web_app_url}/calendar"
     style="display: inline-block; background: #2563eb; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px;">
    View Calendar
  </a>
  <p style="color: #6b7280; font-size: 14px; margin-top: 30px;">
    You can change your notification preferences in your account settings.
  </p>
</div>
"""
        return self._send(
            self.sender,
            [reminder["user_email"]],
            f"Maintenance Reminder: {reminder.get('appliance_name')}",
            html_content,
        )

    def send_critical_alert(self, profile: dict, diagnostic: dict, diagnostic_id: str) -> dict:
        """Alert a user about a critical or warning diagnostic result."""
        urgency = diagnostic.get("urgency")
        if urgency not in ALERT_URGENCIES:
            raise NotificationError(f"No alert for urgency {urgency}")
        label, color = ALERT_URGENCIES[urgency]

        appliance = diagnostic.get("appliances")
        property_ = diagnostic.get("properties")
        details = ""
        if appliance:
            details += f"""
    <h2 style="margin: 0 0 10px 0; color: #1f2937;">{_e(appliance.get('name'))}</h2>
    <p style="margin: 5px 0;"><strong>Type:</strong> {_e(appliance.get('type'))}</p>"""
        if property_:
            details += f"""
    <p style="margin: 5px 0;"><strong>Property:</strong> {_e(property_.get('name'))}</p>"""
        cost_min = diagnostic.get("estimated_cost_min")
        cost_max = diagnostic.get("estimated_cost_max")
        cost = ""
        if cost_min and cost_max:
            cost = f"""
    <h3 style="margin: 15px 0 10px 0;">Estimated Cost</h3>
    <p style="margin: 5px 0; font-size: 18px; font-weight: bold; color: #2563eb;">${_e(cost_min)} - ${_e(cost_max)}</p>"""

        html_content = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: {color}; color: white; padding: 20px; border-radius: 8px 8px 0 0;">
    <h1 style="margin: 0;">{label} Alert</h1>
  </div>
  <div style="padding: 20px; border: 2px solid {color}; border-radius: 0 0 8px 8px;">
    <p>Hi {_e(profile.get('full_name')) or 'there'},</p>
    <p>Your recent diagnostic has detected a {urgency} issue that needs your attention:</p>
    <div style="background: #f3f4f6; padding: 20px; border-radius: 8px; margin: 20px 0;">{details}
    <h3 style="color: {color}; margin: 15px 0 10px 0;">Diagnosis</h3>
    <p style="margin: 5px 0;">{_e(diagnostic.get('diagnosis_summary'))}</p>{cost}
    </div>
    <a href="{self.web_app_url}/result/{_e(diagnostic_id)}"
       style="display: inline-block; background: #2563eb; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px;">
      View Full Report
    </a>
  </div>
</div>
"""
        appliance_name = (appliance or {}).get("name") or "Appliance"
        return self._send(
            self.sender,
            [profile["email"]],
            f"{label}: {appliance_name} Needs Attention",
            html_content,
        )

    def send_admin_notification(self, notification_type: str, data: dict) -> dict:
        """Notify the admin mailbox about a billing or system event."""
        timestamp = datetime.now(ADMIN_TIMEZONE).strftime("%A, %B %d, %Y %H:%M:%S %Z")
        subject = ADMIN_SUBJECTS.get(notification_type, "FixSense Admin Notification")
        rows = [
            ("User", data.get("userName")),
            ("Email", data.get("userEmail")),
            ("Plan", data.get("plan")),
        ]
        if data.get("amount") is not None:
            rows.append(("Amount", f"₦{data['amount']:,.0f}"))
        if data.get("errorMessage"):
            rows.append(("Error", data.get("errorMessage")))
        if data.get("details"):
            rows.append(("Details", data.get("details")))

        body = "".join(f"<p><strong>{label}:</strong> {_e(value) or 'N/A'}</p>" for label, value in rows)
        html_content = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1>{subject}</h1>
  <div style="background: #f3f4f6; padding: 20px; border-radius: 8px; margin: 20px 0;">{body}</div>
  <p style="color: #6b7280; font-size: 12px;">Timestamp: {timestamp}</p>
</div>
"""
        return self._send(self.admin_sender, self.admin_emails, subject, html_content)


# Singleton instance
_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Get the email service singleton."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service

"""
User notifications: maintenance reminders and critical diagnostic alerts.

Both respect the profile's ``notification_preferences`` and record every
sent notification in ``notification_logs``.
"""
import logging
from datetime import date, timedelta

from app.repositories.appliance import ApplianceRepository
from app.repositories.diagnostic import DiagnosticRepository
from app.repositories.notification_log import NotificationLogRepository
from app.repositories.profile import ProfileRepository
from app.services.email import ALERT_URGENCIES, EmailService, NotificationError, get_email_service

logger = logging.getLogger(__name__)

REMINDER_WINDOW_DAYS = 7


def _preferences(profile: dict) -> dict:
    return profile.get("notification_preferences") or {}


class NotificationService:

    def __init__(self, email_service: EmailService):
        self.email_service = email_service

    def send_maintenance_reminders(self, appliance_id: str | None = None, today: date | None = None) -> dict:
        """Remind owners about upcoming maintenance.

        With ``appliance_id`` only that appliance is processed. Without it
        (the scheduled run) every appliance due within the next seven days is.
        """
        if appliance_id:
            appliance = ApplianceRepository.get_with_property(appliance_id)
            if not appliance:
                raise NotificationError("Appliance not found")
            appliances = [appliance]
            logger.info(f"Processing maintenance reminder for appliance {appliance_id}")
        else:
            start = today or date.today()
            end = start + timedelta(days=REMINDER_WINDOW_DAYS)
            appliances = ApplianceRepository.list_due_between(start.isoformat(), end.isoformat())
            logger.info(f"Found {len(appliances)} appliances due for maintenance by {end.isoformat()}")

        reminders = []
        for appliance in appliances:
            owner = appliance.get("properties") or {}
            user_id = owner.get("user_id")
            profile = ProfileRepository.get_notification_profile(user_id) if user_id else None
            if not profile or not profile.get("email"):
                logger.warning(f"No profile to remind for appliance {appliance['id']}")
                continue
            if not _preferences(profile).get("maintenance_reminders"):
                logger.info(f"User {user_id} has disabled maintenance reminders")
                continue

            reminder = {
                "user_email": profile["email"],
                "appliance_name": appliance.get("name"),
                "appliance_type": appliance.get("type"),
                "property_name": owner.get("name"),
                "maintenance_date": appliance.get("next_maintenance_date"),
            }
            try:
                self.email_service.send_maintenance_reminder(reminder)
            except Exception as e:
                logger.error(f"Failed to send maintenance reminder for appliance {appliance['id']}: {e}")
                continue

            reminders.append(reminder)
            NotificationLogRepository.create(user_id, "maintenance_reminder", appliance["id"])

        logger.info(f"Maintenance reminders processed: {len(reminders)} sent")
        return {
            "success": True,
            "message": "Maintenance reminders processed successfully",
            "count": len(reminders),
            "reminders": reminders,
        }

    def send_critical_alert(self, user_id: str, diagnostic_id: str) -> dict:
        """Email the user about a critical or warning diagnostic, if they opted in."""
        profile = ProfileRepository.get_notification_profile(user_id)
        if not profile:
            raise NotificationError("User not found")
        if not _preferences(profile).get("critical_diagnostics"):
            logger.info(f"User {user_id} has disabled critical diagnostic alerts")
            return {"message": "Notifications disabled by user"}

        diagnostic = DiagnosticRepository.get_with_details(diagnostic_id)
        if not diagnostic:
            raise NotificationError("Diagnostic not found")
        if diagnostic.get("urgency") not in ALERT_URGENCIES:
            logger.info(f"Diagnostic {diagnostic_id} is {diagnostic.get('urgency')}, no alert sent")
            return {"message": "Not a critical diagnostic"}

        self.email_service.send_critical_alert(profile, diagnostic, diagnostic_id)
        NotificationLogRepository.create(user_id, "critical_diagnostic", diagnostic_id)
        logger.info(f"Critical alert sent to user {user_id} for diagnostic {diagnostic_id}")
        return {"success": True, "message": "Alert processed"}


_notification_service: NotificationService | None = None


def get_notification_service() -> NotificationService:
    """Get the notification service singleton."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService(get_email_service())
    return _notification_service

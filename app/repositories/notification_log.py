from database.connection import get_db, with_retry


class NotificationLogRepository:

    @staticmethod
    @with_retry()
    def create(user_id: str, notification_type: str, related_id: str) -> dict | None:
        """Record that a notification was sent to a user."""
        db = get_db()
        result = db.table("notification_logs").insert({
            "user_id": user_id,
            "notification_type": notification_type,
            "related_id": related_id,
        }).execute()
        return result.data[0] if result and result.data else None

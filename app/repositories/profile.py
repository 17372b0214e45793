from database.connection import get_db, with_retry


class ProfileRepository:

    @staticmethod
    @with_retry()
    def get_by_id(user_id: str) -> dict | None:
        """Get a profile by user ID."""
        db = get_db()
        result = db.table("profiles").select("*").eq("id", user_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_access_fields(user_id: str) -> dict | None:
        """Get the projection used by the business access check."""
        db = get_db()
        result = db.table("profiles").select(
            "user_type, subscription_tier, subscription_status, subscription_end_date, cancellation_effective_at"
        ).eq("id", user_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_onboarding_completed(user_id: str) -> bool:
        """Return the onboarding flag, False when the profile is missing."""
        db = get_db()
        result = db.table("profiles").select("onboarding_completed").eq("id", user_id).limit(1).execute()
        if not result or not result.data:
            return False
        return bool(result.data[0].get("onboarding_completed"))

    @staticmethod
    @with_retry()
    def get_notification_profile(user_id: str) -> dict | None:
        """Get the contact fields and notification preferences of a profile."""
        db = get_db()
        result = db.table("profiles").select(
            "email, full_name, notification_preferences"
        ).eq("id", user_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_all(limit: int = 1000) -> list[dict]:
        """Get all profiles, newest first."""
        db = get_db()
        result = db.table("profiles").select("*").order("created_at", desc=True).limit(limit).execute()
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def update(user_id: str, **kwargs) -> dict | None:
        """Update a profile."""
        db = get_db()
        result = db.table("profiles").update(kwargs).eq("id", user_id).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_due_cancellations(now_iso: str) -> list[dict]:
        """Profiles whose pending cancellation has reached its effective time."""
        db = get_db()
        result = db.table("profiles").select("id, cancellation_effective_at").eq(
            "subscription_status", "pending_cancellation"
        ).lte("cancellation_effective_at", now_iso).execute()
        return result.data if result and result.data else []

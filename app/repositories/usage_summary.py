from database.connection import get_db, with_retry


class UsageSummaryRepository:

    @staticmethod
    @with_retry()
    def get_by_user_id(user_id: str) -> dict | None:
        """Get the precomputed usage summary row for a user."""
        db = get_db()
        result = db.table("user_usage_summary").select("*").eq("user_id", user_id).limit(1).execute()
        return result.data[0] if result and result.data else None

from database.connection import get_db, with_retry


class PropertyRepository:

    @staticmethod
    @with_retry()
    def count(user_id: str) -> int:
        """Count the properties owned by a user."""
        db = get_db()
        result = db.table("properties").select(
            "id", count="exact"
        ).eq("user_id", user_id).execute()
        return result.count if result and result.count is not None else 0

    @staticmethod
    @with_retry()
    def get_ids(user_id: str) -> list[str]:
        """Get the IDs of a user's properties."""
        db = get_db()
        result = db.table("properties").select("id").eq("user_id", user_id).execute()
        return [row["id"] for row in result.data] if result and result.data else []

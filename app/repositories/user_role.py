from database.connection import get_db, with_retry


class UserRoleRepository:

    @staticmethod
    @with_retry()
    def get_roles(user_id: str) -> list[str]:
        """Get every role granted to a user."""
        db = get_db()
        result = db.table("user_roles").select("role").eq("user_id", user_id).execute()
        rows = result.data if result and result.data else []
        return [row["role"] for row in rows if row.get("role")]

    @staticmethod
    @with_retry()
    def get_roles_for_users(user_ids: list[str]) -> dict[str, list[str]]:
        """Get roles for many users at once, keyed by user ID."""
        if not user_ids:
            return {}
        db = get_db()
        result = db.table("user_roles").select("user_id, role").in_("user_id", user_ids).execute()
        roles: dict[str, list[str]] = {}
        for row in result.data if result and result.data else []:
            roles.setdefault(row["user_id"], []).append(row["role"])
        return roles

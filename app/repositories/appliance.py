from database.connection import get_db, with_retry

REMINDER_COLUMNS = "id, name, type, brand, next_maintenance_date, properties(id, name, address, user_id)"


class ApplianceRepository:

    @staticmethod
    @with_retry()
    def list_for_properties(property_ids: list[str]) -> list[dict]:
        """Get every appliance installed in the given properties."""
        if not property_ids:
            return []
        db = get_db()
        result = db.table("appliances").select(
            "id, name, type, purchase_date, last_maintenance_date, property_id, properties(name, address)"
        ).in_("property_id", property_ids).execute()
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def get_maintenance_history(appliance_id: str) -> list[dict]:
        """Get completed maintenance records for an appliance."""
        db = get_db()
        result = db.table("maintenance_history").select(
            "maintenance_date, maintenance_type"
        ).eq("appliance_id", appliance_id).order("maintenance_date").execute()
        return result.data if result and result.data else []

    @staticmethod
    @with_retry()
    def get_with_property(appliance_id: str) -> dict | None:
        """Get an appliance joined with the property that owns it."""
        db = get_db()
        result = db.table("appliances").select(REMINDER_COLUMNS).eq("id", appliance_id).limit(1).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def list_due_between(start_date: str, end_date: str) -> list[dict]:
        """Get appliances whose next maintenance date falls in [start_date, end_date]."""
        db = get_db()
        result = db.table("appliances").select(REMINDER_COLUMNS).gte(
            "next_maintenance_date", start_date
        ).lte("next_maintenance_date", end_date).execute()
        return result.data if result and result.data else []

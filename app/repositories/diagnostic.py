from database.connection import get_db, with_retry


class DiagnosticRepository:

    @staticmethod
    @with_retry()
    def get_with_details(diagnostic_id: str) -> dict | None:
        """Get a diagnostic joined with its appliance and property names."""
        db = get_db()
        result = db.table("diagnostics").select(
            "*, appliances(name, type), properties(name)"
        ).eq("id", diagnostic_id).limit(1).execute()
        return result.data[0] if result and result.data else None

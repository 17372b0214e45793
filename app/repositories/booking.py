from database.connection import get_db, with_retry


class BookingRepository:

    @staticmethod
    @with_retry()
    def get_with_details(booking_id: str) -> dict | None:
        """Get a vendor booking joined with its vendor, appliance and customer."""
        db = get_db()
        result = db.table("vendor_bookings").select(
            "*, vendors(name, contact_email), appliances(name, type), profiles(email, full_name)"
        ).eq("id", booking_id).limit(1).execute()
        return result.data[0] if result and result.data else None

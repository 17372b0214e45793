from database.connection import get_db, with_retry


class TransactionRepository:

    @staticmethod
    @with_retry()
    def create(
        user_id: str,
        reference: str,
        amount: int,
        plan: str,
        status: str = "pending",
        payment_method: str | None = None,
        metadata: dict | None = None,
    ) -> dict | None:
        """Create a transaction record. Amounts are in the gateway's minor unit."""
        db = get_db()
        data = {
            "user_id": user_id,
            "reference": reference,
            "amount": amount,
            "plan": plan,
            "status": status,
            "payment_method": payment_method,
            "metadata": metadata or {},
        }
        result = db.table("transactions").insert(data).execute()
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def get_by_reference(user_id: str, reference: str) -> dict | None:
        """Fetch a user's transaction by gateway reference."""
        db = get_db()
        result = (
            db.table("transactions")
            .select("*")
            .eq("reference", reference)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def update_by_reference(user_id: str, reference: str, **kwargs) -> dict | None:
        """Update a transaction identified by reference."""
        db = get_db()
        result = (
            db.table("transactions")
            .update(kwargs)
            .eq("reference", reference)
            .eq("user_id", user_id)
            .execute()
        )
        return result.data[0] if result and result.data else None

    @staticmethod
    @with_retry()
    def list_all(limit: int = 1000) -> list[dict]:
        """List transactions with the payer's email, newest first."""
        db = get_db()
        result = (
            db.table("transactions")
            .select("*, profiles(email)")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return result.data if result and result.data else []

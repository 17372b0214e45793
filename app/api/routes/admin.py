"""Admin-only API routes for platform administration."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.core.features import effective_subscription, resolve_role
from app.core.guards import SessionContext
from app.core.permissions import require_admin
from app.repositories.profile import ProfileRepository
from app.repositories.transaction import TransactionRepository
from app.repositories.user_role import UserRoleRepository
from app.services.billing import get_billing_service
from app.services.exports import (
    TRANSACTION_EXPORT_COLUMNS,
    USER_EXPORT_COLUMNS,
    csv_filename,
    to_csv,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _users_with_roles() -> list[dict]:
    profiles = ProfileRepository.get_all()
    roles = UserRoleRepository.get_roles_for_users([p["id"] for p in profiles])
    users = []
    for profile in profiles:
        tier, status = effective_subscription(profile)
        users.append({
            **profile,
            "subscription_tier": tier,
            "subscription_status": status,
            "role": resolve_role(roles.get(profile["id"], [])).value,
        })
    return users


def _transactions_for_export() -> list[dict]:
    rows = []
    for transaction in TransactionRepository.list_all():
        payer = transaction.get("profiles") or {}
        rows.append({
            **transaction,
            "user_email": payer.get("email"),
            "amount_naira": (transaction.get("amount") or 0) / 100,
        })
    return rows


def _csv_response(content: str, prefix: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{csv_filename(prefix)}"'},
    )


@router.get("/users")
def list_users(_: SessionContext = Depends(require_admin)):
    """List every user with their effective plan and role (admin only)."""
    return _users_with_roles()


@router.get("/users/export.csv")
def export_users(ctx: SessionContext = Depends(require_admin)):
    """Download all users as CSV (admin only)."""
    logger.info(f"User export requested by {ctx.user_id}")
    return _csv_response(to_csv(_users_with_roles(), USER_EXPORT_COLUMNS), "users")


@router.get("/transactions/export.csv")
def export_transactions(ctx: SessionContext = Depends(require_admin)):
    """Download all transactions as CSV (admin only)."""
    logger.info(f"Transaction export requested by {ctx.user_id}")
    return _csv_response(to_csv(_transactions_for_export(), TRANSACTION_EXPORT_COLUMNS), "transactions")


@router.post("/subscriptions/finalize-cancellations")
def finalize_cancellations(_: SessionContext = Depends(require_admin)):
    """Demote pending cancellations whose paid period has ended (admin only)."""
    finalized = get_billing_service().finalize_due_cancellations()
    return {"finalized": finalized}

"""
Subscription billing on top of Paystack one-time payments.

Subscription lifecycle on a profile:

    none -> active                      (verified payment)
    active -> cancelled                 (cancel; tier drops to free at once)
    active -> pending_cancellation      (cancel with soft_cancel, paid period still running)
    pending_cancellation -> cancelled   (effective time reached)
    cancelled -> active                 (next verified payment)

Tier and status are only ever written here; the access checks read them
through ``effective_subscription``.
"""
import calendar
import logging
from datetime import datetime, timezone

from app.core.config import get_settings
from app.core.features import (
    SubscriptionStatus,
    SubscriptionTier,
    effective_subscription,
    parse_timestamp,
    tier_from_plan,
)
from app.repositories.profile import ProfileRepository
from app.repositories.transaction import TransactionRepository
from app.services.email import EmailService, get_email_service
from app.services.paystack import PaystackClient, generate_reference, get_paystack_client

logger = logging.getLogger(__name__)

NO_ACTIVE_SUBSCRIPTION = "No active subscription to cancel"


class BillingError(Exception):
    """A billing operation failed. The message is safe to show to the user."""


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


class BillingService:

    def __init__(
        self,
        paystack: PaystackClient,
        email_service: EmailService | None = None,
        default_callback_url: str | None = None,
        soft_cancel: bool = False,
    ):
        self.paystack = paystack
        self.email_service = email_service
        self.default_callback_url = default_callback_url
        self.soft_cancel = soft_cancel

    def initialize_payment(
        self,
        user_id: str,
        email: str,
        amount: int,
        plan: str,
        callback_url: str | None = None,
    ) -> dict:
        """Start a Paystack checkout and record it as a pending transaction."""
        if not email or not plan or not amount:
            raise BillingError("email, amount and plan are required")

        reference = generate_reference()
        logger.info(f"Initializing payment for user {user_id}: plan={plan} amount={amount} reference={reference}")

        data = self.paystack.initialize_transaction(
            email=email,
            amount=amount,
            reference=reference,
            metadata={"user_id": user_id, "plan": plan},
            callback_url=callback_url or self.default_callback_url,
        )

        try:
            TransactionRepository.create(
                user_id=user_id,
                reference=reference,
                amount=amount,
                plan=plan,
                status="pending",
                metadata=data,
            )
        except Exception as e:
            # The checkout can still complete; verification records it then
            logger.error(f"Failed to create transaction record for {reference}: {e}")

        return data

    def verify_payment(self, user_id: str, reference: str, now: datetime | None = None) -> dict:
        """Verify a payment with Paystack and activate the paid tier.

        Returns the raw Paystack response whether the payment succeeded or not.
        """
        if not reference:
            raise BillingError("Missing payment reference")

        logger.info(f"Verifying payment for user {user_id}, reference {reference}")
        data = self.paystack.verify_transaction(reference)

        transaction = data.get("data") or {}
        payment_status = "success" if transaction.get("status") == "success" else "failed"
        plan = (transaction.get("metadata") or {}).get("plan") or "Unknown"
        logger.info(f"Payment status for {reference}: {payment_status}")

        self._record_transaction(user_id, reference, transaction, payment_status, plan)

        if payment_status == "success":
            self._activate_subscription(user_id, plan, transaction, now or datetime.now(timezone.utc))

        return data

    def _record_transaction(
        self,
        user_id: str,
        reference: str,
        transaction: dict,
        payment_status: str,
        plan: str,
    ) -> None:
        try:
            existing = TransactionRepository.get_by_reference(user_id, reference)
            if not existing:
                TransactionRepository.create(
                    user_id=user_id,
                    reference=reference,
                    amount=transaction.get("amount") or 0,
                    plan=plan,
                    status=payment_status,
                    payment_method=transaction.get("channel") or "card",
                    metadata=transaction,
                )
            elif existing.get("status") == "pending":
                TransactionRepository.update_by_reference(
                    user_id,
                    reference,
                    status=payment_status,
                    payment_method=transaction.get("channel") or "card",
                    metadata=transaction,
                    updated_at=datetime.now(timezone.utc).isoformat(),
                )
            else:
                logger.info(f"Transaction {reference} already settled as {existing.get('status')}")
        except Exception as e:
            logger.error(f"Failed to record transaction {reference}: {e}")

    def _activate_subscription(self, user_id: str, plan: str, transaction: dict, now: datetime) -> None:
        tier = tier_from_plan(plan)
        end = add_months(now, 1)
        customer = transaction.get("customer") or {}

        updated = ProfileRepository.update(
            user_id,
            subscription_tier=tier.value,
            subscription_status=SubscriptionStatus.ACTIVE.value,
            subscription_start_date=now.isoformat(),
            subscription_end_date=end.isoformat(),
            cancellation_effective_at=None,
            paystack_customer_code=customer.get("customer_code"),
        )
        if not updated:
            logger.error(f"Failed to update profile {user_id} after payment")
            raise BillingError("Payment verified but failed to update subscription")

        logger.info(f"User {user_id} subscription updated to {tier.value}")
        self._notify_admins("new_subscriber", {
            "userEmail": updated.get("email") or (transaction.get("customer") or {}).get("email"),
            "userName": updated.get("full_name"),
            "plan": plan,
            "amount": (transaction.get("amount") or 0) / 100,
        })

    def cancel_subscription(self, user_id: str, now: datetime | None = None) -> dict:
        """Cancel an active subscription.

        The profile drops to free/cancelled immediately. With ``soft_cancel``
        the paid tier is kept until the end of a period that is still running.
        Both Paystack codes are cleared either way.
        """
        now = now or datetime.now(timezone.utc)
        profile = ProfileRepository.get_by_id(user_id)
        if not profile:
            raise BillingError("Profile not found")

        _, status = effective_subscription(profile, now)
        if status != SubscriptionStatus.ACTIVE.value:
            raise BillingError(NO_ACTIVE_SUBSCRIPTION)

        subscription_code = profile.get("paystack_subscription_code")
        if subscription_code:
            self.paystack.disable_subscription(
                subscription_code,
                profile.get("paystack_email_token") or subscription_code,
            )
            logger.info(f"Paystack subscription {subscription_code} disabled for user {user_id}")

        updates = {
            "paystack_customer_code": None,
            "paystack_subscription_code": None,
        }
        period_end = parse_timestamp(profile.get("subscription_end_date"))
        if self.soft_cancel and period_end and period_end > now:
            updates["subscription_status"] = SubscriptionStatus.PENDING_CANCELLATION.value
            updates["cancellation_effective_at"] = period_end.isoformat()
            message = f"Subscription cancelled. You keep access until {period_end.date().isoformat()}."
        else:
            updates["subscription_status"] = SubscriptionStatus.CANCELLED.value
            updates["subscription_tier"] = SubscriptionTier.FREE.value
            updates["cancellation_effective_at"] = None
            message = "Subscription cancelled successfully"

        if not ProfileRepository.update(user_id, **updates):
            raise BillingError("Failed to update subscription")

        logger.info(f"User {user_id} subscription now {updates['subscription_status']}")
        self._notify_admins("churn", {
            "userEmail": profile.get("email"),
            "userName": profile.get("full_name"),
            "plan": profile.get("subscription_tier"),
        })

        return {
            "success": True,
            "message": message,
            "subscription_status": updates["subscription_status"],
            "effective_at": updates["cancellation_effective_at"],
        }

    def finalize_due_cancellations(self, now: datetime | None = None) -> int:
        """Demote every pending cancellation whose effective time has passed."""
        now = now or datetime.now(timezone.utc)
        finalized = 0
        for profile in ProfileRepository.get_due_cancellations(now.isoformat()):
            updated = ProfileRepository.update(
                profile["id"],
                subscription_tier=SubscriptionTier.FREE.value,
                subscription_status=SubscriptionStatus.CANCELLED.value,
                cancellation_effective_at=None,
            )
            if updated:
                finalized += 1
            else:
                logger.error(f"Failed to finalize cancellation for user {profile['id']}")
        if finalized:
            logger.info(f"Finalized {finalized} pending cancellations")
        return finalized

    def _notify_admins(self, notification_type: str, data: dict) -> None:
        if self.email_service is None:
            return
        try:
            self.email_service.send_admin_notification(notification_type, data)
        except Exception as e:
            logger.error(f"Failed to send {notification_type} admin notification: {e}")


_billing_service: BillingService | None = None


def get_billing_service() -> BillingService:
    """Get the billing service singleton."""
    global _billing_service
    if _billing_service is None:
        _billing_service = BillingService(
            get_paystack_client(),
            get_email_service(),
            default_callback_url=f"{get_settings().web_app_url}/settings?tab=billing",
            soft_cancel=get_settings().soft_cancel_enabled,
        )
    return _billing_service

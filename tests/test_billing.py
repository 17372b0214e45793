from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from app.services.billing import NO_ACTIVE_SUBSCRIPTION, BillingError, BillingService, add_months

NOW = datetime(2025, 1, 31, 10, 0, tzinfo=timezone.utc)


def paystack_response(status="success", plan="Pro"):
    return {
        "status": True,
        "message": "Verification successful",
        "data": {
            "status": status,
            "amount": 500000,
            "channel": "card",
            "metadata": {"plan": plan},
            "customer": {"customer_code": "CUS_123", "email": "ada@example.com"},
        },
    }


@pytest.fixture
def paystack():
    return MagicMock()


@pytest.fixture
def email_service():
    return MagicMock()


@pytest.fixture
def service(paystack, email_service):
    return BillingService(paystack, email_service)


@pytest.fixture
def profiles():
    with patch("app.services.billing.ProfileRepository") as repo:
        repo.update.return_value = {"id": "user-1", "email": "ada@example.com"}
        yield repo


@pytest.fixture
def transactions():
    with patch("app.services.billing.TransactionRepository") as repo:
        repo.get_by_reference.return_value = None
        yield repo


def test_add_months_clamps_day():
    assert add_months(NOW, 1) == datetime(2025, 2, 28, 10, 0, tzinfo=timezone.utc)
    assert add_months(datetime(2024, 12, 15), 1) == datetime(2025, 1, 15)


class TestVerifyPayment:

    def test_success_activates_tier(self, service, paystack, profiles, transactions):
        paystack.verify_transaction.return_value = paystack_response(plan="Host Business")

        data = service.verify_payment("user-1", "txn_1", now=NOW)

        assert data == paystack_response(plan="Host Business")
        updates = profiles.update.call_args.kwargs
        assert updates["subscription_tier"] == "business"
        assert updates["subscription_status"] == "active"
        assert updates["subscription_end_date"] == "2025-02-28T10:00:00+00:00"
        assert updates["paystack_customer_code"] == "CUS_123"
        transactions.create.assert_called_once()
        assert transactions.create.call_args.kwargs["status"] == "success"

    def test_unknown_plan_maps_to_free(self, service, paystack, profiles, transactions):
        paystack.verify_transaction.return_value = paystack_response(plan="Mystery")
        service.verify_payment("user-1", "txn_1", now=NOW)
        assert profiles.update.call_args.kwargs["subscription_tier"] == "free"

    def test_failed_payment_is_returned_without_activation(self, service, paystack, profiles, transactions):
        paystack.verify_transaction.return_value = paystack_response(status="failed")

        data = service.verify_payment("user-1", "txn_1", now=NOW)

        assert data["data"]["status"] == "failed"
        profiles.update.assert_not_called()
        assert transactions.create.call_args.kwargs["status"] == "failed"

    def test_pending_transaction_is_updated_in_place(self, service, paystack, profiles, transactions):
        transactions.get_by_reference.return_value = {"status": "pending"}
        paystack.verify_transaction.return_value = paystack_response()

        service.verify_payment("user-1", "txn_1", now=NOW)

        transactions.create.assert_not_called()
        assert transactions.update_by_reference.call_args.kwargs["status"] == "success"

    def test_profile_update_failure_is_reported(self, service, paystack, profiles, transactions):
        paystack.verify_transaction.return_value = paystack_response()
        profiles.update.return_value = None

        with pytest.raises(BillingError, match="failed to update subscription"):
            service.verify_payment("user-1", "txn_1", now=NOW)

    def test_admin_notification_failure_does_not_fail_payment(
        self, service, paystack, email_service, profiles, transactions
    ):
        paystack.verify_transaction.return_value = paystack_response()
        email_service.send_admin_notification.side_effect = RuntimeError("resend down")

        service.verify_payment("user-1", "txn_1", now=NOW)

        email_service.send_admin_notification.assert_called_once()


class TestCancelSubscription:

    def test_cancel_after_period_end_demotes_immediately(self, service, paystack, profiles):
        profiles.get_by_id.return_value = {
            "id": "user-1",
            "subscription_tier": "pro",
            "subscription_status": "active",
            "subscription_end_date": "2025-01-01T00:00:00+00:00",
            "paystack_subscription_code": "SUB_1",
            "paystack_email_token": "tok_1",
        }

        result = service.cancel_subscription("user-1", now=NOW)

        assert result["subscription_status"] == "cancelled"
        paystack.disable_subscription.assert_called_once_with("SUB_1", "tok_1")
        updates = profiles.update.call_args.kwargs
        assert updates["subscription_tier"] == "free"
        assert updates["subscription_status"] == "cancelled"
        assert updates["paystack_customer_code"] is None
        assert updates["paystack_subscription_code"] is None

    def test_cancel_during_period_demotes_immediately_by_default(self, service, paystack, profiles):
        profiles.get_by_id.return_value = {
            "id": "user-1",
            "subscription_tier": "pro",
            "subscription_status": "active",
            "subscription_end_date": "2025-02-10T00:00:00+00:00",
            "paystack_customer_code": "CUS_1",
            "paystack_subscription_code": "SUB_1",
        }

        result = service.cancel_subscription("user-1", now=NOW)

        assert result["subscription_status"] == "cancelled"
        assert result["effective_at"] is None
        assert profiles.update.call_args.kwargs == {
            "paystack_customer_code": None,
            "paystack_subscription_code": None,
            "subscription_status": "cancelled",
            "subscription_tier": "free",
            "cancellation_effective_at": None,
        }
        paystack.disable_subscription.assert_called_once_with("SUB_1", "SUB_1")

    def test_soft_cancel_keeps_tier_until_period_end(self, paystack, email_service, profiles):
        service = BillingService(paystack, email_service, soft_cancel=True)
        profiles.get_by_id.return_value = {
            "id": "user-1",
            "subscription_tier": "business",
            "subscription_status": "active",
            "subscription_end_date": "2025-02-15T00:00:00+00:00",
            "paystack_customer_code": "CUS_1",
        }

        result = service.cancel_subscription("user-1", now=NOW)

        assert result["subscription_status"] == "pending_cancellation"
        assert result["effective_at"] == "2025-02-15T00:00:00+00:00"
        updates = profiles.update.call_args.kwargs
        assert "subscription_tier" not in updates
        assert updates["paystack_customer_code"] is None
        assert updates["paystack_subscription_code"] is None
        paystack.disable_subscription.assert_not_called()

    def test_soft_cancel_after_period_end_still_demotes(self, paystack, profiles):
        service = BillingService(paystack, soft_cancel=True)
        profiles.get_by_id.return_value = {
            "id": "user-1",
            "subscription_tier": "pro",
            "subscription_status": "active",
            "subscription_end_date": "2025-01-01T00:00:00+00:00",
        }

        assert service.cancel_subscription("user-1", now=NOW)["subscription_status"] == "cancelled"
        assert profiles.update.call_args.kwargs["subscription_tier"] == "free"

    @pytest.mark.parametrize("status", ["none", "cancelled", "pending_cancellation"])
    def test_second_cancel_is_rejected(self, service, profiles, status):
        profiles.get_by_id.return_value = {
            "id": "user-1",
            "subscription_tier": "pro",
            "subscription_status": status,
            "cancellation_effective_at": "2025-02-15T00:00:00+00:00",
        }

        with pytest.raises(BillingError, match=NO_ACTIVE_SUBSCRIPTION):
            service.cancel_subscription("user-1", now=NOW)
        profiles.update.assert_not_called()

    def test_missing_profile(self, service, profiles):
        profiles.get_by_id.return_value = None
        with pytest.raises(BillingError, match="Profile not found"):
            service.cancel_subscription("user-1", now=NOW)


def test_finalize_due_cancellations(service, profiles):
    profiles.get_due_cancellations.return_value = [{"id": "user-1"}, {"id": "user-2"}]
    profiles.update.side_effect = [{"id": "user-1"}, None]

    assert service.finalize_due_cancellations(NOW) == 1
    first = profiles.update.call_args_list[0]
    assert first.args == ("user-1",)
    assert first.kwargs["subscription_status"] == "cancelled"
    assert first.kwargs["subscription_tier"] == "free"


class TestInitializePayment:

    def test_records_pending_transaction(self, paystack, transactions):
        service = BillingService(paystack, default_callback_url="https://fixsense.app/settings?tab=billing")
        paystack.initialize_transaction.return_value = {"status": True, "data": {"authorization_url": "https://checkout"}}

        data = service.initialize_payment("user-1", "ada@example.com", 500000, "Pro")

        assert data["data"]["authorization_url"] == "https://checkout"
        call = paystack.initialize_transaction.call_args.kwargs
        assert call["metadata"] == {"user_id": "user-1", "plan": "Pro"}
        assert call["callback_url"] == "https://fixsense.app/settings?tab=billing"
        assert call["reference"].startswith("txn_")
        created = transactions.create.call_args.kwargs
        assert created["status"] == "pending"
        assert created["reference"] == call["reference"]

    def test_insert_failure_is_not_fatal(self, service, paystack, transactions):
        paystack.initialize_transaction.return_value = {"status": True, "data": {}}
        transactions.create.side_effect = RuntimeError("insert failed")

        assert service.initialize_payment("user-1", "ada@example.com", 500000, "Pro") == {"status": True, "data": {}}

    def test_missing_plan(self, service, paystack):
        with pytest.raises(BillingError):
            service.initialize_payment("user-1", "ada@example.com", 500000, "")
        paystack.initialize_transaction.assert_not_called()

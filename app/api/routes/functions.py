"""Function-style handlers called directly by the web app.

Every failure is reported as HTTP 500 with ``{"error": message}``; the
frontend shows the message in a toast.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from fastapi.concurrency import run_in_threadpool

from app.core.security import authenticate_bearer
from app.domain.schemas import (
    BookingNotificationRequest,
    CriticalAlertRequest,
    InitializeTransactionRequest,
    MaintenanceReminderRequest,
    VerifyTransactionRequest,
)
from app.repositories.booking import BookingRepository
from app.services.billing import get_billing_service
from app.services.email import NotificationError, get_email_service
from app.services.notifications import get_notification_service

logger = logging.getLogger(__name__)

router = APIRouter()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def _ok(body: dict) -> JSONResponse:
    return JSONResponse(body, status_code=200, headers=CORS_HEADERS)


def _error(name: str, error: Exception) -> JSONResponse:
    logger.error(f"Error in {name}: {error}")
    return JSONResponse({"error": _message(error)}, status_code=500, headers=CORS_HEADERS)


def _message(error: Exception) -> str:
    if isinstance(error, ValidationError):
        fields = ", ".join(str(e["loc"][-1]) for e in error.errors() if e.get("loc"))
        return f"Invalid request: {fields}" if fields else "Invalid request"
    return str(error) or error.__class__.__name__


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise ValueError("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValueError("Invalid JSON body")
    return body


@router.post("/paystack-verify-transaction")
async def paystack_verify_transaction(
    request: Request,
    authorization: Optional[str] = Header(None),
):
    """Verify a Paystack payment and activate the paid plan.

    Returns the Paystack verification response unchanged, including when
    Paystack reports the payment as failed.
    """
    try:
        user = authenticate_bearer(authorization)
        payload = VerifyTransactionRequest(**await _json_body(request))
        data = await run_in_threadpool(get_billing_service().verify_payment, user["sub"], payload.reference)
        return _ok(data)
    except Exception as e:
        return _error("paystack-verify-transaction", e)


@router.post("/paystack-initialize-transaction")
async def paystack_initialize_transaction(
    request: Request,
    authorization: Optional[str] = Header(None),
):
    """Start a Paystack checkout for a plan."""
    try:
        user = authenticate_bearer(authorization)
        payload = InitializeTransactionRequest(**await _json_body(request))
        data = await run_in_threadpool(
            get_billing_service().initialize_payment,
            user_id=user["sub"],
            email=payload.email,
            amount=payload.amount,
            plan=payload.plan,
            callback_url=payload.callback_url,
        )
        return _ok(data)
    except Exception as e:
        return _error("paystack-initialize-transaction", e)


@router.post("/paystack-cancel-subscription")
def paystack_cancel_subscription(authorization: Optional[str] = Header(None)):
    """Cancel the caller's subscription."""
    try:
        user = authenticate_bearer(authorization)
        result = get_billing_service().cancel_subscription(user["sub"])
        return _ok(result)
    except Exception as e:
        return _error("paystack-cancel-subscription", e)


@router.post("/send-booking-notification")
async def send_booking_notification(request: Request):
    """Email the customer and vendor about a booking change."""
    try:
        payload = BookingNotificationRequest(**await _json_body(request))
        booking = await run_in_threadpool(BookingRepository.get_with_details, payload.bookingId)
        if not booking:
            raise NotificationError("Booking not found")

        await run_in_threadpool(get_email_service().send_booking_notification, booking, payload.action)
        logger.info(f"Booking notifications sent for booking {payload.bookingId}")
        return _ok({"success": True, "message": "Notifications sent"})
    except Exception as e:
        return _error("send-booking-notification", e)


@router.post("/send-maintenance-reminder")
async def send_maintenance_reminder(request: Request):
    """Send maintenance reminders for one appliance, or for everything due this week.

    The scheduled run posts no body.
    """
    try:
        try:
            body = await _json_body(request)
        except ValueError:
            logger.info("Running maintenance reminders as a scheduled job")
            body = {}
        payload = MaintenanceReminderRequest(**body)
        result = await run_in_threadpool(get_notification_service().send_maintenance_reminders, payload.applianceId)
        return _ok(result)
    except Exception as e:
        return _error("send-maintenance-reminder", e)


@router.post("/send-critical-alert")
async def send_critical_alert(request: Request):
    """Email a user about a critical or warning diagnostic."""
    try:
        payload = CriticalAlertRequest(**await _json_body(request))
        result = await run_in_threadpool(
            get_notification_service().send_critical_alert, payload.userId, payload.diagnosticId
        )
        return _ok(result)
    except Exception as e:
        return _error("send-critical-alert", e)

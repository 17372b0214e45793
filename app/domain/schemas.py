from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


# ============================================
# Function handler payloads
# ============================================

class VerifyTransactionRequest(BaseModel):
    reference: str = Field(..., min_length=1)


class InitializeTransactionRequest(BaseModel):
    email: EmailStr
    amount: int = Field(..., gt=0)  # kobo
    plan: str = Field(..., min_length=1)
    callback_url: Optional[str] = None


class BookingNotificationRequest(BaseModel):
    bookingId: str = Field(..., min_length=1)
    action: str = Field(default="update")


class MaintenanceReminderRequest(BaseModel):
    applianceId: Optional[str] = None


class CriticalAlertRequest(BaseModel):
    userId: str = Field(..., min_length=1)
    diagnosticId: str = Field(..., min_length=1)


# ============================================
# Profile Schemas
# ============================================

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    onboarding_completed: Optional[bool] = None


class ProfileResponse(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    user_type: Optional[str] = None
    country: Optional[str] = None
    currency: Optional[str] = None
    subscription_tier: str = "free"
    subscription_status: str = "none"
    subscription_start_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    cancellation_effective_at: Optional[datetime] = None
    onboarding_completed: bool = False
    created_at: Optional[datetime] = None


# ============================================
# Access / Usage Schemas
# ============================================

class GuardDecisionResponse(BaseModel):
    state: str
    allowed: bool
    redirect_to: Optional[str] = None
    upgrade_url: Optional[str] = None


class UsageCheckResponse(BaseModel):
    can_use: bool
    is_at_limit: bool
    is_locked: bool
    remaining: int
    usage: int
    limit: int


class UsageResponse(BaseModel):
    tier: str
    loaded: bool
    current_period_start: Optional[str] = None
    current_period_end: Optional[str] = None
    checks: dict[str, UsageCheckResponse]


# ============================================
# Pricing Schemas
# ============================================

class RepairEstimateResponse(BaseModel):
    min: int
    max: int
    currency: str
    country_name: str
    is_default_pricing: bool
    complexity: str
    formatted: str


class SavingsEstimateResponse(BaseModel):
    currency: str
    symbol: str
    scam_alerts: int
    average_per_alert: int
    total: int
    formatted: str

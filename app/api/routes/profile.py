from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Depends

from app.core.features import effective_subscription
from app.core.permissions import get_current_user_profile
from app.core.usage import usage_cache
from app.domain.schemas import ProfileResponse, ProfileUpdate
from app.repositories.profile import ProfileRepository

router = APIRouter()


def _present(profile: dict) -> ProfileResponse:
    tier, status = effective_subscription(profile, datetime.now(timezone.utc))
    return ProfileResponse(**{**profile, "subscription_tier": tier, "subscription_status": status})


@router.get("/me", response_model=ProfileResponse)
def get_my_profile(profile: dict = Depends(get_current_user_profile)):
    """Get the current user's profile with its effective subscription."""
    return _present(profile)


@router.put("/me", response_model=ProfileResponse)
def update_my_profile(
    data: ProfileUpdate,
    profile: dict = Depends(get_current_user_profile),
):
    """Update the current user's editable profile fields."""
    update_data = data.model_dump(exclude_unset=True)
    if not update_data:
        return _present(profile)

    if "currency" in update_data and update_data["currency"]:
        update_data["currency"] = update_data["currency"].upper()
    if "country" in update_data and update_data["country"]:
        update_data["country"] = update_data["country"].upper()

    updated = ProfileRepository.update(profile["id"], **update_data)
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to update profile")

    usage_cache.invalidate(profile["id"])
    return _present(updated)

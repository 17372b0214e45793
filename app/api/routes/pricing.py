from fastapi import APIRouter, Query

from app.domain.schemas import RepairEstimateResponse, SavingsEstimateResponse
from app.services.currency import calculate_repair_cost, determine_complexity, estimate_savings

router = APIRouter()


@router.get("/estimate", response_model=RepairEstimateResponse)
def repair_estimate(
    country: str = Query(..., min_length=2, max_length=2),
    summary: str | None = Query(None),
    causes: list[str] = Query([]),
    instructions: str | None = Query(None),
):
    """Estimate a repair cost range in the country's currency."""
    complexity = determine_complexity(summary, causes, instructions)
    estimate = calculate_repair_cost(complexity, country)
    return {
        "min": estimate.min,
        "max": estimate.max,
        "currency": estimate.currency,
        "country_name": estimate.country_name,
        "is_default_pricing": estimate.is_default_pricing,
        "complexity": estimate.complexity.value,
        "formatted": f"{estimate.currency}{estimate.min:,} - {estimate.currency}{estimate.max:,}",
    }


@router.get("/savings", response_model=SavingsEstimateResponse)
def savings_estimate(
    country: str = Query(..., min_length=2, max_length=2),
    scam_alerts: int = Query(0, ge=0),
):
    """Estimate money saved by avoided repair overcharges."""
    return estimate_savings(country, scam_alerts)

"""
Currency formatting, country-aware repair cost estimates and savings estimates.

Repair costs start from a USD base range per repair complexity, are scaled by
a per-country market multiplier, converted with a static exchange rate and
rounded to market-friendly figures. Exchange rates are updated by hand.
"""
from dataclasses import dataclass
from enum import Enum

DEFAULT_CURRENCY = "NGN"

# code -> symbol
CURRENCY_SYMBOLS: dict[str, str] = {
    "NGN": "₦",
    "USD": "$",
    "GBP": "£",
    "EUR": "€",
    "CAD": "C$",
    "AUD": "A$",
    "ZAR": "R",
    "KES": "KSh",
    "GHS": "₵",
    "INR": "₹",
    "AED": "د.إ",
}


def get_currency_symbol(currency_code: str | None = None) -> str:
    return CURRENCY_SYMBOLS.get(currency_code or DEFAULT_CURRENCY, CURRENCY_SYMBOLS[DEFAULT_CURRENCY])


def format_price(amount: float, currency_code: str | None = None) -> str:
    """Symbol plus a thousands-grouped whole number, e.g. ₦25,000."""
    return f"{get_currency_symbol(currency_code)}{round(amount):,}"


def format_price_range(min_amount: float, max_amount: float, currency_code: str | None = None) -> str:
    return f"{format_price(min_amount, currency_code)} - {format_price(max_amount, currency_code)}"


class RepairComplexity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


# Base repair costs in USD
BASE_REPAIR_COSTS: dict[RepairComplexity, tuple[int, int]] = {
    RepairComplexity.MINOR: (20, 50),
    RepairComplexity.MODERATE: (60, 150),
    RepairComplexity.MAJOR: (180, 400),
}


@dataclass(frozen=True)
class CountryPricing:
    name: str
    symbol: str
    multiplier: float
    exchange_rate: float


COUNTRY_PRICING: dict[str, CountryPricing] = {
    # Africa
    "NG": CountryPricing("Nigeria", "₦", 0.35, 1650),
    "GH": CountryPricing("Ghana", "₵", 0.45, 15.5),
    "KE": CountryPricing("Kenya", "KSh", 0.45, 155),
    "ZA": CountryPricing("South Africa", "R", 0.65, 19),
    # Europe
    "GB": CountryPricing("United Kingdom", "£", 1.2, 0.79),
    "DE": CountryPricing("Germany", "€", 1.2, 0.92),
    "FR": CountryPricing("France", "€", 1.2, 0.92),
    "IT": CountryPricing("Italy", "€", 1.15, 0.92),
    "ES": CountryPricing("Spain", "€", 1.1, 0.92),
    # North America
    "US": CountryPricing("United States", "$", 1.4, 1),
    "CA": CountryPricing("Canada", "C$", 1.4, 1.35),
    # Asia
    "IN": CountryPricing("India", "₹", 0.4, 83),
    "CN": CountryPricing("China", "¥", 0.55, 7.2),
    "JP": CountryPricing("Japan", "¥", 1.3, 148),
    # Middle East
    "AE": CountryPricing("United Arab Emirates", "د.إ", 1.1, 3.67),
    "SA": CountryPricing("Saudi Arabia", "﷼", 1.05, 3.75),
    # Oceania
    "AU": CountryPricing("Australia", "A$", 1.35, 1.52),
}

DEFAULT_PRICING = CountryPricing("Global Average", "$", 1.0, 1)

_HIGH_VALUE_COUNTRIES = frozenset({"US", "GB", "DE", "FR", "CA", "AU", "IT", "ES"})
_MEDIUM_VALUE_COUNTRIES = frozenset({"ZA", "AE", "SA"})

MINOR_KEYWORDS = (
    "clean", "cleaning", "reset", "loose", "tighten", "adjust",
    "reconnect", "cable", "filter", "dust", "debris", "clog",
    "unplug", "replug", "simple", "quick", "straightforward",
)

MAJOR_KEYWORDS = (
    "replace", "replacement", "component", "motor", "compressor",
    "circuit", "board", "electrical", "mechanical", "wiring",
    "professional", "technician", "specialist", "complex",
    "expensive", "major", "significant", "extensive",
)


def _round_to(value: float, step: int) -> int:
    # Half-up, matching how prices are quoted
    return int((value / step) + 0.5) * step


def round_to_market_price(value: float, country_code: str) -> int:
    """Round to figures a local technician would quote."""
    if country_code in _HIGH_VALUE_COUNTRIES:
        return _round_to(value, 5) if value < 100 else _round_to(value, 10)
    if country_code in _MEDIUM_VALUE_COUNTRIES:
        return _round_to(value, 50)
    if value > 10000:
        return _round_to(value, 1000)
    if value > 1000:
        return _round_to(value, 100)
    return _round_to(value, 50)


def determine_complexity(
    diagnosis_summary: str | None = None,
    probable_causes: list[str] | None = None,
    fix_instructions: str | None = None,
) -> RepairComplexity:
    """Classify a diagnosis by counting minor and major repair keywords."""
    text = " ".join([
        (diagnosis_summary or "").lower(),
        " ".join(probable_causes or []).lower(),
        (fix_instructions or "").lower(),
    ])
    minor = sum(1 for keyword in MINOR_KEYWORDS if keyword in text)
    major = sum(1 for keyword in MAJOR_KEYWORDS if keyword in text)

    if major >= 2:
        return RepairComplexity.MAJOR
    if minor >= 2 and major == 0:
        return RepairComplexity.MINOR
    return RepairComplexity.MODERATE


@dataclass(frozen=True)
class RepairCostEstimate:
    min: int
    max: int
    currency: str
    country_name: str
    is_default_pricing: bool
    complexity: RepairComplexity


def calculate_repair_cost(complexity: RepairComplexity, country_code: str) -> RepairCostEstimate:
    base_min, base_max = BASE_REPAIR_COSTS.get(complexity, BASE_REPAIR_COSTS[RepairComplexity.MODERATE])
    country_code = (country_code or "").upper()
    pricing = COUNTRY_PRICING.get(country_code, DEFAULT_PRICING)

    min_local = base_min * pricing.multiplier * pricing.exchange_rate
    max_local = base_max * pricing.multiplier * pricing.exchange_rate

    return RepairCostEstimate(
        min=round_to_market_price(min_local, country_code),
        max=round_to_market_price(max_local, country_code),
        currency=pricing.symbol,
        country_name=pricing.name,
        is_default_pricing=country_code not in COUNTRY_PRICING,
        complexity=complexity,
    )


@dataclass(frozen=True)
class CountrySavings:
    currency: str
    symbol: str
    average_savings_per_alert: int


# Average overcharge avoided per scam alert, in local currency
COUNTRY_SAVINGS: dict[str, CountrySavings] = {
    "NG": CountrySavings("NGN", "₦", 25000),
    "GH": CountrySavings("GHS", "₵", 450),
    "SN": CountrySavings("XOF", "CFA", 40000),
    "CI": CountrySavings("XOF", "CFA", 45000),
    "KE": CountrySavings("KES", "KSh", 12000),
    "TZ": CountrySavings("TZS", "TSh", 300000),
    "UG": CountrySavings("UGX", "USh", 400000),
    "RW": CountrySavings("RWF", "FRw", 80000),
    "ET": CountrySavings("ETB", "Br", 6000),
    "ZA": CountrySavings("ZAR", "R", 1500),
    "BW": CountrySavings("BWP", "P", 1200),
    "ZM": CountrySavings("ZMW", "ZK", 2500),
    "EG": CountrySavings("EGP", "£", 3000),
    "MA": CountrySavings("MAD", "د.م.", 800),
    "US": CountrySavings("USD", "$", 200),
    "CA": CountrySavings("CAD", "C$", 250),
    "MX": CountrySavings("MXN", "$", 2500),
    "GB": CountrySavings("GBP", "£", 150),
    "DE": CountrySavings("EUR", "€", 180),
    "FR": CountrySavings("EUR", "€", 180),
    "IT": CountrySavings("EUR", "€", 170),
    "ES": CountrySavings("EUR", "€", 160),
    "NL": CountrySavings("EUR", "€", 175),
    "PL": CountrySavings("PLN", "zł", 600),
}

DEFAULT_SAVINGS = COUNTRY_SAVINGS["US"]


def estimate_savings(country_code: str | None, scam_alerts: int) -> dict:
    """Estimate money saved by avoided overcharges."""
    savings = COUNTRY_SAVINGS.get((country_code or "").upper(), DEFAULT_SAVINGS)
    total = max(0, scam_alerts) * savings.average_savings_per_alert
    return {
        "currency": savings.currency,
        "symbol": savings.symbol,
        "scam_alerts": max(0, scam_alerts),
        "average_per_alert": savings.average_savings_per_alert,
        "total": total,
        "formatted": f"{savings.symbol}{total:,}",
    }

import os
from functools import lru_cache

import requests
from pydantic_settings import BaseSettings

DOPPLER_SECRETS_URL = "https://api.doppler.com/v3/configs/config/secrets/download"


def load_doppler_secrets(token: str | None = None) -> int:
    """Copy the secrets of the Doppler config behind ``DOPPLER_TOKEN`` into os.environ.

    Variables already present in the environment are left alone. Runs before
    ``Settings`` is built, i.e. before logging is configured, so it reports
    with print. Returns the number of secrets copied.
    """
    token = token or os.getenv("DOPPLER_TOKEN")
    if not token:
        return 0

    try:
        response = requests.get(DOPPLER_SECRETS_URL, params={"format": "json"}, auth=(token, ""), timeout=30)
        response.raise_for_status()
        secrets = response.json()
    except (requests.RequestException, ValueError) as e:
        print(f"Warning: Failed to load Doppler secrets: {e}")
        return 0

    missing = {key: str(value) for key, value in secrets.items() if key not in os.environ}
    os.environ.update(missing)
    print(f"Loaded {len(missing)} of {len(secrets)} secrets from Doppler")
    return len(missing)


load_doppler_secrets()


class Settings(BaseSettings):
    environment: str = "development"

    # Supabase (service role; bypasses row-level security)
    supabase_url: str = ""
    supabase_secret_key: str = ""
    jwt_audience: str = "authenticated"
    jwks_timeout: float = 10.0

    # Paystack (server-side only, never sent to the browser)
    paystack_secret_key: str = ""
    paystack_base_url: str = "https://api.paystack.co"
    paystack_timeout: float = 30.0

    # Resend
    resend_api_key: str = ""
    email_from: str = "FixSense <onboarding@resend.dev>"
    admin_email_from: str = "FixSense <notifications@resend.dev>"
    admin_emails: list[str] = ["admin@fixsense.com"]

    # Web app origins accepted in production (fixsense.app and its subdomains)
    web_app_url: str = "http://localhost:5173"
    cors_origin_regex: str = r"^https://([a-z0-9-]+\.)?fixsense\.app$"

    # Usage snapshots are re-read after this many seconds
    usage_refresh_seconds: float = 10.0

    # Keep the paid tier until the period ends when a subscription is cancelled
    soft_cancel_enabled: bool = False

    # Push invalidation of usage snapshots over Supabase realtime
    realtime_enabled: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

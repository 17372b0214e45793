import os

import pytest

# Keep settings deterministic and away from real services
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_123")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.pop("DOPPLER_TOKEN", None)


@pytest.fixture(autouse=True)
def clear_usage_cache():
    from app.core.usage import usage_cache

    usage_cache.clear()
    yield
    usage_cache.clear()


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from app.main import app

    return TestClient(app)


@pytest.fixture
def principal():
    return {"sub": "user-1", "email": "ada@example.com", "aud": "authenticated"}

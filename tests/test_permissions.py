from unittest.mock import patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app.core.guards import SessionContext
from app.core.permissions import (
    get_optional_principal,
    require_admin,
    require_business,
    require_onboarded,
)


def build_app(principal):
    app = FastAPI()

    @app.get("/admin-only")
    def admin_only(ctx: SessionContext = Depends(require_admin)):
        return {"user_id": ctx.user_id}

    @app.get("/business-only")
    def business_only(ctx: SessionContext = Depends(require_business)):
        return {"user_id": ctx.user_id}

    @app.get("/onboarded-only")
    def onboarded_only(ctx: SessionContext = Depends(require_onboarded)):
        return {"user_id": ctx.user_id}

    app.dependency_overrides[get_optional_principal] = lambda: principal
    return TestClient(app)


@pytest.fixture
def profiles():
    with patch("app.core.guards.ProfileRepository") as repo:
        yield repo


@pytest.fixture
def roles():
    with patch("app.core.guards.UserRoleRepository") as repo:
        repo.get_roles.return_value = []
        yield repo


@pytest.mark.parametrize("path", ["/admin-only", "/business-only", "/onboarded-only"])
def test_anonymous_gets_401_with_sign_in_redirect(path, profiles, roles):
    response = build_app(None).get(path)
    assert response.status_code == 401
    assert response.json()["detail"]["redirect_to"] == "/auth"


def test_non_admin_gets_403(principal, roles):
    roles.get_roles.return_value = ["business"]
    response = build_app(principal).get("/admin-only")
    assert response.status_code == 403
    assert response.json()["detail"]["redirect_to"] == "/unauthorized"


def test_admin_passes(principal, roles):
    roles.get_roles.return_value = ["admin"]
    assert build_app(principal).get("/admin-only").json() == {"user_id": "user-1"}


def test_business_denial_has_upgrade_payload(principal, profiles):
    profiles.get_access_fields.return_value = {"user_type": "homeowner", "subscription_tier": "free"}
    response = build_app(principal).get("/business-only")
    assert response.status_code == 403
    detail = response.json()["detail"]
    assert detail["code"] == "BUSINESS_PLAN_REQUIRED"
    assert detail["upgrade_url"] == "/settings?tab=billing"


def test_business_user_type_passes(principal, profiles):
    profiles.get_access_fields.return_value = {"user_type": "business"}
    assert build_app(principal).get("/business-only").status_code == 200


def test_onboarding_incomplete_gets_403(principal, profiles):
    profiles.get_onboarding_completed.return_value = False
    response = build_app(principal).get("/onboarded-only")
    assert response.status_code == 403
    assert response.json()["detail"]["redirect_to"] == "/onboarding"


def test_onboarding_exempt_path_passes(principal, profiles):
    profiles.get_onboarding_completed.return_value = False
    response = build_app(principal).get("/onboarded-only", params={"path": "/onboarding"})
    assert response.status_code == 200

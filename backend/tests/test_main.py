"""Smoke tests for the application wiring."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import inspect

from reviewdesk.core import database as db_module
from reviewdesk.core.config import settings
from reviewdesk.main import app


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


class TestRoot:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {
            "app": settings.APP_NAME,
            "version": settings.version,
            "domain": settings.APP_DOMAIN,
            "status": "running",
        }

    def test_unknown_route_uses_error_shape(self, client):
        response = client.get("/v1/nothing-here")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}


class TestOpenAPI:
    def test_routes_are_mounted(self, client):
        paths = client.get("/openapi.json").json()["paths"]
        for path in (
            "/v1/subscriptions/",
            "/v1/subscriptions/{subscription_id}/refund",
            "/v1/webhooks/{provider}",
            "/v1/payment_methods/keepz",
            "/v1/invoices/",
            "/v1/campaigns/visits",
            "/v1/reviews/analysis",
            "/v1/reviews/reply",
            "/v1/google/business",
            "/v1/google/oauth/callback",
            "/v1/account",
        ):
            assert path in paths


class TestInitDb:
    def test_creates_tables(self):
        db_module.init_db()
        tables = set(inspect(db_module.engine).get_table_names())
        assert {"subscriptions", "user_plans", "saved_reviews", "invoices"} <= tables

import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from criblink.main import app
from criblink.api.routers.listings import get_current_caller, get_search_service
from criblink.models.search import Caller, CallerRole
from criblink.modules.search.service import ListingSearchError, ListingSearchService

client = TestClient(app)


@pytest.fixture
def executor(make_executor):
    return make_executor(
        rows=[{"property_id": 1, "title": "3 bed flat", "location": "Lekki", "state": "Lagos",
               "price": 45000000, "status": "available", "effective_priority": 0}],
        total=25,
    )


@pytest.fixture
def override_service(executor, search_config, test_settings):
    """Route the endpoint to a service backed by the fake executor"""
    app.dependency_overrides[get_search_service] = lambda: ListingSearchService(
        executor, search_config=search_config, config=test_settings
    )
    yield executor
    app.dependency_overrides.clear()


class TestListingsAPI:
    """Test cases for the listings endpoint"""

    def test_get_listings(self, override_service):
        response = client.get("/api/listings/", params={"search": "3 bedroom flat in Lekki under 50000000"})

        assert response.status_code == 200
        result = response.json()
        assert set(result) == {"listings", "total", "totalPages", "currentPage"}
        assert result["total"] == 25
        assert result["totalPages"] == 3
        assert result["currentPage"] == 1
        assert result["listings"][0]["property_id"] == 1
        assert result["listings"][0]["gallery_images"] == []

    def test_query_parameters_reach_the_query(self, override_service):
        response = client.get("/api/listings/", params={
            "property_type": "Apartment", "bedrooms": "1", "sortBy": "price_desc", "page": "2", "limit": "5"
        })

        assert response.status_code == 200
        sql, params = override_service.statements("select")[0]
        assert "pl.property_type ILIKE ANY" in sql
        assert "pl.price DESC" in sql
        assert list(params.values())[-2:] == [5, 5]
        assert response.json()["currentPage"] == 2

    def test_invalid_pagination_is_coerced(self, override_service):
        response = client.get("/api/listings/", params={"page": "abc", "limit": "-1"})

        assert response.status_code == 200
        assert response.json()["currentPage"] == 1

    def test_blank_parameters_are_ignored(self, override_service):
        response = client.get("/api/listings/", params={"search": "   ", "bedrooms": ""})

        assert response.status_code == 200
        sql, _ = override_service.statements("select")[0]
        assert "pl.bedrooms" not in sql
        assert "AS rank" not in sql

    def test_caller_role_applied(self, override_service):
        app.dependency_overrides[get_current_caller] = lambda: Caller(role=CallerRole.AGENT, user_id=42)

        response = client.get("/api/listings/")

        assert response.status_code == 200
        sql, params = override_service.statements("select")[0]
        assert "pl.agent_id = :p2" in sql
        assert params["p2"] == 42

    def test_query_failure_returns_500(self):
        service = AsyncMock()
        service.search.side_effect = ListingSearchError("relation \"property_listings\" does not exist")
        app.dependency_overrides[get_search_service] = lambda: service
        try:
            response = client.get("/api/listings/")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {
            "error": "Internal server error fetching listings",
            "details": "relation \"property_listings\" does not exist",
        }

    def test_malformed_row_returns_error_body(self, make_executor, search_config, test_settings):
        executor = make_executor(rows=[{"property_id": 1, "title": "Duplex", "effective_priority": 2.5}])
        app.dependency_overrides[get_search_service] = lambda: ListingSearchService(
            executor, search_config=search_config, config=test_settings
        )
        try:
            response = client.get("/api/listings/")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Internal server error fetching listings"
        assert "effective_priority" in body["details"]


class TestCurrentCaller:
    """Test caller resolution from request.state"""

    def make_request(self, **state):
        return SimpleNamespace(state=SimpleNamespace(**state))

    def test_missing_user_is_guest(self):
        assert get_current_caller(self.make_request()).role == CallerRole.GUEST

    def test_dict_user(self):
        caller = get_current_caller(self.make_request(user={"role": "agency_admin", "user_id": 5, "agency_id": 9}))
        assert caller == Caller(role=CallerRole.AGENCY_ADMIN, user_id=5, agency_id=9)

    def test_object_user(self):
        user = SimpleNamespace(role="agent", user_id=42)
        caller = get_current_caller(self.make_request(user=user))
        assert caller.role == CallerRole.AGENT
        assert caller.user_id == 42
        assert caller.agency_id is None

    def test_unknown_role_is_guest(self):
        assert get_current_caller(self.make_request(user={"role": "visitor"})).role == CallerRole.GUEST

    def test_malformed_identity_is_guest(self):
        caller = get_current_caller(self.make_request(user={"role": "agent", "user_id": "not-a-number"}))
        assert caller == Caller()


class TestHealth:
    """Test the health endpoint"""

    def test_disconnected_database(self, monkeypatch):
        from criblink.core.database import db_client
        monkeypatch.setattr(db_client, "engine", None)

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "degraded",
            "services": {"database": {"status": "disconnected", "pool": None}},
        }

    def test_reports_pool_usage(self, monkeypatch):
        from criblink.core.database import db_client
        engine = MagicMock()
        engine.pool.size.return_value = 10
        engine.pool.checkedin.return_value = 8
        engine.pool.checkedout.return_value = 2
        engine.pool.overflow.return_value = -8
        monkeypatch.setattr(db_client, "engine", engine)
        monkeypatch.setattr(db_client, "health_check", AsyncMock(return_value=True))

        response = client.get("/health")

        assert response.json() == {
            "status": "healthy",
            "services": {"database": {
                "status": "healthy",
                "pool": {"size": 10, "checked_in": 8, "checked_out": 2, "overflow": -8},
            }},
        }

    def test_unreachable_database(self, monkeypatch):
        from criblink.core.database import db_client
        monkeypatch.setattr(db_client, "engine", MagicMock())
        monkeypatch.setattr(db_client, "health_check", AsyncMock(return_value=False))
        monkeypatch.setattr(db_client, "pool_status", lambda: None)

        body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["services"]["database"]["status"] == "unhealthy"

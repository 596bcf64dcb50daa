"""Tests for the Google Business Profile service, OAuth exchange and API."""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from reviewdesk.core.config import settings
from reviewdesk.core.errors import ConfigurationError, NotFoundError, ProviderError
from reviewdesk.main import app
from reviewdesk.models.review import SavedReview
from reviewdesk.repositories.review_repository import ReviewRepository
from reviewdesk.repositories.user_profile_repository import UserProfileRepository
from reviewdesk.services.google_business import (
    ACCOUNTS_URL,
    DAILY_METRICS,
    REPLY_FAILED,
    GoogleBusinessClient,
    GoogleBusinessService,
    exchange_oauth_code,
    format_address,
    parse_google_time,
    star_rating_to_number,
)
from tests.conftest import USER_ID, auth_headers

GOOGLE_HEADERS = {"X-Google-Token": "ya29.token"}


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


def _upstream_error(status_code=404):
    return ProviderError(f"Google API request failed: {status_code}", status_code=status_code)


def _router(routes):
    """Build a request side effect that answers by URL suffix."""

    async def handle(method, url, params=None, json=None):
        for suffix, answer in routes.items():
            if url.endswith(suffix):
                result = answer(params) if callable(answer) else answer
                if isinstance(result, Exception):
                    raise result
                return result
        raise AssertionError(f"unexpected request {method} {url}")

    return handle


def _service(db, routes):
    google = MagicMock()
    google.request = AsyncMock(side_effect=_router(routes))
    return GoogleBusinessService(db, google), google


class TestHelpers:
    @pytest.mark.parametrize("star,expected", [("ONE", 1), ("THREE", 3), ("FIVE", 5), ("STAR_RATING_UNSPECIFIED", 0), (None, 0)])
    def test_star_rating(self, star, expected):
        assert star_rating_to_number(star) == expected

    def test_parse_google_time(self):
        assert parse_google_time("2025-02-03T04:05:06Z") == datetime(2025, 2, 3, 4, 5, 6, tzinfo=UTC)
        assert parse_google_time("2025-02-03T04:05:06") == datetime(2025, 2, 3, 4, 5, 6, tzinfo=UTC)
        assert parse_google_time("yesterday") is None
        assert parse_google_time(None) is None

    def test_format_address(self):
        address = {"addressLines": ["12 Rustaveli Ave", "Floor 2"], "locality": "Tbilisi", "administrativeArea": "TB"}
        assert format_address(address) == "12 Rustaveli Ave, Floor 2, Tbilisi, TB"
        assert format_address(None) is None


class TestDispatchValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action,kwargs,message",
        [
            ("search_locations", {}, "Missing 'query' for search_locations"),
            ("fetch_reviews", {}, "Missing 'locationId' for fetch_reviews"),
            ("fetch_analytics", {}, "Missing 'locationId' for fetch_analytics"),
            ("reply_to_review", {}, "Missing 'locationId' for reply_to_review"),
            ("reply_to_review", {"location_id": "1"}, "Missing 'review_id' (Google reviewId) for reply_to_review"),
            ("reply_to_review", {"location_id": "1", "review_id": "r"}, "Missing 'replyText' for reply_to_review"),
            ("delete_everything", {}, "Invalid action"),
            (None, {}, "Invalid action"),
        ],
    )
    async def test_missing_parameters(self, db_session, action, kwargs, message):
        service, google = _service(db_session, {})
        with pytest.raises(ValueError) as exc_info:
            await service.dispatch(action, USER_ID, **kwargs)
        assert str(exc_info.value) == message
        google.request.assert_not_called()


class TestLocations:
    @pytest.mark.asyncio
    async def test_no_accounts(self, db_session):
        service, _ = _service(db_session, {"/accounts": {"accounts": []}})
        with pytest.raises(NotFoundError, match="No Google Business accounts found"):
            await service.fetch_user_locations()

    @pytest.mark.asyncio
    async def test_locations_are_paged_and_formatted(self, db_session):
        pages = {
            None: {"locations": [{"name": "locations/111", "title": "Cafe One"}], "nextPageToken": "p2"},
            "p2": {
                "locations": [
                    {
                        "name": "locations/222",
                        "title": "Cafe Two",
                        "storefrontAddress": {"addressLines": ["1 Main"], "locality": "Batumi", "administrativeArea": "AJ"},
                        "phoneNumbers": {"primaryPhone": "+995 555"},
                        "latlng": {"latitude": 41.6, "longitude": 41.6},
                    }
                ]
            },
        }
        service, _ = _service(
            db_session,
            {
                "/accounts": {"accounts": [{"name": "accounts/9"}]},
                "accounts/9/locations": lambda params: pages[params.get("pageToken")],
                "accounts/9/locations/111": {"metadata": {"averageRating": 4.5, "totalReviewCount": 12}},
                "accounts/9/locations/222": _upstream_error(403),
            },
        )

        result = await service.dispatch("get_user_locations", USER_ID)

        locations = result["locations"]
        assert [loc["id"] for loc in locations] == ["111", "222"]
        assert locations[0]["rating"] == 4.5
        assert locations[0]["total_reviews"] == 12
        assert locations[1]["rating"] is None
        assert locations[1]["total_reviews"] == 0
        assert locations[1]["address"] == "1 Main, Batumi, AJ"
        assert locations[1]["phone"] == "+995 555"

    @pytest.mark.asyncio
    async def test_search_matches_name_or_address(self, db_session):
        service, _ = _service(
            db_session,
            {
                "/accounts": {"accounts": [{"name": "accounts/9"}]},
                "accounts/9/locations": {
                    "locations": [
                        {"name": "locations/1", "title": "Harbour Bakery"},
                        {"name": "locations/2", "title": "Noodle Bar", "storefrontAddress": {"addressLines": ["Harbour St"]}},
                        {"name": "locations/3", "title": "Pizza"},
                    ]
                },
                "accounts/9/locations/1": {},
                "accounts/9/locations/2": {},
                "accounts/9/locations/3": {},
            },
        )
        result = await service.dispatch("search_locations", USER_ID, query="harbour")
        assert [loc["id"] for loc in result["locations"]] == ["1", "2"]


class TestFetchReviews:
    @pytest.mark.asyncio
    async def test_reviews_are_persisted(self, db_session):
        pages = {
            None: {
                "reviews": [
                    {
                        "reviewId": "rev-1",
                        "reviewer": {"displayName": "Nino"},
                        "starRating": "FIVE",
                        "comment": "Lovely",
                        "createTime": "2025-01-05T10:00:00Z",
                        "reviewReply": {"comment": "Thanks Nino", "updateTime": "2025-01-06T10:00:00Z"},
                    }
                ],
                "nextPageToken": "next",
            },
            "next": {"reviews": [{"reviewId": "rev-2", "starRating": "TWO", "createTime": "2025-01-07T10:00:00Z"}]},
        }
        service, _ = _service(
            db_session,
            {
                "/accounts": {"accounts": [{"name": "accounts/1"}, {"name": "accounts/2"}]},
                "accounts/1/locations/loc-9/reviews": _upstream_error(404),
                "accounts/2/locations/loc-9/reviews": lambda params: pages[(params or {}).get("pageToken")],
            },
        )

        result = await service.dispatch("fetch_reviews", USER_ID, location_id="loc-9")

        reviews = result["reviews"]
        assert [r["id"] for r in reviews] == ["rev-1", "rev-2"]
        assert reviews[0]["rating"] == 5
        assert reviews[1]["author_name"] == "Anonymous"

        stored = ReviewRepository(db_session).get_by_google_id("rev-1", "loc-9")
        assert stored.user_id == USER_ID
        assert stored.reply_text == "Thanks Nino"
        assert stored.text == "Lovely"
        assert db_session.query(SavedReview).count() == 2

    @pytest.mark.asyncio
    async def test_refetch_updates_instead_of_duplicating(self, db_session):
        payload = {"reviews": [{"reviewId": "rev-1", "starRating": "FOUR", "comment": "Good"}]}
        service, _ = _service(
            db_session,
            {"/accounts": {"accounts": [{"name": "accounts/1"}]}, "accounts/1/locations/loc-9/reviews": payload},
        )
        await service.fetch_reviews(USER_ID, "loc-9")
        payload["reviews"][0]["comment"] = "Good, edited"
        await service.fetch_reviews(USER_ID, "loc-9")

        assert db_session.query(SavedReview).count() == 1
        assert ReviewRepository(db_session).get_by_google_id("rev-1", "loc-9").text == "Good, edited"

    @pytest.mark.asyncio
    async def test_account_listing_failure_returns_empty(self, db_session):
        service, _ = _service(db_session, {"/accounts": _upstream_error(401)})
        assert await service.fetch_reviews(USER_ID, "loc-9") == []


class TestReply:
    @pytest.mark.asyncio
    async def test_reply_updates_existing_review(self, db_session):
        repo = ReviewRepository(db_session)
        existing = repo.upsert(USER_ID, "rev-1", "loc-9", author_name="Nino", rating=2, text="Cold soup")
        service, google = _service(
            db_session,
            {
                "/accounts": {"accounts": [{"name": "accounts/1"}, {"name": "accounts/2"}]},
                "accounts/1/locations/loc-9/reviews/rev-1/reply": _upstream_error(403),
                "accounts/2/locations/loc-9/reviews/rev-1/reply": {"comment": "Sorry!"},
            },
        )

        result = await service.dispatch(
            "reply_to_review", USER_ID, location_id="loc-9", review_id="rev-1", reply_text="Sorry!"
        )

        assert result == {"ok": True}
        db_session.refresh(existing)
        assert existing.reply_text == "Sorry!"
        assert existing.reply_date is not None
        assert existing.text == "Cold soup"
        put = google.request.call_args
        assert put.args[0] == "PUT"
        assert put.kwargs["json"] == {"comment": "Sorry!"}

    @pytest.mark.asyncio
    async def test_reply_creates_stub_for_unknown_review(self, db_session):
        service, _ = _service(
            db_session,
            {
                "/accounts": {"accounts": [{"name": "accounts/1"}]},
                "accounts/1/locations/loc-9/reviews/rev-7/reply": {},
            },
        )
        await service.reply_to_review(USER_ID, "loc-9", "rev-7", "Thanks!")

        stub = ReviewRepository(db_session).get_by_google_id("rev-7", "loc-9")
        assert stub.reply_text == "Thanks!"
        assert stub.rating == 0
        assert stub.author_name == ""

    @pytest.mark.asyncio
    async def test_reply_fails_on_every_account(self, db_session):
        service, _ = _service(
            db_session,
            {
                "/accounts": {"accounts": [{"name": "accounts/1"}]},
                "accounts/1/locations/loc-9/reviews/rev-1/reply": _upstream_error(403),
            },
        )
        with pytest.raises(ValueError) as exc_info:
            await service.reply_to_review(USER_ID, "loc-9", "rev-1", "Thanks!")
        assert str(exc_info.value) == REPLY_FAILED
        assert db_session.query(SavedReview).count() == 0


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_explicit_range(self, db_session):
        service, google = _service(db_session, {":fetchMultiDailyMetricsTimeSeries": {"multiDailyMetricTimeSeries": []}})

        result = await service.fetch_analytics("loc-9", date(2025, 1, 1), date(2025, 1, 31))

        assert result == {"multiDailyMetricTimeSeries": []}
        params = google.request.call_args.kwargs["params"]
        assert [value for key, value in params if key == "dailyMetrics"] == DAILY_METRICS
        assert ("dailyRange.start_date.year", "2025") in params
        assert ("dailyRange.end_date.day", "31") in params
        assert google.request.call_args.args[1].endswith("/locations/loc-9:fetchMultiDailyMetricsTimeSeries")

    @pytest.mark.asyncio
    async def test_default_range_is_thirty_days(self, db_session):
        service, google = _service(db_session, {":fetchMultiDailyMetricsTimeSeries": {}})
        await service.fetch_analytics("loc-9")

        params = dict(google.request.call_args.kwargs["params"])
        start = date(int(params["dailyRange.start_date.year"]), int(params["dailyRange.start_date.month"]), int(params["dailyRange.start_date.day"]))
        end = date(int(params["dailyRange.end_date.year"]), int(params["dailyRange.end_date.month"]), int(params["dailyRange.end_date.day"]))
        assert (end - start).days == 30

    @pytest.mark.asyncio
    async def test_failure_returns_empty(self, db_session):
        service, _ = _service(db_session, {":fetchMultiDailyMetricsTimeSeries": _upstream_error(500)})
        assert await service.dispatch("fetch_analytics", USER_ID, location_id="loc-9") == {"analytics": {}}


class TestGoogleBusinessClient:
    @pytest.mark.asyncio
    async def test_http_error(self):
        google = GoogleBusinessClient("ya29.token")
        http = MagicMock()
        http.is_closed = False
        request = httpx.Request("GET", ACCOUNTS_URL)
        http.request = AsyncMock(return_value=httpx.Response(403, text="denied", request=request))
        google._client = http

        with pytest.raises(ProviderError) as exc_info:
            await google.request("GET", ACCOUNTS_URL)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_empty_body(self):
        google = GoogleBusinessClient("ya29.token")
        http = MagicMock()
        http.is_closed = False
        request = httpx.Request("PUT", ACCOUNTS_URL)
        http.request = AsyncMock(return_value=httpx.Response(204, request=request))
        google._client = http

        assert await google.request("PUT", ACCOUNTS_URL, json={"comment": "x"}) == {}


class TestOAuthExchange:
    def _http(self, status_code, payload):
        http = MagicMock()
        request = httpx.Request("POST", "https://oauth2.googleapis.com/token")
        http.post = AsyncMock(return_value=httpx.Response(status_code, json=payload, request=request))
        return http

    @pytest.mark.asyncio
    async def test_tokens_are_stored(self, db_session):
        http = self._http(200, {"access_token": "at-1", "refresh_token": "rt-1", "expires_in": 3599})
        with patch.object(settings, "GOOGLE_CLIENT_ID", "cid"), patch.object(settings, "GOOGLE_CLIENT_SECRET", "csecret"):
            profile = await exchange_oauth_code(db_session, USER_ID, "code-1", http_client=http)

        assert profile.google_access_token == "at-1"
        assert profile.google_refresh_token == "rt-1"
        assert profile.google_token_expires_at > 0
        form = http.post.call_args.kwargs["data"]
        assert form["grant_type"] == "authorization_code"
        assert form["redirect_uri"] == f"{settings.APP_PUBLIC_URL.rstrip('/')}/auth/callback"

    @pytest.mark.asyncio
    async def test_refresh_token_kept_when_absent(self, db_session):
        UserProfileRepository(db_session).create(USER_ID, email="a@b.c", google_refresh_token="rt-old")
        http = self._http(200, {"access_token": "at-2", "expires_in": 3599})
        with patch.object(settings, "GOOGLE_CLIENT_ID", "cid"), patch.object(settings, "GOOGLE_CLIENT_SECRET", "csecret"):
            profile = await exchange_oauth_code(db_session, USER_ID, "code-2", redirect_uri="https://app/cb", http_client=http)

        assert profile.google_access_token == "at-2"
        assert profile.google_refresh_token == "rt-old"
        assert profile.email == "a@b.c"
        assert http.post.call_args.kwargs["data"]["redirect_uri"] == "https://app/cb"

    @pytest.mark.asyncio
    async def test_rejected_code(self, db_session):
        http = self._http(400, {"error": "invalid_grant"})
        with patch.object(settings, "GOOGLE_CLIENT_ID", "cid"), patch.object(settings, "GOOGLE_CLIENT_SECRET", "csecret"):
            with pytest.raises(ProviderError, match="Failed to exchange authorization code for tokens"):
                await exchange_oauth_code(db_session, USER_ID, "bad", http_client=http)

    @pytest.mark.asyncio
    async def test_unconfigured(self, db_session):
        with patch.object(settings, "GOOGLE_CLIENT_ID", ""):
            with pytest.raises(ConfigurationError, match="Google OAuth client is not configured"):
                await exchange_oauth_code(db_session, USER_ID, "code")


class TestGoogleAPI:
    def test_missing_google_token(self, client):
        response = client.post("/v1/google/business", json={"action": "get_user_locations"}, headers=auth_headers())
        assert response.status_code == 400
        assert "X-Google-Token" in response.json()["error"]

    def test_missing_parameter(self, client):
        response = client.post(
            "/v1/google/business",
            json={"action": "fetch_reviews"},
            headers={**auth_headers(), **GOOGLE_HEADERS},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Missing 'locationId' for fetch_reviews"}

    def test_no_accounts(self, client):
        with patch.object(GoogleBusinessClient, "request", new_callable=AsyncMock, return_value={}):
            response = client.post(
                "/v1/google/business",
                json={"action": "get_user_locations"},
                headers={**auth_headers(), **GOOGLE_HEADERS},
            )
        assert response.status_code == 404
        assert response.json() == {"error": "No Google Business accounts found"}

    def test_fetch_reviews(self, client):
        with patch.object(
            GoogleBusinessClient,
            "request",
            new_callable=AsyncMock,
            side_effect=_router(
                {
                    "/accounts": {"accounts": [{"name": "accounts/1"}]},
                    "accounts/1/locations/loc-9/reviews": {"reviews": [{"reviewId": "rev-1", "starRating": "FOUR"}]},
                }
            ),
        ):
            response = client.post(
                "/v1/google/business",
                json={"action": "fetch_reviews", "locationId": "loc-9"},
                headers={**auth_headers(), **GOOGLE_HEADERS},
            )
        assert response.status_code == 200
        assert response.json()["reviews"][0]["rating"] == 4

    def test_oauth_callback_unconfigured(self, client):
        with patch.object(settings, "GOOGLE_CLIENT_ID", ""):
            response = client.post("/v1/google/oauth/callback", json={"code": "abc"}, headers=auth_headers())
        assert response.status_code == 500
        assert response.json() == {"error": "Google OAuth client is not configured"}

    def test_oauth_callback(self, client):
        with patch("reviewdesk.routers.google.exchange_oauth_code", new_callable=AsyncMock) as mock_exchange:
            response = client.post(
                "/v1/google/oauth/callback",
                json={"code": "abc", "redirect_uri": "https://app/cb"},
                headers=auth_headers(),
            )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Google tokens stored successfully"}
        assert mock_exchange.call_args.args[1] == USER_ID
        assert mock_exchange.call_args.kwargs["redirect_uri"] == "https://app/cb"

    def test_oauth_callback_requires_code(self, client):
        response = client.post("/v1/google/oauth/callback", json={"code": ""}, headers=auth_headers())
        assert response.status_code == 400

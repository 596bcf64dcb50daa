"""Google Business Profile integration: locations, reviews, replies and OAuth."""

import logging
import time
from datetime import UTC, date, datetime, timedelta
from typing import Any
from urllib.parse import quote
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from reviewdesk.core.config import settings
from reviewdesk.core.errors import ConfigurationError, NotFoundError, ProviderError
from reviewdesk.models.user_profile import UserProfile
from reviewdesk.repositories.review_repository import ReviewRepository
from reviewdesk.repositories.user_profile_repository import UserProfileRepository

logger = logging.getLogger(__name__)

ACCOUNTS_URL = "https://mybusinessaccountmanagement.googleapis.com/v1/accounts"
BUSINESS_INFO_URL = "https://mybusinessbusinessinformation.googleapis.com/v1"
MY_BUSINESS_V4_URL = "https://mybusiness.googleapis.com/v4"
PERFORMANCE_URL = "https://businessprofileperformance.googleapis.com/v1"
OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"

LOCATION_READ_MASK = (
    "name,title,phoneNumbers,storefrontAddress,languageCode,storeCode,categories,"
    "websiteUri,regularHours,specialHours,serviceArea,labels,latlng,openInfo,profile,"
    "moreHours,serviceItems"
)
DAILY_METRICS = [
    "BUSINESS_IMPRESSIONS_MOBILE_SEARCH",
    "BUSINESS_CONVERSATIONS",
    "BUSINESS_IMPRESSIONS_DESKTOP_SEARCH",
    "BUSINESS_IMPRESSIONS_DESKTOP_MAPS",
    "BUSINESS_IMPRESSIONS_MOBILE_MAPS",
    "BUSINESS_DIRECTION_REQUESTS",
    "CALL_CLICKS",
    "WEBSITE_CLICKS",
    "BUSINESS_BOOKINGS",
    "BUSINESS_FOOD_ORDERS",
    "BUSINESS_FOOD_MENU_CLICKS",
]
ANALYTICS_DEFAULT_DAYS = 30

STAR_RATINGS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}

REPLY_FAILED = "Failed to send reply. Ensure the account owns the location and has permissions."


def star_rating_to_number(star: str | None) -> int:
    return STAR_RATINGS.get(star or "", 0)


def parse_google_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable Google timestamp: %s", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_address(address: dict[str, Any] | None) -> str | None:
    if not address:
        return None
    lines = ", ".join(address.get("addressLines") or [])
    return f"{lines}, {address.get('locality') or ''}, {address.get('administrativeArea') or ''}".strip()


class GoogleBusinessClient:
    """Async client for the Google Business Profile APIs, authorised by the user's token."""

    def __init__(self, access_token: str, timeout: float = 30.0):
        self.access_token = access_token
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def request(
        self,
        method: str,
        url: str,
        params: Any = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, url, params=params, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Google API error %d on %s: %s",
                e.response.status_code,
                url,
                e.response.text[:500],
            )
            raise ProviderError(
                f"Google API request failed: {e.response.status_code}",
                status_code=e.response.status_code,
                body=e.response.text,
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(f"Google API request failed: {e}") from e
        if response.status_code == 204 or not response.content:
            return {}
        result: dict[str, Any] = response.json()
        return result


class GoogleBusinessService:
    def __init__(self, db: Session, client: GoogleBusinessClient):
        self.db = db
        self.client = client
        self.review_repo = ReviewRepository(db)

    async def list_account_ids(self) -> list[str]:
        """Account resource names (``accounts/123``) the token can manage."""
        data = await self.client.request("GET", ACCOUNTS_URL)
        accounts = data.get("accounts") or []
        if not accounts:
            raise NotFoundError("No Google Business accounts found")
        return [account["name"] for account in accounts]

    async def _rating_metadata(self, account_id: str, location_id: str) -> tuple[Any, Any]:
        try:
            data = await self.client.request(
                "GET", f"{MY_BUSINESS_V4_URL}/{account_id}/locations/{location_id}"
            )
        except ProviderError:
            return None, None
        metadata = data.get("metadata") or {}
        return metadata.get("averageRating"), metadata.get("totalReviewCount")

    async def fetch_user_locations(self) -> list[dict[str, Any]]:
        locations: list[dict[str, Any]] = []
        for account_id in await self.list_account_ids():
            page_token: str | None = None
            while True:
                params = {"readMask": LOCATION_READ_MASK, "pageSize": "100"}
                if page_token:
                    params["pageToken"] = page_token
                data = await self.client.request(
                    "GET", f"{BUSINESS_INFO_URL}/{account_id}/locations", params=params
                )
                for loc in data.get("locations") or []:
                    locations.append(await self._format_location(account_id, loc))
                page_token = data.get("nextPageToken")
                if not page_token:
                    break
        return locations

    async def _format_location(self, account_id: str, loc: dict[str, Any]) -> dict[str, Any]:
        location_id = (loc.get("name") or "").split("/")[-1]
        average_rating, total_reviews = await self._rating_metadata(account_id, location_id)
        latlng = loc.get("latlng") or {}
        now = datetime.now(UTC).isoformat()
        return {
            "id": location_id,
            "google_place_id": loc.get("name"),
            "name": loc.get("title") or "Unknown Location",
            "address": format_address(loc.get("storefrontAddress")),
            "phone": (loc.get("phoneNumbers") or {}).get("primaryPhone"),
            "website": loc.get("websiteUri"),
            "rating": average_rating,
            "total_reviews": total_reviews or 0,
            "latitude": latlng.get("latitude"),
            "longitude": latlng.get("longitude"),
            "status": "active",
            "last_fetched_at": now,
        }

    async def search_locations(self, query: str) -> list[dict[str, Any]]:
        needle = query.lower()
        return [
            loc
            for loc in await self.fetch_user_locations()
            if needle in (loc["name"] or "").lower() or needle in (loc["address"] or "").lower()
        ]

    async def fetch_reviews(self, user_id: UUID, location_id: str) -> list[dict[str, Any]]:
        """Reviews of the location from the first account that owns it.

        Each review is upserted into saved_reviews so replies made directly
        on Google show up locally.
        """
        try:
            account_ids = await self.list_account_ids()
        except (ProviderError, NotFoundError) as e:
            logger.warning("Could not list Google accounts for reviews: %s", e)
            return []

        for account_id in account_ids:
            try:
                return await self._fetch_account_reviews(user_id, account_id, location_id)
            except ProviderError as e:
                logger.info("Account %s does not serve location %s: %s", account_id, location_id, e)
        return []

    async def _fetch_account_reviews(
        self, user_id: UUID, account_id: str, location_id: str
    ) -> list[dict[str, Any]]:
        reviews: list[dict[str, Any]] = []
        page_token: str | None = None
        url = f"{MY_BUSINESS_V4_URL}/{account_id}/locations/{location_id}/reviews"
        while True:
            params = {"pageToken": page_token} if page_token else None
            data = await self.client.request("GET", url, params=params)
            for raw in data.get("reviews") or []:
                review = self._format_review(raw, location_id)
                self._persist_review(user_id, review)
                reviews.append(review)
            page_token = data.get("nextPageToken")
            if not page_token:
                return reviews

    @staticmethod
    def _format_review(raw: dict[str, Any], location_id: str) -> dict[str, Any]:
        reviewer = raw.get("reviewer") or {}
        reply = raw.get("reviewReply") or {}
        return {
            "id": raw.get("reviewId"),
            "google_review_id": raw.get("reviewId"),
            "author_name": reviewer.get("displayName") or "Anonymous",
            "author_photo_url": reviewer.get("profilePhotoUrl"),
            "rating": star_rating_to_number(raw.get("starRating")),
            "text": raw.get("comment") or "",
            "review_date": raw.get("createTime") or datetime.now(UTC).isoformat(),
            "reply_text": reply.get("comment"),
            "reply_date": reply.get("updateTime"),
            "ai_sentiment": None,
            "ai_tags": [],
            "location_id": location_id,
        }

    def _persist_review(self, user_id: UUID, review: dict[str, Any]) -> None:
        self.review_repo.upsert(
            user_id,
            review["google_review_id"],
            review["location_id"],
            author_name=review["author_name"],
            rating=review["rating"],
            text=review["text"],
            review_date=parse_google_time(review["review_date"]),
            reply_text=review["reply_text"],
            reply_date=parse_google_time(review["reply_date"]),
        )

    async def fetch_analytics(
        self,
        location_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> dict[str, Any]:
        """Daily performance metrics; defaults to the last 30 days."""
        today = datetime.now(UTC).date()
        end = end_date or today
        start = start_date or today - timedelta(days=ANALYTICS_DEFAULT_DAYS)
        params: list[tuple[str, str]] = [("dailyMetrics", metric) for metric in DAILY_METRICS]
        for prefix, value in (("start_date", start), ("end_date", end)):
            params.extend(
                [
                    (f"dailyRange.{prefix}.year", str(value.year)),
                    (f"dailyRange.{prefix}.month", str(value.month)),
                    (f"dailyRange.{prefix}.day", str(value.day)),
                ]
            )
        url = f"{PERFORMANCE_URL}/locations/{quote(location_id, safe='')}:fetchMultiDailyMetricsTimeSeries"
        try:
            return await self.client.request("GET", url, params=params)
        except ProviderError as e:
            logger.warning("Google analytics fetch failed for %s: %s", location_id, e)
            return {}

    async def reply_to_review(
        self, user_id: UUID, location_id: str, review_id: str, reply_text: str
    ) -> None:
        """Publish a reply from the owning account and persist it locally.

        Raises:
            ValueError: If no account could publish the reply.
        """
        for account_id in await self.list_account_ids():
            url = f"{MY_BUSINESS_V4_URL}/{account_id}/locations/{location_id}/reviews/{review_id}/reply"
            try:
                await self.client.request("PUT", url, json={"comment": reply_text})
            except ProviderError as e:
                logger.info("Reply via account %s failed: %s", account_id, e)
                continue
            replied_at = datetime.now(UTC)
            review = self.review_repo.get_by_google_id(review_id, location_id)
            if review is not None:
                self.review_repo.update(review, reply_text=reply_text, reply_date=replied_at)
            else:
                self.review_repo.upsert(
                    user_id,
                    review_id,
                    location_id,
                    author_name="",
                    rating=0,
                    text="",
                    reply_text=reply_text,
                    reply_date=replied_at,
                )
            logger.info("Replied to review %s at location %s", review_id, location_id)
            return
        raise ValueError(REPLY_FAILED)

    async def dispatch(
        self,
        action: str | None,
        user_id: UUID,
        location_id: str | None = None,
        query: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        reply_text: str | None = None,
        review_id: str | None = None,
    ) -> dict[str, Any]:
        """Run one business-profile action.

        Raises:
            ValueError: For an unknown action or a missing parameter.
        """
        if action in ("get_user_locations", "fetch_user_locations"):
            return {"locations": await self.fetch_user_locations()}
        if action == "search_locations":
            if not query:
                raise ValueError("Missing 'query' for search_locations")
            return {"locations": await self.search_locations(query)}
        if action == "fetch_reviews":
            if not location_id:
                raise ValueError("Missing 'locationId' for fetch_reviews")
            return {"reviews": await self.fetch_reviews(user_id, location_id)}
        if action == "fetch_analytics":
            if not location_id:
                raise ValueError("Missing 'locationId' for fetch_analytics")
            return {"analytics": await self.fetch_analytics(location_id, start_date, end_date)}
        if action == "reply_to_review":
            if not location_id:
                raise ValueError("Missing 'locationId' for reply_to_review")
            if not review_id:
                raise ValueError("Missing 'review_id' (Google reviewId) for reply_to_review")
            if not reply_text:
                raise ValueError("Missing 'replyText' for reply_to_review")
            await self.reply_to_review(user_id, location_id, review_id, reply_text)
            return {"ok": True}
        raise ValueError("Invalid action")


async def exchange_oauth_code(
    db: Session,
    user_id: UUID,
    code: str,
    redirect_uri: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> UserProfile:
    """Trade an authorization code for tokens and store them on the user's profile."""
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        raise ConfigurationError("Google OAuth client is not configured")

    form = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "client_secret": settings.GOOGLE_CLIENT_SECRET,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": redirect_uri or f"{settings.APP_PUBLIC_URL.rstrip('/')}/auth/callback",
    }
    client = http_client or httpx.AsyncClient(timeout=30.0)
    try:
        response = await client.post(OAUTH_TOKEN_URL, data=form)
    except httpx.RequestError as e:
        raise ProviderError(f"Google token exchange failed: {e}") from e
    finally:
        if http_client is None:
            await client.aclose()

    if response.status_code >= 400:
        logger.warning("Google token exchange failed: %s", response.text[:500])
        raise ProviderError(
            "Failed to exchange authorization code for tokens",
            status_code=response.status_code,
            body=response.text,
        )

    tokens = response.json()
    expires_in = int(tokens.get("expires_in") or 0)
    fields: dict[str, Any] = {
        "google_access_token": tokens.get("access_token"),
        "google_token_expires_at": int(time.time() * 1000) + expires_in * 1000,
    }
    # Google only returns a refresh token on first consent
    if tokens.get("refresh_token"):
        fields["google_refresh_token"] = tokens["refresh_token"]
    profile = UserProfileRepository(db).upsert(user_id, **fields)
    logger.info("Stored Google tokens for user %s", user_id)
    return profile

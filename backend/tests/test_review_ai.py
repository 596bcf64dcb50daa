"""Tests for the OpenAI client, review analysis and reply drafting."""

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from reviewdesk.core.config import settings
from reviewdesk.core.errors import ConfigurationError, ProviderError
from reviewdesk.main import app
from reviewdesk.repositories.review_repository import ReviewRepository
from reviewdesk.services.openai_client import OpenAIClient
from reviewdesk.services.review_ai_service import (
    REPLY_UNAVAILABLE,
    ReviewAIService,
    fallback_sentiment,
    parse_analysis,
)
from tests.conftest import OTHER_USER_ID, USER_ID, auth_headers


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


ANALYSIS_JSON = json.dumps(
    {
        "sentiment": "Negative",
        "tags": ["service", "wait time", "staff", "pricing", "food quality", "atmosphere"],
        "issues": ["slow service"],
        "suggestions": ["add staff at lunch"],
    }
)


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


def _mock_http(response: httpx.Response | None = None, error: Exception | None = None) -> MagicMock:
    http = MagicMock()
    http.is_closed = False
    http.post = AsyncMock(return_value=response, side_effect=error)
    http.aclose = AsyncMock()
    return http


def _response(status_code: int, payload) -> httpx.Response:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return httpx.Response(status_code, json=payload, request=request)


class TestOpenAIClient:
    @pytest.mark.asyncio
    async def test_chat_posts_payload(self):
        openai = OpenAIClient(api_key="sk-test")
        openai._client = _mock_http(_response(200, _completion("hi")))

        result = await openai.chat(model="gpt-4o-mini", messages=[{"role": "user", "content": "x"}], max_tokens=10)

        assert OpenAIClient.extract_content(result) == "hi"
        call = openai._client.post.call_args
        assert call.args[0] == "/chat/completions"
        assert call.kwargs["json"]["max_tokens"] == 10
        assert call.kwargs["json"]["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_http_error_becomes_provider_error(self):
        openai = OpenAIClient(api_key="sk-test")
        openai._client = _mock_http(_response(429, {"error": {"message": "rate limited"}}))

        with pytest.raises(ProviderError) as exc_info:
            await openai.chat(model="m", messages=[])

        assert exc_info.value.status_code == 429
        assert exc_info.value.http_status == 400

    @pytest.mark.asyncio
    async def test_transport_error(self):
        openai = OpenAIClient(api_key="sk-test")
        openai._client = _mock_http(error=httpx.ConnectError("refused"))

        with pytest.raises(ProviderError, match="OpenAI request failed"):
            await openai.chat(model="m", messages=[])

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with pytest.raises(ConfigurationError, match="OpenAI API key not configured"):
            await OpenAIClient(api_key="  ").chat(model="m", messages=[])

    @pytest.mark.asyncio
    async def test_close(self):
        openai = OpenAIClient(api_key="sk-test")
        http = _mock_http()
        openai._client = http
        await openai.close()
        http.aclose.assert_awaited_once()
        assert openai._client is None

    @pytest.mark.parametrize(
        "response,expected",
        [
            (_completion("  Thanks!  "), "Thanks!"),
            (_completion("   "), None),
            ({"choices": []}, None),
            ({}, None),
            ({"choices": [{"text": "legacy"}]}, "legacy"),
        ],
    )
    def test_extract_content(self, response, expected):
        assert OpenAIClient.extract_content(response) == expected


class TestParseAnalysis:
    @pytest.mark.parametrize("rating,expected", [(5, "positive"), (4, "positive"), (3, "neutral"), (2, "negative"), (None, "negative")])
    def test_fallback_sentiment(self, rating, expected):
        assert fallback_sentiment(rating) == expected

    def test_valid_json(self):
        analysis = parse_analysis(ANALYSIS_JSON, 2)
        assert analysis["sentiment"] == "negative"
        assert len(analysis["tags"]) == 5
        assert analysis["issues"] == ["slow service"]

    def test_invalid_json_falls_back(self):
        assert parse_analysis("Sure! Here is the analysis", 5) == {
            "sentiment": "positive",
            "tags": ["general"],
            "issues": [],
            "suggestions": [],
        }

    def test_missing_sentiment_falls_back(self):
        assert parse_analysis(json.dumps({"tags": ["x"]}), 3)["sentiment"] == "neutral"


class TestReviewAIService:
    @pytest.mark.asyncio
    async def test_analyze_reviews_annotates(self):
        openai = MagicMock()
        openai.chat = AsyncMock(return_value=_completion(ANALYSIS_JSON))
        service = ReviewAIService(client=openai)

        result = await service.analyze_reviews([{"id": "r1", "text": "Slow", "rating": 2}])

        assert result[0]["id"] == "r1"
        assert result[0]["ai_sentiment"] == "negative"
        assert result[0]["ai_suggestions"] == ["add staff at lunch"]
        assert openai.chat.call_args.kwargs["model"] == settings.OPENAI_ANALYSIS_MODEL

    @pytest.mark.asyncio
    async def test_provider_failure_uses_rating(self):
        openai = MagicMock()
        openai.chat = AsyncMock(side_effect=ProviderError("OpenAI API error: 500", status_code=500))
        analysis = await ReviewAIService(client=openai).analyze_review("Great", 5)
        assert analysis == {"sentiment": "positive", "tags": ["general"], "issues": [], "suggestions": []}

    @pytest.mark.asyncio
    async def test_analyze_saved_reviews_scoped_to_user(self, db_session):
        repo = ReviewRepository(db_session)
        in_range = datetime(2025, 3, 10, tzinfo=UTC)
        mine = repo.upsert(USER_ID, "g-1", "loc-1", text="Rude staff", rating=1, review_date=in_range)
        repo.upsert(USER_ID, "g-2", "loc-1", text="Fine", rating=3, review_date=in_range, ai_sentiment="neutral")
        theirs = repo.upsert(OTHER_USER_ID, "g-3", "loc-1", text="Nice", rating=5, review_date=in_range)

        openai = MagicMock()
        openai.chat = AsyncMock(return_value=_completion(ANALYSIS_JSON))
        service = ReviewAIService(db_session, client=openai)

        count, message = await service.analyze_saved_reviews(
            USER_ID, datetime(2025, 3, 1, tzinfo=UTC), datetime(2025, 3, 31, tzinfo=UTC)
        )

        assert (count, message) == (1, "Analysis completed")
        db_session.refresh(mine)
        db_session.refresh(theirs)
        assert mine.ai_sentiment == "negative"
        assert mine.ai_analyzed_at is not None
        assert theirs.ai_sentiment is None

    @pytest.mark.asyncio
    async def test_analyze_saved_reviews_messages(self, db_session):
        service = ReviewAIService(db_session, client=MagicMock())
        assert await service.analyze_saved_reviews(USER_ID, None, None) == (0, "No reviews found for analysis")

        ReviewRepository(db_session).upsert(USER_ID, "g-1", "loc-1", text="ok", rating=3, ai_sentiment="neutral")
        assert await service.analyze_saved_reviews(USER_ID, None, None) == (0, "All reviews already analyzed")

    @pytest.mark.asyncio
    async def test_generate_reply(self):
        openai = MagicMock()
        openai.chat = AsyncMock(return_value=_completion("Thank you for visiting!"))
        reply = await ReviewAIService(client=openai).generate_reply("Reply to: great food")
        assert reply == "Thank you for visiting!"
        assert openai.chat.call_args.kwargs["model"] == settings.OPENAI_REPLY_MODEL

    @pytest.mark.asyncio
    async def test_generate_reply_requires_prompt(self):
        with pytest.raises(ValueError, match="Prompt is required"):
            await ReviewAIService(client=MagicMock()).generate_reply("   ")


class TestReviewsAPI:
    def test_analysis_requires_reviews(self, client):
        response = client.post("/v1/reviews/analysis", json={}, headers=auth_headers())
        assert response.status_code == 400
        assert response.json() == {"error": "Reviews array is required"}

    def test_inline_analysis(self, client):
        with patch.object(settings, "OPENAI_API_KEY", "sk-test"), patch.object(
            OpenAIClient, "chat", new_callable=AsyncMock, return_value=_completion(ANALYSIS_JSON)
        ):
            response = client.post(
                "/v1/reviews/analysis",
                json={"reviews": [{"text": "Slow", "rating": 2, "author": "Sam"}]},
                headers=auth_headers(),
            )

        assert response.status_code == 200
        review = response.json()["reviews"][0]
        assert review["author"] == "Sam"
        assert review["ai_sentiment"] == "negative"

    def test_stored_analysis_action(self, client):
        with patch.object(ReviewAIService, "analyze_saved_reviews", new_callable=AsyncMock, return_value=(3, "Analysis completed")) as mock_analyze:
            response = client.post(
                "/v1/reviews/analysis",
                json={"action": "generate_sentiment_analysis", "start_date": "2025-03-01T00:00:00Z"},
                headers=auth_headers(),
            )

        assert response.status_code == 200
        assert response.json() == {"message": "Analysis completed", "analyzed_count": 3}
        assert mock_analyze.call_args.args[0] == USER_ID

    def test_reply(self, client):
        with patch.object(settings, "OPENAI_API_KEY", "sk-test"), patch.object(
            OpenAIClient, "chat", new_callable=AsyncMock, return_value=_completion("Thanks so much!")
        ):
            response = client.post("/v1/reviews/reply", json={"prompt": "Great place"}, headers=auth_headers())
        assert response.status_code == 200
        assert response.json() == {"reply": "Thanks so much!"}

    def test_reply_empty_model_output(self, client):
        with patch.object(settings, "OPENAI_API_KEY", "sk-test"), patch.object(
            OpenAIClient, "chat", new_callable=AsyncMock, return_value={"choices": []}
        ):
            response = client.post("/v1/reviews/reply", json={"prompt": "Great place"}, headers=auth_headers())
        assert response.status_code == 200
        assert response.json() == {"error": REPLY_UNAVAILABLE}

    def test_reply_requires_prompt(self, client):
        response = client.post("/v1/reviews/reply", json={"prompt": ""}, headers=auth_headers())
        assert response.status_code == 400
        assert response.json() == {"error": "Prompt is required"}

    def test_reply_without_openai_key(self, client):
        with patch.object(settings, "OPENAI_API_KEY", ""):
            response = client.post("/v1/reviews/reply", json={"prompt": "Great place"}, headers=auth_headers())
        assert response.status_code == 500
        assert response.json() == {"error": "OpenAI API key not configured"}

    def test_requires_auth(self, client):
        response = client.post("/v1/reviews/reply", json={"prompt": "x"})
        assert response.status_code == 401

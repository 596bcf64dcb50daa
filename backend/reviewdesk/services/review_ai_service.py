"""AI sentiment analysis and reply drafting for customer reviews."""

import json
import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.core.config import settings
from reviewdesk.core.errors import ProviderError
from reviewdesk.repositories.review_repository import ReviewRepository
from reviewdesk.services.openai_client import OpenAIClient

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = "You are an AI that analyzes customer reviews. Return only valid JSON."
REPLY_SYSTEM_PROMPT = (
    "You are a professional business reply generator. Generate helpful, empathetic, "
    "and professional responses to customer reviews."
)
REPLY_UNAVAILABLE = "AI reply not available. Please try again later."

ANALYSIS_PROMPT_TEMPLATE = """Analyze this customer review comprehensively and provide:
1. Sentiment (positive, negative, or neutral)
2. Up to 5 relevant tags/categories (e.g., "service", "food quality", "cleanliness", "staff", "wait time", "pricing", "atmosphere")
3. Key issues mentioned (if negative/neutral)
4. Suggestions for improvement based on the review

Review: "{text}"
Rating: {rating}/5 stars

Return ONLY a JSON object with this exact format:
{{
  "sentiment": "positive|negative|neutral",
  "tags": ["tag1", "tag2", "tag3", "tag4", "tag5"],
  "issues": ["issue1", "issue2"],
  "suggestions": ["suggestion1", "suggestion2"]
}}"""


def fallback_sentiment(rating: int | None) -> str:
    rating = rating or 0
    if rating >= 4:
        return "positive"
    if rating <= 2:
        return "negative"
    return "neutral"


def fallback_analysis(rating: int | None) -> dict[str, Any]:
    return {
        "sentiment": fallback_sentiment(rating),
        "tags": ["general"],
        "issues": [],
        "suggestions": [],
    }


def parse_analysis(content: str | None, rating: int | None) -> dict[str, Any]:
    """Parse the model's JSON answer, falling back to a rating-based guess."""
    if not content:
        return fallback_analysis(rating)
    try:
        analysis = json.loads(content)
    except ValueError:
        logger.warning("AI analysis was not valid JSON; using rating fallback")
        return fallback_analysis(rating)
    if not isinstance(analysis, dict) or not analysis.get("sentiment"):
        return fallback_analysis(rating)
    return {
        "sentiment": str(analysis["sentiment"]).lower(),
        "tags": list(analysis.get("tags") or [])[:5],
        "issues": list(analysis.get("issues") or []),
        "suggestions": list(analysis.get("suggestions") or []),
    }


class ReviewAIService:
    def __init__(self, db: Session | None = None, client: OpenAIClient | None = None):
        self.db = db
        self.client = client or OpenAIClient()

    async def analyze_review(self, text: str | None, rating: int | None) -> dict[str, Any]:
        prompt = ANALYSIS_PROMPT_TEMPLATE.format(text=text or "No text provided", rating=rating or 0)
        try:
            response = await self.client.chat(
                model=settings.OPENAI_ANALYSIS_MODEL,
                messages=[
                    {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
                max_tokens=300,
            )
        except ProviderError as e:
            logger.warning("AI analysis failed, using rating fallback: %s", e)
            return fallback_analysis(rating)
        return parse_analysis(OpenAIClient.extract_content(response), rating)

    async def analyze_reviews(self, reviews: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Annotate each review with ai_sentiment, ai_tags, ai_issues and ai_suggestions."""
        analyzed = []
        for review in reviews:
            analysis = await self.analyze_review(review.get("text"), review.get("rating"))
            analyzed.append(
                {
                    **review,
                    "ai_sentiment": analysis["sentiment"],
                    "ai_tags": analysis["tags"],
                    "ai_issues": analysis["issues"],
                    "ai_suggestions": analysis["suggestions"],
                }
            )
        return analyzed

    async def analyze_saved_reviews(
        self,
        user_id: UUID,
        start_date: datetime | None,
        end_date: datetime | None,
        location_id: str | None = None,
    ) -> tuple[int, str]:
        """Analyse stored reviews in the range that have no sentiment yet."""
        if self.db is None:
            raise RuntimeError("ReviewAIService needs a database session for stored reviews")
        repo = ReviewRepository(self.db)
        reviews = repo.get_in_range(start_date, end_date, location_id=location_id, user_id=user_id)
        if not reviews:
            return 0, "No reviews found for analysis"

        pending = [review for review in reviews if not review.ai_sentiment]
        if not pending:
            return 0, "All reviews already analyzed"

        for review in pending:
            analysis = await self.analyze_review(review.text, review.rating)  # type: ignore[arg-type]
            repo.update(
                review,
                ai_sentiment=analysis["sentiment"],
                ai_tags=analysis["tags"],
                ai_issues=analysis["issues"],
                ai_suggestions=analysis["suggestions"],
                ai_analyzed_at=datetime.now(UTC),
            )
        logger.info("Analysed %d stored reviews for user %s", len(pending), user_id)
        return len(pending), "Analysis completed"

    async def generate_reply(self, prompt: str | None) -> str | None:
        """Draft a reply to a review; None means the model returned nothing.

        Raises:
            ValueError: If the prompt is empty.
            ConfigurationError: If no OpenAI key is configured.
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("Prompt is required")
        response = await self.client.chat(
            model=settings.OPENAI_REPLY_MODEL,
            messages=[
                {"role": "system", "content": REPLY_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.7,
            max_tokens=200,
        )
        return OpenAIClient.extract_content(response)

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.models.review import SavedReview


class ReviewRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_google_id(self, google_review_id: str, location_id: str) -> SavedReview | None:
        return (
            self.db.query(SavedReview)
            .filter(
                SavedReview.google_review_id == google_review_id,
                SavedReview.location_id == location_id,
            )
            .first()
        )

    def get_in_range(
        self,
        start_date: datetime | None,
        end_date: datetime | None,
        location_id: str | None = None,
        user_id: UUID | None = None,
    ) -> list[SavedReview]:
        query = self.db.query(SavedReview)
        if start_date is not None:
            query = query.filter(SavedReview.review_date >= start_date)
        if end_date is not None:
            query = query.filter(SavedReview.review_date <= end_date)
        if location_id:
            query = query.filter(SavedReview.location_id == location_id)
        if user_id is not None:
            query = query.filter(SavedReview.user_id == user_id)
        return query.order_by(SavedReview.review_date.desc()).all()

    def upsert(self, user_id: UUID, google_review_id: str, location_id: str, **fields: Any) -> SavedReview:
        review = self.get_by_google_id(google_review_id, location_id)
        if review is None:
            review = SavedReview(
                user_id=user_id,
                google_review_id=google_review_id,
                location_id=location_id,
                **fields,
            )
            self.db.add(review)
        else:
            for key, value in fields.items():
                setattr(review, key, value)
        self.db.commit()
        self.db.refresh(review)
        return review

    def update(self, review: SavedReview, **fields: Any) -> SavedReview:
        for key, value in fields.items():
            setattr(review, key, value)
        self.db.commit()
        self.db.refresh(review)
        return review

    def delete_for_user(self, user_id: UUID, commit: bool = True) -> int:
        deleted = self.db.query(SavedReview).filter(SavedReview.user_id == user_id).delete()
        if commit:
            self.db.commit()
        return deleted

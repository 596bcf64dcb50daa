from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.models.user_profile import UserProfile


class UserProfileRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: UUID) -> UserProfile | None:
        return self.db.query(UserProfile).filter(UserProfile.id == user_id).first()

    def create(self, user_id: UUID, **fields: Any) -> UserProfile:
        profile = UserProfile(id=user_id, **fields)
        self.db.add(profile)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def upsert(self, user_id: UUID, **fields: Any) -> UserProfile:
        profile = self.get_by_id(user_id)
        if profile is None:
            return self.create(user_id, **fields)
        for key, value in fields.items():
            setattr(profile, key, value)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def delete(self, user_id: UUID, commit: bool = True) -> bool:
        deleted = self.db.query(UserProfile).filter(UserProfile.id == user_id).delete()
        if commit:
            self.db.commit()
        return deleted > 0

from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.models.user_plan import UserPlan


class UserPlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user_id(self, user_id: UUID) -> UserPlan | None:
        return self.db.query(UserPlan).filter(UserPlan.user_id == user_id).first()

    def upsert(self, user_id: UUID, plan_type: str, commit: bool = True) -> UserPlan:
        user_plan = self.get_by_user_id(user_id)
        if user_plan is None:
            user_plan = UserPlan(user_id=user_id, plan_type=plan_type)
            self.db.add(user_plan)
        else:
            user_plan.plan_type = plan_type  # type: ignore[assignment]
        if commit:
            self.db.commit()
            self.db.refresh(user_plan)
        else:
            self.db.flush()
        return user_plan

    def delete_for_user(self, user_id: UUID, commit: bool = True) -> bool:
        deleted = self.db.query(UserPlan).filter(UserPlan.user_id == user_id).delete()
        if commit:
            self.db.commit()
        return deleted > 0

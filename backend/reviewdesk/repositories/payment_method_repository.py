"""Repository for saved Keepz cards."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.models.payment_method import PENDING_CARD_MASK, UserPaymentMethod


class PaymentMethodRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, payment_method_id: UUID) -> UserPaymentMethod | None:
        return (
            self.db.query(UserPaymentMethod)
            .filter(UserPaymentMethod.id == payment_method_id)
            .first()
        )

    def get_for_user(self, payment_method_id: UUID, user_id: UUID) -> UserPaymentMethod | None:
        return (
            self.db.query(UserPaymentMethod)
            .filter(
                UserPaymentMethod.id == payment_method_id,
                UserPaymentMethod.user_id == user_id,
            )
            .first()
        )

    def get_by_user_id(self, user_id: UUID, include_pending: bool = False) -> list[UserPaymentMethod]:
        query = self.db.query(UserPaymentMethod).filter(UserPaymentMethod.user_id == user_id)
        if not include_pending:
            query = query.filter(UserPaymentMethod.card_mask != PENDING_CARD_MASK)
        return query.order_by(UserPaymentMethod.created_at.desc()).all()

    def get_pending_by_token(self, card_token: str) -> UserPaymentMethod | None:
        return (
            self.db.query(UserPaymentMethod)
            .filter(
                UserPaymentMethod.card_token == card_token,
                UserPaymentMethod.card_mask == PENDING_CARD_MASK,
            )
            .first()
        )

    def count_saved(self, user_id: UUID) -> int:
        return (
            self.db.query(UserPaymentMethod)
            .filter(
                UserPaymentMethod.user_id == user_id,
                UserPaymentMethod.card_mask != PENDING_CARD_MASK,
            )
            .count()
        )

    def create_pending(
        self, user_id: UUID, integrator_order_id: str, nickname: str | None = None
    ) -> UserPaymentMethod:
        payment_method = UserPaymentMethod(
            user_id=user_id,
            provider="keepz",
            card_token=integrator_order_id,
            card_mask=PENDING_CARD_MASK,
            card_brand=PENDING_CARD_MASK,
            nickname=nickname,
            is_default=False,
        )
        self.db.add(payment_method)
        self.db.commit()
        self.db.refresh(payment_method)
        return payment_method

    def update(self, payment_method: UserPaymentMethod, **fields: Any) -> UserPaymentMethod:
        for key, value in fields.items():
            setattr(payment_method, key, value)
        self.db.commit()
        self.db.refresh(payment_method)
        return payment_method

    def set_default(self, payment_method: UserPaymentMethod) -> UserPaymentMethod:
        # Unset other defaults for the same user
        self.db.query(UserPaymentMethod).filter(
            UserPaymentMethod.user_id == payment_method.user_id,
            UserPaymentMethod.is_default == True,  # noqa: E712
        ).update({"is_default": False})
        payment_method.is_default = True  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(payment_method)
        return payment_method

    def delete(self, payment_method: UserPaymentMethod) -> None:
        self.db.delete(payment_method)
        self.db.commit()

    def delete_for_user(self, user_id: UUID, commit: bool = True) -> int:
        deleted = (
            self.db.query(UserPaymentMethod).filter(UserPaymentMethod.user_id == user_id).delete()
        )
        if commit:
            self.db.commit()
        return deleted

    def delete_stale_pending(self, created_before: datetime) -> int:
        deleted = (
            self.db.query(UserPaymentMethod)
            .filter(
                UserPaymentMethod.card_mask == PENDING_CARD_MASK,
                UserPaymentMethod.created_at < created_before,
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

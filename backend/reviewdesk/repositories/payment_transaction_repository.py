from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.models.payment_transaction import PaymentTransaction, TransactionStatus


class PaymentTransactionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_provider_transaction_id(
        self, provider: str, provider_transaction_id: str
    ) -> PaymentTransaction | None:
        return (
            self.db.query(PaymentTransaction)
            .filter(
                PaymentTransaction.provider == provider,
                PaymentTransaction.provider_transaction_id == provider_transaction_id,
            )
            .first()
        )

    def get_latest_completed(self, subscription_id: UUID) -> PaymentTransaction | None:
        return (
            self.db.query(PaymentTransaction)
            .filter(
                PaymentTransaction.subscription_id == subscription_id,
                PaymentTransaction.status == TransactionStatus.COMPLETED.value,
            )
            .order_by(PaymentTransaction.created_at.desc())
            .first()
        )

    def create(
        self,
        *,
        user_id: UUID,
        subscription_id: UUID | None,
        provider: str,
        provider_transaction_id: str,
        amount_cents: int,
        currency: str,
        metadata: dict[str, Any] | None = None,
        commit: bool = True,
    ) -> PaymentTransaction:
        transaction = PaymentTransaction(
            user_id=user_id,
            subscription_id=subscription_id,
            provider=provider,
            provider_transaction_id=provider_transaction_id,
            amount_cents=amount_cents,
            currency=currency,
            status=TransactionStatus.COMPLETED.value,
            transaction_metadata=metadata,
        )
        self.db.add(transaction)
        if commit:
            self.db.commit()
            self.db.refresh(transaction)
        else:
            self.db.flush()
        return transaction

    def mark_refunded(
        self, transaction: PaymentTransaction, refunded_at: datetime, commit: bool = True
    ) -> PaymentTransaction:
        transaction.status = TransactionStatus.REFUNDED.value  # type: ignore[assignment]
        transaction.refunded_at = refunded_at  # type: ignore[assignment]
        if commit:
            self.db.commit()
            self.db.refresh(transaction)
        else:
            self.db.flush()
        return transaction

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from reviewdesk.models.invoice import Invoice


class InvoiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def _generate_invoice_number(self, now: datetime | None = None) -> str:
        """Generate the next invoice number for the day (INV-YYYYMMDD-XXXX)."""
        today = (now or datetime.now(UTC)).strftime("%Y%m%d")
        prefix = f"INV-{today}-"

        # Get the highest invoice number for today
        result = (
            self.db.query(Invoice.invoice_number)
            .filter(Invoice.invoice_number.like(f"{prefix}%"))
            .order_by(Invoice.invoice_number.desc())
            .first()
        )

        if result:
            try:
                new_num = int(result[0].split("-")[-1]) + 1
            except (ValueError, IndexError):
                new_num = 1
        else:
            new_num = 1

        return f"{prefix}{new_num:04d}"

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.id == invoice_id).first()

    def get_by_user_id(self, user_id: UUID, skip: int = 0, limit: int = 100) -> list[Invoice]:
        return (
            self.db.query(Invoice)
            .filter(Invoice.user_id == user_id)
            .order_by(Invoice.invoice_date.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def create(self, commit: bool = True, **fields: Any) -> Invoice:
        invoice_date = fields.get("invoice_date") or datetime.now(UTC)
        invoice = Invoice(
            invoice_number=self._generate_invoice_number(invoice_date),
            **{**fields, "invoice_date": invoice_date},
        )
        self.db.add(invoice)
        if commit:
            self.db.commit()
            self.db.refresh(invoice)
        else:
            self.db.flush()
        return invoice

from sqlalchemy.orm import Session

from reviewdesk.models.billing_plan import BillingPlan


class BillingPlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_active(self, provider: str, plan_type: str) -> BillingPlan | None:
        return (
            self.db.query(BillingPlan)
            .filter(
                BillingPlan.provider == provider,
                BillingPlan.plan_type == plan_type,
                BillingPlan.is_active == True,  # noqa: E712
            )
            .first()
        )

    def create(
        self,
        provider: str,
        plan_type: str,
        price_cents: int,
        currency: str = "USD",
        interval: str = "monthly",
    ) -> BillingPlan:
        plan = BillingPlan(
            provider=provider,
            plan_type=plan_type,
            price_cents=price_cents,
            currency=currency,
            interval=interval,
        )
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        return plan

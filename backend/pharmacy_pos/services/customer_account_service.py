# Overview: Additive updates to a customer's lifetime purchase aggregate.

from __future__ import annotations

from sqlalchemy import update

from ..errors import NotFoundError, ValidationError
from ..models import Customer


class CustomerAccountUpdater:
    """
    Increment Customer.total_purchases_paise when a sale is attributed.

    The increment is a single atomic add in the database, so concurrent
    checkouts for the same customer commute. A missing customer is a hard
    failure: the caller explicitly attributed the sale, so the checkout
    must abort rather than lose the attribution.
    """

    def __init__(self, session):
        self.session = session

    def record_purchase(self, store_id: int, customer_id: int, amount_paise: int) -> None:
        if isinstance(amount_paise, bool) or not isinstance(amount_paise, int) or amount_paise < 0:
            raise ValidationError(
                "purchase amount must be a non-negative integer",
                details={"customer_id": customer_id},
            )

        result = self.session.execute(
            update(Customer)
            .where(Customer.id == customer_id, Customer.store_id == store_id)
            .values(total_purchases_paise=Customer.total_purchases_paise + amount_paise)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError("Customer not found", details={"customer_id": customer_id})

# Overview: Pytest coverage for the customer lifetime purchase aggregate.

import pytest

from pharmacy_pos.errors import NotFoundError, ValidationError
from pharmacy_pos.models import Customer
from pharmacy_pos.services.customer_account_service import CustomerAccountUpdater


def _total(session, customer_id):
    session.expire_all()
    return session.get(Customer, customer_id).total_purchases_paise


def test_record_purchase_adds(db_session, store_a, customer_a):
    updater = CustomerAccountUpdater(db_session)
    updater.record_purchase(store_a.id, customer_a.id, 21000)
    updater.record_purchase(store_a.id, customer_a.id, 6500)
    db_session.commit()

    assert _total(db_session, customer_a.id) == 27500


def test_zero_amount_still_checks_existence(db_session, store_a, customer_a):
    updater = CustomerAccountUpdater(db_session)
    updater.record_purchase(store_a.id, customer_a.id, 0)
    with pytest.raises(NotFoundError):
        updater.record_purchase(store_a.id, 555, 0)


def test_other_store_customer_not_found(db_session, store_b, customer_a):
    with pytest.raises(NotFoundError) as exc:
        CustomerAccountUpdater(db_session).record_purchase(store_b.id, customer_a.id, 100)
    assert exc.value.details == {"customer_id": customer_a.id}
    db_session.rollback()
    assert _total(db_session, customer_a.id) == 0


@pytest.mark.parametrize("amount", [-1, 10.5, "100", True])
def test_rejects_bad_amount(db_session, store_a, customer_a, amount):
    with pytest.raises(ValidationError):
        CustomerAccountUpdater(db_session).record_purchase(store_a.id, customer_a.id, amount)

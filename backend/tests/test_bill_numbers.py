# Overview: Pytest coverage for store-scoped, date-encoded bill number allocation.

from datetime import date

import pytest

from pharmacy_pos.errors import NotFoundError, ValidationError
from pharmacy_pos.models import BillSequence
from pharmacy_pos.services.bill_number_service import BillNumberGenerator
from pharmacy_pos.time_utils import local_today


DAY = date(2026, 10, 18)


def test_first_numbers_of_the_day(db_session, store_a):
    gen = BillNumberGenerator(db_session)
    assert gen.next(store_a.id, issued_on=DAY) == "INV-261018-0001"
    assert gen.next(store_a.id, issued_on=DAY) == "INV-261018-0002"
    assert gen.next(store_a.id, issued_on=DAY) == "INV-261018-0003"
    db_session.commit()

    seq = db_session.query(BillSequence).filter_by(store_id=store_a.id, sequence_date=DAY).one()
    assert seq.next_number == 4


def test_counter_is_per_store(db_session, store_a, store_b):
    gen = BillNumberGenerator(db_session)
    assert gen.next(store_a.id, issued_on=DAY) == "INV-261018-0001"
    assert gen.next(store_b.id, issued_on=DAY) == "INV-261018-0001"
    assert gen.next(store_a.id, issued_on=DAY) == "INV-261018-0002"


def test_counter_restarts_each_day(db_session, store_a):
    gen = BillNumberGenerator(db_session)
    gen.next(store_a.id, issued_on=DAY)
    gen.next(store_a.id, issued_on=DAY)
    assert gen.next(store_a.id, issued_on=date(2026, 10, 19)) == "INV-261019-0001"


def test_defaults_to_store_local_date(db_session, store_a):
    number = BillNumberGenerator(db_session).next(store_a.id)
    assert number == f"INV-{local_today(store_a.timezone):%y%m%d}-0001"


def test_custom_prefix(db_session, store_a):
    assert BillNumberGenerator(db_session, prefix="RX").next(store_a.id, issued_on=DAY) == "RX-261018-0001"


def test_empty_prefix_rejected(db_session):
    with pytest.raises(ValidationError):
        BillNumberGenerator(db_session, prefix="")


def test_counter_grows_past_padding(db_session, store_a):
    db_session.add(BillSequence(store_id=store_a.id, sequence_date=DAY, next_number=10000))
    db_session.commit()

    gen = BillNumberGenerator(db_session)
    assert gen.next(store_a.id, issued_on=DAY) == "INV-261018-10000"


def test_unknown_store(db_session):
    with pytest.raises(NotFoundError):
        BillNumberGenerator(db_session).next(987654)


def test_rolled_back_allocation_is_reused(db_session, store_a):
    gen = BillNumberGenerator(db_session)
    gen.next(store_a.id, issued_on=DAY)
    db_session.commit()

    gen.next(store_a.id, issued_on=DAY)
    db_session.rollback()

    # Numbers only burn when the enclosing checkout commits
    assert gen.next(store_a.id, issued_on=DAY) == "INV-261018-0002"

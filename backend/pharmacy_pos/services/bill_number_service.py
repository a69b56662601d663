# Overview: Store-scoped bill number allocation backed by an atomic per-day counter.

from __future__ import annotations

from datetime import date

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..models import BillSequence, Store
from pharmacy_pos.time_utils import local_today


class BillNumberGenerator:
    """
    Allocate human-readable bill numbers: {prefix}-{YYMMDD}-{NNNN}.

    The date is the store's local calendar date. NNNN comes from the
    (store_id, sequence_date) counter row, bumped with a single UPDATE so
    concurrent checkouts in one store never share a number. The first bill of
    a day inserts the row inside a SAVEPOINT; losing that insert race falls
    back to the UPDATE.

    Numbers sort by date, then by counter while it fits the padding.
    """

    def __init__(self, session, prefix: str = "INV", pad: int = 4):
        if not prefix:
            raise ValidationError("bill number prefix is required")
        self.session = session
        self.prefix = prefix
        self.pad = pad

    def _store_today(self, store_id: int) -> date:
        tz_name = self.session.execute(
            select(Store.timezone).where(Store.id == store_id)
        ).scalar_one_or_none()
        if tz_name is None:
            raise NotFoundError("Store not found", details={"store_id": store_id})
        return local_today(tz_name)

    def _bump(self, store_id: int, sequence_date: date) -> int | None:
        stmt = (
            update(BillSequence)
            .where(
                BillSequence.store_id == store_id,
                BillSequence.sequence_date == sequence_date,
            )
            .values(next_number=BillSequence.next_number + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if not result.rowcount:
            return None
        current = self.session.execute(
            select(BillSequence.next_number).where(
                BillSequence.store_id == store_id,
                BillSequence.sequence_date == sequence_date,
            )
        ).scalar_one()
        return current - 1

    def _allocate(self, store_id: int, sequence_date: date) -> int:
        number = self._bump(store_id, sequence_date)
        if number is not None:
            return number

        try:
            with self.session.begin_nested():
                self.session.add(
                    BillSequence(store_id=store_id, sequence_date=sequence_date, next_number=2)
                )
            return 1
        except IntegrityError:
            number = self._bump(store_id, sequence_date)
            if number is None:
                raise
            return number

    def next(self, store_id: int, issued_on: date | None = None) -> str:
        if not store_id:
            raise ValidationError("store_id is required")
        if issued_on is None:
            issued_on = self._store_today(store_id)

        number = self._allocate(store_id, issued_on)
        return f"{self.prefix}-{issued_on:%y%m%d}-{number:0{self.pad}d}"

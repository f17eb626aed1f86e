# Overview: Bulk wipe of all slips, income records and items (maintenance only).

from __future__ import annotations

import logging

from sqlalchemy import delete
from sqlalchemy.orm import Session

from ..models import IncomeProduct, IncomeRecord, Item, Slip, SlipLine
from .concurrency import transaction

logger = logging.getLogger(__name__)

RESET_CONFIRMATION = "RESET_ALL"


def wipe_all(session: Session) -> dict:
    """
    Delete every slip, income record and item in one transaction.

    Child rows go first so the statements work without ON DELETE CASCADE.
    Returns the number of parent rows removed per collection.
    """
    with transaction(session):
        session.execute(delete(SlipLine))
        slips = session.execute(delete(Slip)).rowcount
        session.execute(delete(IncomeProduct))
        income = session.execute(delete(IncomeRecord)).rowcount
        items = session.execute(delete(Item)).rowcount
    session.expunge_all()
    logger.warning("Wiped store data: %d slips, %d income records, %d items", slips, income, items)
    return {"slips": slips, "incomeRecords": income, "items": items}

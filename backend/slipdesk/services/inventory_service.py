# Overview: Inventory store contract used by the slip workflow (lookups and guarded stock moves).

"""
Inventory invariants:
- Item.quantity never goes negative. adjust_quantity applies the delta in a
  single guarded UPDATE, so even a caller that skipped its own stock check
  cannot oversell.
- Lookups only match active items (is_active true or NULL).
- Every function takes the caller's session; writes happen inside the
  caller's transaction and commit or roll back with it.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ..models import Item
from .concurrency import lock_for_update
from .errors import InsufficientStock, NotFound
from .product_attrs import ProductAttrs

logger = logging.getLogger(__name__)


def find_by_attributes(session: Session, attrs: ProductAttrs, *, lock: bool = False) -> Item | None:
    """
    Exact match on product type plus whichever type attributes are filled in.
    """
    query = (
        session.query(Item)
        .filter(Item.product_type == attrs.product_type, Item.active_clause())
        .filter_by(**attrs.filters())
        .order_by(Item.id.asc())
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def find_by_name_or_sku(session: Session, text: str | None, *, lock: bool = False) -> Item | None:
    """Case-insensitive exact match against name or SKU."""
    if not text or not text.strip():
        return None
    needle = text.strip().lower()
    query = (
        session.query(Item)
        .filter(
            Item.active_clause(),
            (func.lower(Item.name) == needle) | (func.lower(Item.sku) == needle),
        )
        .order_by(Item.id.asc())
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


def resolve_for_sale(session: Session, attrs: ProductAttrs, name: str | None) -> Item | None:
    """Forward lookup: attributes first, then name/SKU."""
    item = find_by_attributes(session, attrs, lock=True)
    if item is None and name:
        item = find_by_name_or_sku(session, name, lock=True)
    return item


def resolve_for_restore(
    session: Session,
    attrs: ProductAttrs,
    name: str | None,
    sku: str | None = None,
) -> Item | None:
    """
    Best-effort lookup used when stock goes back on the shelf.

    Recorded SKU, then recorded product name, then attributes.
    Duplicate names or case variants make this ambiguous, so it returns the
    oldest match or None and never raises for a missing item.
    """
    item = find_by_name_or_sku(session, sku, lock=True)
    if item is None:
        item = find_by_name_or_sku(session, name, lock=True)
    if item is None:
        item = find_by_attributes(session, attrs, lock=True)
    return item


def adjust_quantity(session: Session, item_id: int, delta: int) -> int:
    """
    Atomically add delta to an item's quantity and return the new quantity.

    Raises InsufficientStock when a negative delta would take quantity
    below zero; nothing is written in that case.
    """
    session.flush()
    stmt = (
        update(Item)
        .where(Item.id == item_id, Item.quantity + delta >= 0)
        .values(quantity=Item.quantity + delta)
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    item = session.get(Item, item_id, populate_existing=True)
    if item is None:
        raise NotFound("Item not found", f"No item with id {item_id}")
    if result.rowcount == 0:
        raise InsufficientStock(
            f"Insufficient stock for '{item.name or item.sku}'. Available: {item.quantity}",
            available=item.quantity,
        )
    logger.debug("Adjusted item %s by %+d (now %d)", item_id, delta, item.quantity)
    return item.quantity


def restock(
    session: Session,
    attrs: ProductAttrs,
    name: str | None,
    quantity: int,
    sku: str | None = None,
) -> bool:
    """
    Return a line's quantity to inventory. Logs and returns False when no
    item can be matched.
    """
    if quantity is None or quantity <= 0:
        return False
    item = resolve_for_restore(session, attrs, name, sku)
    if item is None:
        logger.warning("Product '%s' not found in inventory to restore", name)
        return False
    adjust_quantity(session, item.id, quantity)
    logger.info("Restored %d units of %s to inventory", quantity, name)
    return True

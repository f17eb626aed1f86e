# Overview: Slip workflow; creates, updates, cancels and deletes slips together with
# their stock movements and income mirror, one transaction per operation.

"""
Slip workflow

Forward operations (create, the re-reserve half of update) are strict: any
unresolvable product or short stock aborts the whole transaction, so no
stock moves and no slip or income row is written.

Reversal operations (cancel, delete, the restore half of update) are
best-effort per line: a line whose item can no longer be matched is logged
and skipped, and the caller gets counts of what was restored.

Every public function takes the session explicitly and runs inside
concurrency.transaction, retried on lock/timeout errors.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from ..models import Item, Slip, SlipLine
from ..models.slips import PAYMENT_METHODS, SLIP_STATUSES
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    ProductLineRequest,
    parse_product_lines,
    parse_slip_totals,
    require_object,
    validate_payload,
)
from . import income_service, inventory_service
from .concurrency import run_read, run_with_retry, transaction
from .errors import (
    AlreadyCancelled,
    ConflictError,
    InsufficientStock,
    NotFound,
    ProductNotFound,
    ValidationError,
)
from .pricing_service import line_name, price_line
from .product_attrs import CoverAttrs, attrs_from_row

logger = logging.getLogger(__name__)

SLIP_HEADER_POLICY = ModelValidationPolicy(
    writable_fields={
        "customerName": "customer_name",
        "customerPhone": "customer_phone",
        "paymentMethod": "payment_method",
        "notes": "notes",
        "discount": "discount",
    },
    choices={"payment_method": PAYMENT_METHODS},
)

SLIP_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        **SLIP_HEADER_POLICY.writable_fields,
        "subtotal": "subtotal",
        "totalAmount": "total_amount",
        "status": "status",
    },
    choices={"payment_method": PAYMENT_METHODS, "status": SLIP_STATUSES},
)

# Fields copied onto the income mirror; changing any of them triggers a resync
MIRRORED_FIELDS = {"customer_name", "customer_phone", "payment_method", "notes", "total_amount"}


@dataclass
class ReversalResult:
    slip: Slip | None
    income_records_updated: int
    inventory_items_restored: int

    def details(self) -> dict:
        return {
            "incomeRecordsUpdated": self.income_records_updated,
            "inventoryItemsRestored": self.inventory_items_restored,
        }


def _load_slip(session: Session, slip_id: int, *, lock: bool = False) -> Slip:
    query = session.query(Slip).filter(Slip.id == slip_id)
    if lock:
        query = query.with_for_update()
    slip = query.first()
    if slip is None:
        raise NotFound("Slip not found")
    return slip


def _describe(req: ProductLineRequest) -> str:
    if req.name:
        return req.name
    filters = ", ".join(f"{k}={v}" for k, v in req.attrs.filters().items())
    return f"{req.attrs.product_type} ({filters})" if filters else req.attrs.product_type


def _build_line(position: int, req: ProductLineRequest, item: Item | None) -> SlipLine:
    cover_type = req.attrs.cover_type if isinstance(req.attrs, CoverAttrs) else ""
    priced = price_line(
        req.attrs.product_type,
        cover_type,
        req.quantity,
        req.base_price,
        req.explicit_unit_price,
    )
    return SlipLine(
        position=position,
        product_name=line_name(req.attrs, req.name),
        sku=item.sku if item is not None else "",
        product_type=req.attrs.product_type,
        **req.attrs.columns(),
        quantity=req.quantity,
        base_price=max(0.0, req.base_price),
        unit_price=priced.unit_price,
        discount_amount=priced.discount_amount,
        discount_type=priced.discount_type,
        total_price=priced.total_price,
        category=req.category,
        subcategory=req.subcategory,
        company=req.company,
    )


def _reserve_lines(session: Session, requests: list[ProductLineRequest]) -> list[SlipLine]:
    """
    Resolve every requested line, check stock, price, then decrement.

    All checks run before the first decrement. Lines that resolve to the
    same item are checked against their combined quantity.
    """
    resolved: list[tuple[ProductLineRequest, Item]] = []
    for req in requests:
        item = inventory_service.resolve_for_sale(session, req.attrs, req.name)
        if item is None:
            raise ProductNotFound(
                "Product not found in inventory",
                f"No matching product found for: {_describe(req)}",
            )
        resolved.append((req, item))

    requested: dict[int, int] = defaultdict(int)
    for req, item in resolved:
        requested[item.id] += req.quantity

    for req, item in resolved:
        if item.quantity < requested[item.id]:
            raise InsufficientStock(
                f"Insufficient stock for '{req.name or item.name}'. Available: {item.quantity}",
                available=item.quantity,
            )

    lines = [_build_line(i, req, item) for i, (req, item) in enumerate(resolved)]

    for item_id, quantity in requested.items():
        inventory_service.adjust_quantity(session, item_id, -quantity)

    return lines


def _price_only(session: Session, requests: list[ProductLineRequest]) -> list[SlipLine]:
    """Price lines without touching stock (slip holds no stock)."""
    lines = []
    for i, req in enumerate(requests):
        item = inventory_service.find_by_attributes(session, req.attrs) or inventory_service.find_by_name_or_sku(
            session, req.name
        )
        lines.append(_build_line(i, req, item))
    return lines


def _restore_lines(session: Session, lines: list[SlipLine]) -> int:
    restored = 0
    for line in lines:
        if inventory_service.restock(
            session,
            attrs_from_row(line),
            line.product_name,
            line.quantity,
            sku=line.sku,
        ):
            restored += 1
    return restored


def _reversal_note(action: str, slip: Slip, when: datetime, reason: str | None = None) -> str:
    note = f"{action} on {when.isoformat()} - Slip: {slip.slip_number or slip.id}"
    if reason:
        note += f" - Reason: {reason}"
    return note


def _mark_cancelled(session: Session, slip: Slip, reason: str | None, *, restore: bool) -> ReversalResult:
    now = utcnow()
    restored = _restore_lines(session, slip.lines) if restore else 0
    deactivated = income_service.deactivate_for_slip(
        session, slip, _reversal_note("Cancelled", slip, now, reason)
    )
    slip.status = "Cancelled"
    slip.cancelled_at = now
    if reason:
        slip.notes = f"{slip.notes or ''}\n[CANCELLED: {reason}]".strip()
    return ReversalResult(slip, deactivated, restored)


# ---------------------------------------------------------------------------
# Public workflow
# ---------------------------------------------------------------------------

def create_slip(session: Session, payload: dict) -> Slip:
    """
    Validate the requested products against live stock, price them,
    decrement stock, write the slip (status Paid) and its income record.
    """
    payload = require_object(payload)
    requests = parse_product_lines(payload.get("products"))
    subtotal, total_amount = parse_slip_totals(payload)

    header_input = {
        k: v for k, v in payload.items()
        if not (k in ("customerName", "paymentMethod") and not v)
    }
    header = validate_payload(model=Slip, payload=header_input, policy=SLIP_HEADER_POLICY, partial=True)
    slip_number = str(payload.get("slipNumber") or "").strip() or None

    def _op() -> Slip:
        with transaction(session):
            if slip_number and session.query(Slip.id).filter(Slip.slip_number == slip_number).first():
                raise ConflictError("Slip number already exists", f"Slip {slip_number} is already recorded")
            lines = _reserve_lines(session, requests)
            slip = Slip(
                **header,
                subtotal=subtotal,
                total_amount=total_amount,
                status="Paid",
                lines=lines,
            )
            if slip_number:
                slip.slip_number = slip_number
            session.add(slip)
            session.flush()
            income_service.create_for_slip(session, slip)
        logger.info(
            "Created slip %s with %d line(s), total %.2f",
            slip.slip_number, len(requests), total_amount,
        )
        return slip

    return run_with_retry(_op)


def cancel_slip(session: Session, slip_id: int, reason: str | None = None) -> ReversalResult:
    """
    Cancel a slip: status Cancelled, income deactivated, stock restored.
    Cancelling twice fails with AlreadyCancelled and changes nothing.
    """
    reason = str(reason).strip() if reason is not None else ""
    reason = reason or None

    def _op() -> ReversalResult:
        with transaction(session):
            slip = _load_slip(session, slip_id, lock=True)
            if slip.is_cancelled:
                raise AlreadyCancelled("Slip is already cancelled", slip.cancelled_at)
            result = _mark_cancelled(session, slip, reason, restore=True)
        logger.info(
            "Cancelled slip %s; restored %d product(s) to inventory",
            result.slip.slip_number, result.inventory_items_restored,
        )
        return result

    return run_with_retry(_op)


def update_slip(session: Session, slip_id: int, payload: dict) -> Slip:
    """
    Partial update. A new products list returns the old lines' stock and
    reserves the new lines' stock in the same transaction, so a failed
    reservation leaves inventory exactly as it was.
    """
    payload = require_object(payload)
    patch = validate_payload(model=Slip, payload=payload, policy=SLIP_UPDATE_POLICY, partial=True)
    new_status = patch.pop("status", None)

    products = payload.get("products")
    requests = parse_product_lines(products) if products is not None else None

    def _op() -> Slip:
        with transaction(session):
            slip = _load_slip(session, slip_id, lock=True)
            was_cancelled = slip.is_cancelled
            cancelling = new_status == "Cancelled"

            if was_cancelled and cancelling:
                raise AlreadyCancelled("Slip is already cancelled", slip.cancelled_at)
            if was_cancelled and new_status is not None:
                raise ValidationError("Cancelled slips cannot be reopened")

            if requests is not None:
                if was_cancelled:
                    slip.lines = _price_only(session, requests)
                elif cancelling:
                    # Cancellation returns the old lines; no need to reserve new ones
                    _restore_lines(session, slip.lines)
                    slip.lines = _price_only(session, requests)
                else:
                    _restore_lines(session, slip.lines)
                    slip.lines = _reserve_lines(session, requests)

            changed = set()
            for key, value in patch.items():
                if getattr(slip, key) != value:
                    setattr(slip, key, value)
                    changed.add(key)

            if cancelling:
                _mark_cancelled(session, slip, None, restore=requests is None)
            elif new_status is not None:
                slip.status = new_status

            session.flush()
            if not slip.is_cancelled and (requests is not None or changed & MIRRORED_FIELDS):
                income_service.sync_with_slip(session, slip)
        logger.info("Updated slip %s", slip.slip_number)
        return slip

    return run_with_retry(_op)


def delete_slip(session: Session, slip_id: int) -> ReversalResult:
    """
    Hard-delete a slip after returning its stock and deactivating its
    income. A slip that was already cancelled returned its stock then, so
    only the row is removed.
    """
    def _op() -> ReversalResult:
        with transaction(session):
            slip = _load_slip(session, slip_id, lock=True)
            now = utcnow()
            restored = 0 if slip.is_cancelled else _restore_lines(session, slip.lines)
            deactivated = income_service.deactivate_for_slip(
                session, slip, _reversal_note("Deleted", slip, now)
            )
            number = slip.slip_number
            session.delete(slip)
        logger.info("Deleted slip %s; restored %d product(s) to inventory", number, restored)
        return ReversalResult(None, deactivated, restored)

    return run_with_retry(_op)


def get_slip(session: Session, slip_id: int) -> Slip:
    return run_read(session, lambda: _load_slip(session, slip_id))


def _page_of_slips(session: Session, page: int, limit: int, start, end, status) -> tuple[int, list[Slip]]:
    query = session.query(Slip)
    if start:
        query = query.filter(Slip.date >= start)
    if end:
        query = query.filter(Slip.date <= end)
    if status:
        query = query.filter(Slip.status == status)
    total = query.count()
    slips = (
        query.order_by(Slip.created_at.desc(), Slip.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return total, slips


def list_slips(
    session: Session,
    *,
    page: int = 1,
    limit: int = 20,
    start: datetime | None = None,
    end: datetime | None = None,
    status: str | None = None,
) -> dict:
    if status and status not in SLIP_STATUSES:
        raise ValidationError(f"Invalid status: {status}")
    limit = min(max(limit, 1), 1000)
    page = max(page, 1)
    total, slips = run_read(session, lambda: _page_of_slips(session, page, limit, start, end, status))
    return {
        "slips": [s.to_dict() for s in slips],
        "totalPages": (total + limit - 1) // limit if total else 0,
        "currentPage": page,
        "totalSlips": total,
    }

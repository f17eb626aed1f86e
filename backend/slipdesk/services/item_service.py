# Overview: Inventory catalog maintenance (create, edit, stock corrections, soft delete, reads).

from __future__ import annotations

import logging
import random
import string
import time

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models import Item
from ..models.inventory import (
    BIKE_NAMES,
    COVER_TYPES,
    FORM_COMPANIES,
    FORM_TYPES,
    LOW_STOCK_THRESHOLD,
    PLATE_COMPANIES,
    PLATE_TYPES,
)
from ..validation import ModelValidationPolicy, parse_int, require_object, validate_payload
from . import inventory_service
from .concurrency import retrying_read, run_with_retry, transaction
from .errors import ConflictError, NotFound, ValidationError
from .product_attrs import CoverAttrs, FormAttrs, PlateAttrs, ProductAttrs, attrs_from_payload

logger = logging.getLogger(__name__)

SKU_ATTEMPTS = 5
STOCK_OPERATIONS = ("set", "add", "subtract")

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "category": "category",
        "subcategory": "subcategory",
        "company": "company",
        "description": "description",
        "supplier": "supplier",
        "quantity": "quantity",
        "price": "price",
        "basePrice": "base_price",
        "costPrice": "cost_price",
        "minStockLevel": "min_stock_level",
        "maxStockLevel": "max_stock_level",
    },
    required_on_create=frozenset({"price"}),
)


def generate_sku(product_type: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{product_type}-{int(time.time() * 1000)}-{suffix}".upper()


def default_name(attrs: ProductAttrs) -> str:
    parts = [attrs.product_type]
    if isinstance(attrs, CoverAttrs) and attrs.cover_type:
        parts.append(attrs.cover_type)
    elif isinstance(attrs, PlateAttrs) and attrs.plate_type:
        parts.append(attrs.plate_type)
    elif isinstance(attrs, FormAttrs) and attrs.variant:
        parts.append(attrs.variant)
    return " - ".join(parts)


def _check_choice(value: str, allowed: tuple, field: str) -> None:
    if value and value not in allowed:
        raise ValidationError(f"Invalid {field}: {value}", f"{field} must be one of {', '.join(allowed)}")


def check_type_rules(attrs: ProductAttrs) -> None:
    """Required and allowed attribute values for each product type."""
    if isinstance(attrs, CoverAttrs):
        if not attrs.cover_type:
            raise ValidationError("Cover type is required for Cover products")
        _check_choice(attrs.cover_type, COVER_TYPES, "coverType")
    elif isinstance(attrs, PlateAttrs):
        if not attrs.bike_name:
            raise ValidationError("Bike name is required for Plate products")
        _check_choice(attrs.bike_name, BIKE_NAMES, "bikeName")
        if attrs.bike_name != "Plastic Plate" and not attrs.plate_type:
            raise ValidationError("Plate type is required for Plate products")
        if attrs.bike_name == "70" and not attrs.company:
            raise ValidationError("Plate company is required for 70 bike plates")
        _check_choice(attrs.plate_type, PLATE_TYPES, "plateType")
        _check_choice(attrs.company, PLATE_COMPANIES, "plateCompany")
    else:
        if not (attrs.company and attrs.form_type and attrs.variant):
            raise ValidationError("Form company, type and variant are required for Form products")
        _check_choice(attrs.company, FORM_COMPANIES, "formCompany")
        _check_choice(attrs.form_type, FORM_TYPES, "formType")


def _sku_taken(session: Session, sku: str, *, exclude_id: int | None = None) -> bool:
    query = session.query(Item.id).filter(Item.sku == sku, Item.active_clause())
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    return query.first() is not None


def _unique_sku(session: Session, product_type: str) -> str:
    for _ in range(SKU_ATTEMPTS):
        sku = generate_sku(product_type)
        if not _sku_taken(session, sku):
            return sku
    raise ConflictError("Could not generate a unique SKU", "Please supply a SKU")


def _load_item(session: Session, item_id: int) -> Item:
    item = session.get(Item, item_id)
    if item is None or item.is_active is False:
        raise NotFound("Item not found")
    return item


def create_item(session: Session, payload: dict) -> Item:
    payload = require_object(payload)
    attrs = attrs_from_payload(payload, form_bike_key="formBikeName")
    check_type_rules(attrs)
    fields = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
    fields.setdefault("base_price", fields["price"])
    if not fields.get("name"):
        fields["name"] = default_name(attrs)
    supplied_sku = str(payload.get("sku") or "").strip().upper()

    def _op() -> Item:
        with transaction(session):
            if supplied_sku:
                if _sku_taken(session, supplied_sku):
                    raise ConflictError("SKU already exists", f"An active item already uses SKU {supplied_sku}")
                sku = supplied_sku
            else:
                sku = _unique_sku(session, attrs.product_type)
            item = Item(
                **fields,
                sku=sku,
                product_type=attrs.product_type,
                **attrs.columns(),
                is_active=True,
            )
            session.add(item)
        logger.info("Created item %s (%s)", item.sku, item.name)
        return item

    return run_with_retry(_op)


def update_item(session: Session, item_id: int, payload: dict) -> Item:
    payload = require_object(payload)
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=True)
    quantity = patch.pop("quantity", None)
    new_sku = str(payload.get("sku") or "").strip().upper()

    def _op() -> Item:
        with transaction(session):
            item = _load_item(session, item_id)
            if "productType" in payload or any(
                key in payload
                for key in ("coverType", "plateCompany", "bikeName", "plateType",
                            "formCompany", "formType", "formVariant", "formBikeName")
            ):
                merged = {**_wire_attrs(item), **payload}
                attrs = attrs_from_payload(merged, form_bike_key="formBikeName")
                check_type_rules(attrs)
                item.product_type = attrs.product_type
                for column, value in attrs.columns().items():
                    setattr(item, column, value)
            if new_sku and new_sku != item.sku:
                if _sku_taken(session, new_sku, exclude_id=item.id):
                    raise ConflictError("SKU already exists", f"An active item already uses SKU {new_sku}")
                item.sku = new_sku
            for key, value in patch.items():
                setattr(item, key, value)
            if quantity is not None and quantity != item.quantity:
                inventory_service.adjust_quantity(session, item.id, quantity - item.quantity)
        logger.info("Updated item %s", item.id)
        return item

    return run_with_retry(_op)


def _wire_attrs(item: Item) -> dict:
    return {
        "productType": item.product_type,
        "coverType": item.cover_type,
        "plateCompany": item.plate_company,
        "bikeName": item.bike_name,
        "plateType": item.plate_type,
        "formCompany": item.form_company,
        "formType": item.form_type,
        "formVariant": item.form_variant,
        "formBikeName": item.bike_name if item.product_type == "Form" else "",
    }


def adjust_stock(session: Session, item_id: int, quantity, operation: str = "set") -> Item:
    """Manual stock correction; set, add or subtract."""
    if operation not in STOCK_OPERATIONS:
        raise ValidationError("Invalid operation", "operation must be set, add, or subtract")
    amount = parse_int(quantity, "quantity")

    def _op() -> Item:
        with transaction(session):
            item = _load_item(session, item_id)
            if operation == "set":
                delta = amount - item.quantity
            elif operation == "add":
                delta = amount
            else:
                delta = -amount
            inventory_service.adjust_quantity(session, item.id, delta)
        logger.info("Stock %s %d on item %s (now %d)", operation, amount, item.id, item.quantity)
        return item

    return run_with_retry(_op)


def soft_delete_item(session: Session, item_id: int) -> Item:
    def _op() -> Item:
        with transaction(session):
            item = _load_item(session, item_id)
            item.is_active = False
        logger.info("Deactivated item %s", item.id)
        return item

    return run_with_retry(_op)


@retrying_read
def get_item(session: Session, item_id: int) -> Item:
    return _load_item(session, item_id)


@retrying_read
def list_items(
    session: Session,
    *,
    search: str | None = None,
    category: str | None = None,
    low_stock: bool = False,
    page: int = 1,
    limit: int = 50,
) -> dict:
    query = session.query(Item).filter(Item.active_clause())
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Item.name.ilike(pattern), Item.sku.ilike(pattern), Item.description.ilike(pattern)))
    if category:
        query = query.filter(Item.category == category)
    if low_stock:
        query = query.filter(Item.quantity <= Item.min_stock_level)

    limit = min(max(limit, 1), 1000)
    page = max(page, 1)
    total = query.count()
    items = query.order_by(Item.name.asc(), Item.id.asc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "items": [i.to_dict() for i in items],
        "totalPages": (total + limit - 1) // limit if total else 0,
        "currentPage": page,
        "totalItems": total,
    }


@retrying_read
def low_stock_items(session: Session, threshold: int = LOW_STOCK_THRESHOLD) -> list[Item]:
    return (
        session.query(Item)
        .filter(Item.active_clause(), Item.quantity <= threshold)
        .order_by(Item.quantity.asc(), Item.name.asc())
        .all()
    )


@retrying_read
def out_of_stock_items(session: Session) -> list[Item]:
    return (
        session.query(Item)
        .filter(Item.active_clause(), Item.quantity == 0)
        .order_by(Item.name.asc())
        .all()
    )

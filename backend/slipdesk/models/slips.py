from __future__ import annotations

import random
import string
import time

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

SLIP_STATUSES = ("Pending", "Paid", "Cancelled")
PAYMENT_METHODS = ("Cash", "Udhar", "Account", "Card", "UPI", "Bank Transfer", "Credit", "Other")
DISCOUNT_TYPES = ("none", "bulk", "manual")

DEFAULT_CUSTOMER_NAME = "Walk-in Customer"


def _money():
    return db.Numeric(12, 2, asdecimal=False)


def generate_slip_number() -> str:
    """SLP-<epoch ms>-<5 base36 chars>."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
    return f"SLP-{int(time.time() * 1000)}-{suffix}"


class ProductSnapshotMixin:
    """
    Columns describing a sold product at sale time.

    Shared by slip lines and income products so both mirrors carry the same
    shape. Only the attributes of the line's own product type are filled.
    """
    product_name = db.Column(db.String(255), nullable=False, default="", index=True)
    sku = db.Column(db.String(64), nullable=False, default="")
    product_type = db.Column(db.String(16), nullable=False, default="Cover")
    cover_type = db.Column(db.String(64), nullable=False, default="")
    plate_company = db.Column(db.String(16), nullable=False, default="")
    bike_name = db.Column(db.String(64), nullable=False, default="")
    plate_type = db.Column(db.String(64), nullable=False, default="")
    form_company = db.Column(db.String(16), nullable=False, default="")
    form_type = db.Column(db.String(16), nullable=False, default="")
    form_variant = db.Column(db.String(64), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(_money(), nullable=False)
    total_price = db.Column(_money(), nullable=False)
    category = db.Column(db.String(120), nullable=False, default="")
    subcategory = db.Column(db.String(120), nullable=False, default="")
    company = db.Column(db.String(120), nullable=False, default="")

    def snapshot_dict(self) -> dict:
        return {
            "productName": self.product_name,
            "sku": self.sku,
            "productType": self.product_type,
            "coverType": self.cover_type,
            "plateCompany": self.plate_company,
            "bikeName": self.bike_name,
            "plateType": self.plate_type,
            "formCompany": self.form_company,
            "formType": self.form_type,
            "formVariant": self.form_variant,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "totalPrice": self.total_price,
            "category": self.category,
            "subcategory": self.subcategory,
            "company": self.company,
        }


class Slip(db.Model):
    """
    Sales slip (receipt).

    status == "Cancelled" if and only if cancelled_at is set. Cancellation is
    terminal; there is no way back to Pending/Paid.
    """
    __tablename__ = "slips"
    __table_args__ = (
        db.Index("ix_slips_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    slip_number = db.Column(db.String(64), nullable=False, unique=True, default=generate_slip_number)

    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    customer_name = db.Column(db.String(255), nullable=False, default=DEFAULT_CUSTOMER_NAME, index=True)
    customer_phone = db.Column(db.String(64), nullable=False, default="")
    payment_method = db.Column(db.String(32), nullable=False, default="Cash")
    notes = db.Column(db.Text, nullable=False, default="")

    discount = db.Column(_money(), nullable=False, default=0)
    subtotal = db.Column(_money(), nullable=False)
    total_amount = db.Column(_money(), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="Paid", index=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "SlipLine",
        back_populates="slip",
        order_by="SlipLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_cancelled(self) -> bool:
        return self.status == "Cancelled"

    def __repr__(self) -> str:
        return f"<Slip id={self.id} number={self.slip_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slipNumber": self.slip_number,
            "date": to_utc_z(self.date),
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "paymentMethod": self.payment_method,
            "notes": self.notes,
            "discount": self.discount,
            "products": [line.to_dict() for line in self.lines],
            "subtotal": self.subtotal,
            "totalAmount": self.total_amount,
            "status": self.status,
            "cancelledAt": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "versionId": self.version_id,
        }


class SlipLine(ProductSnapshotMixin, db.Model):
    """One priced product line on a slip."""
    __tablename__ = "slip_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    slip_id = db.Column(db.Integer, db.ForeignKey("slips.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    base_price = db.Column(_money(), nullable=False)
    discount_amount = db.Column(_money(), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="none")

    slip = db.relationship("Slip", back_populates="lines")

    def to_dict(self) -> dict:
        data = self.snapshot_dict()
        data.update({
            "basePrice": self.base_price,
            "discountAmount": self.discount_amount,
            "discountType": self.discount_type,
        })
        return data

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .slips import ProductSnapshotMixin, DEFAULT_CUSTOMER_NAME


class IncomeRecord(db.Model):
    """
    Accounting mirror of a completed slip.

    Written only by the slip workflow. A cancelled or deleted slip leaves
    its record behind with is_active=False; records are never removed.
    slip_id is a plain reference (no foreign key) because the slip row may
    be hard-deleted while its income record remains.
    """
    __tablename__ = "income_records"
    __table_args__ = (
        db.Index("ix_income_active_date", "is_active", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    total_income = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)

    notes = db.Column(db.Text, nullable=False, default="")
    payment_method = db.Column(db.String(32), nullable=False, default="Cash", index=True)
    customer_name = db.Column(db.String(255), nullable=False, default=DEFAULT_CUSTOMER_NAME)
    customer_phone = db.Column(db.String(64), nullable=False, default="")

    slip_number = db.Column(db.String(64), nullable=False, default="", index=True)
    slip_id = db.Column(db.Integer, nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    products_sold = db.relationship(
        "IncomeProduct",
        back_populates="income",
        order_by="IncomeProduct.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def total_products(self) -> int:
        return sum(p.quantity for p in self.products_sold)

    @property
    def average_product_price(self) -> float:
        if not self.products_sold or not self.total_products:
            return 0
        return round(self.total_income / self.total_products, 2)

    def lines_total(self) -> float:
        return round(sum(p.total_price for p in self.products_sold), 2)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_utc_z(self.date),
            "totalIncome": self.total_income,
            "productsSold": [p.snapshot_dict() for p in self.products_sold],
            "notes": self.notes,
            "paymentMethod": self.payment_method,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "slipNumber": self.slip_number,
            "slipId": self.slip_id,
            "isActive": self.is_active,
            "totalProducts": self.total_products,
            "averageProductPrice": self.average_product_price,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class IncomeProduct(ProductSnapshotMixin, db.Model):
    __tablename__ = "income_products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    income_id = db.Column(db.Integer, db.ForeignKey("income_records.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    income = db.relationship("IncomeRecord", back_populates="products_sold")

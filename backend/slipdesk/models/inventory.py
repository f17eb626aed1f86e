from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

PRODUCT_TYPES = ("Cover", "Form", "Plate")

COVER_TYPES = (
    "Aster Cover",
    "Without Aster Cover",
    "Color Cover",
    "Genuine Cover",
    "PC Cover",
    "Tissue Cover",
    "Belta Cover",
    "Line Cover",
    "Suzuki Cover",
    "Calendar Cover",
    "Seat Cushion",
)
PLATE_COMPANIES = ("DY", "AH", "BELTA")
BIKE_NAMES = ("70", "CD", "125", "Yamaha", "Plastic Plate")
PLATE_TYPES = ("Single", "Double", "Side", "Lahore", "Double (Gormore)")
FORM_COMPANIES = ("AG", "MR", "UC", "MASTER")
FORM_TYPES = ("Soft", "Hard")

LOW_STOCK_THRESHOLD = 10


def _money():
    return db.Numeric(12, 2, asdecimal=False)


class Item(db.Model):
    """
    Inventory catalog entry.

    Only active items take part in slip lookups. is_active is nullable and a
    NULL value counts as active, so rows written before the flag existed
    are still sellable.

    quantity is mutated only through inventory_service.adjust_quantity,
    whose guarded UPDATE keeps it from going negative.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_items_quantity_non_negative"),
        db.Index("ix_items_type_active", "product_type", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, default="", index=True)
    sku = db.Column(db.String(64), nullable=False, default="", index=True)

    product_type = db.Column(db.String(16), nullable=False, default="Cover", index=True)

    # Cover
    cover_type = db.Column(db.String(64), nullable=False, default="")
    # Plate
    plate_company = db.Column(db.String(16), nullable=False, default="")
    bike_name = db.Column(db.String(64), nullable=False, default="")
    plate_type = db.Column(db.String(64), nullable=False, default="")
    # Form
    form_company = db.Column(db.String(16), nullable=False, default="")
    form_type = db.Column(db.String(16), nullable=False, default="")
    form_variant = db.Column(db.String(64), nullable=False, default="")

    category = db.Column(db.String(120), nullable=False, default="General", index=True)
    subcategory = db.Column(db.String(120), nullable=False, default="")
    company = db.Column(db.String(120), nullable=False, default="")
    description = db.Column(db.Text, nullable=False, default="")
    supplier = db.Column(db.String(255), nullable=False, default="")

    quantity = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(_money(), nullable=False, default=0)
    base_price = db.Column(_money(), nullable=False, default=0)
    cost_price = db.Column(_money(), nullable=False, default=0)

    min_stock_level = db.Column(db.Integer, nullable=False, default=10)
    max_stock_level = db.Column(db.Integer, nullable=False, default=1000)

    is_active = db.Column(db.Boolean, nullable=True, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @classmethod
    def active_clause(cls):
        return db.or_(cls.is_active.is_(True), cls.is_active.is_(None))

    @property
    def profit(self) -> float:
        return round((self.price or 0) - (self.cost_price or 0), 2)

    @property
    def profit_percentage(self) -> float:
        if not self.cost_price:
            return 0
        return round(self.profit / self.cost_price * 100, 2)

    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock_level

    def is_out_of_stock(self) -> bool:
        return self.quantity == 0

    def __repr__(self) -> str:
        return f"<Item id={self.id} sku={self.sku!r} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "productType": self.product_type,
            "coverType": self.cover_type,
            "plateCompany": self.plate_company,
            "bikeName": self.bike_name,
            "plateType": self.plate_type,
            "formCompany": self.form_company,
            "formType": self.form_type,
            "formVariant": self.form_variant,
            "category": self.category,
            "subcategory": self.subcategory,
            "company": self.company,
            "description": self.description,
            "supplier": self.supplier,
            "quantity": self.quantity,
            "price": self.price,
            "basePrice": self.base_price,
            "costPrice": self.cost_price,
            "minStockLevel": self.min_stock_level,
            "maxStockLevel": self.max_stock_level,
            "isActive": self.is_active is not False,
            "profit": self.profit,
            "profitPercentage": self.profit_percentage,
            "isLowStock": self.is_low_stock(),
            "isOutOfStock": self.is_out_of_stock(),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

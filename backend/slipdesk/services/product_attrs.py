# Overview: Per-product-type attribute variants shared by pricing, lookup and snapshots.

"""
Each product type carries its own attribute set:

    Cover -> cover_type
    Plate -> plate_company, bike_name, plate_type
    Form  -> form_company, form_type, form_variant (+ optional bike_name)

Items, slip lines and income products all store the full column set with
the columns of other types left blank. These variants are the typed view
over that flat shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .errors import ValidationError

ATTRIBUTE_COLUMNS = (
    "cover_type",
    "plate_company",
    "bike_name",
    "plate_type",
    "form_company",
    "form_type",
    "form_variant",
)


def _blank_columns() -> dict:
    return {col: "" for col in ATTRIBUTE_COLUMNS}


@dataclass(frozen=True)
class CoverAttrs:
    cover_type: str = ""

    product_type = "Cover"

    def filters(self) -> dict:
        return {"cover_type": self.cover_type} if self.cover_type else {}

    def columns(self) -> dict:
        cols = _blank_columns()
        cols["cover_type"] = self.cover_type
        return cols

    def display_name(self) -> str | None:
        if self.cover_type:
            return f"Cover - {self.cover_type}"
        return None


@dataclass(frozen=True)
class PlateAttrs:
    company: str = ""
    bike_name: str = ""
    plate_type: str = ""

    product_type = "Plate"

    def filters(self) -> dict:
        cols = {
            "bike_name": self.bike_name,
            "plate_company": self.company,
            "plate_type": self.plate_type,
        }
        return {k: v for k, v in cols.items() if v}

    def columns(self) -> dict:
        cols = _blank_columns()
        cols.update(plate_company=self.company, bike_name=self.bike_name, plate_type=self.plate_type)
        return cols

    def display_name(self) -> str | None:
        if not self.plate_type:
            return None
        suffix = f" ({self.bike_name})" if self.bike_name else ""
        return f"Plate - {self.plate_type}{suffix}"


@dataclass(frozen=True)
class FormAttrs:
    company: str = ""
    form_type: str = ""
    variant: str = ""
    bike_name: str = ""

    product_type = "Form"

    def filters(self) -> dict:
        cols = {
            "form_company": self.company,
            "form_type": self.form_type,
            "form_variant": self.variant,
            "bike_name": self.bike_name,
        }
        return {k: v for k, v in cols.items() if v}

    def columns(self) -> dict:
        cols = _blank_columns()
        cols.update(
            form_company=self.company,
            form_type=self.form_type,
            form_variant=self.variant,
            bike_name=self.bike_name,
        )
        return cols

    def display_name(self) -> str | None:
        if not self.variant:
            return None
        suffix = f" ({self.company})" if self.company else ""
        return f"Form - {self.variant}{suffix}"


ProductAttrs = Union[CoverAttrs, PlateAttrs, FormAttrs]


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value).strip()


def attrs_from_payload(payload: dict, *, form_bike_key: str = "bikeName") -> ProductAttrs:
    """
    Build the attribute variant from a camelCase request payload.

    productType defaults to Cover. Catalog entry forms send a Form's bike as
    "formBikeName", so callers can point form_bike_key at that key.
    """
    product_type = _text(payload, "productType") or "Cover"
    if product_type == "Cover":
        return CoverAttrs(cover_type=_text(payload, "coverType"))
    if product_type == "Plate":
        return PlateAttrs(
            company=_text(payload, "plateCompany"),
            bike_name=_text(payload, "bikeName"),
            plate_type=_text(payload, "plateType"),
        )
    if product_type == "Form":
        return FormAttrs(
            company=_text(payload, "formCompany"),
            form_type=_text(payload, "formType"),
            variant=_text(payload, "formVariant"),
            bike_name=_text(payload, form_bike_key),
        )
    raise ValidationError(
        f"Invalid productType: {product_type}",
        "productType must be one of Cover, Form, Plate",
    )


def attrs_from_row(row) -> ProductAttrs:
    """Typed view over an Item, SlipLine or IncomeProduct row."""
    if row.product_type == "Plate":
        return PlateAttrs(company=row.plate_company, bike_name=row.bike_name, plate_type=row.plate_type)
    if row.product_type == "Form":
        return FormAttrs(
            company=row.form_company,
            form_type=row.form_type,
            variant=row.form_variant,
            bike_name=row.bike_name,
        )
    return CoverAttrs(cover_type=row.cover_type)

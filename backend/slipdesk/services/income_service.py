# Overview: Income mirror writes (driven by the slip workflow) and read projections for reporting.

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timedelta

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from ..models import IncomeProduct, IncomeRecord, Slip
from ..time_utils import start_of_day, to_utc_z, utcnow
from .concurrency import retrying_read
from .errors import NotFound, ValidationError
from .product_attrs import ATTRIBUTE_COLUMNS

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = (
    "product_name",
    "sku",
    "product_type",
    *ATTRIBUTE_COLUMNS,
    "quantity",
    "unit_price",
    "total_price",
    "category",
    "subcategory",
    "company",
)

TOTAL_TOLERANCE = 0.01

# Upper bound on trend windows; keeps the start date inside datetime's range
MAX_TREND_PERIODS = 120


def _products_from_slip(slip: Slip) -> list[IncomeProduct]:
    return [
        IncomeProduct(position=i, **{col: getattr(line, col) for col in SNAPSHOT_COLUMNS})
        for i, line in enumerate(slip.lines)
    ]


def _warn_on_total_mismatch(record: IncomeRecord) -> None:
    calculated = record.lines_total()
    if abs(calculated - record.total_income) > TOTAL_TOLERANCE:
        logger.warning(
            "Income total mismatch for slip %s: calculated %.2f, stored %.2f",
            record.slip_number, calculated, record.total_income,
        )


def _for_slip(slip: Slip):
    return or_(IncomeRecord.slip_id == slip.id, IncomeRecord.slip_number == slip.slip_number)


# ---------------------------------------------------------------------------
# Writes (slip workflow only)
# ---------------------------------------------------------------------------

def create_for_slip(session: Session, slip: Slip) -> IncomeRecord:
    """Insert the income record mirroring a freshly created slip. Slip must be flushed."""
    record = IncomeRecord(
        date=utcnow(),
        total_income=slip.total_amount,
        products_sold=_products_from_slip(slip),
        customer_name=slip.customer_name,
        customer_phone=slip.customer_phone,
        payment_method=slip.payment_method,
        slip_number=slip.slip_number,
        slip_id=slip.id,
        notes=f"Sale from slip {slip.slip_number}",
        is_active=True,
    )
    _warn_on_total_mismatch(record)
    session.add(record)
    return record


def sync_with_slip(session: Session, slip: Slip) -> int:
    """
    Bring the slip's active income record(s) in line with the slip's
    current lines, total and customer details. Returns records updated.
    """
    records = (
        session.query(IncomeRecord)
        .filter(_for_slip(slip), IncomeRecord.is_active.is_(True))
        .all()
    )
    for record in records:
        record.total_income = slip.total_amount
        record.products_sold = _products_from_slip(slip)
        record.customer_name = slip.customer_name
        record.customer_phone = slip.customer_phone
        record.payment_method = slip.payment_method
        record.notes = slip.notes or ""
        _warn_on_total_mismatch(record)
    logger.info("Updated %d income record(s) for slip %s", len(records), slip.slip_number)
    return len(records)


def deactivate_for_slip(session: Session, slip: Slip, note: str) -> int:
    """Mark every active income record of the slip inactive. Returns records changed."""
    stmt = (
        update(IncomeRecord)
        .where(_for_slip(slip), IncomeRecord.is_active.is_(True))
        .values(is_active=False, notes=note)
        .execution_options(synchronize_session=False)
    )
    count = session.execute(stmt).rowcount
    logger.info("Marked %d income record(s) as inactive for slip %s", count, slip.slip_number)
    return count


# ---------------------------------------------------------------------------
# Reads (reporting)
# ---------------------------------------------------------------------------

def _active(session: Session):
    return session.query(IncomeRecord).filter(IncomeRecord.is_active.is_(True))


@retrying_read
def get_income(session: Session, income_id: int) -> IncomeRecord:
    record = session.get(IncomeRecord, income_id)
    if record is None:
        raise NotFound("Income record not found")
    return record


@retrying_read
def list_income(
    session: Session,
    *,
    page: int = 1,
    limit: int = 10,
    start: datetime | None = None,
    end: datetime | None = None,
    customer_name: str | None = None,
) -> dict:
    query = _active(session)
    if start:
        query = query.filter(IncomeRecord.date >= start)
    if end:
        query = query.filter(IncomeRecord.date <= end)
    if customer_name:
        query = query.filter(IncomeRecord.customer_name.ilike(f"%{customer_name}%"))

    limit = min(max(limit, 1), 100)
    page = max(page, 1)
    total = query.count()
    records = (
        query.order_by(IncomeRecord.date.desc(), IncomeRecord.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "records": [r.to_dict() for r in records],
        "totalPages": (total + limit - 1) // limit if total else 0,
        "currentPage": page,
        "totalRecords": total,
    }


@retrying_read
def income_by_date_range(session: Session, start: datetime, end: datetime) -> list[IncomeRecord]:
    return (
        _active(session)
        .filter(IncomeRecord.date >= start, IncomeRecord.date <= end)
        .order_by(IncomeRecord.date.asc())
        .all()
    )


@retrying_read
def top_selling_products(
    session: Session,
    limit: int = 10,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[dict]:
    query = (
        session.query(
            IncomeProduct.product_name.label("name"),
            func.sum(IncomeProduct.quantity).label("total_quantity"),
            func.sum(IncomeProduct.total_price).label("total_revenue"),
            func.avg(IncomeProduct.unit_price).label("average_price"),
            func.count(func.distinct(IncomeRecord.id)).label("transactions"),
        )
        .join(IncomeRecord, IncomeProduct.income_id == IncomeRecord.id)
        .filter(IncomeRecord.is_active.is_(True))
    )
    if start:
        query = query.filter(IncomeRecord.date >= start)
    if end:
        query = query.filter(IncomeRecord.date <= end)

    rows = (
        query.group_by(IncomeProduct.product_name)
        .order_by(func.sum(IncomeProduct.quantity).desc(), IncomeProduct.product_name.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "productName": row.name,
            "totalQuantity": int(row.total_quantity or 0),
            "totalRevenue": round(float(row.total_revenue or 0), 2),
            "averagePrice": round(float(row.average_price or 0), 2),
            "transactions": int(row.transactions or 0),
        }
        for row in rows
    ]


def _period_start(period: str, limit: int, now: datetime) -> datetime:
    today = start_of_day(now)
    if period == "day":
        return today - timedelta(days=limit)
    if period == "week":
        return today - timedelta(days=limit * 7)
    if period == "month":
        months = now.year * 12 + (now.month - 1) - limit
        return datetime(months // 12, months % 12 + 1, 1)
    if period == "year":
        return datetime(now.year - limit, 1, 1)
    raise ValidationError("period must be day, week, month, or year")


_BUCKET_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%Y-%U",
    "month": "%Y-%m",
    "year": "%Y",
}


@retrying_read
def income_trends(session: Session, period: str = "month", limit: int = 12) -> list[dict]:
    """Active income bucketed by day/week/month/year over the last `limit` periods."""
    limit = min(max(limit, 1), MAX_TREND_PERIODS)
    start = _period_start(period, limit, utcnow())
    fmt = _BUCKET_FORMATS[period]

    buckets: OrderedDict[str, dict] = OrderedDict()
    records = _active(session).filter(IncomeRecord.date >= start).order_by(IncomeRecord.date.asc()).all()
    for record in records:
        key = record.date.strftime(fmt)
        bucket = buckets.setdefault(key, {"period": key, "totalIncome": 0.0, "totalProducts": 0, "transactions": 0})
        bucket["totalIncome"] += record.total_income
        bucket["totalProducts"] += record.total_products
        bucket["transactions"] += 1

    rows = []
    for bucket in buckets.values():
        bucket["totalIncome"] = round(bucket["totalIncome"], 2)
        bucket["averageTransaction"] = round(bucket["totalIncome"] / bucket["transactions"], 2)
        rows.append(bucket)
    return rows


@retrying_read
def income_summary(session: Session) -> dict:
    now = utcnow()
    today = start_of_day(now)
    month_start = today.replace(day=1)

    def _sum_income(*criteria) -> float:
        value = (
            session.query(func.coalesce(func.sum(IncomeRecord.total_income), 0))
            .filter(IncomeRecord.is_active.is_(True), *criteria)
            .scalar()
        )
        return round(float(value or 0), 2)

    products_sold = (
        session.query(func.coalesce(func.sum(IncomeProduct.quantity), 0))
        .join(IncomeRecord, IncomeProduct.income_id == IncomeRecord.id)
        .filter(IncomeRecord.is_active.is_(True))
        .scalar()
    )

    breakdown = (
        session.query(
            IncomeRecord.payment_method,
            func.sum(IncomeRecord.total_income),
            func.count(IncomeRecord.id),
        )
        .filter(IncomeRecord.is_active.is_(True))
        .group_by(IncomeRecord.payment_method)
        .order_by(func.sum(IncomeRecord.total_income).desc())
        .all()
    )

    return {
        "totalIncome": _sum_income(),
        "totalProductsSold": int(products_sold or 0),
        "todayIncome": _sum_income(IncomeRecord.date >= today, IncomeRecord.date < today + timedelta(days=1)),
        "monthIncome": _sum_income(IncomeRecord.date >= month_start),
        "paymentBreakdown": [
            {"paymentMethod": method, "total": round(float(total or 0), 2), "count": int(count)}
            for method, total, count in breakdown
        ],
        "generatedAt": to_utc_z(now),
    }

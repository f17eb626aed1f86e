# Overview: Pytest coverage for the slip workflow (create, cancel, update, delete).

"""
Slip Workflow Tests

Invariants covered:
1. Stock never goes negative, whatever the sequence of operations
2. A non-cancelled slip's active income record mirrors its total and lines
3. Cancelling twice fails and changes nothing
4. A failed create or update leaves inventory, slips and income untouched
5. Delete and cancel return stock line by line
"""

import pytest
from sqlalchemy.exc import OperationalError

from slipdesk.models import IncomeRecord, Item, Slip
from slipdesk.services import income_service, slip_service
from slipdesk.services.errors import (
    AlreadyCancelled,
    ConflictError,
    DatabaseUnavailable,
    InsufficientStock,
    NotFound,
    ProductNotFound,
    ValidationError,
)


def cover_line(quantity, cover_type="Aster Cover", base_price=100, **extra):
    line = {"productType": "Cover", "coverType": cover_type, "quantity": quantity, "basePrice": base_price}
    line.update(extra)
    return line


def plate_line(quantity, base_price=250):
    return {
        "productType": "Plate",
        "plateCompany": "DY",
        "bikeName": "70",
        "plateType": "Single",
        "quantity": quantity,
        "basePrice": base_price,
    }


def slip_payload(products, subtotal, total=None, **extra):
    payload = {"products": products, "subtotal": subtotal, "totalAmount": subtotal if total is None else total}
    payload.update(extra)
    return payload


def active_income(session, slip_id):
    session.expire_all()
    return session.query(IncomeRecord).filter_by(slip_id=slip_id, is_active=True).all()


class TestCreateSlip:
    def test_bulk_cover_scenario(self, db_session, aster_cover, stock_of):
        """Aster Cover x10 at 100 against stock 20."""
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(10)], 900))

        assert stock_of(aster_cover.id) == 10
        assert slip.total_amount == 900
        assert slip.status == "Paid"
        assert slip.cancelled_at is None

        line = slip.lines[0]
        assert line.unit_price == 90
        assert line.discount_type == "bulk"
        assert line.discount_amount == 100
        assert line.total_price == 900
        assert line.sku == "COVER-ASTER"

        income = active_income(db_session, slip.id)
        assert len(income) == 1
        assert income[0].total_income == 900
        assert income[0].slip_number == slip.slip_number
        assert income[0].notes == f"Sale from slip {slip.slip_number}"
        assert [p.quantity for p in income[0].products_sold] == [10]

    def test_defaults_customer_and_payment(self, db_session, aster_cover):
        slip = slip_service.create_slip(
            db_session, slip_payload([cover_line(1)], 100, customerName="", paymentMethod=None)
        )
        assert slip.customer_name == "Walk-in Customer"
        assert slip.payment_method == "Cash"
        assert slip.slip_number.startswith("SLP-")

    def test_name_is_synthesized_when_missing(self, db_session, single_plate):
        slip = slip_service.create_slip(db_session, slip_payload([plate_line(2)], 500))
        assert slip.lines[0].product_name == "Plate - Single (70)"

    def test_falls_back_to_name_lookup(self, db_session, make_item, stock_of):
        item = make_item(name="Special Seat", cover_type="Seat Cushion", quantity=5)
        products = [cover_line(2, cover_type="Tissue Cover", productName="special seat")]
        slip_service.create_slip(db_session, slip_payload(products, 200))
        assert stock_of(item.id) == 3

    def test_unknown_product_is_rejected(self, db_session, aster_cover):
        with pytest.raises(ProductNotFound) as exc:
            slip_service.create_slip(db_session, slip_payload([cover_line(1, cover_type="Belta Cover")], 100))
        assert "Belta Cover" in exc.value.details
        assert db_session.query(Slip).count() == 0

    def test_failure_on_second_line_changes_nothing(self, db_session, aster_cover, single_plate, stock_of):
        products = [cover_line(5), plate_line(16)]
        with pytest.raises(InsufficientStock) as exc:
            slip_service.create_slip(db_session, slip_payload(products, 4500))

        assert exc.value.available == 15
        assert stock_of(aster_cover.id) == 20
        assert stock_of(single_plate.id) == 15
        assert db_session.query(Slip).count() == 0
        assert db_session.query(IncomeRecord).count() == 0

    def test_lines_for_same_item_are_checked_together(self, db_session, aster_cover, stock_of):
        products = [cover_line(12), cover_line(9)]
        with pytest.raises(InsufficientStock):
            slip_service.create_slip(db_session, slip_payload(products, 1980))
        assert stock_of(aster_cover.id) == 20

    def test_exact_stock_sells_out(self, db_session, soft_form, stock_of):
        products = [{"productType": "Form", "formCompany": "AG", "formType": "Soft", "formVariant": "Soft",
                     "quantity": 8, "price": 400}]
        slip_service.create_slip(db_session, slip_payload(products, 3200))
        assert stock_of(soft_form.id) == 0

    @pytest.mark.parametrize("payload, message", [
        ({"products": [], "subtotal": 1, "totalAmount": 1}, "Products cannot be empty"),
        ({"products": [cover_line(1)], "totalAmount": 1}, "Subtotal and totalAmount required"),
        ({"products": [cover_line(1)], "subtotal": "abc", "totalAmount": 1}, "subtotal must be a valid number"),
        ({"products": [cover_line(1)], "subtotal": -1, "totalAmount": 1}, "subtotal cannot be negative"),
        ({"products": [cover_line(0)], "subtotal": 0, "totalAmount": 0}, "Quantity must be greater than 0"),
        ({"products": [cover_line(1, base_price=-5)], "subtotal": 0, "totalAmount": 0}, "cannot be negative"),
        ({"products": [cover_line(1)], "subtotal": 1, "totalAmount": 1, "paymentMethod": "Barter"},
         "Invalid paymentMethod"),
    ])
    def test_validation(self, db_session, aster_cover, stock_of, payload, message):
        with pytest.raises(ValidationError) as exc:
            slip_service.create_slip(db_session, payload)
        assert message in exc.value.message
        assert stock_of(aster_cover.id) == 20

    def test_manual_price_recorded(self, db_session, make_item):
        make_item(name="Genuine", cover_type="Genuine Cover")
        products = [{"productType": "Cover", "coverType": "Genuine Cover", "quantity": 2,
                     "basePrice": 100, "unitPrice": 85}]
        slip = slip_service.create_slip(db_session, slip_payload(products, 170))
        line = slip.lines[0]
        assert line.discount_type == "manual"
        assert line.discount_amount == 30
        assert line.total_price == 170

    def test_total_mismatch_only_warns(self, db_session, aster_cover, caplog):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(1)], 100, total=80))
        assert slip.total_amount == 80
        assert "Income total mismatch" in caplog.text


    def test_duplicate_slip_number_conflicts(self, db_session, aster_cover, stock_of):
        slip_service.create_slip(db_session, slip_payload([cover_line(2)], 200, slipNumber="SLP-100"))

        with pytest.raises(ConflictError):
            slip_service.create_slip(db_session, slip_payload([cover_line(3)], 300, slipNumber="SLP-100"))

        assert stock_of(aster_cover.id) == 18
        db_session.expire_all()
        assert db_session.query(Slip).count() == 1

    def test_non_object_payload_is_rejected(self, db_session, aster_cover, stock_of):
        with pytest.raises(ValidationError, match="Invalid JSON payload"):
            slip_service.create_slip(db_session, [cover_line(1)])
        assert stock_of(aster_cover.id) == 20


class TestCancelSlip:
    def test_cancel_restores_stock_and_deactivates_income(self, db_session, aster_cover, single_plate, stock_of):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(4), plate_line(3)], 1150))
        result = slip_service.cancel_slip(db_session, slip.id, "Customer changed mind")

        assert result.inventory_items_restored == 2
        assert result.income_records_updated == 1
        assert result.slip.status == "Cancelled"
        assert result.slip.cancelled_at is not None
        assert "[CANCELLED: Customer changed mind]" in result.slip.notes
        assert stock_of(aster_cover.id) == 20
        assert stock_of(single_plate.id) == 15

        assert active_income(db_session, slip.id) == []
        record = db_session.query(IncomeRecord).filter_by(slip_id=slip.id).one()
        assert record.notes.startswith("Cancelled on ")
        assert "Reason: Customer changed mind" in record.notes

    def test_second_cancel_fails_without_changes(self, db_session, aster_cover, stock_of):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(5)], 500))
        slip_service.cancel_slip(db_session, slip.id)
        assert stock_of(aster_cover.id) == 20

        with pytest.raises(AlreadyCancelled) as exc:
            slip_service.cancel_slip(db_session, slip.id)
        assert "This slip was cancelled on" in exc.value.details
        assert stock_of(aster_cover.id) == 20

    def test_cancel_missing_slip(self, db_session):
        with pytest.raises(NotFound):
            slip_service.cancel_slip(db_session, 4242)

    def test_unresolvable_line_does_not_block_cancel(self, db_session, aster_cover, single_plate, stock_of):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(2), plate_line(1)], 450))
        db_session.get(Item, single_plate.id).is_active = False
        db_session.commit()

        result = slip_service.cancel_slip(db_session, slip.id)
        assert result.slip.status == "Cancelled"
        assert result.inventory_items_restored == 1
        assert stock_of(aster_cover.id) == 20

    def test_round_trip(self, db_session, aster_cover, single_plate, soft_form, stock_of):
        before = {i.id: stock_of(i.id) for i in (aster_cover, single_plate, soft_form)}
        products = [
            cover_line(10),
            plate_line(7),
            {"productName": "Form AG Soft", "productType": "Form", "quantity": 3, "price": 400},
        ]
        slip = slip_service.create_slip(db_session, slip_payload(products, 4850))
        slip_service.cancel_slip(db_session, slip.id)
        after = {item_id: stock_of(item_id) for item_id in before}
        assert after == before


class TestUpdateSlip:
    def test_replace_products_moves_stock(self, db_session, aster_cover, single_plate, stock_of):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(5)], 500))
        updated = slip_service.update_slip(
            db_session, slip.id, slip_payload([cover_line(2), plate_line(4)], 1200)
        )

        assert stock_of(aster_cover.id) == 18
        assert stock_of(single_plate.id) == 11
        assert [line.quantity for line in updated.lines] == [2, 4]

        income = active_income(db_session, slip.id)
        assert len(income) == 1
        assert income[0].total_income == 1200
        assert [p.quantity for p in income[0].products_sold] == [2, 4]

    def test_failed_reservation_rolls_back_restoration(self, db_session, aster_cover, single_plate, stock_of):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(5)], 500))
        assert stock_of(aster_cover.id) == 15

        with pytest.raises(InsufficientStock):
            slip_service.update_slip(db_session, slip.id, {"products": [plate_line(99)]})

        assert stock_of(aster_cover.id) == 15
        assert stock_of(single_plate.id) == 15
        db_session.expire_all()
        assert [line.quantity for line in db_session.get(Slip, slip.id).lines] == [5]

    def test_new_lines_can_reuse_returned_stock(self, db_session, aster_cover, stock_of):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(15)], 1350))
        slip_service.update_slip(db_session, slip.id, slip_payload([cover_line(20)], 1800))
        assert stock_of(aster_cover.id) == 0

    def test_header_fields_sync_income(self, db_session, aster_cover):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(1)], 100))
        slip_service.update_slip(db_session, slip.id, {"customerName": "Ali", "paymentMethod": "Udhar"})
        record = active_income(db_session, slip.id)[0]
        assert record.customer_name == "Ali"
        assert record.payment_method == "Udhar"

    def test_status_cancelled_behaves_like_cancel(self, db_session, aster_cover, stock_of):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(6)], 600))
        updated = slip_service.update_slip(db_session, slip.id, {"status": "Cancelled"})
        assert updated.status == "Cancelled"
        assert updated.cancelled_at is not None
        assert stock_of(aster_cover.id) == 20
        assert active_income(db_session, slip.id) == []

        with pytest.raises(AlreadyCancelled):
            slip_service.update_slip(db_session, slip.id, {"status": "Cancelled"})
        assert stock_of(aster_cover.id) == 20

    def test_cancelled_slip_cannot_be_reopened(self, db_session, aster_cover):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(1)], 100))
        slip_service.cancel_slip(db_session, slip.id)
        with pytest.raises(ValidationError):
            slip_service.update_slip(db_session, slip.id, {"status": "Paid"})

    def test_invalid_status(self, db_session, aster_cover):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(1)], 100))
        with pytest.raises(ValidationError):
            slip_service.update_slip(db_session, slip.id, {"status": "Refunded"})

    def test_update_missing_slip(self, db_session):
        with pytest.raises(NotFound):
            slip_service.update_slip(db_session, 777, {"notes": "x"})


    def test_status_cancelled_with_products_only_returns_old_stock(
        self, db_session, aster_cover, single_plate, stock_of
    ):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(6)], 600))
        assert stock_of(aster_cover.id) == 14

        updated = slip_service.update_slip(
            db_session, slip.id, {"status": "Cancelled", "products": [plate_line(3)]}
        )

        assert updated.status == "Cancelled"
        assert [line.quantity for line in updated.lines] == [3]
        assert stock_of(aster_cover.id) == 20
        assert stock_of(single_plate.id) == 15
        assert active_income(db_session, slip.id) == []

    def test_products_on_cancelled_slip_are_repriced_without_stock(
        self, db_session, aster_cover, stock_of
    ):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(6)], 600))
        slip_service.cancel_slip(db_session, slip.id)
        assert stock_of(aster_cover.id) == 20

        updated = slip_service.update_slip(db_session, slip.id, {"products": [cover_line(12)]})

        assert updated.status == "Cancelled"
        assert [line.quantity for line in updated.lines] == [12]
        assert updated.lines[0].unit_price == 90
        assert stock_of(aster_cover.id) == 20
        assert active_income(db_session, slip.id) == []


class TestDeleteSlip:
    def test_delete_restores_each_line(self, db_session, aster_cover, single_plate, stock_of):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(3), plate_line(5)], 1550))
        result = slip_service.delete_slip(db_session, slip.id)

        assert result.inventory_items_restored == 2
        assert result.income_records_updated == 1
        assert stock_of(aster_cover.id) == 20
        assert stock_of(single_plate.id) == 15
        assert db_session.get(Slip, slip.id) is None

        record = db_session.query(IncomeRecord).filter_by(slip_id=slip.id).one()
        assert record.is_active is False
        assert record.notes.startswith("Deleted on ")

    def test_delete_after_cancel_does_not_restore_twice(self, db_session, aster_cover, stock_of):
        slip = slip_service.create_slip(db_session, slip_payload([cover_line(4)], 400))
        slip_service.cancel_slip(db_session, slip.id)
        result = slip_service.delete_slip(db_session, slip.id)
        assert result.inventory_items_restored == 0
        assert result.income_records_updated == 0
        assert stock_of(aster_cover.id) == 20

    def test_delete_missing_slip(self, db_session):
        with pytest.raises(NotFound):
            slip_service.delete_slip(db_session, 31337)


class TestStockNeverNegative:
    def test_mixed_sequence(self, db_session, aster_cover, single_plate, stock_of):
        first = slip_service.create_slip(db_session, slip_payload([cover_line(12)], 1080))
        second = slip_service.create_slip(db_session, slip_payload([cover_line(8), plate_line(15)], 4550))
        assert stock_of(aster_cover.id) == 0
        assert stock_of(single_plate.id) == 0

        with pytest.raises(InsufficientStock):
            slip_service.create_slip(db_session, slip_payload([cover_line(1)], 100))

        slip_service.cancel_slip(db_session, first.id)
        slip_service.update_slip(db_session, second.id, {"products": [cover_line(20)]})
        assert stock_of(aster_cover.id) == 0
        assert stock_of(single_plate.id) == 15

        with pytest.raises(InsufficientStock):
            slip_service.update_slip(db_session, second.id, {"products": [cover_line(21)]})

        slip_service.delete_slip(db_session, second.id)
        quantities = [q for (q,) in db_session.query(Item.quantity).all()]
        assert all(q >= 0 for q in quantities)
        assert stock_of(aster_cover.id) == 20


class TestListSlips:
    def test_filters_by_status_and_paginates(self, db_session, aster_cover):
        for _ in range(3):
            slip_service.create_slip(db_session, slip_payload([cover_line(1)], 100))
        cancelled = slip_service.create_slip(db_session, slip_payload([cover_line(1)], 100))
        slip_service.cancel_slip(db_session, cancelled.id)

        page = slip_service.list_slips(db_session, page=1, limit=2)
        assert page["totalSlips"] == 4
        assert page["totalPages"] == 2
        assert len(page["slips"]) == 2

        only_cancelled = slip_service.list_slips(db_session, status="Cancelled")
        assert [s["id"] for s in only_cancelled["slips"]] == [cancelled.id]

    def test_unknown_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            slip_service.list_slips(db_session, status="Lost")


class TestDatabaseFailures:
    """Lock and timeout errors are retried, then surface as DatabaseUnavailable."""

    @pytest.fixture(autouse=True)
    def no_backoff(self, monkeypatch):
        monkeypatch.setattr("slipdesk.services.concurrency.time.sleep", lambda seconds: None)

    def test_create_rolls_back_when_retries_run_out(self, db_session, aster_cover, stock_of, monkeypatch):
        calls = []

        def locked(session, slip):
            calls.append(slip.slip_number)
            raise OperationalError("INSERT INTO income_records", {}, Exception("database is locked"))

        monkeypatch.setattr(income_service, "create_for_slip", locked)

        with pytest.raises(DatabaseUnavailable) as excinfo:
            slip_service.create_slip(db_session, slip_payload([cover_line(5)], 500))

        assert excinfo.value.status_code == 503
        assert len(calls) == 2
        assert stock_of(aster_cover.id) == 20
        db_session.expire_all()
        assert db_session.query(Slip).count() == 0
        assert db_session.query(IncomeRecord).count() == 0

    def test_transient_failure_is_retried(self, db_session, aster_cover, stock_of, monkeypatch):
        real = income_service.create_for_slip
        calls = []

        def flaky(session, slip):
            calls.append(slip.slip_number)
            if len(calls) == 1:
                raise OperationalError("INSERT INTO income_records", {}, Exception("database is locked"))
            return real(session, slip)

        monkeypatch.setattr(income_service, "create_for_slip", flaky)

        slip = slip_service.create_slip(db_session, slip_payload([cover_line(5)], 500))

        assert len(calls) == 2
        assert stock_of(aster_cover.id) == 15
        assert len(active_income(db_session, slip.id)) == 1

    def test_read_failure_surfaces_as_unavailable(self, db_session, monkeypatch):
        def locked(session, slip_id, lock=False):
            raise OperationalError("SELECT slips", {}, Exception("database is locked"))

        monkeypatch.setattr(slip_service, "_load_slip", locked)

        with pytest.raises(DatabaseUnavailable):
            slip_service.get_slip(db_session, 1)

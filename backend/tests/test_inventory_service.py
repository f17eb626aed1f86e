# Overview: Pytest coverage for inventory lookups and guarded stock moves.

import pytest
from slipdesk.services import inventory_service
from slipdesk.services.errors import InsufficientStock, NotFound
from slipdesk.services.product_attrs import CoverAttrs, FormAttrs, PlateAttrs


class TestLookups:
    def test_find_by_attributes_matches_type_and_filled_fields(self, db_session, aster_cover, single_plate):
        found = inventory_service.find_by_attributes(db_session, PlateAttrs(bike_name="70", plate_type="Single"))
        assert found.id == single_plate.id

    def test_find_by_attributes_ignores_inactive(self, db_session, make_item):
        make_item(cover_type="Color Cover", is_active=False)
        assert inventory_service.find_by_attributes(db_session, CoverAttrs("Color Cover")) is None

    def test_null_is_active_counts_as_active(self, db_session, make_item):
        legacy = make_item(cover_type="PC Cover", is_active=None)
        found = inventory_service.find_by_attributes(db_session, CoverAttrs("PC Cover"))
        assert found.id == legacy.id

    def test_find_by_name_is_case_insensitive(self, db_session, soft_form):
        found = inventory_service.find_by_name_or_sku(db_session, "  form ag SOFT ")
        assert found.id == soft_form.id

    def test_find_by_sku(self, db_session, soft_form):
        assert inventory_service.find_by_name_or_sku(db_session, "form-ag-soft").id == soft_form.id

    def test_blank_name_finds_nothing(self, db_session, soft_form):
        assert inventory_service.find_by_name_or_sku(db_session, "   ") is None

    def test_resolve_for_sale_falls_back_to_name(self, db_session, make_item):
        item = make_item(name="Seat Cushion Deluxe", cover_type="Seat Cushion")
        found = inventory_service.resolve_for_sale(db_session, CoverAttrs("Line Cover"), "seat cushion deluxe")
        assert found.id == item.id

    def test_resolve_for_restore_prefers_sku(self, db_session, make_item):
        first = make_item(name="Twin", sku="TWIN-1")
        second = make_item(name="Twin", sku="TWIN-2")
        found = inventory_service.resolve_for_restore(db_session, CoverAttrs("Aster Cover"), "Twin", sku="TWIN-2")
        assert found.id == second.id
        found = inventory_service.resolve_for_restore(db_session, CoverAttrs("Aster Cover"), "Twin")
        assert found.id == first.id

    def test_resolve_for_restore_returns_none_when_unmatched(self, db_session):
        assert inventory_service.resolve_for_restore(db_session, FormAttrs(company="UC"), "Ghost") is None


class TestAdjustQuantity:
    def test_decrement_and_increment(self, db_session, aster_cover, stock_of):
        assert inventory_service.adjust_quantity(db_session, aster_cover.id, -5) == 15
        assert inventory_service.adjust_quantity(db_session, aster_cover.id, 3) == 18
        db_session.commit()
        assert stock_of(aster_cover.id) == 18

    def test_cannot_go_negative(self, db_session, aster_cover, stock_of):
        with pytest.raises(InsufficientStock) as exc:
            inventory_service.adjust_quantity(db_session, aster_cover.id, -21)
        assert exc.value.available == 20
        db_session.rollback()
        assert stock_of(aster_cover.id) == 20

    def test_exact_stock_can_be_taken(self, db_session, aster_cover):
        assert inventory_service.adjust_quantity(db_session, aster_cover.id, -20) == 0

    def test_missing_item(self, db_session):
        with pytest.raises(NotFound):
            inventory_service.adjust_quantity(db_session, 9999, 1)


class TestRestock:
    def test_restock_matches_by_name(self, db_session, soft_form, stock_of):
        restored = inventory_service.restock(db_session, FormAttrs(), "Form AG Soft", 2)
        db_session.commit()
        assert restored is True
        assert stock_of(soft_form.id) == 10

    def test_restock_unmatched_logs_and_returns_false(self, db_session, caplog):
        restored = inventory_service.restock(db_session, CoverAttrs("Tissue Cover"), "Nothing Like It", 4)
        assert restored is False
        assert "not found in inventory to restore" in caplog.text

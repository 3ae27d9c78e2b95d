"""
Inventory ledger tests: stock entry, decrement semantics and low-stock listing.
"""

import pytest
from sqlalchemy import false

from spherical.models import InventoryItem
from spherical.services import inventory_service
from spherical.validation import ConflictError, NotFoundError, ValidationError


def _add_row(db_session, product_id, location, quantity, min_level=0):
    item = InventoryItem(product_id=product_id, location=location, quantity=quantity, min_stock_level=min_level)
    db_session.add(item)
    db_session.commit()
    return item


class TestGetQuantity:

    def test_returns_quantity(self, db_session, stocked_product):
        assert inventory_service.get_quantity(stocked_product.id, "Main Warehouse") == 5

    def test_repeated_reads_are_stable(self, db_session, stocked_product):
        first = inventory_service.get_quantity(stocked_product.id, "Main Warehouse")
        second = inventory_service.get_quantity(stocked_product.id, "Main Warehouse")
        assert first == second

    def test_missing_row_is_not_found(self, db_session, product):
        with pytest.raises(NotFoundError):
            inventory_service.get_quantity(product.id, "Nowhere")


class TestUpsertStock:

    def test_creates_new_row(self, db_session, product):
        item, created = inventory_service.upsert_stock(product.id, "Shop Floor", 12, 3)
        assert created is True
        assert inventory_service.get_quantity(product.id, "Shop Floor") == 12
        assert item.min_stock_level == 3

    def test_updates_existing_row(self, db_session, stocked_product):
        before = db_session.query(InventoryItem).filter_by(product_id=stocked_product.id).one()
        stamp = before.last_updated

        item, created = inventory_service.upsert_stock(stocked_product.id, "Main Warehouse", 40, 10)
        assert created is False
        assert item.quantity == 40
        assert item.min_stock_level == 10
        assert item.last_updated >= stamp
        assert db_session.query(InventoryItem).count() == 1

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.upsert_stock(999999, "Shop Floor", 1, 0)

    def test_concurrent_first_entry_is_conflict(self, db_session, monkeypatch, stocked_product):
        # The existing row stays invisible, as if another request inserted it after our lookup.
        monkeypatch.setattr(inventory_service, "lock_for_update", lambda query: query.filter(false()))
        with pytest.raises(ConflictError):
            inventory_service.upsert_stock(stocked_product.id, "Main Warehouse", 9, 0)
        assert db_session.query(InventoryItem).count() == 1
        assert inventory_service.get_quantity(stocked_product.id, "Main Warehouse") == 5

    @pytest.mark.parametrize("payload,field", [
        ({"product_id": 1, "location": "Shop", "quantity": 0, "min_stock_level": 0}, "quantity"),
        ({"product_id": 1, "location": "Shop", "quantity": 2.5, "min_stock_level": 0}, "quantity"),
        ({"product_id": 1, "location": "S", "quantity": 2, "min_stock_level": 0}, "location"),
        ({"product_id": 1, "location": "Shop", "quantity": 2, "min_stock_level": -1}, "min_stock_level"),
        ({"location": "Shop", "quantity": 2, "min_stock_level": 0}, "product_id"),
    ])
    def test_payload_validation(self, db_session, payload, field):
        with pytest.raises(ValidationError) as exc:
            inventory_service.validate_stock_payload(payload)
        assert field in exc.value.details


class TestDecrement:

    def test_decrements_first_row_by_id(self, db_session, product):
        first = _add_row(db_session, product.id, "Warehouse B", 10)
        _add_row(db_session, product.id, "Warehouse A", 10)

        item = inventory_service.decrement(product.id, 4)
        db_session.commit()

        assert item.id == first.id
        assert inventory_service.get_quantity(product.id, "Warehouse B") == 6
        assert inventory_service.get_quantity(product.id, "Warehouse A") == 10

    def test_no_floor(self, db_session, stocked_product):
        inventory_service.decrement(stocked_product.id, 8)
        db_session.commit()
        assert inventory_service.get_quantity(stocked_product.id, "Main Warehouse") == -3

    def test_no_row_returns_none(self, db_session, product):
        assert inventory_service.decrement(product.id, 1) is None

    def test_does_not_commit(self, db_session, stocked_product):
        inventory_service.decrement(stocked_product.id, 2)
        db_session.rollback()
        assert inventory_service.get_quantity(stocked_product.id, "Main Warehouse") == 5


class TestListings:

    def test_low_stock_ordering_and_threshold(self, db_session, product, second_product):
        _add_row(db_session, product.id, "A", 3, min_level=3)         # at threshold: low
        _add_row(db_session, second_product.id, "A", 1, min_level=2)  # below: low
        _add_row(db_session, product.id, "B", 9, min_level=2)         # fine

        low = inventory_service.list_low_stock()
        assert [i.quantity for i in low] == [1, 3]
        assert all(i.is_low_stock for i in low)

    def test_inventory_ordered_by_product_name(self, db_session, product, second_product):
        _add_row(db_session, product.id, "A", 1)          # "400W Mono Panel"
        _add_row(db_session, second_product.id, "A", 1)   # "5kW Inverter"
        names = [i.product.name for i in inventory_service.list_inventory()]
        assert names == sorted(names)


class TestInventoryRoutes:

    def test_post_creates_then_updates(self, client, inventory_headers, product):
        payload = {"product_id": product.id, "location": "Shop Floor", "quantity": 6, "min_stock_level": 2}
        resp = client.post("/api/inventory", json=payload, headers=inventory_headers)
        assert resp.status_code == 201
        assert resp.json["quantity"] == 6
        assert resp.json["product"]["sku"] == "SP-400W"

        payload["quantity"] = 9
        resp = client.post("/api/inventory", json=payload, headers=inventory_headers)
        assert resp.status_code == 200
        assert resp.json["quantity"] == 9

    def test_post_unknown_product(self, client, inventory_headers):
        resp = client.post("/api/inventory", json={
            "product_id": 424242, "location": "Shop", "quantity": 1, "min_stock_level": 0,
        }, headers=inventory_headers)
        assert resp.status_code == 404

    def test_post_concurrent_first_entry(self, client, monkeypatch, inventory_headers, stocked_product):
        monkeypatch.setattr(inventory_service, "lock_for_update", lambda query: query.filter(false()))
        resp = client.post("/api/inventory", json={
            "product_id": stocked_product.id, "location": "Main Warehouse", "quantity": 9, "min_stock_level": 0,
        }, headers=inventory_headers)
        assert resp.status_code == 409

    def test_post_invalid_payload(self, client, inventory_headers, product):
        resp = client.post("/api/inventory", json={
            "product_id": product.id, "location": "S", "quantity": -1, "min_stock_level": 0,
        }, headers=inventory_headers)
        assert resp.status_code == 400
        assert set(resp.json["details"]) == {"location", "quantity"}

    def test_low_stock_route(self, client, cashier_headers, db_session, product):
        _add_row(db_session, product.id, "A", 0, min_level=1)
        resp = client.get("/api/inventory/low-stock", headers=cashier_headers)
        assert resp.status_code == 200
        assert len(resp.json) == 1

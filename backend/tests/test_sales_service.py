"""
Sale transaction tests.

Verifies:
- Totals are computed in a fixed order with plain float arithmetic
- A committed sale stores every item and decrements stock per item
- Any failure leaves no sale, no items and unchanged stock
- Known gaps: no stock floor, products without inventory rows are skipped
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from spherical.models import InventoryItem, Sale, SaleItem
from spherical.services import concurrency, inventory_service, sales_service
from spherical.services.concurrency import StorageError
from spherical.services.permission_service import AuthorizationError
from spherical.validation import NotFoundError, ValidationError
from conftest import identity_for


def _payload(product_id, quantity=3, unit_price=150.0, **extra):
    data = {
        "items": [{"product_id": product_id, "quantity": quantity, "unit_price": unit_price}],
        "payment_method": "cash",
    }
    data.update(extra)
    return data


def _stock(db_session, product_id):
    return db_session.query(InventoryItem.quantity).filter_by(product_id=product_id).order_by(InventoryItem.id).first()[0]


class TestComputeTotals:

    def test_example_sale(self):
        totals = sales_service.compute_totals(
            [{"quantity": 2, "unit_price": 100.0}, {"quantity": 1, "unit_price": 50.0}],
            discount=10,
            tax=15,
        )
        assert totals.subtotal == 250.0
        assert totals.discount_amount == 25.0
        assert totals.after_discount == 225.0
        assert totals.tax_amount == 33.75
        assert totals.final_amount == 258.75

    def test_five_percent_tax_example(self):
        totals = sales_service.compute_totals(
            [{"quantity": 2, "unit_price": 100}, {"quantity": 1, "unit_price": 50}],
            discount=10,
            tax=5,
        )
        assert totals.subtotal == 250
        assert totals.discount_amount == 25
        assert totals.after_discount == 225
        assert totals.tax_amount == 11.25
        assert totals.final_amount == 236.25

    def test_subtotal_is_plain_left_fold(self):
        items = [{"quantity": 1, "unit_price": p} for p in (0.1, 0.2, 0.3, 1e16, -1e16)]
        expected = 0
        expected = expected + 0.1
        expected = expected + 0.2
        expected = expected + 0.3
        expected = expected + 1e16
        expected = expected + -1e16
        assert sales_service.compute_totals(items).subtotal == expected

    def test_order_of_operations(self):
        items = [{"quantity": 3, "unit_price": 19.99}, {"quantity": 7, "unit_price": 0.35}]
        subtotal = 0 + 3 * 19.99 + 7 * 0.35
        discount_amount = subtotal * 12.5 / 100
        after = subtotal - discount_amount
        tax_amount = after * 7.5 / 100
        totals = sales_service.compute_totals(items, 12.5, 7.5)
        assert totals.final_amount == after + tax_amount

    def test_zero_discount_and_tax(self):
        totals = sales_service.compute_totals([{"quantity": 4, "unit_price": 2.5}])
        assert totals.final_amount == totals.subtotal == 10.0


class TestValidateSalePayload:

    @pytest.mark.parametrize("payload,field", [
        ({"items": [], "payment_method": "cash"}, "items"),
        ({"payment_method": "cash"}, "items"),
        ({"items": [{"product_id": 1, "quantity": 0, "unit_price": 1}], "payment_method": "cash"}, "items[0].quantity"),
        ({"items": [{"product_id": 1, "quantity": 1.5, "unit_price": 1}], "payment_method": "cash"}, "items[0].quantity"),
        ({"items": [{"product_id": 1, "quantity": 1, "unit_price": 0}], "payment_method": "cash"}, "items[0].unit_price"),
        ({"items": [{"product_id": "x", "quantity": 1, "unit_price": 1}], "payment_method": "cash"}, "items[0].product_id"),
        ({"items": [{"product_id": 1, "quantity": 1, "unit_price": 1}], "payment_method": "cheque"}, "payment_method"),
        ({"items": [{"product_id": 1, "quantity": 1, "unit_price": 1}], "payment_method": "cash", "discount": -1}, "discount"),
        ({"items": [{"product_id": 1, "quantity": 1, "unit_price": 1}], "payment_method": "cash", "tax": "5"}, "tax"),
        ({"items": [{"product_id": 1, "quantity": 1, "unit_price": 1}], "payment_method": "cash", "customer_name": "A"}, "customer_name"),
        ({"items": [{"product_id": 1, "quantity": 1, "unit_price": 1}], "payment_method": "cash", "customer_email": "nope"}, "customer_email"),
    ])
    def test_field_errors(self, payload, field):
        with pytest.raises(ValidationError) as exc:
            sales_service.validate_sale_payload(payload)
        assert field in exc.value.details

    def test_defaults(self):
        clean = sales_service.validate_sale_payload(
            {"items": [{"product_id": 1, "quantity": 2.0, "unit_price": 3}], "payment_method": "mobile_money"}
        )
        assert clean["discount"] == 0
        assert clean["tax"] == 0
        assert clean["items"][0]["quantity"] == 2
        assert clean["customer_email"] is None

    def test_customer_name_length_counts_raw_text(self):
        clean = sales_service.validate_sale_payload({
            "items": [{"product_id": 1, "quantity": 1, "unit_price": 1}],
            "payment_method": "cash",
            "customer_name": " A",
        })
        assert clean["customer_name"] == " A"


class TestCreateSale:

    def test_records_sale_and_decrements_stock(self, db_session, cashier, stocked_product):
        sale = sales_service.create_sale(
            _payload(stocked_product.id, quantity=3, discount=10, tax=5, customer_name="Ama Mensah"),
            identity_for(cashier),
        )

        assert sale.id is not None
        assert sale.total_amount == 450.0
        assert sale.final_amount == sales_service.compute_totals(
            [{"quantity": 3, "unit_price": 150.0}], 10, 5
        ).final_amount
        assert sale.created_by.id == cashier.id
        assert [(i.product_id, i.quantity) for i in sale.items] == [(stocked_product.id, 3)]
        assert _stock(db_session, stocked_product.id) == 2

    def test_items_keep_caller_order(self, db_session, director, stocked_product, second_product):
        db_session.add(InventoryItem(product_id=second_product.id, location="Main Warehouse", quantity=4, min_stock_level=0))
        db_session.commit()

        sale = sales_service.create_sale({
            "items": [
                {"product_id": second_product.id, "quantity": 1, "unit_price": 900.0},
                {"product_id": stocked_product.id, "quantity": 2, "unit_price": 150.0},
            ],
            "payment_method": "card",
        }, identity_for(director))

        assert [i.product_id for i in sale.items] == [second_product.id, stocked_product.id]
        assert _stock(db_session, second_product.id) == 3
        assert _stock(db_session, stocked_product.id) == 3

    def test_oversell_goes_negative(self, db_session, cashier, stocked_product):
        sales_service.create_sale(_payload(stocked_product.id, quantity=8), identity_for(cashier))
        assert _stock(db_session, stocked_product.id) == -3

    def test_product_without_inventory_is_sold_without_stock_change(self, db_session, cashier, product):
        sale = sales_service.create_sale(_payload(product.id, quantity=2), identity_for(cashier))
        assert len(sale.items) == 1
        assert db_session.query(InventoryItem).count() == 0

    def test_unauthorized_actor_writes_nothing(self, db_session, report_viewer, stocked_product):
        with pytest.raises(AuthorizationError) as exc:
            sales_service.create_sale(_payload(stocked_product.id), identity_for(report_viewer))
        assert exc.value.current_role == "REPORT_VIEWER"
        assert db_session.query(Sale).count() == 0
        assert _stock(db_session, stocked_product.id) == 5

    def test_invalid_payload_writes_nothing(self, db_session, cashier, stocked_product):
        with pytest.raises(ValidationError):
            sales_service.create_sale(_payload(stocked_product.id, quantity=0), identity_for(cashier))
        assert db_session.query(Sale).count() == 0

    def test_unknown_product_writes_nothing(self, db_session, cashier, stocked_product):
        payload = {
            "items": [
                {"product_id": stocked_product.id, "quantity": 1, "unit_price": 150.0},
                {"product_id": 987654, "quantity": 1, "unit_price": 10.0},
            ],
            "payment_method": "cash",
        }
        with pytest.raises(NotFoundError):
            sales_service.create_sale(payload, identity_for(cashier))
        assert db_session.query(Sale).count() == 0
        assert _stock(db_session, stocked_product.id) == 5


class TestAtomicity:

    def test_failure_on_second_decrement_rolls_back_everything(
        self, db_session, monkeypatch, cashier, stocked_product, second_product
    ):
        db_session.add(InventoryItem(product_id=second_product.id, location="Main Warehouse", quantity=4, min_stock_level=0))
        db_session.commit()

        real_decrement = inventory_service.decrement
        calls = []

        def flaky_decrement(product_id, quantity):
            calls.append(product_id)
            if len(calls) == 2:
                raise RuntimeError("simulated failure")
            return real_decrement(product_id, quantity)

        monkeypatch.setattr(inventory_service, "decrement", flaky_decrement)

        with pytest.raises(RuntimeError):
            sales_service.create_sale({
                "items": [
                    {"product_id": stocked_product.id, "quantity": 2, "unit_price": 150.0},
                    {"product_id": second_product.id, "quantity": 1, "unit_price": 900.0},
                ],
                "payment_method": "cash",
            }, identity_for(cashier))

        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert _stock(db_session, stocked_product.id) == 5
        assert _stock(db_session, second_product.id) == 4

    def test_storage_failure_is_wrapped(self, db_session, monkeypatch, cashier, stocked_product):
        def broken_decrement(product_id, quantity):
            raise OperationalError("UPDATE inventory_items", {}, Exception("disk I/O error"))

        monkeypatch.setattr(inventory_service, "decrement", broken_decrement)
        monkeypatch.setattr(concurrency.time, "sleep", lambda _s: None)

        with pytest.raises(StorageError) as exc:
            sales_service.create_sale(_payload(stocked_product.id), identity_for(cashier))

        assert str(exc.value) == "A storage error occurred"
        assert isinstance(exc.value.__cause__, OperationalError)
        assert db_session.query(Sale).count() == 0
        assert _stock(db_session, stocked_product.id) == 5


class TestSaleQueries:

    def _sale_at(self, db_session, user, when, amount=100.0):
        sale = Sale(
            total_amount=amount, discount=0, tax=0, final_amount=amount,
            payment_method="cash", created_by_id=user.id, created_at=when,
        )
        db_session.add(sale)
        db_session.commit()
        return sale

    def test_by_date_end_is_inclusive(self, db_session, cashier):
        self._sale_at(db_session, cashier, datetime(2024, 1, 31, 23, 30))
        self._sale_at(db_session, cashier, datetime(2024, 2, 1, 0, 0))
        self._sale_at(db_session, cashier, datetime(2023, 12, 31, 23, 59))

        sales = sales_service.list_sales_by_date("2024-01-01", "2024-01-31")
        assert [s.created_at.day for s in sales] == [31]

    def test_by_date_requires_both_bounds(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.list_sales_by_date("2024-01-01", None)

    def test_by_date_rejects_garbage(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.list_sales_by_date("yesterday", "2024-01-31")

    def test_list_newest_first(self, db_session, cashier):
        old = self._sale_at(db_session, cashier, datetime(2024, 1, 1))
        new = self._sale_at(db_session, cashier, datetime(2024, 6, 1))
        assert [s.id for s in sales_service.list_sales()] == [new.id, old.id]

    def test_get_missing_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.get_sale(31337)

    def test_summary(self, db_session, cashier, stocked_product, second_product):
        actor = identity_for(cashier)
        sales_service.create_sale(_payload(stocked_product.id, quantity=2, unit_price=150.0), actor)
        sales_service.create_sale(_payload(second_product.id, quantity=1, unit_price=900.0), actor)

        summary = sales_service.get_sales_summary()
        assert summary["total_sales"] == 2
        assert summary["total_revenue"] == 1200.0
        assert summary["average_sale_value"] == 600.0
        assert summary["sales_by_category"] == [{"category": "Solar Panels", "count": 2, "amount": 1200.0}]

    def test_empty_summary(self, db_session):
        summary = sales_service.get_sales_summary()
        assert summary["total_sales"] == 0
        assert summary["average_sale_value"] == 0


class TestSalesRoutes:

    def test_cashier_records_sale(self, client, cashier_headers, stocked_product, db_session):
        resp = client.post("/api/sales", json=_payload(stocked_product.id, quantity=2), headers=cashier_headers)
        assert resp.status_code == 201
        assert resp.json["final_amount"] == 300.0
        assert resp.json["items"][0]["product"]["sku"] == "SP-400W"
        assert resp.json["created_by"]["email"] == "cashier@spherical.test"
        assert _stock(db_session, stocked_product.id) == 3

    def test_invalid_sale_returns_details(self, client, cashier_headers, stocked_product):
        resp = client.post("/api/sales", json={"items": [], "payment_method": "cash"}, headers=cashier_headers)
        assert resp.status_code == 400
        assert "items" in resp.json["details"]

    def test_by_date_route(self, client, report_viewer_headers):
        resp = client.get("/api/sales/by-date?startDate=2024-01-01&endDate=2024-01-31", headers=report_viewer_headers)
        assert resp.status_code == 200
        assert resp.json == []

    def test_by_date_route_missing_params(self, client, report_viewer_headers):
        resp = client.get("/api/sales/by-date", headers=report_viewer_headers)
        assert resp.status_code == 400

    def test_get_sale_route(self, client, cashier_headers, stocked_product):
        created = client.post("/api/sales", json=_payload(stocked_product.id, quantity=1), headers=cashier_headers)
        resp = client.get(f"/api/sales/{created.json['id']}", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["id"] == created.json["id"]

    def test_summary_route(self, client, report_viewer_headers):
        resp = client.get("/api/sales/summary", headers=report_viewer_headers)
        assert resp.status_code == 200
        assert resp.json["total_sales"] == 0

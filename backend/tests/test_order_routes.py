# Overview: Pytest coverage for the JSON API (status codes and response shapes).

import pytest

from conftest import ADMIN_ID, OTHER_SHOP_ID, SHOP_ID, order_payload


def _create(client, customer, items, **kwargs):
    return client.post("/api/orders", json=order_payload(customer, items, **kwargs))


def _patch(client, **body):
    return client.patch("/api/orders", json=body)


class TestOrderEndpoints:
    def test_create_returns_201_with_order(self, client, db_session, customer, milk):
        resp = _create(client, customer, [{"product_id": milk.id, "quantity": 2}], total_cents=1000)

        assert resp.status_code == 201
        order = resp.get_json()["order"]
        assert order["status"] == "Unsettled"
        assert order["total_cents"] == 1000
        assert order["items"][0]["product_name"] == milk.name
        assert [h["action"] for h in order["settlement_history"]] == ["Created"]

    def test_create_missing_items_is_400(self, client, db_session, customer):
        resp = _create(client, customer, [])

        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_create_unknown_product_is_404(self, client, db_session, customer):
        resp = _create(client, customer, [{"product_id": 424242, "product_name": "Ghost", "quantity": 1}])

        assert resp.status_code == 404

    def test_create_duplicate_is_409(self, client, db_session, customer):
        payload = order_payload(customer, [{"product_name": "Bread", "quantity": 1}])

        assert client.post("/api/orders", json=payload).status_code == 201
        assert client.post("/api/orders", json=payload).status_code == 409

    def test_create_non_json_is_400(self, client, db_session):
        resp = client.post("/api/orders", data="not json", content_type="text/plain")

        assert resp.status_code == 400

    def test_settle_flow(self, client, db_session, customer, milk):
        order_id = _create(client, customer, [{"product_id": milk.id, "quantity": 1}], total_cents=1000) \
            .get_json()["order"]["order_id"]

        resp = _patch(client, action="settle", order_id=order_id, user_id=SHOP_ID, method="Cash", amount_cents=600)
        assert resp.status_code == 200
        order = resp.get_json()["order"]
        assert order["settlement_method"] == "Debt"
        assert order["settlement_amount_cents"] == 600

        resp = _patch(client, action="settleDebt", order_id=order_id, user_id=SHOP_ID,
                      method="Bank/UPI", amount_cents=400, expected_version=order["version_id"])
        assert resp.status_code == 200
        assert resp.get_json()["order"]["settlement_method"] == "Bank/UPI"

        resp = client.get(f"/api/customers/{customer.id}", query_string={"user_id": SHOP_ID})
        assert resp.get_json()["customer"]["debit_cents"] == 0

    def test_second_settle_is_409(self, client, db_session, customer):
        order_id = _create(client, customer, [{"product_name": "Bread", "quantity": 1}]).get_json()["order"]["order_id"]
        _patch(client, action="settle", order_id=order_id, user_id=SHOP_ID, method="Cash", amount_cents=1000)

        resp = _patch(client, action="settle", order_id=order_id, user_id=SHOP_ID, method="Cash", amount_cents=1000)

        assert resp.status_code == 409
        assert resp.get_json()["details"]["state"] == "SETTLED_CASH"

    def test_stale_expected_version_is_409(self, client, db_session, customer):
        order = _create(client, customer, [{"product_name": "Bread", "quantity": 1}]).get_json()["order"]

        resp = _patch(client, action="settle", order_id=order["order_id"], user_id=SHOP_ID,
                      method="Debt", expected_version=order["version_id"] + 5)

        assert resp.status_code == 409

    @pytest.mark.parametrize("body", [
        {"action": "settle", "method": "Cheque", "amount_cents": 100},
        {"action": "settle", "method": "Cash", "amount_cents": 0},
        {"action": "teleport"},
    ])
    def test_bad_action_bodies_are_400(self, client, db_session, customer, body):
        order_id = _create(client, customer, [{"product_name": "Bread", "quantity": 1}]).get_json()["order"]["order_id"]

        resp = _patch(client, order_id=order_id, user_id=SHOP_ID, **body)

        assert resp.status_code == 400

    def test_unknown_order_is_404(self, client, db_session):
        resp = _patch(client, action="discard", order_id="ORD-MISSING", user_id=SHOP_ID)

        assert resp.status_code == 404

    def test_foreign_actor_is_404_admin_is_allowed(self, client, db_session, customer):
        order_id = _create(client, customer, [{"product_name": "Bread", "quantity": 1}]).get_json()["order"]["order_id"]

        resp = client.get(f"/api/orders/{order_id}", query_string={"user_id": SHOP_ID, "actor_id": OTHER_SHOP_ID})
        assert resp.status_code == 404

        resp = _patch(client, action="discard", order_id=order_id, user_id=SHOP_ID, actor_id=OTHER_SHOP_ID)
        assert resp.status_code == 404

        resp = _patch(client, action="discard", order_id=order_id, user_id=SHOP_ID, actor_id=ADMIN_ID)
        assert resp.status_code == 200
        assert resp.get_json()["order"]["settlement_method"] == "Discarded"

    def test_list_orders_filters_by_status(self, client, db_session, customer):
        first = _create(client, customer, [{"product_name": "Bread", "quantity": 1}]).get_json()["order"]["order_id"]
        second = _create(client, customer, [{"product_name": "Eggs", "quantity": 6}]).get_json()["order"]["order_id"]
        _patch(client, action="settle", order_id=first, user_id=SHOP_ID, method="Debt")

        unsettled = client.get("/api/orders", query_string={"user_id": SHOP_ID, "status": "unsettled"}).get_json()
        settled = client.get("/api/orders", query_string={"user_id": SHOP_ID, "status": "Settled"}).get_json()
        everything = client.get("/api/orders", query_string={"user_id": SHOP_ID}).get_json()

        assert [o["order_id"] for o in unsettled["orders"]] == [second]
        assert [o["order_id"] for o in settled["orders"]] == [first]
        assert len(everything["orders"]) == 2

    def test_list_orders_bad_status_is_400(self, client, db_session):
        resp = client.get("/api/orders", query_string={"user_id": SHOP_ID, "status": "archived"})

        assert resp.status_code == 400

    def test_delivery_status_endpoint(self, client, db_session, customer):
        order_id = _create(client, customer, [{"product_name": "Bread", "quantity": 1}]).get_json()["order"]["order_id"]
        body = {"order_id": order_id, "user_id": SHOP_ID, "partner_id": "rider-1"}

        resp = client.patch("/api/orders/delivery-status", json={**body, "status": "On the Way"})
        assert resp.status_code == 200

        resp = client.patch("/api/orders/delivery-status", json={**body, "partner_id": "rider-2", "status": "Delivered"})
        assert resp.status_code == 409


class TestSalesEndpoints:
    def test_customer_ledger(self, client, db_session, customer):
        order_id = _create(client, customer, [{"product_name": "Bread", "quantity": 1}], total_cents=1000) \
            .get_json()["order"]["order_id"]
        _patch(client, action="settle", order_id=order_id, user_id=SHOP_ID, method="Cash", amount_cents=1000)

        resp = client.get("/api/sales/customer-ledger", query_string={"user_id": SHOP_ID, "customer_id": customer.id})

        assert resp.status_code == 200
        data = resp.get_json()
        assert [e["type"] for e in data["ledger"]] == ["Sale", "Payment"]
        assert data["customer"]["name"] == customer.name
        assert data["totals"]["net_balance_cents"] == 0

    def test_customer_ledger_requires_ids(self, client, db_session):
        resp = client.get("/api/sales/customer-ledger", query_string={"user_id": SHOP_ID})

        assert resp.status_code == 400

    def test_customer_ledger_unknown_customer_is_404(self, client, db_session):
        resp = client.get("/api/sales/customer-ledger", query_string={"user_id": SHOP_ID, "customer_id": 999})

        assert resp.status_code == 404

    def test_summary_bad_date_is_400(self, client, db_session):
        resp = client.get("/api/sales/summary", query_string={"user_id": SHOP_ID, "from": "yesterday-ish"})

        assert resp.status_code == 400

    def test_summary(self, client, db_session, customer):
        _create(client, customer, [{"product_name": "Bread", "quantity": 1}], total_cents=700)

        resp = client.get("/api/sales/summary", query_string={"user_id": SHOP_ID})

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["total_sales_cents"] == 700
        assert data["payment_breakdown"]["outstanding_debt_cents"] == 700


class TestCatalogEndpoints:
    def test_create_and_restock_product(self, client, db_session):
        resp = client.post("/api/products", json={
            "user_id": SHOP_ID,
            "name": "Curd 500g",
            "unit": "piece",
            "pack_size": "500g",
            "purchase_price_cents": 2500,
            "selling_price_cents": 3000,
            "quantity": 4,
        })
        assert resp.status_code == 201
        product = resp.get_json()["product"]
        assert product["pack_size"]["label"] == "500g"

        resp = client.post(f"/api/products/{product['id']}/restock", json={"user_id": SHOP_ID, "quantity": 6})
        assert resp.status_code == 200
        assert resp.get_json()["product"]["quantity"] == 10

        listed = client.get("/api/products", query_string={"user_id": SHOP_ID}).get_json()["products"]
        assert [p["name"] for p in listed] == ["Curd 500g"]

    def test_get_product_is_shop_scoped(self, client, db_session, milk):
        resp = client.get(f"/api/products/{milk.id}", query_string={"user_id": SHOP_ID})
        assert resp.status_code == 200
        assert resp.get_json()["product"]["name"] == milk.name

        resp = client.get(f"/api/products/{milk.id}", query_string={"user_id": OTHER_SHOP_ID})
        assert resp.status_code == 404

    def test_list_customers_only_own_shop(self, client, db_session, customer, other_customer):
        resp = client.get("/api/customers", query_string={"user_id": SHOP_ID})

        assert resp.status_code == 200
        assert [c["id"] for c in resp.get_json()["customers"]] == [customer.id]

    def test_restock_requires_positive_quantity(self, client, db_session, milk):
        resp = client.post(f"/api/products/{milk.id}/restock", json={"user_id": SHOP_ID, "quantity": 0})

        assert resp.status_code == 400

    def test_restock_other_shop_is_404(self, client, db_session, milk):
        resp = client.post(f"/api/products/{milk.id}/restock", json={"user_id": OTHER_SHOP_ID, "quantity": 1})

        assert resp.status_code == 404

    def test_create_customer_starts_at_zero(self, client, db_session):
        resp = client.post("/api/customers", json={
            "user_id": SHOP_ID,
            "name": "Anil",
            "shop_name": "Anil Traders",
            "shop_address": "7 Canal Road",
            "contacts": ["9811111111", " "],
        })

        assert resp.status_code == 201
        data = resp.get_json()["customer"]
        assert data["contacts"] == ["9811111111"]
        assert data["debit_cents"] == 0
        assert data["credit_cents"] == 0

    def test_customer_balance_fields_not_writable(self, client, db_session):
        resp = client.post("/api/customers", json={
            "user_id": SHOP_ID,
            "name": "Anil",
            "shop_name": "Anil Traders",
            "shop_address": "7 Canal Road",
            "contacts": ["9811111111"],
            "debit_cents": 5000,
        })

        assert resp.status_code == 400

    def test_health(self, client, db_session):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"

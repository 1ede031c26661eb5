# Overview: Pytest coverage for the customer ledger projection and sales summary.

from datetime import datetime, timedelta, timezone

import pytest

from shopledger.extensions import db
from shopledger.models import Customer, Order, SettlementEvent
from shopledger.services import reporting_service, settlement_service
from shopledger.time_utils import inclusive_range, utcnow, within_range
from shopledger.validation import NotFoundError

from conftest import SHOP_ID, OTHER_SHOP_ID, reload


def _today():
    now = utcnow()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _settle(order, method, amount_cents=None):
    return settlement_service.settle_order(
        order_id=order.order_id, user_id=order.user_id, method=method, amount_cents=amount_cents
    )


def _settle_debt(order, method, amount_cents):
    return settlement_service.settle_debt(
        order_id=order.order_id, user_id=order.user_id, method=method, amount_cents=amount_cents
    )


class TestCustomerLedger:
    def test_sale_and_payments_in_order(self, db_session, make_order, customer):
        order = make_order(total_cents=1000)
        _settle(order, "Cash", 600)
        _settle_debt(order, "Cash", 500)

        result = reporting_service.customer_ledger(SHOP_ID, customer.id)

        ledger = result["ledger"]
        assert [e["type"] for e in ledger] == ["Sale", "Payment", "Payment"]
        assert [e["debit_cents"] for e in ledger] == [1000, 0, 0]
        assert [e["credit_cents"] for e in ledger] == [0, 600, 500]
        assert ledger[1]["method"] == "Cash"
        assert ledger[0]["order_id"] == order.order_id

        totals = result["totals"]
        assert totals["debit_cents"] == 0
        assert totals["credit_cents"] == 100
        assert totals["net_balance_cents"] == -100
        assert totals["period_debit_cents"] == 1000
        assert totals["period_credit_cents"] == 1100

    def test_debt_flag_and_discard_are_adjustments(self, db_session, make_order, customer):
        flagged = make_order(total_cents=700)
        _settle(flagged, "Debt")
        dropped = make_order(total_cents=300)
        settlement_service.discard_order(order_id=dropped.order_id, user_id=SHOP_ID)

        ledger = reporting_service.customer_ledger(SHOP_ID, customer.id)["ledger"]

        adjustments = [e for e in ledger if e["type"] == "Adjustment"]
        assert len(adjustments) == 2
        debt_flag = next(e for e in adjustments if e["order_id"] == flagged.order_id)
        assert debt_flag["method"] == "Debt"
        assert debt_flag["debit_cents"] == 0
        assert debt_flag["credit_cents"] == 0
        discard = next(e for e in adjustments if e["order_id"] == dropped.order_id)
        assert discard["credit_cents"] == 300

    def test_entries_sorted_chronologically(self, db_session, make_order, customer):
        first = make_order(total_cents=100)
        second = make_order(total_cents=200)
        _settle(first, "Cash", 100)

        ledger = reporting_service.customer_ledger(SHOP_ID, customer.id)["ledger"]

        stamps = [e["at"] for e in ledger]
        assert stamps == sorted(stamps)
        assert ledger[-1]["type"] == "Payment"
        assert {e["order_id"] for e in ledger if e["type"] == "Sale"} == {first.order_id, second.order_id}

    def test_window_excludes_entries_but_totals_stay_authoritative(self, db_session, make_order, customer):
        make_order(total_cents=1000)
        tomorrow = _today() + timedelta(days=1)

        result = reporting_service.customer_ledger(SHOP_ID, customer.id, tomorrow, tomorrow)

        assert result["ledger"] == []
        assert result["totals"]["debit_cents"] == 1000
        assert result["totals"]["period_debit_cents"] == 0

    def test_to_date_is_inclusive_of_whole_day(self, db_session, make_order, customer):
        make_order(total_cents=1000)
        today = _today()

        result = reporting_service.customer_ledger(SHOP_ID, customer.id, today, today)

        assert [e["type"] for e in result["ledger"]] == ["Sale"]

    def test_projection_never_changes_balances(self, db_session, make_order, customer):
        order = make_order(total_cents=1000)
        _settle(order, "Cash", 400)
        before = reload(Customer, customer.id).to_dict()

        reporting_service.customer_ledger(SHOP_ID, customer.id)
        reporting_service.customer_ledger(SHOP_ID, customer.id)

        after = reload(Customer, customer.id).to_dict()
        assert before == after

    def test_customer_of_other_shop_not_found(self, db_session, other_customer):
        with pytest.raises(NotFoundError):
            reporting_service.customer_ledger(SHOP_ID, other_customer.id)


class TestSalesSummary:
    def test_totals_exclude_discarded_orders(self, db_session, make_order, milk, biscuits):
        paid = make_order(total_cents=1000, items=[{"product_id": milk.id, "quantity": 2}])
        _settle(paid, "Cash", 1000)
        owed = make_order(total_cents=500, items=[{"product_id": biscuits.id, "quantity": 3}])
        _settle(owed, "Debt")
        dropped = make_order(total_cents=800, items=[{"product_id": milk.id, "quantity": 9}])
        settlement_service.discard_order(order_id=dropped.order_id, user_id=SHOP_ID)

        summary = reporting_service.sales_summary(SHOP_ID)

        assert summary["total_sales_cents"] == 1500
        assert summary["total_orders"] == 2
        assert summary["quantities"]["litre"] == 2
        assert summary["quantities"]["box"] == 3
        assert summary["payment_breakdown"] == {
            "cash_cents": 1000,
            "bank_cents": 0,
            "outstanding_debt_cents": 500,
        }
        assert summary["overall_debit_cents"] == 500
        assert summary["overall_credit_cents"] == 0
        assert summary["net_receivable_cents"] == 500

    def test_daily_series(self, db_session, make_order):
        a = make_order(total_cents=1000)
        make_order(total_cents=250)
        _settle(a, "Bank/UPI", 1000)

        daily = reporting_service.sales_summary(SHOP_ID)["daily"]

        assert len(daily) == 1
        day = daily[0]
        assert day["date"] == _today().date().isoformat()
        assert day["total_sales_cents"] == 1250
        assert day["total_orders"] == 2
        assert day["bank_received_cents"] == 1000
        assert day["cash_received_cents"] == 0

    def test_outstanding_debt_never_negative(self, db_session, make_order):
        order = make_order(total_cents=1000)
        _settle(order, "Cash", 1500)

        summary = reporting_service.sales_summary(SHOP_ID)

        assert summary["net_receivable_cents"] == -500
        assert summary["payment_breakdown"]["outstanding_debt_cents"] == 0

    def test_window_in_future_is_empty(self, db_session, make_order):
        make_order(total_cents=1000)
        tomorrow = _today() + timedelta(days=1)

        summary = reporting_service.sales_summary(SHOP_ID, tomorrow, tomorrow)

        assert summary["total_orders"] == 0
        assert summary["daily"] == []
        # Customer balances are shop-wide, not windowed
        assert summary["overall_debit_cents"] == 1000

    def test_other_shops_are_not_counted(self, db_session, make_order, other_customer):
        make_order(total_cents=1000)
        make_order(total_cents=400, target_customer=other_customer,
                   items=[{"product_name": "Bread", "quantity": 1}])

        assert reporting_service.sales_summary(SHOP_ID)["total_sales_cents"] == 1000
        assert reporting_service.sales_summary(OTHER_SHOP_ID)["total_sales_cents"] == 400

    def test_payments_follow_the_orders_created_in_the_window(self, db_session, make_order):
        order = make_order(total_cents=1000)
        _settle(order, "Cash", 1000)

        created = _today() - timedelta(days=10)
        paid = created + timedelta(days=4)
        db.session.execute(Order.__table__.update().where(Order.id == order.id).values(created_at=created))
        db.session.execute(
            SettlementEvent.__table__.update()
            .where(SettlementEvent.order_pk == order.id)
            .values(at=paid)
        )
        db.session.commit()

        payment_day = reporting_service.sales_summary(SHOP_ID, paid, paid)
        assert payment_day["total_orders"] == 0
        assert payment_day["payment_breakdown"]["cash_cents"] == 0

        whole_span = reporting_service.sales_summary(SHOP_ID, created, paid)
        assert whole_span["total_orders"] == 1
        assert whole_span["payment_breakdown"]["cash_cents"] == 1000
        assert [d["date"] for d in whole_span["daily"]] == [created.date().isoformat(), paid.date().isoformat()]
        assert whole_span["daily"][1]["cash_received_cents"] == 1000


class TestDateWindow:
    START = datetime(2026, 1, 5)

    @pytest.mark.parametrize("stamp, inside", [
        (datetime(2026, 1, 5, 0, 0), True),
        (datetime(2026, 1, 5, 23, 59, tzinfo=timezone.utc), True),
        # 03:00 at +05:30 is 21:30 UTC on the previous day
        (datetime(2026, 1, 5, 3, 0, tzinfo=timezone(timedelta(hours=5, minutes=30))), False),
        (datetime(2026, 1, 6, 0, 0, tzinfo=timezone.utc), False),
    ])
    def test_aware_and_naive_stamps_compare_as_utc(self, stamp, inside):
        start, end_limit = inclusive_range(self.START, self.START)

        assert within_range(stamp, start, end_limit) is inside

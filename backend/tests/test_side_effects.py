# Overview: Pytest coverage for notifications, history immutability and ledger CLI commands.

import httpx
import pytest

from shopledger.cli import ledger_group
from shopledger.extensions import db
from shopledger.models import Order, SettlementEvent
from shopledger.models.orders import ImmutableRecordError, STATE_SETTLED_CASH
from shopledger.services import notification_service, settlement_service

from conftest import SHOP_ID, reload


WEBHOOK_URL = "http://hooks.example.test/orders"


class TestNotifications:
    def test_events_posted_after_commit(self, app, db_session, make_order, monkeypatch):
        monkeypatch.setitem(app.config, "ORDER_WEBHOOK_URL", WEBHOOK_URL)
        sent = []

        def fake_post(url, json=None, timeout=None):
            sent.append((url, json))
            return httpx.Response(202, request=httpx.Request("POST", url))

        monkeypatch.setattr(notification_service.httpx, "post", fake_post)

        order = make_order(total_cents=1000)
        settlement_service.settle_order(order_id=order.order_id, user_id=SHOP_ID, method="Cash", amount_cents=1000)

        assert [payload["event"] for _, payload in sent] == ["order.created", "order.settled"]
        assert all(url == WEBHOOK_URL for url, _ in sent)
        assert sent[-1][1]["order"]["state"] == STATE_SETTLED_CASH

    def test_delivery_failure_never_fails_the_order(self, app, db_session, make_order, monkeypatch, caplog):
        monkeypatch.setitem(app.config, "ORDER_WEBHOOK_URL", WEBHOOK_URL)

        def broken_post(url, json=None, timeout=None):
            raise httpx.ConnectError("connection refused", request=httpx.Request("POST", url))

        monkeypatch.setattr(notification_service.httpx, "post", broken_post)

        order = make_order(total_cents=1000)

        assert reload(Order, order.id) is not None
        assert "Failed to deliver order.created" in caplog.text

    def test_error_status_reported_as_false(self, app, db_session, make_order, monkeypatch):
        order = make_order()
        monkeypatch.setitem(app.config, "ORDER_WEBHOOK_URL", WEBHOOK_URL)
        monkeypatch.setattr(
            notification_service.httpx, "post",
            lambda url, json=None, timeout=None: httpx.Response(500, request=httpx.Request("POST", url)),
        )

        assert notification_service.dispatch_order_event(order, notification_service.EVENT_ORDER_SETTLED) is False

    def test_disabled_without_url(self, app, db_session, make_order, monkeypatch):
        order = make_order()

        def unexpected(*args, **kwargs):
            raise AssertionError("no webhook configured")

        monkeypatch.setattr(notification_service.httpx, "post", unexpected)

        assert notification_service.dispatch_order_event(order, notification_service.EVENT_ORDER_CREATED) is False


class TestHistoryImmutability:
    def test_update_blocked(self, db_session, make_order):
        order = make_order()
        event = db_session.query(SettlementEvent).filter_by(order_pk=order.id).one()

        event.note = "rewritten"
        with pytest.raises(ImmutableRecordError):
            db_session.flush()
        db_session.rollback()

        assert reload(SettlementEvent, event.id).note is None

    def test_delete_blocked(self, db_session, make_order):
        order = make_order()
        event = db_session.query(SettlementEvent).filter_by(order_pk=order.id).one()

        db_session.delete(event)
        with pytest.raises(ImmutableRecordError):
            db_session.flush()
        db_session.rollback()

        assert db_session.query(SettlementEvent).filter_by(order_pk=order.id).count() == 1


class TestLedgerCli:
    def test_verify_passes_on_consistent_history(self, app, db_session, make_order):
        order = make_order(total_cents=1000)
        settlement_service.settle_order(order_id=order.order_id, user_id=SHOP_ID, method="Cash", amount_cents=400)

        result = app.test_cli_runner().invoke(ledger_group, ["verify", "--user-id", SHOP_ID])

        assert result.exit_code == 0
        assert "1 orders checked" in result.output

    def test_verify_flags_divergent_cache(self, app, db_session, make_order):
        order = make_order(total_cents=1000)
        db.session.execute(
            Order.__table__.update().where(Order.id == order.id).values(settlement_amount_cents=999)
        )
        db.session.commit()

        result = app.test_cli_runner().invoke(ledger_group, ["verify"])

        assert result.exit_code == 1
        assert order.order_id in result.output

    def test_customer_balance(self, app, db_session, make_order, customer):
        make_order(total_cents=1250)

        result = app.test_cli_runner().invoke(ledger_group, ["customer", str(customer.id)])

        assert result.exit_code == 0
        assert "12.50" in result.output

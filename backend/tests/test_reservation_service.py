import pytest

from stockledger.services import reservation_service


@pytest.fixture
def reserved_orders(shop):
    shop.product(7, stock=40)
    shop.product(9, stock=5)
    shop.product(91, parent_id=9)
    shop.order([(7, 2)], status="pending")
    shop.order([(91, 3)], status="on-hold")
    shop.order([(7, 1), (9, 1)], status="processing")
    shop.order([(7, 5)], status="completed")
    shop.order([(7, 8)], status="cancelled")
    return shop


class TestReservations:
    def test_sums_reserved_statuses_with_variation_rollup(self, app, db_session, reserved_orders):
        assert reservation_service.reserved() == {7: 3, 9: 4}

    def test_filter_by_product(self, app, db_session, reserved_orders):
        assert reservation_service.reserved([9]) == {9: 4}
        assert reservation_service.reserved([12345]) == {}

    def test_scan_reports_order_count(self, app, db_session, reserved_orders):
        result = reservation_service.scan_reservations()

        assert result["orders_scanned"] == 3
        assert result["truncated"] is False

    def test_cap_truncates_silently_but_is_flagged(self, app, db_session, reserved_orders, monkeypatch):
        monkeypatch.setitem(app.config, "LEDGER_RESERVATION_ORDER_CAP", 2)

        result = reservation_service.scan_reservations()

        assert result["orders_scanned"] == 2
        assert result["truncated"] is True
        # Only the two lowest order ids were counted
        assert result["reservations"] == {7: 2, 9: 3}

    def test_exact_fit_is_not_truncated(self, app, db_session, reserved_orders, monkeypatch):
        monkeypatch.setitem(app.config, "LEDGER_RESERVATION_ORDER_CAP", 3)

        result = reservation_service.scan_reservations()

        assert result["truncated"] is False
        assert result["reservations"] == {7: 3, 9: 4}

    def test_reserved_statuses_are_configurable(self, app, db_session, reserved_orders, monkeypatch):
        monkeypatch.setitem(app.config, "LEDGER_RESERVED_STATUSES", ("pending",))

        assert reservation_service.reserved() == {7: 2}

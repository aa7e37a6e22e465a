import pytest
import sqlalchemy as sa

from stockledger.models import (
    EVENT_ORDER_REDUCED,
    EVENT_STOCK_SET,
    MOVEMENT_RESTORE,
    MOVEMENT_SALE,
    MOVEMENT_SET_STOCK,
    ProductStockState,
    SOURCE_HOOK,
    SOURCE_REPLAY,
    StockEvent,
    StockMovement,
)
from stockledger.platform import get_platform
from stockledger.services import event_recorder, movement_store


@pytest.fixture
def variation_order(shop):
    shop.product(10, stock=50)
    shop.product(11, parent_id=10)
    shop.product(12, parent_id=10)
    shop.product(20, stock=8)
    return shop.order([(11, 2), (12, 1), (20, 4)], status="processing", order_id=501)


class TestRecordOrderEvents:
    def test_one_event_per_order_with_dual_write(self, app, db_session, variation_order):
        row = event_recorder.record_order_reduced(get_platform().get_order(501))

        assert row is not None
        events = db_session.query(StockEvent).all()
        assert len(events) == 1
        assert events[0].kind == EVENT_ORDER_REDUCED
        assert events[0].order_id == 501
        assert events[0].product_id_list() == [10, 20]

        payload = events[0].payload_dict()
        assert sorted((l["product_id"], l["quantity"]) for l in payload["lines"]) == [(10, 1), (10, 2), (20, 4)]

        movements = db_session.query(StockMovement).order_by(StockMovement.product_id).all()
        assert [(m.product_id, m.kind, m.quantity, m.source) for m in movements] == [
            (10, MOVEMENT_SALE, -3, SOURCE_HOOK),
            (20, MOVEMENT_SALE, -4, SOURCE_HOOK),
        ]
        assert all(m.created_at == variation_order.created_at for m in movements)
        assert all(m.customer_label == "Ada Lovelace" for m in movements)

    def test_restore_writes_positive_rows(self, app, db_session, variation_order, shop):
        shop.order([(11, 2), (12, 1), (20, 4)], status="refunded", order_id=502)

        event_recorder.record_order_restored(get_platform().get_order(502))

        movements = db_session.query(StockMovement).all()
        assert {(m.product_id, m.kind, m.quantity) for m in movements} == {
            (10, MOVEMENT_RESTORE, 3),
            (20, MOVEMENT_RESTORE, 4),
        }

    def test_unpaid_order_is_logged_without_movements(self, app, db_session, shop):
        shop.product(20, stock=8)
        shop.order([(20, 2)], status="on-hold", order_id=503)

        row = event_recorder.record_order_reduced(get_platform().get_order(503))

        assert row is not None
        assert db_session.query(StockEvent).count() == 1
        assert db_session.query(StockMovement).count() == 0

    def test_large_orders_keep_every_product_id(self, app, db_session, shop):
        product_ids = list(range(100001, 100121))
        for product_id in product_ids:
            shop.product(product_id, stock=5)
        shop.order([(p, 1) for p in product_ids], status="processing", order_id=504)

        event_recorder.record_order_reduced(get_platform().get_order(504))

        event = db_session.query(StockEvent).one()
        assert event.product_id_list() == product_ids
        assert isinstance(StockEvent.__table__.c.product_ids.type, sa.Text)
        assert db_session.query(StockMovement).count() == len(product_ids)

    def test_dual_write_can_be_disabled(self, app, db_session, variation_order, monkeypatch):
        monkeypatch.setitem(app.config, "LEDGER_PERSIST_MOVEMENTS", False)

        event_recorder.record_order_reduced(get_platform().get_order(501))

        assert db_session.query(StockEvent).count() == 1
        assert db_session.query(StockMovement).count() == 0

    def test_non_primary_records_are_ignored(self, app, db_session, shop):
        shop.product(20, stock=8)
        shop.order([(20, 1)], status="completed", order_id=900, type="shop_order_refund")

        assert event_recorder.record_order_reduced(get_platform().get_order(900)) is None
        assert db_session.query(StockEvent).count() == 0

    def test_failures_never_reach_the_caller(self, app, db_session, variation_order, monkeypatch):
        def boom(movements):
            raise RuntimeError("disk full")

        monkeypatch.setattr(movement_store, "insert_many", boom)

        assert event_recorder.record_order_reduced(get_platform().get_order(501)) is None
        assert db_session.query(StockEvent).count() == 0


class TestRecordStockSet:
    def test_tracks_previous_quantity(self, app, db_session):
        event_recorder.record_stock_set(7, 10, source="manual")
        event_recorder.record_stock_set(7, 6, source="stocktake")

        events = db_session.query(StockEvent).order_by(StockEvent.id).all()
        assert [e.kind for e in events] == [EVENT_STOCK_SET, EVENT_STOCK_SET]
        assert events[0].payload_dict()["previous_quantity"] is None
        assert events[1].payload_dict()["previous_quantity"] == 10
        assert events[1].payload_dict()["source"] == "stocktake"
        assert db_session.get(ProductStockState, 7).last_quantity == 6

        checkpoints = db_session.query(StockMovement).order_by(StockMovement.id).all()
        assert [(m.kind, m.quantity, m.qoh_after) for m in checkpoints] == [
            (MOVEMENT_SET_STOCK, 0, 10),
            (MOVEMENT_SET_STOCK, 0, 6),
        ]


class TestMissingInfrastructure:
    def test_events_still_recorded_without_movement_table(self, app, db_session, missing_movements_table):
        row = event_recorder.record_stock_set(7, 10)

        assert row is not None
        assert db_session.query(StockEvent).count() == 1
        assert movement_store.query(7) == []
        assert movement_store.insert(
            StockMovement(product_id=7, kind=MOVEMENT_SALE, quantity=-1, source="hook", created_at=row.occurred_at)
        ) is None
        assert movement_store.truncate() == 0

    def test_replay_is_skipped_without_tables(self, app, db_session, missing_movements_table):
        assert event_recorder.replay_event_log()["examined"] == 0


class TestReplay:
    def test_replay_reproduces_live_rows(self, app, db_session, variation_order, ledger_snapshot):
        event_recorder.record_stock_set(20, 12)
        event_recorder.record_order_reduced(get_platform().get_order(501))
        live = ledger_snapshot()

        counts = event_recorder.replay_event_log()

        assert counts["deleted"] == 3
        assert counts["examined"] == 2
        assert counts["written"] == 3
        assert ledger_snapshot() == live
        assert {m.source for m in db_session.query(StockMovement)} == {SOURCE_REPLAY}

    def test_replay_for_one_product(self, app, db_session, variation_order):
        event_recorder.record_order_reduced(get_platform().get_order(501))

        counts = event_recorder.replay_event_log(product_id=20)

        assert counts["deleted"] == 1
        assert counts["written"] == 1
        sources = {m.product_id: m.source for m in db_session.query(StockMovement)}
        assert sources == {10: SOURCE_HOOK, 20: SOURCE_REPLAY}

    def test_malformed_events_are_skipped_and_counted(self, app, db_session):
        event_recorder.record_stock_set(7, 10)
        db_session.add(StockEvent(kind=EVENT_ORDER_REDUCED, payload="{not json", product_ids=",7,"))
        db_session.commit()

        counts = event_recorder.replay_event_log()

        assert counts["examined"] == 2
        assert counts["skipped"] == 1
        assert counts["written"] == 1


class TestListEvents:
    def test_newest_first_with_product_filter(self, app, db_session):
        event_recorder.record_stock_set(7, 10)
        event_recorder.record_stock_set(17, 3)
        event_recorder.record_stock_set(7, 9)

        events = event_recorder.list_events(product_id=7)

        assert [e.payload_dict()["quantity"] for e in events] == [9, 10]
        assert len(event_recorder.list_events(limit=1)) == 1

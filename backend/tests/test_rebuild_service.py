import pytest

from stockledger.models import (
    JOB_ABORTED,
    JOB_DONE,
    JOB_RUNNING,
    MOVEMENT_RESTORE,
    MOVEMENT_SALE,
    MOVEMENT_SET_STOCK,
    RebuildJob,
    SCOPE_ALL,
    SCOPE_PRODUCT,
    SOURCE_HOOK,
    SOURCE_REBUILD,
    StockMovement,
)
from stockledger.platform import get_platform
from stockledger.services import event_recorder, rebuild_service, reporting_service
from stockledger.services.rebuild_service import (
    RebuildConflictError,
    RebuildError,
    RebuildNotFoundError,
)


@pytest.fixture
def catalog(shop):
    shop.product(7, stock=40)
    shop.product(8, stock=15)
    shop.product(9, stock=5)
    shop.product(91, parent_id=9)
    return shop


class TestRebuildScenario:
    def test_product_scope_with_paid_and_pending_orders(self, app, db_session, catalog):
        catalog.order([(7, 2)], status="completed", days_ago=3)
        catalog.order([(7, 1), (8, 5)], status="processing", days_ago=2)
        catalog.order([(7, 4)], status="pending", days_ago=1)

        job = rebuild_service.start(SCOPE_PRODUCT, product_id=7, days=90, batch_size=10)
        assert job.total == 3
        assert job.status == JOB_RUNNING

        job = rebuild_service.step(job.id)

        assert job.processed == 3
        assert job.status == JOB_DONE
        movements = db_session.query(StockMovement).all()
        assert len(movements) == 2
        assert {(m.product_id, m.kind, m.quantity, m.source) for m in movements} == {
            (7, MOVEMENT_SALE, -2, SOURCE_REBUILD),
            (7, MOVEMENT_SALE, -1, SOURCE_REBUILD),
        }

    def test_all_scope_classifies_every_order(self, app, db_session, catalog):
        catalog.order([(7, 2)], status="completed")
        catalog.order([(8, 1)], status="refunded")
        catalog.order([(8, 3)], status="cancelled")
        catalog.order([(7, 9)], status="failed")
        catalog.order([(91, 2), (9, 1)], status="processing")
        catalog.order([(7, 1)], status="completed", type="shop_order_refund")

        job = rebuild_service.run_to_completion(SCOPE_ALL, batch_size=2)

        assert job.status == JOB_DONE
        assert job.total == 5
        assert job.processed == 5
        rows = {(m.product_id, m.kind, m.quantity) for m in db_session.query(StockMovement)}
        assert rows == {
            (7, MOVEMENT_SALE, -2),
            (8, MOVEMENT_RESTORE, 1),
            (8, MOVEMENT_RESTORE, 3),
            (9, MOVEMENT_SALE, -3),
        }

    def test_rows_carry_order_time_and_customer(self, app, db_session, catalog):
        order = catalog.order([(7, 2)], status="completed", customer_label="Grace Hopper", days_ago=5)

        rebuild_service.run_to_completion(SCOPE_ALL)

        row = db_session.query(StockMovement).one()
        assert row.order_id == order.id
        assert row.customer_label == "Grace Hopper"
        assert row.created_at == order.created_at

    def test_empty_window_finishes_immediately(self, app, db_session, catalog):
        catalog.order([(7, 2)], status="completed", days_ago=200)

        job = rebuild_service.start(SCOPE_ALL, days=30)

        assert job.total == 0
        assert job.status == JOB_DONE
        assert job.finished_at is not None


class TestRebuildProperties:
    def test_idempotent_under_single_writer(self, app, db_session, catalog):
        for days_ago, qty in ((1, 2), (2, 1), (4, 3), (6, 5)):
            catalog.order([(7, qty)], status="completed", days_ago=days_ago)
        catalog.order([(7, 2)], status="refunded", days_ago=2)

        rebuild_service.run_to_completion(SCOPE_ALL, batch_size=2)
        first = (reporting_service.movement_history(7)["summary"], reporting_service.daily_series(7, 7))

        rebuild_service.run_to_completion(SCOPE_ALL, batch_size=3)
        second = (reporting_service.movement_history(7)["summary"], reporting_service.daily_series(7, 7))

        assert first == second
        assert first[0]["total_sales"] == 11
        assert first[0]["total_restored"] == 2

    def test_progress_is_monotonic(self, app, db_session, catalog):
        for _ in range(5):
            catalog.order([(7, 1)], status="completed")

        job = rebuild_service.start(SCOPE_ALL, batch_size=2)
        seen = [(job.processed, job.cursor)]
        while job.status == JOB_RUNNING:
            job = rebuild_service.step(job.id)
            seen.append((job.processed, job.cursor))

        assert seen == sorted(seen)
        assert seen[-1][0] == 5
        assert all(processed <= 5 for processed, _ in seen)

    def test_step_is_a_noop_once_done(self, app, db_session, catalog):
        catalog.order([(7, 1)], status="completed")
        job = rebuild_service.run_to_completion(SCOPE_ALL)

        again = rebuild_service.step(job.id)

        assert again.status == JOB_DONE
        assert again.processed == 1
        assert db_session.query(StockMovement).count() == 1

    def test_matches_live_hook_rows(self, app, db_session, catalog, ledger_snapshot):
        orders = [
            catalog.order([(7, 2), (91, 1)], status="completed"),
            catalog.order([(8, 4), (8, 1)], status="processing"),
        ]
        for order in orders:
            event_recorder.record_order_reduced(get_platform().get_order(order.id))
        from_hooks = ledger_snapshot()

        rebuild_service.run_to_completion(SCOPE_ALL)

        assert ledger_snapshot() == from_hooks
        assert {m.source for m in db_session.query(StockMovement)} == {SOURCE_REBUILD}

    def test_unpaid_and_refunded_orders_match_between_hooks_and_rebuild(self, app, db_session, catalog, ledger_snapshot):
        on_hold = catalog.order([(7, 2)], status="on-hold")
        cancelled = catalog.order([(8, 3)], status="cancelled")
        event_recorder.record_order_reduced(get_platform().get_order(on_hold.id))
        event_recorder.record_order_restored(get_platform().get_order(cancelled.id))
        from_hooks = ledger_snapshot()

        rebuild_service.run_to_completion(SCOPE_ALL)

        assert ledger_snapshot() == from_hooks
        rows = {(m.product_id, m.kind, m.quantity) for m in db_session.query(StockMovement)}
        assert rows == {(8, MOVEMENT_RESTORE, 3)}


class TestRebuildScopes:
    def test_product_scope_only_replaces_its_window(self, app, db_session, catalog):
        old = catalog.order([(7, 3)], status="completed", days_ago=60)
        recent = catalog.order([(7, 2), (8, 1)], status="completed", days_ago=2)
        for order in (old, recent):
            event_recorder.record_order_reduced(get_platform().get_order(order.id))

        rebuild_service.run_to_completion(SCOPE_PRODUCT, product_id=7, days=30)

        rows = {(m.product_id, m.order_id, m.source) for m in db_session.query(StockMovement)}
        assert rows == {
            (7, old.id, SOURCE_HOOK),
            (7, recent.id, SOURCE_REBUILD),
            (8, recent.id, SOURCE_HOOK),
        }

    def test_stock_checkpoints_survive_a_rebuild(self, app, db_session, catalog):
        catalog.order([(7, 2)], status="completed", days_ago=3)
        event_recorder.record_stock_set(7, 35)

        rebuild_service.run_to_completion(SCOPE_ALL)

        kinds = sorted(m.kind for m in db_session.query(StockMovement))
        assert kinds == [MOVEMENT_SALE, MOVEMENT_SET_STOCK]
        checkpoint = db_session.query(StockMovement).filter_by(kind=MOVEMENT_SET_STOCK).one()
        assert checkpoint.qoh_after == 35
        assert checkpoint.source == SOURCE_REBUILD


class TestRebuildJobs:
    def test_start_supersedes_a_running_job(self, app, db_session, catalog):
        catalog.order([(7, 1)], status="completed")
        first = rebuild_service.start(SCOPE_ALL)
        first_id = first.id

        second = rebuild_service.start(SCOPE_ALL)

        assert second.id != first_id
        assert db_session.get(RebuildJob, first_id).status == JOB_ABORTED
        assert rebuild_service.status().id == second.id

    def test_abort_keeps_partial_rows(self, app, db_session, catalog):
        for _ in range(4):
            catalog.order([(7, 1)], status="completed")
        job = rebuild_service.start(SCOPE_ALL, batch_size=2)
        rebuild_service.step(job.id)

        aborted = rebuild_service.abort(job.id)

        assert aborted.status == JOB_ABORTED
        assert db_session.query(StockMovement).count() == 2
        assert rebuild_service.step(job.id).processed == 2

    def test_failing_order_is_counted_and_skipped(self, app, db_session, catalog, monkeypatch):
        good_id = catalog.order([(7, 1)], status="completed").id
        bad_id = catalog.order([(8, 1)], status="completed").id
        platform = get_platform()
        real_get_order = platform.get_order

        def flaky_get_order(order_id):
            if order_id == bad_id:
                raise RuntimeError("platform timeout")
            return real_get_order(order_id)

        monkeypatch.setattr(platform, "get_order", flaky_get_order)

        job = rebuild_service.run_to_completion(SCOPE_ALL)

        assert job.status == JOB_DONE
        assert job.processed == 2
        assert job.failed_orders == 1
        assert [m.order_id for m in db_session.query(StockMovement)] == [good_id]

    def test_concurrent_step_conflicts(self, app, db_session, catalog):
        catalog.order([(7, 1)], status="completed")
        job = rebuild_service.start(SCOPE_ALL)
        job_id = job.id
        version = job.version_id

        # Another request advances the same job row behind this session's back
        db_session.execute(
            RebuildJob.__table__.update()
            .where(RebuildJob.__table__.c.id == job_id)
            .values(version_id=version + 1)
        )

        with pytest.raises(RebuildConflictError):
            rebuild_service.step(job_id)

        assert db_session.query(StockMovement).count() == 0

    def test_status_without_jobs(self, app, db_session):
        assert rebuild_service.status() is None
        with pytest.raises(RebuildNotFoundError):
            rebuild_service.step()
        with pytest.raises(RebuildNotFoundError):
            rebuild_service.status(999)

    @pytest.mark.parametrize("kwargs", [
        {"scope": "EVERYTHING"},
        {"scope": SCOPE_PRODUCT},
        {"scope": SCOPE_ALL, "days": 0},
        {"scope": SCOPE_ALL, "batch_size": -1},
    ])
    def test_invalid_requests(self, app, db_session, kwargs):
        with pytest.raises(RebuildError):
            rebuild_service.start(**kwargs)

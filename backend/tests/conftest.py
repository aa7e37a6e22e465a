"""
Pytest fixtures for stockledger backend tests.

Provides the app on an in-memory database, per-test table clearing, a shop
seeding helper, and a test client.
"""

from datetime import timedelta

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import ShopOrder, ShopOrderLine, ShopProduct, StockMovement
from stockledger.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_TOKEN': None,
        'COMMERCE_PLATFORM': 'sql',
        'LEDGER_TIMEZONE': 'UTC',
        'LEDGER_PERSIST_MOVEMENTS': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


class Shop:
    """Writes host-side products and orders for the SQL platform adapter."""

    def __init__(self, session):
        self.session = session
        self._next_order_id = 100

    def product(self, product_id, *, stock=None, parent_id=None, manage_stock=True, name=None):
        product = ShopProduct(
            id=product_id,
            parent_id=parent_id,
            sku=f"SKU-{product_id}",
            name=name or f"Product {product_id}",
            manage_stock=manage_stock,
            stock_quantity=stock,
        )
        self.session.add(product)
        self.session.commit()
        return product

    def order(self, lines, *, status="completed", order_id=None, type="shop_order",
              customer_label="Ada Lovelace", created_at=None, days_ago=1):
        """lines is a list of (product_id, quantity) pairs."""
        if order_id is None:
            self._next_order_id += 1
            order_id = self._next_order_id
        if created_at is None:
            created_at = (utcnow() - timedelta(days=days_ago)).replace(microsecond=0)
        order = ShopOrder(
            id=order_id,
            type=type,
            status=status,
            customer_label=customer_label,
            created_at=created_at,
        )
        for product_id, quantity in lines:
            order.lines.append(ShopOrderLine(product_id=product_id, quantity=quantity, sku=f"SKU-{product_id}"))
        self.session.add(order)
        self.session.commit()
        return order


@pytest.fixture(scope='function')
def shop(db_session):
    return Shop(db_session)


@pytest.fixture(scope='function')
def ledger_snapshot(db_session):
    """Comparable view of the ledger, ignoring ids, producers and write times."""
    def snapshot():
        rows = db_session.query(StockMovement).all()
        return sorted(
            (
                (m.product_id, m.order_id, m.kind, m.quantity, m.qoh_after, m.customer_label, m.created_at)
                for m in rows
            ),
            key=lambda t: (t[0], t[1] or 0, t[2], t[6]),
        )
    return snapshot


@pytest.fixture(scope='function')
def missing_movements_table(db_session):
    """Run a test with the stock_movements table dropped (as before install)."""
    StockMovement.__table__.drop(bind=db_session.connection())
    db_session.commit()
    try:
        yield
    finally:
        StockMovement.__table__.create(bind=db_session.connection(), checkfirst=True)
        db_session.commit()

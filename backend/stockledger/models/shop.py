from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class ShopProduct(db.Model):
    """
    Host catalog mirror read by SqlCommercePlatform.

    Owned by the host: the ledger migration never creates or alters it.
    Variations point at their parent through parent_id.
    """
    __tablename__ = "shop_products"

    id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    parent_id = db.Column(db.Integer, nullable=True, index=True)
    sku = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)

    manage_stock = db.Column(db.Boolean, nullable=False, default=True)
    stock_quantity = db.Column(db.Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<ShopProduct id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "sku": self.sku,
            "name": self.name,
            "manage_stock": self.manage_stock,
            "stock_quantity": self.stock_quantity,
        }


class ShopOrder(db.Model):
    """
    Host order record. type separates primary orders ("shop_order") from
    derived records such as refunds ("shop_order_refund").
    """
    __tablename__ = "shop_orders"
    __table_args__ = (
        db.Index("ix_shop_orders_type_created", "type", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    parent_id = db.Column(db.Integer, nullable=True)
    type = db.Column(db.String(32), nullable=False, default="shop_order")
    status = db.Column(db.String(32), nullable=False, index=True)
    customer_label = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    lines = db.relationship(
        "ShopOrderLine",
        backref="order",
        lazy=True,
        order_by="ShopOrderLine.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ShopOrder id={self.id} type={self.type} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "type": self.type,
            "status": self.status,
            "customer_label": self.customer_label,
            "created_at": to_utc_z(self.created_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class ShopOrderLine(db.Model):
    __tablename__ = "shop_order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("shop_orders.id"), nullable=False, index=True)

    # Points at the variation when one was bought; its parent is on ShopProduct
    product_id = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    sku = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "sku": self.sku,
        }

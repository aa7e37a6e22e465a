from .ledger import (
    StockEvent,
    StockMovement,
    ProductStockState,
    RebuildJob,
    MOVEMENT_SALE,
    MOVEMENT_RESTORE,
    MOVEMENT_SET_STOCK,
    MOVEMENT_KINDS,
    EVENT_STOCK_SET,
    EVENT_ORDER_REDUCED,
    EVENT_ORDER_RESTORED,
    EVENT_KINDS,
    SOURCE_HOOK,
    SOURCE_REBUILD,
    SOURCE_REPLAY,
    JOB_RUNNING,
    JOB_DONE,
    JOB_ABORTED,
    SCOPE_ALL,
    SCOPE_PRODUCT,
)
from .shop import ShopProduct, ShopOrder, ShopOrderLine

__all__ = [
    'StockEvent', 'StockMovement', 'ProductStockState', 'RebuildJob',
    'ShopProduct', 'ShopOrder', 'ShopOrderLine',
    'MOVEMENT_SALE', 'MOVEMENT_RESTORE', 'MOVEMENT_SET_STOCK', 'MOVEMENT_KINDS',
    'EVENT_STOCK_SET', 'EVENT_ORDER_REDUCED', 'EVENT_ORDER_RESTORED', 'EVENT_KINDS',
    'SOURCE_HOOK', 'SOURCE_REBUILD', 'SOURCE_REPLAY',
    'JOB_RUNNING', 'JOB_DONE', 'JOB_ABORTED',
    'SCOPE_ALL', 'SCOPE_PRODUCT',
]

# Tables provisioned by the ledger itself (the shop_* tables belong to the host)
LEDGER_TABLES = (
    StockEvent.__table__,
    StockMovement.__table__,
    ProductStockState.__table__,
    RebuildJob.__table__,
)

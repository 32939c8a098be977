from .auth import User
from .catalog import Product
from .locations import Warehouse, Branch
from .inventory import RestockRequest, StockRecord, StockRequest

__all__ = [
    'User',
    'Product',
    'Warehouse', 'Branch',
    'RestockRequest', 'StockRecord', 'StockRequest',
]

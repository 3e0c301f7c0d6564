from .auth import User
from .catalog import Category, Product, RecipeEntry
from .inventory import InventoryItem, StockMovement
from .sales import Transaction, TransactionItem
from .cash import CashLedgerEntry

__all__ = [
    'User',
    'Category', 'Product', 'RecipeEntry',
    'InventoryItem', 'StockMovement',
    'Transaction', 'TransactionItem',
    'CashLedgerEntry',
]

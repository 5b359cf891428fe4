from .changelog import ChangeRecord, RevisionCounter
from .catalog import ProductGroup, Product, ProductProperty, PRODUCT_PROPERTY_COLUMNS
from .storage import Storage, Stock
from .permissions import ProductPermission, StoragePermission

# Logical table names as they appear in change records and on replicas.
TABLE_MODELS = {
    "productGroup": ProductGroup,
    "product": Product,
    "productPermission": ProductPermission,
    "storage": Storage,
    "storagePermission": StoragePermission,
    "stock": Stock,
}

CHANGELOG_TABLE = "changelog"

__all__ = [
    'ChangeRecord', 'RevisionCounter',
    'ProductGroup', 'Product', 'ProductProperty', 'PRODUCT_PROPERTY_COLUMNS',
    'Storage', 'Stock',
    'ProductPermission', 'StoragePermission',
    'TABLE_MODELS', 'CHANGELOG_TABLE',
]

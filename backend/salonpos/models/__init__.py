from .tenancy import Shop, Hairdresser
from .catalog import Product, Service
from .promotions import Promotion
from .sales import Sale, ProductSale, ServiceSale, Receipt

__all__ = [
    'Shop', 'Hairdresser',
    'Product', 'Service',
    'Promotion',
    'Sale', 'ProductSale', 'ServiceSale', 'Receipt',
]

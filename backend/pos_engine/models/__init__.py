from .tenancy import Store, StoreSetting
from .catalog import Product, Customer, LoyaltyProgram, PaymentMethod
from .operators import Operator
from .registers import Register, RegisterSession
from .sales import Sale, SaleLine, SalePayment, StockMovement, SaleCancellation, FutureOrder

__all__ = [
    'Store', 'StoreSetting',
    'Product', 'Customer', 'LoyaltyProgram', 'PaymentMethod',
    'Operator',
    'Register', 'RegisterSession',
    'Sale', 'SaleLine', 'SalePayment', 'StockMovement', 'SaleCancellation', 'FutureOrder',
]

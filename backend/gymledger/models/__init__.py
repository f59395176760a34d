from .tenancy import Tenant, Branch, Member
from .payments import Payment, IdempotencyKey, PAYMENT_METHODS
from .revenue import ProductSale, RevenueMonthLock
from .audit import AuditEvent

__all__ = [
    'Tenant', 'Branch', 'Member',
    'Payment', 'IdempotencyKey', 'PAYMENT_METHODS',
    'ProductSale', 'RevenueMonthLock',
    'AuditEvent',
]

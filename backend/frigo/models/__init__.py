from .tenancy import Tenant, TenantSettings
from .auth import User, SessionToken, USER_ROLES, STAFF_ROLES
from .security import SecurityEvent, AuditLog
from .clients import Client
from .warehouse import Room, Truck, Driver, Product
from .reservations import Reservation, EmptyCrateLoan, CautionRecord, DEPOSIT_TYPES
from .receptions import Reception, RECEPTION_STATUSES
from .billing import Invoice, DocumentSequence, INVOICE_STATUSES
from .cash import CashMovement, DayClosure, MOVEMENT_TYPES, PAYMENT_METHODS

__all__ = [
    'Tenant', 'TenantSettings',
    'User', 'SessionToken', 'USER_ROLES', 'STAFF_ROLES',
    'SecurityEvent', 'AuditLog',
    'Client',
    'Room', 'Truck', 'Driver', 'Product',
    'Reservation', 'EmptyCrateLoan', 'CautionRecord', 'DEPOSIT_TYPES',
    'Reception', 'RECEPTION_STATUSES',
    'Invoice', 'DocumentSequence', 'INVOICE_STATUSES',
    'CashMovement', 'DayClosure', 'MOVEMENT_TYPES', 'PAYMENT_METHODS',
]

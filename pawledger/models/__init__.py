"""
Database models for PawLedger.
Clients, pets, appointments and the loyalty ledger, scoped by tenant.
"""
from .tenant import Tenant, PLAN_MODULES, default_modules, module_enabled
from .client import Client, Pet
from .appointment import Appointment, AppointmentStatus
from .loyalty import LoyaltyTransaction, LoyaltyTransactionType, LoyaltyReferenceType

__all__ = [
    'Tenant',
    'PLAN_MODULES',
    'default_modules',
    'module_enabled',
    'Client',
    'Pet',
    'Appointment',
    'AppointmentStatus',
    'LoyaltyTransaction',
    'LoyaltyTransactionType',
    'LoyaltyReferenceType',
]

"""
Business logic services for PawLedger.
"""
from .tier_calculator import tier_for_earned, next_tier_info, tier_label, transaction_label
from .program_config import LoyaltyProgramConfig, DEFAULT_LOYALTY_PROGRAM, resolve_program_config
from .loyalty_service import LoyaltyService, apply_points
from .appointment_service import AppointmentService, generate_time_slots, status_label
from .client_service import ClientService

__all__ = [
    'tier_for_earned',
    'next_tier_info',
    'tier_label',
    'transaction_label',
    'LoyaltyProgramConfig',
    'DEFAULT_LOYALTY_PROGRAM',
    'resolve_program_config',
    'LoyaltyService',
    'apply_points',
    'AppointmentService',
    'generate_time_slots',
    'status_label',
    'ClientService',
]

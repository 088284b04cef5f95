"""
API blueprints for PawLedger.
"""
from .clients import clients_bp
from .loyalty import loyalty_bp
from .appointments import appointments_bp

__all__ = ['clients_bp', 'loyalty_bp', 'appointments_bp']

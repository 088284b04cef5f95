"""
Tenant model for the multi-tenant practice platform.
"""
from datetime import datetime
from ..extensions import db


# Modules enabled by each subscription plan
PLAN_MODULES = {
    'zoovia_plan': {
        'clients': True,
        'pets': True,
        'medical_records': True,
        'appointments': True,
        'loyalty': True,
        'grooming': False,
        'inventory': False,
    },
    'base_vet': {
        'clients': True,
        'pets': True,
        'medical_records': True,
        'appointments': False,
        'loyalty': False,
        'grooming': False,
        'inventory': False,
    },
}


def default_modules(plan: str = 'zoovia_plan') -> dict:
    """Module toggles for a plan (unknown plans get the base set)."""
    return dict(PLAN_MODULES.get(plan, PLAN_MODULES['base_vet']))


def module_enabled(tenant_document: dict, module: str) -> bool:
    """Whether a tenant document's subscription includes a feature module."""
    if tenant_document.get('subscription_status') in ('suspended', 'cancelled'):
        return False
    return bool((tenant_document.get('subscription_modules') or {}).get(module, False))


class Tenant(db.Model):
    """
    Veterinary or grooming practice using the platform.
    Global table - every other row is scoped by tenant_id.
    """
    __tablename__ = 'tenants'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    business_type = db.Column(db.String(20), default='veterinary')  # veterinary, grooming, hybrid

    # Subscription
    subscription_plan = db.Column(db.String(50), default='zoovia_plan')
    subscription_status = db.Column(db.String(20), default='active')  # active, trial, suspended, cancelled
    subscription_modules = db.Column(db.JSON, default=lambda: default_modules())

    # Loyalty program configuration (None = platform default)
    loyalty_program = db.Column(db.JSON)

    settings = db.Column(db.JSON, default=dict)

    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Tenant {self.slug}>'

    def has_module(self, module: str) -> bool:
        """Whether the tenant's subscription includes a feature module."""
        return module_enabled(self.to_dict(), module)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'business_type': self.business_type,
            'subscription_plan': self.subscription_plan,
            'subscription_status': self.subscription_status,
            'subscription_modules': self.subscription_modules or {},
            'loyalty_program': self.loyalty_program,
            'settings': self.settings or {},
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

"""
Loyalty ledger model.

LoyaltyTransaction rows are the audit trail: appended once per award,
redemption, adjustment or expiry and never updated or deleted. Client
aggregate fields can always be rebuilt by replaying them in order.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class LoyaltyTransactionType(str, Enum):
    """Types of ledger entries."""
    EARNED_VISIT = 'earned_visit'         # Completed appointment
    EARNED_PURCHASE = 'earned_purchase'   # Product purchase
    EARNED_GROOMING = 'earned_grooming'   # Grooming service
    REDEEMED = 'redeemed'                 # Redemption (negative)
    ADJUSTED = 'adjusted'                 # Manual correction (+/-)
    EXPIRED = 'expired'                   # Expired points (negative)


class LoyaltyReferenceType(str, Enum):
    """Entity a ledger entry originated from."""
    APPOINTMENT = 'appointment'
    PURCHASE = 'purchase'
    REDEMPTION = 'redemption'


class LoyaltyTransaction(db.Model):
    """One signed points movement for a client."""
    __tablename__ = 'loyalty_transactions'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey('clients.id'), nullable=False)

    type = db.Column(db.String(30), nullable=False)
    points = db.Column(db.Integer, nullable=False)         # Positive = credit, negative = debit
    balance_after = db.Column(db.Integer, nullable=False)  # Client balance right after this entry

    reference_type = db.Column(db.String(30))
    reference_id = db.Column(db.String(100))
    description = db.Column(db.String(500), default='')

    created_by = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.Index('ix_loyalty_tx_tenant_client_created', 'tenant_id', 'client_id', 'created_at'),
        db.Index('ix_loyalty_tx_reference', 'reference_type', 'reference_id'),
    )

    def __repr__(self):
        return f'<LoyaltyTransaction {self.id}: {self.points} pts for client {self.client_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'client_id': self.client_id,
            'type': self.type,
            'points': self.points,
            'balance_after': self.balance_after,
            'reference_type': self.reference_type,
            'reference_id': self.reference_id,
            'description': self.description,
            'created_by': self.created_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

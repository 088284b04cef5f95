"""
Client (pet owner) and Pet models.
"""
from datetime import datetime
from ..extensions import db


class Client(db.Model):
    """
    Pet owner registered with a practice.

    Loyalty fields are mutated only by LoyaltyService. `version` is bumped on
    every loyalty write so balance updates can be made conditional.
    """
    __tablename__ = 'clients'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False)

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), default='')
    email = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    identification_number = db.Column(db.String(50))

    # Loyalty
    loyalty_points = db.Column(db.Integer, default=0, nullable=False)  # Current spendable balance
    loyalty_total_earned = db.Column(db.Integer, default=0, nullable=False)
    loyalty_total_redeemed = db.Column(db.Integer, default=0, nullable=False)
    loyalty_total_expired = db.Column(db.Integer, default=0, nullable=False)
    loyalty_tier = db.Column(db.String(20), default='bronze', nullable=False)
    loyalty_enrolled_at = db.Column(db.DateTime)  # First loyalty event

    version = db.Column(db.Integer, default=1, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = db.relationship('Tenant', backref=db.backref('clients', lazy='dynamic'))
    pets = db.relationship('Pet', backref='owner', lazy='dynamic')

    __table_args__ = (
        db.Index('ix_clients_tenant', 'tenant_id'),
    )

    def __repr__(self):
        return f'<Client {self.id}: {self.first_name} {self.last_name}>'

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name or ""}'.strip()

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'identification_number': self.identification_number,
            'loyalty_points': self.loyalty_points or 0,
            'loyalty': {
                'total_earned': self.loyalty_total_earned or 0,
                'total_redeemed': self.loyalty_total_redeemed or 0,
                'total_expired': self.loyalty_total_expired or 0,
                'tier': self.loyalty_tier,
                'enrolled_at': self.loyalty_enrolled_at.isoformat() if self.loyalty_enrolled_at else None,
            },
            'version': self.version,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class Pet(db.Model):
    """Pet owned by a client."""
    __tablename__ = 'pets'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey('clients.id'), nullable=False)

    name = db.Column(db.String(100), nullable=False)
    species = db.Column(db.String(20), default='dog')  # dog, cat, bird, rabbit, other
    breed = db.Column(db.String(100))

    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Pet {self.id}: {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'client_id': self.client_id,
            'name': self.name,
            'species': self.species,
            'breed': self.breed,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

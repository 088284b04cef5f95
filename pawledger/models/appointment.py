"""
Appointment model.

Appointments are never deleted; cancellation and no-show are terminal
statuses. Status changes go through AppointmentService.update_status.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment."""
    SCHEDULED = 'scheduled'       # Booked ahead of time
    WAITING = 'waiting'           # Arrived, in the waiting room
    IN_PROGRESS = 'in_progress'   # Being attended
    COMPLETED = 'completed'       # Attended (triggers loyalty award)
    CANCELLED = 'cancelled'       # Terminal
    NO_SHOW = 'no_show'           # Terminal


class Appointment(db.Model):
    """A visit or grooming slot for one pet."""
    __tablename__ = 'appointments'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey('clients.id'), nullable=False)
    pet_id = db.Column(db.Integer, db.ForeignKey('pets.id'), nullable=False)

    # Denormalized for listings and award descriptions
    client_name = db.Column(db.String(255))
    pet_name = db.Column(db.String(100))
    pet_species = db.Column(db.String(20))

    created_by = db.Column(db.String(100), nullable=False)  # user id of the booking staff member

    date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD
    scheduled_time = db.Column(db.String(5))          # HH:MM
    arrival_time = db.Column(db.String(5))
    start_time = db.Column(db.String(5))
    end_time = db.Column(db.String(5))

    reason = db.Column(db.String(500), default='')
    notes = db.Column(db.Text)
    is_walk_in = db.Column(db.Boolean, default=False)
    priority = db.Column(db.String(10), default='normal')  # normal, urgent
    service_type = db.Column(db.String(20), default='visit')  # visit, grooming

    status = db.Column(db.String(20), default=AppointmentStatus.SCHEDULED.value, nullable=False)

    # Loyalty award tracking
    loyalty_awarded = db.Column(db.Boolean, default=False, nullable=False)
    loyalty_award_error = db.Column(db.String(500))  # Last failed award attempt
    loyalty_award_failures = db.Column(db.Integer, default=0, nullable=False)  # Failed award attempts

    version = db.Column(db.Integer, default=1, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_appointments_tenant_date', 'tenant_id', 'date'),
        db.Index('ix_appointments_tenant_status', 'tenant_id', 'status', 'loyalty_awarded'),
    )

    def __repr__(self):
        return f'<Appointment {self.id}: {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'client_id': self.client_id,
            'pet_id': self.pet_id,
            'client_name': self.client_name,
            'pet_name': self.pet_name,
            'pet_species': self.pet_species,
            'created_by': self.created_by,
            'date': self.date,
            'scheduled_time': self.scheduled_time,
            'arrival_time': self.arrival_time,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'reason': self.reason,
            'notes': self.notes,
            'is_walk_in': bool(self.is_walk_in),
            'priority': self.priority,
            'service_type': self.service_type,
            'status': self.status,
            'loyalty_awarded': bool(self.loyalty_awarded),
            'loyalty_award_error': self.loyalty_award_error,
            'loyalty_award_failures': self.loyalty_award_failures or 0,
            'version': self.version,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

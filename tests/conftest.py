"""
Shared pytest fixtures.

Every test runs against a fresh in-memory SQLite database with an app
context pushed for the duration of the test.
"""
import pytest

from pawledger import create_app
from pawledger.extensions import db
from pawledger.models import Tenant, Client, Pet, Appointment


@pytest.fixture
def app():
    """Flask app with an empty schema."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def sample_tenant(app):
    tenant = Tenant(
        name='Clinica Patitas',
        slug='clinica-patitas',
        business_type='hybrid',
        subscription_plan='zoovia_plan',
        subscription_status='active',
    )
    db.session.add(tenant)
    db.session.commit()
    return tenant


@pytest.fixture
def other_tenant(app):
    tenant = Tenant(name='Otra Clinica', slug='otra-clinica')
    db.session.add(tenant)
    db.session.commit()
    return tenant


@pytest.fixture
def make_client(app, sample_tenant):
    """Factory for clients with a given loyalty state."""
    def _make(balance=0, total_earned=None, total_redeemed=0, total_expired=0,
              tier='bronze', first_name='Ana', tenant=None):
        if total_earned is None:
            total_earned = balance + total_redeemed + total_expired
        row = Client(
            tenant_id=(tenant or sample_tenant).id,
            first_name=first_name,
            last_name='Rojas',
            email=f'{first_name.lower()}@example.com',
            loyalty_points=balance,
            loyalty_total_earned=total_earned,
            loyalty_total_redeemed=total_redeemed,
            loyalty_total_expired=total_expired,
            loyalty_tier=tier,
        )
        db.session.add(row)
        db.session.commit()
        return row
    return _make


@pytest.fixture
def sample_client(make_client):
    """Client with an empty loyalty record."""
    return make_client()


@pytest.fixture
def sample_pet(app, sample_tenant, sample_client):
    pet = Pet(
        tenant_id=sample_tenant.id,
        client_id=sample_client.id,
        name='Rex',
        species='dog',
        breed='Labrador',
    )
    db.session.add(pet)
    db.session.commit()
    return pet


@pytest.fixture
def sample_appointment(app, sample_tenant, sample_client, sample_pet):
    """Scheduled visit for Rex."""
    appointment = Appointment(
        tenant_id=sample_tenant.id,
        client_id=sample_client.id,
        pet_id=sample_pet.id,
        client_name='Ana Rojas',
        pet_name='Rex',
        pet_species='dog',
        created_by='vet-1',
        date='2026-03-14',
        scheduled_time='10:30',
        reason='Vaccination',
        service_type='visit',
        status='scheduled',
    )
    db.session.add(appointment)
    db.session.commit()
    return appointment


@pytest.fixture
def auth_headers(sample_tenant):
    """Headers identifying the tenant and acting staff member."""
    return {
        'X-Tenant-ID': str(sample_tenant.id),
        'X-Actor-ID': 'staff-7',
        'Content-Type': 'application/json',
    }

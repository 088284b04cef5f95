"""
Client Service.

Registration of pet owners and their pets. New clients start with an empty
loyalty record (zero balance and totals, bronze tier, not enrolled); the
ledger fills it in on the first loyalty event.
"""
from typing import Dict, Any, List
from flask import current_app

from ..store import DocumentStore
from ..utils.exceptions import ClientNotFoundError, ValidationError


SPECIES = {'dog', 'cat', 'bird', 'rabbit', 'other'}


class ClientService:
    """Client and pet registration for one tenant."""

    def __init__(self, tenant_id: int, store: DocumentStore = None):
        self.tenant_id = tenant_id
        self.store = store or DocumentStore()

    def get_client(self, client_id: int) -> Dict[str, Any]:
        client = self.store.get_document('clients', client_id)
        if not client or client['tenant_id'] != self.tenant_id:
            raise ClientNotFoundError(client_id)
        return client

    def create_client(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Register a client.

        Request data:
        {
            "first_name": "Ana",
            "last_name": "Rojas",
            "email": "ana@example.com",
            "phone": "+57 300 000 0000",
            "identification_number": "1020304050"
        }
        """
        first_name = (data.get('first_name') or '').strip()
        if not first_name:
            raise ValidationError('first_name is required', field='first_name')

        client_id = self.store.add_document('clients', {
            'tenant_id': self.tenant_id,
            'first_name': first_name,
            'last_name': (data.get('last_name') or '').strip(),
            'email': data.get('email'),
            'phone': data.get('phone'),
            'identification_number': data.get('identification_number'),
            'loyalty_points': 0,
            'loyalty_total_earned': 0,
            'loyalty_total_redeemed': 0,
            'loyalty_total_expired': 0,
            'loyalty_tier': 'bronze',
            'loyalty_enrolled_at': None,
        })
        current_app.logger.info(f"Client {client_id} registered for tenant {self.tenant_id}")
        return self.get_client(client_id)

    def add_pet(self, client_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Register a pet for an existing client."""
        client = self.get_client(client_id)

        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError('name is required', field='name')
        species = data.get('species') or 'dog'
        if species not in SPECIES:
            raise ValidationError(f'Invalid species: {species}', field='species')

        pet_id = self.store.add_document('pets', {
            'tenant_id': self.tenant_id,
            'client_id': client['id'],
            'name': name,
            'species': species,
            'breed': data.get('breed'),
            'is_active': True,
        })
        return self.store.get_document('pets', pet_id)

    def list_pets(self, client_id: int) -> List[Dict[str, Any]]:
        self.get_client(client_id)
        return self.store.query_documents(
            'pets',
            filters={'tenant_id': self.tenant_id, 'client_id': client_id, 'is_active': True},
            order_by=['name'],
        )

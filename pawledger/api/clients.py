"""
Clients API.

Registration of pet owners and their pets.
"""
from flask import Blueprint, request, jsonify, g
from ..middleware.tenant_auth import require_tenant, require_module
from ..services.client_service import ClientService


clients_bp = Blueprint('clients', __name__, url_prefix='/api/clients')


@clients_bp.route('', methods=['POST'])
@require_tenant
@require_module('clients')
def create_client():
    """
    Register a client.

    Request body:
    {
        "first_name": "Ana",
        "last_name": "Rojas",
        "email": "ana@example.com",
        "phone": "+57 300 000 0000"
    }
    """
    data = request.get_json(silent=True) or {}
    client = ClientService(g.tenant_id).create_client(data)
    return jsonify(client), 201


@clients_bp.route('/<int:client_id>', methods=['GET'])
@require_tenant
@require_module('clients')
def get_client(client_id):
    """Get a client with their pets."""
    service = ClientService(g.tenant_id)
    client = service.get_client(client_id)
    client['pets'] = service.list_pets(client_id)
    return jsonify(client)


@clients_bp.route('/<int:client_id>/pets', methods=['POST'])
@require_tenant
@require_module('pets')
def add_pet(client_id):
    """
    Register a pet for a client.

    Request body:
    {
        "name": "Rex",
        "species": "dog",
        "breed": "Labrador"
    }
    """
    data = request.get_json(silent=True) or {}
    pet = ClientService(g.tenant_id).add_pet(client_id, data)
    return jsonify(pet), 201

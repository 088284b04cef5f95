"""
Loyalty API.

Points balance, history, redemptions and staff corrections for clients.
All ledger writes go through LoyaltyService.
"""
from flask import Blueprint, request, jsonify, g
from ..middleware.tenant_auth import require_tenant, require_module
from ..services.loyalty_service import LoyaltyService
from ..services.tier_calculator import transaction_label
from ..utils.errors import bad_request, ErrorCode


loyalty_bp = Blueprint('loyalty', __name__, url_prefix='/api/loyalty')


@loyalty_bp.route('/clients/<int:client_id>', methods=['GET'])
@require_tenant
@require_module('loyalty')
def get_summary(client_id):
    """Balance, totals, tier and progress to the next tier."""
    return jsonify(LoyaltyService(g.tenant_id).get_summary(client_id))


@loyalty_bp.route('/clients/<int:client_id>/history', methods=['GET'])
@require_tenant
@require_module('loyalty')
def get_history(client_id):
    """
    Most recent ledger entries, newest first.

    Query params:
        limit: Number of entries (default 20, max 100)
    """
    limit = request.args.get('limit', type=int)
    service = LoyaltyService(g.tenant_id)
    service.get_client(client_id)

    transactions = service.get_history(client_id, limit=limit)
    for tx in transactions:
        tx['type_label'] = transaction_label(tx['type'])

    return jsonify({
        'client_id': client_id,
        'transactions': transactions,
        'count': len(transactions),
    })


@loyalty_bp.route('/clients/<int:client_id>/redeem', methods=['POST'])
@require_tenant
@require_module('loyalty')
def redeem(client_id):
    """
    Redeem points.

    Request body:
    {
        "points": 100,
        "description": "Discount on grooming",
        "current_balance": 250     # optional, balance the UI showed
    }
    """
    data = request.get_json(silent=True) or {}
    if 'points' not in data:
        return bad_request('points is required', ErrorCode.MISSING_FIELD)

    transaction = LoyaltyService(g.tenant_id).redeem_points(
        client_id=client_id,
        points=data['points'],
        description=data.get('description') or 'Points redemption',
        created_by=g.actor_id,
        current_balance=data.get('current_balance'),
    )
    return jsonify({'success': True, 'transaction': transaction})


@loyalty_bp.route('/clients/<int:client_id>/adjust', methods=['POST'])
@require_tenant
@require_module('loyalty')
def adjust(client_id):
    """
    Manual staff correction (positive or negative).

    Request body:
    {
        "points": -20,
        "description": "Duplicate visit award"
    }
    """
    data = request.get_json(silent=True) or {}
    if 'points' not in data:
        return bad_request('points is required', ErrorCode.MISSING_FIELD)
    if not data.get('description'):
        return bad_request('description is required', ErrorCode.MISSING_FIELD)

    transaction = LoyaltyService(g.tenant_id).adjust_points(
        client_id=client_id,
        points=data['points'],
        description=data['description'],
        created_by=g.actor_id,
    )
    return jsonify({'success': True, 'transaction': transaction})


@loyalty_bp.route('/clients/<int:client_id>/purchase', methods=['POST'])
@require_tenant
@require_module('loyalty')
def purchase(client_id):
    """
    Award points for a purchase.

    Request body:
    {
        "amount": "45000.00",
        "purchase_id": "INV-1042"
    }
    """
    data = request.get_json(silent=True) or {}
    if data.get('amount') is None:
        return bad_request('amount is required', ErrorCode.MISSING_FIELD)
    if not data.get('purchase_id'):
        return bad_request('purchase_id is required', ErrorCode.MISSING_FIELD)

    transaction = LoyaltyService(g.tenant_id).award_purchase_points(
        client_id=client_id,
        amount=data['amount'],
        purchase_id=str(data['purchase_id']),
        created_by=g.actor_id,
    )
    return jsonify({'success': True, 'transaction': transaction})


@loyalty_bp.route('/clients/<int:client_id>/reconcile', methods=['POST'])
@require_tenant
@require_module('loyalty')
def reconcile(client_id):
    """Rebuild the client's loyalty aggregates from the ledger."""
    return jsonify(LoyaltyService(g.tenant_id).rebuild_client_aggregates(client_id))

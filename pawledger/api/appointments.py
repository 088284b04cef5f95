"""
Appointments API.

Daily schedule, bookings, walk-ins and status changes. Completing an
appointment awards loyalty points through AppointmentService.
"""
from flask import Blueprint, request, jsonify, g
from ..middleware.tenant_auth import require_tenant, require_module
from ..services.appointment_service import AppointmentService, generate_time_slots, status_label
from ..utils.errors import bad_request, ErrorCode


appointments_bp = Blueprint('appointments', __name__, url_prefix='/api/appointments')


def _with_label(appointment: dict) -> dict:
    appointment['status_label'] = status_label(appointment['status'])
    return appointment


@appointments_bp.route('', methods=['GET'])
@require_tenant
@require_module('appointments')
def list_appointments():
    """
    Appointments for a day.

    Query params:
        date: YYYY-MM-DD (default today)
    """
    service = AppointmentService(g.tenant_id)
    date = request.args.get('date')
    appointments = service.get_by_date(date) if date else service.get_today()

    return jsonify({
        'appointments': [_with_label(a) for a in appointments],
        'count': len(appointments),
    })


@appointments_bp.route('', methods=['POST'])
@require_tenant
@require_module('appointments')
def create_appointment():
    """
    Book an appointment.

    Request body:
    {
        "client_id": 12,
        "pet_id": 30,
        "date": "2026-03-14",
        "scheduled_time": "10:30",
        "reason": "Vaccination",
        "service_type": "visit"
    }
    """
    data = request.get_json(silent=True) or {}
    appointment = AppointmentService(g.tenant_id).create(data, created_by=g.actor_id)
    return jsonify(_with_label(appointment)), 201


@appointments_bp.route('/walk-in', methods=['POST'])
@require_tenant
@require_module('appointments')
def register_walk_in():
    """
    Register a walk-in patient (waiting now).

    Request body:
    {
        "client_id": 12,
        "pet_id": 30,
        "reason": "Limping"
    }
    """
    data = request.get_json(silent=True) or {}
    if not data.get('client_id') or not data.get('pet_id'):
        return bad_request('client_id and pet_id are required', ErrorCode.MISSING_FIELD)

    appointment = AppointmentService(g.tenant_id).register_walk_in(
        client_id=data['client_id'],
        pet_id=data['pet_id'],
        created_by=g.actor_id,
        reason=data.get('reason', ''),
        service_type=data.get('service_type') or 'visit',
    )
    return jsonify(_with_label(appointment)), 201


@appointments_bp.route('/slots', methods=['GET'])
@require_tenant
@require_module('appointments')
def get_slots():
    """
    Bookable start times.

    Query params:
        open: Opening time HH:MM (default 08:00)
        close: Closing time HH:MM (default 18:00)
        interval: Minutes between slots (default 30)
    """
    slots = generate_time_slots(
        request.args.get('open', '08:00'),
        request.args.get('close', '18:00'),
        request.args.get('interval', 30, type=int),
    )
    return jsonify({'slots': slots, 'count': len(slots)})


@appointments_bp.route('/<int:appointment_id>', methods=['GET'])
@require_tenant
@require_module('appointments')
def get_appointment(appointment_id):
    return jsonify(_with_label(AppointmentService(g.tenant_id).get_by_id(appointment_id)))


@appointments_bp.route('/<int:appointment_id>', methods=['PATCH'])
@require_tenant
@require_module('appointments')
def update_appointment(appointment_id):
    """Edit date, time, reason, notes, priority or service type."""
    data = request.get_json(silent=True) or {}
    appointment = AppointmentService(g.tenant_id).update(appointment_id, data)
    return jsonify(_with_label(appointment))


@appointments_bp.route('/<int:appointment_id>/status', methods=['POST'])
@require_tenant
@require_module('appointments')
def update_status(appointment_id):
    """
    Change an appointment's status.

    Request body:
    {
        "status": "completed"
    }
    """
    data = request.get_json(silent=True) or {}
    if not data.get('status'):
        return bad_request('status is required', ErrorCode.MISSING_FIELD)

    appointment = AppointmentService(g.tenant_id).update_status(
        appointment_id, data['status'], actor_id=g.actor_id
    )
    return jsonify(_with_label(appointment))


@appointments_bp.route('/<int:appointment_id>/cancel', methods=['POST'])
@require_tenant
@require_module('appointments')
def cancel_appointment(appointment_id):
    appointment = AppointmentService(g.tenant_id).cancel(appointment_id, actor_id=g.actor_id)
    return jsonify(_with_label(appointment))

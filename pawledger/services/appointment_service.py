"""
Appointment Service.

Appointment lifecycle for one tenant:
- Booking, walk-in registration and non-status edits
- Status changes through an explicit transition table
- Time stamps for arrival, start and end
- Loyalty award when an appointment is completed
- Retry sweep for awards that failed

AWARD HOOK:
Completing an appointment awards visit points exactly once. Grooming
appointments are the one exception: they earn the program's grooming rate
as `earned_grooming` rather than visit points. The ledger entry, the client
aggregates and the appointment's `loyalty_awarded` flag are written in one
unit of work, and the flag write is conditional on the appointment version
that was read, so two concurrent completions cannot both award. A failing
award never fails the status change: the error is logged and recorded on the
appointment (`loyalty_award_error`, `loyalty_award_failures`) for
retry_pending_awards().
"""
import re
from datetime import datetime
from typing import List, Dict, Any, Callable
from flask import current_app

from ..store import DocumentStore
from ..models.appointment import AppointmentStatus
from ..models.tenant import module_enabled
from ..models.loyalty import LoyaltyTransactionType, LoyaltyReferenceType
from ..utils.concurrency import retry_on_conflict
from ..utils.exceptions import (
    AppointmentNotFoundError,
    InvalidStatusTransitionError,
    NotFoundError,
    TenantNotFoundError,
    ValidationError,
)
from .loyalty_service import LoyaltyService, visit_description, grooming_description
from .program_config import resolve_program_config


STATUSES = {s.value for s in AppointmentStatus}

ALLOWED_TRANSITIONS = {
    'scheduled': {'waiting', 'in_progress', 'completed', 'cancelled', 'no_show'},
    'waiting': {'scheduled', 'in_progress', 'completed', 'cancelled', 'no_show'},
    'in_progress': {'waiting', 'completed', 'cancelled', 'no_show'},
    'completed': {'completed'},
    'cancelled': set(),
    'no_show': set(),
}

# Time field stamped when entering a status
STATUS_TIME_FIELDS = {
    'waiting': 'arrival_time',
    'in_progress': 'start_time',
    'completed': 'end_time',
}

STATUS_LABELS = {
    'scheduled': 'Scheduled',
    'waiting': 'Waiting',
    'in_progress': 'In progress',
    'completed': 'Completed',
    'cancelled': 'Cancelled',
    'no_show': 'No show',
}

# Fields update() may change; status goes through update_status()
EDITABLE_FIELDS = {'date', 'scheduled_time', 'reason', 'notes', 'priority', 'service_type'}

PRIORITIES = {'normal', 'urgent'}
SERVICE_TYPES = {'visit', 'grooming'}

# Award hook outcomes
AWARD_AWARDED = 'awarded'
AWARD_SKIPPED = 'skipped'
AWARD_FAILED = 'failed'

_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_TIME_RE = re.compile(r'^(\d{1,2}):(\d{2})$')


def to_date_string(value: datetime) -> str:
    return value.strftime('%Y-%m-%d')


def to_time_string(value: datetime) -> str:
    return value.strftime('%H:%M')


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def _parse_minutes(value: str, field: str) -> int:
    match = _TIME_RE.match(value or '')
    if not match:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM", field=field)
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM", field=field)
    return hours * 60 + minutes


def generate_time_slots(open_time: str, close_time: str, interval_minutes: int) -> List[str]:
    """
    Bookable start times between opening and closing.

    The range is half-open: a slot starting exactly at `close_time` is not
    included. Returns an empty list when close is not after open.

    Example:
        generate_time_slots('09:00', '10:00', 30) -> ['09:00', '09:30']

    Raises:
        ValidationError: Malformed time or non-positive interval
    """
    if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int) or interval_minutes <= 0:
        raise ValidationError('Slot interval must be a positive number of minutes', field='interval')

    start = _parse_minutes(open_time, 'open')
    end = _parse_minutes(close_time, 'close')

    return [
        f'{minute // 60:02d}:{minute % 60:02d}'
        for minute in range(start, end, interval_minutes)
    ]


class AppointmentService:
    """
    Appointment operations for one tenant.

    Usage:
        service = AppointmentService(tenant_id)

        appt = service.register_walk_in(client_id, pet_id, created_by='user-7', reason='Limping')
        appt = service.update_status(appt['id'], 'in_progress', actor_id='user-7')
        appt = service.update_status(appt['id'], 'completed', actor_id='user-7')
    """

    def __init__(
        self,
        tenant_id: int,
        store: DocumentStore = None,
        loyalty_service: LoyaltyService = None,
        now: Callable[[], datetime] = None,
    ):
        """
        Initialize AppointmentService.

        Args:
            tenant_id: Tenant ID for multi-tenancy
            store: DocumentStore to use
            loyalty_service: Ledger service; it must share this service's store
                so award writes join the same unit of work
            now: Clock used for today's date and time stamps
        """
        self.tenant_id = tenant_id
        if store is None:
            store = loyalty_service.store if loyalty_service else DocumentStore()
        self.store = store
        self.loyalty_service = loyalty_service or LoyaltyService(tenant_id, store=store)
        self._now = now or datetime.now

    # ==================== Reads ====================

    def get_by_id(self, appointment_id: int) -> Dict[str, Any]:
        """
        Raises:
            AppointmentNotFoundError: Unknown appointment or owned by another tenant
        """
        appointment = self.store.get_document('appointments', appointment_id)
        if not appointment or appointment['tenant_id'] != self.tenant_id:
            raise AppointmentNotFoundError(appointment_id)
        return appointment

    def get_by_date(self, date: str) -> List[Dict[str, Any]]:
        """Appointments on a YYYY-MM-DD date, in schedule order."""
        self._validate_date(date)
        return self.store.query_documents(
            'appointments',
            filters={'tenant_id': self.tenant_id, 'date': date},
            order_by=['scheduled_time', 'id'],
        )

    def get_today(self) -> List[Dict[str, Any]]:
        return self.get_by_date(to_date_string(self._now()))

    # ==================== Booking ====================

    def create(self, data: Dict[str, Any], created_by: str) -> Dict[str, Any]:
        """
        Book an appointment.

        Request data:
        {
            "client_id": 12,
            "pet_id": 30,
            "date": "2026-03-14",
            "scheduled_time": "10:30",     # optional
            "reason": "Vaccination",       # optional
            "service_type": "visit",       # visit | grooming
            "priority": "normal",          # normal | urgent
            "status": "scheduled"          # scheduled | waiting
        }

        Raises:
            ValidationError: Missing or malformed fields
            ClientNotFoundError / NotFoundError: Unknown client or pet
        """
        if not created_by:
            raise ValidationError('created_by is required', field='created_by')
        for required in ('client_id', 'pet_id', 'date'):
            if not data.get(required):
                raise ValidationError(f'{required} is required', field=required)

        self._validate_date(data['date'])
        if data.get('scheduled_time'):
            _parse_minutes(data['scheduled_time'], 'scheduled_time')

        status = data.get('status') or AppointmentStatus.SCHEDULED.value
        if status not in (AppointmentStatus.SCHEDULED.value, AppointmentStatus.WAITING.value):
            raise ValidationError("New appointments must be 'scheduled' or 'waiting'", field='status')

        priority = data.get('priority') or 'normal'
        if priority not in PRIORITIES:
            raise ValidationError(f'Invalid priority: {priority}', field='priority')
        service_type = data.get('service_type') or 'visit'
        if service_type not in SERVICE_TYPES:
            raise ValidationError(f'Invalid service type: {service_type}', field='service_type')

        client = self.loyalty_service.get_client(data['client_id'])
        pet = self._get_pet(data['pet_id'], client['id'])

        document = {
            'tenant_id': self.tenant_id,
            'client_id': client['id'],
            'pet_id': pet['id'],
            'client_name': client['full_name'],
            'pet_name': pet['name'],
            'pet_species': pet['species'],
            'created_by': created_by,
            'date': data['date'],
            'scheduled_time': data.get('scheduled_time'),
            'reason': data.get('reason') or '',
            'notes': data.get('notes'),
            'is_walk_in': bool(data.get('is_walk_in', False)),
            'priority': priority,
            'service_type': service_type,
            'status': status,
        }
        if status == AppointmentStatus.WAITING.value:
            document['arrival_time'] = data.get('arrival_time') or to_time_string(self._now())

        appointment_id = self.store.add_document('appointments', document)
        current_app.logger.info(
            f"Appointment {appointment_id} booked for client {client['id']} on {data['date']} ({status})"
        )
        return self.get_by_id(appointment_id)

    def register_walk_in(
        self,
        client_id: int,
        pet_id: int,
        created_by: str,
        reason: str = '',
        service_type: str = 'visit',
    ) -> Dict[str, Any]:
        """Register an unscheduled arrival: waiting today, arrived now."""
        now = self._now()
        return self.create({
            'client_id': client_id,
            'pet_id': pet_id,
            'date': to_date_string(now),
            'reason': reason,
            'service_type': service_type,
            'priority': 'normal',
            'status': AppointmentStatus.WAITING.value,
            'arrival_time': to_time_string(now),
            'is_walk_in': True,
        }, created_by=created_by)

    def update(self, appointment_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Edit non-status fields.

        Raises:
            ValidationError: Status or unknown fields in `data`
        """
        if 'status' in data:
            raise ValidationError('Use update_status to change the status', field='status')
        unknown = set(data) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")

        if 'date' in data:
            self._validate_date(data['date'])
        if data.get('scheduled_time'):
            _parse_minutes(data['scheduled_time'], 'scheduled_time')
        if 'priority' in data and data['priority'] not in PRIORITIES:
            raise ValidationError(f"Invalid priority: {data['priority']}", field='priority')
        if 'service_type' in data and data['service_type'] not in SERVICE_TYPES:
            raise ValidationError(f"Invalid service type: {data['service_type']}", field='service_type')

        def attempt():
            appointment = self.get_by_id(appointment_id)
            self.store.update_document(
                'appointments', appointment_id, dict(data), expected_version=appointment['version']
            )

        retry_on_conflict(attempt, attempts=self._max_retries(), label=f'Appointment {appointment_id} update')
        return self.get_by_id(appointment_id)

    # ==================== Status ====================

    def update_status(self, appointment_id: int, new_status: str, actor_id: str = None) -> Dict[str, Any]:
        """
        Move an appointment to a new status.

        Stamps arrival/start/end times, and on 'completed' runs the loyalty
        award hook. Setting the current status again writes nothing; for
        'completed' the hook still runs, and it awards at most once.

        Returns:
            The updated appointment document

        Raises:
            ValidationError: Unknown status
            AppointmentNotFoundError: Unknown appointment
            InvalidStatusTransitionError: Transition not allowed (strict mode)
        """
        if isinstance(new_status, AppointmentStatus):
            new_status = new_status.value
        if new_status not in STATUSES:
            raise ValidationError(f'Invalid appointment status: {new_status}', field='status')

        strict = current_app.config.get('APPOINTMENT_STRICT_TRANSITIONS', True)

        def attempt():
            appointment = self.get_by_id(appointment_id)
            current = appointment['status']
            if strict and new_status not in ALLOWED_TRANSITIONS.get(current, set()):
                raise InvalidStatusTransitionError('appointment', current, new_status)
            if current == new_status:
                return current

            data = {'status': new_status}
            time_field = STATUS_TIME_FIELDS.get(new_status)
            if time_field:
                data[time_field] = to_time_string(self._now())

            self.store.update_document(
                'appointments', appointment_id, data, expected_version=appointment['version']
            )
            return current

        previous = retry_on_conflict(
            attempt,
            attempts=self._max_retries(),
            label=f'Appointment {appointment_id} status',
        )

        if previous != new_status:
            current_app.logger.info(
                f"Appointment {appointment_id} status: {previous} -> {new_status}"
                f" (by {actor_id or 'system'})"
            )

        if new_status == AppointmentStatus.COMPLETED.value:
            self.award_loyalty_points(appointment_id)

        return self.get_by_id(appointment_id)

    def cancel(self, appointment_id: int, actor_id: str = None) -> Dict[str, Any]:
        return self.update_status(appointment_id, AppointmentStatus.CANCELLED.value, actor_id=actor_id)

    def mark_no_show(self, appointment_id: int, actor_id: str = None) -> Dict[str, Any]:
        return self.update_status(appointment_id, AppointmentStatus.NO_SHOW.value, actor_id=actor_id)

    # ==================== Loyalty award ====================

    def award_loyalty_points(self, appointment_id: int) -> str:
        """
        Award points for a completed appointment, once.

        Never raises: failures are logged and recorded on the appointment.

        Returns:
            'awarded', 'skipped' (already awarded, not completed, loyalty off)
            or 'failed'
        """
        try:
            outcome = retry_on_conflict(
                lambda: self._award_once(appointment_id),
                attempts=self._max_retries(),
                label=f'Loyalty award for appointment {appointment_id}',
            )
        except Exception as e:
            current_app.logger.warning(f"Loyalty award failed for appointment {appointment_id}: {e}")
            self._record_award_failure(appointment_id, e)
            return AWARD_FAILED

        return outcome

    def _award_once(self, appointment_id: int) -> str:
        with self.store.atomic():
            appointment = self.get_by_id(appointment_id)
            if appointment['loyalty_awarded']:
                return AWARD_SKIPPED
            if appointment['status'] != AppointmentStatus.COMPLETED.value:
                return AWARD_SKIPPED

            tenant = self.store.get_document('tenants', self.tenant_id)
            if not tenant:
                raise TenantNotFoundError(self.tenant_id)
            if not module_enabled(tenant, 'loyalty'):
                return AWARD_SKIPPED

            program = resolve_program_config(tenant)
            if not program.enabled:
                return AWARD_SKIPPED

            if appointment['service_type'] == 'grooming':
                points = program.points_per_grooming
                transaction_type = LoyaltyTransactionType.EARNED_GROOMING.value
                description = grooming_description(appointment['pet_name'])
            else:
                points = program.points_per_visit
                transaction_type = LoyaltyTransactionType.EARNED_VISIT.value
                description = visit_description(appointment['pet_name'])

            if points <= 0:
                current_app.logger.info(
                    f"Appointment {appointment_id}: program awards no points for {appointment['service_type']}"
                )
                return AWARD_SKIPPED

            client = self.loyalty_service.get_client(appointment['client_id'])
            transaction = self.loyalty_service.stage_points(
                client_id=client['id'],
                points=points,
                transaction_type=transaction_type,
                description=description,
                created_by=appointment['created_by'],
                reference_type=LoyaltyReferenceType.APPOINTMENT.value,
                reference_id=appointment_id,
                program=program,
                current_balance=client['loyalty_points'],
            )

            # Conditional on the version read above: a concurrent award conflicts here
            self.store.update_document(
                'appointments',
                appointment_id,
                {'loyalty_awarded': True, 'loyalty_award_error': None},
                expected_version=appointment['version'],
            )

        current_app.logger.info(
            f"Appointment {appointment_id}: awarded {points} pts to client {client['id']} "
            f"(balance {transaction['balance_after']})"
        )
        return AWARD_AWARDED

    def _record_award_failure(self, appointment_id: int, error: Exception) -> None:
        message = getattr(error, 'message', None) or str(error) or type(error).__name__

        def attempt():
            appointment = self.get_by_id(appointment_id)
            self.store.update_document(
                'appointments',
                appointment_id,
                {
                    'loyalty_award_error': message[:500],
                    'loyalty_award_failures': appointment['loyalty_award_failures'] + 1,
                },
                expected_version=appointment['version'],
            )

        try:
            retry_on_conflict(attempt, attempts=self._max_retries(), label=f'Award failure for {appointment_id}')
        except Exception as e:
            current_app.logger.error(f"Could not record award failure on appointment {appointment_id}: {e}")

    def retry_pending_awards(self, limit: int = None) -> Dict[str, Any]:
        """
        Re-run the award hook for completed appointments whose award failed.

        Returns:
            {'processed': n, 'awarded': n, 'skipped': n, 'failed': n,
             'appointment_ids': [...]}
        """
        if limit is None:
            limit = current_app.config.get('AWARD_RETRY_BATCH_SIZE', 100)

        pending = self.store.query_documents(
            'appointments',
            filters=[
                ('tenant_id', '==', self.tenant_id),
                ('status', '==', AppointmentStatus.COMPLETED.value),
                ('loyalty_awarded', '==', False),
                ('loyalty_award_failures', '>', 0),
            ],
            order_by=['updated_at', 'id'],
            limit=limit,
        )

        result = {
            'processed': 0,
            AWARD_AWARDED: 0,
            AWARD_SKIPPED: 0,
            AWARD_FAILED: 0,
            'appointment_ids': [],
        }
        for appointment in pending:
            outcome = self.award_loyalty_points(appointment['id'])
            result['processed'] += 1
            result[outcome] += 1
            result['appointment_ids'].append(appointment['id'])

        if pending:
            current_app.logger.info(
                f"Award retry for tenant {self.tenant_id}: {result['awarded']} awarded, "
                f"{result['failed']} still failing, {result['skipped']} skipped"
            )
        return result

    # ==================== Helpers ====================

    def _get_pet(self, pet_id: int, client_id: int) -> Dict[str, Any]:
        pet = self.store.get_document('pets', pet_id)
        if not pet or pet['tenant_id'] != self.tenant_id or pet['client_id'] != client_id:
            raise NotFoundError('Pet', pet_id)
        return pet

    @staticmethod
    def _validate_date(value: str) -> None:
        if not isinstance(value, str) or not _DATE_RE.match(value):
            raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD", field='date')
        try:
            datetime.strptime(value, '%Y-%m-%d')
        except ValueError:
            raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD", field='date')

    @staticmethod
    def _max_retries() -> int:
        return current_app.config.get('LOYALTY_MAX_RETRIES', 3)

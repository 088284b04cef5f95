"""
Comprehensive tests for AppointmentService.

Tests cover:
- Time slot generation
- Booking and walk-in registration
- Status transitions and time stamps
- Loyalty award on completion (once, soft-fail, module gating)
- Retry of failed awards
"""
import pytest
from datetime import datetime
from unittest.mock import patch

from pawledger.extensions import db
from pawledger.services.appointment_service import (
    AppointmentService,
    generate_time_slots,
    status_label,
    AWARD_AWARDED,
    AWARD_SKIPPED,
    AWARD_FAILED,
)
from pawledger.services.loyalty_service import LoyaltyService
from pawledger.store import DocumentStore
from pawledger.utils.exceptions import (
    AppointmentNotFoundError,
    ClientNotFoundError,
    InvalidStatusTransitionError,
    NotFoundError,
    StoreError,
    ValidationError,
)

FIXED_NOW = datetime(2026, 3, 14, 9, 45)


def _service(tenant_id):
    return AppointmentService(tenant_id, now=lambda: FIXED_NOW)


def _transactions(client_id):
    return DocumentStore().query_documents(
        'loyalty_transactions', filters={'client_id': client_id}, order_by=['id']
    )


class TestGenerateTimeSlots:
    """Tests for generate_time_slots."""

    def test_half_open_range(self):
        assert generate_time_slots('09:00', '10:00', 30) == ['09:00', '09:30']

    def test_interval_not_dividing_range(self):
        assert generate_time_slots('09:00', '10:00', 25) == ['09:00', '09:25', '09:50']

    def test_close_not_after_open(self):
        assert generate_time_slots('10:00', '10:00', 15) == []
        assert generate_time_slots('11:00', '10:00', 15) == []

    @pytest.mark.parametrize('interval', [0, -15])
    def test_non_positive_interval(self, interval):
        with pytest.raises(ValidationError):
            generate_time_slots('09:00', '10:00', interval)

    @pytest.mark.parametrize('value', ['9am', '25:00', '09:60', ''])
    def test_malformed_time(self, value):
        with pytest.raises(ValidationError):
            generate_time_slots(value, '18:00', 30)


class TestBooking:
    """Tests for create and register_walk_in."""

    def test_create_scheduled(self, app, sample_tenant, sample_client, sample_pet):
        appointment = _service(sample_tenant.id).create({
            'client_id': sample_client.id,
            'pet_id': sample_pet.id,
            'date': '2026-03-20',
            'scheduled_time': '11:00',
            'reason': 'Checkup',
        }, created_by='vet-1')

        assert appointment['status'] == 'scheduled'
        assert appointment['client_name'] == 'Ana Rojas'
        assert appointment['pet_name'] == 'Rex'
        assert appointment['pet_species'] == 'dog'
        assert appointment['created_by'] == 'vet-1'
        assert appointment['loyalty_awarded'] is False
        assert appointment['arrival_time'] is None

    def test_create_requires_fields(self, app, sample_tenant, sample_client):
        with pytest.raises(ValidationError) as exc_info:
            _service(sample_tenant.id).create({'client_id': sample_client.id, 'date': '2026-03-20'},
                                              created_by='vet-1')
        assert exc_info.value.field == 'pet_id'

    def test_create_rejects_bad_date(self, app, sample_tenant, sample_client, sample_pet):
        with pytest.raises(ValidationError):
            _service(sample_tenant.id).create({
                'client_id': sample_client.id, 'pet_id': sample_pet.id, 'date': '2026-02-30',
            }, created_by='vet-1')

    def test_create_rejects_terminal_status(self, app, sample_tenant, sample_client, sample_pet):
        with pytest.raises(ValidationError):
            _service(sample_tenant.id).create({
                'client_id': sample_client.id, 'pet_id': sample_pet.id,
                'date': '2026-03-20', 'status': 'completed',
            }, created_by='vet-1')

    def test_create_for_unknown_client(self, app, sample_tenant, sample_pet):
        with pytest.raises(ClientNotFoundError):
            _service(sample_tenant.id).create({
                'client_id': 99999, 'pet_id': sample_pet.id, 'date': '2026-03-20',
            }, created_by='vet-1')

    def test_create_with_pet_of_other_client(self, app, sample_tenant, sample_pet, make_client):
        other = make_client(first_name='Luis')
        with pytest.raises(NotFoundError):
            _service(sample_tenant.id).create({
                'client_id': other.id, 'pet_id': sample_pet.id, 'date': '2026-03-20',
            }, created_by='vet-1')

    def test_walk_in(self, app, sample_tenant, sample_client, sample_pet):
        appointment = _service(sample_tenant.id).register_walk_in(
            sample_client.id, sample_pet.id, created_by='vet-1', reason='Limping'
        )

        assert appointment['status'] == 'waiting'
        assert appointment['is_walk_in'] is True
        assert appointment['date'] == '2026-03-14'
        assert appointment['arrival_time'] == '09:45'
        assert appointment['priority'] == 'normal'

    def test_get_by_date_and_today(self, app, sample_tenant, sample_appointment):
        service = _service(sample_tenant.id)
        assert [a['id'] for a in service.get_by_date('2026-03-14')] == [sample_appointment.id]
        assert [a['id'] for a in service.get_today()] == [sample_appointment.id]
        assert service.get_by_date('2026-03-15') == []

    def test_get_by_id_other_tenant(self, app, other_tenant, sample_appointment):
        with pytest.raises(AppointmentNotFoundError):
            _service(other_tenant.id).get_by_id(sample_appointment.id)


class TestUpdate:
    """Tests for non-status edits."""

    def test_update_fields(self, app, sample_tenant, sample_appointment):
        appointment = _service(sample_tenant.id).update(
            sample_appointment.id, {'scheduled_time': '12:15', 'notes': 'Bring records'}
        )
        assert appointment['scheduled_time'] == '12:15'
        assert appointment['notes'] == 'Bring records'
        assert appointment['version'] == 2

    def test_update_rejects_status(self, app, sample_tenant, sample_appointment):
        with pytest.raises(ValidationError):
            _service(sample_tenant.id).update(sample_appointment.id, {'status': 'completed'})

    def test_update_rejects_loyalty_fields(self, app, sample_tenant, sample_appointment):
        with pytest.raises(ValidationError):
            _service(sample_tenant.id).update(sample_appointment.id, {'loyalty_awarded': True})


class TestStatusTransitions:
    """Tests for update_status."""

    def test_stamps_times(self, app, sample_tenant, sample_appointment):
        service = _service(sample_tenant.id)

        appointment = service.update_status(sample_appointment.id, 'waiting', actor_id='vet-1')
        assert appointment['arrival_time'] == '09:45'

        appointment = service.update_status(sample_appointment.id, 'in_progress', actor_id='vet-1')
        assert appointment['start_time'] == '09:45'

        appointment = service.update_status(sample_appointment.id, 'completed', actor_id='vet-1')
        assert appointment['end_time'] == '09:45'
        assert appointment['status'] == 'completed'

    def test_unknown_status(self, app, sample_tenant, sample_appointment):
        with pytest.raises(ValidationError):
            _service(sample_tenant.id).update_status(sample_appointment.id, 'archived')

    def test_missing_appointment(self, app, sample_tenant):
        with pytest.raises(AppointmentNotFoundError):
            _service(sample_tenant.id).update_status(99999, 'waiting')

    def test_terminal_status_rejected(self, app, sample_tenant, sample_appointment):
        service = _service(sample_tenant.id)
        service.cancel(sample_appointment.id)

        with pytest.raises(InvalidStatusTransitionError):
            service.update_status(sample_appointment.id, 'waiting')

    def test_completed_cannot_go_back(self, app, sample_tenant, sample_appointment):
        service = _service(sample_tenant.id)
        service.update_status(sample_appointment.id, 'completed')

        with pytest.raises(InvalidStatusTransitionError):
            service.update_status(sample_appointment.id, 'in_progress')

    def test_lenient_mode_allows_any_transition(self, app, sample_tenant, sample_appointment):
        app.config['APPOINTMENT_STRICT_TRANSITIONS'] = False
        service = _service(sample_tenant.id)
        service.mark_no_show(sample_appointment.id)

        appointment = service.update_status(sample_appointment.id, 'waiting')
        assert appointment['status'] == 'waiting'

    def test_repeating_non_completed_status_rejected(self, app, sample_tenant, sample_appointment):
        service = _service(sample_tenant.id)
        first = service.update_status(sample_appointment.id, 'waiting')
        with pytest.raises(InvalidStatusTransitionError):
            service.update_status(sample_appointment.id, 'waiting')
        assert service.get_by_id(sample_appointment.id)['version'] == first['version']

    @pytest.mark.parametrize('start', [[], ['waiting'], ['in_progress'], ['waiting', 'in_progress']])
    @pytest.mark.parametrize('end', ['cancelled', 'no_show'])
    def test_open_appointment_can_be_cancelled_or_missed(self, app, sample_tenant, sample_appointment, start, end):
        service = _service(sample_tenant.id)
        for status in start:
            service.update_status(sample_appointment.id, status)

        appointment = service.update_status(sample_appointment.id, end)

        assert appointment['status'] == end
        assert appointment['loyalty_awarded'] is False

    def test_status_label(self):
        assert status_label('in_progress') == 'In progress'
        assert status_label('no_show') == 'No show'


class TestLoyaltyAward:
    """Tests for the award hook on completion."""

    def test_completion_awards_visit_points(self, app, sample_tenant, sample_client, sample_appointment):
        appointment = _service(sample_tenant.id).update_status(sample_appointment.id, 'completed', actor_id='vet-2')

        assert appointment['loyalty_awarded'] is True
        txs = _transactions(sample_client.id)
        assert len(txs) == 1
        assert txs[0]['type'] == 'earned_visit'
        assert txs[0]['points'] == 10
        assert txs[0]['description'] == 'Visit for Rex'
        assert txs[0]['reference_type'] == 'appointment'
        assert txs[0]['reference_id'] == str(sample_appointment.id)
        # Booking staff member is credited, not the actor who completed it
        assert txs[0]['created_by'] == 'vet-1'

        client = LoyaltyService(sample_tenant.id).get_client(sample_client.id)
        assert client['loyalty_points'] == 10
        assert client['loyalty']['enrolled_at'] is not None

    def test_grooming_awards_grooming_points(self, app, sample_tenant, sample_client, sample_appointment):
        service = _service(sample_tenant.id)
        service.update(sample_appointment.id, {'service_type': 'grooming'})
        service.update_status(sample_appointment.id, 'completed')

        txs = _transactions(sample_client.id)
        assert txs[0]['type'] == 'earned_grooming'
        assert txs[0]['points'] == 15
        assert txs[0]['description'] == 'Grooming for Rex'

    def test_completing_twice_awards_once(self, app, sample_tenant, sample_client, sample_appointment):
        service = _service(sample_tenant.id)
        service.update_status(sample_appointment.id, 'completed')
        service.update_status(sample_appointment.id, 'completed')

        assert len(_transactions(sample_client.id)) == 1
        assert LoyaltyService(sample_tenant.id).get_client(sample_client.id)['loyalty_points'] == 10

    def test_already_awarded_creates_nothing(self, app, sample_tenant, sample_client, sample_appointment):
        """Completing an appointment already flagged as awarded changes nothing."""
        sample_appointment.loyalty_awarded = True
        db.session.commit()

        appointment = _service(sample_tenant.id).update_status(sample_appointment.id, 'completed')

        assert appointment['status'] == 'completed'
        assert _transactions(sample_client.id) == []
        assert LoyaltyService(sample_tenant.id).get_client(sample_client.id)['loyalty_points'] == 0

    def test_stale_concurrent_completion_awards_once(self, app, sample_tenant, sample_client, sample_appointment):
        service = _service(sample_tenant.id)
        service.update_status(sample_appointment.id, 'completed')
        stale = service.get_by_id(sample_appointment.id)
        stale.update({'loyalty_awarded': False, 'version': stale['version'] - 1})

        real_get_by_id = AppointmentService.get_by_id
        snapshots = [stale]

        def stale_then_fresh(svc, appointment_id):
            if snapshots:
                return snapshots.pop()
            return real_get_by_id(svc, appointment_id)

        with patch.object(AppointmentService, 'get_by_id', autospec=True, side_effect=stale_then_fresh):
            outcome = service.award_loyalty_points(sample_appointment.id)

        assert outcome == AWARD_SKIPPED
        assert len(_transactions(sample_client.id)) == 1
        assert LoyaltyService(sample_tenant.id).get_client(sample_client.id)['loyalty_points'] == 10

    def test_program_disabled_skips(self, app, sample_tenant, sample_client, sample_appointment):
        sample_tenant.loyalty_program = {
            'enabled': False,
            'tiers': {'bronze': 0, 'silver': 200, 'gold': 500, 'platinum': 1000},
        }
        db.session.commit()

        appointment = _service(sample_tenant.id).update_status(sample_appointment.id, 'completed')

        assert appointment['loyalty_awarded'] is False
        assert appointment['loyalty_award_failures'] == 0
        assert _transactions(sample_client.id) == []

    def test_loyalty_module_off_skips(self, app, sample_tenant, sample_client, sample_appointment):
        sample_tenant.subscription_modules = {'clients': True, 'appointments': True, 'loyalty': False}
        db.session.commit()

        _service(sample_tenant.id).update_status(sample_appointment.id, 'completed')

        assert _transactions(sample_client.id) == []

    def test_suspended_subscription_skips(self, app, sample_tenant, sample_client, sample_appointment):
        sample_tenant.subscription_status = 'suspended'
        db.session.commit()

        _service(sample_tenant.id).update_status(sample_appointment.id, 'completed')

        assert _transactions(sample_client.id) == []

    def test_not_completed_skips(self, app, sample_tenant, sample_appointment):
        assert _service(sample_tenant.id).award_loyalty_points(sample_appointment.id) == AWARD_SKIPPED


class TestAwardFailures:
    """Tests for soft-fail awards and retry."""

    def test_failure_does_not_fail_status_change(self, app, sample_tenant, sample_client, sample_appointment):
        service = _service(sample_tenant.id)

        with patch.object(LoyaltyService, 'stage_points', side_effect=StoreError('ledger unavailable')):
            appointment = service.update_status(sample_appointment.id, 'completed')

        assert appointment['status'] == 'completed'
        assert appointment['loyalty_awarded'] is False
        assert appointment['loyalty_award_error'] == 'ledger unavailable'
        assert appointment['loyalty_award_failures'] == 1
        assert _transactions(sample_client.id) == []

    def test_failure_is_logged(self, app, sample_tenant, sample_appointment, caplog):
        service = _service(sample_tenant.id)

        with patch.object(LoyaltyService, 'stage_points', side_effect=RuntimeError('boom')):
            with caplog.at_level('WARNING'):
                service.update_status(sample_appointment.id, 'completed')

        assert f'appointment {sample_appointment.id}' in caplog.text

    def test_config_error_recorded(self, app, sample_tenant, sample_client, sample_appointment):
        sample_tenant.loyalty_program = {'tiers': {'bronze': 0}}
        db.session.commit()

        appointment = _service(sample_tenant.id).update_status(sample_appointment.id, 'completed')

        assert appointment['status'] == 'completed'
        assert appointment['loyalty_award_failures'] == 1
        assert 'missing thresholds' in appointment['loyalty_award_error']

    def test_retry_awards_failed_appointment(self, app, sample_tenant, sample_client, sample_appointment):
        service = _service(sample_tenant.id)
        with patch.object(LoyaltyService, 'stage_points', side_effect=StoreError('ledger unavailable')):
            service.update_status(sample_appointment.id, 'completed')

        result = service.retry_pending_awards()

        assert result['processed'] == 1
        assert result[AWARD_AWARDED] == 1
        assert result['appointment_ids'] == [sample_appointment.id]
        appointment = service.get_by_id(sample_appointment.id)
        assert appointment['loyalty_awarded'] is True
        assert appointment['loyalty_award_error'] is None
        assert len(_transactions(sample_client.id)) == 1

        # Nothing left to retry
        assert service.retry_pending_awards()['processed'] == 0

    def test_retry_still_failing_counts_again(self, app, sample_tenant, sample_appointment):
        service = _service(sample_tenant.id)
        with patch.object(LoyaltyService, 'stage_points', side_effect=StoreError('ledger unavailable')):
            service.update_status(sample_appointment.id, 'completed')
            result = service.retry_pending_awards()

        assert result[AWARD_FAILED] == 1
        assert service.get_by_id(sample_appointment.id)['loyalty_award_failures'] == 2

    def test_retry_ignores_skipped_awards(self, app, sample_tenant, sample_appointment):
        sample_tenant.subscription_modules = {'loyalty': False, 'appointments': True}
        db.session.commit()
        service = _service(sample_tenant.id)
        service.update_status(sample_appointment.id, 'completed')

        assert service.retry_pending_awards()['processed'] == 0

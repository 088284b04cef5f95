"""
Tests for the loyalty CLI commands.
"""
from unittest.mock import patch

from pawledger.services.appointment_service import AppointmentService
from pawledger.services.loyalty_service import LoyaltyService
from pawledger.store import DocumentStore
from pawledger.utils.exceptions import StoreError


class TestReconcileCommand:
    """Tests for `flask loyalty reconcile`."""

    def test_repairs_client(self, app, sample_tenant, sample_client):
        LoyaltyService(sample_tenant.id).award_visit_points(sample_client.id, 1, 'Rex', created_by='vet-1')
        DocumentStore().update_document('clients', sample_client.id, {'loyalty_points': 0})

        result = app.test_cli_runner().invoke(
            args=['loyalty', 'reconcile', '--tenant-id', str(sample_tenant.id)]
        )

        assert result.exit_code == 0
        assert 'Repaired: 1' in result.output
        assert LoyaltyService(sample_tenant.id).get_client(sample_client.id)['loyalty_points'] == 10

    def test_unknown_tenant(self, app):
        result = app.test_cli_runner().invoke(args=['loyalty', 'reconcile', '--tenant-id', '9999'])
        assert 'Tenant 9999 not found' in result.output


class TestRetryAwardsCommand:
    """Tests for `flask loyalty retry-awards`."""

    def test_retries_failed_awards(self, app, sample_tenant, sample_client, sample_appointment):
        with patch.object(LoyaltyService, 'stage_points', side_effect=StoreError('ledger unavailable')):
            AppointmentService(sample_tenant.id).update_status(sample_appointment.id, 'completed')

        result = app.test_cli_runner().invoke(args=['loyalty', 'retry-awards'])

        assert result.exit_code == 0
        assert 'awarded 1' in result.output
        assert LoyaltyService(sample_tenant.id).get_client(sample_client.id)['loyalty_points'] == 10

    def test_failing_tenant_does_not_stop_others(self, app, sample_tenant, other_tenant,
                                                 sample_client, sample_appointment):
        with patch.object(LoyaltyService, 'stage_points', side_effect=StoreError('ledger unavailable')):
            AppointmentService(sample_tenant.id).update_status(sample_appointment.id, 'completed')

        real_retry = AppointmentService.retry_pending_awards

        def retry(service, limit=None):
            if service.tenant_id == other_tenant.id:
                raise StoreError('tenant database unavailable')
            return real_retry(service, limit=limit)

        with patch.object(AppointmentService, 'retry_pending_awards', autospec=True, side_effect=retry):
            result = app.test_cli_runner().invoke(args=['loyalty', 'retry-awards'])

        assert result.exit_code == 0
        assert 'Tenant otra-clinica: retry failed' in result.output
        assert '1 awarded, 0 still failing, 1 tenant errors' in result.output
        assert LoyaltyService(sample_tenant.id).get_client(sample_client.id)['loyalty_points'] == 10

"""
CLI Commands for the loyalty ledger.

These commands can be run manually or via cron jobs:

# Rebuild one client's aggregates from the ledger
flask loyalty reconcile --tenant-id=1 --client-id=42

# Rebuild every client of a tenant
flask loyalty reconcile --tenant-id=1

# Retry failed appointment awards (also run by the background scheduler)
*/15 * * * * cd /app && flask loyalty retry-awards
"""
import click
from flask.cli import with_appcontext
from ..extensions import db
from ..models import Tenant, Client
from ..services.loyalty_service import LoyaltyService
from ..services.appointment_service import AppointmentService
from ..utils.exceptions import PawLedgerError


@click.group('loyalty')
def loyalty_cli():
    """Loyalty ledger commands."""
    pass


@loyalty_cli.command('reconcile')
@click.option('--tenant-id', type=int, required=True, help='Tenant ID')
@click.option('--client-id', type=int, help='Single client (or all clients of the tenant)')
@with_appcontext
def reconcile(tenant_id, client_id):
    """
    Rebuild client loyalty aggregates by replaying the ledger.
    """
    if not db.session.get(Tenant, tenant_id):
        click.echo(f"Tenant {tenant_id} not found")
        return

    if client_id:
        client_ids = [client_id]
    else:
        client_ids = [
            row.id for row in Client.query.filter_by(tenant_id=tenant_id).order_by(Client.id).all()
        ]

    service = LoyaltyService(tenant_id)
    repaired = 0
    errors = 0

    for cid in client_ids:
        try:
            result = service.rebuild_client_aggregates(cid)
        except PawLedgerError as e:
            errors += 1
            click.echo(f"  Client {cid}: {e.message}")
            continue

        if result['changed']:
            repaired += 1
            click.echo(f"  Client {cid}: {result['before']} -> {result['after']}")
        if result['mismatched_rows']:
            click.echo(f"  Client {cid}: {result['mismatched_rows']} ledger rows disagree with replay")

    click.echo(f"\nChecked: {len(client_ids)} clients, Repaired: {repaired}, Errors: {errors}")


@loyalty_cli.command('retry-awards')
@click.option('--tenant-id', type=int, help='Specific tenant ID (or all if not specified)')
@click.option('--limit', type=int, default=None, help='Maximum appointments per tenant')
@with_appcontext
def retry_awards(tenant_id, limit):
    """
    Retry loyalty awards that failed when appointments were completed.
    """
    if tenant_id:
        tenants = [db.session.get(Tenant, tenant_id)]
        if not tenants[0]:
            click.echo(f"Tenant {tenant_id} not found")
            return
    else:
        tenants = Tenant.query.filter_by(is_active=True).all()

    total_awarded = 0
    total_failed = 0
    tenant_errors = 0

    for tenant in tenants:
        if not tenant.has_module('loyalty'):
            click.echo(f"Skipping tenant {tenant.slug}: loyalty module disabled")
            continue

        try:
            result = AppointmentService(tenant.id).retry_pending_awards(limit=limit)
        except Exception as e:
            tenant_errors += 1
            click.echo(f"Tenant {tenant.slug}: retry failed: {e}")
            continue

        click.echo(
            f"Tenant {tenant.slug}: processed {result['processed']}, "
            f"awarded {result['awarded']}, failed {result['failed']}, skipped {result['skipped']}"
        )
        total_awarded += result['awarded']
        total_failed += result['failed']

    click.echo(f"\nTOTAL: {total_awarded} awarded, {total_failed} still failing, {tenant_errors} tenant errors")

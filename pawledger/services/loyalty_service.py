"""
Loyalty Ledger Service.

Single point of mutation for client point balances:
- Visit, grooming and purchase awards
- Redemptions (with balance check)
- Manual adjustments and expirations
- Ledger history and summaries
- Aggregate reconciliation from the ledger

ARCHITECTURE:
- Every mutation appends one LoyaltyTransaction row (the audit trail) and
  updates the client's aggregate fields (balance, totals, tier, enrolled_at).
- Both writes happen in one store unit of work. The client update is
  conditional on the version that was read, so two writers for the same
  client cannot both apply a stale balance; the loser re-reads and retries.
- The ledger is the source of truth. rebuild_client_aggregates() replays it
  to repair aggregates.

Balance rules:
- new_balance = max(0, balance + points)
- Credits add to total_earned; debits add the applied amount to
  total_redeemed (or total_expired for expirations), so
  balance == total_earned - total_redeemed - total_expired always holds.
- Tier is derived from total_earned only.
"""
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Optional, List, Dict, Any, NamedTuple
from flask import current_app

from ..store import DocumentStore
from ..models.loyalty import LoyaltyTransactionType, LoyaltyReferenceType
from ..utils.concurrency import retry_on_conflict
from ..utils.exceptions import (
    ClientNotFoundError,
    InsufficientPointsError,
    ValidationError,
)
from .program_config import LoyaltyProgramConfig, resolve_program_config
from .tier_calculator import (
    tier_for_earned,
    next_tier_info,
    tier_label,
    points_to_currency,
)


EARNING_TYPES = {
    LoyaltyTransactionType.EARNED_VISIT.value,
    LoyaltyTransactionType.EARNED_PURCHASE.value,
    LoyaltyTransactionType.EARNED_GROOMING.value,
}
DEBIT_TYPES = {
    LoyaltyTransactionType.REDEEMED.value,
    LoyaltyTransactionType.EXPIRED.value,
}
TRANSACTION_TYPES = {t.value for t in LoyaltyTransactionType}


class BalanceChange(NamedTuple):
    balance: int
    total_earned: int
    total_redeemed: int
    total_expired: int
    tier: str


def apply_points(
    balance: int,
    total_earned: int,
    total_redeemed: int,
    total_expired: int,
    points: int,
    transaction_type: str,
    thresholds: Dict[str, int],
) -> BalanceChange:
    """
    Compute client aggregates after one ledger entry.

    A debit larger than the balance is floored at zero, and only the amount
    actually taken is added to the redeemed/expired totals.
    """
    new_balance = max(0, balance + points)
    if points > 0:
        total_earned += points
    elif points < 0:
        applied = balance - new_balance
        if transaction_type == LoyaltyTransactionType.EXPIRED.value:
            total_expired += applied
        else:
            total_redeemed += applied

    return BalanceChange(
        balance=new_balance,
        total_earned=total_earned,
        total_redeemed=total_redeemed,
        total_expired=total_expired,
        tier=tier_for_earned(total_earned, thresholds),
    )


class LoyaltyService:
    """
    Points ledger operations for one tenant.

    Usage:
        service = LoyaltyService(tenant_id)

        tx = service.award_visit_points(client_id, appointment_id, 'Rex', created_by='user-7')
        tx = service.redeem_points(client_id, 100, 'Discount on grooming', created_by='user-7')
        history = service.get_history(client_id, limit=20)
    """

    def __init__(self, tenant_id: int, store: DocumentStore = None):
        """
        Initialize LoyaltyService.

        Args:
            tenant_id: Tenant ID for multi-tenancy
            store: DocumentStore to use (shared with the caller's unit of work)
        """
        self.tenant_id = tenant_id
        self.store = store or DocumentStore()

    # ==================== Reads ====================

    def get_client(self, client_id: int) -> Dict[str, Any]:
        """
        Load a client document owned by this tenant.

        Raises:
            ClientNotFoundError: Unknown client or owned by another tenant
        """
        client = self.store.get_document('clients', client_id)
        if not client or client['tenant_id'] != self.tenant_id:
            raise ClientNotFoundError(client_id)
        return client

    def get_program(self) -> LoyaltyProgramConfig:
        """The tenant's loyalty program, or the default one."""
        tenant = self.store.get_document('tenants', self.tenant_id)
        return resolve_program_config(tenant)

    def get_history(self, client_id: int, limit: int = None) -> List[Dict[str, Any]]:
        """
        Most recent ledger entries for a client, newest first.

        Args:
            client_id: Client to read
            limit: Maximum rows (clamped to HISTORY_MAX_LIMIT)
        """
        max_limit = current_app.config.get('HISTORY_MAX_LIMIT', 100)
        if limit is None:
            limit = current_app.config.get('HISTORY_DEFAULT_LIMIT', 20)
        limit = max(1, min(int(limit), max_limit))

        return self.store.query_documents(
            'loyalty_transactions',
            filters={'tenant_id': self.tenant_id, 'client_id': client_id},
            order_by=['-created_at', '-id'],
            limit=limit,
        )

    def get_summary(self, client_id: int, program: LoyaltyProgramConfig = None) -> Dict[str, Any]:
        """Balance, totals, tier and progress for display."""
        program = program or self.get_program()
        client = self.get_client(client_id)
        loyalty = client['loyalty']
        next_tier = next_tier_info(loyalty['total_earned'], program.tiers)

        return {
            'client_id': client_id,
            'balance': client['loyalty_points'],
            'total_earned': loyalty['total_earned'],
            'total_redeemed': loyalty['total_redeemed'],
            'total_expired': loyalty['total_expired'],
            'tier': loyalty['tier'],
            'tier_label': tier_label(loyalty['tier']),
            'enrolled_at': loyalty['enrolled_at'],
            'next_tier': next_tier._asdict() if next_tier else None,
            'currency_value': points_to_currency(client['loyalty_points'], program.redemption_rate),
            'program_enabled': program.enabled,
        }

    # ==================== Core write ====================

    def record_points(
        self,
        client_id: int,
        points: int,
        transaction_type: str,
        description: str,
        created_by: str,
        reference_type: str = None,
        reference_id: str = None,
        program: LoyaltyProgramConfig = None,
        current_balance: int = None,
    ) -> Dict[str, Any]:
        """
        Add or subtract points and persist both the ledger entry and the
        client's updated aggregates.

        Args:
            client_id: Client to credit/debit
            points: Signed delta (positive = earn, negative = spend)
            transaction_type: One of LoyaltyTransactionType
            description: Human-readable description
            created_by: Actor id
            reference_type: Originating entity type (appointment, purchase, redemption)
            reference_id: Originating entity id
            program: Program config (tenant's config if omitted)
            current_balance: Balance the caller last saw; informational only,
                the stored balance is re-read under the version check

        Returns:
            The persisted transaction document

        Raises:
            ConfigError: Malformed tier thresholds (before any write)
            ValidationError: Unknown type or sign mismatch
            ClientNotFoundError: Unknown client (before any write)
            ConcurrencyConflictError: Still conflicting after LOYALTY_MAX_RETRIES
        """
        program = self._checked_program(program)
        self._validate_points(points, transaction_type)

        def attempt():
            with self.store.atomic():
                return self.stage_points(
                    client_id=client_id,
                    points=points,
                    transaction_type=transaction_type,
                    description=description,
                    created_by=created_by,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    program=program,
                    current_balance=current_balance,
                )

        transaction = retry_on_conflict(
            attempt,
            attempts=current_app.config.get('LOYALTY_MAX_RETRIES', 3),
            label=f'Loyalty write for client {client_id}',
        )

        current_app.logger.info(
            f"Loyalty points recorded: client {client_id} {points:+d} pts ({transaction_type}). "
            f"New balance: {transaction['balance_after']}"
        )
        return transaction

    def stage_points(
        self,
        client_id: int,
        points: int,
        transaction_type: str,
        description: str,
        created_by: str,
        reference_type: str = None,
        reference_id: str = None,
        program: LoyaltyProgramConfig = None,
        current_balance: int = None,
        min_balance: int = None,
    ) -> Dict[str, Any]:
        """
        Write one ledger entry and the client aggregate update inside the
        caller's unit of work (no commit, no retry).

        Args:
            min_balance: Reject with InsufficientPointsError if the stored
                balance is below this

        Raises:
            ConcurrencyConflictError: The client changed since it was read
        """
        program = self._checked_program(program)
        self._validate_points(points, transaction_type)

        client = self.get_client(client_id)
        balance = client['loyalty_points']
        loyalty = client['loyalty']

        if current_balance is not None and current_balance != balance:
            current_app.logger.debug(
                f"Stale balance for client {client_id}: caller saw {current_balance}, stored {balance}"
            )
        if min_balance is not None and balance < min_balance:
            raise InsufficientPointsError(balance, min_balance)

        change = apply_points(
            balance=balance,
            total_earned=loyalty['total_earned'],
            total_redeemed=loyalty['total_redeemed'],
            total_expired=loyalty['total_expired'],
            points=points,
            transaction_type=transaction_type,
            thresholds=program.tiers,
        )

        tx_id = self.store.add_document('loyalty_transactions', {
            'tenant_id': self.tenant_id,
            'client_id': client_id,
            'type': transaction_type,
            'points': points,
            'balance_after': change.balance,
            'reference_type': reference_type,
            'reference_id': str(reference_id) if reference_id is not None else None,
            'description': description or '',
            'created_by': created_by,
        })

        client_update = {
            'loyalty_points': change.balance,
            'loyalty_total_earned': change.total_earned,
            'loyalty_total_redeemed': change.total_redeemed,
            'loyalty_total_expired': change.total_expired,
            'loyalty_tier': change.tier,
        }
        # Enrollment date is set once, on the first loyalty event
        if not loyalty['enrolled_at']:
            client_update['loyalty_enrolled_at'] = datetime.utcnow()

        self.store.update_document('clients', client_id, client_update, expected_version=client['version'])

        if change.tier != loyalty['tier']:
            current_app.logger.info(f"Client {client_id} tier changed: {loyalty['tier']} -> {change.tier}")

        return self.store.get_document('loyalty_transactions', tx_id)

    # ==================== Derived operations ====================

    def award_visit_points(
        self,
        client_id: int,
        appointment_id,
        pet_name: str,
        created_by: str,
        program: LoyaltyProgramConfig = None,
        current_balance: int = None,
    ) -> Dict[str, Any]:
        """Award points for a completed appointment."""
        program = program or self.get_program()
        return self.record_points(
            client_id=client_id,
            points=program.points_per_visit,
            transaction_type=LoyaltyTransactionType.EARNED_VISIT.value,
            description=visit_description(pet_name),
            created_by=created_by,
            reference_type=LoyaltyReferenceType.APPOINTMENT.value,
            reference_id=appointment_id,
            program=program,
            current_balance=current_balance,
        )

    def award_grooming_points(
        self,
        client_id: int,
        appointment_id,
        pet_name: str,
        created_by: str,
        program: LoyaltyProgramConfig = None,
        current_balance: int = None,
    ) -> Dict[str, Any]:
        """Award points for a completed grooming service."""
        program = program or self.get_program()
        return self.record_points(
            client_id=client_id,
            points=program.points_per_grooming,
            transaction_type=LoyaltyTransactionType.EARNED_GROOMING.value,
            description=grooming_description(pet_name),
            created_by=created_by,
            reference_type=LoyaltyReferenceType.APPOINTMENT.value,
            reference_id=appointment_id,
            program=program,
            current_balance=current_balance,
        )

    def award_purchase_points(
        self,
        client_id: int,
        amount,
        purchase_id: str,
        created_by: str,
        program: LoyaltyProgramConfig = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Award points for a purchase of `amount` currency units.

        Returns:
            The transaction, or None when the amount earns no whole points
        """
        program = program or self.get_program()
        try:
            amount = Decimal(str(amount))
        except ArithmeticError:
            raise ValidationError('Purchase amount must be a number', field='amount')
        if not amount.is_finite():
            raise ValidationError('Purchase amount must be a number', field='amount')
        if amount <= 0:
            raise ValidationError('Purchase amount must be positive', field='amount')

        points = int((amount * program.points_per_purchase_peso).to_integral_value(rounding=ROUND_FLOOR))
        if points <= 0:
            current_app.logger.info(f"Purchase {purchase_id} of {amount} earns no points for client {client_id}")
            return None

        return self.record_points(
            client_id=client_id,
            points=points,
            transaction_type=LoyaltyTransactionType.EARNED_PURCHASE.value,
            description=f'Purchase {purchase_id}',
            created_by=created_by,
            reference_type=LoyaltyReferenceType.PURCHASE.value,
            reference_id=purchase_id,
            program=program,
        )

    def redeem_points(
        self,
        client_id: int,
        points: int,
        description: str,
        created_by: str,
        program: LoyaltyProgramConfig = None,
        current_balance: int = None,
    ) -> Dict[str, Any]:
        """
        Redeem points (e.g. for a discount).

        Raises:
            ValidationError: points is not a positive integer, or current_balance
                is not a non-negative integer
            InsufficientPointsError: Balance below `points`; nothing is written
        """
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise ValidationError('Points to redeem must be a positive integer', field='points')
        if current_balance is not None and (
            isinstance(current_balance, bool) or not isinstance(current_balance, int) or current_balance < 0
        ):
            raise ValidationError('current_balance must be a non-negative integer', field='current_balance')
        if current_balance is not None and current_balance < points:
            raise InsufficientPointsError(current_balance, points)

        program = self._checked_program(program)

        def attempt():
            with self.store.atomic():
                return self.stage_points(
                    client_id=client_id,
                    points=-points,
                    transaction_type=LoyaltyTransactionType.REDEEMED.value,
                    description=description,
                    created_by=created_by,
                    reference_type=LoyaltyReferenceType.REDEMPTION.value,
                    program=program,
                    current_balance=current_balance,
                    min_balance=points,
                )

        transaction = retry_on_conflict(
            attempt,
            attempts=current_app.config.get('LOYALTY_MAX_RETRIES', 3),
            label=f'Loyalty redemption for client {client_id}',
        )

        current_app.logger.info(
            f"Loyalty points redeemed: client {client_id} -{points} pts. "
            f"New balance: {transaction['balance_after']}"
        )
        return transaction

    def adjust_points(
        self,
        client_id: int,
        points: int,
        description: str,
        created_by: str,
        program: LoyaltyProgramConfig = None,
    ) -> Dict[str, Any]:
        """Manual correction by staff. No balance check; the balance floors at zero."""
        return self.record_points(
            client_id=client_id,
            points=points,
            transaction_type=LoyaltyTransactionType.ADJUSTED.value,
            description=description,
            created_by=created_by,
            program=program,
        )

    def expire_points(
        self,
        client_id: int,
        points: int,
        description: str,
        created_by: str,
        program: LoyaltyProgramConfig = None,
    ) -> Dict[str, Any]:
        """Expire `points` (positive amount) from the client's balance."""
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise ValidationError('Points to expire must be a positive integer', field='points')
        return self.record_points(
            client_id=client_id,
            points=-points,
            transaction_type=LoyaltyTransactionType.EXPIRED.value,
            description=description,
            created_by=created_by,
            program=program,
        )

    # ==================== Reconciliation ====================

    def rebuild_client_aggregates(self, client_id: int, program: LoyaltyProgramConfig = None) -> Dict[str, Any]:
        """
        Recompute a client's loyalty fields by replaying the ledger oldest-first.

        Returns:
            Dict with the previous and rebuilt aggregates, whether anything
            changed, and how many rows had a balance_after that disagrees
            with the replay
        """
        program = self._checked_program(program)

        def attempt():
            with self.store.atomic():
                client = self.get_client(client_id)
                rows = self.store.query_documents(
                    'loyalty_transactions',
                    filters={'tenant_id': self.tenant_id, 'client_id': client_id},
                    order_by=['created_at', 'id'],
                )

                state = BalanceChange(0, 0, 0, 0, tier_for_earned(0, program.tiers))
                mismatched = 0
                for row in rows:
                    state = apply_points(
                        balance=state.balance,
                        total_earned=state.total_earned,
                        total_redeemed=state.total_redeemed,
                        total_expired=state.total_expired,
                        points=row['points'],
                        transaction_type=row['type'],
                        thresholds=program.tiers,
                    )
                    if row['balance_after'] != state.balance:
                        mismatched += 1

                before = {
                    'balance': client['loyalty_points'],
                    'total_earned': client['loyalty']['total_earned'],
                    'total_redeemed': client['loyalty']['total_redeemed'],
                    'total_expired': client['loyalty']['total_expired'],
                    'tier': client['loyalty']['tier'],
                }
                after = state._asdict()
                changed = before != after

                if changed:
                    client_update = {
                        'loyalty_points': state.balance,
                        'loyalty_total_earned': state.total_earned,
                        'loyalty_total_redeemed': state.total_redeemed,
                        'loyalty_total_expired': state.total_expired,
                        'loyalty_tier': state.tier,
                    }
                    if rows and not client['loyalty']['enrolled_at']:
                        client_update['loyalty_enrolled_at'] = datetime.fromisoformat(rows[0]['created_at'])
                    self.store.update_document(
                        'clients', client_id, client_update, expected_version=client['version']
                    )

                return {
                    'client_id': client_id,
                    'transactions': len(rows),
                    'before': before,
                    'after': after,
                    'changed': changed,
                    'mismatched_rows': mismatched,
                }

        result = retry_on_conflict(
            attempt,
            attempts=current_app.config.get('LOYALTY_MAX_RETRIES', 3),
            label=f'Loyalty reconcile for client {client_id}',
        )
        if result['changed']:
            current_app.logger.warning(
                f"Loyalty aggregates repaired for client {client_id}: {result['before']} -> {result['after']}"
            )
        return result

    # ==================== Helpers ====================

    def _checked_program(self, program: Optional[LoyaltyProgramConfig]) -> LoyaltyProgramConfig:
        program = program or self.get_program()
        program.validate()
        return program

    @staticmethod
    def _validate_points(points: int, transaction_type: str) -> None:
        if transaction_type not in TRANSACTION_TYPES:
            raise ValidationError(f'Unknown loyalty transaction type: {transaction_type}', field='type')
        if isinstance(points, bool) or not isinstance(points, int) or points == 0:
            raise ValidationError('Points must be a non-zero integer', field='points')
        if transaction_type in EARNING_TYPES and points < 0:
            raise ValidationError(f'{transaction_type} points must be positive', field='points')
        if transaction_type in DEBIT_TYPES and points > 0:
            raise ValidationError(f'{transaction_type} points must be negative', field='points')


def visit_description(pet_name: str) -> str:
    return f'Visit for {pet_name}' if pet_name else 'Visit'


def grooming_description(pet_name: str) -> str:
    return f'Grooming for {pet_name}' if pet_name else 'Grooming'

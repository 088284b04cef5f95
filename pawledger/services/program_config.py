"""
Loyalty program configuration.

Each tenant may store a `loyalty_program` document; tenants without one run on
DEFAULT_LOYALTY_PROGRAM. The config is read-only input to the ledger and the
appointment award hook.
"""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from ..utils.exceptions import ConfigError
from .tier_calculator import TIER_ORDER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoyaltyProgramConfig:
    """Tenant-level points program settings."""
    enabled: bool = True
    points_per_visit: int = 10
    points_per_grooming: int = 15
    points_per_purchase_peso: int = 1     # Points per currency unit spent
    redemption_rate: int = 100            # Points per currency unit redeemed
    tiers: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({
        'bronze': 0,
        'silver': 200,
        'gold': 500,
        'platinum': 1000,
    }))

    def __post_init__(self):
        # Freeze the tier table along with the dataclass
        if not isinstance(self.tiers, MappingProxyType):
            object.__setattr__(self, 'tiers', MappingProxyType(dict(self.tiers or {})))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'LoyaltyProgramConfig':
        """
        Build a config from a stored document.

        Missing scalar fields fall back to the defaults; the tier table is
        required and validated.

        Raises:
            ConfigError: If the document or its tier table is malformed
        """
        if data is None:
            return DEFAULT_LOYALTY_PROGRAM
        if not isinstance(data, dict):
            raise ConfigError('Loyalty program must be a mapping')

        if not isinstance(data.get('tiers'), dict):
            raise ConfigError('Loyalty program has no tier thresholds')

        defaults = DEFAULT_LOYALTY_PROGRAM
        enabled = data.get('enabled', defaults.enabled)
        if not isinstance(enabled, bool):
            raise ConfigError(f'Loyalty program enabled flag must be true or false, got {enabled!r}')

        try:
            config = cls(
                enabled=enabled,
                points_per_visit=int(data.get('points_per_visit', defaults.points_per_visit)),
                points_per_grooming=int(data.get('points_per_grooming', defaults.points_per_grooming)),
                points_per_purchase_peso=int(data.get('points_per_purchase_peso', defaults.points_per_purchase_peso)),
                redemption_rate=int(data.get('redemption_rate', defaults.redemption_rate)),
                tiers=dict(data['tiers']),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f'Invalid loyalty program value: {e}')

        config.validate()
        return config

    def validate(self) -> None:
        """
        Check the tier table before any ledger write.

        Raises:
            ConfigError: Missing or negative thresholds
        """
        tiers = self.tiers or {}
        missing = [tier for tier in TIER_ORDER if tier not in tiers]
        if missing:
            raise ConfigError(f"Loyalty tiers missing thresholds: {', '.join(missing)}")

        for tier in TIER_ORDER:
            value = tiers[tier]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"Loyalty tier '{tier}' threshold must be an integer")
            if value < 0:
                raise ConfigError(f"Loyalty tier '{tier}' threshold cannot be negative")

        if not tiers['silver'] <= tiers['gold'] <= tiers['platinum']:
            logger.warning(
                f"Loyalty tier thresholds are out of order: {dict(tiers)} "
                f"(tiers are still evaluated highest first)"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'points_per_visit': self.points_per_visit,
            'points_per_grooming': self.points_per_grooming,
            'points_per_purchase_peso': self.points_per_purchase_peso,
            'redemption_rate': self.redemption_rate,
            'tiers': dict(self.tiers),
        }


DEFAULT_LOYALTY_PROGRAM = LoyaltyProgramConfig()


def resolve_program_config(tenant_document: Optional[Dict[str, Any]]) -> LoyaltyProgramConfig:
    """Program config for a tenant document, falling back to the default."""
    if not tenant_document:
        return DEFAULT_LOYALTY_PROGRAM
    return LoyaltyProgramConfig.from_dict(tenant_document.get('loyalty_program'))

"""
Tests for LoyaltyProgramConfig parsing and validation.
"""
import logging
import pytest

from pawledger.services.program_config import (
    LoyaltyProgramConfig,
    DEFAULT_LOYALTY_PROGRAM,
    resolve_program_config,
)
from pawledger.utils.exceptions import ConfigError


VALID_PROGRAM = {
    'enabled': True,
    'points_per_visit': 20,
    'points_per_grooming': 25,
    'points_per_purchase_peso': 2,
    'redemption_rate': 50,
    'tiers': {'bronze': 0, 'silver': 100, 'gold': 300, 'platinum': 600},
}


class TestDefaultProgram:
    """Tests for the platform default program."""

    def test_default_values(self):
        assert DEFAULT_LOYALTY_PROGRAM.enabled is True
        assert DEFAULT_LOYALTY_PROGRAM.points_per_visit == 10
        assert DEFAULT_LOYALTY_PROGRAM.points_per_grooming == 15
        assert DEFAULT_LOYALTY_PROGRAM.redemption_rate == 100
        assert dict(DEFAULT_LOYALTY_PROGRAM.tiers) == {
            'bronze': 0, 'silver': 200, 'gold': 500, 'platinum': 1000,
        }

    def test_default_is_immutable(self):
        with pytest.raises(AttributeError):
            DEFAULT_LOYALTY_PROGRAM.points_per_visit = 99
        with pytest.raises(TypeError):
            DEFAULT_LOYALTY_PROGRAM.tiers['silver'] = 1

    def test_tenant_without_program_gets_default(self):
        assert resolve_program_config({'id': 1, 'loyalty_program': None}) is DEFAULT_LOYALTY_PROGRAM
        assert resolve_program_config(None) is DEFAULT_LOYALTY_PROGRAM


class TestFromDict:
    """Tests for LoyaltyProgramConfig.from_dict."""

    def test_parses_stored_document(self):
        config = LoyaltyProgramConfig.from_dict(VALID_PROGRAM)
        assert config.points_per_visit == 20
        assert config.tiers['gold'] == 300
        assert config.to_dict() == VALID_PROGRAM

    def test_missing_scalars_fall_back_to_defaults(self):
        config = LoyaltyProgramConfig.from_dict({'tiers': VALID_PROGRAM['tiers']})
        assert config.points_per_visit == 10
        assert config.enabled is True

    @pytest.mark.parametrize('flag', ['false', '0', 0, 1, None])
    def test_non_boolean_enabled_rejected(self, flag):
        with pytest.raises(ConfigError):
            LoyaltyProgramConfig.from_dict({'enabled': flag, 'tiers': VALID_PROGRAM['tiers']})

    def test_disabled_flag_kept(self):
        config = LoyaltyProgramConfig.from_dict({'enabled': False, 'tiers': VALID_PROGRAM['tiers']})
        assert config.enabled is False

    def test_missing_tiers_rejected(self):
        with pytest.raises(ConfigError):
            LoyaltyProgramConfig.from_dict({'points_per_visit': 10})

    def test_missing_tier_threshold_rejected(self):
        with pytest.raises(ConfigError) as exc_info:
            LoyaltyProgramConfig.from_dict({'tiers': {'bronze': 0, 'silver': 200, 'gold': 500}})
        assert 'platinum' in exc_info.value.message

    def test_non_integer_threshold_rejected(self):
        with pytest.raises(ConfigError):
            LoyaltyProgramConfig.from_dict({
                'tiers': {'bronze': 0, 'silver': '200', 'gold': 500, 'platinum': 1000},
            })

    def test_negative_threshold_rejected(self):
        with pytest.raises(ConfigError):
            LoyaltyProgramConfig.from_dict({
                'tiers': {'bronze': 0, 'silver': -1, 'gold': 500, 'platinum': 1000},
            })

    def test_bad_scalar_rejected(self):
        with pytest.raises(ConfigError):
            LoyaltyProgramConfig.from_dict({'points_per_visit': 'ten', 'tiers': VALID_PROGRAM['tiers']})

    def test_misordered_thresholds_warn(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = LoyaltyProgramConfig.from_dict({
                'tiers': {'bronze': 0, 'silver': 600, 'gold': 500, 'platinum': 1000},
            })
        assert config.tiers['silver'] == 600
        assert 'out of order' in caplog.text

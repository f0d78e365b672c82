"""Unit tests for ResolutionPolicy."""

import pytest

from self_healing.core.models import HealingConfiguration
from self_healing.services.resolution_policy import ResolutionPolicy


class TestResolutionPolicy:
    """Test execution mode decisions."""

    @pytest.mark.parametrize("use_smart, api_key, expected", [
        (True, "key", True),
        (True, None, False),
        (True, "", False),
        (False, "key", False),
    ])
    def test_is_healing_enabled(self, use_smart, api_key, expected):
        policy = ResolutionPolicy(HealingConfiguration(use_smart_locator=use_smart, api_key=api_key))
        assert policy.is_healing_enabled() is expected

    @pytest.mark.parametrize("use_smart, run_with, api_key, expected", [
        (True, True, "key", True),
        (True, False, "key", False),
        (False, True, "key", False),
        (True, True, None, False),
    ])
    def test_transparent_apply(self, use_smart, run_with, api_key, expected):
        policy = ResolutionPolicy(HealingConfiguration(
            use_smart_locator=use_smart, run_with_smart_locator=run_with, api_key=api_key))
        assert policy.should_apply_healed_locator_transparently() is expected

    def test_mode(self):
        assert ResolutionPolicy(HealingConfiguration()).mode == "disabled"
        assert ResolutionPolicy(HealingConfiguration(
            use_smart_locator=True, api_key="key")).mode == "discovery"
        assert ResolutionPolicy(HealingConfiguration(
            use_smart_locator=True, run_with_smart_locator=True, api_key="key")).mode == "healing"

    def test_defaults(self):
        policy = ResolutionPolicy(HealingConfiguration())

        assert policy.element_timeout_ms == 5000
        assert policy.resolution_timeout_ms == 30000
        assert policy.max_retries == 3
        assert policy.evict_stale_entries is False

    def test_with_overrides_returns_new_policy(self):
        policy = ResolutionPolicy(HealingConfiguration())

        updated = policy.with_overrides(element_timeout_ms=1000, evict_stale_entries=True)

        assert updated is not policy
        assert updated.element_timeout_ms == 1000
        assert updated.evict_stale_entries is True
        assert policy.element_timeout_ms == 5000
        assert policy.evict_stale_entries is False

    def test_with_overrides_rejects_unknown_field(self):
        with pytest.raises(TypeError):
            ResolutionPolicy(HealingConfiguration()).with_overrides(not_a_setting=1)

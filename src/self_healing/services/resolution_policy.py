"""Execution-mode and timeout policy for locator resolution."""

from dataclasses import replace

from ..core.models.healing_models import HealingConfiguration


class ResolutionPolicy:
    """Pure decision object derived from a HealingConfiguration.

    Discovery mode (healing enabled, transparent apply off) reports healed
    locators for review; healing mode substitutes them silently.
    """

    def __init__(self, config: HealingConfiguration):
        self._config = config

    @property
    def config(self) -> HealingConfiguration:
        return self._config

    def is_healing_enabled(self) -> bool:
        """Healing needs both the feature flag and an inference credential."""
        return bool(self._config.use_smart_locator and self._config.api_key)

    def should_apply_healed_locator_transparently(self) -> bool:
        return self.is_healing_enabled() and bool(self._config.run_with_smart_locator)

    @property
    def mode(self) -> str:
        if not self.is_healing_enabled():
            return "disabled"
        return "healing" if self.should_apply_healed_locator_transparently() else "discovery"

    @property
    def element_timeout_ms(self) -> int:
        return self._config.element_timeout_ms

    @property
    def resolution_timeout_ms(self) -> int:
        return self._config.resolution_timeout_ms

    @property
    def max_retries(self) -> int:
        return self._config.max_retries

    @property
    def evict_stale_entries(self) -> bool:
        return self._config.evict_stale_entries

    def with_overrides(self, **changes) -> 'ResolutionPolicy':
        """Return a new policy with configuration fields replaced.

        Raises:
            TypeError: If a change names an unknown configuration field
        """
        return ResolutionPolicy(replace(self._config, **changes))

    def __repr__(self) -> str:
        return (
            f"ResolutionPolicy(mode={self.mode}, element_timeout_ms={self.element_timeout_ms}, "
            f"resolution_timeout_ms={self.resolution_timeout_ms}, max_retries={self.max_retries})"
        )

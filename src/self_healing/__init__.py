"""Self-healing locator resolution for browser test automation."""

from .core.errors import (
    GenerationFailedError,
    HealingDisabledError,
    ResolutionTimeoutError,
    ReviewRequiredError,
    SelfHealingLocatorError,
    ValidationFailedError
)
from .core.config_loader import ConfigurationError, get_healing_config
from .core.models import (
    HealingConfiguration,
    LocatorStrategy,
    OutcomeKind,
    ResolutionOutcome,
    ResolutionRequest
)
from .services import (
    LocatorCache,
    LocatorResolver,
    ResolutionPolicy,
    StatisticsReporter,
    create_locator_resolver
)

__version__ = "1.0.0"

__all__ = [
    "GenerationFailedError",
    "HealingDisabledError",
    "ResolutionTimeoutError",
    "ReviewRequiredError",
    "SelfHealingLocatorError",
    "ValidationFailedError",
    "HealingConfiguration",
    "LocatorStrategy",
    "OutcomeKind",
    "ResolutionOutcome",
    "ResolutionRequest",
    "LocatorCache",
    "LocatorResolver",
    "ResolutionPolicy",
    "StatisticsReporter",
    "create_locator_resolver",
    "ConfigurationError",
    "get_healing_config"
]

"""
Services module for locator resolution and self-healing.
"""

from .locator_cache import LocatorCache, get_locator_cache, reset_locator_cache
from .resolution_policy import ResolutionPolicy
from .page_driver import PageDriver
from .context_extractor import PageContextExtractor
from .inference_provider import InferenceProvider, LiteLLMInferenceProvider
from .locator_resolver import LocatorResolver, create_locator_resolver
from .statistics_reporter import StatisticsReporter

# Note: PlaywrightPageDriver and SeleniumPageDriver are imported from their own modules

__all__ = [
    "LocatorCache",
    "get_locator_cache",
    "reset_locator_cache",
    "ResolutionPolicy",
    "PageDriver",
    "PageContextExtractor",
    "InferenceProvider",
    "LiteLLMInferenceProvider",
    "LocatorResolver",
    "create_locator_resolver",
    "StatisticsReporter"
]

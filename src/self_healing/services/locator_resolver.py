"""
Locator resolution with self-healing.

The resolver tries the original locator first, then a cached healed locator,
and finally asks the inference provider for a fresh one. What happens to a
healed locator, cached or fresh, depends on the ResolutionPolicy: healing mode applies it,
discovery mode reports it for review.
"""

import asyncio
import time
import weakref
from typing import Optional, Union

from ..core.errors import ReviewRequiredError, error_for_outcome
from ..core.logging_config import get_healing_logger, setup_healing_logging
from ..core.metrics import MetricsCollector, get_metrics_collector
from ..core.models.healing_models import (
    CacheStatistics,
    ElementState,
    FailureReason,
    HealingConfiguration,
    LocatorCandidate,
    LocatorGenerationRequest,
    OutcomeKind,
    PageAction,
    ProbeResult,
    ResolutionOutcome,
    ResolutionRequest
)
from .context_extractor import PageContextExtractor
from .inference_provider import InferenceProvider, LiteLLMInferenceProvider
from .locator_cache import LocatorCache, get_locator_cache
from .page_driver import PageDriver
from .resolution_policy import ResolutionPolicy

logger = get_healing_logger("resolver")

DEFAULT_FAILURE_REASON = "Element not found with original locator"


class LocatorResolver:
    """Resolves locators against a live page, healing them when they break."""

    def __init__(
        self,
        cache: LocatorCache,
        policy: ResolutionPolicy,
        inference_provider: Optional[InferenceProvider] = None,
        context_extractor: Optional[PageContextExtractor] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        """Initialize the resolver with its collaborators.

        Args:
            cache: Store of previously healed locators
            policy: Execution mode, timeouts and retry policy
            inference_provider: Source of fresh locator candidates
            context_extractor: Builds the page evidence sent to the provider
            metrics: Collector for resolution counters and timers
        """
        self.cache = cache
        self.policy = policy
        self.inference_provider = inference_provider
        self.context_extractor = context_extractor or PageContextExtractor()
        self.metrics = metrics or get_metrics_collector()

        # One lock per locator key around generate -> validate -> set. Entries
        # disappear once no resolution holds or waits on the lock.
        self._generation_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

        logger.debug(f"Locator resolver initialized: {policy!r}")

    # =================== RESOLUTION ===================

    async def try_resolve(self, request: ResolutionRequest) -> ResolutionOutcome:
        """
        Resolve a locator without raising for resolution failures.

        Args:
            request: Locator key, page and optional hints

        Returns:
            ResolutionOutcome; ``kind`` is FAILED with a reason when no usable
            locator could be produced
        """
        start_time = time.time()
        timeout_ms = self.policy.resolution_timeout_ms

        try:
            outcome = await asyncio.wait_for(self._run(request), timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            logger.error(f"Resolution of {request.locator_key} timed out after {timeout_ms}ms")
            outcome = ResolutionOutcome.failed(request.locator_key, FailureReason.TIMEOUT)

        duration = time.time() - start_time
        self.metrics.increment_counter("resolutions_total", labels={"outcome": outcome.kind.value})
        self.metrics.record_timer("resolution_duration", duration)

        if outcome.is_healed:
            logger.log_healing_success(outcome.original_locator, outcome.locator)
        elif outcome.kind == OutcomeKind.FAILED:
            logger.log_healing_failure(outcome.original_locator, outcome.reason.value)

        return outcome

    async def resolve(self, request: ResolutionRequest) -> ResolutionOutcome:
        """
        Resolve a locator, raising for policy and validation failures.

        Outside healing mode a healed locator is never substituted: a working
        cached locator is reported through ReviewRequiredError like a fresh one.

        Raises:
            SelfHealingLocatorError: Subclass matching the failure reason
        """
        outcome = await self.try_resolve(request)
        if outcome.is_healed and not self.policy.should_apply_healed_locator_transparently():
            logger.warning(
                f"Locator has been changed from {outcome.original_locator} to {outcome.locator}"
            )
            raise ReviewRequiredError(outcome.original_locator, outcome.locator)
        if outcome.kind == OutcomeKind.FAILED:
            if outcome.reason == FailureReason.REVIEW_REQUIRED:
                logger.warning(
                    f"Locator has been changed from {outcome.original_locator} to {outcome.suggested_locator}"
                )
            raise error_for_outcome(outcome, timeout_ms=self.policy.resolution_timeout_ms)
        return outcome

    async def _run(self, request: ResolutionRequest) -> ResolutionOutcome:
        key = request.locator_key
        page = request.page
        element_timeout = request.timeout_ms or self.policy.element_timeout_ms

        original = await page.wait_for_attached(key, element_timeout)
        if original.found:
            return ResolutionOutcome.original(key)
        logger.log_locator_failure(key, original.error_message or "Element not found")

        cached = self.cache.get(key)
        if cached is not None:
            logger.log_cache_hit(key, cached.generated_locator)
            outcome = await self._validate_cached(key, page, cached.generated_locator, element_timeout)
            if outcome is not None:
                return outcome
        else:
            logger.log_cache_miss(key)

        if not self.policy.is_healing_enabled():
            return ResolutionOutcome.failed(key, FailureReason.HEALING_DISABLED)

        tried_locator = cached.generated_locator if cached is not None else None
        lock = self._generation_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._generation_locks[key] = lock
        async with lock:
            # Another resolution may have healed this key while we waited
            current = self.cache.peek(key)
            if current is not None and current.generated_locator != tried_locator:
                outcome = await self._validate_cached(key, page, current.generated_locator, element_timeout)
                if outcome is not None:
                    return outcome

            return await self._heal(request, element_timeout, original)

    async def _validate_cached(self, key: str, page: PageDriver, locator: str,
                               timeout_ms: int) -> Optional[ResolutionOutcome]:
        """Probe a cached locator; None means it is stale and healing must continue."""
        probe = await self._probe_candidate(page, locator, timeout_ms)
        if probe.found:
            self.cache.update_success(key)
            entry = self.cache.peek(key)
            return ResolutionOutcome.cache_healed(key, locator, entry.strategy if entry else None)

        self.cache.update_failure(key)
        logger.warning(f"Cached locator {locator} for {key} no longer matches")
        if self.policy.evict_stale_entries:
            self.cache.delete(key)
            logger.info(f"Evicted stale cache entry for {key}")
        return None

    async def _heal(self, request: ResolutionRequest, timeout_ms: int,
                    original_probe: ProbeResult) -> ResolutionOutcome:
        key = request.locator_key
        page = request.page

        candidate = await self._generate(request, original_probe)
        if candidate is None:
            return ResolutionOutcome.failed(key, FailureReason.GENERATION_FAILED)

        probe = await self._probe_candidate(page, candidate.locator, timeout_ms)
        if not probe.found:
            self.cache.update_failure(key)
            return ResolutionOutcome.failed(key, FailureReason.VALIDATION_FAILED, candidate.locator)

        self.cache.set(key, candidate.locator, candidate.strategy)

        if self.policy.should_apply_healed_locator_transparently():
            return ResolutionOutcome.freshly_healed(key, candidate)
        return ResolutionOutcome.failed(key, FailureReason.REVIEW_REQUIRED, candidate.locator)

    async def _generate(self, request: ResolutionRequest,
                        original_probe: ProbeResult) -> Optional[LocatorCandidate]:
        if self.inference_provider is None:
            logger.error("No inference provider configured. Cannot generate smart locator.")
            return None

        context = await self.context_extractor.extract(request.page)
        generation_request = LocatorGenerationRequest(
            original_locator=request.locator_key,
            context=context,
            failure_reason=request.failure_reason or original_probe.error_message or DEFAULT_FAILURE_REASON,
            element_description=request.element_description
        )

        logger.log_operation_start("generate", original=request.locator_key)
        start_time = time.time()
        try:
            candidate = await self.inference_provider.generate(generation_request)
        finally:
            duration = time.time() - start_time
            self.metrics.increment_counter("inference_calls_total")
            self.metrics.record_timer("inference_duration", duration)

        if candidate is None:
            logger.log_operation_failure("generate", duration, "no usable candidate",
                                         error_code=FailureReason.GENERATION_FAILED.name)
        else:
            logger.log_operation_success("generate", duration, strategy=candidate.strategy.value,
                                         confidence=candidate.confidence)
        return candidate

    async def _probe_candidate(self, page: PageDriver, selector: str, timeout_ms: int) -> ProbeResult:
        """Probe a candidate locator, retrying only when the driver itself failed."""
        attempts = max(1, self.policy.max_retries)
        for attempt in range(1, attempts + 1):
            result = await page.wait_for_attached(selector, timeout_ms)
            if result.found or not result.transient:
                return result
            logger.debug(f"Probe of {selector} failed (attempt {attempt}/{attempts}): {result.error_message}")
        return result

    # =================== PAGE OPERATIONS ===================

    async def get_locator(self, page: PageDriver, locator: str,
                          element_description: Optional[str] = None,
                          timeout_ms: Optional[int] = None) -> str:
        """Return a locator that currently matches the element.

        Raises:
            SelfHealingLocatorError: If no usable locator could be resolved
        """
        outcome = await self.resolve(ResolutionRequest(
            locator_key=locator,
            page=page,
            element_description=element_description,
            timeout_ms=timeout_ms
        ))
        return outcome.locator

    async def click(self, page: PageDriver, locator: str, **options) -> None:
        resolved = await self.get_locator(page, locator, **options)
        await page.perform_action(resolved, PageAction.CLICK)

    async def fill(self, page: PageDriver, locator: str, text: str, **options) -> None:
        """Clear the input, then fill it with ``text``."""
        resolved = await self.get_locator(page, locator, **options)
        await page.perform_action(resolved, PageAction.CLEAR)
        await page.perform_action(resolved, PageAction.FILL, text)

    async def wait_for(self, page: PageDriver, locator: str,
                       state: Union[ElementState, str] = ElementState.VISIBLE,
                       timeout_ms: Optional[int] = None,
                       element_description: Optional[str] = None) -> None:
        """
        Wait for the resolved element to reach ``state``.

        Args:
            page: Page driver
            locator: Original locator
            state: Target state, visible by default
            timeout_ms: Wait limit, the resolution timeout by default
            element_description: Optional hint for regeneration

        Raises:
            SelfHealingLocatorError: If no usable locator could be resolved
            TimeoutError: If the element does not reach ``state`` in time
        """
        state = ElementState(state)
        resolved = await self.get_locator(page, locator, element_description=element_description)
        result = await page.wait_for_state(resolved, state, timeout_ms or self.policy.resolution_timeout_ms)
        if not result.found:
            raise TimeoutError(result.error_message or f"{resolved} did not become {state.value}")

    async def text_content(self, page: PageDriver, locator: str, **options) -> Optional[str]:
        resolved = await self.get_locator(page, locator, **options)
        return await page.read_text(resolved)

    async def inner_text(self, page: PageDriver, locator: str, **options) -> str:
        resolved = await self.get_locator(page, locator, **options)
        return await page.read_text(resolved, inner=True)

    async def exists_quietly(self, page: PageDriver, locator: str,
                             element_description: Optional[str] = None,
                             timeout_ms: Optional[int] = None) -> bool:
        """Return whether a usable locator resolves; resolution failures yield False."""
        outcome = await self.try_resolve(ResolutionRequest(
            locator_key=locator,
            page=page,
            element_description=element_description,
            timeout_ms=timeout_ms
        ))
        return outcome.is_resolved

    # =================== CACHE MAINTENANCE ===================

    def get_cache_statistics(self) -> CacheStatistics:
        return self.cache.get_statistics()

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Locator cache cleared")


def create_locator_resolver(config: HealingConfiguration,
                            metrics: Optional[MetricsCollector] = None) -> LocatorResolver:
    """
    Build a resolver wired with the default collaborators for ``config``.

    Args:
        config: Healing configuration
        metrics: Optional metrics collector, the global one by default

    Returns:
        LocatorResolver using the process-wide cache for ``config.cache_path``
    """
    setup_healing_logging(config.log_level, config.log_dir, config.enable_logging)

    provider = LiteLLMInferenceProvider(
        model=config.model,
        api_key=config.api_key,
        temperature=config.inference_temperature,
        max_tokens=config.inference_max_tokens,
        timeout=config.resolution_timeout_ms / 1000.0
    )
    return LocatorResolver(
        cache=get_locator_cache(config.cache_path, config.cache_expiration_days),
        policy=ResolutionPolicy(config),
        inference_provider=provider,
        context_extractor=PageContextExtractor(),
        metrics=metrics
    )

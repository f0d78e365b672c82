"""Core data models for the self-healing locator system."""

from .healing_models import (
    CacheEntry,
    CacheStatistics,
    ElementState,
    FailureReason,
    HealingConfiguration,
    LocatorCandidate,
    LocatorGenerationRequest,
    LocatorStrategy,
    OutcomeKind,
    PageAction,
    PageContext,
    ProbeResult,
    ResolutionOutcome,
    ResolutionRequest
)

__all__ = [
    "CacheEntry",
    "CacheStatistics",
    "ElementState",
    "FailureReason",
    "HealingConfiguration",
    "LocatorCandidate",
    "LocatorGenerationRequest",
    "LocatorStrategy",
    "OutcomeKind",
    "PageAction",
    "PageContext",
    "ProbeResult",
    "ResolutionOutcome",
    "ResolutionRequest"
]

"""Structured errors raised when a locator cannot be resolved."""

from typing import Optional

from .models.healing_models import FailureReason, ResolutionOutcome


class SelfHealingLocatorError(Exception):
    """Base error for policy-level and validation-level resolution failures."""

    reason: FailureReason = FailureReason.GENERATION_FAILED

    def __init__(self, message: str, original_locator: str, suggested_locator: Optional[str] = None):
        super().__init__(message)
        self.original_locator = original_locator
        self.suggested_locator = suggested_locator


class HealingDisabledError(SelfHealingLocatorError):
    reason = FailureReason.HEALING_DISABLED

    def __init__(self, original_locator: str):
        super().__init__(
            f"Locator failed and smart locator is disabled: {original_locator}",
            original_locator
        )


class GenerationFailedError(SelfHealingLocatorError):
    reason = FailureReason.GENERATION_FAILED

    def __init__(self, original_locator: str):
        super().__init__(
            f"Smart locator generation failed for: {original_locator}",
            original_locator
        )


class ValidationFailedError(SelfHealingLocatorError):
    reason = FailureReason.VALIDATION_FAILED

    def __init__(self, original_locator: str, suggested_locator: Optional[str] = None):
        message = f"Smart locator validation failed for: {original_locator}"
        if suggested_locator:
            message += f" (attempted: {suggested_locator})"
        super().__init__(message, original_locator, suggested_locator)


class ReviewRequiredError(SelfHealingLocatorError):
    """Discovery mode found a working replacement that a human should apply."""

    reason = FailureReason.REVIEW_REQUIRED

    def __init__(self, original_locator: str, suggested_locator: str):
        message = (
            "\nLocator has been changed from:\n"
            f"    Old: {original_locator}\n"
            f"    New: {suggested_locator}\n"
            "Please review and update the locator or create a bug"
        )
        super().__init__(message, original_locator, suggested_locator)


class ResolutionTimeoutError(SelfHealingLocatorError):
    reason = FailureReason.TIMEOUT

    def __init__(self, original_locator: str, timeout_ms: Optional[int] = None):
        message = f"Locator resolution timed out for: {original_locator}"
        if timeout_ms is not None:
            message += f" after {timeout_ms}ms"
        super().__init__(message, original_locator)


class StorageDegradedError(Exception):
    """The locator cache could not read or write its backing document."""


def error_for_outcome(outcome: ResolutionOutcome,
                      timeout_ms: Optional[int] = None) -> SelfHealingLocatorError:
    """Build the structured error that corresponds to a failed outcome."""
    original = outcome.original_locator
    if outcome.reason == FailureReason.HEALING_DISABLED:
        return HealingDisabledError(original)
    if outcome.reason == FailureReason.VALIDATION_FAILED:
        return ValidationFailedError(original, outcome.suggested_locator)
    if outcome.reason == FailureReason.REVIEW_REQUIRED:
        return ReviewRequiredError(original, outcome.suggested_locator or "")
    if outcome.reason == FailureReason.TIMEOUT:
        return ResolutionTimeoutError(original, timeout_ms)
    return GenerationFailedError(original)

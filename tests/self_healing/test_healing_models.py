"""Unit tests for healing data models and structured errors."""

from datetime import datetime, timedelta, timezone

import pytest

from self_healing.core.errors import (
    GenerationFailedError,
    HealingDisabledError,
    ResolutionTimeoutError,
    ReviewRequiredError,
    SelfHealingLocatorError,
    ValidationFailedError,
    error_for_outcome
)
from self_healing.core.models import (
    CacheEntry,
    CacheStatistics,
    FailureReason,
    HealingConfiguration,
    LocatorCandidate,
    LocatorStrategy,
    OutcomeKind,
    ResolutionOutcome,
    ResolutionRequest
)
from self_healing.core.models.healing_models import format_timestamp, parse_timestamp


class TestTimestamps:
    """Test timestamp helpers used by the cache document."""

    def test_format_timestamp(self):
        value = datetime(2025, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2025-01-02T03:04:05.678Z"

    def test_format_converts_to_utc(self):
        value = datetime(2025, 1, 2, 5, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(value) == "2025-01-02T03:00:00.000Z"

    @pytest.mark.parametrize("text", [
        "2025-01-02T03:04:05.678Z",
        "2025-01-02T03:04:05.678+00:00",
        "2025-01-02T03:04:05.678",
    ])
    def test_parse_timestamp_is_utc(self, text):
        parsed = parse_timestamp(text)
        assert parsed.tzinfo is not None
        assert parsed == datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestCacheEntry:
    """Test cache entry serialization."""

    def test_to_dict_uses_document_shape(self):
        entry = CacheEntry(
            key="#old-id",
            generated_locator="[data-testid=submit]",
            strategy=LocatorStrategy.DATA_TESTID,
            created_at=datetime(2025, 1, 2, tzinfo=timezone.utc),
            success_count=2,
            failure_count=1
        )

        assert entry.to_dict() == {
            "originalLocator": "#old-id",
            "generatedLocator": "[data-testid=submit]",
            "strategy": "DATA_TESTID",
            "timestamp": "2025-01-02T00:00:00.000Z",
            "successCount": 2,
            "failureCount": 1
        }

    def test_from_dict_defaults_counts(self):
        entry = CacheEntry.from_dict({
            "originalLocator": "#old-id",
            "generatedLocator": "//button",
            "strategy": "XPATH",
            "timestamp": "2025-01-02T00:00:00.000Z"
        })

        assert entry.key == "#old-id"
        assert entry.strategy == LocatorStrategy.XPATH
        assert entry.success_count == 0
        assert entry.failure_count == 0

    def test_age_seconds(self):
        created = datetime(2025, 1, 2, tzinfo=timezone.utc)
        entry = CacheEntry("#a", "#b", LocatorStrategy.CSS, created_at=created)

        assert entry.age_seconds(created + timedelta(hours=1)) == 3600

    def test_statistics_to_dict(self):
        stats = CacheStatistics(1, "a", "b", 50.0, 1, 1)
        assert stats.to_dict()["hitRate"] == 50.0
        assert stats.to_dict()["totalEntries"] == 1


class TestResolutionOutcome:
    """Test outcome constructors and helpers."""

    def test_original(self):
        outcome = ResolutionOutcome.original("#login")

        assert outcome.kind == OutcomeKind.ORIGINAL
        assert outcome.locator == "#login"
        assert outcome.is_resolved
        assert not outcome.is_healed

    def test_cache_healed(self):
        outcome = ResolutionOutcome.cache_healed("#old", "#new", LocatorStrategy.CSS)

        assert outcome.is_healed
        assert outcome.strategy == LocatorStrategy.CSS

    def test_freshly_healed_carries_candidate(self):
        candidate = LocatorCandidate("button.submit", LocatorStrategy.CSS, confidence=80)
        outcome = ResolutionOutcome.freshly_healed("#old", candidate)

        assert outcome.kind == OutcomeKind.FRESHLY_HEALED
        assert outcome.locator == "button.submit"
        assert outcome.confidence == 80

    def test_failed(self):
        outcome = ResolutionOutcome.failed("#old", FailureReason.VALIDATION_FAILED, "#guess")

        assert not outcome.is_resolved
        assert outcome.locator is None
        data = outcome.to_dict()
        assert data["kind"] == "failed"
        assert data["reason"] == "validation failed"
        assert data["suggested_locator"] == "#guess"

    def test_request_requires_key(self):
        with pytest.raises(ValueError):
            ResolutionRequest("", page=None)


class TestHealingConfiguration:
    """Test configuration serialization."""

    def test_to_dict_omits_api_key(self):
        config = HealingConfiguration(api_key="sk-secret")
        assert "api_key" not in config.to_dict()

    def test_from_dict_ignores_unknown_keys(self):
        config = HealingConfiguration.from_dict({"max_retries": 5, "unknown": True})
        assert config.max_retries == 5


class TestErrors:
    """Test structured errors built from failed outcomes."""

    @pytest.mark.parametrize("reason, error_type", [
        (FailureReason.HEALING_DISABLED, HealingDisabledError),
        (FailureReason.GENERATION_FAILED, GenerationFailedError),
        (FailureReason.VALIDATION_FAILED, ValidationFailedError),
        (FailureReason.REVIEW_REQUIRED, ReviewRequiredError),
        (FailureReason.TIMEOUT, ResolutionTimeoutError),
    ])
    def test_error_for_outcome(self, reason, error_type):
        error = error_for_outcome(ResolutionOutcome.failed("#old", reason, "#new"))

        assert isinstance(error, error_type)
        assert isinstance(error, SelfHealingLocatorError)
        assert error.reason == reason
        assert error.original_locator == "#old"
        assert "#old" in str(error)

    def test_review_message_names_both_locators(self):
        error = ReviewRequiredError("#old", "button.submit")

        assert "Old: #old" in str(error)
        assert "New: button.submit" in str(error)
        assert error.suggested_locator == "button.submit"

    def test_validation_message_includes_attempt(self):
        assert "attempted: #guess" in str(ValidationFailedError("#old", "#guess"))
        assert "attempted" not in str(ValidationFailedError("#old"))

    def test_timeout_message(self):
        error = error_for_outcome(ResolutionOutcome.failed("#old", FailureReason.TIMEOUT), timeout_ms=2000)
        assert "after 2000ms" in str(error)

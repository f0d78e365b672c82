"""Data models for the self-healing locator system."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ...services.page_driver import PageDriver


class LocatorStrategy(Enum):
    """Locator syntax families a healed locator can use."""
    CSS = "CSS"
    XPATH = "XPATH"
    TEXT = "TEXT"
    DATA_TESTID = "DATA_TESTID"


class OutcomeKind(Enum):
    """How a locator was resolved."""
    ORIGINAL = "original"
    CACHE_HEALED = "cache_healed"
    FRESHLY_HEALED = "freshly_healed"
    FAILED = "failed"


class FailureReason(Enum):
    """Why a resolution ended without a usable locator."""
    HEALING_DISABLED = "healing disabled"
    GENERATION_FAILED = "generation failed"
    VALIDATION_FAILED = "validation failed"
    REVIEW_REQUIRED = "review required"
    TIMEOUT = "resolution timed out"


class PageAction(Enum):
    """Actions the page driver performs on a resolved element."""
    CLICK = "click"
    FILL = "fill"
    CLEAR = "clear"


class ElementState(Enum):
    """DOM states a page driver can wait for."""
    ATTACHED = "attached"
    DETACHED = "detached"
    VISIBLE = "visible"
    HIDDEN = "hidden"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values and a trailing 'Z' as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Render a timestamp the way the cache document stores it (UTC, millisecond precision, 'Z')."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


@dataclass
class CacheEntry:
    """A healed locator remembered for an original locator."""
    key: str
    generated_locator: str
    strategy: LocatorStrategy
    created_at: datetime = field(default_factory=utc_now)
    success_count: int = 0
    failure_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to the persisted document shape."""
        return {
            "originalLocator": self.key,
            "generatedLocator": self.generated_locator,
            "strategy": self.strategy.value,
            "timestamp": format_timestamp(self.created_at),
            "successCount": self.success_count,
            "failureCount": self.failure_count
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CacheEntry':
        """Create entry from the persisted document shape."""
        return cls(
            key=data["originalLocator"],
            generated_locator=data["generatedLocator"],
            strategy=LocatorStrategy(data["strategy"]),
            created_at=parse_timestamp(data["timestamp"]),
            success_count=data.get("successCount", 0),
            failure_count=data.get("failureCount", 0)
        )

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or utc_now()) - self.created_at).total_seconds()


@dataclass
class CacheStatistics:
    """Read-only snapshot of cache contents and hit/miss accounting."""
    total_entries: int
    oldest_entry: Optional[str]
    newest_entry: Optional[str]
    hit_rate: float
    total_hits: int
    total_misses: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalEntries": self.total_entries,
            "oldestEntry": self.oldest_entry,
            "newestEntry": self.newest_entry,
            "hitRate": self.hit_rate,
            "totalHits": self.total_hits,
            "totalMisses": self.total_misses
        }


@dataclass
class PageContext:
    """Evidence about the live page handed to the inference provider."""
    accessibility_tree: str = ""
    relevant_html: List[str] = field(default_factory=list)
    page_title: str = ""
    url: str = ""

    @classmethod
    def empty(cls) -> 'PageContext':
        return cls()


@dataclass
class LocatorGenerationRequest:
    """Everything the inference provider needs to propose a replacement locator."""
    original_locator: str
    context: PageContext
    failure_reason: Optional[str] = None
    element_description: Optional[str] = None


@dataclass
class LocatorCandidate:
    """A replacement locator proposed by the inference provider."""
    locator: str
    strategy: LocatorStrategy
    confidence: float = 0.0
    reasoning: Optional[str] = None


@dataclass
class ProbeResult:
    """Result of probing a selector on the live page.

    Not finding the element is an ordinary result, not an exception. ``error_message``
    is set when the driver failed for another reason and the probe may be retried.
    """
    selector: str
    found: bool
    error_message: Optional[str] = None
    duration: float = 0.0
    transient: bool = False


@dataclass
class ResolutionRequest:
    """A single request to resolve a locator on a page."""
    locator_key: str
    page: 'PageDriver'
    failure_reason: Optional[str] = None
    element_description: Optional[str] = None
    timeout_ms: Optional[int] = None

    def __post_init__(self):
        if not self.locator_key:
            raise ValueError("locator_key must be a non-empty string")


@dataclass
class ResolutionOutcome:
    """Result of running the resolution state machine for one request."""
    kind: OutcomeKind
    original_locator: str
    locator: Optional[str] = None
    strategy: Optional[LocatorStrategy] = None
    confidence: Optional[float] = None
    reason: Optional[FailureReason] = None
    suggested_locator: Optional[str] = None
    resolved_at: datetime = field(default_factory=utc_now)

    @classmethod
    def original(cls, locator: str) -> 'ResolutionOutcome':
        return cls(kind=OutcomeKind.ORIGINAL, original_locator=locator, locator=locator)

    @classmethod
    def cache_healed(cls, original_locator: str, locator: str,
                     strategy: Optional[LocatorStrategy] = None) -> 'ResolutionOutcome':
        return cls(kind=OutcomeKind.CACHE_HEALED, original_locator=original_locator,
                   locator=locator, strategy=strategy)

    @classmethod
    def freshly_healed(cls, original_locator: str, candidate: LocatorCandidate) -> 'ResolutionOutcome':
        return cls(
            kind=OutcomeKind.FRESHLY_HEALED,
            original_locator=original_locator,
            locator=candidate.locator,
            strategy=candidate.strategy,
            confidence=candidate.confidence
        )

    @classmethod
    def failed(cls, original_locator: str, reason: FailureReason,
               suggested_locator: Optional[str] = None) -> 'ResolutionOutcome':
        return cls(kind=OutcomeKind.FAILED, original_locator=original_locator,
                   reason=reason, suggested_locator=suggested_locator)

    @property
    def is_resolved(self) -> bool:
        return self.kind != OutcomeKind.FAILED

    @property
    def is_healed(self) -> bool:
        return self.kind in (OutcomeKind.CACHE_HEALED, OutcomeKind.FRESHLY_HEALED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert outcome to dictionary for logging and reports."""
        return {
            "kind": self.kind.value,
            "original_locator": self.original_locator,
            "locator": self.locator,
            "strategy": self.strategy.value if self.strategy else None,
            "confidence": self.confidence,
            "reason": self.reason.value if self.reason else None,
            "suggested_locator": self.suggested_locator,
            "resolved_at": self.resolved_at.isoformat()
        }


@dataclass
class HealingConfiguration:
    """Configuration settings for the self-healing locator system."""
    use_smart_locator: bool = False
    run_with_smart_locator: bool = False
    cache_path: str = "cache/locator_cache.json"
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    cache_expiration_days: int = 2
    max_retries: int = 3
    element_timeout_ms: int = 5000
    resolution_timeout_ms: int = 30000
    enable_logging: bool = True
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    # Stale cached locators are kept (and counted as failures) unless this is set
    evict_stale_entries: bool = False

    # Inference settings
    inference_temperature: float = 0.1
    inference_max_tokens: int = 500

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary. The API key is never included."""
        return {
            "use_smart_locator": self.use_smart_locator,
            "run_with_smart_locator": self.run_with_smart_locator,
            "cache_path": self.cache_path,
            "model": self.model,
            "cache_expiration_days": self.cache_expiration_days,
            "max_retries": self.max_retries,
            "element_timeout_ms": self.element_timeout_ms,
            "resolution_timeout_ms": self.resolution_timeout_ms,
            "enable_logging": self.enable_logging,
            "log_level": self.log_level,
            "log_dir": self.log_dir,
            "evict_stale_entries": self.evict_stale_entries,
            "inference_temperature": self.inference_temperature,
            "inference_max_tokens": self.inference_max_tokens
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HealingConfiguration':
        """Create configuration from dictionary, ignoring unknown keys."""
        known = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in data.items() if k in known})

"""
Pytest configuration and shared fixtures for the test suite.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

# litellm fetches its model cost map over the network at import time; use the
# bundled copy so the suite runs offline.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

# Add the package source to Python path for testing
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from self_healing.core.metrics import MetricsCollector  # noqa: E402
from self_healing.core.models import (  # noqa: E402
    ElementState,
    HealingConfiguration,
    LocatorCandidate,
    LocatorGenerationRequest,
    LocatorStrategy,
    PageAction,
    ProbeResult
)
from self_healing.services.inference_provider import InferenceProvider  # noqa: E402
from self_healing.services.locator_cache import LocatorCache, reset_locator_cache  # noqa: E402
from self_healing.services.page_driver import PageDriver  # noqa: E402


class FakePageDriver(PageDriver):
    """In-memory page: a selector matches when it is in ``present``."""

    def __init__(self, present: Iterable[str] = (), html: str = "", title: str = "Test Page",
                 url: str = "https://example.test/", texts: Optional[Dict[str, str]] = None,
                 transient_failures: Optional[Dict[str, int]] = None,
                 snapshot: Optional[dict] = None):
        self.present = set(present)
        self.html = html
        self._title = title
        self._url = url
        self.texts = texts or {}
        self.transient_failures = dict(transient_failures or {})
        self.snapshot = snapshot
        self.probes: List[str] = []
        self.actions: List[tuple] = []

    @property
    def driver_name(self) -> str:
        return "fake"

    async def wait_for_state(self, selector: str, state: ElementState, timeout_ms: int) -> ProbeResult:
        self.probes.append(selector)
        if self.transient_failures.get(selector, 0) > 0:
            self.transient_failures[selector] -= 1
            return ProbeResult(selector=selector, found=False, error_message="connection reset", transient=True)

        found = selector in self.present
        if state in (ElementState.HIDDEN, ElementState.DETACHED):
            found = not found
        return ProbeResult(selector=selector, found=found, error_message=None if found else "not found")

    async def perform_action(self, selector: str, action: PageAction, value: Optional[str] = None) -> None:
        if selector not in self.present:
            raise RuntimeError(f"No element matches {selector}")
        self.actions.append((action, selector, value))

    async def read_text(self, selector: str, inner: bool = False) -> Optional[str]:
        if selector not in self.present:
            raise RuntimeError(f"No element matches {selector}")
        return self.texts.get(selector)

    async def page_content(self) -> str:
        return self.html

    async def title(self) -> str:
        return self._title

    async def url(self) -> str:
        return self._url

    async def accessibility_snapshot(self):
        return self.snapshot


class FakeInferenceProvider(InferenceProvider):
    """Returns a fixed candidate and records every request."""

    def __init__(self, candidate: Optional[LocatorCandidate] = None, delay: float = 0.0):
        self.candidate = candidate
        self.delay = delay
        self.requests: List[LocatorGenerationRequest] = []

    async def generate(self, request: LocatorGenerationRequest) -> Optional[LocatorCandidate]:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.candidate


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Set up logging for tests and undo healing logger changes afterwards."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    yield
    healing_logger = logging.getLogger("healing")
    for handler in healing_logger.handlers[:]:
        healing_logger.removeHandler(handler)
        handler.close()
    healing_logger.propagate = True
    healing_logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def reset_global_cache():
    yield
    reset_locator_cache()


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "cache" / "locator_cache.json"


@pytest.fixture
def healing_config(cache_path):
    """Configuration in discovery mode with healing enabled."""
    return HealingConfiguration(
        use_smart_locator=True,
        run_with_smart_locator=False,
        cache_path=str(cache_path),
        api_key="test-key",
        element_timeout_ms=100,
        resolution_timeout_ms=2000
    )


@pytest.fixture
def locator_cache(cache_path):
    return LocatorCache(cache_path)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def submit_candidate():
    return LocatorCandidate(
        locator="button.submit",
        strategy=LocatorStrategy.CSS,
        confidence=80,
        reasoning="Submit button by class"
    )


@pytest.fixture
def fake_page():
    """Factory for FakePageDriver instances."""
    return FakePageDriver


@pytest.fixture
def fake_provider():
    """Factory for FakeInferenceProvider instances."""
    return FakeInferenceProvider

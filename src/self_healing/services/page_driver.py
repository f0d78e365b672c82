"""
Base interface for page drivers.

A page driver is the only component that talks to the browser. Probing a
selector never raises for an element that simply is not there; it returns a
ProbeResult with ``found=False`` instead.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..core.models.healing_models import ElementState, PageAction, ProbeResult


class PageDriver(ABC):
    """
    Abstract base class for browser page drivers.

    Implementations wrap one live page (a Playwright ``Page`` or a Selenium
    ``WebDriver``) and expose the handful of operations locator resolution needs.
    """

    @property
    @abstractmethod
    def driver_name(self) -> str:
        """Return the driver name (e.g., 'playwright', 'selenium')."""
        pass

    async def wait_for_attached(self, selector: str, timeout_ms: int) -> ProbeResult:
        """Wait until ``selector`` matches an element attached to the DOM."""
        return await self.wait_for_state(selector, ElementState.ATTACHED, timeout_ms)

    @abstractmethod
    async def wait_for_state(self, selector: str, state: ElementState, timeout_ms: int) -> ProbeResult:
        """
        Wait until the first element matching ``selector`` reaches ``state``.

        Args:
            selector: Selector string in the driver's syntax
            state: DOM state to wait for
            timeout_ms: Upper bound for the wait in milliseconds

        Returns:
            ProbeResult; ``found`` is False on timeout or when nothing matches
        """
        pass

    @abstractmethod
    async def perform_action(self, selector: str, action: PageAction, value: Optional[str] = None) -> None:
        """
        Perform ``action`` on the first element matching ``selector``.

        Driver errors (element detached, not interactable, ...) propagate unchanged.
        """
        pass

    @abstractmethod
    async def read_text(self, selector: str, inner: bool = False) -> Optional[str]:
        """Return the text content (or rendered inner text when ``inner``) of the element."""
        pass

    @abstractmethod
    async def page_content(self) -> str:
        """Return the current page HTML."""
        pass

    @abstractmethod
    async def title(self) -> str:
        pass

    @abstractmethod
    async def url(self) -> str:
        pass

    async def accessibility_snapshot(self) -> Optional[Dict[str, Any]]:
        """Return an accessibility tree snapshot, or None when the driver has none."""
        return None

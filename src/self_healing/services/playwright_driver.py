"""Page driver backed by a Playwright async ``Page``."""

import re
import time
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..core.logging_config import get_healing_logger
from ..core.models.healing_models import ElementState, PageAction, ProbeResult
from .page_driver import PageDriver

logger = get_healing_logger("driver")

# Playwright reports selector syntax and unknown engines with these phrases
_INVALID_SELECTOR = re.compile(
    r"while parsing (css )?selector|is not a valid selector|Unknown engine|SyntaxError", re.IGNORECASE
)


def is_invalid_selector_error(error: PlaywrightError) -> bool:
    return bool(_INVALID_SELECTOR.search(str(error)))


class PlaywrightPageDriver(PageDriver):
    """Drive a Playwright page.

    Selectors are passed to ``page.locator`` unchanged, so every Playwright
    selector engine (css, ``xpath=``, ``text=``, ``data-testid=``) works as-is.
    """

    def __init__(self, page: Page):
        self.page = page

    @property
    def driver_name(self) -> str:
        return "playwright"

    async def wait_for_state(self, selector: str, state: ElementState, timeout_ms: int) -> ProbeResult:
        start_time = time.time()
        try:
            await self.page.locator(selector).first.wait_for(state=state.value, timeout=timeout_ms)
            return ProbeResult(selector=selector, found=True, duration=time.time() - start_time)
        except PlaywrightTimeoutError:
            return ProbeResult(
                selector=selector,
                found=False,
                error_message=f"Timed out after {timeout_ms}ms waiting for '{state.value}'",
                duration=time.time() - start_time
            )
        except PlaywrightError as e:
            if is_invalid_selector_error(e):
                return ProbeResult(
                    selector=selector,
                    found=False,
                    error_message=f"Invalid selector: {e}",
                    duration=time.time() - start_time
                )
            logger.debug(f"Probe of {selector} failed: {e}")
            return ProbeResult(
                selector=selector,
                found=False,
                error_message=str(e),
                duration=time.time() - start_time,
                transient=True
            )

    async def perform_action(self, selector: str, action: PageAction, value: Optional[str] = None) -> None:
        element = self.page.locator(selector).first
        if action == PageAction.CLICK:
            await element.click()
        elif action == PageAction.FILL:
            await element.fill(value or "")
        elif action == PageAction.CLEAR:
            await element.clear()
        else:
            raise ValueError(f"Unsupported page action: {action}")

    async def read_text(self, selector: str, inner: bool = False) -> Optional[str]:
        element = self.page.locator(selector).first
        if inner:
            return await element.inner_text()
        return await element.text_content()

    async def page_content(self) -> str:
        return await self.page.content()

    async def title(self) -> str:
        return await self.page.title()

    async def url(self) -> str:
        return self.page.url

    async def accessibility_snapshot(self) -> Optional[Dict[str, Any]]:
        accessibility = getattr(self.page, "accessibility", None)
        if accessibility is None:
            return None
        try:
            return await accessibility.snapshot()
        except PlaywrightError as e:
            logger.warning(f"Failed to capture accessibility snapshot: {e}")
            return None

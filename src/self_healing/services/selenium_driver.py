"""Page driver backed by a Selenium WebDriver.

Selenium calls block, so every browser call runs in a thread pool executor.
Playwright-style selector prefixes are translated to Selenium ``By`` pairs.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

from selenium.common.exceptions import (
    InvalidSelectorException,
    TimeoutException,
    WebDriverException
)
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from ..core.logging_config import get_healing_logger
from ..core.models.healing_models import ElementState, PageAction, ProbeResult
from .page_driver import PageDriver

logger = get_healing_logger("driver")


def xpath_literal(value: str) -> str:
    """Quote ``value`` as an XPath string literal."""
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    return "concat(" + ", \"'\", ".join(f"'{part}'" for part in parts) + ")"


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def to_selenium_locator(selector: str) -> Tuple[str, str]:
    """
    Translate a selector string into a Selenium ``(By, value)`` pair.

    Args:
        selector: ``xpath=``, ``//`` or ``(`` for XPath, ``text=`` for a text match,
                  ``data-testid=`` for a test id, ``css=`` or anything else for CSS

    Returns:
        Tuple of Selenium locator strategy and value
    """
    selector = selector.strip()
    if selector.startswith("xpath="):
        return By.XPATH, selector[len("xpath="):]
    if selector.startswith("//") or selector.startswith("("):
        return By.XPATH, selector
    if selector.startswith("text="):
        text = _strip_quotes(selector[len("text="):])
        return By.XPATH, f"//*[text()[contains(normalize-space(.), {xpath_literal(text)})]]"
    if selector.startswith("data-testid="):
        test_id = _strip_quotes(selector[len("data-testid="):]).replace('"', '\\"')
        return By.CSS_SELECTOR, f'[data-testid="{test_id}"]'
    if selector.startswith("css="):
        return By.CSS_SELECTOR, selector[len("css="):]
    return By.CSS_SELECTOR, selector


class SeleniumPageDriver(PageDriver):
    """Drive a Selenium WebDriver session."""

    def __init__(self, driver: WebDriver, executor: Optional[ThreadPoolExecutor] = None):
        """
        Args:
            driver: Live WebDriver session
            executor: Executor for blocking Selenium calls; a single-worker pool is
                      created (and owned) when omitted
        """
        self.driver = driver
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="selenium-driver")

    @property
    def driver_name(self) -> str:
        return "selenium"

    def close(self) -> None:
        """Shut down the executor if this driver created it. The WebDriver is left open."""
        if self._owns_executor:
            self.executor.shutdown(wait=False)

    async def _run(self, func, *args):
        return await asyncio.get_running_loop().run_in_executor(self.executor, func, *args)

    async def wait_for_state(self, selector: str, state: ElementState, timeout_ms: int) -> ProbeResult:
        start_time = time.time()
        try:
            await self._run(self._wait_for_state_sync, selector, state, timeout_ms)
            return ProbeResult(selector=selector, found=True, duration=time.time() - start_time)
        except TimeoutException:
            return ProbeResult(
                selector=selector,
                found=False,
                error_message=f"Timed out after {timeout_ms}ms waiting for '{state.value}'",
                duration=time.time() - start_time
            )
        except InvalidSelectorException as e:
            return ProbeResult(
                selector=selector,
                found=False,
                error_message=f"Invalid selector: {e.msg}",
                duration=time.time() - start_time
            )
        except WebDriverException as e:
            logger.debug(f"Probe of {selector} failed: {e.msg}")
            return ProbeResult(
                selector=selector,
                found=False,
                error_message=e.msg or str(e),
                duration=time.time() - start_time,
                transient=True
            )

    def _wait_for_state_sync(self, selector: str, state: ElementState, timeout_ms: int) -> None:
        """Synchronous wait (runs in executor); raises TimeoutException on timeout."""
        locator = to_selenium_locator(selector)
        wait = WebDriverWait(self.driver, timeout_ms / 1000.0)

        if state == ElementState.ATTACHED:
            wait.until(EC.presence_of_element_located(locator))
        elif state == ElementState.VISIBLE:
            wait.until(EC.visibility_of_element_located(locator))
        elif state == ElementState.HIDDEN:
            wait.until(EC.invisibility_of_element_located(locator))
        elif state == ElementState.DETACHED:
            wait.until(lambda d: len(d.find_elements(*locator)) == 0)
        else:
            raise ValueError(f"Unsupported element state: {state}")

    async def perform_action(self, selector: str, action: PageAction, value: Optional[str] = None) -> None:
        await self._run(self._perform_action_sync, selector, action, value)

    def _perform_action_sync(self, selector: str, action: PageAction, value: Optional[str]) -> None:
        element = self.driver.find_element(*to_selenium_locator(selector))
        if action == PageAction.CLICK:
            element.click()
        elif action == PageAction.FILL:
            element.clear()
            element.send_keys(value or "")
        elif action == PageAction.CLEAR:
            element.clear()
        else:
            raise ValueError(f"Unsupported page action: {action}")

    async def read_text(self, selector: str, inner: bool = False) -> Optional[str]:
        return await self._run(self._read_text_sync, selector, inner)

    def _read_text_sync(self, selector: str, inner: bool) -> Optional[str]:
        element = self.driver.find_element(*to_selenium_locator(selector))
        if inner:
            return element.text
        return element.get_attribute("textContent")

    async def page_content(self) -> str:
        return await self._run(lambda: self.driver.page_source)

    async def title(self) -> str:
        return await self._run(lambda: self.driver.title)

    async def url(self) -> str:
        return await self._run(lambda: self.driver.current_url)

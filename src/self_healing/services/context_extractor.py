"""
Page context extraction for locator regeneration.

Collects a compact snapshot of the live page (accessibility tree, trimmed HTML
snippets around interactive elements, title and URL) that is handed to the
inference provider as evidence.
"""

import copy
import json
import re
from typing import List

from bs4 import BeautifulSoup, Tag

from ..core.logging_config import get_healing_logger
from ..core.models.healing_models import PageContext
from .page_driver import PageDriver

logger = get_healing_logger("context")

INTERACTIVE_SELECTOR = ",".join([
    "button",
    "input",
    "select",
    "textarea",
    "a[href]",
    '[role="button"]',
    '[role="link"]',
    '[tabindex]:not([tabindex="-1"])',
    "[onclick]",
    ".btn",
    ".button",
    '[type="submit"]'
])
FORM_CONTROLS_SELECTOR = "input,select,textarea,button"
NAV_SELECTOR = 'nav, [role="navigation"], .navbar, .menu, header nav'
NAV_CONTROLS_SELECTOR = 'a,button,[role="button"]'
MAIN_SELECTOR = 'main, [role="main"], .main-content, #main'
MAIN_CONTROLS_SELECTOR = "button,input,select,textarea,a[href]"

# Per-kind snippet length caps
INTERACTIVE_MAX_CHARS = 800
FORM_MAX_CHARS = 1200
NAV_MAX_CHARS = 1000
MAIN_MAX_CHARS = 2000
MAIN_MIN_CHARS = 50

_WHITESPACE = re.compile(r"\s+")


def clean_snippet(html: str, max_chars: int) -> str:
    """Truncate ``html`` to ``max_chars`` and collapse whitespace."""
    return _WHITESPACE.sub(" ", html[:max_chars]).strip()


def _child_tag_count(element: Tag) -> int:
    return len(element.find_all(recursive=False))


def _small_parent(element: Tag, max_children: int) -> Tag:
    """Return the element's parent when it is a small wrapper, else the element."""
    parent = element.parent
    if isinstance(parent, Tag) and not isinstance(parent, BeautifulSoup) \
            and _child_tag_count(parent) <= max_children:
        return parent
    return element


class PageContextExtractor:
    """Builds a PageContext from a page driver."""

    def __init__(self, max_interactive: int = 50, max_forms: int = 5):
        self.max_interactive = max_interactive
        self.max_forms = max_forms

    async def extract(self, driver: PageDriver) -> PageContext:
        """
        Capture the page context for the page behind ``driver``.

        Args:
            driver: Page driver of the page being healed

        Returns:
            PageContext; an empty context if the page could not be read
        """
        try:
            accessibility_tree = await self._accessibility_tree(driver)
            html = await driver.page_content()
            return PageContext(
                accessibility_tree=accessibility_tree,
                relevant_html=self.extract_snippets(html),
                page_title=await driver.title(),
                url=await driver.url()
            )
        except Exception as e:
            logger.warning(f"Failed to extract page context: {e}")
            return PageContext.empty()

    async def _accessibility_tree(self, driver: PageDriver) -> str:
        try:
            snapshot = await driver.accessibility_snapshot()
        except Exception as e:
            logger.warning(f"Failed to get accessibility tree: {e}")
            return ""
        if not snapshot:
            return ""
        return json.dumps(snapshot, indent=2, default=str)

    def extract_snippets(self, html: str) -> List[str]:
        """Collect trimmed HTML snippets: interactive elements, forms, navigation, main content."""
        soup = BeautifulSoup(html or "", "html.parser")
        snippets: List[str] = []

        for element in soup.select(INTERACTIVE_SELECTOR, limit=self.max_interactive):
            snippets.append(clean_snippet(str(_small_parent(element, 5)), INTERACTIVE_MAX_CHARS))

        for form in soup.find_all("form", limit=self.max_forms):
            shell = soup.new_tag("form", attrs=dict(form.attrs))
            for control in form.select(FORM_CONTROLS_SELECTOR):
                shell.append(copy.copy(control))
            snippets.append(clean_snippet(str(shell), FORM_MAX_CHARS))

        nav = soup.select_one(NAV_SELECTOR)
        if nav is not None:
            shell = soup.new_tag(nav.name, attrs=dict(nav.attrs))
            for control in nav.select(NAV_CONTROLS_SELECTOR):
                shell.append(copy.copy(control))
            snippets.append(clean_snippet(str(shell), NAV_MAX_CHARS))

        main = soup.select_one(MAIN_SELECTOR)
        if main is not None:
            parts = [str(_small_parent(el, 3)) for el in main.select(MAIN_CONTROLS_SELECTOR)]
            content = "".join(parts)
            if len(content) > MAIN_MIN_CHARS:
                snippets.append(clean_snippet(content, MAIN_MAX_CHARS))

        return snippets

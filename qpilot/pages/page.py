"""
Base page object.
"""

from qpilot.core.browser import ActionResult, BrowserSession
from qpilot.core.element import Element


class Page:
    """Base class for all page objects."""

    path: str = ""

    def __init__(self, browser: BrowserSession):
        self.browser = browser

    def element(self, selector: str, name: str | None = None) -> Element:
        return self.browser.element(selector, name=name)

    async def open(self, path: str | None = None) -> ActionResult:
        """Open a sub page relative to the base URL."""
        return await self.browser.url(self.path if path is None else path)

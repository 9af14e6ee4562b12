"""
Lazy element handles returned by ``BrowserSession.element()``.
"""

from typing import TYPE_CHECKING

import structlog
from playwright.async_api import Locator, TimeoutError as PlaywrightTimeout

from qpilot.core.locator import ElementNotFoundError

if TYPE_CHECKING:
    from qpilot.core.browser import BrowserSession

logger = structlog.get_logger()


class Element:
    """
    A selector bound to a browser session.

    Nothing is looked up until a method is awaited, so page objects can
    expose elements as plain properties.
    """

    def __init__(self, session: "BrowserSession", selector: str, name: str | None = None):
        self.session = session
        self.selector = selector
        self.name = name or selector

    def __repr__(self) -> str:
        return f"Element({self.selector!r})"

    @property
    def locator(self) -> Locator:
        return self.session.page.locator(self.selector).first

    async def is_existing(self) -> bool:
        return await self.session.page.locator(self.selector).count() > 0

    async def is_displayed(self) -> bool:
        if not await self.is_existing():
            return False
        return await self.locator.is_visible()

    async def get_text(self) -> str:
        """Rendered text of the element, stripped of surrounding whitespace."""
        await self._require()
        text = await self.locator.inner_text()
        return (text or "").strip()

    async def wait_for_exist(self, timeout: int | None = None, reverse: bool = False) -> bool:
        """Wait until the element is attached (or detached when ``reverse``)."""
        state = "detached" if reverse else "attached"
        timeout = timeout if timeout is not None else self.session.settings.expect_timeout
        try:
            await self.locator.wait_for(state=state, timeout=timeout)
        except PlaywrightTimeout as e:
            raise ElementNotFoundError(
                f"Element '{self.name}' still {'present' if reverse else 'missing'} "
                f"after {timeout}ms",
                element_name=self.name,
                page_url=self.session.page.url,
            ) from e
        return True

    async def set_value(self, value: str) -> None:
        await self.wait_for_exist()
        await self.locator.fill(value)
        logger.debug("element_value_set", element=self.name)

    async def click(self) -> None:
        await self.wait_for_exist()
        await self.locator.click()
        logger.debug("element_clicked", element=self.name)

    async def _require(self) -> None:
        if not await self.is_existing():
            raise ElementNotFoundError(
                f"Element '{self.name}' does not exist",
                element_name=self.name,
                page_url=self.session.page.url,
            )

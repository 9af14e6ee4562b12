"""
Browser Session

High-level wrapper around Playwright that plays the role of the global
``browser`` object in the login specs:
- Context management for the browser lifecycle
- ``url()`` navigation relative to the configured base URL
- ``element()`` lazy element lookup
- Config-driven actions executed through MultiStrategyLocator
"""

import base64
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import urljoin, urlparse

import structlog
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
)

from qpilot.config import Settings, settings as default_settings
from qpilot.core.element import Element
from qpilot.core.locator import ElementConfig, MultiStrategyLocator

logger = structlog.get_logger()

SNAPSHOT_LIMIT = 200

# Collects the interactive elements of the page in a single round trip.
SNAPSHOT_SCRIPT = """
(limit) => {
  const selector = 'input, textarea, select, button, a[href], [role=button], [role=link], [role=checkbox], [contenteditable=true]';
  const labelFor = (el) => {
    if (el.id) {
      const label = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
      if (label) return label.innerText.trim();
    }
    const parent = el.closest('label');
    return parent ? parent.innerText.trim() : null;
  };
  const out = [];
  for (const el of document.querySelectorAll(selector)) {
    if (out.length >= limit) break;
    if (el.type === 'hidden') continue;
    const text = (el.innerText || el.value || '').trim().slice(0, 80);
    out.push({
      tag: el.tagName.toLowerCase(),
      id: el.id || null,
      name: el.getAttribute('name'),
      type: el.getAttribute('type'),
      placeholder: el.getAttribute('placeholder'),
      aria_label: el.getAttribute('aria-label'),
      label: labelFor(el),
      role: el.getAttribute('role'),
      text: text || null,
      test_id: el.getAttribute('data-testid'),
    });
  }
  return out;
}
"""


class BrowserType(str, Enum):
    """Supported browser types."""

    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class ActionType(str, Enum):
    """Supported browser actions."""

    NAVIGATE = "navigate"
    CLICK = "click"
    FILL = "fill"
    SELECT = "select"
    CHECK = "check"
    UNCHECK = "uncheck"
    HOVER = "hover"
    PRESS = "press"
    SCREENSHOT = "screenshot"
    ASSERT_TEXT = "assert_text"


@dataclass
class ActionResult:
    """Result of a browser action execution."""

    success: bool
    action_type: ActionType
    element_name: str | None = None
    duration_ms: float = 0
    screenshot_base64: str | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class BrowserOptions:
    """Browser configuration options."""

    browser_type: BrowserType = BrowserType.CHROMIUM
    headless: bool = True
    slow_mo: int = 0
    timeout: int = 30000
    locator_timeout: int = 5000
    viewport_width: int = 1280
    viewport_height: int = 720
    locale: str = "en-US"
    screenshot_on_action: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "BrowserOptions":
        return cls(
            browser_type=BrowserType(settings.browser_type),
            headless=settings.browser_headless,
            slow_mo=settings.browser_slow_mo,
            timeout=settings.browser_timeout,
            locator_timeout=settings.locator_timeout,
            screenshot_on_action=settings.screenshot_on_action,
        )


class NavigationError(Exception):
    """Raised when url() cannot load the requested page."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


def resolve_url(base_url: str, path: str) -> str:
    """Join a relative path onto the base URL; absolute URLs pass through."""
    if urlparse(path).scheme:
        return path
    return urljoin(base_url.rstrip("/") + "/", path.lstrip("/"))


class BrowserSession:
    """
    Playwright browser session used by page objects and q().

    Usage:
        async with BrowserSession() as browser:
            await browser.url("login")
            flash = browser.element("#flash")
    """

    def __init__(
        self,
        options: BrowserOptions | None = None,
        base_url: str | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        self.options = options or BrowserOptions.from_settings(self.settings)
        self.base_url = base_url or self.settings.base_url
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._locator: MultiStrategyLocator | None = None
        self._action_history: list[ActionResult] = []

    @property
    def page(self) -> Page:
        """Get current page, raise if not started."""
        if self._page is None:
            raise RuntimeError("Browser not started. Use 'async with' context.")
        return self._page

    @property
    def locator(self) -> MultiStrategyLocator:
        if self._locator is None:
            raise RuntimeError("Browser not started. Use 'async with' context.")
        return self._locator

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def start(self) -> None:
        """Launch the browser and open a page."""
        log = logger.bind(browser=self.options.browser_type.value)
        log.info("starting_browser", headless=self.options.headless)

        self._playwright = await async_playwright().start()
        try:
            launcher = getattr(self._playwright, self.options.browser_type.value)
            self._browser = await launcher.launch(
                headless=self.options.headless,
                slow_mo=self.options.slow_mo,
            )
            self._context = await self._browser.new_context(
                viewport={
                    "width": self.options.viewport_width,
                    "height": self.options.viewport_height,
                },
                locale=self.options.locale,
            )
            self._context.set_default_timeout(self.options.timeout)
            self._page = await self._context.new_page()
        except Exception:
            await self.close()
            raise

        self.attach(self._page)
        log.info("browser_started")

    def attach(self, page: Page) -> None:
        """Bind the session to an already open page."""
        self._page = page
        self._locator = MultiStrategyLocator(page, timeout=self.options.locator_timeout)

    async def close(self) -> None:
        """
        Release browser resources, newest first.

        Every handle is closed even when an earlier close fails; the failure
        is re-raised once all of them have run.
        """
        logger.info("closing_browser")

        playwright, browser, context = self._playwright, self._browser, self._context
        self._page = None
        self._locator = None
        self._context = None
        self._browser = None
        self._playwright = None

        async with AsyncExitStack() as stack:
            if playwright:
                stack.push_async_callback(playwright.stop)
            if browser:
                stack.push_async_callback(browser.close)
            if context:
                stack.push_async_callback(context.close)

    async def url(self, path: str) -> ActionResult:
        """
        Navigate to ``path`` and raise NavigationError if the page does not load.

        Relative paths are resolved against the base URL.
        """
        target = resolve_url(self.base_url, path)
        result = await self.navigate(target)
        if not result.success:
            raise NavigationError(
                f"Navigation to {target} failed: {result.error_message}", url=target
            )
        return result

    async def navigate(
        self,
        url: str,
        wait_until: str = "domcontentloaded",
    ) -> ActionResult:
        """Navigate to an absolute URL without raising."""
        start = time.time()
        log = logger.bind(url=url)

        try:
            response = await self.page.goto(url, wait_until=wait_until)
            if response is not None and response.status >= 400:
                raise RuntimeError(f"HTTP {response.status}")
        except Exception as e:
            duration_ms = (time.time() - start) * 1000
            log.error("navigation_failed", error=str(e))
            return self._record(
                ActionResult(
                    success=False,
                    action_type=ActionType.NAVIGATE,
                    duration_ms=duration_ms,
                    error_message=str(e),
                    metadata={"url": url},
                )
            )

        duration_ms = (time.time() - start) * 1000
        log.info("navigation_complete", duration_ms=round(duration_ms, 2))
        return self._record(
            ActionResult(
                success=True,
                action_type=ActionType.NAVIGATE,
                duration_ms=duration_ms,
                screenshot_base64=await self._maybe_screenshot(),
                metadata={"url": url},
            )
        )

    def element(self, selector: str, name: str | None = None) -> Element:
        """Lazy element handle, resolved each time it is used."""
        return Element(self, selector, name=name)

    S = element

    async def click(self, element: ElementConfig) -> ActionResult:
        return await self._execute_action(ActionType.CLICK, element)

    async def fill(self, element: ElementConfig, value: str) -> ActionResult:
        return await self._execute_action(ActionType.FILL, element, value=value)

    async def select_option(self, element: ElementConfig, value: str) -> ActionResult:
        return await self._execute_action(ActionType.SELECT, element, value=value)

    async def check(self, element: ElementConfig) -> ActionResult:
        return await self._execute_action(ActionType.CHECK, element)

    async def uncheck(self, element: ElementConfig) -> ActionResult:
        return await self._execute_action(ActionType.UNCHECK, element)

    async def hover(self, element: ElementConfig) -> ActionResult:
        return await self._execute_action(ActionType.HOVER, element)

    async def press_key(
        self,
        key: str,
        element: ElementConfig | None = None,
    ) -> ActionResult:
        """Press a keyboard key, on an element when one is given."""
        if element is not None:
            return await self._execute_action(ActionType.PRESS, element, value=key)

        start = time.time()
        try:
            await self.page.keyboard.press(key)
        except Exception as e:
            logger.error("key_press_failed", key=key, error=str(e))
            return self._record(
                ActionResult(
                    success=False,
                    action_type=ActionType.PRESS,
                    error_message=str(e),
                    metadata={"key": key},
                )
            )
        return self._record(
            ActionResult(
                success=True,
                action_type=ActionType.PRESS,
                duration_ms=(time.time() - start) * 1000,
                metadata={"key": key},
            )
        )

    async def assert_page_text(self, expected_text: str) -> ActionResult:
        """Check that the page body contains ``expected_text``."""
        start = time.time()
        try:
            body = await self.page.locator("body").inner_text()
        except Exception as e:
            return self._record(
                ActionResult(
                    success=False,
                    action_type=ActionType.ASSERT_TEXT,
                    error_message=str(e),
                )
            )

        matches = expected_text.lower() in (body or "").lower()
        return self._record(
            ActionResult(
                success=matches,
                action_type=ActionType.ASSERT_TEXT,
                duration_ms=(time.time() - start) * 1000,
                error_message=None
                if matches
                else f"Page does not contain '{expected_text}'",
                metadata={"expected": expected_text},
            )
        )

    async def snapshot(self, limit: int = SNAPSHOT_LIMIT) -> list[dict[str, Any]]:
        """Describe the interactive elements currently on the page."""
        elements = await self.page.evaluate(SNAPSHOT_SCRIPT, limit)
        logger.debug("page_snapshot", url=self.page.url, elements=len(elements))
        return elements

    async def screenshot(
        self,
        full_page: bool = False,
        path: str | None = None,
    ) -> ActionResult:
        """Take a screenshot of the current page."""
        start = time.time()

        try:
            screenshot_bytes = await self.page.screenshot(full_page=full_page)
        except Exception as e:
            return ActionResult(
                success=False,
                action_type=ActionType.SCREENSHOT,
                error_message=str(e),
            )

        if path:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            Path(path).write_bytes(screenshot_bytes)

        return ActionResult(
            success=True,
            action_type=ActionType.SCREENSHOT,
            duration_ms=(time.time() - start) * 1000,
            screenshot_base64=base64.b64encode(screenshot_bytes).decode("utf-8"),
            metadata={"full_page": full_page, "path": path},
        )

    async def _execute_action(
        self,
        action_type: ActionType,
        element: ElementConfig,
        value: Any = None,
    ) -> ActionResult:
        """Execute a browser action on an element."""
        start = time.time()
        log = logger.bind(action=action_type.value, element=element.name)

        loc_result = await self.locator.find_element(element)

        if not loc_result.success:
            log.error("action_target_missing", error=loc_result.error_message)
            return self._record(
                ActionResult(
                    success=False,
                    action_type=action_type,
                    element_name=element.name,
                    duration_ms=loc_result.duration_ms,
                    error_message=loc_result.error_message,
                )
            )

        target = loc_result.locator
        try:
            match action_type:
                case ActionType.CLICK:
                    await target.click()
                case ActionType.FILL:
                    await target.fill(value)
                case ActionType.SELECT:
                    try:
                        await target.select_option(value=value)
                    except Exception:
                        await target.select_option(label=value)
                case ActionType.CHECK:
                    await target.check()
                case ActionType.UNCHECK:
                    await target.uncheck()
                case ActionType.HOVER:
                    await target.hover()
                case ActionType.PRESS:
                    await target.press(value)
                case _:
                    raise ValueError(f"Unsupported element action: {action_type.value}")
        except Exception as e:
            duration_ms = (time.time() - start) * 1000
            log.error("action_failed", error=str(e))
            return self._record(
                ActionResult(
                    success=False,
                    action_type=action_type,
                    element_name=element.name,
                    duration_ms=duration_ms,
                    error_message=str(e),
                )
            )

        duration_ms = (time.time() - start) * 1000
        log.info("action_complete", duration_ms=round(duration_ms, 2))

        return self._record(
            ActionResult(
                success=True,
                action_type=action_type,
                element_name=element.name,
                duration_ms=duration_ms,
                screenshot_base64=await self._maybe_screenshot(),
                metadata={
                    "strategy_used": loc_result.strategy_used.value
                    if loc_result.strategy_used
                    else None,
                    "value": value if action_type != ActionType.FILL else "***",
                },
            )
        )

    async def _maybe_screenshot(self) -> str | None:
        if not self.options.screenshot_on_action:
            return None
        result = await self.screenshot()
        return result.screenshot_base64

    def _record(self, result: ActionResult) -> ActionResult:
        self._action_history.append(result)
        return result

    def get_action_history(self) -> list[ActionResult]:
        """Get history of all executed actions."""
        return self._action_history.copy()


    async def get_page_info(self) -> dict:
        """Get current page information."""
        return {
            "url": self.page.url,
            "title": await self.page.title(),
            "viewport": self.page.viewport_size,
        }

"""
Element location for q() actions.

An ElementConfig carries every selector known for one element. The locator
walks them from the most stable kind (test ids, ids) to the most brittle
(visible text, xpath) and settles on the first one that shows a visible
element on the page.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from playwright.async_api import Locator, Page, TimeoutError as PlaywrightTimeout

logger = structlog.get_logger()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


class LocatorStrategy(str, Enum):
    """Selector kinds, most stable first."""

    DATA_TESTID = "data-testid"
    ID = "id"
    ARIA_LABEL = "aria-label"
    ARIA_ROLE = "role"  # "role:name", e.g. "button:Login"
    NAME = "name"
    PLACEHOLDER = "placeholder"
    CSS = "css"
    TEXT = "text"
    XPATH = "xpath"


STRATEGY_PRIORITY: list[LocatorStrategy] = list(LocatorStrategy)


@dataclass
class ElementConfig:
    """One element described by several selectors."""

    name: str
    strategies: dict[LocatorStrategy, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        defaults = {
            "created": _now(),
            "success_count": 0,
            "failure_count": 0,
            "last_success_strategy": None,
        }
        for key, value in defaults.items():
            self.metadata.setdefault(key, value)

    def ordered(self) -> list[tuple[LocatorStrategy, str]]:
        """Configured (strategy, selector) pairs in priority order."""
        return [(s, self.strategies[s]) for s in STRATEGY_PRIORITY if s in self.strategies]

    def mark_found(self, strategy: LocatorStrategy) -> None:
        self.metadata["success_count"] += 1
        self.metadata["last_success"] = _now()
        self.metadata["last_success_strategy"] = strategy.value

    def mark_missing(self) -> None:
        self.metadata["failure_count"] += 1
        self.metadata["last_failure"] = _now()


@dataclass
class LocatorResult:
    """Outcome of a find_element call."""

    success: bool
    locator: Locator | None = None
    strategy_used: LocatorStrategy | None = None
    strategies_tried: list[LocatorStrategy] = field(default_factory=list)
    error_message: str | None = None
    duration_ms: float = 0


class ElementNotFoundError(Exception):
    """An element the test relies on is not on the page."""

    def __init__(self, message: str, element_name: str, page_url: str | None = None):
        super().__init__(message)
        self.element_name = element_name
        self.page_url = page_url


class MultiStrategyLocator:
    """
    Resolves an ElementConfig to a visible Playwright locator.

    Usage:
        locator = MultiStrategyLocator(page, timeout=5000)
        result = await locator.find_element(config)
        if result.success:
            await result.locator.click()
    """

    def __init__(self, page: Page, timeout: int = 5000):
        self.page = page
        self.timeout = timeout  # per strategy, milliseconds

    async def find_element(
        self,
        element_config: ElementConfig,
        timeout: int | None = None,
    ) -> LocatorResult:
        """
        Try each configured strategy until one yields a visible element.

        A strategy that times out or errors is skipped; the config's counters
        record the outcome.
        """
        started = time.monotonic()
        per_strategy = timeout or self.timeout
        tried: list[LocatorStrategy] = []
        log = logger.bind(element=element_config.name)

        for strategy, selector in element_config.ordered():
            tried.append(strategy)
            try:
                candidate = self.build_locator(strategy, selector).first
                await candidate.wait_for(state="visible", timeout=per_strategy)
            except PlaywrightTimeout:
                log.debug("strategy_missed", strategy=strategy.value, selector=selector)
                continue
            except Exception as e:
                log.warning("strategy_error", strategy=strategy.value, error=str(e))
                continue

            element_config.mark_found(strategy)
            duration_ms = _elapsed_ms(started)
            log.info("element_found", strategy=strategy.value, duration_ms=round(duration_ms, 2))
            return LocatorResult(
                success=True,
                locator=candidate,
                strategy_used=strategy,
                strategies_tried=tried,
                duration_ms=duration_ms,
            )

        element_config.mark_missing()
        duration_ms = _elapsed_ms(started)
        log.error(
            "element_not_found",
            strategies_tried=[s.value for s in tried],
            page_url=self.page.url,
            duration_ms=round(duration_ms, 2),
        )
        return LocatorResult(
            success=False,
            strategies_tried=tried,
            error_message=(
                f"Cannot locate element '{element_config.name}' "
                f"after trying {len(tried)} strategies"
            ),
            duration_ms=duration_ms,
        )

    def build_locator(self, strategy: LocatorStrategy, value: str) -> Locator:
        """Translate a strategy/value pair into a Playwright locator."""
        page = self.page
        match strategy:
            case LocatorStrategy.DATA_TESTID:
                return page.get_by_test_id(value)
            case LocatorStrategy.ID:
                return page.locator(f"[id='{value}']")
            case LocatorStrategy.ARIA_LABEL:
                return page.get_by_label(value)
            case LocatorStrategy.ARIA_ROLE:
                role, _, name = value.partition(":")
                return page.get_by_role(role, name=name) if name else page.get_by_role(role)
            case LocatorStrategy.NAME:
                return page.locator(f"[name='{value}']")
            case LocatorStrategy.PLACEHOLDER:
                return page.get_by_placeholder(value)
            case LocatorStrategy.CSS:
                return page.locator(value)
            case LocatorStrategy.TEXT:
                return page.get_by_text(value, exact=False)
            case LocatorStrategy.XPATH:
                return page.locator(f"xpath={value}")
        raise ValueError(f"Unknown locator strategy: {strategy}")

    @staticmethod
    def create_element_config(
        name: str,
        data_testid: str | None = None,
        id: str | None = None,
        aria_label: str | None = None,
        role: str | None = None,
        css: str | None = None,
        text: str | None = None,
        xpath: str | None = None,
        placeholder: str | None = None,
        element_name: str | None = None,
    ) -> ElementConfig:
        """
        Build a config from keyword selectors; empty ones are left out.

            MultiStrategyLocator.create_element_config(
                name="login_button",
                css="button[type='submit']",
                text="Login",
            )
        """
        candidates = {
            LocatorStrategy.DATA_TESTID: data_testid,
            LocatorStrategy.ID: id,
            LocatorStrategy.ARIA_LABEL: aria_label,
            LocatorStrategy.ARIA_ROLE: role,
            LocatorStrategy.NAME: element_name,
            LocatorStrategy.PLACEHOLDER: placeholder,
            LocatorStrategy.CSS: css,
            LocatorStrategy.TEXT: text,
            LocatorStrategy.XPATH: xpath,
        }
        return ElementConfig(
            name=name,
            strategies={k: v for k, v in candidates.items() if v},
        )

"""
Element assertions in the style of expect-webdriverio.

    await expect(secure_page.flash_alert).to_be_existing()
    await expect(secure_page.flash_alert).to_have_text(
        expect.string_containing("You logged into a secure area!")
    )

Every matcher polls the element until it matches or the expect timeout
runs out, so assertions tolerate pages that are still rendering.
"""

import re
from typing import Any, Awaitable, Callable, Union

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from qpilot.core.element import Element
from qpilot.core.locator import ElementNotFoundError

logger = structlog.get_logger()


class StringContaining:
    """Asymmetric matcher accepting any string that contains ``sample``."""

    def __init__(self, sample: str):
        if not isinstance(sample, str):
            raise TypeError("string_containing() expects a string")
        self.sample = sample

    def matches(self, actual: Any) -> bool:
        return isinstance(actual, str) and self.sample in actual

    def __eq__(self, other: Any) -> bool:
        return self.matches(other)

    def __repr__(self) -> str:
        return f"StringContaining({self.sample!r})"


TextMatcher = Union[str, re.Pattern, StringContaining]


def string_containing(sample: str) -> StringContaining:
    return StringContaining(sample)


def text_matches(expected: TextMatcher, actual: str | None) -> bool:
    if actual is None:
        return False
    if isinstance(expected, StringContaining):
        return expected.matches(actual)
    if isinstance(expected, re.Pattern):
        return expected.search(actual) is not None
    return actual == expected


class ExpectationError(AssertionError):
    """An expectation did not hold before the timeout expired."""

    def __init__(self, message: str, selector: str, expected: Any, actual: Any):
        super().__init__(message)
        self.selector = selector
        self.expected = expected
        self.actual = actual


class _Mismatch(Exception):
    def __init__(self, actual: Any):
        super().__init__(repr(actual))
        self.actual = actual


class ElementExpectation:
    def __init__(
        self,
        element: Element,
        negate: bool = False,
        timeout: int | None = None,
        interval: int | None = None,
    ):
        self.element = element
        self.negate = negate
        settings = element.session.settings
        self.timeout = timeout if timeout is not None else settings.expect_timeout
        self.interval = interval if interval is not None else settings.expect_interval

    @property
    def not_(self) -> "ElementExpectation":
        return ElementExpectation(
            self.element,
            negate=not self.negate,
            timeout=self.timeout,
            interval=self.interval,
        )

    async def to_be_existing(self) -> None:
        async def check() -> tuple[bool, Any]:
            exists = await self.element.is_existing()
            return exists, exists

        await self._poll(check, "to be existing", expected=True)

    async def to_be_displayed(self) -> None:
        async def check() -> tuple[bool, Any]:
            shown = await self.element.is_displayed()
            return shown, shown

        await self._poll(check, "to be displayed", expected=True)

    async def to_have_text(self, expected: TextMatcher) -> None:
        async def check() -> tuple[bool, Any]:
            try:
                actual = await self.element.get_text()
            except ElementNotFoundError:
                actual = None
            return text_matches(expected, actual), actual

        await self._poll(check, f"to have text {expected!r}", expected=expected)

    async def _poll(
        self,
        check: Callable[[], Awaitable[tuple[bool, Any]]],
        description: str,
        expected: Any,
    ) -> None:
        wording = f"not {description}" if self.negate else description
        log = logger.bind(selector=self.element.selector, expectation=wording)

        retrying = AsyncRetrying(
            stop=stop_after_delay(self.timeout / 1000),
            wait=wait_fixed(self.interval / 1000),
            retry=retry_if_exception_type(_Mismatch),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    ok, actual = await check()
                    if ok == self.negate:
                        raise _Mismatch(actual)
        except _Mismatch as e:
            log.info("expectation_failed", actual=e.actual)
            raise ExpectationError(
                f"Expected {self.element.selector} {wording}, "
                f"received {e.actual!r} after {self.timeout}ms",
                selector=self.element.selector,
                expected=expected,
                actual=e.actual,
            ) from None

        log.debug("expectation_met")


class _Expect:
    """Callable entry point; also carries the asymmetric matchers."""

    string_containing = staticmethod(string_containing)

    def __call__(
        self,
        element: Element,
        timeout: int | None = None,
        interval: int | None = None,
    ) -> ElementExpectation:
        if not isinstance(element, Element):
            raise TypeError(f"expect() needs an Element, got {type(element).__name__}")
        return ElementExpectation(element, timeout=timeout, interval=interval)


expect = _Expect()

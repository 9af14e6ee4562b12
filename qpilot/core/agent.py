"""
AgentQ - natural-language actions against a browser session.

    init_agent_q(browser)
    await q("user fill username tomsmith")
    await q("user click login button")

Each call snapshots the page, resolves the instruction to a concrete action
and executes it. A failed resolution or action raises ActionFailedError so
the surrounding test fails at that step.
"""

from dataclasses import dataclass

import structlog

from qpilot.core.browser import ActionResult, ActionType, BrowserSession, NavigationError
from qpilot.core.resolver import (
    ActionResolutionError,
    ResolvedAction,
    Resolver,
    get_resolver,
)

logger = structlog.get_logger()


class ActionFailedError(Exception):
    """A q() instruction could not be carried out."""

    def __init__(
        self,
        message: str,
        instruction: str,
        resolved: ResolvedAction | None = None,
        result: ActionResult | None = None,
    ):
        super().__init__(message)
        self.instruction = instruction
        self.resolved = resolved
        self.result = result


@dataclass
class QStep:
    instruction: str
    resolved: ResolvedAction | None
    result: ActionResult | None


class AgentQ:
    """Executes natural-language instructions in one browser session."""

    def __init__(self, session: BrowserSession, resolver: Resolver | None = None):
        self.session = session
        self.resolver = resolver or get_resolver(session.settings)
        self._history: list[QStep] = []

    async def __call__(self, instruction: str) -> ActionResult:
        return await self.q(instruction)

    async def q(self, instruction: str) -> ActionResult:
        log = logger.bind(instruction=instruction)
        log.info("q_started")

        snapshot = await self.session.snapshot()
        try:
            resolved = await self.resolver.resolve(
                instruction, snapshot, self.session.page.url
            )
        except ActionResolutionError as e:
            self._history.append(QStep(instruction, None, None))
            raise ActionFailedError(
                f"Could not resolve '{instruction}': {e}", instruction
            ) from e

        result = await self._dispatch(resolved)
        self._history.append(QStep(instruction, resolved, result))

        if not result.success:
            log.error("q_failed", action=resolved.action.value, error=result.error_message)
            raise ActionFailedError(
                f"'{instruction}' failed: {result.error_message}",
                instruction,
                resolved=resolved,
                result=result,
            )

        log.info("q_complete", action=resolved.action.value, source=resolved.source)
        return result

    async def _dispatch(self, resolved: ResolvedAction) -> ActionResult:
        """Dispatch a resolved action to the browser session."""
        session = self.session
        config = resolved.element.to_element_config() if resolved.element else None

        if resolved.action in (
            ActionType.CLICK,
            ActionType.FILL,
            ActionType.SELECT,
            ActionType.CHECK,
            ActionType.UNCHECK,
            ActionType.HOVER,
        ) and config is None:
            return ActionResult(
                success=False,
                action_type=resolved.action,
                error_message=f"Element required for {resolved.action.value} action",
            )

        match resolved.action:
            case ActionType.NAVIGATE:
                try:
                    return await session.url(resolved.value or "")
                except NavigationError as e:
                    return ActionResult(
                        success=False,
                        action_type=ActionType.NAVIGATE,
                        error_message=str(e),
                        metadata={"url": e.url},
                    )
            case ActionType.CLICK:
                return await session.click(config)
            case ActionType.FILL:
                return await session.fill(config, resolved.value or "")
            case ActionType.SELECT:
                return await session.select_option(config, resolved.value or "")
            case ActionType.CHECK:
                return await session.check(config)
            case ActionType.UNCHECK:
                return await session.uncheck(config)
            case ActionType.HOVER:
                return await session.hover(config)
            case ActionType.PRESS:
                return await session.press_key(resolved.value or "Enter", config)
            case ActionType.ASSERT_TEXT:
                return await session.assert_page_text(resolved.value or "")
            case _:
                return ActionResult(
                    success=False,
                    action_type=resolved.action,
                    error_message=f"Unsupported action type: {resolved.action.value}",
                )

    def get_history(self) -> list[QStep]:
        return self._history.copy()


_agent: AgentQ | None = None


def init_agent_q(session: BrowserSession, resolver: Resolver | None = None) -> AgentQ:
    """Bind the module-level q() to a browser session."""
    global _agent
    _agent = AgentQ(session, resolver)
    return _agent


def reset_agent_q() -> None:
    global _agent
    _agent = None


def get_agent() -> AgentQ:
    if _agent is None:
        raise RuntimeError("AgentQ not initialized. Call init_agent_q(browser) first.")
    return _agent


async def q(instruction: str) -> ActionResult:
    """Run one natural-language instruction on the bound session."""
    return await get_agent().q(instruction)

"""
Scenario Runner

Runs a natural-language scenario end to end:
1. Opens a browser session and navigates to the start page
2. Executes each instruction through AgentQ
3. Checks text expectations against page elements
4. Collects per-step results and timing data
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

import structlog
from pydantic import BaseModel, Field, model_validator

from qpilot.core.agent import ActionFailedError, AgentQ
from qpilot.core.browser import BrowserOptions, BrowserSession
from qpilot.core.expect import ExpectationError, expect, string_containing
from qpilot.core.locator import ElementNotFoundError
from qpilot.core.resolver import Resolver

logger = structlog.get_logger()


class ExecutionStatus(str, Enum):
    """Scenario execution status."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


class TextExpectation(BaseModel):
    """Assertion on one element after the instructions have run."""

    selector: str
    contains: str | None = None
    equals: str | None = None

    def describe(self) -> str:
        if self.equals is not None:
            return f"{self.selector} has text {self.equals!r}"
        if self.contains is not None:
            return f"{self.selector} contains {self.contains!r}"
        return f"{self.selector} exists"


class Scenario(BaseModel):
    """A named list of q() instructions plus expectations."""

    name: str = Field(..., min_length=1)
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    start_path: str = "/"
    instructions: list[str] = Field(default_factory=list)
    expectations: list[TextExpectation] = Field(default_factory=list)

    @model_validator(mode="after")
    def _has_work(self) -> "Scenario":
        if not self.instructions and not self.expectations:
            raise ValueError("Scenario needs at least one instruction or expectation")
        return self


LOGIN_SCENARIO = Scenario(
    name="ai-login",
    description="Login with valid credentials using natural-language instructions",
    tags=["login", "smoke"],
    start_path="login",
    instructions=[
        "user fill usernam`e tomsmith",
        "user fill password SuperSecretPassword!",
        "user click login button",
    ],
    expectations=[
        TextExpectation(selector="#flash", contains="You logged into a secure area!"),
    ],
)

BUILTIN_SCENARIOS: dict[str, Scenario] = {LOGIN_SCENARIO.name: LOGIN_SCENARIO}


@dataclass
class StepResult:
    """Result of a single step execution."""

    step_number: int
    step_description: str
    status: ExecutionStatus
    action_type: str
    duration_ms: float = 0
    error_message: str | None = None
    element_name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ScenarioResult:
    """Result of a complete scenario execution."""

    run_id: str
    scenario_name: str
    status: ExecutionStatus
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: float = 0
    step_results: list[StepResult] = field(default_factory=list)
    error_message: str | None = None
    page_url: str | None = None

    @property
    def passed_steps(self) -> int:
        return sum(1 for r in self.step_results if r.status == ExecutionStatus.PASSED)

    @property
    def failed_steps(self) -> int:
        return sum(
            1
            for r in self.step_results
            if r.status in (ExecutionStatus.FAILED, ExecutionStatus.ERROR)
        )

    @property
    def total_steps(self) -> int:
        return len(self.step_results)


class ScenarioRunner:
    """
    Orchestrates scenario execution.

    Usage:
        runner = ScenarioRunner()
        result = await runner.execute(LOGIN_SCENARIO)
    """

    def __init__(
        self,
        browser_options: BrowserOptions | None = None,
        resolver: Resolver | None = None,
        session_factory: Callable[[], BrowserSession] | None = None,
        on_step_complete: Callable[[StepResult], None] | None = None,
    ):
        """
        Args:
            browser_options: Browser configuration
            resolver: Instruction resolver; defaults to the configured one
            session_factory: Builds the browser session for each run
            on_step_complete: Callback for real-time step updates
        """
        self.browser_options = browser_options
        self.resolver = resolver
        self.session_factory = session_factory or (
            lambda: BrowserSession(self.browser_options)
        )
        self.on_step_complete = on_step_complete

    async def execute(
        self,
        scenario: Scenario,
        stop_on_failure: bool = True,
    ) -> ScenarioResult:
        run_id = str(uuid.uuid4())
        started_at = datetime.now(timezone.utc)

        log = logger.bind(run_id=run_id, scenario=scenario.name)
        log.info("scenario_started", instructions=len(scenario.instructions))

        result = ScenarioResult(
            run_id=run_id,
            scenario_name=scenario.name,
            status=ExecutionStatus.RUNNING,
            started_at=started_at,
        )

        try:
            async with self.session_factory() as browser:
                agent = AgentQ(browser, self.resolver)

                steps: list[tuple[str, str, Callable]] = [
                    (
                        f"open {scenario.start_path}",
                        "navigate",
                        lambda: browser.url(scenario.start_path),
                    )
                ]
                steps += [
                    (instruction, "q", lambda i=instruction: agent.q(i))
                    for instruction in scenario.instructions
                ]
                steps += [
                    (
                        expectation.describe(),
                        "expect",
                        lambda e=expectation: self._check(browser, e),
                    )
                    for expectation in scenario.expectations
                ]

                for number, (description, kind, run) in enumerate(steps, start=1):
                    step_result = await self._execute_step(number, description, kind, run)
                    result.step_results.append(step_result)

                    if self.on_step_complete:
                        self.on_step_complete(step_result)

                    if step_result.status != ExecutionStatus.PASSED:
                        result.error_message = result.error_message or step_result.error_message
                        if stop_on_failure:
                            log.warning("step_failed", step=number)
                            break

                result.page_url = browser.page.url

            result.status = (
                ExecutionStatus.PASSED
                if result.failed_steps == 0
                else ExecutionStatus.FAILED
            )

        except Exception as e:
            log.exception("scenario_error", error=str(e))
            result.status = ExecutionStatus.ERROR
            result.error_message = str(e)

        result.completed_at = datetime.now(timezone.utc)
        result.duration_ms = (result.completed_at - started_at).total_seconds() * 1000

        log.info(
            "scenario_completed",
            status=result.status.value,
            duration_ms=round(result.duration_ms, 2),
            passed=result.passed_steps,
            failed=result.failed_steps,
        )
        return result

    async def _execute_step(
        self,
        number: int,
        description: str,
        kind: str,
        run: Callable,
    ) -> StepResult:
        start = time.time()
        log = logger.bind(step=number, kind=kind)

        try:
            outcome = await run()
        except (ActionFailedError, ExpectationError, ElementNotFoundError) as e:
            status, error, outcome = ExecutionStatus.FAILED, str(e), None
        except Exception as e:
            log.exception("step_error", error=str(e))
            status, error, outcome = ExecutionStatus.ERROR, str(e), None
        else:
            status, error = ExecutionStatus.PASSED, None

        duration_ms = (time.time() - start) * 1000
        log.info("step_executed", status=status.value, duration_ms=round(duration_ms, 2))

        return StepResult(
            step_number=number,
            step_description=description,
            status=status,
            action_type=getattr(getattr(outcome, "action_type", None), "value", kind),
            duration_ms=duration_ms,
            error_message=error,
            element_name=getattr(outcome, "element_name", None),
        )

    @staticmethod
    async def _check(browser: BrowserSession, expectation: TextExpectation) -> None:
        target = expect(browser.element(expectation.selector))
        if expectation.equals is not None:
            await target.to_have_text(expectation.equals)
        elif expectation.contains is not None:
            await target.to_have_text(string_containing(expectation.contains))
        else:
            await target.to_be_existing()

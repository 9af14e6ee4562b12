"""
Scenario execution endpoints.
"""

from fastapi import APIRouter, HTTPException

from qpilot.core.browser import BrowserOptions, BrowserSession, BrowserType
from qpilot.core.runner import BUILTIN_SCENARIOS, Scenario, ScenarioResult, ScenarioRunner
from qpilot.config import settings
from qpilot.schemas.scenario import (
    ScenarioRunRequest,
    ScenarioRunResponse,
    StepResultSchema,
)

router = APIRouter()

# In-memory run history (lost on restart)
_run_history: dict[str, ScenarioRunResponse] = {}


def get_run_history() -> dict[str, ScenarioRunResponse]:
    return _run_history


def _result_to_response(result: ScenarioResult) -> ScenarioRunResponse:
    """Convert ScenarioResult to API response."""
    return ScenarioRunResponse(
        run_id=result.run_id,
        scenario_name=result.scenario_name,
        status=result.status,
        started_at=result.started_at,
        completed_at=result.completed_at,
        duration_ms=result.duration_ms,
        passed_steps=result.passed_steps,
        failed_steps=result.failed_steps,
        total_steps=result.total_steps,
        step_results=[
            StepResultSchema(
                step_number=s.step_number,
                description=s.step_description,
                status=s.status,
                action_type=s.action_type,
                duration_ms=s.duration_ms,
                error_message=s.error_message,
                element_name=s.element_name,
            )
            for s in result.step_results
        ],
        error_message=result.error_message,
        page_url=result.page_url,
    )


@router.get("", response_model=list[Scenario])
async def list_scenarios():
    """
    List the built-in scenarios.
    """
    return list(BUILTIN_SCENARIOS.values())


@router.post("/run", response_model=ScenarioRunResponse)
async def run_scenario(request: ScenarioRunRequest):
    """
    Run a scenario and return per-step results.

    Either provide scenario_name to run a built-in scenario, or scenario for inline execution.
    """
    if request.scenario is not None:
        scenario = request.scenario
    elif request.scenario_name:
        if request.scenario_name not in BUILTIN_SCENARIOS:
            raise HTTPException(
                status_code=404, detail=f"Scenario {request.scenario_name} not found"
            )
        scenario = BUILTIN_SCENARIOS[request.scenario_name]
    else:
        raise HTTPException(
            status_code=400, detail="Either scenario_name or scenario must be provided"
        )

    try:
        browser_type = BrowserType(request.browser)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unsupported browser {request.browser}")

    options = BrowserOptions(
        browser_type=browser_type,
        headless=request.headless,
        timeout=request.timeout,
        locator_timeout=settings.locator_timeout,
    )
    base_url = request.base_url or settings.base_url

    runner = ScenarioRunner(
        options,
        session_factory=lambda: BrowserSession(options, base_url=base_url),
    )
    result = await runner.execute(scenario, stop_on_failure=request.stop_on_failure)

    response = _result_to_response(result)
    _run_history[response.run_id] = response
    return response


@router.get("/history", response_model=list[ScenarioRunResponse])
async def list_runs(limit: int = 20):
    """
    Get run history, newest first.
    """
    runs = sorted(_run_history.values(), key=lambda r: r.started_at, reverse=True)
    return runs[:limit]


@router.get("/history/{run_id}", response_model=ScenarioRunResponse)
async def get_run(run_id: str):
    """
    Get details of a specific run.
    """
    if run_id not in _run_history:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return _run_history[run_id]

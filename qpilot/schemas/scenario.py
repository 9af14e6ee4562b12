"""
Pydantic schemas for scenario and instruction API endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from qpilot.core.runner import ExecutionStatus, Scenario


class ScenarioRunRequest(BaseModel):
    """Request to run a scenario."""

    scenario_name: str | None = Field(None, description="Name of a built-in scenario")
    scenario: Scenario | None = Field(None, description="Inline scenario to run")
    base_url: str | None = Field(None, description="Override the configured base URL")
    browser: str = Field(default="chromium", description="Browser type")
    headless: bool = Field(default=True, description="Run in headless mode")
    timeout: int = Field(default=30000, ge=1000, le=120000, description="Timeout in ms")
    stop_on_failure: bool = Field(default=True, description="Stop on first failure")

    model_config = {"json_schema_extra": {"example": {
        "scenario": {
            "name": "ai-login",
            "start_path": "login",
            "instructions": [
                "user fill username tomsmith",
                "user fill password SuperSecretPassword!",
                "user click login button",
            ],
            "expectations": [
                {"selector": "#flash", "contains": "You logged into a secure area!"}
            ],
        },
        "headless": True,
    }}}


class StepResultSchema(BaseModel):
    """Result of a single step execution."""

    step_number: int
    description: str
    status: ExecutionStatus
    action_type: str
    duration_ms: float
    error_message: str | None = None
    element_name: str | None = None


class ScenarioRunResponse(BaseModel):
    """Response for a scenario run."""

    run_id: str
    scenario_name: str
    status: ExecutionStatus
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: float
    passed_steps: int
    failed_steps: int
    total_steps: int
    step_results: list[StepResultSchema]
    error_message: str | None = None
    page_url: str | None = None


class InstructionParseRequest(BaseModel):
    """Request to parse a q() instruction."""

    instruction: str = Field(..., min_length=1, description="Natural-language instruction")

    model_config = {"json_schema_extra": {"example": {
        "instruction": "user fill username tomsmith"
    }}}


class InstructionParseResponse(BaseModel):
    """Structured form of an instruction."""

    instruction: str
    action: str
    target: str | None = None
    value: str | None = None
    role_hint: str | None = None

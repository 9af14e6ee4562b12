"""
Pydantic schemas for API request/response.
"""

from qpilot.schemas.scenario import (
    ScenarioRunRequest,
    ScenarioRunResponse,
    StepResultSchema,
    InstructionParseRequest,
    InstructionParseResponse,
)

__all__ = [
    "ScenarioRunRequest",
    "ScenarioRunResponse",
    "StepResultSchema",
    "InstructionParseRequest",
    "InstructionParseResponse",
]

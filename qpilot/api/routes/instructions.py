"""
Instruction parsing endpoints.
"""

from fastapi import APIRouter, HTTPException

from qpilot.core.instruction import InstructionParseError, parse_instruction
from qpilot.schemas.scenario import InstructionParseRequest, InstructionParseResponse

router = APIRouter()


@router.post("/parse", response_model=InstructionParseResponse)
async def parse(request: InstructionParseRequest):
    """
    Parse a q() instruction with the rule-based grammar.

    Useful for checking how an instruction will be read before putting it
    in a scenario; the LLM resolver is not consulted.
    """
    try:
        parsed = parse_instruction(request.instruction)
    except InstructionParseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return InstructionParseResponse(
        instruction=parsed.raw,
        action=parsed.action.value,
        target=parsed.target,
        value=parsed.value,
        role_hint=parsed.role_hint,
    )

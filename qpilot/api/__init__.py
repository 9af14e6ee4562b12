"""
API routes package.
"""

from fastapi import APIRouter

from qpilot.api.routes import health, scenarios, instructions

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(scenarios.router, prefix="/scenarios", tags=["Scenarios"])
api_router.include_router(instructions.router, prefix="/instructions", tags=["Instructions"])

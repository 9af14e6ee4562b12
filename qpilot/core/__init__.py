"""
Core automation components.
"""

from qpilot.core.locator import MultiStrategyLocator, LocatorStrategy, ElementNotFoundError
from qpilot.core.browser import BrowserSession, BrowserOptions, NavigationError
from qpilot.core.element import Element
from qpilot.core.expect import expect, string_containing, ExpectationError
from qpilot.core.resolver import get_resolver, ActionResolutionError
from qpilot.core.agent import AgentQ, init_agent_q, q, ActionFailedError
from qpilot.core.runner import ScenarioRunner, Scenario

__all__ = [
    "MultiStrategyLocator",
    "LocatorStrategy",
    "ElementNotFoundError",
    "BrowserSession",
    "BrowserOptions",
    "NavigationError",
    "Element",
    "expect",
    "string_containing",
    "ExpectationError",
    "get_resolver",
    "ActionResolutionError",
    "AgentQ",
    "init_agent_q",
    "q",
    "ActionFailedError",
    "ScenarioRunner",
    "Scenario",
]

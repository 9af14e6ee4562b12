"""
Shared fixtures and pytest configuration.
"""

import pytest

from qpilot.core.agent import reset_agent_q
from qpilot.core.browser import BrowserOptions, BrowserSession
from qpilot.core.resolver import clear_cache

from tests.fakes import FakeLoginSite, make_settings


def pytest_addoption(parser):
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="run end-to-end specs against the live site",
    )


def pytest_collection_modifyitems(config, items):
    """Skip e2e specs unless explicitly requested."""
    if config.getoption("--run-e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="needs --run-e2e (real browser and network)")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def login_site():
    return FakeLoginSite()


@pytest.fixture
def session(settings, login_site):
    """BrowserSession bound to the in-memory login site."""
    browser = BrowserSession(
        BrowserOptions.from_settings(settings),
        settings=settings,
    )
    browser.attach(login_site)
    return browser


@pytest.fixture(autouse=True)
def _isolate_globals():
    yield
    reset_agent_q()
    clear_cache()

"""
Fixtures for the end-to-end login specs.

These drive a real Playwright browser against the configured base URL
(the-internet.herokuapp.com by default).
"""

import pytest

from qpilot.config import get_settings
from qpilot.core.agent import init_agent_q
from qpilot.core.browser import BrowserSession
from qpilot.log import configure_logging
from qpilot.pages import LoginPage, SecurePage


@pytest.fixture(scope="session", autouse=True)
def _logging():
    configure_logging(get_settings())


@pytest.fixture
async def browser():
    async with BrowserSession(settings=get_settings()) as session:
        yield session


@pytest.fixture
def q(browser):
    return init_agent_q(browser)


@pytest.fixture
def login_page(browser):
    return LoginPage(browser)


@pytest.fixture
def secure_page(browser):
    return SecurePage(browser)

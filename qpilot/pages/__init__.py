"""
Page objects for the-internet.herokuapp.com login flow.
"""

from qpilot.pages.page import Page
from qpilot.pages.login_page import LoginPage
from qpilot.pages.secure_page import SecurePage

__all__ = [
    "Page",
    "LoginPage",
    "SecurePage",
]

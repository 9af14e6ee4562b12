"""
Secure area page object.
"""

from qpilot.core.element import Element
from qpilot.pages.page import Page


class SecurePage(Page):
    """The page shown after a successful login."""

    path = "secure"

    @property
    def flash_alert(self) -> Element:
        return self.element("#flash", name="flash_alert")

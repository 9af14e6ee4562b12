"""
Login page object.
"""

from qpilot.core.element import Element
from qpilot.pages.page import Page


class LoginPage(Page):
    """Selectors and actions of the /login page."""

    path = "login"

    @property
    def input_username(self) -> Element:
        return self.element("#username", name="username")

    @property
    def input_password(self) -> Element:
        return self.element("#password", name="password")

    @property
    def btn_submit(self) -> Element:
        return self.element('button[type="submit"]', name="login_button")

    async def login(self, username: str, password: str) -> None:
        """Fill the credentials and submit the form."""
        await self.input_username.set_value(username)
        await self.input_password.set_value(password)
        await self.btn_submit.click()

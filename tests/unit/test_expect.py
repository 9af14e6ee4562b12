"""
Tests for qpilot/core/expect.py
"""

import asyncio
import re

import pytest

from qpilot.core.expect import (
    ExpectationError,
    StringContaining,
    expect,
    string_containing,
    text_matches,
)


def _show_flash(site, text="You logged into a secure area!\n×"):
    site.elements.append({"tag": "div", "id": "flash", "text": text})


class TestMatchers:
    def test_string_containing(self):
        matcher = expect.string_containing("secure area")
        assert isinstance(matcher, StringContaining)
        assert matcher.matches("You logged into a secure area!")
        assert not matcher.matches("Your username is invalid!")
        assert not matcher.matches(None)

    def test_string_containing_compares_equal(self):
        assert "You logged into a secure area!" == string_containing("logged into")

    def test_string_containing_rejects_non_strings(self):
        with pytest.raises(TypeError):
            string_containing(42)

    def test_text_matches_exact_regex_and_none(self):
        assert text_matches("Login", "Login")
        assert not text_matches("Login", "Login Page")
        assert text_matches(re.compile(r"secure\s+area"), "a secure  area")
        assert not text_matches("anything", None)


class TestToBeExisting:
    async def test_passes_when_present(self, session, login_site):
        _show_flash(login_site)
        await expect(session.element("#flash")).to_be_existing()

    async def test_fails_when_missing(self, session):
        with pytest.raises(ExpectationError) as exc_info:
            await expect(session.element("#flash")).to_be_existing()

        error = exc_info.value
        assert isinstance(error, AssertionError)
        assert error.selector == "#flash"
        assert "to be existing" in str(error)

    async def test_waits_for_late_element(self, session, login_site):
        async def render_later():
            await asyncio.sleep(0.05)
            _show_flash(login_site)

        task = asyncio.create_task(render_later())
        await expect(session.element("#flash"), timeout=1000).to_be_existing()
        await task

    async def test_negated(self, session):
        await expect(session.element("#flash")).not_.to_be_existing()


class TestToBeDisplayed:
    async def test_passes_when_visible(self, session, login_site):
        _show_flash(login_site)
        await expect(session.element("#flash")).to_be_displayed()

    async def test_fails_when_hidden(self, session, login_site):
        _show_flash(login_site)
        login_site.elements[-1]["visible"] = False

        with pytest.raises(ExpectationError, match="to be displayed"):
            await expect(session.element("#flash")).to_be_displayed()

    async def test_hidden_element_still_exists(self, session, login_site):
        _show_flash(login_site)
        login_site.elements[-1]["visible"] = False

        await expect(session.element("#flash")).to_be_existing()
        await expect(session.element("#flash")).not_.to_be_displayed()


class TestToHaveText:
    async def test_string_containing(self, session, login_site):
        _show_flash(login_site)
        await expect(session.element("#flash")).to_have_text(
            expect.string_containing("You logged into a secure area!")
        )

    async def test_exact_text_is_trimmed(self, session, login_site):
        _show_flash(login_site, text="  Login  ")
        await expect(session.element("#flash")).to_have_text("Login")

    async def test_mismatch_reports_actual_text(self, session, login_site):
        _show_flash(login_site, text="Your username is invalid!\n×")

        with pytest.raises(ExpectationError) as exc_info:
            await expect(session.element("#flash")).to_have_text(
                expect.string_containing("You logged into a secure area!")
            )

        assert exc_info.value.actual == "Your username is invalid!\n×"
        assert "received" in str(exc_info.value)

    async def test_missing_element_fails_with_none(self, session):
        with pytest.raises(ExpectationError) as exc_info:
            await expect(session.element("#flash")).to_have_text("anything")
        assert exc_info.value.actual is None

    async def test_negated_text(self, session, login_site):
        _show_flash(login_site, text="Your username is invalid!")
        await expect(session.element("#flash")).not_.to_have_text(
            string_containing("secure area")
        )


def test_expect_requires_element():
    with pytest.raises(TypeError, match="needs an Element"):
        expect("#flash")

"""
Tests for qpilot/core/resolver.py
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from qpilot.core.agent import AgentQ
from qpilot.core.browser import ActionType
from qpilot.core.instruction import parse_instruction
from qpilot.core.locator import LocatorStrategy
from qpilot.core.resolver import (
    ActionResolutionError,
    FallbackResolver,
    LLMResolver,
    RuleBasedResolver,
    get_resolver,
    locator_for,
    score_candidate,
)

from tests.fakes import make_settings

LOGIN_SNAPSHOT = [
    {"tag": "input", "id": "username", "name": "username", "type": "text", "label": "Username"},
    {"tag": "input", "id": "password", "name": "password", "type": "password", "label": "Password"},
    {"tag": "button", "type": "submit", "text": "Login"},
    {"tag": "a", "text": "Elemental Selenium"},
]

LOGIN_URL = "https://the-internet.herokuapp.com/login"


class TestScoring:
    def test_id_match_beats_label_only(self):
        parsed = parse_instruction("fill username tomsmith")
        assert score_candidate(parsed, LOGIN_SNAPSHOT[0]) > score_candidate(
            parsed, LOGIN_SNAPSHOT[1]
        )

    def test_split_words_match_joined_identifier(self):
        parsed = parse_instruction("fill user name tomsmith")
        assert score_candidate(parsed, LOGIN_SNAPSHOT[0]) >= 10

    def test_camel_case_identifier(self):
        parsed = parse_instruction("fill first name John")
        assert score_candidate(parsed, {"tag": "input", "id": "firstName"}) >= 10

    def test_unrelated_element_scores_zero(self):
        parsed = parse_instruction("fill username tomsmith")
        assert score_candidate(parsed, LOGIN_SNAPSHOT[3]) == 0


class TestLocatorFor:
    def test_button_gets_role_and_css(self):
        locator = locator_for(LOGIN_SNAPSHOT[2], "login_button")
        config = locator.to_element_config()
        assert config.strategies[LocatorStrategy.ARIA_ROLE] == "button:Login"
        assert config.strategies[LocatorStrategy.CSS] == "button[type='submit']"
        assert config.strategies[LocatorStrategy.TEXT] == "Login"

    def test_input_gets_id_and_name(self):
        config = locator_for(LOGIN_SNAPSHOT[0], "username").to_element_config()
        assert config.strategies[LocatorStrategy.ID] == "username"
        assert config.strategies[LocatorStrategy.NAME] == "username"
        assert LocatorStrategy.TEXT not in config.strategies


class TestRuleBasedResolver:
    async def test_fill_username_with_typo(self):
        resolved = await RuleBasedResolver().resolve(
            "user fill usernam`e tomsmith", LOGIN_SNAPSHOT, LOGIN_URL
        )
        assert resolved.action == ActionType.FILL
        assert resolved.element.id == "username"
        assert resolved.value == "tomsmith"
        assert resolved.source == "rules"

    async def test_fill_password(self):
        resolved = await RuleBasedResolver().resolve(
            "user fill password SuperSecretPassword!", LOGIN_SNAPSHOT
        )
        assert resolved.element.id == "password"
        assert resolved.value == "SuperSecretPassword!"

    async def test_click_login_button(self):
        resolved = await RuleBasedResolver().resolve("user click login button", LOGIN_SNAPSHOT)
        assert resolved.action == ActionType.CLICK
        assert resolved.element.role == "button:Login"
        assert resolved.element.name == "login_button"

    async def test_fill_ignores_buttons(self):
        snapshot = [
            {"tag": "button", "id": "search", "text": "Search"},
            {"tag": "input", "type": "text", "placeholder": "Search"},
        ]
        resolved = await RuleBasedResolver().resolve("fill search cats", snapshot)
        assert resolved.element.placeholder == "Search"

    async def test_navigation_needs_no_element(self):
        resolved = await RuleBasedResolver().resolve("navigate to /secure", [])
        assert resolved.action == ActionType.NAVIGATE
        assert resolved.element is None
        assert resolved.value == "/secure"

    async def test_no_matching_element(self):
        with pytest.raises(ActionResolutionError, match="No element"):
            await RuleBasedResolver().resolve("click logout button", LOGIN_SNAPSHOT)

    async def test_parse_error_becomes_resolution_error(self):
        with pytest.raises(ActionResolutionError):
            await RuleBasedResolver().resolve("user juggle", LOGIN_SNAPSHOT)


def _llm_reply(payload: dict) -> AsyncMock:
    return AsyncMock(return_value=(json.dumps(payload), 42))


class TestLLMResolver:
    async def test_resolves_from_json_reply(self):
        resolver = LLMResolver(make_settings(openai_api_key="sk-test", q_resolver="llm"))
        reply = {
            "action": "fill",
            "element": {"name": "username", "id": "username"},
            "value": "tomsmith",
            "confidence": 0.9,
        }
        with patch.object(LLMResolver, "_call_openai", _llm_reply(reply)):
            resolved = await resolver.resolve("user fill usernam`e tomsmith", LOGIN_SNAPSHOT, LOGIN_URL)

        assert resolved.source == "llm"
        assert resolved.action == ActionType.FILL
        assert resolved.element.id == "username"
        assert resolved.confidence == 0.9

    async def test_prompt_contains_instruction_and_snapshot(self):
        resolver = LLMResolver(make_settings(openai_api_key="sk-test"))
        call = _llm_reply({"action": "click", "element": {"name": "login_button", "text": "Login"}})
        with patch.object(LLMResolver, "_call_openai", call):
            await resolver.resolve("user click login button", LOGIN_SNAPSHOT, LOGIN_URL)

        messages = call.await_args.args[0]
        assert messages[0]["role"] == "system"
        assert "user click login button" in messages[1]["content"]
        assert '"id": "password"' in messages[1]["content"]
        assert LOGIN_URL in messages[1]["content"]

    async def test_results_are_cached(self):
        resolver = LLMResolver(make_settings(openai_api_key="sk-test"))
        call = _llm_reply({"action": "navigate", "value": "/login"})
        with patch.object(LLMResolver, "_call_openai", call):
            await resolver.resolve("open the login page", [], LOGIN_URL)
            await resolver.resolve("open the login page", [], LOGIN_URL)

        assert call.await_count == 1

    async def test_invalid_json(self):
        resolver = LLMResolver(make_settings(openai_api_key="sk-test"))
        with patch.object(LLMResolver, "_call_openai", AsyncMock(return_value=("not json", 5))):
            with pytest.raises(ActionResolutionError, match="parse"):
                await resolver.resolve("click login", LOGIN_SNAPSHOT)

    async def test_element_action_without_element(self):
        resolver = LLMResolver(make_settings(openai_api_key="sk-test"))
        with patch.object(LLMResolver, "_call_openai", _llm_reply({"action": "click"})):
            with pytest.raises(ActionResolutionError, match="without an element"):
                await resolver.resolve("click login", LOGIN_SNAPSHOT)

    async def test_element_without_selector(self):
        resolver = LLMResolver(make_settings(openai_api_key="sk-test"))
        reply = {"action": "fill", "element": {"name": "username"}, "value": "tomsmith"}
        with patch.object(LLMResolver, "_call_openai", _llm_reply(reply)):
            with pytest.raises(ActionResolutionError, match="no selector"):
                await resolver.resolve("user fill username tomsmith", LOGIN_SNAPSHOT)

    async def test_api_failure(self):
        resolver = LLMResolver(make_settings(openai_api_key="sk-test"))
        failing = AsyncMock(side_effect=RuntimeError("rate limited"))
        with patch.object(LLMResolver, "_call_openai", failing):
            with pytest.raises(ActionResolutionError, match="LLM call failed"):
                await resolver.resolve("click login", LOGIN_SNAPSHOT)


class TestFallbackResolver:
    async def test_falls_back_to_rules(self):
        primary = LLMResolver(make_settings(openai_api_key="sk-test"))
        resolver = FallbackResolver(primary, RuleBasedResolver())
        failing = AsyncMock(side_effect=RuntimeError("offline"))

        with patch.object(LLMResolver, "_call_openai", failing):
            resolved = await resolver.resolve("user click login button", LOGIN_SNAPSHOT)

        assert resolved.source == "rules"
        assert resolved.element.role == "button:Login"

    async def test_selectorless_llm_element_falls_back(self, session, login_site):
        primary = LLMResolver(make_settings(openai_api_key="sk-test"))
        agent = AgentQ(session, FallbackResolver(primary, RuleBasedResolver()))
        reply = {"action": "fill", "element": {"name": "username"}, "value": "tomsmith"}

        with patch.object(LLMResolver, "_call_openai", _llm_reply(reply)):
            result = await agent.q("user fill username tomsmith")

        assert result.success
        assert ("fill", "username", "tomsmith") in login_site.actions


class TestGetResolver:
    def test_rules(self):
        assert isinstance(get_resolver(make_settings(q_resolver="rules")), RuleBasedResolver)

    def test_llm(self):
        assert isinstance(get_resolver(make_settings(q_resolver="llm")), LLMResolver)

    def test_auto_without_key_uses_rules(self):
        resolver = get_resolver(make_settings(q_resolver="auto", openai_api_key=""))
        assert isinstance(resolver, RuleBasedResolver)

    def test_auto_with_key_falls_back(self):
        resolver = get_resolver(make_settings(q_resolver="auto", openai_api_key="sk-test"))
        assert isinstance(resolver, FallbackResolver)

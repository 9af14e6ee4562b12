"""
Tests for qpilot/core/instruction.py
"""

import pytest

from qpilot.core.browser import ActionType
from qpilot.core.instruction import (
    InstructionParseError,
    parse_instruction,
    tokenize,
)


class TestTokenize:
    def test_backticks_inside_words_are_dropped(self):
        assert tokenize("user fill usernam`e tomsmith") == [
            ("user", False),
            ("fill", False),
            ("username", False),
            ("tomsmith", False),
        ]

    def test_quoted_segments_are_single_tokens(self):
        tokens = tokenize("fill 'first name' \"John Doe\"")
        assert tokens[1] == ("first name", True)
        assert tokens[2] == ("John Doe", True)

    def test_apostrophe_inside_word_is_kept(self):
        assert tokenize("fill surname O'Brien")[-1] == ("O'Brien", False)


class TestLoginInstructions:
    def test_fill_username_with_typo(self):
        parsed = parse_instruction("user fill usernam`e tomsmith")
        assert parsed.action == ActionType.FILL
        assert parsed.target == "username"
        assert parsed.value == "tomsmith"

    def test_fill_password_keeps_value_case(self):
        parsed = parse_instruction("user fill password SuperSecretPassword!")
        assert parsed.action == ActionType.FILL
        assert parsed.target == "password"
        assert parsed.value == "SuperSecretPassword!"

    def test_click_login_button(self):
        parsed = parse_instruction("user click login button")
        assert parsed.action == ActionType.CLICK
        assert parsed.target == "login"
        assert parsed.role_hint == "button"


class TestGrammar:
    def test_subject_is_optional(self):
        assert parse_instruction("click login button").target == "login"

    def test_verbs_are_case_insensitive(self):
        assert parse_instruction("User CLICK Login button").action == ActionType.CLICK

    def test_fill_with_separator(self):
        parsed = parse_instruction("fill the username field with tomsmith")
        assert parsed.target == "username"
        assert parsed.value == "tomsmith"

    def test_enter_value_into_target(self):
        parsed = parse_instruction("user enter tomsmith into username")
        assert parsed.action == ActionType.FILL
        assert parsed.target == "username"
        assert parsed.value == "tomsmith"

    def test_fill_target_containing_preposition_keeps_last_token_value(self):
        parsed = parse_instruction("user fill email on signup form bob@example.com")
        assert parsed.target == "email signup form"
        assert parsed.value == "bob@example.com"

    def test_fill_does_not_read_into_as_value_first(self):
        parsed = parse_instruction("fill sign in name tomsmith")
        assert parsed.target == "sign name"
        assert parsed.value == "tomsmith"

    def test_quoted_value(self):
        parsed = parse_instruction("type 'hello world' into search box")
        assert parsed.target == "search"
        assert parsed.value == "hello world"

    def test_navigate_to_path(self):
        parsed = parse_instruction("user navigate to /login")
        assert parsed.action == ActionType.NAVIGATE
        assert parsed.value == "/login"
        assert parsed.target is None

    def test_go_to_url(self):
        parsed = parse_instruction("go to https://the-internet.herokuapp.com/login")
        assert parsed.action == ActionType.NAVIGATE
        assert parsed.value == "https://the-internet.herokuapp.com/login"

    def test_press_key(self):
        parsed = parse_instruction("user press enter")
        assert parsed.action == ActionType.PRESS
        assert parsed.value == "Enter"
        assert parsed.target is None

    def test_press_key_on_element(self):
        parsed = parse_instruction("press Tab on username")
        assert parsed.action == ActionType.PRESS
        assert parsed.value == "Tab"
        assert parsed.target == "username"

    def test_press_non_key_is_a_click(self):
        parsed = parse_instruction("press the login button")
        assert parsed.action == ActionType.CLICK
        assert parsed.target == "login"

    def test_select_option_from_dropdown(self):
        parsed = parse_instruction("select Option 1 from the dropdown")
        assert parsed.action == ActionType.SELECT
        assert parsed.value == "Option 1"
        assert parsed.role_hint == "combobox"

    def test_check_checkbox(self):
        parsed = parse_instruction("check remember me checkbox")
        assert parsed.action == ActionType.CHECK
        assert parsed.target == "remember me"
        assert parsed.role_hint == "checkbox"

    def test_should_see_text(self):
        parsed = parse_instruction("user should see You logged into a secure area!")
        assert parsed.action == ActionType.ASSERT_TEXT
        assert parsed.value == "You logged into a secure area!"

    def test_role_hint_alone_is_a_valid_target(self):
        parsed = parse_instruction("click the button")
        assert parsed.target is None
        assert parsed.role_hint == "button"


class TestParseErrors:
    @pytest.mark.parametrize("instruction", ["", "   ", "user"])
    def test_empty_or_verbless(self, instruction):
        with pytest.raises(InstructionParseError):
            parse_instruction(instruction)

    def test_unknown_verb(self):
        with pytest.raises(InstructionParseError, match="Unknown action verb"):
            parse_instruction("user juggle the login button")

    def test_fill_without_value(self):
        with pytest.raises(InstructionParseError, match="target and a value"):
            parse_instruction("user fill username")

    def test_click_without_target(self):
        with pytest.raises(InstructionParseError, match="needs a target"):
            parse_instruction("user click")

    def test_navigate_without_url(self):
        with pytest.raises(InstructionParseError):
            parse_instruction("navigate to")

    def test_error_keeps_instruction(self):
        with pytest.raises(InstructionParseError) as exc_info:
            parse_instruction("user dance")
        assert exc_info.value.instruction == "user dance"

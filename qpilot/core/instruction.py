"""
Rule-based parsing of q() instructions.

Grammar (case-insensitive verbs, values keep their case):

    [user] fill <target words> <value>
    [user] fill <target words> with <value>
    [user] enter <value> into <target words>
    [user] click <target words>
    [user] press <Key> [on <target words>]
    [user] navigate to <url or path>
    [user] hover | check | uncheck <target words>
    [user] select <option> from <target words>
    [user] should see <text>

Quoted segments ('...' or "...") are single tokens. Backticks inside a word
are typos and are removed.
"""

import re

from pydantic import BaseModel

from qpilot.core.browser import ActionType


class InstructionParseError(ValueError):
    """The instruction does not follow the q() grammar."""

    def __init__(self, message: str, instruction: str):
        super().__init__(message)
        self.instruction = instruction


_TOKEN_RE = re.compile(r"'([^']*)'|\"([^\"]*)\"|(\S+)")

SUBJECTS = {"user", "i"}

VERBS: dict[str, ActionType] = {
    "fill": ActionType.FILL,
    "type": ActionType.FILL,
    "enter": ActionType.FILL,
    "input": ActionType.FILL,
    "set": ActionType.FILL,
    "click": ActionType.CLICK,
    "tap": ActionType.CLICK,
    "press": ActionType.CLICK,
    "navigate": ActionType.NAVIGATE,
    "open": ActionType.NAVIGATE,
    "visit": ActionType.NAVIGATE,
    "goto": ActionType.NAVIGATE,
    "go": ActionType.NAVIGATE,
    "hover": ActionType.HOVER,
    "check": ActionType.CHECK,
    "tick": ActionType.CHECK,
    "uncheck": ActionType.UNCHECK,
    "untick": ActionType.UNCHECK,
    "select": ActionType.SELECT,
    "choose": ActionType.SELECT,
    "see": ActionType.ASSERT_TEXT,
    "verify": ActionType.ASSERT_TEXT,
}

KEY_NAMES = {
    "enter": "Enter",
    "return": "Enter",
    "tab": "Tab",
    "escape": "Escape",
    "esc": "Escape",
    "space": "Space",
    "backspace": "Backspace",
    "delete": "Delete",
    "arrowup": "ArrowUp",
    "arrowdown": "ArrowDown",
    "arrowleft": "ArrowLeft",
    "arrowright": "ArrowRight",
    "home": "Home",
    "end": "End",
    "pageup": "PageUp",
    "pagedown": "PageDown",
}

ROLE_HINTS = {"button", "link", "checkbox", "dropdown"}

FILLER_WORDS = {
    "the", "a", "an", "field", "input", "box", "textbox", "into", "in", "on",
    "to", "at", "with", "as", "from", "of", "element",
}

VALUE_SEPARATORS = {"with", "as"}
# Verbs that take the value first: "enter tomsmith into username"
VALUE_FIRST_VERBS = {
    "enter": "into",
    "type": "into",
    "input": "into",
    "select": "from",
    "choose": "from",
}


class ParsedInstruction(BaseModel):
    """Structured form of a natural-language instruction."""

    raw: str
    action: ActionType
    target: str | None = None
    value: str | None = None
    role_hint: str | None = None

    @property
    def target_words(self) -> list[str]:
        return self.target.split() if self.target else []


def tokenize(instruction: str) -> list[tuple[str, bool]]:
    """Split into (token, was_quoted) pairs."""
    tokens: list[tuple[str, bool]] = []
    for single, double, bare in _TOKEN_RE.findall(instruction):
        if bare:
            cleaned = bare.replace("`", "")
            if cleaned:
                tokens.append((cleaned, False))
        else:
            tokens.append((single or double, True))
    return tokens


def _split_at(tokens: list[tuple[str, bool]], separators: set[str]) -> int | None:
    for i, (tok, quoted) in enumerate(tokens):
        if not quoted and tok.lower() in separators and 0 < i < len(tokens) - 1:
            return i
    return None


def _join(tokens: list[tuple[str, bool]]) -> str:
    return " ".join(tok for tok, _ in tokens)


def _clean_target(tokens: list[tuple[str, bool]]) -> tuple[str | None, str | None]:
    """Lowercase target words without filler; pull out a role hint."""
    words: list[str] = []
    role_hint = None
    for tok, quoted in tokens:
        lowered = tok.lower()
        if not quoted and lowered in ROLE_HINTS:
            role_hint = "combobox" if lowered == "dropdown" else lowered
            continue
        if not quoted and lowered in FILLER_WORDS:
            continue
        words.append(lowered)
    return (" ".join(words) or None), role_hint


def parse_instruction(instruction: str) -> ParsedInstruction:
    """
    Parse a q() instruction.

    Raises:
        InstructionParseError: empty instruction, unknown verb or missing parts
    """
    tokens = tokenize(instruction or "")
    if not tokens:
        raise InstructionParseError("Instruction is empty", instruction)

    while tokens and not tokens[0][1] and tokens[0][0].lower() in SUBJECTS | {"should"}:
        tokens = tokens[1:]
    if not tokens:
        raise InstructionParseError("Instruction has no action verb", instruction)

    verb = tokens[0][0].lower()
    rest = tokens[1:]
    if verb not in VERBS:
        raise InstructionParseError(f"Unknown action verb '{tokens[0][0]}'", instruction)
    action = VERBS[verb]

    match action:
        case ActionType.NAVIGATE:
            if rest and rest[0][0].lower() == "to":
                rest = rest[1:]
            if not rest:
                raise InstructionParseError("Navigation needs a URL or path", instruction)
            return ParsedInstruction(raw=instruction, action=action, value=_join(rest))

        case ActionType.ASSERT_TEXT:
            if rest and rest[0][0].lower() == "that":
                rest = rest[1:]
            if not rest:
                raise InstructionParseError("Nothing to look for", instruction)
            return ParsedInstruction(raw=instruction, action=action, value=_join(rest))

        case ActionType.FILL | ActionType.SELECT:
            return _parse_with_value(instruction, action, verb, rest)

    if verb == "press" and rest and rest[0][0].lower() in KEY_NAMES:
        key = KEY_NAMES[rest[0][0].lower()]
        target, role_hint = _clean_target(rest[1:])
        return ParsedInstruction(
            raw=instruction,
            action=ActionType.PRESS,
            target=target,
            value=key,
            role_hint=role_hint,
        )

    target, role_hint = _clean_target(rest)
    if not target and not role_hint:
        raise InstructionParseError(f"'{verb}' needs a target element", instruction)
    return ParsedInstruction(
        raw=instruction, action=action, target=target, role_hint=role_hint
    )


def _parse_with_value(
    instruction: str,
    action: ActionType,
    verb: str,
    rest: list[tuple[str, bool]],
) -> ParsedInstruction:
    # "fill username with tomsmith"
    split = _split_at(rest, VALUE_SEPARATORS)
    if split is not None:
        target_tokens, value_tokens = rest[:split], rest[split + 1 :]
    else:
        separator = VALUE_FIRST_VERBS.get(verb)
        split = _split_at(rest, {separator}) if separator else None
        if split is not None:
            value_tokens, target_tokens = rest[:split], rest[split + 1 :]
        elif len(rest) >= 2:
            target_tokens, value_tokens = rest[:-1], rest[-1:]
        else:
            raise InstructionParseError(
                f"'{action.value}' needs a target and a value", instruction
            )

    target, role_hint = _clean_target(target_tokens)
    if not target and not role_hint:
        raise InstructionParseError(
            f"'{action.value}' needs a target element", instruction
        )
    return ParsedInstruction(
        raw=instruction,
        action=action,
        target=target,
        value=_join(value_tokens),
        role_hint=role_hint,
    )

"""
Action Resolver - Natural Language Instruction to Browser Action

Given an instruction such as ``user fill username tomsmith`` and a snapshot
of the interactive elements on the page, decide which action to perform and
which element it targets.

Two resolvers are provided:
1. RuleBasedResolver: deterministic grammar + element scoring, no network
2. LLMResolver: asks OpenAI to pick the action and element

Cost controls for the LLM path:
- Small model by default (gpt-4o-mini)
- Snapshot capped and trimmed before it is sent
- Result caching for identical instruction/page pairs
"""

import hashlib
import json
import re
import time
from datetime import datetime, timezone
from typing import Any, Literal, Protocol

import structlog
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from qpilot.config import Settings, settings as default_settings
from qpilot.core.browser import ActionType
from qpilot.core.instruction import (
    InstructionParseError,
    ParsedInstruction,
    parse_instruction,
)
from qpilot.core.locator import ElementConfig, MultiStrategyLocator

logger = structlog.get_logger()

ELEMENT_ACTIONS = {
    ActionType.CLICK,
    ActionType.FILL,
    ActionType.SELECT,
    ActionType.CHECK,
    ActionType.UNCHECK,
    ActionType.HOVER,
}

VALUE_ACTIONS = {ActionType.FILL, ActionType.SELECT, ActionType.NAVIGATE, ActionType.PRESS}

NON_TEXT_INPUT_TYPES = {
    "submit", "button", "reset", "image", "checkbox", "radio", "file", "hidden",
}


class ActionResolutionError(Exception):
    """No browser action could be derived from the instruction."""

    def __init__(self, message: str, instruction: str):
        super().__init__(message)
        self.instruction = instruction


class ElementLocator(BaseModel):
    """Element locator with multiple strategies."""

    name: str
    description: str | None = None
    data_testid: str | None = None
    id: str | None = None
    aria_label: str | None = None
    role: str | None = None
    name_attribute: str | None = None
    placeholder: str | None = None
    css: str | None = None
    text: str | None = None
    xpath: str | None = None

    def to_element_config(self) -> ElementConfig:
        return MultiStrategyLocator.create_element_config(
            name=self.name,
            data_testid=self.data_testid,
            id=self.id,
            aria_label=self.aria_label,
            role=self.role,
            element_name=self.name_attribute,
            placeholder=self.placeholder,
            css=self.css,
            text=self.text,
            xpath=self.xpath,
        )


class ResolvedAction(BaseModel):
    """A concrete browser action derived from an instruction."""

    action: ActionType
    element: ElementLocator | None = None
    value: str | None = None
    source: Literal["rules", "llm"] = "rules"
    confidence: float = 1.0


class Resolver(Protocol):
    async def resolve(
        self,
        instruction: str,
        snapshot: list[dict[str, Any]],
        page_url: str | None = None,
    ) -> ResolvedAction: ...


def _words(value: str | None) -> list[str]:
    if not value:
        return []
    # split camelCase and separators: "userName" / "user-name" -> user name
    value = re.sub(r"([a-z])([A-Z])", r"\1 \2", value)
    return re.findall(r"[a-z0-9]+", value.lower())


def _accepts(action: ActionType, role_hint: str | None, el: dict[str, Any]) -> bool:
    """Whether a snapshot element can receive the action at all."""
    tag = el.get("tag")
    el_type = (el.get("type") or "").lower()
    role = el.get("role")

    match action:
        case ActionType.FILL:
            return tag == "textarea" or (tag == "input" and el_type not in NON_TEXT_INPUT_TYPES)
        case ActionType.CHECK | ActionType.UNCHECK:
            return el_type in ("checkbox", "radio") or role == "checkbox"
        case ActionType.SELECT:
            return tag == "select" or role in ("combobox", "listbox")
        case ActionType.CLICK:
            if role_hint == "link":
                return tag == "a" or role == "link"
            if role_hint == "button":
                return (
                    tag == "button"
                    or role == "button"
                    or (tag == "input" and el_type in ("submit", "button", "reset", "image"))
                )
    return True


def score_candidate(parsed: ParsedInstruction, el: dict[str, Any]) -> float:
    """
    Score how well a snapshot element matches the instruction target.

    Identifier matches weigh most, then accessible names, then visible text.
    """
    target_words = parsed.target_words
    phrase = " ".join(target_words)
    score = 0.0

    def field_score(value: str | None, exact: float, per_word: float) -> float:
        words = _words(value)
        if not words or not target_words:
            return 0.0
        if " ".join(words) == phrase or "".join(words) == "".join(target_words):
            return exact
        return per_word * sum(1 for w in target_words if w in words)

    score += max(
        field_score(el.get("id"), 10, 4),
        field_score(el.get("name"), 10, 4),
        field_score(el.get("test_id"), 10, 4),
    )
    score += max(
        field_score(el.get("label"), 8, 3),
        field_score(el.get("aria_label"), 8, 3),
        field_score(el.get("placeholder"), 8, 3),
    )
    score += field_score(el.get("text"), 6, 2)

    el_type = (el.get("type") or "").lower()
    if el_type and el_type in target_words:
        score += 3

    if parsed.role_hint and score == 0 and not target_words:
        # "click the button": any element of that role will do
        score += 1
    return score


def locator_for(el: dict[str, Any], name: str) -> ElementLocator:
    """Build a multi-strategy locator from a snapshot element."""
    tag = el.get("tag") or "*"
    css = tag
    if el.get("type"):
        css += f"[type='{el['type']}']"
    if el.get("name"):
        css += f"[name='{el['name']}']"

    role = None
    text = el.get("text")
    if text and (tag == "button" or el.get("role") == "button"):
        role = f"button:{text}"
    elif text and tag == "a":
        role = f"link:{text}"

    return ElementLocator(
        name=name,
        data_testid=el.get("test_id"),
        id=el.get("id"),
        aria_label=el.get("aria_label"),
        role=role,
        name_attribute=el.get("name"),
        placeholder=el.get("placeholder"),
        css=css,
        text=text if tag in ("button", "a") else None,
    )


class RuleBasedResolver:
    """
    Deterministic resolver built on the instruction grammar.
    """

    async def resolve(
        self,
        instruction: str,
        snapshot: list[dict[str, Any]],
        page_url: str | None = None,
    ) -> ResolvedAction:
        try:
            parsed = parse_instruction(instruction)
        except InstructionParseError as e:
            raise ActionResolutionError(str(e), instruction) from e

        log = logger.bind(instruction=instruction, action=parsed.action.value)

        if parsed.action not in ELEMENT_ACTIONS and not parsed.target:
            log.info("instruction_resolved", source="rules")
            return ResolvedAction(action=parsed.action, value=parsed.value)

        eligible = [el for el in snapshot if _accepts(parsed.action, parsed.role_hint, el)]
        scored = sorted(
            ((score_candidate(parsed, el), i, el) for i, el in enumerate(eligible)),
            key=lambda item: (-item[0], item[1]),
        )

        if not scored or scored[0][0] <= 0:
            log.warning("instruction_unresolved", candidates=len(eligible))
            raise ActionResolutionError(
                f"No element on the page matches '{parsed.target or parsed.role_hint}'",
                instruction,
            )

        best_score, _, best = scored[0]
        name = (parsed.target or parsed.role_hint or "element").replace(" ", "_")
        if parsed.role_hint and parsed.target:
            name = f"{name}_{parsed.role_hint}"

        log.info("instruction_resolved", source="rules", score=best_score, element=name)
        return ResolvedAction(
            action=parsed.action,
            element=locator_for(best, name),
            value=parsed.value,
            confidence=min(1.0, best_score / 10),
        )


# Simple in-memory cache keyed by model + instruction + page state
_cache: dict[str, tuple[dict, datetime]] = {}


def _get_cache_key(*parts: str) -> str:
    return hashlib.sha256("\x1f".join(parts).encode()).hexdigest()


def _get_cached(key: str, ttl: int) -> dict | None:
    if key in _cache:
        result, timestamp = _cache[key]
        age = (datetime.now(timezone.utc) - timestamp).total_seconds()
        if age < ttl:
            return result
        del _cache[key]
    return None


def _set_cache(key: str, value: dict) -> None:
    _cache[key] = (value, datetime.now(timezone.utc))


def clear_cache() -> None:
    _cache.clear()


class LLMResolver:
    """
    Resolves instructions with an OpenAI chat model.
    """

    SYSTEM_PROMPT = """You are a browser automation assistant.
You receive one natural-language instruction written by a tester and a JSON list
of the interactive elements on the current page.

Pick the single browser action that carries out the instruction.

Rules:
1. "action" is one of: navigate, click, fill, select, check, uncheck, hover, press, assert_text
2. For element actions, "element" must describe an element from the list; fill in
   every identifying field you can (id, name_attribute, data_testid, placeholder,
   aria_label, css, text) and a short snake_case "name"
3. "value" holds the text to type, the option to select, the key to press,
   the URL to open or the text to look for; otherwise null
4. Tolerate typos in the instruction
5. "confidence" is a number between 0 and 1

Output format: a JSON object with keys action, element, value, confidence."""

    def __init__(self, settings: Settings | None = None, client: AsyncOpenAI | None = None):
        self.settings = settings or default_settings
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.settings.openai_api_key)
        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
    )
    async def _call_openai(self, messages: list[dict]) -> tuple[str, int]:
        """Make OpenAI API call with retry logic."""
        start = time.time()

        response = await self.client.chat.completions.create(
            model=self.settings.openai_model,
            messages=messages,
            max_tokens=self.settings.llm_max_tokens,
            temperature=self.settings.openai_temperature,
            response_format={"type": "json_object"},
        )

        duration_ms = (time.time() - start) * 1000
        content = response.choices[0].message.content
        tokens = response.usage.total_tokens if response.usage else 0

        logger.info(
            "openai_call_complete",
            model=self.settings.openai_model,
            tokens=tokens,
            duration_ms=round(duration_ms, 2),
        )
        return content, tokens

    async def resolve(
        self,
        instruction: str,
        snapshot: list[dict[str, Any]],
        page_url: str | None = None,
    ) -> ResolvedAction:
        compact = [{k: v for k, v in el.items() if v} for el in snapshot]
        snapshot_json = json.dumps(compact, sort_keys=True)
        model = self.settings.openai_model

        cache_key = _get_cache_key(model, instruction, page_url or "", snapshot_json)
        cached = _get_cached(cache_key, self.settings.llm_cache_ttl)
        if cached is not None:
            logger.debug("instruction_cache_hit", instruction=instruction)
            return ResolvedAction(**cached)

        user_prompt = f"""Instruction: {instruction}
Page URL: {page_url or "unknown"}

Interactive elements:
{snapshot_json}
"""
        messages = [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]

        try:
            content, _ = await self._call_openai(messages)
        except Exception as e:
            logger.error("llm_error", instruction=instruction, error=str(e))
            raise ActionResolutionError(f"LLM call failed: {e}", instruction) from e

        try:
            data = json.loads(content or "")
            resolved = (
                ResolvedAction(**{**data, "source": "llm"}) if isinstance(data, dict) else None
            )
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            logger.error("llm_response_invalid", instruction=instruction, error=str(e))
            raise ActionResolutionError(
                f"Failed to parse LLM response: {e}", instruction
            ) from e

        if resolved is None:
            raise ActionResolutionError("LLM response is not a JSON object", instruction)
        if resolved.action in ELEMENT_ACTIONS and resolved.element is None:
            raise ActionResolutionError(
                f"LLM chose '{resolved.action.value}' without an element", instruction
            )
        if resolved.element is not None and not resolved.element.to_element_config().strategies:
            raise ActionResolutionError(
                f"LLM element '{resolved.element.name}' has no selector", instruction
            )

        _set_cache(cache_key, resolved.model_dump())
        logger.info(
            "instruction_resolved",
            source="llm",
            instruction=instruction,
            action=resolved.action.value,
        )
        return resolved


class FallbackResolver:
    """Try the primary resolver, fall back to the secondary on failure."""

    def __init__(self, primary: Resolver, fallback: Resolver):
        self.primary = primary
        self.fallback = fallback

    async def resolve(
        self,
        instruction: str,
        snapshot: list[dict[str, Any]],
        page_url: str | None = None,
    ) -> ResolvedAction:
        try:
            return await self.primary.resolve(instruction, snapshot, page_url)
        except ActionResolutionError as e:
            logger.warning("resolver_fallback", instruction=instruction, error=str(e))
            return await self.fallback.resolve(instruction, snapshot, page_url)


def get_resolver(settings: Settings | None = None) -> Resolver:
    """Pick the resolver configured by ``q_resolver``."""
    settings = settings or default_settings
    match settings.q_resolver:
        case "rules":
            return RuleBasedResolver()
        case "llm":
            return LLMResolver(settings)
    if settings.llm_enabled:
        return FallbackResolver(LLMResolver(settings), RuleBasedResolver())
    return RuleBasedResolver()

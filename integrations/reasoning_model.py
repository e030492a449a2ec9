# integrations/reasoning_model.py
"""
Reasoning model clients used by the recommendation pipeline.

One interface, two backends:
- Claude (Anthropic Messages API) with optional server-side web search and
  page fetch tools. Used for product search and URL verification.
- OpenAI Chat Completions with a JSON schema response format. Tool-less only.

Both return a validated pydantic model. Loosely shaped JSON never leaks past
this module: a response that does not match the requested schema raises
SchemaValidationError.
"""
import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import AbstractSet, Dict, List, Optional, Type, TypeVar

import anthropic
import httpx
from openai import AsyncOpenAI
import openai
from pydantic import BaseModel, ValidationError

import config
from contracts.errors import ReasoningModelError, SchemaValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

WEB_FETCH_BETA = "web-fetch-2025-09-10"
MAX_PAUSE_CONTINUATIONS = 3


class ModelTool(str, Enum):
    """Server-side capabilities a call may request."""
    WEB_SEARCH = "web_search"
    WEB_FETCH = "web_fetch"


class ReasoningModel(ABC):
    """Structured-generation call: instruction + prompt in, validated model out."""

    @abstractmethod
    async def generate_structured(
        self,
        system_instruction: str,
        prompt: str,
        schema: Type[T],
        temperature: float = 0.2,
        tools: AbstractSet[ModelTool] = frozenset(),
        max_tokens: Optional[int] = None
    ) -> T:
        ...


# ============================================================================
# Response parsing
# ============================================================================
def extract_json(response_text: str):
    """
    Pull a JSON value out of free-form model text.

    Tries, in order: the whole text, a ```json fenced block, any fenced block,
    and finally the outermost {...} or [...] span.
    """
    text = response_text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    candidates = []
    if '```json' in text:
        start = text.find('```json') + 7
        candidates.append(text[start:text.find('```', start)].strip())
    elif '```' in text:
        start = text.find('```') + 3
        candidates.append(text[start:text.find('```', start)].strip())
    for opener, closer in (('{', '}'), ('[', ']')):
        start = text.find(opener)
        end = text.rfind(closer) + 1
        if start >= 0 and end > start:
            candidates.append(text[start:end])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    raise SchemaValidationError(f"No JSON found in model response: {text[:200]}")


def parse_structured(response_text: str, schema: Type[T]) -> T:
    """Validate model text against ``schema``."""
    data = extract_json(response_text)

    # Models sometimes answer with the bare array for single-list envelopes
    fields = list(schema.model_fields)
    if isinstance(data, list) and len(fields) == 1:
        data = {fields[0]: data}

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError(f"Model response does not match {schema.__name__}: {e}") from e


def schema_instructions(schema: Type[BaseModel]) -> str:
    return (
        "Return ONLY a JSON object matching this JSON schema, no additional text:\n"
        f"{json.dumps(schema.model_json_schema())}"
    )


# ============================================================================
# Claude
# ============================================================================
class ClaudeReasoningModel(ReasoningModel):
    """
    Claude client with server tools.

    Web search and page fetch run on Anthropic's side; we only see the final
    text, which must contain the requested JSON.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[anthropic.AsyncAnthropic] = None
    ):
        """
        Args:
            api_key: Anthropic API key (falls back to config.ANTHROPIC_API_KEY)
            base_url: API base URL (falls back to config.ANTHROPIC_BASE_URL)
            model: Model to use (falls back to config.ANTHROPIC_MODEL)
            client: Pre-built client, mainly for tests
        """
        self.model = model or config.ANTHROPIC_MODEL

        if client is None:
            api_key = api_key or config.ANTHROPIC_API_KEY
            if not api_key:
                raise ValueError("Anthropic API key required. Set ANTHROPIC_API_KEY env var.")
            client = anthropic.AsyncAnthropic(
                api_key=api_key,
                base_url=base_url or config.ANTHROPIC_BASE_URL,
                timeout=httpx.Timeout(config.LLM_REQUEST_TIMEOUT, connect=config.LLM_CONNECT_TIMEOUT)
            )
        self.client = client

        logger.info(f"[Claude] Initialized with model: {self.model}")

    @staticmethod
    def _tool_definitions(tools: AbstractSet[ModelTool]) -> List[Dict]:
        definitions = []
        if ModelTool.WEB_SEARCH in tools:
            definitions.append({
                "type": "web_search_20250305",
                "name": "web_search",
                "max_uses": config.WEB_SEARCH_MAX_USES,
            })
        if ModelTool.WEB_FETCH in tools:
            definitions.append({
                "type": "web_fetch_20250910",
                "name": "web_fetch",
                "max_uses": config.WEB_FETCH_MAX_USES,
            })
        return definitions

    @staticmethod
    def _final_text(content) -> str:
        """Text emitted after the last tool interaction."""
        parts: List[str] = []
        for block in content:
            if getattr(block, "type", None) == "text":
                parts.append(block.text)
            else:
                parts = []
        return "".join(parts)

    async def generate_structured(
        self,
        system_instruction: str,
        prompt: str,
        schema: Type[T],
        temperature: float = 0.2,
        tools: AbstractSet[ModelTool] = frozenset(),
        max_tokens: Optional[int] = None
    ) -> T:
        tool_definitions = self._tool_definitions(tools)
        messages = [{"role": "user", "content": f"{prompt}\n\n{schema_instructions(schema)}"}]
        request = {
            "model": self.model,
            "max_tokens": max_tokens or 4000,
            "temperature": temperature,
            "system": system_instruction,
        }

        try:
            for _ in range(MAX_PAUSE_CONTINUATIONS + 1):
                if tool_definitions:
                    betas = [WEB_FETCH_BETA] if ModelTool.WEB_FETCH in tools else []
                    response = await self.client.beta.messages.create(
                        **request, messages=messages, tools=tool_definitions, betas=betas
                    )
                else:
                    response = await self.client.messages.create(**request, messages=messages)

                # Long server-tool turns pause; hand the partial turn back to continue
                if response.stop_reason != "pause_turn":
                    break
                messages = messages + [{"role": "assistant", "content": response.content}]
            else:
                raise ReasoningModelError("Claude did not finish after repeated pause_turn continuations")
        except anthropic.APIError as e:
            raise ReasoningModelError(f"Claude request failed: {e}") from e

        text = self._final_text(response.content)
        if not text:
            raise SchemaValidationError("No text content in Claude response")
        return parse_structured(text, schema)


# ============================================================================
# OpenAI
# ============================================================================
def _make_schema_strict(schema: dict) -> dict:
    """
    Recursively modifies schema for OpenAI strict JSON schema mode:
    - Sets additionalProperties: false on all object schemas
    - Sets required to include ALL properties (OpenAI strict mode requirement)
    """
    if isinstance(schema, dict):
        if "$defs" in schema:
            for defn in schema["$defs"].values():
                _make_schema_strict(defn)

        if (schema.get("type") == "object" and
                "properties" in schema and
                "additionalProperties" not in schema):
            schema["additionalProperties"] = False
            schema["required"] = list(schema["properties"].keys())

        if "properties" in schema:
            for prop in schema["properties"].values():
                _make_schema_strict(prop)

        if "items" in schema:
            _make_schema_strict(schema["items"])

        for variant in schema.get("anyOf", []):
            _make_schema_strict(variant)
    return schema


class OpenAIReasoningModel(ReasoningModel):
    """OpenAI chat completions with a JSON schema response format."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None
    ):
        self.model = model or config.OPENAI_REASONING_MODEL
        if client is None:
            api_key = api_key or config.OPENAI_API_KEY
            if not api_key:
                raise ValueError("OpenAI API key required. Set OPENAI_API_KEY env var.")
            client = AsyncOpenAI(
                api_key=api_key,
                timeout=httpx.Timeout(config.LLM_REQUEST_TIMEOUT, connect=config.LLM_CONNECT_TIMEOUT)
            )
        self.client = client

        logger.info(f"[OpenAI] Initialized with model: {self.model}")

    async def generate_structured(
        self,
        system_instruction: str,
        prompt: str,
        schema: Type[T],
        temperature: float = 0.2,
        tools: AbstractSet[ModelTool] = frozenset(),
        max_tokens: Optional[int] = None
    ) -> T:
        if tools:
            raise ValueError("OpenAI backend does not provide web search / page fetch tools")

        json_schema = _make_schema_strict(schema.model_json_schema())

        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_instruction},
                    {"role": "user", "content": prompt}
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": schema.__name__,
                        "schema": json_schema,
                        "strict": False
                    }
                },
                temperature=temperature,
                max_tokens=max_tokens
            )
        except openai.APIError as e:
            raise ReasoningModelError(f"OpenAI request failed: {e}") from e

        content = resp.choices[0].message.content
        if not content:
            raise SchemaValidationError("No content in OpenAI response")
        return parse_structured(content, schema)


def get_reasoning_model(needs_tools: bool = False) -> ReasoningModel:
    """
    Pick a backend from config.

    Tool-using calls always go to Claude; tool-less calls follow
    config.SUGGESTION_MODEL_PROVIDER.
    """
    if needs_tools or config.SUGGESTION_MODEL_PROVIDER != "openai":
        return ClaudeReasoningModel()
    return OpenAIReasoningModel()

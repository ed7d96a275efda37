"""Reasoning provider contract and its LangChain chat-model implementation."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Protocol, Sequence

from pydantic import BaseModel, ValidationError

from core.config import Settings
from core.errors import ProviderUnavailable
from docedit.telemetry import traceable_if_enabled
from schemas.internal.agent import ConversationTurn, ReasoningDecision
from schemas.internal.tools import ToolSpec
from utils.llm_json import extract_json_object
from utils.tool_calls import parse_tool_calls

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

logger = logging.getLogger(__name__)

_DECISION_KEYS = frozenset({"message", "tool_requests", "is_complete"})


class ReasoningProvider(Protocol):
    def decide(
        self, turns: Sequence[ConversationTurn], tools: Sequence[ToolSpec]
    ) -> ReasoningDecision: ...


class ChatModelLike(Protocol):
    def with_structured_output(self, schema: type[BaseModel]) -> Any: ...

    def invoke(self, input: object) -> Any: ...


@dataclass(frozen=True)
class ReasonerConfig:
    model: str
    model_provider: str | None = None
    temperature: float = 0.0
    timeout: float | None = None
    max_tokens: int | None = None
    max_retries: int | None = 2


class ChatModelReasoner:
    """Asks a chat model for the next agent action.

    Structured output is tried first. Models that ignore it are parsed from
    their raw reply: a JSON decision object, then ``TOOL_CALL`` blocks, and
    otherwise the reply text is taken as the final answer.
    """

    def __init__(self, llm: ChatModelLike) -> None:
        self._llm = llm

    @traceable_if_enabled(run_type="chain", name="Agent Reasoning")
    def decide(
        self, turns: Sequence[ConversationTurn], tools: Sequence[ToolSpec]
    ) -> ReasoningDecision:
        messages = _build_messages(build_system_prompt(tools), turns)
        try:
            structured = self._llm.with_structured_output(ReasoningDecision)
            result = structured.invoke(messages)
            if isinstance(result, ReasoningDecision):
                return result
        except Exception:
            logger.debug("structured output unavailable, parsing raw reply", exc_info=True)

        try:
            raw = self._llm.invoke(messages)
        except Exception as exc:
            raise ProviderUnavailable(f"Reasoning provider failed: {exc}") from exc
        content = getattr(raw, "content", raw)
        if not isinstance(content, str):
            content = str(content)
        return parse_reasoning_reply(content)


def parse_reasoning_reply(text: str) -> ReasoningDecision:
    """Interpret a free-form model reply as a decision."""
    decision = _decision_from_json(text)
    if decision is not None:
        return decision

    requests, message = parse_tool_calls(text)
    if requests:
        return ReasoningDecision(message=message, tool_requests=requests, is_complete=False)
    return ReasoningDecision(message=(text or "").strip(), is_complete=True)


def _decision_from_json(text: str) -> ReasoningDecision | None:
    try:
        payload = json.loads(extract_json_object(text, prefer_code_block=True))
    except ValueError:
        return None
    if not _DECISION_KEYS.intersection(payload):
        return None
    try:
        return ReasoningDecision.model_validate(payload)
    except ValidationError:
        logger.warning("reasoning reply JSON did not match the decision schema")
        return None


def build_system_prompt(tools: Sequence[ToolSpec]) -> str:
    lines = [
        "You are an editing agent for a markdown document and you work only through tools.",
        "",
        "Available tools:",
    ]
    for spec in tools:
        params = ", ".join(f"{name}: {desc}" for name, desc in spec.parameters.items())
        lines.append(f"- {spec.name}({params}) - {spec.description}")
    lines.extend(
        [
            "",
            "Rules:",
            "- Do only what the user explicitly asks. Greetings or questions that do not",
            "  concern the document are answered with plain text and no tool calls.",
            "- Read the document (or the relevant range) before proposing edits when the",
            "  context is unclear.",
            "- The document is made of entities separated by blank lines (heading, paragraph,",
            "  list, table, image, caption, formula, quote, rule). Keep every edit atomic per",
            "  entity and separate entities in content with blank lines.",
            "- You never apply changes yourself; you only propose them.",
            "",
            "Reply with a JSON object: "
            '{"message": str, "tool_requests": [{"name": str, "arguments": {...}}], '
            '"is_complete": bool}.',
            "If you cannot produce JSON, call tools with plain-text blocks:",
            "TOOL_CALL",
            "tool: <tool name>",
            "args: <JSON object>",
            "When the task is done, answer with the final message and no tool calls.",
        ]
    )
    return "\n".join(lines)


def build_reasoner(settings: Settings) -> ChatModelReasoner:
    config = ReasonerConfig(
        model=settings.default_model,
        model_provider=settings.default_model_provider,
        temperature=settings.default_temperature,
        timeout=settings.reasoning_timeout,
        max_tokens=settings.reasoning_max_tokens,
        max_retries=settings.reasoning_max_retries,
    )
    return ChatModelReasoner(_init_chat_model(config))


def _init_chat_model(config: ReasonerConfig) -> ChatModelLike:
    from langchain.chat_models import init_chat_model

    kwargs: dict[str, Any] = {}
    if config.model_provider:
        kwargs["model_provider"] = config.model_provider
    if config.temperature is not None:
        kwargs["temperature"] = config.temperature
    if config.timeout is not None:
        kwargs["timeout"] = config.timeout
    if config.max_tokens is not None:
        kwargs["max_tokens"] = config.max_tokens
    if config.max_retries is not None:
        kwargs["max_retries"] = config.max_retries
    return init_chat_model(config.model, **kwargs)


def _build_messages(
    system_prompt: str, turns: Sequence[ConversationTurn]
) -> "List[BaseMessage]":
    from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

    messages: List[BaseMessage] = [SystemMessage(content=system_prompt)]
    for turn in turns:
        if turn.role == "system":
            messages.append(SystemMessage(content=turn.content))
        elif turn.role == "assistant":
            messages.append(AIMessage(content=turn.content))
        elif turn.role == "tool":
            messages.append(HumanMessage(content=f"Tool results:\n{turn.content}"))
        else:
            messages.append(HumanMessage(content=turn.content))
    return messages


__all__ = [
    "ChatModelLike",
    "ChatModelReasoner",
    "ReasonerConfig",
    "ReasoningProvider",
    "build_reasoner",
    "build_system_prompt",
    "parse_reasoning_reply",
]

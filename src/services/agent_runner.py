"""Agent orchestrator service for CLI/embedding reuse."""

from __future__ import annotations

import logging
import threading
import time
from time import perf_counter
from typing import Any, Callable, Iterable, Mapping, Optional

from core.config import Settings, get_settings
from core.errors import SessionBusy
from docedit.telemetry import traceable_if_enabled
from pipelines.graphs.agent_graph import build_agent_graph, recursion_limit_for
from pipelines.graphs.context import AgentLogSink, AgentRunContext, CancellationToken
from pipelines.graphs.nodes.reasoning import ReasoningProvider, build_reasoner
from pipelines.graphs.nodes.tools import DocumentToolExecutor, ToolSettings
from retrieval.contracts import DocumentSource
from retrieval.search import RetrievalEngine
from schemas.internal.agent import AgentStep, ConversationTurn
from schemas.requests import AgentRequest, AgentRunOptions
from schemas.responses import AgentResponse
from utils.deadlines import Deadline

logger = logging.getLogger(__name__)


class AgentOrchestrator:
    """Runs the agent loop for one request at a time per chat id.

    Each call builds its own run context, step list and counters; the only
    state shared between calls is the set of chat ids currently running.
    """

    def __init__(
        self,
        *,
        reasoner: ReasoningProvider,
        retrieval: RetrievalEngine,
        documents: DocumentSource,
        log_sink: AgentLogSink | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._reasoner = reasoner
        self._retrieval = retrieval
        self._documents = documents
        self._log_sink = log_sink
        self._settings = settings or get_settings()
        self._sleep = sleep
        self._graph = build_agent_graph()
        self._active_chats: set[str] = set()
        self._chats_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        retrieval: RetrievalEngine,
        documents: DocumentSource,
        reasoner: ReasoningProvider | None = None,
        log_sink: AgentLogSink | None = None,
    ) -> "AgentOrchestrator":
        return cls(
            reasoner=reasoner or build_reasoner(settings),
            retrieval=retrieval,
            documents=documents,
            log_sink=log_sink,
            settings=settings,
        )

    @traceable_if_enabled(run_type="chain", name="Agent Run")
    def run(
        self,
        request: AgentRequest | Mapping[str, Any],
        user_id: str,
        *,
        cancellation: CancellationToken | None = None,
        deadline_seconds: float | None = None,
        options: AgentRunOptions | Mapping[str, Any] | None = None,
        history: Iterable[ConversationTurn] = (),
        on_step: Callable[[AgentStep], None] | None = None,
    ) -> AgentResponse:
        """Run the loop and return the steps sealed before it stopped.

        ``on_step`` receives each step as soon as it is sealed, in order.

        Raises AccessDenied when the user cannot open the document and
        SessionBusy when the chat already has a run in progress.
        """
        request_obj = (
            request if isinstance(request, AgentRequest) else AgentRequest.model_validate(request)
        )
        options_obj = (
            options
            if isinstance(options, AgentRunOptions)
            else AgentRunOptions.model_validate(options or {})
        )
        self._retrieval.ensure_access(request_obj.document_id, user_id)

        chat_id = request_obj.chat_id
        self._acquire(chat_id)
        start = perf_counter()
        try:
            ctx = self._build_context(
                request_obj, user_id, options_obj, cancellation, deadline_seconds, on_step
            )
            final_state = self._graph.invoke(
                {"context": ctx, "turns": list(history)},
                config={"recursion_limit": recursion_limit_for(ctx.max_iterations)},
            )
        finally:
            self._release(chat_id)

        response = AgentResponse(
            final_message=final_state.get("final_message") or "",
            steps=list(final_state.get("steps") or []),
            is_complete=final_state.get("status") == "completed",
        )
        logger.info(
            "agent run document=%s status=%s stop=%s steps=%d runtime_ms=%d",
            request_obj.document_id,
            final_state.get("status"),
            final_state.get("stop_reason"),
            len(response.steps),
            int((perf_counter() - start) * 1000),
        )
        return response

    def _build_context(
        self,
        request: AgentRequest,
        user_id: str,
        options: AgentRunOptions,
        cancellation: Optional[CancellationToken],
        deadline_seconds: Optional[float],
        on_step: Optional[Callable[[AgentStep], None]] = None,
    ) -> AgentRunContext:
        settings = self._settings
        seconds = deadline_seconds or options.deadline_seconds
        deadline = Deadline.after(seconds) if seconds else None
        tools = DocumentToolExecutor(
            document_id=request.document_id,
            user_id=user_id,
            retrieval=self._retrieval,
            documents=self._documents,
            settings=ToolSettings(
                read_max_lines=settings.read_document_max_lines,
                default_top_k=options.rag_top_k or settings.rag_default_top_k,
                retry_backoff_ms=_resolve_int(
                    options.retrieval_retry_backoff_ms, settings.retrieval_retry_backoff_ms
                ),
                allow_changes=request.allows_changes,
            ),
            deadline=deadline,
            sleep=self._sleep,
        )
        return AgentRunContext(
            request=request,
            user_id=user_id,
            reasoner=self._reasoner,
            tools=tools,
            max_iterations=options.max_iterations or settings.agent_max_iterations,
            tool_concurrency=options.tool_concurrency or settings.agent_tool_concurrency,
            reasoning_timeout=options.reasoning_timeout or settings.reasoning_timeout,
            deadline=deadline,
            cancellation=cancellation or CancellationToken(),
            log_sink=self._log_sink,
            on_step=on_step,
        )

    def _acquire(self, chat_id: str | None) -> None:
        if chat_id is None:
            return
        with self._chats_lock:
            if chat_id in self._active_chats:
                raise SessionBusy(chat_id)
            self._active_chats.add(chat_id)

    def _release(self, chat_id: str | None) -> None:
        if chat_id is None:
            return
        with self._chats_lock:
            self._active_chats.discard(chat_id)


def _resolve_int(value: int | None, default: int) -> int:
    return default if value is None else int(value)


__all__ = ["AgentOrchestrator"]

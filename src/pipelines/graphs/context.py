"""Per-invocation run context threaded through the agent graph."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

from pipelines.graphs.nodes.reasoning import ReasoningProvider
from pipelines.graphs.nodes.tools import DocumentToolExecutor
from schemas.internal.agent import AgentLogEntry, AgentStep, LogType
from schemas.internal.tools import ToolSpec, available_tools
from schemas.requests import AgentRequest
from utils.deadlines import Deadline

logger = logging.getLogger(__name__)


class AgentLogSink(Protocol):
    def append(self, entry: AgentLogEntry) -> None: ...


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and one run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class AgentRunContext:
    """Everything one agent invocation owns; never shared between runs."""

    request: AgentRequest
    user_id: str
    reasoner: ReasoningProvider
    tools: DocumentToolExecutor
    max_iterations: int
    tool_concurrency: int = 4
    reasoning_timeout: Optional[float] = None
    deadline: Optional[Deadline] = None
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    log_sink: Optional[AgentLogSink] = None
    on_step: Optional[Callable[[AgentStep], None]] = None
    entries: List[AgentLogEntry] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.cancellation.cancelled

    @property
    def tool_specs(self) -> List[ToolSpec]:
        return available_tools(allow_changes=self.request.allows_changes)

    def log(
        self,
        log_type: LogType,
        content: str,
        *,
        iteration: int,
        step: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AgentLogEntry:
        entry = AgentLogEntry(
            document_id=self.request.document_id,
            user_id=self.user_id,
            chat_session_id=self.request.chat_id,
            log_type=log_type,
            content=content,
            metadata=metadata,
            iteration_number=iteration,
            step_number=step,
        )
        with self._lock:
            self.entries.append(entry)
        if self.log_sink is not None:
            try:
                self.log_sink.append(entry)
            except Exception:
                logger.warning(
                    "agent log sink failed for %s entry (document=%s)",
                    log_type,
                    self.request.document_id,
                    exc_info=True,
                )
        return entry


__all__ = ["AgentLogSink", "AgentRunContext", "CancellationToken"]

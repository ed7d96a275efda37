"""Agent tool execution over one document.

Tool requests from the reasoning provider are validated into the closed set of
variants in ``schemas.internal.tools`` and dispatched through an explicit
handler table. Failures a model can recover from become the tool's textual
result; ``AccessDenied`` and ``ProviderTimeout`` propagate to the orchestrator.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from changes.entities import first_heading, propose_changes
from changes.lines import normalize_range, split_lines
from core.errors import RetrievalFailed
from retrieval.contracts import DocumentSource
from retrieval.search import RetrievalEngine
from schemas.internal.agent import ToolCall, ToolRequest
from schemas.internal.blocks import RetrievalResult
from schemas.internal.changes import DocumentEntityChange
from schemas.internal.tools import (
    TOOL_SPECS,
    GetHeaderCall,
    GrepCall,
    ProposeChangesCall,
    RagQueryCall,
    ReadDocumentCall,
    TableSearchCall,
    parse_tool_request,
)
from utils.deadlines import Deadline

logger = logging.getLogger(__name__)

_REGEX_CHARS = set(".*+?()[]{}|\\")
_GREP_MAX_MATCHES = 100
_KNOWN_TOOLS = frozenset(spec.name for spec in TOOL_SPECS)


@dataclass(frozen=True)
class ToolOutcome:
    call: ToolCall
    changes: List[DocumentEntityChange] = field(default_factory=list)
    failed: bool = False


@dataclass(frozen=True)
class ToolSettings:
    read_max_lines: int = 400
    default_top_k: Optional[int] = None
    retry_backoff_ms: int = 250
    allow_changes: bool = True


class DocumentToolExecutor:
    """Runs tool requests for one (document, user) pair; safe to call from threads."""

    def __init__(
        self,
        *,
        document_id: str,
        user_id: str,
        retrieval: RetrievalEngine,
        documents: DocumentSource,
        settings: ToolSettings | None = None,
        deadline: Deadline | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.document_id = document_id
        self.user_id = user_id
        self._retrieval = retrieval
        self._documents = documents
        self._settings = settings or ToolSettings()
        self._deadline = deadline
        self._sleep = sleep
        self._handlers: Dict[type, Callable[..., ToolOutcome]] = {
            RagQueryCall: self._rag_query,
            TableSearchCall: self._table_search,
            ReadDocumentCall: self._read_document,
            GrepCall: self._grep,
            GetHeaderCall: self._get_header,
            ProposeChangesCall: self._propose_changes,
        }

    @property
    def allow_changes(self) -> bool:
        return self._settings.allow_changes

    def execute(self, request: ToolRequest) -> ToolOutcome:
        if request.name not in _KNOWN_TOOLS:
            return self._failure(request, f"Unknown tool: {request.name}")
        if request.name == "propose_document_changes" and not self.allow_changes:
            return self._failure(
                request, "propose_document_changes is not available in ask mode"
            )
        try:
            invocation = parse_tool_request(request)
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
                for item in exc.errors()
            )
            return self._failure(request, f"Invalid arguments for {request.name}: {errors}")

        handler = self._handlers[type(invocation)]
        return handler(request, invocation)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _rag_query(self, request: ToolRequest, call: RagQueryCall) -> ToolOutcome:
        top_k = call.top_k if call.top_k is not None else self._settings.default_top_k
        try:
            results = self._with_retry(
                lambda: self._retrieval.search(
                    self.document_id,
                    self.user_id,
                    call.content,
                    top_k,
                    deadline=self._deadline,
                ),
                tool="rag_query",
            )
        except RetrievalFailed as exc:
            return self._failure(request, f"Retrieval failed: {exc}")
        if not results:
            return self._success(request, "No results found for the query")
        return self._success(request, _format_results(results, label="Result"))

    def _table_search(self, request: ToolRequest, call: TableSearchCall) -> ToolOutcome:
        try:
            rows = self._with_retry(
                lambda: self._retrieval.search_tables(self.document_id, self.user_id),
                tool="table_search",
            )
        except RetrievalFailed as exc:
            return self._failure(request, f"Table search failed: {exc}")
        if not rows:
            return self._success(request, "No tables found in the document")
        return self._success(request, _format_results(rows, label="Table"))

    def _read_document(self, request: ToolRequest, call: ReadDocumentCall) -> ToolOutcome:
        lines = split_lines(self._text())
        total = len(lines)
        ranged = call.start_line is not None or call.end_line is not None
        start = call.start_line if call.start_line is not None else 1
        end = call.end_line if call.end_line is not None else total
        truncated = not ranged and total > self._settings.read_max_lines
        if truncated:
            end = self._settings.read_max_lines
        start, end = normalize_range(start, end, total)

        out = [f"total_lines: {total}", f"range: {start}-{end}"]
        if truncated:
            out.append(
                f"note: document is long, only the first {self._settings.read_max_lines} "
                "lines are returned; use start_line/end_line to navigate."
            )
        out.append("content:")
        if total == 0:
            out.append("(empty document)")
        else:
            out.extend(f"{number}: {lines[number - 1]}" for number in range(start, end + 1))
        return self._success(request, "\n".join(out))

    def _grep(self, request: ToolRequest, call: GrepCall) -> ToolOutcome:
        query = call.content
        pattern: Optional[re.Pattern[str]] = None
        if any(char in _REGEX_CHARS for char in query):
            try:
                pattern = re.compile(query, re.IGNORECASE)
            except re.error:
                logger.warning("grep query %r is not a valid regex, using substring match", query)
        needle = query.casefold()

        matches = [
            f"{number}: {line}"
            for number, line in enumerate(split_lines(self._text()), start=1)
            if (pattern.search(line) if pattern is not None else needle in line.casefold())
        ]
        if not matches:
            return self._success(request, "No matches found")
        shown = matches[:_GREP_MAX_MATCHES]
        result = "\n".join(shown)
        if len(matches) > len(shown):
            result += f"\n... and {len(matches) - len(shown)} more matches"
        return self._success(request, result)

    def _get_header(self, request: ToolRequest, call: GetHeaderCall) -> ToolOutcome:
        title = first_heading(self._text())
        if title is None:
            title = self._documents.document_name(self.document_id, self.user_id).strip()
        return self._success(request, title or "No header found")

    def _propose_changes(self, request: ToolRequest, call: ProposeChangesCall) -> ToolOutcome:
        try:
            proposal = propose_changes(
                self._text(),
                call.operation,
                call.start_line,
                call.end_line,
                call.content,
            )
        except ValueError as exc:
            return self._failure(request, f"propose_document_changes failed: {exc}")
        return ToolOutcome(
            call=ToolCall(
                tool_name=request.name,
                arguments=request.arguments,
                result=proposal.message,
            ),
            changes=proposal.changes,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _text(self) -> str:
        return self._documents.document_text(self.document_id, self.user_id).replace("\r\n", "\n")

    def _with_retry(self, func: Callable[[], List[RetrievalResult]], *, tool: str):
        try:
            return func()
        except RetrievalFailed as exc:
            delay = self._settings.retry_backoff_ms / 1000
            logger.warning("%s failed (%s); retrying once in %.3fs", tool, exc, delay)
            if delay > 0:
                self._sleep(delay)
        return func()

    def _success(self, request: ToolRequest, result: str) -> ToolOutcome:
        return ToolOutcome(
            call=ToolCall(tool_name=request.name, arguments=request.arguments, result=result)
        )

    def _failure(self, request: ToolRequest, message: str) -> ToolOutcome:
        logger.info("tool %s failed: %s", request.name, message)
        return ToolOutcome(
            call=ToolCall(tool_name=request.name, arguments=request.arguments, result=message),
            failed=True,
        )


def _format_results(results: List[RetrievalResult], *, label: str) -> str:
    blocks = []
    for index, item in enumerate(results, start=1):
        text = item.raw_text if item.block_type == "Image" else (item.normalized_text or item.raw_text)
        blocks.append(
            f"{label} {index} (lines {item.start_line}-{item.end_line}, "
            f"type: {item.block_type}, score: {item.score:.3f}):\n{text}"
        )
    return "\n\n".join(blocks)


__all__ = ["DocumentToolExecutor", "ToolOutcome", "ToolSettings"]

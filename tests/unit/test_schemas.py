from __future__ import annotations

import pytest
from pydantic import ValidationError

from schemas.internal.agent import AgentLogEntry, AgentStep, ToolCall, ToolRequest
from schemas.internal.blocks import DocumentBlock
from schemas.internal.changes import DocumentEntityChange
from schemas.internal.tools import ProposeChangesCall, available_tools, parse_tool_request
from schemas.requests import AgentRequest, AgentRunOptions
from schemas.responses import AgentResponse


def _change(change_id: str) -> DocumentEntityChange:
    return DocumentEntityChange(
        change_id=change_id, change_type="insert", start_line=0, content="x"
    )


def test_change_serializes_with_camel_case_keys() -> None:
    change = DocumentEntityChange(
        change_id="abc",
        change_type="delete",
        entity_type="heading",
        start_line=2,
        end_line=3,
        content="# Old",
    )
    payload = change.model_dump(by_alias=True)
    assert payload["changeId"] == "abc"
    assert payload["changeType"] == "delete"
    assert payload["startLine"] == 2
    assert DocumentEntityChange.model_validate(payload) == change


def test_change_validates_ids_and_delete_ranges() -> None:
    with pytest.raises(ValidationError):
        DocumentEntityChange(change_id="bad id", change_type="insert", start_line=0)
    with pytest.raises(ValidationError):
        DocumentEntityChange(change_id="d", change_type="delete", start_line=0, end_line=1)
    with pytest.raises(ValidationError):
        DocumentEntityChange(change_id="d", change_type="delete", start_line=3)
    with pytest.raises(ValidationError):
        DocumentEntityChange(change_id="d", change_type="delete", start_line=3, end_line=2)


def test_block_requires_ordered_lines() -> None:
    with pytest.raises(ValidationError):
        DocumentBlock(id="b", document_id="d", block_type="Paragraph", start_line=4, end_line=2)


def test_agent_request_range_and_mode() -> None:
    request = AgentRequest.model_validate(
        {"documentId": "d", "userMessage": "hi", "startLine": 2, "endLine": 4, "mode": "ask"}
    )
    assert request.allows_changes is False
    with pytest.raises(ValidationError):
        AgentRequest(document_id="d", user_message="hi", start_line=5, end_line=1)
    with pytest.raises(ValidationError):
        AgentRequest(document_id="d", user_message="")


def test_run_options_reject_unknown_and_invalid_fields() -> None:
    with pytest.raises(ValidationError):
        AgentRunOptions.model_validate({"max_iterations": 0})
    with pytest.raises(ValidationError):
        AgentRunOptions.model_validate({"mystery": 1})


def test_response_requires_increasing_steps_and_unique_changes() -> None:
    first = AgentStep(step_number=1, description="a", document_changes=[_change("c1")])
    second = AgentStep(step_number=2, description="b", document_changes=[_change("c2")])
    response = AgentResponse(final_message="ok", steps=[first, second], is_complete=True)
    assert [change.change_id for change in response.document_changes] == ["c1", "c2"]
    assert response.model_dump(by_alias=True)["isComplete"] is True

    with pytest.raises(ValidationError):
        AgentResponse(final_message="x", steps=[second, first])
    duplicate = AgentStep(step_number=2, description="b", document_changes=[_change("c1")])
    with pytest.raises(ValidationError):
        AgentResponse(final_message="x", steps=[first, duplicate])


def test_step_dump_uses_client_field_names() -> None:
    step = AgentStep(
        step_number=1,
        description="Searched",
        tool_calls=[ToolCall(tool_name="rag_query", arguments={"content": "q"}, result="r")],
        tool_result="r",
    )
    payload = step.model_dump(by_alias=True)
    assert payload["stepNumber"] == 1
    assert payload["toolCalls"][0]["toolName"] == "rag_query"
    assert payload["toolResult"] == "r"


def test_log_entry_serializes_metadata() -> None:
    entry = AgentLogEntry(
        document_id="d",
        user_id="u",
        log_type="change",
        content="insert",
        metadata={"b": 2, "a": 1},
    )
    assert entry.metadata == '{"a": 1, "b": 2}'
    assert entry.metadata_dict() == {"a": 1, "b": 2}


def test_tool_requests_validate_into_variants() -> None:
    call = parse_tool_request(
        ToolRequest(
            name="propose_document_changes",
            arguments={"operation": "replace", "startLine": 2, "content": "new", "extra": True},
        )
    )
    assert isinstance(call, ProposeChangesCall)
    assert call.start_line == 2
    with pytest.raises(ValidationError):
        parse_tool_request(
            ToolRequest(
                name="propose_document_changes",
                arguments={"operation": "insert", "start_line": 1},
            )
        )


def test_available_tools_depend_on_mode() -> None:
    assert len(available_tools()) == 6
    names = {spec.name for spec in available_tools(allow_changes=False)}
    assert names == {"rag_query", "table_search", "read_document", "grep", "get_header"}

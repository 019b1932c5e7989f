"""Request normalization: defaults, validation and session paths."""

from __future__ import annotations

from dataclasses import replace

import pytest

from dialogflow_proxy.config import SessionIdPolicy
from dialogflow_proxy.errors import MalformedInput, MissingField
from dialogflow_proxy.models import DetectIntentPayload
from dialogflow_proxy.normalizer import build_session_path, normalize


def _payload(**fields) -> DetectIntentPayload:
    return DetectIntentPayload.model_validate(fields)


def test_es_path_has_no_agent_segment(es_settings) -> None:
    query = normalize(_payload(message="hi", agentId="a1", sessionId="s1"), es_settings)

    assert query.session_path == "projects/my-project/locations/us-central1/agent/sessions/s1"
    assert query.text == "hi"
    assert query.language_code == "en-US"
    assert query.agent_id == "a1"


def test_cx_path_includes_agent_segment(cx_settings) -> None:
    query = normalize(_payload(message="hi", agentId="a1", sessionId="s1"), cx_settings)

    assert query.session_path == "projects/my-project/locations/us-central1/agents/a1/sessions/s1"
    assert query.language_code == "en"


def test_path_segments_are_in_order_and_non_empty(cx_settings) -> None:
    query = normalize(_payload(message="hi", agentId="agent", sessionId="sess"), cx_settings)

    segments = query.session_path.split("/")
    assert segments == ["projects", "my-project", "locations", "us-central1", "agents", "agent", "sessions", "sess"]
    assert all(segments)


def test_same_input_gives_same_path(cx_settings) -> None:
    payload = _payload(message="hi", agentId="a1", sessionId="s1", languageCode="de")

    assert normalize(payload, cx_settings) == normalize(payload, cx_settings)


def test_request_language_code_wins(es_settings) -> None:
    query = normalize(_payload(message="hola", agentId="a1", languageCode="es"), es_settings)

    assert query.language_code == "es"


def test_missing_session_is_generated_under_generate_policy(es_settings) -> None:
    query = normalize(_payload(message="hi", agentId="a1"), es_settings, session_id_factory=lambda: "generated")

    assert query.session_id == "generated"
    assert query.session_path.endswith("/sessions/generated")


def test_generated_session_ids_are_unique(es_settings) -> None:
    first = normalize(_payload(message="hi", agentId="a1"), es_settings)
    second = normalize(_payload(message="hi", agentId="a1"), es_settings)

    assert first.session_id
    assert first.session_id != second.session_id


def test_missing_session_fails_under_require_policy(cx_settings) -> None:
    with pytest.raises(MissingField) as excinfo:
        normalize(_payload(message="hi", agentId="a1"), cx_settings)

    assert excinfo.value.fields == ["sessionId"]


def test_policy_is_independent_of_backend(cx_settings) -> None:
    settings = replace(cx_settings, session_id_policy=SessionIdPolicy.GENERATE_IF_ABSENT)

    query = normalize(_payload(message="hi", agentId="a1"), settings, session_id_factory=lambda: "gen")

    assert query.session_id == "gen"


@pytest.mark.parametrize("message", [None, "", "   "])
def test_empty_message_is_missing(es_settings, message) -> None:
    with pytest.raises(MissingField) as excinfo:
        normalize(_payload(message=message, agentId="a1"), es_settings)

    assert "message" in excinfo.value.fields


def test_default_agent_id_fills_in(cx_settings) -> None:
    settings = replace(cx_settings, default_agent_id="default-agent")

    query = normalize(_payload(message="hi", sessionId="s1"), settings)

    assert query.agent_id == "default-agent"
    assert "/agents/default-agent/" in query.session_path


def test_cx_always_requires_agent_id(cx_settings) -> None:
    settings = replace(cx_settings, require_agent_id=False)

    with pytest.raises(MissingField) as excinfo:
        normalize(_payload(message="hi", sessionId="s1"), settings)

    assert excinfo.value.fields == ["agentId"]


def test_es_requires_agent_id_by_default(es_settings) -> None:
    with pytest.raises(MissingField) as excinfo:
        normalize(_payload(message="hi", sessionId="s1"), es_settings)

    assert excinfo.value.fields == ["agentId"]


def test_es_agent_id_requirement_can_be_disabled(es_settings) -> None:
    settings = replace(es_settings, require_agent_id=False)

    query = normalize(_payload(message="hi", sessionId="s1"), settings)

    assert query.agent_id == ""
    assert query.session_path.endswith("/agent/sessions/s1")


def test_all_missing_fields_are_reported_together(cx_settings) -> None:
    with pytest.raises(MissingField) as excinfo:
        normalize(_payload(message=""), cx_settings)

    assert excinfo.value.fields == ["message", "agentId", "sessionId"]
    assert str(excinfo.value) == "Missing required fields: message, agentId, sessionId"


def test_build_session_path_for_es_ignores_agent(es_settings) -> None:
    path = build_session_path(es_settings, "s1", agent_id="unused")

    assert path == "projects/my-project/locations/us-central1/agent/sessions/s1"


def test_ids_with_slashes_cannot_add_path_segments(cx_settings) -> None:
    with pytest.raises(MalformedInput) as excinfo:
        normalize(_payload(message="hi", agentId="a1/sessions/x/../b", sessionId="s1/extra"), cx_settings)

    assert excinfo.value.status_code == 400
    assert str(excinfo.value) == "Invalid agentId"


@pytest.mark.parametrize("session_id", ["s1/extra", "../s1", "s 1", "x" * 37])
def test_invalid_session_id_is_rejected(cx_settings, session_id) -> None:
    with pytest.raises(MalformedInput, match="Invalid sessionId"):
        normalize(_payload(message="hi", agentId="a1", sessionId=session_id), cx_settings)


def test_invalid_default_agent_id_is_rejected(es_settings) -> None:
    settings = replace(es_settings, default_agent_id="projects/other")

    with pytest.raises(MalformedInput, match="Invalid agentId"):
        normalize(_payload(message="hi"), settings)


def test_generated_and_uuid_session_ids_are_valid(cx_settings) -> None:
    session_id = "3f2b8c1e-9d4a-4e6f-8b7c-1a2b3c4d5e6f"

    query = normalize(_payload(message="hi", agentId="a1", sessionId=session_id), cx_settings)

    assert len(query.session_path.split("/")) == 8
    assert query.session_id == session_id

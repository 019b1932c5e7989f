"""Turns an inbound payload into a Dialogflow session query.

Defaults are filled in from Settings: agent id, session id (per
SessionIdPolicy) and language code. The session path format depends on the
backend: ES has no agent segment, CX does.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import Callable

from dialogflow_proxy.config import Backend, SessionIdPolicy, Settings
from dialogflow_proxy.errors import MalformedInput, MissingField
from dialogflow_proxy.models import DetectIntentPayload, UpstreamQuery

logger = logging.getLogger(__name__)

# Dialogflow session ids are at most 36 characters; agent ids are UUIDs.
SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,36}")
AGENT_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")


def new_session_id() -> str:
    return str(uuid.uuid4())


def build_session_path(settings: Settings, session_id: str, agent_id: str = "") -> str:
    if settings.backend is Backend.CX:
        return (
            f"projects/{settings.project_id}/locations/{settings.location_id}"
            f"/agents/{agent_id}/sessions/{session_id}"
        )
    return (
        f"projects/{settings.project_id}/locations/{settings.location_id}"
        f"/agent/sessions/{session_id}"
    )


def _clean(value: str | None) -> str:
    return (value or "").strip()


def _check_segment(field: str, value: str, pattern: re.Pattern[str]) -> None:
    """Ids go into the resource path, so they must be a single segment."""
    if not pattern.fullmatch(value):
        logger.warning("detect_intent_invalid_id", extra={"field": field})
        raise MalformedInput(f"Invalid {field}")


def normalize(
    payload: DetectIntentPayload,
    settings: Settings,
    session_id_factory: Callable[[], str] = new_session_id,
) -> UpstreamQuery:
    """Validate the payload and apply defaults.

    Raises:
        MissingField: naming every required field that is still empty.
        MalformedInput: if agentId or sessionId is not a valid path segment.
    """
    missing: list[str] = []

    message = payload.message or ""
    if not message.strip():
        missing.append("message")

    agent_id = _clean(payload.agent_id) or settings.default_agent_id
    # ES never puts the agent in the path but still requires it unless told otherwise.
    if not agent_id and (settings.is_cx or settings.require_agent_id):
        missing.append("agentId")

    session_id = _clean(payload.session_id)
    if not session_id and settings.session_id_policy is SessionIdPolicy.REQUIRE_CLIENT:
        missing.append("sessionId")

    if missing:
        logger.warning(
            "detect_intent_validation_failed",
            extra={"missing_fields": missing, "agent_id": agent_id},
        )
        raise MissingField(missing)

    if agent_id:
        _check_segment("agentId", agent_id, AGENT_ID_PATTERN)
    if session_id:
        _check_segment("sessionId", session_id, SESSION_ID_PATTERN)

    if not session_id:
        session_id = session_id_factory()

    language_code = _clean(payload.language_code) or settings.default_language_code

    query = UpstreamQuery(
        session_path=build_session_path(settings, session_id, agent_id),
        text=message,
        language_code=language_code,
        session_id=session_id,
        agent_id=agent_id,
    )
    logger.info(
        "Sending request to Dialogflow",
        extra={
            "project_id": settings.project_id,
            "location_id": settings.location_id,
            "session_id": session_id,
            "agent_id": agent_id,
            "language_code": language_code,
            "user_message": message,
        },
    )
    return query

"""Builds the outbound response from a Dialogflow query result.

The query result is the SDK response converted to a plain mapping with proto
field names (``fulfillment_text``, ``response_messages``...). Missing fields
degrade to empty values; nothing here raises.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from dialogflow_proxy.config import Settings, TextPolicy
from dialogflow_proxy.models import (
    CxDetectIntentResponse,
    EsDetectIntentResponse,
    OutboundResponse,
)


def extract_es(result: Mapping[str, Any], session_id: str) -> EsDetectIntentResponse:
    intent = result.get("intent") or {}
    return EsDetectIntentResponse(
        fulfillment_text=result.get("fulfillment_text") or "",
        fulfillment_messages=list(result.get("fulfillment_messages") or []),
        intent=intent.get("display_name") or "",
        parameters=dict(result.get("parameters") or {}),
        session_id=session_id,
    )


def _texts(message: Mapping[str, Any]) -> list[str]:
    text = message.get("text")
    if not text:
        return []
    return list(text.get("text") or [])


def select_cx_text(
    messages: Sequence[Mapping[str, Any]],
    policy: TextPolicy = TextPolicy.FIRST_MESSAGE,
) -> str:
    """Pick the reply text out of CX response messages.

    FIRST_MESSAGE only looks at messages[0]: if it is not a text message, or
    has no text entries, the reply is "". Later messages are ignored.
    ALL_MESSAGES joins every text entry of every text message with newlines.
    """
    if not messages:
        return ""
    if policy is TextPolicy.ALL_MESSAGES:
        return "\n".join(t for message in messages for t in _texts(message) if t)
    texts = _texts(messages[0])
    return texts[0] if texts else ""


def extract_cx(
    result: Mapping[str, Any],
    session_id: str,
    policy: TextPolicy = TextPolicy.FIRST_MESSAGE,
) -> CxDetectIntentResponse:
    messages = result.get("response_messages") or []
    return CxDetectIntentResponse(text=select_cx_text(messages, policy), session_id=session_id)


def extract(result: Mapping[str, Any], session_id: str, settings: Settings) -> OutboundResponse:
    if settings.is_cx:
        return extract_cx(result, session_id, settings.text_policy)
    return extract_es(result, session_id)

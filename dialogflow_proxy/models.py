"""Request and response shapes of the proxy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DetectIntentPayload(BaseModel):
    """JSON body accepted by POST /api/dialogflow/detectIntent.

    ``null`` and missing keys both end up as None; defaults are applied later
    by the normalizer.
    """

    model_config = ConfigDict(extra="ignore")

    message: str | None = None
    agent_id: str | None = Field(default=None, alias="agentId")
    session_id: str | None = Field(default=None, alias="sessionId")
    language_code: str | None = Field(default=None, alias="languageCode")


@dataclass(frozen=True)
class UpstreamQuery:
    """A normalized query, ready for the Dialogflow SDK."""

    session_path: str
    text: str
    language_code: str
    session_id: str
    agent_id: str


class EsDetectIntentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fulfillment_text: str = Field(default="", alias="fulfillmentText")
    fulfillment_messages: list[dict[str, Any]] = Field(default_factory=list, alias="fulfillmentMessages")
    intent: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    session_id: str = Field(alias="sessionId")


class CxDetectIntentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    session_id: str = Field(alias="sessionId")


OutboundResponse = EsDetectIntentResponse | CxDetectIntentResponse

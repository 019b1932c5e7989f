"""Detect-intent flow shared by the FastAPI app and the Cloud Function.

parse_payload -> detect_intent (normalize, call Dialogflow, extract) -> encode.
All failures surface as ProxyError subclasses.
"""

from __future__ import annotations

import json
import logging
from typing import Callable

from pydantic import ValidationError

from dialogflow_proxy.config import Settings
from dialogflow_proxy.errors import EncodingFailure, MalformedInput, ProxyError, UpstreamFailure
from dialogflow_proxy.extractor import extract
from dialogflow_proxy.models import DetectIntentPayload, OutboundResponse
from dialogflow_proxy.normalizer import new_session_id, normalize
from dialogflow_proxy.upstream import DialogflowClient

logger = logging.getLogger(__name__)


class DetectIntentService:
    def __init__(
        self,
        settings: Settings,
        client: DialogflowClient,
        session_id_factory: Callable[[], str] = new_session_id,
    ) -> None:
        self.settings = settings
        self.client = client
        self._session_id_factory = session_id_factory

    def parse_payload(self, body: bytes) -> DetectIntentPayload:
        try:
            data = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Error decoding request body", extra={"error": str(exc)})
            raise MalformedInput("Invalid request body") from exc

        if not isinstance(data, dict):
            logger.warning("Request body is not a JSON object")
            raise MalformedInput("Invalid request body")

        try:
            return DetectIntentPayload.model_validate(data)
        except ValidationError as exc:
            logger.warning("Request body has invalid field types", extra={"error_count": exc.error_count()})
            raise MalformedInput("Invalid request body") from exc

    def _metadata(self, authorization: str | None) -> list[tuple[str, str]]:
        if self.settings.forward_authorization and authorization:
            return [("authorization", authorization)]
        return []

    def detect_intent(
        self,
        payload: DetectIntentPayload,
        authorization: str | None = None,
    ) -> OutboundResponse:
        query = normalize(payload, self.settings, self._session_id_factory)

        try:
            result = self.client.detect_intent(
                query,
                timeout=self.settings.upstream_timeout_seconds,
                metadata=self._metadata(authorization),
            )
        except ProxyError:
            raise
        except Exception as exc:
            logger.error(
                "Error calling Dialogflow DetectIntent",
                extra={"session_id": query.session_id, "error": str(exc)},
            )
            raise UpstreamFailure(str(exc)) from exc

        response = extract(result, query.session_id, self.settings)
        logger.info(
            "Received response from Dialogflow",
            extra={
                "session_id": query.session_id,
                "intent": (result.get("intent") or {}).get("display_name", ""),
                "reply": response.text if self.settings.is_cx else response.fulfillment_text,
            },
        )
        return response

    def encode(self, response: OutboundResponse) -> bytes:
        try:
            return json.dumps(response.model_dump(by_alias=True)).encode("utf-8")
        except (TypeError, ValueError) as exc:
            logger.error("Error encoding response", extra={"error": str(exc)})
            raise EncodingFailure() from exc

"""Dialogflow SessionsClient wrappers.

Both clients take an UpstreamQuery, call DetectIntent on the regional
endpoint and hand back the query result as a plain dict (proto field names),
so the extractor never touches SDK types.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

from google.cloud import dialogflow_v2
from google.cloud.dialogflowcx_v3beta1.services import sessions
from google.cloud.dialogflowcx_v3beta1.types import session

from dialogflow_proxy.config import Settings
from dialogflow_proxy.errors import UpstreamFailure
from dialogflow_proxy.models import UpstreamQuery

logger = logging.getLogger(__name__)

Metadata = Sequence[tuple[str, str]]


def api_endpoint(location_id: str) -> str:
    """The agent location decides the API endpoint."""
    if location_id == "global":
        return "dialogflow.googleapis.com:443"
    return f"{location_id}-dialogflow.googleapis.com:443"


class DialogflowClient(Protocol):
    def detect_intent(
        self,
        query: UpstreamQuery,
        *,
        timeout: float,
        metadata: Metadata = (),
    ) -> dict[str, Any]: ...

    def close(self) -> None: ...


class EsSessionsClient:
    """Dialogflow ES (v2) sessions client."""

    def __init__(self, location_id: str, client: Any = None) -> None:
        self.endpoint = api_endpoint(location_id)
        self._client = client or dialogflow_v2.SessionsClient(
            client_options={"api_endpoint": self.endpoint}
        )

    def detect_intent(
        self,
        query: UpstreamQuery,
        *,
        timeout: float,
        metadata: Metadata = (),
    ) -> dict[str, Any]:
        request = dialogflow_v2.DetectIntentRequest(
            session=query.session_path,
            query_input=dialogflow_v2.QueryInput(
                text=dialogflow_v2.TextInput(
                    text=query.text,
                    language_code=query.language_code,
                )
            ),
        )
        response = self._client.detect_intent(request=request, timeout=timeout, metadata=metadata)
        if "query_result" not in response:
            raise UpstreamFailure("Dialogflow returned empty result")
        return dialogflow_v2.QueryResult.to_dict(response.query_result)

    def close(self) -> None:
        self._client.transport.close()


class CxSessionsClient:
    """Dialogflow CX sessions client."""

    def __init__(self, location_id: str, client: Any = None) -> None:
        self.endpoint = api_endpoint(location_id)
        self._client = client or sessions.SessionsClient(
            client_options={"api_endpoint": self.endpoint}
        )

    def detect_intent(
        self,
        query: UpstreamQuery,
        *,
        timeout: float,
        metadata: Metadata = (),
    ) -> dict[str, Any]:
        request = session.DetectIntentRequest(
            session=query.session_path,
            query_input=session.QueryInput(
                text=session.TextInput(text=query.text),
                language_code=query.language_code,
            ),
        )
        response = self._client.detect_intent(request=request, timeout=timeout, metadata=metadata)
        if "query_result" not in response:
            raise UpstreamFailure("Dialogflow returned empty result")
        return session.QueryResult.to_dict(response.query_result)

    def close(self) -> None:
        self._client.transport.close()


def create_client(settings: Settings) -> DialogflowClient:
    """Open the long-lived sessions client for the configured backend.

    Credentials come from the environment (ADC or GOOGLE_APPLICATION_CREDENTIALS).
    """
    client_cls = CxSessionsClient if settings.is_cx else EsSessionsClient
    client = client_cls(settings.location_id)
    logger.info(
        "Dialogflow client initialized",
        extra={
            "backend": settings.backend.value,
            "endpoint": client.endpoint,
            "project_id": settings.project_id,
            "location_id": settings.location_id,
        },
    )
    return client

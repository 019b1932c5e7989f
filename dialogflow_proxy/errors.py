"""Errors raised while proxying a detect-intent call.

Each ProxyError carries the HTTP status and the plain-text body sent back
to the caller.
"""

from __future__ import annotations

from typing import Iterable


class ConfigError(RuntimeError):
    """Invalid or incomplete configuration. Fatal at startup."""

    def __init__(self, problems: Iterable[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class ProxyError(Exception):
    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class MalformedInput(ProxyError):
    """Request body is not a JSON object of the expected shape, or an id is not a path segment."""

    status_code = 400


class MissingField(ProxyError):
    """Required field(s) still empty after defaults were applied."""

    status_code = 400

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class MethodNotAllowed(ProxyError):
    status_code = 405

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__("Method not allowed")


class UpstreamFailure(ProxyError):
    """The Dialogflow call itself failed."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.upstream_message = message
        super().__init__(f"Dialogflow API error: {message}")


class EncodingFailure(ProxyError):
    status_code = 500

    def __init__(self) -> None:
        super().__init__("Failed to encode response")

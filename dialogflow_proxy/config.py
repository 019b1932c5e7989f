"""Settings for the Dialogflow proxy.

Everything is read from environment variables (a local ``.env`` is loaded
with python-dotenv). Missing project or location ids are fatal at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Mapping

from dotenv import load_dotenv

from dialogflow_proxy.errors import ConfigError
from dialogflow_proxy.logging_config import VALID_LOG_LEVELS

TRUTHY = {"1", "true", "yes"}

DETECT_INTENT_PATH = "/api/dialogflow/detectIntent"
CORS_METHODS = ["POST", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization"]


class Backend(str, Enum):
    ES = "es"
    CX = "cx"


class SessionIdPolicy(str, Enum):
    """What to do when the caller sends no session id."""

    REQUIRE_CLIENT = "require"
    GENERATE_IF_ABSENT = "generate"


class TextPolicy(str, Enum):
    """How the CX reply text is picked from the response messages."""

    FIRST_MESSAGE = "first"
    ALL_MESSAGES = "all"


# ES agents historically default to "en-US", CX agents to "en".
DEFAULT_LANGUAGE_CODES = {
    Backend.ES: "en-US",
    Backend.CX: "en",
}

DEFAULT_SESSION_ID_POLICIES = {
    Backend.ES: SessionIdPolicy.GENERATE_IF_ABSENT,
    Backend.CX: SessionIdPolicy.REQUIRE_CLIENT,
}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Attributes:
        project_id: GCP project hosting the agent.
        location_id: Agent region, also used to pick the API endpoint.
        allowed_origin: Single CORS origin, or "*".
        port: Listen port for the HTTP server.
        default_agent_id: Agent used when the request carries none.
        cors_debug: Log every CORS-relevant request.
        backend: Dialogflow ES or CX.
        session_id_policy: Reject or generate a missing session id.
        require_agent_id: ES only; CX always needs an agent id.
        default_language_code: Locale used when the request carries none.
        text_policy: CX reply selection.
        upstream_timeout_seconds: Deadline for one detect-intent call.
        forward_authorization: Pass the caller's Authorization header upstream.
        log_level: Root log level.
        service_name: Service name injected in every log line.
    """

    project_id: str
    location_id: str
    allowed_origin: str = "*"
    port: int = 8080
    default_agent_id: str = ""
    cors_debug: bool = False
    backend: Backend = Backend.ES
    session_id_policy: SessionIdPolicy = SessionIdPolicy.GENERATE_IF_ABSENT
    require_agent_id: bool = True
    default_language_code: str = "en-US"
    text_policy: TextPolicy = TextPolicy.FIRST_MESSAGE
    upstream_timeout_seconds: float = 30.0
    forward_authorization: bool = False
    log_level: str = "INFO"
    service_name: str = "dialogflow-proxy"

    @property
    def is_cx(self) -> bool:
        return self.backend is Backend.CX

    def validate(self) -> list[str]:
        """Return the list of configuration problems (empty means OK)."""
        errors: list[str] = []

        if not self.project_id:
            errors.append("DIALOGFLOW_PROJECT_ID must be set")
        if not self.location_id:
            errors.append("DIALOGFLOW_LOCATION_ID must be set")
        if not self.allowed_origin:
            errors.append("ALLOWED_ORIGIN must not be empty")
        if not 0 < self.port < 65536:
            errors.append(f"PORT out of range: {self.port}")
        if not self.default_language_code:
            errors.append("DEFAULT_LANGUAGE_CODE must not be empty")
        if self.upstream_timeout_seconds <= 0:
            errors.append("UPSTREAM_TIMEOUT_SECONDS must be > 0")
        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"LOG_LEVEL invalid: {self.log_level}. "
                f"Valid: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )

        return errors


def _flag(value: str) -> bool:
    return value.strip().lower() in TRUTHY


def _enum(enum_cls, key: str, raw: str, errors: list[str]):
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        valid = ", ".join(member.value for member in enum_cls)
        errors.append(f"{key} invalid: {raw!r}. Valid: {valid}")
        return None


def _number(cast, key: str, raw: str, errors: list[str]):
    try:
        return cast(raw)
    except ValueError:
        errors.append(f"{key} is not a number: {raw!r}")
        return None


def settings_from_env(env: Mapping[str, str] | None = None) -> Settings:
    """Build and validate Settings from an environment mapping.

    Raises:
        ConfigError: if any variable is missing or invalid.
    """
    env = os.environ if env is None else env
    errors: list[str] = []

    backend = _enum(Backend, "DIALOGFLOW_BACKEND", env.get("DIALOGFLOW_BACKEND", "es"), errors)
    backend = backend or Backend.ES

    raw_policy = env.get("SESSION_ID_POLICY", "")
    if raw_policy:
        session_id_policy = _enum(SessionIdPolicy, "SESSION_ID_POLICY", raw_policy, errors)
    else:
        session_id_policy = DEFAULT_SESSION_ID_POLICIES[backend]

    text_policy = _enum(TextPolicy, "CX_TEXT_POLICY", env.get("CX_TEXT_POLICY", "first"), errors)
    port = _number(int, "PORT", env.get("PORT", "8080"), errors)
    timeout = _number(float, "UPSTREAM_TIMEOUT_SECONDS", env.get("UPSTREAM_TIMEOUT_SECONDS", "30"), errors)

    if errors:
        raise ConfigError(errors)

    settings = Settings(
        project_id=env.get("DIALOGFLOW_PROJECT_ID", "").strip(),
        location_id=env.get("DIALOGFLOW_LOCATION_ID", "").strip(),
        allowed_origin=env.get("ALLOWED_ORIGIN", "*"),
        port=port,
        default_agent_id=env.get("DIALOGFLOW_AGENT_ID", "").strip(),
        cors_debug=_flag(env.get("CORS_DEBUG", "")),
        backend=backend,
        session_id_policy=session_id_policy,
        require_agent_id=_flag(env.get("DIALOGFLOW_REQUIRE_AGENT_ID", "true")),
        default_language_code=env.get("DEFAULT_LANGUAGE_CODE", "") or DEFAULT_LANGUAGE_CODES[backend],
        text_policy=text_policy,
        upstream_timeout_seconds=timeout,
        forward_authorization=_flag(env.get("FORWARD_AUTHORIZATION", "")),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        service_name=env.get("SERVICE_NAME", "dialogflow-proxy"),
    )

    errors = settings.validate()
    if errors:
        raise ConfigError(errors)
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load .env once and return the cached Settings."""
    load_dotenv()
    return settings_from_env()

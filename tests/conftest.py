"""Shared fixtures: settings for both backends and a fake Dialogflow client."""

from __future__ import annotations

import pytest

from dialogflow_proxy.config import Backend, SessionIdPolicy, Settings, TextPolicy
from tests.fakes.fake_dialogflow_client import FakeDialogflowClient


@pytest.fixture
def es_settings() -> Settings:
    return Settings(
        project_id="my-project",
        location_id="us-central1",
        backend=Backend.ES,
        session_id_policy=SessionIdPolicy.GENERATE_IF_ABSENT,
        default_language_code="en-US",
    )


@pytest.fixture
def cx_settings() -> Settings:
    return Settings(
        project_id="my-project",
        location_id="us-central1",
        backend=Backend.CX,
        session_id_policy=SessionIdPolicy.REQUIRE_CLIENT,
        default_language_code="en",
        text_policy=TextPolicy.FIRST_MESSAGE,
    )


@pytest.fixture
def fake_client() -> FakeDialogflowClient:
    return FakeDialogflowClient()

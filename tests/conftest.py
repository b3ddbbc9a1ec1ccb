"""Shared fixtures for the studio test-suite."""

from __future__ import annotations

from typing import Dict

import pytest

from tts_studio.app import create_app
from tts_studio.config import ConfigLoader

from tests.fakes import FakeProvider


@pytest.fixture
def environ() -> Dict[str, str]:
    return {"ELEVENLABS_API_KEY": "test-key-1234"}


@pytest.fixture
def config_loader(environ: Dict[str, str]) -> ConfigLoader:
    return ConfigLoader(environ)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def app(config_loader: ConfigLoader, provider: FakeProvider):
    flask_app = create_app(config_loader, provider)  # type: ignore[arg-type]
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()

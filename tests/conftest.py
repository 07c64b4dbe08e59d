from __future__ import annotations

import pytest
from click.testing import CliRunner

from src.datatypes import AppConfig
from tests.helpers.fakes import FakeWorld


@pytest.fixture
def runner() -> CliRunner:
    """Provide a Click runner configured for CLI smoke tests."""

    return CliRunner()


@pytest.fixture
def world() -> FakeWorld:
    """Fresh set of fake sources, tags and sinks for one job."""

    return FakeWorld()


@pytest.fixture
def cfg() -> AppConfig:
    """Default configuration with the text overlay disabled so pixel checks stay simple."""

    app = AppConfig()
    app.overlay.enabled = False
    return app

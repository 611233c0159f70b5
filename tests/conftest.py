"""Shared fixtures."""

import pytest

from fakes import LINEUP_ID, STATION_ONE, STATION_TWO, FakeGuideStore, FakeSchedulesDirectClient
from guidearr.core.types import Channel
from guidearr.providers.config import ProviderConfiguration
from guidearr.providers.schedulesdirect.provider import SchedulesDirectProvider
from guidearr.providers.schedulesdirect.sync import make_channel_id

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def store() -> FakeGuideStore:
    return FakeGuideStore()


@pytest.fixture
def sd_client() -> FakeSchedulesDirectClient:
    return FakeSchedulesDirectClient()


@pytest.fixture
def sd_config() -> ProviderConfiguration:
    return ProviderConfiguration(
        name="Schedules Direct",
        provider="schedulesdirect",
        username="guide-user",
        password="secret",
        lineups=[LINEUP_ID],
    )


@pytest.fixture
def make_sd_provider(sd_config, sd_client):
    """Factory building providers that share the scripted client."""

    def _make(**kwargs) -> SchedulesDirectProvider:
        return SchedulesDirectProvider(sd_config, client=sd_client, **kwargs)

    return _make


@pytest.fixture
def sd_channels() -> list[Channel]:
    return [
        Channel(id=make_channel_id("2.1", STATION_ONE), name="Test One"),
        Channel(id=make_channel_id("5", STATION_TWO), name="Test Two"),
    ]

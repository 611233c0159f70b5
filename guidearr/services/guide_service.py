"""Guide service facade.

This module provides a clean API for guide source operations, hiding the
consumer layer from callers.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from guidearr.core.exceptions import LineupsNotSupportedError
from guidearr.core.interfaces import GuideProvider, GuideStore
from guidearr.core.types import (
    AvailableLineup,
    Channel,
    CoverageArea,
    GuideSource,
    GuideSourceChannel,
)
from guidearr.services.context import SyncContext
from guidearr.utilities.fuzzy_match import match_channels

if TYPE_CHECKING:
    from guidearr.consumers.guide_updates import GuideUpdateResult

logger = logging.getLogger(__name__)

MATCH_STATUS_OK = "ok"
MATCH_STATUS_EMPTY_INPUT = "empty input"


@dataclass
class AddGuideSourceResult:
    """Result of adding a guide source."""

    guide_source: GuideSource
    provider_name: str
    channels: list[GuideSourceChannel] = field(default_factory=list)


@dataclass
class MatchResult:
    """Closest guide channels for a channel name."""

    query: str
    status: str = MATCH_STATUS_OK
    channels: list[GuideSourceChannel] = field(default_factory=list)


@dataclass
class SubscribeResult:
    """Result of subscribing a guide source to a provider lineup."""

    lineup_id: str
    response: Any = None
    channels: list[GuideSourceChannel] = field(default_factory=list)


class GuideService:
    """Service for guide source operations.

    Wraps the synchronization context and the guide update consumer.
    """

    def __init__(self, ctx: SyncContext):
        self._ctx = ctx

    @property
    def context(self) -> SyncContext:
        return self._ctx

    def add_guide_source(self, source: GuideSource) -> AddGuideSourceResult:
        """Set up the provider for a stored guide source and ingest its channels.

        Raises:
            ProviderConfigurationError: If the source's settings are unusable
            GuideProviderError: If the initial refresh fails
        """
        with self._ctx.lock_for(source.id):
            provider = self._ctx.create_provider(source)
            logger.info("[GUIDE] Detected provider %s for %s", provider.name, source.name)

            state = provider.refresh(None)
            self._ctx.store.update_guide_source_state(source.id, state)

            channels = self._insert_channels(source.id, provider.channels())

        logger.info("[GUIDE] Added guide source %s with %d channels", source.name, len(channels))
        return AddGuideSourceResult(
            guide_source=source, provider_name=provider.name, channels=channels
        )

    def get_provider(self, guide_source_id: int) -> GuideProvider:
        """Provider for a guide source.

        Raises:
            KeyError: If the guide source has no provider
        """
        return self._ctx.get_provider(guide_source_id)

    def update_guide_source(
        self,
        guide_source_id: int,
        days_to_get: int | None = None,
        cancel: threading.Event | None = None,
    ) -> "GuideUpdateResult":
        """Run a guide update now. See run_guide_update()."""
        from guidearr.consumers.guide_updates import run_guide_update

        return run_guide_update(self._ctx, guide_source_id, days_to_get=days_to_get, cancel=cancel)

    def match(self, guide_source_id: int, channel_name: str, n: int | None = None) -> MatchResult:
        """Find the guide source channels whose names best match `channel_name`."""
        if not channel_name or not channel_name.strip():
            return MatchResult(query=channel_name, status=MATCH_STATUS_EMPTY_INPUT)

        channels = self._ctx.store.get_channels_for_guide_source(guide_source_id)
        return MatchResult(query=channel_name, channels=match_channels(channels, channel_name, n=n))

    # =========================================================================
    # LINEUPS
    # =========================================================================

    def _lineup_provider(self, guide_source_id: int) -> GuideProvider:
        provider = self._ctx.get_provider(guide_source_id)
        if not provider.supports_lineups():
            raise LineupsNotSupportedError(
                f"provider {provider.name} of guide source {guide_source_id} "
                "does not support lineups"
            )
        return provider

    def lineup_coverage(self, guide_source_id: int) -> list[CoverageArea]:
        return self._lineup_provider(guide_source_id).lineup_coverage()

    def available_lineups(
        self, guide_source_id: int, country_code: str, postal_code: str
    ) -> list[AvailableLineup]:
        return self._lineup_provider(guide_source_id).available_lineups(country_code, postal_code)

    def preview_lineup_channels(self, guide_source_id: int, lineup_id: str) -> list[Channel]:
        return self._lineup_provider(guide_source_id).preview_lineup_channels(lineup_id)

    def subscribe_to_lineup(self, guide_source_id: int, lineup_id: str) -> SubscribeResult:
        """Subscribe to a provider lineup and ingest its channels.

        Raises:
            LineupsNotSupportedError: If the provider has no lineups
            GuideProviderError: If the subscription or refresh fails
        """
        provider = self._lineup_provider(guide_source_id)
        with self._ctx.lock_for(guide_source_id):
            response = provider.subscribe_to_lineup(lineup_id)

            state = provider.refresh(None)
            self._ctx.store.update_guide_source_state(guide_source_id, state)

            new_channels = [c for c in provider.channels() if c.lineup == lineup_id]
            channels = self._insert_channels(guide_source_id, new_channels)

        logger.info(
            "[GUIDE] Subscribed guide source %d to lineup %s (%d channels)",
            guide_source_id,
            lineup_id,
            len(channels),
        )
        return SubscribeResult(lineup_id=lineup_id, response=response, channels=channels)

    def unsubscribe_from_lineup(self, guide_source_id: int, lineup_id: str) -> None:
        """Remove a provider lineup from the account.

        Guide channels already ingested from the lineup are kept.
        """
        provider = self._lineup_provider(guide_source_id)
        with self._ctx.lock_for(guide_source_id):
            provider.unsubscribe_from_lineup(lineup_id)
        logger.info(
            "[GUIDE] Unsubscribed guide source %d from lineup %s", guide_source_id, lineup_id
        )

    def _insert_channels(
        self, guide_source_id: int, channels: list[Channel]
    ) -> list[GuideSourceChannel]:
        return [
            self._ctx.store.insert_guide_source_channel(guide_source_id, channel, None)
            for channel in channels
        ]


def create_guide_service(store: GuideStore) -> GuideService:
    """Create a guide service with providers for every stored guide source."""
    return GuideService(SyncContext.from_store(store))

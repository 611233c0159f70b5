"""Abstract interfaces for guidearr.

Defines the contracts that guide providers must implement and the
persistence contract the synchronization run depends on.
"""

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Protocol

from guidearr.core.types import (
    AvailableLineup,
    Channel,
    CoverageArea,
    GuideSource,
    GuideSourceChannel,
    Lineup,
    ProgrammeContainer,
    ProviderData,
    VideoSourceTrack,
)

if TYPE_CHECKING:
    from guidearr.providers.config import ProviderConfiguration

# =============================================================================
# GUIDE STORE - persistence collaborator
# =============================================================================


class GuideStore(Protocol):
    """Protocol for guide persistence.

    The synchronization run depends on this protocol, not a database.
    Implementations can be database-backed or in-memory for testing.
    Lookups of a single record raise KeyError when it does not exist.
    """

    def get_guide_source(self, guide_source_id: int) -> GuideSource:
        """Get a guide source by id."""
        ...

    def get_all_guide_sources(self) -> list[GuideSource]:
        """Get every configured guide source."""
        ...

    def update_guide_source_state(self, guide_source_id: int, state: bytes) -> None:
        """Save the opaque provider state returned by refresh."""
        ...

    def get_channels_for_guide_source(self, guide_source_id: int) -> list[GuideSourceChannel]:
        """Get all channels ingested for a guide source."""
        ...

    def get_enabled_channels_for_guide_source(
        self, guide_source_id: int
    ) -> list[GuideSourceChannel]:
        """Get channels of a guide source that are assigned to a lineup."""
        ...

    def get_guide_source_channel(self, guide_source_channel_id: int) -> GuideSourceChannel:
        """Get a guide channel by id."""
        ...

    def insert_guide_source_channel(
        self, guide_source_id: int, channel: Channel, provider_data: ProviderData | None
    ) -> GuideSourceChannel:
        """Insert (or upsert by xmltv id) a channel for a guide source."""
        ...

    def update_guide_source_channel(
        self, xmltv_id: str, provider_data: ProviderData | None
    ) -> None:
        """Replace the per-channel provider state of a guide channel."""
        ...

    def get_programmes_for_active_channels(self) -> list[ProgrammeContainer]:
        """Get programmes linked to lineup-assigned channels."""
        ...

    def upsert_programme(self, guide_source_id: int, container: ProgrammeContainer) -> None:
        """Insert or update a programme."""
        ...

    def get_lineup(self, lineup_id: int) -> Lineup:
        """Get a lineup by id."""
        ...

    def get_video_source_track(self, track_id: int) -> VideoSourceTrack:
        """Get a video source track by id."""
        ...


# =============================================================================
# GUIDE PROVIDER - main provider interface
# =============================================================================


class GuideProvider(ABC):
    """Abstract base class for guide data providers.

    Providers fetch channel catalogs and schedules from upstream EPG
    services and normalize them into canonical dataclasses.

    Lineup subscription is an optional sub-capability: callers must check
    supports_lineups() before relying on the lineup methods. The defaults
    here return empty values so minimal providers satisfy the interface.

    A provider instance keeps mutable caches and must be confined to one
    synchronization run at a time.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human label for this provider (e.g., 'Schedules Direct')."""
        ...

    @abstractmethod
    def channels(self) -> list[Channel]:
        """Last-known channel catalog. Never triggers a network call."""
        ...

    @abstractmethod
    def refresh(self, last_state: bytes | None) -> bytes:
        """Pull the provider's top-level catalog (lineups, channels).

        Args:
            last_state: Opaque state returned by a prior refresh; None
                forces a full pull

        Returns:
            New opaque state to persist

        Updates the channel catalog returned by channels().
        """
        ...

    @abstractmethod
    def schedule(
        self,
        days_to_get: int,
        input_channels: list[Channel],
        input_programmes: list[ProgrammeContainer],
        cancel: threading.Event | None = None,
    ) -> tuple[dict[str, Any], list[ProgrammeContainer]]:
        """Pull programme data for a day window.

        Args:
            days_to_get: Number of days starting today
            input_channels: Channels to fetch, with their per-channel state
            input_programmes: Programmes already persisted
            cancel: Optional event checked between network phases

        Returns:
            Tuple of (per-channel state keyed by channel id,
            new or changed programmes)
        """
        ...

    @abstractmethod
    def configuration(self) -> "ProviderConfiguration":
        """Backing settings, for persistence round-trip."""
        ...

    def supports_lineups(self) -> bool:
        return False

    def lineup_coverage(self) -> list[CoverageArea]:
        return []

    def available_lineups(self, country_code: str, postal_code: str) -> list[AvailableLineup]:
        return []

    def preview_lineup_channels(self, lineup_id: str) -> list[Channel]:
        return []

    def subscribe_to_lineup(self, lineup_id: str) -> Any:
        return None

    def unsubscribe_from_lineup(self, lineup_id: str) -> None:
        return None

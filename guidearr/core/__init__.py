"""Core types, interfaces and exceptions."""

from guidearr.core.exceptions import (
    GuideProviderError,
    GuidearrError,
    GuideUpdateError,
    LineupCompositionError,
    LineupsNotSupportedError,
    ProviderConfigurationError,
    ProviderDataError,
    ScheduleSyncError,
    SchedulesDirectError,
    SyncCancelledError,
    XMLTVLoadError,
)
from guidearr.core.interfaces import GuideProvider, GuideStore
from guidearr.core.types import (
    Actor,
    Audio,
    AvailableLineup,
    Channel,
    CoverageArea,
    Credits,
    EpisodeNum,
    GuideSource,
    GuideSourceChannel,
    Icon,
    Lineup,
    LineupChannel,
    Logo,
    PreviouslyShown,
    Programme,
    ProgrammeContainer,
    ProviderData,
    Rating,
    Subtitle,
    TextElement,
    TunerLineupItem,
    Video,
    VideoSourceTrack,
)

__all__ = [
    # Exceptions
    "GuideProviderError",
    "GuidearrError",
    "GuideUpdateError",
    "LineupCompositionError",
    "LineupsNotSupportedError",
    "ProviderConfigurationError",
    "ProviderDataError",
    "ScheduleSyncError",
    "SchedulesDirectError",
    "SyncCancelledError",
    "XMLTVLoadError",
    # Interfaces
    "GuideProvider",
    "GuideStore",
    # Types
    "Actor",
    "Audio",
    "AvailableLineup",
    "Channel",
    "CoverageArea",
    "Credits",
    "EpisodeNum",
    "GuideSource",
    "GuideSourceChannel",
    "Icon",
    "Lineup",
    "LineupChannel",
    "Logo",
    "PreviouslyShown",
    "Programme",
    "ProgrammeContainer",
    "ProviderData",
    "Rating",
    "Subtitle",
    "TextElement",
    "TunerLineupItem",
    "Video",
    "VideoSourceTrack",
]

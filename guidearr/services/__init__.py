"""Service layer.

This layer provides clean APIs for guide operations, hiding the consumer
layer implementation details from callers.

Layer hierarchy:
    Services → Consumers → Providers
"""

from guidearr.services.context import ProviderFactory, SyncContext
from guidearr.services.guide_service import (
    MATCH_STATUS_EMPTY_INPUT,
    MATCH_STATUS_OK,
    AddGuideSourceResult,
    GuideService,
    MatchResult,
    SubscribeResult,
    create_guide_service,
)

__all__ = [
    "MATCH_STATUS_EMPTY_INPUT",
    "MATCH_STATUS_OK",
    "AddGuideSourceResult",
    "GuideService",
    "MatchResult",
    "ProviderFactory",
    "SubscribeResult",
    "SyncContext",
    "create_guide_service",
]

"""Consumer layer - guide updates, lineup composition and scheduling."""

from guidearr.consumers.guide_updates import GuideUpdateResult, run_guide_update
from guidearr.consumers.lineup import (
    ComposedLineupChannel,
    LineupCompositionResult,
    compose_lineup,
    compose_lineup_channel,
    lineup_xmltv,
    tuner_url,
)
from guidearr.consumers.scheduler import GuideUpdateScheduler

__all__ = [
    "ComposedLineupChannel",
    "GuideUpdateResult",
    "GuideUpdateScheduler",
    "LineupCompositionResult",
    "compose_lineup",
    "compose_lineup_channel",
    "lineup_xmltv",
    "run_guide_update",
    "tuner_url",
]

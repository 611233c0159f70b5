"""Lineup composition.

Joins a lineup channel with its video track and guide channel and projects
the record a tuner client reads from the published lineup, plus the XMLTV
guide for the same channels.
"""

import dataclasses
import logging
from dataclasses import dataclass, field

from guidearr.core.exceptions import LineupCompositionError
from guidearr.core.interfaces import GuideStore
from guidearr.core.types import (
    Channel,
    GuideSourceChannel,
    Lineup,
    LineupChannel,
    ProgrammeContainer,
    TunerLineupItem,
    VideoSourceTrack,
)
from guidearr.utilities.xmltv import programmes_to_xmltv

logger = logging.getLogger(__name__)


@dataclass
class ComposedLineupChannel:
    """A lineup channel with its referenced entities loaded."""

    lineup_channel: LineupChannel
    lineup: Lineup
    video_track: VideoSourceTrack
    guide_channel: GuideSourceChannel
    tuner_item: TunerLineupItem


@dataclass
class LineupCompositionResult:
    """Composed channels of a lineup plus the ones that failed."""

    lineup: Lineup
    channels: list[ComposedLineupChannel] = field(default_factory=list)
    failures: list[LineupCompositionError] = field(default_factory=list)

    @property
    def tuner_items(self) -> list[TunerLineupItem]:
        return [composed.tuner_item for composed in self.channels]

    def to_dicts(self) -> list[dict]:
        """Published lineup in tuner wire form."""
        return [item.to_dict() for item in self.tuner_items]


def tuner_url(lineup: Lineup, channel_number: str) -> str:
    return f"http://{lineup.discovery_address}:{lineup.port}/auto/v{channel_number}"


def compose_lineup_channel(
    lineup: Lineup | None,
    lineup_channel: LineupChannel,
    store: GuideStore,
) -> ComposedLineupChannel:
    """Load the entities a lineup channel references and build its tuner item.

    Args:
        lineup: Lineup the channel belongs to, or None to load it by id
        lineup_channel: Channel to compose
        store: Persistence to read the video track and guide channel from

    Raises:
        LineupCompositionError: If the lineup, video track or guide channel
            does not exist
    """
    try:
        if lineup is None:
            lineup = store.get_lineup(lineup_channel.lineup_id)
        video_track = store.get_video_source_track(lineup_channel.video_track_id)
        guide_channel = store.get_guide_source_channel(lineup_channel.guide_channel_id)
    except KeyError as e:
        raise LineupCompositionError(
            lineup_channel.id,
            f"lineup channel {lineup_channel.id} ({lineup_channel.title}) "
            f"references a missing record: {e}",
        ) from e

    tuner_item = TunerLineupItem(
        guide_name=lineup_channel.title,
        guide_number=lineup_channel.channel_number,
        url=tuner_url(lineup, lineup_channel.channel_number),
        drm=False,
        favorite=lineup_channel.favorite,
        hd=lineup_channel.hd,
    )
    return ComposedLineupChannel(
        lineup_channel=lineup_channel,
        lineup=lineup,
        video_track=video_track,
        guide_channel=guide_channel,
        tuner_item=tuner_item,
    )


def compose_lineup(
    lineup: Lineup,
    channels: list[LineupChannel],
    store: GuideStore,
) -> LineupCompositionResult:
    """Compose every channel of a lineup.

    A channel whose references cannot be loaded is recorded as a failure
    and the rest of the lineup is still composed.
    """
    result = LineupCompositionResult(lineup=lineup)
    for lineup_channel in channels:
        try:
            result.channels.append(compose_lineup_channel(lineup, lineup_channel, store))
        except LineupCompositionError as e:
            logger.warning("[LINEUP] Skipping channel in %s: %s", lineup.name, e)
            result.failures.append(e)

    logger.debug(
        "[LINEUP] Composed %d channels for %s (%d failed)",
        len(result.channels),
        lineup.name,
        len(result.failures),
    )
    return result


def lineup_xmltv(
    composition: LineupCompositionResult,
    programmes: list[ProgrammeContainer],
    generator_name: str = "guidearr",
) -> str:
    """Render the XMLTV guide for a composed lineup.

    Channels are identified by their lineup channel id and named by the
    operator's title; programmes are moved from their guide channel id to
    that lineup channel id. Programmes for channels outside the lineup are
    left out.
    """
    channels: list[Channel] = []
    lineup_ids: dict[str, list[str]] = {}
    for composed in composition.channels:
        lineup_channel = composed.lineup_channel
        guide_channel = composed.guide_channel.channel
        channel_id = str(lineup_channel.id)
        channels.append(
            Channel(
                id=channel_id,
                name=lineup_channel.title,
                number=lineup_channel.channel_number,
                call_sign=guide_channel.call_sign,
                logos=list(guide_channel.logos),
                urls=list(guide_channel.urls),
            )
        )
        lineup_ids.setdefault(composed.guide_channel.xmltv_id, []).append(channel_id)

    rendered = []
    for container in programmes:
        for channel_id in lineup_ids.get(container.programme.channel, ()):
            rendered.append(dataclasses.replace(container.programme, channel=channel_id))

    logger.debug(
        "[LINEUP] Rendering XMLTV for %s: %d channels, %d programmes",
        composition.lineup.name,
        len(channels),
        len(rendered),
    )
    return programmes_to_xmltv(channels, rendered, generator_name=generator_name)

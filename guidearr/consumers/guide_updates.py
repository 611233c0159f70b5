"""Guide update run for one guide source.

Flow:
1. refresh() the provider with its persisted state
2. load the source's enabled channels with their per-channel state
3. load programmes of active channels
4. schedule() the day window
5. save the refreshed source state, each channel's new state, and the
   returned programmes

Per-channel and per-programme writes are independent: a failed write is
logged and reported, never rolled back.
"""

import dataclasses
import threading
from dataclasses import dataclass, field
from datetime import datetime

from guidearr.config import Config
from guidearr.core.exceptions import (
    GuidearrError,
    GuideUpdateError,
    ProviderDataError,
    SyncCancelledError,
)
from guidearr.core.types import Channel, ProviderData
from guidearr.services.context import SyncContext
from guidearr.utilities.logging import sync_fields

REFRESH_PHASE = "refresh"
SCHEDULE_PHASE = "schedule"
SAVE_PHASE = "save"


@dataclass
class GuideUpdateResult:
    """Result of a guide update run."""

    guide_source_id: int
    started_at: datetime
    completed_at: datetime | None = None
    channels_requested: int = 0
    channels_updated: int = 0
    programmes_received: int = 0
    programmes_upserted: int = 0
    channel_failures: dict[str, str] = field(default_factory=dict)
    programme_failures: int = 0

    @property
    def success(self) -> bool:
        return not self.channel_failures and not self.programme_failures

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()


def _channels_to_get(ctx: SyncContext, guide_source_id: int) -> list[Channel]:
    channels: dict[str, Channel] = {}
    for guide_channel in ctx.store.get_enabled_channels_for_guide_source(guide_source_id):
        provider_data = guide_channel.provider_data
        if provider_data is not None and not isinstance(provider_data, ProviderData):
            try:
                provider_data = ProviderData.from_json(provider_data)
            except ProviderDataError as e:
                ctx.logger.warning(
                    "[SYNC] Channel %s has unreadable provider data, ignoring: %s",
                    guide_channel.xmltv_id,
                    e,
                    extra=sync_fields(guide_source_id),
                )
                provider_data = None
        channels[guide_channel.xmltv_id] = dataclasses.replace(
            guide_channel.channel, provider_data=provider_data
        )
    return list(channels.values())


def run_guide_update(
    ctx: SyncContext,
    guide_source_id: int,
    days_to_get: int | None = None,
    cancel: threading.Event | None = None,
) -> GuideUpdateResult:
    """Refresh a guide source and import its new or changed programmes.

    Raises:
        GuideUpdateError: If the source is unknown, already updating, or
            refresh/schedule fails. Channel and programme data are left
            unchanged in that case.
    """
    if days_to_get is None:
        days_to_get = Config.GUIDE_DAYS_TO_GET

    result = GuideUpdateResult(guide_source_id=guide_source_id, started_at=datetime.now())
    log = ctx.logger

    try:
        source = ctx.store.get_guide_source(guide_source_id)
        provider = ctx.get_provider(guide_source_id)
    except KeyError as e:
        raise GuideUpdateError(guide_source_id, f"unknown guide source {guide_source_id}") from e

    lock = ctx.lock_for(guide_source_id)
    if not lock.acquire(blocking=False):
        raise GuideUpdateError(
            guide_source_id, f"guide source {guide_source_id} is already updating"
        )

    try:
        log.info(
            "[SYNC] Guide source %d (%s) update is beginning",
            source.id,
            source.name,
            extra=sync_fields(guide_source_id, REFRESH_PHASE),
        )

        try:
            new_state = provider.refresh(source.provider_data)
        except GuidearrError as e:
            log.error(
                "[SYNC] Refreshing %s failed: %s",
                source.name,
                e,
                extra=sync_fields(guide_source_id, REFRESH_PHASE),
            )
            raise GuideUpdateError(
                guide_source_id,
                f"error refreshing {source.name} ({source.provider}): {e}",
                phase=REFRESH_PHASE,
            ) from e

        channels = _channels_to_get(ctx, guide_source_id)
        existing = ctx.store.get_programmes_for_active_channels()
        result.channels_requested = len(channels)

        log.info(
            "[SYNC] Getting %d days for %d channels from guide source %d",
            days_to_get,
            len(channels),
            guide_source_id,
            extra=sync_fields(guide_source_id, SCHEDULE_PHASE),
        )

        try:
            channel_state, programmes = provider.schedule(
                days_to_get, channels, existing, cancel=cancel
            )
        except SyncCancelledError as e:
            log.warning("[SYNC] %s", e, extra=sync_fields(guide_source_id, e.phase))
            raise GuideUpdateError(guide_source_id, str(e), phase=e.phase) from e
        except GuidearrError as e:
            phase = getattr(e, "phase", None) or SCHEDULE_PHASE
            log.error(
                "[SYNC] Schedule update for %s failed: %s",
                source.name,
                e,
                extra=sync_fields(guide_source_id, phase),
            )
            raise GuideUpdateError(
                guide_source_id, f"error updating schedule for {source.name}: {e}", phase=phase
            ) from e

        save_fields = sync_fields(guide_source_id, SAVE_PHASE)
        ctx.store.update_guide_source_state(guide_source_id, new_state)

        for channel_id, state in channel_state.items():
            try:
                ctx.store.update_guide_source_channel(channel_id, state)
                result.channels_updated += 1
            except Exception as e:
                log.exception(
                    "[SYNC] Failed to save state for channel %s", channel_id, extra=save_fields
                )
                result.channel_failures[channel_id] = str(e)

        result.programmes_received = len(programmes)
        for container in programmes:
            try:
                ctx.store.upsert_programme(guide_source_id, container)
                result.programmes_upserted += 1
            except Exception:
                log.exception(
                    "[SYNC] Failed to save programme %s on %s",
                    container.programme.id,
                    container.programme.channel,
                    extra=save_fields,
                )
                result.programme_failures += 1
    finally:
        lock.release()

    result.completed_at = datetime.now()
    log.info(
        "[SYNC] Guide source %d completed: %d programmes imported, %d channels updated in %.1fs",
        guide_source_id,
        result.programmes_upserted,
        result.channels_updated,
        result.duration_seconds,
        extra=sync_fields(guide_source_id),
    )
    return result

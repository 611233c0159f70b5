"""Schedules Direct guide provider.

Implements GuideProvider on top of SchedulesDirectClient:
- refresh(): account status, lineup subscription, channel catalog
- schedule(): change-detected, batched download of airings, program
  metadata and artwork, transformed into canonical programmes

The provider keeps an in-memory schedule hash cache per station. Updates
are staged during a run and committed only when the whole run succeeds,
so a failed fetch never advances the cache.
"""

import json
import logging
import threading
from datetime import datetime
from typing import Any

from guidearr.config import Config
from guidearr.core.exceptions import (
    ProviderConfigurationError,
    ProviderDataError,
    SchedulesDirectError,
    ScheduleSyncError,
    SyncCancelledError,
)
from guidearr.core.interfaces import GuideProvider
from guidearr.core.types import (
    AvailableLineup,
    Channel,
    CoverageArea,
    Logo,
    ProgrammeContainer,
    ProviderData,
)
from guidearr.providers.config import ProviderConfiguration
from guidearr.providers.schedulesdirect.client import SchedulesDirectClient
from guidearr.providers.schedulesdirect.sync import (
    PROVIDER_KIND,
    SchedulePlan,
    StationCache,
    build_date_window,
    decode_schedule_cache,
    encode_schedule_cache,
    make_channel_id,
    plan_schedule_fetches,
    station_id_from_channel_id,
)
from guidearr.providers.schedulesdirect.transform import resolve_artwork, transform_airing
from guidearr.providers.schedulesdirect.types import (
    Artwork,
    ChannelMapEntry,
    Country,
    Headend,
    LineupChannels,
    PreviewChannel,
    ProgramInfo,
    Station,
    StationContainer,
    StationSchedule,
    StatusResponse,
)
from guidearr.utilities.strings import chunked

logger = logging.getLogger(__name__)


def _unique(values) -> list[str]:
    return list(dict.fromkeys(values))


class SchedulesDirectProvider(GuideProvider):
    """Guide provider for the Schedules Direct JSON service.

    Not safe for concurrent use: confine an instance to one
    synchronization run at a time.
    """

    def __init__(
        self,
        config: ProviderConfiguration,
        client: SchedulesDirectClient | None = None,
        program_batch_size: int | None = None,
        artwork_batch_size: int | None = None,
    ):
        if not config.username or not config.password:
            raise ProviderConfigurationError(
                "Schedules Direct requires a username and password"
            )
        self._config = config
        self._client = client or SchedulesDirectClient(config.username, config.password)
        self._program_batch_size = program_batch_size or Config.SD_PROGRAM_BATCH_SIZE
        self._artwork_batch_size = artwork_batch_size or Config.SD_ARTWORK_BATCH_SIZE
        self._channels: list[Channel] = []
        self._stations: dict[str, StationContainer] = {}
        self._schedule_cache: dict[str, StationCache] = {}

    @property
    def name(self) -> str:
        return "Schedules Direct"

    def channels(self) -> list[Channel]:
        return list(self._channels)

    def configuration(self) -> ProviderConfiguration:
        return self._config

    @property
    def schedule_cache(self) -> dict[str, StationCache]:
        """Committed {station id: {date: md5}} cache (copy)."""
        return {station_id: dict(cache) for station_id, cache in self._schedule_cache.items()}

    # =========================================================================
    # LINEUPS
    # =========================================================================

    def supports_lineups(self) -> bool:
        return True

    def lineup_coverage(self) -> list[CoverageArea]:
        coverage = []
        for region, countries in self._client.get_available_countries().items():
            for raw in countries or []:
                country = Country.from_api(raw)
                coverage.append(
                    CoverageArea(
                        region_name=region,
                        full_name=country.full_name,
                        postal_code=country.postal_code,
                        postal_code_example=country.postal_code_example,
                        short_name=country.short_name,
                        one_postal_code=country.one_postal_code,
                    )
                )
        return coverage

    def available_lineups(self, country_code: str, postal_code: str) -> list[AvailableLineup]:
        lineups = []
        for raw in self._client.get_headends(country_code, postal_code):
            headend = Headend.from_api(raw)
            for lineup_id, lineup_name in headend.lineups:
                lineups.append(
                    AvailableLineup(
                        location=headend.location,
                        transport=headend.transport,
                        name=lineup_name,
                        provider_id=lineup_id,
                    )
                )
        return lineups

    def preview_lineup_channels(self, lineup_id: str) -> list[Channel]:
        channels = []
        for raw in self._client.preview_lineup(lineup_id):
            preview = PreviewChannel.from_api(raw)
            channels.append(
                Channel(
                    id="",
                    name=preview.name,
                    number=preview.channel,
                    call_sign=preview.call_sign,
                    affiliate=preview.affiliate,
                    lineup=lineup_id,
                )
            )
        return channels

    def subscribe_to_lineup(self, lineup_id: str) -> dict:
        return self._client.add_lineup(lineup_id)

    def unsubscribe_from_lineup(self, lineup_id: str) -> None:
        self._client.delete_lineup(lineup_id)

    # =========================================================================
    # REFRESH
    # =========================================================================

    def _decode_last_status(self, last_state: bytes | None) -> StatusResponse | None:
        if not last_state:
            return None
        try:
            data = json.loads(last_state)
        except ValueError as e:
            logger.warning("[SD] Ignoring malformed saved status, doing a full refresh: %s", e)
            return None
        if not isinstance(data, dict):
            logger.warning("[SD] Ignoring saved status that is not an object")
            return None
        return StatusResponse.from_api(data)

    def refresh(self, last_state: bytes | None) -> bytes:
        """Sync account lineups and rebuild the channel catalog.

        Returns the account status JSON to persist.

        Raises:
            ProviderConfigurationError: If lineups must be added but the
                account is at its lineup limit
            SchedulesDirectError: If any API call fails
        """
        previous = self._decode_last_status(last_state)
        status = StatusResponse.from_api(self._client.get_status())
        state = json.dumps(status.raw, sort_keys=True).encode("utf-8")

        if previous is not None:
            before = {lu.lineup: lu.modified for lu in previous.lineups}
            for lineup in status.lineups:
                if before.get(lineup.lineup) != lineup.modified:
                    logger.info("[SD] Lineup %s changed since last refresh", lineup.lineup)

        account_lineups = status.active_lineups
        needed = [lu for lu in self._config.lineups if lu not in account_lineups]
        max_lineups = status.account.max_lineups

        if needed and max_lineups and len(account_lineups) >= max_lineups:
            raise ProviderConfigurationError(
                f"Schedules Direct account already has {len(account_lineups)} of "
                f"{max_lineups} lineups; cannot add {', '.join(needed)}"
            )

        for lineup_id in needed:
            self._client.add_lineup(lineup_id)
            account_lineups.append(lineup_id)

        channels: list[Channel] = []
        stations: dict[str, StationContainer] = {}
        seen_ids: set[str] = set()

        for lineup_id in account_lineups:
            lineup = LineupChannels.from_api(lineup_id, self._client.get_lineup_channels(lineup_id))
            station_by_id = {station.station_id: station for station in lineup.stations}
            mapped: set[str] = set()

            for entry in lineup.channel_map:
                station = station_by_id.get(entry.station_id)
                if station is None or entry.station_id in mapped:
                    continue
                mapped.add(entry.station_id)

                container = StationContainer(station=station, channel_map=entry, lineup=lineup_id)
                channel_id = make_channel_id(entry.channel, station.station_id)
                stations.setdefault(station.station_id, container)
                if channel_id in seen_ids:
                    continue
                seen_ids.add(channel_id)

                channels.append(
                    Channel(
                        id=channel_id,
                        name=station.name,
                        number=entry.channel,
                        call_sign=station.call_sign,
                        logos=[
                            Logo(url=logo.url, width=logo.width, height=logo.height)
                            for logo in station.logos
                        ],
                        lineup=lineup_id,
                        affiliate=station.affiliate,
                    )
                )

        self._channels = channels
        self._stations = stations
        logger.info(
            "[SD] Refreshed %d lineups: %d channels", len(account_lineups), len(channels)
        )
        return state

    # =========================================================================
    # SCHEDULE
    # =========================================================================

    @staticmethod
    def _check_cancelled(cancel: threading.Event | None, phase: str) -> None:
        if cancel is not None and cancel.is_set():
            raise SyncCancelledError(phase)

    @staticmethod
    def _channel_state(
        channel_ids_by_station: dict[str, list[str]], plan: SchedulePlan
    ) -> dict[str, Any]:
        return {
            channel_id: encode_schedule_cache(plan.staged_cache.get(station_id, {}))
            for station_id, channel_ids in channel_ids_by_station.items()
            for channel_id in channel_ids
        }

    def _station_for(self, station_id: str, channel_id: str) -> StationContainer:
        container = self._stations.get(station_id)
        if container is not None:
            return container
        # Channel number is whatever sits between "I" and the station id
        suffix = f".{station_id}."
        number = channel_id[1 : channel_id.find(suffix)] if suffix in channel_id else ""
        return StationContainer(
            station=Station(station_id=station_id),
            channel_map=ChannelMapEntry(station_id=station_id, channel=number),
        )

    def _fetch_schedules(
        self, plan: SchedulePlan, caches: dict[str, StationCache], cancel: threading.Event | None
    ) -> list[StationSchedule]:
        self._check_cancelled(cancel, ScheduleSyncError.SCHEDULE_FETCH)
        try:
            raw_schedules = self._client.get_schedules(plan.schedule_requests())
        except SchedulesDirectError as e:
            raise ScheduleSyncError(ScheduleSyncError.SCHEDULE_FETCH, str(e)) from e

        schedules = []
        received: dict[tuple[str, str], str] = {}
        for raw in raw_schedules:
            station_id = str(raw.get("stationID", ""))
            code = raw.get("code")
            if code:
                logger.warning(
                    "[SD] Schedule for station %s on %s unavailable (code %s): %s",
                    station_id,
                    (raw.get("metadata") or {}).get("startDate") or "all dates",
                    code,
                    raw.get("message") or raw.get("response", ""),
                )
                continue
            try:
                schedule = StationSchedule.from_api(raw)
            except ValueError as e:
                raise ScheduleSyncError(ScheduleSyncError.SCHEDULE_FETCH, str(e)) from e
            if schedule.start_date:
                received[(schedule.station_id, schedule.start_date)] = schedule.md5
            else:
                logger.debug("[SD] Schedule for station %s has no start date", station_id)
            schedules.append(schedule)

        # Anything flagged but not delivered keeps its old hash and is retried next run
        missing = plan.settle(received, caches)
        if missing:
            logger.warning(
                "[SD] %d station-days missing from schedules response, will retry: %s",
                len(missing),
                ", ".join(f"{station_id}/{day}" for station_id, day in missing[:10]),
            )
        return schedules

    def _fetch_program_info(
        self, program_ids: list[str], cancel: threading.Event | None
    ) -> dict[str, ProgramInfo]:
        info: dict[str, ProgramInfo] = {}
        for batch in chunked(program_ids, self._program_batch_size):
            self._check_cancelled(cancel, ScheduleSyncError.METADATA_FETCH)
            try:
                raw_programs = self._client.get_programs(batch)
            except SchedulesDirectError as e:
                raise ScheduleSyncError(ScheduleSyncError.METADATA_FETCH, str(e)) from e
            for raw in raw_programs:
                if raw.get("code"):
                    logger.warning(
                        "[SD] Program %s unavailable (code %s)", raw.get("programID"), raw["code"]
                    )
                    continue
                program = ProgramInfo.from_api(raw)
                info[program.program_id] = program
        return info

    def _fetch_artwork(
        self, lookup_ids: list[str], cancel: threading.Event | None
    ) -> dict[str, list[Artwork]]:
        artwork: dict[str, list[Artwork]] = {}
        for batch in chunked(lookup_ids, self._artwork_batch_size):
            self._check_cancelled(cancel, ScheduleSyncError.ARTWORK_FETCH)
            try:
                raw_artwork = self._client.get_artwork(batch)
            except SchedulesDirectError as e:
                raise ScheduleSyncError(ScheduleSyncError.ARTWORK_FETCH, str(e)) from e
            for raw in raw_artwork:
                data = raw.get("data")
                if isinstance(data, list):
                    artwork[raw.get("programID", "")] = [Artwork.from_api(a) for a in data]
        return artwork

    def schedule(
        self,
        days_to_get: int,
        input_channels: list[Channel],
        input_programmes: list[ProgrammeContainer],
        cancel: threading.Event | None = None,
    ) -> tuple[dict[str, Any], list[ProgrammeContainer]]:
        """Download new or changed airings for `days_to_get` days starting today.

        Returns:
            ({channel id: ProviderData({date: md5})}, new or changed programmes)

        Raises:
            ScheduleSyncError: If a network phase fails (cache not advanced)
            SyncCancelledError: If `cancel` is set between network phases
        """
        window = build_date_window(days_to_get, datetime.now(Config.get_timezone()).date())

        channel_ids_by_station: dict[str, list[str]] = {}
        caches: dict[str, StationCache] = {}

        for channel in input_channels:
            try:
                station_id = station_id_from_channel_id(channel.id)
            except ProviderDataError as e:
                logger.warning("[SD] Skipping channel: %s", e)
                continue
            channel_ids_by_station.setdefault(station_id, []).append(channel.id)

            if channel.provider_data is None:
                cache = self._schedule_cache.get(station_id, {})
            else:
                try:
                    cache = decode_schedule_cache(channel.provider_data)
                except ProviderDataError as e:
                    logger.warning(
                        "[SD] Channel %s has an unreadable schedule cache, refetching: %s",
                        channel.id,
                        e,
                    )
                    cache = {}
            if cache:
                caches[station_id] = cache

        station_ids = list(channel_ids_by_station)
        if not station_ids or not window:
            return {}, []

        # Change detection: one request covering every station and the whole window
        self._check_cancelled(cancel, ScheduleSyncError.CHANGE_DETECTION)
        try:
            upstream = self._client.get_schedule_md5s(
                [{"stationID": station_id, "date": window} for station_id in station_ids]
            )
        except SchedulesDirectError as e:
            raise ScheduleSyncError(ScheduleSyncError.CHANGE_DETECTION, str(e)) from e

        plan = plan_schedule_fetches(window, station_ids, caches, upstream)

        if not plan.needs_fetch:
            logger.info("[SD] No schedule changes for %d stations", len(station_ids))
            self._schedule_cache.update(plan.staged_cache)
            return self._channel_state(channel_ids_by_station, plan), []

        logger.info(
            "[SD] Fetching %d station-days across %d stations",
            plan.fetch_count,
            len(plan.fetches),
        )

        schedules = self._fetch_schedules(plan, caches, cancel)

        program_ids = _unique(
            airing.program_id for schedule in schedules for airing in schedule.airings
        )
        program_info = self._fetch_program_info(program_ids, cancel)

        lookup_ids = _unique(
            lookup_id
            for program in program_info.values()
            if program.has_artwork()
            for lookup_id in program.artwork_lookup_ids()
        )
        artwork_by_id = self._fetch_artwork(lookup_ids, cancel) if lookup_ids else {}

        known = {}
        for container in input_programmes:
            data = container.provider_data
            if isinstance(data, ProviderData) and data.kind == PROVIDER_KIND:
                programme = container.programme
                known[(programme.channel, programme.id, programme.start)] = data.payload

        programmes: list[ProgrammeContainer] = []
        unchanged = 0
        for schedule in schedules:
            channel_ids = channel_ids_by_station.get(schedule.station_id)
            if not channel_ids:
                continue
            station = self._station_for(schedule.station_id, channel_ids[0])
            for airing in schedule.airings:
                info = program_info.get(airing.program_id) or ProgramInfo(
                    program_id=airing.program_id
                )
                artworks = resolve_artwork(info, artwork_by_id)
                for channel_id in channel_ids:
                    container = transform_airing(
                        airing, info, artworks, station, self._client.image_url
                    )
                    container.programme.channel = channel_id
                    key = (channel_id, container.programme.id, container.programme.start)
                    if known.get(key) == container.provider_data.payload:
                        unchanged += 1
                        continue
                    programmes.append(container)

        self._schedule_cache.update(plan.staged_cache)
        logger.info(
            "[SD] Schedule sync produced %d programmes (%d unchanged skipped)",
            len(programmes),
            unchanged,
        )
        return self._channel_state(channel_ids_by_station, plan), programmes

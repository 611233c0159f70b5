"""Change detection for Schedules Direct schedules.

Schedules Direct publishes a content hash per station and day. Comparing
those hashes against the ones seen on the last successful run tells us
which (station, date) pairs must be downloaded again.

Everything here is pure: the provider does the network calls and decides
when a staged cache becomes the committed one.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from guidearr.core.exceptions import ProviderDataError
from guidearr.core.types import ProviderData

logger = logging.getLogger(__name__)

PROVIDER_KIND = "schedulesdirect"
CHANNEL_ID_SUFFIX = "schedulesdirect.org"

# {date: md5} for one station
StationCache = dict[str, str]


def make_channel_id(channel_number: str, station_id: str) -> str:
    """Canonical channel id, e.g. "I2.1.20360.schedulesdirect.org"."""
    return f"I{channel_number}.{station_id}.{CHANNEL_ID_SUFFIX}"


def station_id_from_channel_id(channel_id: str) -> str:
    """Short station id encoded in a canonical channel id.

    The station id sits directly before the domain suffix, so channel
    numbers that contain dots (ATSC "2.1") are handled.

    Raises:
        ProviderDataError: If the id is not in the expected format
    """
    suffix = f".{CHANNEL_ID_SUFFIX}"
    if channel_id.startswith("I") and channel_id.endswith(suffix):
        head = channel_id[: -len(suffix)]
        _, dot, station_id = head.rpartition(".")
        if dot and station_id:
            return station_id

    parts = channel_id.split(".")
    if len(parts) < 2 or not parts[1]:
        raise ProviderDataError(f"unexpected channel id format: {channel_id!r}")
    return parts[1]


def build_date_window(days_to_get: int, today: date) -> list[str]:
    """`days_to_get` consecutive ISO dates starting with `today`."""
    return [(today + timedelta(days=offset)).isoformat() for offset in range(max(days_to_get, 0))]


def decode_schedule_cache(data: ProviderData | bytes | str | dict | None) -> StationCache:
    """Decode a channel's persisted schedule cache into {date: md5}.

    Accepts tagged provider data and the older untagged form where each
    date maps to the full md5 response entry.

    Raises:
        ProviderDataError: If the data is malformed
    """
    provider_data = ProviderData.from_json(data, default_kind=PROVIDER_KIND)
    if provider_data is None or provider_data.payload in (None, {}):
        return {}

    if provider_data.kind != PROVIDER_KIND:
        raise ProviderDataError(f"expected {PROVIDER_KIND} provider data, got {provider_data.kind}")

    payload = provider_data.payload
    if not isinstance(payload, dict):
        raise ProviderDataError("schedule cache payload must be an object")

    cache: StationCache = {}
    for day, entry in payload.items():
        if isinstance(entry, dict):
            entry = entry.get("md5")
        if not isinstance(entry, str):
            raise ProviderDataError(f"schedule cache entry for {day} has no md5")
        cache[str(day)] = entry
    return cache


def encode_schedule_cache(cache: StationCache) -> ProviderData:
    return ProviderData(kind=PROVIDER_KIND, payload=dict(cache))


def upstream_md5(entry: object) -> str | None:
    """Hash from one schedules/md5 date entry, None if the API has none."""
    if isinstance(entry, dict):
        md5 = entry.get("md5")
        return md5 if isinstance(md5, str) and md5 else None
    return None


@dataclass
class SchedulePlan:
    """Result of comparing cached hashes with upstream hashes.

    Attributes:
        fetches: Station id -> dates to download, in window order
        staged_cache: Station id -> {date: md5} as it should look once
            every fetch has succeeded
    """

    fetches: dict[str, list[str]] = field(default_factory=dict)
    staged_cache: dict[str, StationCache] = field(default_factory=dict)

    @property
    def needs_fetch(self) -> bool:
        return any(self.fetches.values())

    @property
    def fetch_count(self) -> int:
        return sum(len(dates) for dates in self.fetches.values())

    def schedule_requests(self) -> list[dict]:
        """One request per affected station, covering only its flagged dates."""
        return [
            {"stationID": station_id, "date": dates}
            for station_id, dates in self.fetches.items()
            if dates
        ]

    def settle(
        self, received: dict[tuple[str, str], str], caches: dict[str, StationCache]
    ) -> list[tuple[str, str]]:
        """Keep staged hashes only for station-days that actually arrived.

        `received` maps (station id, date) to the hash reported with that
        day's schedule, which replaces the planned one when present. Flagged
        pairs that did not arrive go back to their value in `caches` so the
        next run fetches them again.

        Returns the flagged pairs that did not arrive.
        """
        missing = []
        for station_id, dates in self.fetches.items():
            staged = self.staged_cache.get(station_id)
            for day in dates:
                key = (station_id, day)
                if key in received:
                    if received[key] and staged is not None and day in staged:
                        staged[day] = received[key]
                    continue
                missing.append(key)
                if staged is None:
                    continue
                prior = caches.get(station_id, {})
                if day in prior:
                    staged[day] = prior[day]
                else:
                    staged.pop(day, None)
            if staged is not None and not staged and station_id not in caches:
                del self.staged_cache[station_id]
        return missing


def plan_schedule_fetches(
    window: list[str],
    station_ids: list[str],
    caches: dict[str, StationCache],
    upstream: dict,
) -> SchedulePlan:
    """Decide which (station, date) pairs need downloading.

    A date is flagged when it has no cached hash or the cached hash differs
    from upstream; the staged cache takes the upstream hash. A station with
    no cache at all is flagged for the whole window. Stations upstream
    knows nothing about are left untouched.

    `caches` is not modified.
    """
    plan = SchedulePlan(
        staged_cache={station_id: dict(cache) for station_id, cache in caches.items()}
    )

    for station_id in station_ids:
        current = upstream.get(station_id)
        if not isinstance(current, dict):
            logger.warning("[SD] No change information for station %s", station_id)
            continue

        cached = caches.get(station_id) or {}
        dates: list[str] = []
        for day in window:
            md5 = upstream_md5(current.get(day))
            if md5 is None:
                continue
            if cached.get(day) != md5:
                if day in cached:
                    logger.debug("[SD] Station %s changed on %s", station_id, day)
                dates.append(day)
                plan.staged_cache.setdefault(station_id, {})[day] = md5

        if not cached:
            logger.debug("[SD] Station %s needs initial data", station_id)
            dates = list(window)

        if dates:
            plan.fetches[station_id] = dates

    return plan

"""Tests for Schedules Direct incremental schedule synchronization.

Verifies that:
1. A first run downloads the whole window for every station
2. A second run with no upstream changes downloads nothing
3. An upstream change on one day downloads only that station-day
4. A failed phase never advances the committed cache
5. A malformed per-channel cache only affects its own channel
6. Cancellation stops the run between network phases
7. Program and artwork requests respect batch sizes
8. Station-days missing from a schedules response keep their old hash
"""

import dataclasses
import threading
from datetime import date

import pytest

from fakes import STATION_ONE, STATION_TWO, program_id_for
from guidearr.core.exceptions import ScheduleSyncError, SyncCancelledError
from guidearr.core.types import Channel, ProviderData
from guidearr.providers.schedulesdirect.sync import (
    PROVIDER_KIND,
    build_date_window,
    decode_schedule_cache,
    make_channel_id,
    plan_schedule_fetches,
    station_id_from_channel_id,
)


def with_state(channels: list[Channel], state: dict) -> list[Channel]:
    return [dataclasses.replace(c, provider_data=state.get(c.id)) for c in channels]


def requested_window(sd_client) -> list[str]:
    return sd_client.calls["get_schedule_md5s"][0][0]["date"]


# =============================================================================
# CHANNEL IDS & CACHE ENCODING
# =============================================================================


class TestChannelIds:
    """Test canonical channel id construction and parsing."""

    def test_make_channel_id(self):
        assert make_channel_id("5", "10002") == "I5.10002.schedulesdirect.org"

    def test_station_id_simple_number(self):
        assert station_id_from_channel_id("I5.10002.schedulesdirect.org") == "10002"

    def test_station_id_dotted_number(self):
        assert station_id_from_channel_id("I2.1.10001.schedulesdirect.org") == "10001"

    def test_station_id_foreign_format_uses_second_segment(self):
        assert station_id_from_channel_id("I7.55555.example.com") == "55555"

    def test_station_id_malformed(self):
        from guidearr.core.exceptions import ProviderDataError

        with pytest.raises(ProviderDataError):
            station_id_from_channel_id("bogus")


class TestScheduleCache:
    """Test decoding of persisted per-channel schedule caches."""

    def test_tagged_cache(self):
        data = ProviderData(kind=PROVIDER_KIND, payload={"2026-10-19": "abc"})
        assert decode_schedule_cache(data) == {"2026-10-19": "abc"}

    def test_legacy_untagged_md5_entries(self):
        raw = '{"2026-10-19": {"code": 0, "md5": "abc", "lastModified": "x"}}'
        assert decode_schedule_cache(raw) == {"2026-10-19": "abc"}

    def test_empty_inputs(self):
        assert decode_schedule_cache(None) == {}
        assert decode_schedule_cache(b"") == {}
        assert decode_schedule_cache(ProviderData(kind=PROVIDER_KIND, payload={})) == {}

    def test_wrong_kind_rejected(self):
        from guidearr.core.exceptions import ProviderDataError

        with pytest.raises(ProviderDataError):
            decode_schedule_cache(ProviderData(kind="xmltv", payload={"2026-10-19": "abc"}))

    def test_entry_without_md5_rejected(self):
        from guidearr.core.exceptions import ProviderDataError

        with pytest.raises(ProviderDataError):
            decode_schedule_cache(ProviderData(kind=PROVIDER_KIND, payload={"2026-10-19": 7}))


class TestPlanScheduleFetches:
    """Test the pure change-detection plan."""

    WINDOW = ["2026-10-19", "2026-10-20"]

    def test_date_window(self):
        assert build_date_window(3, date(2026, 12, 31)) == [
            "2026-12-31",
            "2027-01-01",
            "2027-01-02",
        ]
        assert build_date_window(0, date(2026, 10, 19)) == []

    def test_changed_date_only(self):
        caches = {"1": {"2026-10-19": "a", "2026-10-20": "b"}}
        upstream = {"1": {"2026-10-19": {"md5": "a"}, "2026-10-20": {"md5": "B"}}}

        plan = plan_schedule_fetches(self.WINDOW, ["1"], caches, upstream)

        assert plan.fetches == {"1": ["2026-10-20"]}
        assert plan.staged_cache["1"] == {"2026-10-19": "a", "2026-10-20": "B"}
        # Input caches are left alone
        assert caches["1"]["2026-10-20"] == "b"

    def test_uncached_station_gets_full_window(self):
        upstream = {"1": {"2026-10-19": {"md5": "a"}}}
        plan = plan_schedule_fetches(self.WINDOW, ["1"], {}, upstream)
        assert plan.fetches == {"1": self.WINDOW}
        assert plan.fetch_count == 2

    def test_station_missing_upstream_is_skipped(self):
        plan = plan_schedule_fetches(self.WINDOW, ["1"], {}, {})
        assert not plan.needs_fetch
        assert plan.schedule_requests() == []

    def test_settle_reverts_days_not_received(self):
        caches = {"1": {"2026-10-19": "a", "2026-10-20": "b"}}
        upstream = {
            "1": {"2026-10-19": {"md5": "A"}, "2026-10-20": {"md5": "B"}},
            "2": {"2026-10-19": {"md5": "c"}},
        }
        plan = plan_schedule_fetches(self.WINDOW, ["1", "2"], caches, upstream)

        missing = plan.settle({("1", "2026-10-19"): "A2"}, caches)

        assert missing == [("1", "2026-10-20"), ("2", "2026-10-19"), ("2", "2026-10-20")]
        assert plan.staged_cache == {"1": {"2026-10-19": "A2", "2026-10-20": "b"}}

    def test_settle_keeps_planned_hash_without_reported_one(self):
        upstream = {"1": {"2026-10-19": {"md5": "a"}}}
        plan = plan_schedule_fetches(self.WINDOW, ["1"], {}, upstream)

        missing = plan.settle({("1", "2026-10-19"): "", ("1", "2026-10-20"): ""}, {})

        assert missing == []
        assert plan.staged_cache == {"1": {"2026-10-19": "a"}}


# =============================================================================
# INCREMENTAL SYNC
# =============================================================================


class TestFirstSync:
    """Test a run with no prior cache."""

    def test_fetches_whole_window(self, make_sd_provider, sd_client, sd_channels):
        provider = make_sd_provider()

        state, programmes = provider.schedule(3, sd_channels, [])
        window = requested_window(sd_client)

        assert len(window) == 3
        assert sd_client.calls["get_schedules"] == [
            [
                {"stationID": STATION_ONE, "date": window},
                {"stationID": STATION_TWO, "date": window},
            ]
        ]
        assert len(programmes) == 6
        assert {c.programme.channel for c in programmes} == {c.id for c in sd_channels}

    def test_returns_state_per_channel(self, make_sd_provider, sd_client, sd_channels):
        provider = make_sd_provider()

        state, _ = provider.schedule(3, sd_channels, [])
        window = requested_window(sd_client)

        assert set(state) == {c.id for c in sd_channels}
        for channel in sd_channels:
            assert state[channel.id].kind == PROVIDER_KIND
            assert sorted(state[channel.id].payload) == window
        assert provider.schedule_cache[STATION_ONE][window[0]] == f"{STATION_ONE}-{window[0]}-v1"

    def test_window_starts_today(self, make_sd_provider, sd_client, sd_channels):
        from datetime import datetime

        from guidearr.config import Config

        provider = make_sd_provider()
        provider.schedule(2, sd_channels, [])

        today = datetime.now(Config.get_timezone()).date()
        assert requested_window(sd_client)[0] in {
            today.isoformat(),
            build_date_window(2, today)[1],
        }

    def test_channels_sharing_a_station(self, make_sd_provider, sd_client):
        channels = [
            Channel(id=make_channel_id("2.1", STATION_ONE)),
            Channel(id=make_channel_id("102", STATION_ONE)),
        ]
        provider = make_sd_provider()

        state, programmes = provider.schedule(2, channels, [])

        assert len(sd_client.calls["get_schedules"][0]) == 1
        assert len(programmes) == 4
        assert {c.programme.channel for c in programmes} == {c.id for c in channels}
        assert set(state) == {c.id for c in channels}


class TestNoChanges:
    """Test that unchanged upstream data produces no downloads."""

    def test_second_run_is_a_no_op(self, make_sd_provider, sd_client, sd_channels):
        provider = make_sd_provider()
        state, programmes = provider.schedule(3, sd_channels, [])

        state2, programmes2 = provider.schedule(3, with_state(sd_channels, state), programmes)

        assert programmes2 == []
        assert state2 == state
        assert len(sd_client.calls["get_schedules"]) == 1
        assert len(sd_client.calls["get_programs"]) == 1

    def test_persisted_state_is_enough(self, make_sd_provider, sd_client, sd_channels):
        state, programmes = make_sd_provider().schedule(3, sd_channels, [])

        fresh = make_sd_provider()
        _, programmes2 = fresh.schedule(3, with_state(sd_channels, state), programmes)

        assert programmes2 == []
        assert len(sd_client.calls["get_schedules"]) == 1

    def test_unchanged_airings_are_filtered(self, make_sd_provider, sd_client, sd_channels):
        _, programmes = make_sd_provider().schedule(3, sd_channels, [])

        # No cache at all: everything is downloaded again but nothing is new
        fresh = make_sd_provider()
        state, programmes2 = fresh.schedule(3, sd_channels, programmes)

        assert len(sd_client.calls["get_schedules"]) == 2
        assert programmes2 == []
        assert all(state[c.id].payload for c in sd_channels)


class TestChangeIsolation:
    """Test that one changed station-day is the only thing downloaded."""

    def test_only_changed_day_is_fetched(self, make_sd_provider, sd_client, sd_channels):
        provider = make_sd_provider()
        state, programmes = provider.schedule(3, sd_channels, [])
        window = requested_window(sd_client)

        sd_client.bump_version(STATION_ONE, window[1])
        state2, programmes2 = provider.schedule(3, with_state(sd_channels, state), programmes)

        assert sd_client.calls["get_schedules"][-1] == [
            {"stationID": STATION_ONE, "date": [window[1]]}
        ]
        assert [c.programme.id for c in programmes2] == [program_id_for(STATION_ONE, window[1])]

        one, two = sd_channels
        assert state2[one.id].payload[window[1]] == f"{STATION_ONE}-{window[1]}-v2"
        assert state2[one.id].payload[window[0]] == state[one.id].payload[window[0]]
        assert state2[two.id] == state[two.id]


class TestFailureKeepsCache:
    """Test that a failed phase leaves the committed cache untouched."""

    @pytest.mark.parametrize(
        "method,phase",
        [
            ("get_schedule_md5s", ScheduleSyncError.CHANGE_DETECTION),
            ("get_schedules", ScheduleSyncError.SCHEDULE_FETCH),
            ("get_programs", ScheduleSyncError.METADATA_FETCH),
        ],
    )
    def test_failed_phase(self, make_sd_provider, sd_client, sd_channels, method, phase):
        provider = make_sd_provider()
        state, programmes = provider.schedule(3, sd_channels, [])
        window = requested_window(sd_client)
        committed = provider.schedule_cache

        sd_client.bump_version(STATION_ONE, window[2])
        sd_client.fail_on.add(method)
        with pytest.raises(ScheduleSyncError) as exc_info:
            provider.schedule(3, with_state(sd_channels, state), programmes)

        assert exc_info.value.phase == phase
        assert provider.schedule_cache == committed

    def test_artwork_failure(self, make_sd_provider, sd_client, sd_channels):
        sd_client.program_defaults = {"hasImageArtwork": True}
        sd_client.fail_on.add("get_artwork")
        provider = make_sd_provider()

        with pytest.raises(ScheduleSyncError) as exc_info:
            provider.schedule(2, sd_channels, [])

        assert exc_info.value.phase == ScheduleSyncError.ARTWORK_FETCH
        assert provider.schedule_cache == {}

    def test_change_is_retried_after_failure(self, make_sd_provider, sd_client, sd_channels):
        provider = make_sd_provider()
        state, programmes = provider.schedule(3, sd_channels, [])
        window = requested_window(sd_client)

        sd_client.bump_version(STATION_TWO, window[0])
        sd_client.fail_on.add("get_programs")
        with pytest.raises(ScheduleSyncError):
            provider.schedule(3, with_state(sd_channels, state), programmes)

        sd_client.fail_on.clear()
        _, programmes2 = provider.schedule(3, with_state(sd_channels, state), programmes)

        assert [c.programme.id for c in programmes2] == [program_id_for(STATION_TWO, window[0])]

    def test_station_error_entry_is_retried(self, make_sd_provider, sd_client, sd_channels):
        sd_client.station_errors.add(STATION_TWO)
        provider = make_sd_provider()

        state, programmes = provider.schedule(2, sd_channels, [])
        window = requested_window(sd_client)
        one, two = sd_channels

        assert {c.programme.channel for c in programmes} == {one.id}
        assert state[two.id].payload == {}
        assert STATION_TWO not in provider.schedule_cache

        sd_client.station_errors.clear()
        _, programmes2 = provider.schedule(2, with_state(sd_channels, state), programmes)

        assert sd_client.calls["get_schedules"][-1] == [{"stationID": STATION_TWO, "date": window}]
        assert {c.programme.channel for c in programmes2} == {two.id}

    def test_error_entry_for_one_date(self, make_sd_provider, sd_client, sd_channels):
        provider = make_sd_provider()
        state, programmes = provider.schedule(3, sd_channels, [])
        window = requested_window(sd_client)

        sd_client.bump_version(STATION_ONE, window[0])
        sd_client.bump_version(STATION_ONE, window[2])
        sd_client.station_errors.add((STATION_ONE, window[2]))
        state2, programmes2 = provider.schedule(3, with_state(sd_channels, state), programmes)
        one = sd_channels[0]

        assert [c.programme.id for c in programmes2] == [program_id_for(STATION_ONE, window[0])]
        assert state2[one.id].payload[window[0]] == f"{STATION_ONE}-{window[0]}-v2"
        assert state2[one.id].payload[window[2]] == f"{STATION_ONE}-{window[2]}-v1"

        sd_client.station_errors.clear()
        provider.schedule(3, with_state(sd_channels, state2), programmes + programmes2)

        assert sd_client.calls["get_schedules"][-1] == [
            {"stationID": STATION_ONE, "date": [window[2]]}
        ]


class TestPartialResponse:
    """Test that station-days left out of a schedules response are retried."""

    def test_missing_station_is_not_cached(self, make_sd_provider, sd_client, sd_channels):
        sd_client.withheld.add(STATION_TWO)
        provider = make_sd_provider()

        state, programmes = provider.schedule(2, sd_channels, [])
        window = requested_window(sd_client)
        one, two = sd_channels

        assert {c.programme.channel for c in programmes} == {one.id}
        assert STATION_TWO not in provider.schedule_cache
        assert state[two.id].payload == {}
        assert sorted(state[one.id].payload) == window

        sd_client.withheld.clear()
        _, programmes2 = provider.schedule(2, with_state(sd_channels, state), programmes)

        assert sd_client.calls["get_schedules"][-1] == [{"stationID": STATION_TWO, "date": window}]
        assert {c.programme.channel for c in programmes2} == {two.id}

    def test_missing_date_on_first_run(self, make_sd_provider, sd_client, sd_channels):
        def withhold_later_days(requests):
            for request in requests:
                for day in request["date"][1:]:
                    sd_client.withheld.add((request["stationID"], day))

        sd_client.hooks["get_schedules"] = withhold_later_days
        provider = make_sd_provider()

        state, programmes = provider.schedule(3, sd_channels, [])
        window = requested_window(sd_client)

        assert len(programmes) == 2
        assert provider.schedule_cache == {
            STATION_ONE: {window[0]: f"{STATION_ONE}-{window[0]}-v1"},
            STATION_TWO: {window[0]: f"{STATION_TWO}-{window[0]}-v1"},
        }
        assert all(sorted(state[c.id].payload) == window[:1] for c in sd_channels)

    def test_missing_changed_date_keeps_old_hash(self, make_sd_provider, sd_client, sd_channels):
        provider = make_sd_provider()
        state, programmes = provider.schedule(3, sd_channels, [])
        window = requested_window(sd_client)

        sd_client.bump_version(STATION_ONE, window[1])
        sd_client.withheld.add((STATION_ONE, window[1]))
        state2, programmes2 = provider.schedule(3, with_state(sd_channels, state), programmes)

        assert programmes2 == []
        assert state2 == state
        assert provider.schedule_cache[STATION_ONE][window[1]] == f"{STATION_ONE}-{window[1]}-v1"

        sd_client.withheld.clear()
        _, programmes3 = provider.schedule(3, with_state(sd_channels, state2), programmes)

        assert sd_client.calls["get_schedules"][-1] == [
            {"stationID": STATION_ONE, "date": [window[1]]}
        ]
        assert [c.programme.id for c in programmes3] == [program_id_for(STATION_ONE, window[1])]

    def test_hash_from_schedule_metadata_wins(self, make_sd_provider, sd_client, sd_channels):
        def bump_after_md5(requests):
            sd_client.bump_version(STATION_ONE, requests[0]["date"][0])

        sd_client.hooks["get_schedules"] = bump_after_md5
        provider = make_sd_provider()

        provider.schedule(1, sd_channels[:1], [])
        day = requested_window(sd_client)[0]

        assert provider.schedule_cache[STATION_ONE][day] == f"{STATION_ONE}-{day}-v2"


class TestMalformedInput:
    """Test that bad per-channel input is isolated to its channel."""

    def test_malformed_cache_only_refetches_its_channel(
        self, make_sd_provider, sd_client, sd_channels
    ):
        state, programmes = make_sd_provider().schedule(3, sd_channels, [])
        window = requested_window(sd_client)
        one, two = sd_channels

        channels = [
            dataclasses.replace(one, provider_data=ProviderData(PROVIDER_KIND, "garbage")),
            dataclasses.replace(two, provider_data=state[two.id]),
        ]
        state2, programmes2 = make_sd_provider().schedule(3, channels, programmes)

        assert sd_client.calls["get_schedules"][-1] == [{"stationID": STATION_ONE, "date": window}]
        assert state2[two.id] == state[two.id]
        assert sorted(state2[one.id].payload) == window
        # Airings themselves did not change, so nothing new is emitted
        assert programmes2 == []

    def test_bad_channel_id_is_skipped(self, make_sd_provider, sd_client, sd_channels):
        channels = [Channel(id="bogus"), sd_channels[0]]

        state, programmes = make_sd_provider().schedule(2, channels, [])

        assert "bogus" not in state
        assert {c.programme.channel for c in programmes} == {sd_channels[0].id}

    def test_no_usable_channels(self, make_sd_provider, sd_client):
        state, programmes = make_sd_provider().schedule(2, [Channel(id="bogus")], [])

        assert (state, programmes) == ({}, [])
        assert sd_client.calls["get_schedule_md5s"] == []

    def test_station_unknown_upstream(self, make_sd_provider, sd_client, sd_channels):
        sd_client.unknown_stations.add(STATION_TWO)

        state, programmes = make_sd_provider().schedule(2, sd_channels, [])

        assert [r["stationID"] for r in sd_client.calls["get_schedules"][0]] == [STATION_ONE]
        assert state[sd_channels[1].id].payload == {}
        assert len(programmes) == 2


class TestCancellation:
    """Test cancellation between network phases."""

    def test_cancel_before_start(self, make_sd_provider, sd_client, sd_channels):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(SyncCancelledError) as exc_info:
            make_sd_provider().schedule(2, sd_channels, [], cancel=cancel)

        assert exc_info.value.phase == ScheduleSyncError.CHANGE_DETECTION
        assert sd_client.calls["get_schedule_md5s"] == []

    def test_cancel_mid_run_commits_nothing(self, make_sd_provider, sd_client, sd_channels):
        cancel = threading.Event()
        sd_client.hooks["get_schedules"] = lambda _: cancel.set()
        provider = make_sd_provider()

        with pytest.raises(SyncCancelledError) as exc_info:
            provider.schedule(2, sd_channels, [], cancel=cancel)

        assert exc_info.value.phase == ScheduleSyncError.METADATA_FETCH
        assert sd_client.calls["get_programs"] == []
        assert provider.schedule_cache == {}


class TestBatching:
    """Test request batching for program and artwork lookups."""

    def test_program_batches(self, make_sd_provider, sd_client, sd_channels):
        provider = make_sd_provider(program_batch_size=2)

        provider.schedule(3, sd_channels[:1], [])

        assert [len(batch) for batch in sd_client.calls["get_programs"]] == [2, 1]

    def test_artwork_batches(self, make_sd_provider, sd_client, sd_channels):
        sd_client.program_defaults = {"hasImageArtwork": True}
        provider = make_sd_provider(artwork_batch_size=2)

        provider.schedule(3, sd_channels[:1], [])

        batches = sd_client.calls["get_artwork"]
        requested = [program_id for batch in batches for program_id in batch]
        assert all(len(batch) <= 2 for batch in batches)
        # Three program ids plus their shared series root
        assert len(requested) == 4
        assert len(set(requested)) == 4

    def test_artwork_attached_in_order(self, make_sd_provider, sd_client, sd_channels):
        sd_client.program_defaults = {"hasImageArtwork": True}
        provider = make_sd_provider()
        provider.schedule(1, sd_channels[:1], [])
        window = requested_window(sd_client)
        program_id = program_id_for(STATION_ONE, window[0])

        sd_client.artwork = {
            program_id[:10]: [
                {"uri": "assets/series.jpg", "width": 240, "tier": "Series", "category": "Banner"},
            ],
            program_id: [
                {"uri": "https://cdn.test/ep.jpg", "tier": "Episode", "category": "Banner-L1"},
            ],
        }
        _, programmes = make_sd_provider().schedule(1, sd_channels[:1], [])

        icons = programmes[0].programme.icons
        assert [icon.src for icon in icons] == [
            "https://cdn.test/ep.jpg",
            "https://img.test/assets/series.jpg",
        ]

"""Tests for the guide update run."""

import gzip
import json
import logging
import threading

import pytest

from fakes import LINEUP_ID
from guidearr.consumers.guide_updates import run_guide_update
from guidearr.core.exceptions import GuideUpdateError, SchedulesDirectError, ScheduleSyncError
from guidearr.core.types import Channel, GuideSource, ProviderData
from guidearr.services.context import SyncContext

GUIDE = b"""<tv>
  <channel id="a.example"><display-name>A</display-name></channel>
  <channel id="b.example"><display-name>B</display-name></channel>
  <programme start="20261019120000 +0000" channel="a.example"><title>One</title></programme>
  <programme start="20261019130000 +0000" channel="a.example"><title>Two</title></programme>
  <programme start="20261019120000 +0000" channel="b.example"><title>Other</title></programme>
</tv>
"""


@pytest.fixture
def source(store) -> GuideSource:
    return store.add_source(
        GuideSource(
            id=1,
            name="Schedules Direct",
            provider="schedulesdirect",
            username="guide-user",
            password="secret",
            lineups=[LINEUP_ID],
        )
    )


@pytest.fixture
def ctx(store, source, make_sd_provider, sd_channels) -> SyncContext:
    for channel in sd_channels:
        store.add_channel(source.id, channel)
    ctx = SyncContext(store=store)
    ctx.add_provider(source.id, make_sd_provider())
    return ctx


# =============================================================================
# SUCCESSFUL RUNS
# =============================================================================


class TestGuideUpdate:
    """Test a full update against the scripted Schedules Direct client."""

    def test_imports_programmes_and_state(self, ctx, store, sd_client, sd_channels):
        result = run_guide_update(ctx, 1, days_to_get=2)

        assert result.success
        assert result.channels_requested == 2
        assert result.channels_updated == 2
        assert result.programmes_received == result.programmes_upserted == 4
        assert len(store.programmes) == 4
        assert result.completed_at is not None

        [(source_id, state)] = store.state_updates
        assert source_id == 1
        assert json.loads(state) == sd_client.status
        for channel in sd_channels:
            provider_data = store.channel_by_xmltv_id(channel.id).provider_data
            assert provider_data.kind == "schedulesdirect"
            assert len(provider_data.payload) == 2

    def test_records_carry_guide_source(self, ctx, caplog):
        with caplog.at_level(logging.INFO, logger="guidearr.sync"):
            run_guide_update(ctx, 1, days_to_get=1)

        records = [r for r in caplog.records if r.name == "guidearr.sync"]
        phases = [getattr(r, "sync_phase", None) for r in records]
        assert all(r.guide_source_id == 1 for r in records)
        assert phases == ["refresh", "schedule", None]

    def test_second_run_imports_nothing_new(self, ctx, sd_client):
        run_guide_update(ctx, 1, days_to_get=2)

        result = run_guide_update(ctx, 1, days_to_get=2)

        assert result.programmes_received == 0
        assert len(sd_client.calls["get_schedules"]) == 1

    def test_only_enabled_channels_requested(self, ctx, store):
        store.add_channel(1, Channel(id="I7.10003.schedulesdirect.org"), enabled=False)

        result = run_guide_update(ctx, 1, days_to_get=1)

        assert result.channels_requested == 2

    def test_persisted_state_passed_to_refresh(self, ctx, store, source, sd_client):
        run_guide_update(ctx, 1, days_to_get=1)
        assert source.provider_data == store.state_updates[0][1]

        run_guide_update(ctx, 1, days_to_get=1)

        assert len(store.state_updates) == 2

    def test_serialized_channel_state_is_decoded(self, ctx, store, sd_client, sd_channels):
        run_guide_update(ctx, 1, days_to_get=2)
        for channel in sd_channels:
            record = store.channel_by_xmltv_id(channel.id)
            record.provider_data = record.provider_data.to_json()

        result = run_guide_update(ctx, 1, days_to_get=2)

        assert result.programmes_received == 0

    def test_unreadable_channel_state_is_refetched(self, ctx, store, sd_channels):
        for channel in sd_channels:
            store.channel_by_xmltv_id(channel.id).provider_data = "{broken"

        result = run_guide_update(ctx, 1, days_to_get=1)

        assert result.programmes_received == 2

    def test_xmltv_source(self, store, tmp_path):
        path = tmp_path / "guide.xml"
        path.write_bytes(GUIDE)
        source = store.add_source(
            GuideSource(id=5, name="File", provider="xmltv", xmltv_url=str(path))
        )
        store.add_channel(5, Channel(id="a.example", name="A"))
        ctx = SyncContext.from_store(store)

        result = run_guide_update(ctx, source.id)

        assert result.programmes_upserted == 2
        assert store.state_updates == [(5, b"")]

    def test_broken_source_does_not_block_others(self, store, tmp_path):
        good = tmp_path / "guide.xml"
        good.write_bytes(GUIDE)
        broken = tmp_path / "broken.xml.gz"
        broken.write_bytes(gzip.compress(GUIDE)[:20])
        store.add_source(GuideSource(id=5, name="File", provider="xmltv", xmltv_url=str(good)))
        store.add_source(
            GuideSource(id=6, name="Broken", provider="xmltv", xmltv_url=str(broken))
        )

        ctx = SyncContext.from_store(store)

        assert ctx.has_provider(5)
        assert not ctx.has_provider(6)


# =============================================================================
# FAILURES
# =============================================================================


class TestGuideUpdateFailures:
    """Test that failed runs leave persisted data unchanged."""

    def test_unknown_source(self, ctx):
        with pytest.raises(GuideUpdateError) as exc_info:
            run_guide_update(ctx, 42)
        assert exc_info.value.guide_source_id == 42

    def test_source_without_provider(self, ctx, store):
        store.add_source(GuideSource(id=2, name="Orphan", provider="xmltv"))

        with pytest.raises(GuideUpdateError):
            run_guide_update(ctx, 2)

    def test_refresh_failure(self, ctx, store, sd_client):
        sd_client.fail_on.add("get_status")

        with pytest.raises(GuideUpdateError) as exc_info:
            run_guide_update(ctx, 1, days_to_get=1)

        assert isinstance(exc_info.value.__cause__, SchedulesDirectError)
        assert store.state_updates == []

    def test_failure_reports_phase(self, ctx, sd_client, caplog):
        sd_client.fail_on.add("get_programs")

        with caplog.at_level(logging.ERROR, logger="guidearr.sync"):
            with pytest.raises(GuideUpdateError) as exc_info:
                run_guide_update(ctx, 1, days_to_get=1)

        assert exc_info.value.phase == ScheduleSyncError.METADATA_FETCH
        (record,) = [r for r in caplog.records if r.name == "guidearr.sync"]
        assert record.guide_source_id == 1
        assert record.sync_phase == ScheduleSyncError.METADATA_FETCH

    def test_refresh_failure_phase(self, ctx, sd_client):
        sd_client.fail_on.add("get_status")

        with pytest.raises(GuideUpdateError) as exc_info:
            run_guide_update(ctx, 1, days_to_get=1)

        assert exc_info.value.phase == "refresh"

    def test_schedule_failure_saves_nothing(self, ctx, store, sd_client, sd_channels):
        sd_client.fail_on.add("get_schedules")

        with pytest.raises(GuideUpdateError):
            run_guide_update(ctx, 1, days_to_get=2)

        assert store.state_updates == []
        assert store.programmes == {}
        for channel in sd_channels:
            assert store.channel_by_xmltv_id(channel.id).provider_data is None

    def test_lock_released_after_failure(self, ctx, sd_client):
        sd_client.fail_on.add("get_programs")
        with pytest.raises(GuideUpdateError):
            run_guide_update(ctx, 1, days_to_get=1)

        sd_client.fail_on.clear()
        result = run_guide_update(ctx, 1, days_to_get=1)

        assert result.programmes_upserted == 2

    def test_cancelled(self, ctx, store):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(GuideUpdateError):
            run_guide_update(ctx, 1, days_to_get=1, cancel=cancel)

        assert store.state_updates == []

    def test_already_updating(self, ctx, store):
        lock = ctx.lock_for(1)
        lock.acquire()
        try:
            with pytest.raises(GuideUpdateError, match="already updating"):
                run_guide_update(ctx, 1, days_to_get=1)
        finally:
            lock.release()

        assert store.state_updates == []


# =============================================================================
# PARTIAL FAILURES
# =============================================================================


class TestPartialFailures:
    """Test that individual write failures are reported, not fatal."""

    def test_channel_state_write_failure(self, ctx, store, sd_channels):
        failing = sd_channels[0].id
        store.failing_channel_updates.add(failing)

        result = run_guide_update(ctx, 1, days_to_get=2)

        assert not result.success
        assert list(result.channel_failures) == [failing]
        assert result.channels_updated == 1
        assert result.programmes_upserted == 4
        assert len(store.state_updates) == 1

    def test_programme_write_failure(self, ctx, store, sd_client):
        sd_client.hooks["get_programs"] = lambda ids: store.failing_programme_ids.add(ids[0])

        result = run_guide_update(ctx, 1, days_to_get=2)

        assert result.programme_failures == 1
        assert result.programmes_upserted == 3
        assert result.channels_updated == 2

    def test_provider_data_values(self, ctx, store, sd_channels):
        run_guide_update(ctx, 1, days_to_get=1)

        record = store.channel_by_xmltv_id(sd_channels[1].id)
        assert isinstance(record.provider_data, ProviderData)

"""Background scheduler for guide updates.

Each guide source carries its own cron expression (update_frequency).
A single background thread checks every source once per tick and runs
run_guide_update() for the ones that are due. Sources without an
expression are only updated on demand.

Usage:
    scheduler = GuideUpdateScheduler(ctx)
    scheduler.start()
    # ... application runs ...
    scheduler.stop()
"""

import logging
import threading
from datetime import datetime

from croniter import croniter

from guidearr.consumers.guide_updates import GuideUpdateResult, run_guide_update
from guidearr.core.exceptions import GuidearrError
from guidearr.services.context import SyncContext
from guidearr.utilities.logging import setup_logging, sync_fields

logger = logging.getLogger(__name__)


class GuideUpdateScheduler:
    """Background scheduler firing guide updates on per-source cron expressions."""

    def __init__(
        self,
        ctx: SyncContext,
        run_on_start: bool = False,
        tick_seconds: float = 1.0,
    ):
        """Initialize the scheduler.

        Args:
            ctx: Synchronization context holding the store and providers
            run_on_start: Whether to update every scheduled source immediately
            tick_seconds: How often due sources are checked
        """
        self._ctx = ctx
        self._run_on_start = run_on_start
        self._tick_seconds = tick_seconds

        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._running = False
        self._expressions: dict[int, str] = {}
        self._next_runs: dict[int, datetime] = {}
        self._last_runs: dict[int, datetime] = {}
        self._invalid: dict[int, str] = {}

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running and self._thread is not None and self._thread.is_alive()

    @property
    def next_runs(self) -> dict[int, datetime]:
        """Next scheduled run per guide source id."""
        return dict(self._next_runs)

    @property
    def last_runs(self) -> dict[int, datetime]:
        return dict(self._last_runs)

    def start(self) -> bool:
        """Start the scheduler, configuring process logging on first use.

        Returns:
            True if started, False if already running
        """
        if self.is_running:
            logger.warning("[SCHEDULER] Scheduler already running")
            return False

        setup_logging()
        self._stop_event.clear()
        self._running = True
        self._thread = threading.Thread(
            target=self._run_loop,
            name="guide-update-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("[SCHEDULER] Guide update scheduler started")
        return True

    def stop(self, timeout: float = 30.0) -> bool:
        """Stop the scheduler, cancelling an update in progress.

        Returns:
            True if stopped, False if timeout
        """
        if not self.is_running:
            return True

        logger.info("[SCHEDULER] Stopping guide update scheduler...")
        self._stop_event.set()
        self._running = False

        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("[SCHEDULER] Scheduler thread did not stop in time")
                return False

        logger.info("[SCHEDULER] Guide update scheduler stopped")
        return True

    def run_due(self, now: datetime | None = None) -> dict[int, GuideUpdateResult | None]:
        """Run updates for every guide source whose expression is due.

        The first time a source is seen only its next run is computed.
        Failed updates are logged and reported as None.

        Returns:
            Dict of guide source id to update result
        """
        now = now or datetime.now()
        due = []
        for source in self._ctx.store.get_all_guide_sources():
            next_run = self._next_run_for(source.id, source.update_frequency, now)
            if next_run is not None and now >= next_run:
                due.append(source.id)

        results: dict[int, GuideUpdateResult | None] = {}
        for guide_source_id in due:
            if self._stop_event.is_set():
                break
            results[guide_source_id] = self._run_update(guide_source_id)
            self._last_runs[guide_source_id] = now
            self._next_runs[guide_source_id] = croniter(
                self._expressions[guide_source_id], now
            ).get_next(datetime)
        return results

    def run_all(self) -> dict[int, GuideUpdateResult | None]:
        """Update every source that has a valid expression, due or not."""
        results: dict[int, GuideUpdateResult | None] = {}
        now = datetime.now()
        for source in self._ctx.store.get_all_guide_sources():
            if self._next_run_for(source.id, source.update_frequency, now) is None:
                continue
            results[source.id] = self._run_update(source.id)
            self._last_runs[source.id] = now
        return results

    def _next_run_for(
        self, guide_source_id: int, expression: str, now: datetime
    ) -> datetime | None:
        expression = (expression or "").strip()
        if not expression:
            self._forget(guide_source_id)
            return None

        if self._invalid.get(guide_source_id) == expression:
            return None

        if self._expressions.get(guide_source_id) != expression:
            try:
                next_run = croniter(expression, now).get_next(datetime)
            except (KeyError, ValueError) as e:
                logger.error(
                    "[SCHEDULER] Invalid cron expression '%s' for guide source %d: %s",
                    expression,
                    guide_source_id,
                    e,
                )
                self._forget(guide_source_id)
                self._invalid[guide_source_id] = expression
                return None
            self._invalid.pop(guide_source_id, None)
            self._expressions[guide_source_id] = expression
            self._next_runs[guide_source_id] = next_run
            logger.info(
                "[SCHEDULER] Guide source %d next update at %s",
                guide_source_id,
                next_run.strftime("%Y-%m-%d %H:%M:%S"),
            )

        return self._next_runs[guide_source_id]

    def _forget(self, guide_source_id: int) -> None:
        self._expressions.pop(guide_source_id, None)
        self._next_runs.pop(guide_source_id, None)

    def _run_update(self, guide_source_id: int) -> GuideUpdateResult | None:
        try:
            return run_guide_update(self._ctx, guide_source_id, cancel=self._stop_event)
        except GuidearrError as e:
            logger.error(
                "[SCHEDULER] Guide source %d update failed: %s",
                guide_source_id,
                e,
                extra=sync_fields(guide_source_id, getattr(e, "phase", None)),
            )
            return None

    def _run_loop(self) -> None:
        """Main scheduler loop - runs in background thread."""
        if self._run_on_start:
            try:
                logger.info("[SCHEDULER] Running initial guide updates...")
                self.run_all()
            except Exception:
                logger.exception("[SCHEDULER] Error in initial scheduler run")

        while not self._stop_event.is_set():
            try:
                self.run_due()
            except Exception:
                logger.exception("[SCHEDULER] Error in scheduler run")
            self._stop_event.wait(self._tick_seconds)

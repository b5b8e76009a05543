"""Debounced automatic re-validation.

Selecting a different trial criteria type, editing measurements, or the
readiness flag turning on all trigger a re-validation. Each trigger resets the
quiescence timer, so a burst of edits runs ``validate`` once. A run already in
flight is never cancelled; overlapping runs publish in completion order.
"""

import asyncio
from typing import Callable, List, Optional, Set

from imaging_conformance.conformance.observable import ObservableValue
from imaging_conformance.conformance.orchestrator import ConformanceCriteria
from imaging_conformance.config.logging_config import get_logger
from imaging_conformance.config.settings import get_settings

logger = get_logger(__name__)


class RevalidationScheduler:
    """Coalesces triggers into debounced ``validate`` runs gated by a readiness flag."""

    def __init__(
        self,
        criteria: ConformanceCriteria,
        trial_criteria_type: ObservableValue,
        measurements_ready: ObservableValue,
        measurement_changes: Optional[ObservableValue] = None,
        debounce_seconds: Optional[float] = None,
    ):
        self._criteria = criteria
        self._trial_criteria_type = trial_criteria_type
        self._measurements_ready = measurements_ready
        self._measurement_changes = measurement_changes
        self._debounce_seconds = (
            debounce_seconds if debounce_seconds is not None
            else get_settings().revalidation_debounce_seconds
        )
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._unsubscribers: List[Callable[[], None]] = []
        self.runs_started = 0
        self.last_error: Optional[Exception] = None

    def start(self) -> None:
        """Subscribe to the trigger sources. Must be called from the running loop."""
        if self._unsubscribers:
            return
        self._loop = asyncio.get_running_loop()
        self._unsubscribers.append(
            self._trial_criteria_type.subscribe(lambda _: self.trigger("trial_criteria_type_changed"))
        )
        self._unsubscribers.append(self._measurements_ready.subscribe(self._on_ready_changed))
        if self._measurement_changes is not None:
            self._unsubscribers.append(
                self._measurement_changes.subscribe(lambda _: self.trigger("measurements_changed"))
            )
        logger.info("Re-validation scheduler started", debounce_seconds=self._debounce_seconds)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        logger.info("Re-validation scheduler stopped")

    def trigger(self, reason: str = "manual") -> None:
        """Restart the quiescence timer; the run happens when it expires."""
        loop = self._loop or asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._debounce_seconds, self._fire)
        logger.debug("Re-validation scheduled", reason=reason, delay=self._debounce_seconds)

    def _on_ready_changed(self, ready) -> None:
        if ready:
            self.trigger("measurements_ready")

    def _fire(self) -> None:
        self._timer = None
        if not self._measurements_ready.get():
            logger.debug("Skipping re-validation, measurements not ready")
            return

        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._run(self._trial_criteria_type.get()))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        self.runs_started += 1

    async def _run(self, trial_criteria_type) -> None:
        try:
            await self._criteria.validate(trial_criteria_type)
            self.last_error = None
        except Exception as e:
            self.last_error = e
            logger.error("Automatic re-validation failed", error=str(e), exc_info=True)

    @property
    def pending(self) -> bool:
        return self._timer is not None or bool(self._in_flight)

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no run is in flight."""
        loop = self._loop or asyncio.get_running_loop()
        while self.pending:
            if self._timer is not None:
                await asyncio.sleep(max(0.0, self._timer.when() - loop.time()))
                await asyncio.sleep(0)
            else:
                await asyncio.gather(*list(self._in_flight), return_exceptions=True)

"""Daily backfill worker.

Each run walks the configured pairs sequentially. Per pair:

  1. DETERMINE_RANGE: from the day after the last stored day (or one year
     back when nothing is stored) up to yesterday
  2. FETCH -> COMPUTE -> PERSIST: retried as one unit, with a fixed delay
     between attempts, up to max_attempts
  3. VERIFY_COMPLETENESS: trailing-year gap check, always runs

An exhausted retry budget produces one ``update_failure`` alert; detected
gaps produce one ``incomplete_data`` alert. Neither stops the run: the
next pair is processed regardless.

stop() sets an event that wakes any pending retry delay, so a cancelled
run ends after the in-flight attempt without starting another attempt
or pair.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

import structlog

from sma.config import BackfillSettings
from sma.logging import get_logger
from sma.models import AlertType, CompletenessReport, Pair, utc_today
from sma.monitoring.alerts import AlertSink
from sma.service import SMAService

logger = get_logger(__name__)

#: Missing days listed verbatim in an incomplete_data alert.
_MAX_LISTED_MISSING_DAYS = 10


class BackfillState(str, Enum):
    """Per-pair progress through one worker run."""

    INIT = "init"
    DETERMINE_RANGE = "determine_range"
    FETCH = "fetch"
    COMPUTE = "compute"
    PERSIST = "persist"
    VERIFY_COMPLETENESS = "verify_completeness"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class PairOutcome:
    """Result of processing one pair in a run."""

    pair: Pair
    state: BackfillState = BackfillState.INIT
    attempts: int = 0
    records_written: int = 0
    report: CompletenessReport | None = None
    error: str | None = None

    @property
    def backfill_failed(self) -> bool:
        return self.state == BackfillState.FAILED


def format_incomplete_message(report: CompletenessReport) -> str:
    """Human-readable body for an incomplete_data alert."""
    listed = [d.isoformat() for d in report.missing_days[:_MAX_LISTED_MISSING_DAYS]]
    extra = len(report.missing_days) - len(listed)
    days = ", ".join(listed) + (f" (+{extra} more)" if extra > 0 else "")
    return (
        f"Incomplete SMA data for {report.pair.value}: "
        f"{len(report.missing_days)} missing day(s) between "
        f"{report.from_day.isoformat()} and {report.to_day.isoformat()}: {days}"
    )


class BackfillOrchestrator:
    """Scheduled backfill loop with bounded retries and alerting.

    Args:
        service: SMA service providing fetch/compute/persist and completeness.
        alert_sink: Destination for update_failure / incomplete_data / run_error.
        settings: Pairs, retry budget and schedule.
        today: Returns the current UTC day (injectable for tests).
    """

    def __init__(
        self,
        service: SMAService,
        alert_sink: AlertSink,
        settings: BackfillSettings,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._service = service
        self._alert_sink = alert_sink
        self._settings = settings
        self._today = today
        self._pairs = [Pair.parse(p) for p in settings.pairs]
        self._stop_event = asyncio.Event()
        self._run_lock = asyncio.Lock()
        self._last_outcomes: list[PairOutcome] = []

    @property
    def pairs(self) -> list[Pair]:
        return list(self._pairs)

    @property
    def last_outcomes(self) -> list[PairOutcome]:
        return list(self._last_outcomes)

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    # ──────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────

    async def start(self) -> None:
        """Run immediately, then once per run_interval until stop() is called."""
        logger.info(
            "backfill_worker_starting",
            pairs=[p.value for p in self._pairs],
            run_interval=self._settings.run_interval,
            retry_interval=self._settings.effective_retry_interval,
        )
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("backfill_run_error", error=str(e), exc_info=True)
                await self._alert(AlertType.RUN_ERROR, f"Scheduled backfill run failed: {e}")

            if not await self._sleep(self._settings.run_interval):
                break
        logger.info("backfill_worker_stopped")

    async def stop(self) -> None:
        """Request cancellation: no new attempt or pair is started after this."""
        logger.info("backfill_worker_stopping")
        self._stop_event.set()

    # ──────────────────────────────────────────────
    # One run
    # ──────────────────────────────────────────────

    async def run_once(self) -> list[PairOutcome]:
        """Process every configured pair sequentially and return their outcomes.

        A failing pair never prevents the following pairs from running.
        """
        async with self._run_lock:
            outcomes: list[PairOutcome] = []
            for pair in self._pairs:
                if self._stop_event.is_set():
                    logger.info("backfill_run_cancelled", next_pair=pair.value)
                    break
                outcomes.append(await self._process_pair(pair))

            self._last_outcomes = outcomes
            logger.info(
                "backfill_run_complete",
                pairs=len(outcomes),
                failed=[o.pair.value for o in outcomes if o.backfill_failed],
                incomplete=[
                    o.pair.value for o in outcomes if o.report and not o.report.is_complete
                ],
            )
            return outcomes

    async def _process_pair(self, pair: Pair) -> PairOutcome:
        outcome = PairOutcome(pair=pair)
        with structlog.contextvars.bound_contextvars(pair=pair.value):
            outcome.state = BackfillState.DETERMINE_RANGE
            try:
                from_day, to_day = await self._determine_range(pair)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                outcome.state = BackfillState.FAILED
                outcome.error = str(e)
                logger.error("determine_range_failed", error_type=type(e).__name__, error=str(e))
                await self._alert(
                    AlertType.UPDATE_FAILURE,
                    f"Daily SMA update failed for {pair.value}: could not read last stored day ({e})",
                )
            else:
                if from_day > to_day:
                    logger.info("pair_up_to_date", to_day=to_day.isoformat())
                else:
                    await self._backfill_with_retry(pair, from_day, to_day, outcome)

            if outcome.state == BackfillState.CANCELLED:
                return outcome

            await self._verify_completeness(pair, outcome)
            if outcome.state != BackfillState.FAILED:
                outcome.state = BackfillState.DONE
        return outcome

    async def _determine_range(self, pair: Pair) -> tuple[date, date]:
        """Return the ``[from, to]`` day range still to be backfilled."""
        today = self._today()
        last_day = await self._service.repository.last_stored_day(pair)
        if last_day is None:
            from_day = today - timedelta(days=self._settings.completeness_days)
        else:
            from_day = last_day + timedelta(days=1)
        to_day = today - timedelta(days=1)
        logger.debug(
            "backfill_range_determined",
            last_stored_day=last_day.isoformat() if last_day else None,
            from_day=from_day.isoformat(),
            to_day=to_day.isoformat(),
        )
        return from_day, to_day

    async def _backfill_with_retry(
        self, pair: Pair, from_day: date, to_day: date, outcome: PairOutcome
    ) -> None:
        """Run FETCH -> COMPUTE -> PERSIST up to max_attempts times.

        Every failure, whatever its type, consumes one attempt and re-runs
        the whole unit. Exhaustion sends exactly one update_failure alert.
        """
        max_attempts = self._settings.max_attempts

        for attempt in range(1, max_attempts + 1):
            if self._stop_event.is_set():
                outcome.state = BackfillState.CANCELLED
                logger.info("backfill_cancelled", attempts=outcome.attempts)
                return

            outcome.attempts = attempt
            try:
                outcome.state = BackfillState.FETCH
                candles = await self._service.fetch_candles(pair, from_day, to_day)
                outcome.state = BackfillState.COMPUTE
                records = self._service.compute(pair, candles, from_day, to_day)
                outcome.state = BackfillState.PERSIST
                outcome.records_written = await self._service.persist(records)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                outcome.error = str(e)
                logger.warning(
                    "backfill_attempt_failed",
                    attempt=attempt,
                    max_attempts=max_attempts,
                    step=outcome.state.value,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            else:
                outcome.error = None
                logger.info(
                    "backfill_succeeded",
                    attempt=attempt,
                    from_day=from_day.isoformat(),
                    to_day=to_day.isoformat(),
                    records=outcome.records_written,
                )
                return

            if attempt < max_attempts:
                if not await self._sleep(self._settings.effective_retry_interval):
                    outcome.state = BackfillState.CANCELLED
                    logger.info("backfill_cancelled", attempts=attempt)
                    return

        outcome.state = BackfillState.FAILED
        logger.error("backfill_failed_permanently", attempts=max_attempts, error=outcome.error)
        await self._alert(
            AlertType.UPDATE_FAILURE,
            f"Daily SMA update failed for {pair.value} after {max_attempts} attempts: "
            f"{outcome.error}",
        )

    async def _verify_completeness(self, pair: Pair, outcome: PairOutcome) -> None:
        """Check the trailing window and alert on gaps. Errors are logged only."""
        if outcome.state != BackfillState.FAILED:
            outcome.state = BackfillState.VERIFY_COMPLETENESS
        try:
            report = await self._service.check_completeness(pair)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("completeness_check_failed", error_type=type(e).__name__, error=str(e))
            outcome.error = outcome.error or str(e)
            return

        outcome.report = report
        if report.is_complete:
            logger.info("data_complete", from_day=report.from_day.isoformat())
            return

        logger.warning(
            "incomplete_data_detected",
            missing=len(report.missing_days),
            first_missing=report.missing_days[0].isoformat(),
        )
        await self._alert(AlertType.INCOMPLETE_DATA, format_incomplete_message(report))

    # ──────────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────────

    async def _sleep(self, seconds: float) -> bool:
        """Wait ``seconds`` unless stop() is called first.

        Returns True when the full delay elapsed, False when stopping.
        """
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def _alert(self, alert_type: AlertType, message: str) -> None:
        """Send an alert; a failing sink is logged and never propagates."""
        try:
            await self._alert_sink.send(alert_type.value, message)
        except Exception as e:
            logger.error("alert_delivery_failed", alert_type=alert_type.value, error=str(e))

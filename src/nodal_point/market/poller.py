"""Background poller that keeps the latest 4CP forecast warm.

An APScheduler interval job refreshes the forecast every five minutes.
Request handlers call ``get()``: data younger than the staleness window is
served from cache, older data triggers a refetch. A fetch that still fails
after its retries leaves the last good forecast in place, flagged stale.

Exports:
    ForecastPoller: Scheduled, retrying cache for the 4CP forecast.
    ForecastUnavailableError: No forecast has ever been fetched successfully.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from tenacity import AsyncRetrying, RetryError, stop_after_attempt, wait_fixed

from src.nodal_point.core.monitoring import forecast_poll_failures_total, fourcp_probability
from src.nodal_point.market.schemas import FourCPForecast, ForecastResponse

logger = structlog.get_logger(__name__)

ForecastSource = Callable[[], Awaitable[FourCPForecast]]


class ForecastUnavailableError(RuntimeError):
    """Raised by ``get()`` when fetching fails and nothing is cached."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ForecastPoller:
    """Fixed-interval forecast poller with a staleness window.

    Args:
        source: Async callable producing a fresh forecast.
        poll_interval: Seconds between scheduled refreshes.
        stale_after: Seconds a cached forecast is considered fresh.
        attempts: Total fetch attempts per refresh (first try plus retries).
        retry_delay: Fixed seconds between attempts.
        clock: Returns the current UTC time; injectable for tests.
    """

    POLL_INTERVAL_SECONDS = 300
    STALE_AFTER_SECONDS = 240
    ATTEMPTS = 3
    RETRY_DELAY_SECONDS = 3.0

    def __init__(
        self,
        source: ForecastSource,
        *,
        poll_interval: int = POLL_INTERVAL_SECONDS,
        stale_after: int = STALE_AFTER_SECONDS,
        attempts: int = ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._source = source
        self._poll_interval = poll_interval
        self._stale_after = timedelta(seconds=stale_after)
        self._attempts = attempts
        self._retry_delay = retry_delay
        self._clock = clock

        self._forecast: FourCPForecast | None = None
        self._fetched_at: datetime | None = None
        self._last_failed = False
        self._lock = asyncio.Lock()
        self._scheduler: AsyncIOScheduler | None = None
        self._started = False

    # ── Cache state ─────────────────────────────────────────────────────────

    @property
    def forecast(self) -> FourCPForecast | None:
        return self._forecast

    @property
    def fetched_at(self) -> datetime | None:
        return self._fetched_at

    def is_fresh(self) -> bool:
        if self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self._stale_after

    def _snapshot(self) -> ForecastResponse:
        if self._forecast is None or self._fetched_at is None:
            raise ForecastUnavailableError("4CP forecast unavailable")
        return ForecastResponse(
            **self._forecast.model_dump(),
            stale=self._last_failed or not self.is_fresh(),
            fetched_at=self._fetched_at,
        )

    # ── Fetching ────────────────────────────────────────────────────────────

    async def _fetch_with_retry(self) -> FourCPForecast:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._attempts),
            wait=wait_fixed(self._retry_delay),
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "forecast.fetch_retry",
                        attempt=attempt.retry_state.attempt_number,
                    )
                forecast = await self._source()
        return forecast

    async def refresh(self) -> FourCPForecast | None:
        """Fetch a new forecast, keeping the previous one on failure.

        Returns the new forecast, or None when every attempt failed.
        """
        try:
            forecast = await self._fetch_with_retry()
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            self._last_failed = True
            forecast_poll_failures_total.inc()
            logger.warning(
                "forecast.fetch_failed",
                attempts=self._attempts,
                error=str(cause),
                serving_stale=self._forecast is not None,
            )
            return None

        self._forecast = forecast
        self._fetched_at = self._clock()
        self._last_failed = False
        fourcp_probability.set(forecast.probability)
        logger.info(
            "forecast.refreshed",
            score=forecast.score,
            risk_level=forecast.risk_level.value,
        )
        return forecast

    async def get(self) -> ForecastResponse:
        """Return the cached forecast when fresh, otherwise refetch first.

        Concurrent callers share one refetch.

        Raises:
            ForecastUnavailableError: the refetch failed and no forecast is cached.
        """
        if self._forecast is not None and self.is_fresh():
            return self._snapshot()

        async with self._lock:
            if self._forecast is None or not self.is_fresh():
                await self.refresh()

        if self._forecast is None:
            raise ForecastUnavailableError("4CP forecast unavailable")
        return self._snapshot()

    # ── Scheduling ──────────────────────────────────────────────────────────

    async def _scheduled_refresh(self) -> None:
        async with self._lock:
            await self.refresh()

    def start(self) -> bool:
        """Start the interval job; the first poll runs immediately."""
        if self._started:
            return False

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._scheduled_refresh,
            trigger=IntervalTrigger(seconds=self._poll_interval),
            id="fourcp_forecast_poll",
            name="4CP forecast refresh",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        self._started = True
        logger.info("forecast_poller_started", interval_seconds=self._poll_interval)
        return True

    def stop(self) -> None:
        """Shut down the scheduler."""
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("forecast_poller_stopped")


__all__ = ["ForecastPoller", "ForecastUnavailableError"]

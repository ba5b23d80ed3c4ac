"""Background sweep that expires stale pending reservations every few minutes."""
import asyncio
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from brocante.app.core.constants import DEFAULT_HOLD_HOURS, DEFAULT_SWEEP_INTERVAL_SECONDS
from brocante.app.core.exceptions import SweepCycleError
from brocante.app.core.logging import get_logger
from brocante.app.services.reservations import ReservationService

logger = get_logger(__name__)

try:
    from brocante.app.core.metrics import sweep_runs_total
except ImportError:
    sweep_runs_total = None


class ReservationSweeper:
    """
    Owns the periodic reconciliation task.

    start() runs one cycle right away and then one every interval_seconds;
    stop() cancels the task and waits for it. A failing cycle is logged and
    the next one still runs.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS,
        hold_hours: int = DEFAULT_HOLD_HOURS,
        release_on_cancel: bool = True,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.hold_hours = hold_hours
        self.release_on_cancel = release_on_cancel
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Run a single reconciliation cycle. Returns the number expired, 0 if the cycle failed."""
        try:
            async with self.session_factory() as session:
                service = ReservationService(
                    session,
                    hold_hours=self.hold_hours,
                    release_on_cancel=self.release_on_cancel,
                )
                expired = await service.reconcile_expired()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # DataAccessError keeps the database message in .detail
            error = SweepCycleError(getattr(e, "detail", None) or str(e))
            logger.error("Reservation sweep failed", error=error.detail, error_type=type(e).__name__)
            if sweep_runs_total is not None:
                sweep_runs_total.labels(outcome="error").inc()
            return 0

        if sweep_runs_total is not None:
            sweep_runs_total.labels(outcome="ok").inc()
        logger.debug("Reservation sweep finished", expired=expired)
        return expired

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        logger.info("Reservation sweeper starting", interval_seconds=self.interval_seconds)
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reservation sweeper stopped")

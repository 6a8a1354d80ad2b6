# backend/quizora/services/scheduler.py
"""
Background quiz status refresher.

One instance is created by the app at startup and kept on ``app.state``.
Each pass re-derives the status of every non-cancelled quiz and writes the
changes with bulk UPDATEs, so the ORM persist hook (which reads the real
clock) never fires for scheduler writes.
"""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy import and_, update

from quizora.core.clock import utcnow
from quizora.models import Quiz, QuizStatusEnum

logger = logging.getLogger(__name__)


class QuizStatusScheduler:
    def __init__(
        self,
        session_factory,
        interval_seconds: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.last_run_at: Optional[datetime] = None
        self.last_counts: Optional[Dict[str, int]] = None
        self.runs = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> Dict[str, int]:
        """One full pass. Returns how many quizzes moved into each status."""
        now = self.clock()
        cancelled = QuizStatusEnum.cancelled.value
        rules = {
            "activated": (QuizStatusEnum.active.value, and_(Quiz.start_at <= now, Quiz.end_at >= now)),
            "completed": (QuizStatusEnum.completed.value, Quiz.end_at < now),
            "scheduled": (QuizStatusEnum.scheduled.value, Quiz.start_at > now),
        }

        counts = {}
        db = self.session_factory()
        try:
            for key, (target, window) in rules.items():
                res = db.execute(
                    update(Quiz)
                    .where(Quiz.status != cancelled, Quiz.status != target, window)
                    .values(status=target)
                    .execution_options(synchronize_session=False)
                )
                counts[key] = res.rowcount or 0
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        self.runs += 1
        self.last_run_at = now
        self.last_counts = counts
        if any(counts.values()):
            logger.info("[scheduler] status pass at %s: %s", now.isoformat(), counts)
        return counts

    async def _tick(self):
        try:
            # the pass is blocking database work
            await asyncio.to_thread(self.run_once)
        except Exception:
            self.failures += 1
            logger.exception("[scheduler] status pass failed")

    async def _loop(self):
        while True:
            await self._tick()
            await self.sleep(self.interval_seconds)

    def start(self) -> bool:
        """Start the loop on the running event loop; a no-op when already running."""
        if self.is_running:
            logger.debug("[scheduler] start() called while running, ignoring")
            return False
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("[scheduler] started (interval %ss)", self.interval_seconds)
        return True

    async def stop(self):
        if not self._task:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("[scheduler] loop had already failed")
        logger.info("[scheduler] stopped after %d run(s)", self.runs)

    def status(self) -> dict:
        return {
            "running": self.is_running,
            "intervalSeconds": self.interval_seconds,
            "runs": self.runs,
            "failures": self.failures,
            "lastRunAt": self.last_run_at,
            "lastCounts": self.last_counts,
        }

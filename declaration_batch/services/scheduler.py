"""
DeclarationScheduler -- in-process polling driver for the pipeline.

Contract:
    Every ``tick()`` evaluates each configured entry point against its cron
    expression (pure, ``declaration_batch.domain.schedule``) and runs the due
    ones, each in its own session and transaction.

Architecture: declaration_batch/services.  Calls kernel services only
    through the entry actions built by
    ``PipelineOrchestrator.scheduled_entries``.

Invariants enforced:
    - All timestamps from the injected Clock.
    - A matching minute fires an entry at most once.
    - One failing entry is rolled back and logged; the others still run.
    - Ticks are serialized by an in-process lock (single writer).
    - Graceful shutdown: the stop signal is checked between entries.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable

from sqlalchemy.orm import Session

from declaration_kernel.domain.clock import Clock, SystemClock
from declaration_kernel.logging_config import LogContext, get_logger

from declaration_batch.domain.schedule import CronSpec, is_due, minute_of, parse_cron

logger = get_logger("batch.scheduler")


@dataclass(frozen=True)
class ScheduledEntry:
    """One entry point, its cron spec and the action run in a session."""

    name: str
    spec: CronSpec
    action: Callable[[Session], Any]

    @classmethod
    def from_cron(
        cls, name: str, expression: str, action: Callable[[Session], Any],
    ) -> ScheduledEntry:
        return cls(name=name, spec=parse_cron(expression), action=action)


class DeclarationScheduler:
    """
    Polling scheduler.

    Non-goals:
        - NOT a distributed scheduler (no leader election); run one instance.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        entries: list[ScheduledEntry],
        clock: Clock | None = None,
        tick_interval_seconds: int = 60,
        schedule_tz: tzinfo = timezone.utc,
    ):
        names = [e.name for e in entries]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate scheduler entry names: {names}")
        self._session_factory = session_factory
        self._entries = list(entries)
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._tz = schedule_tz
        self._last_fired: dict[str, datetime] = {}
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def entry_names(self) -> list[str]:
        return [e.name for e in self._entries]

    def tick(self) -> list[str]:
        """Run every due entry once.  Returns the names that ran successfully."""
        with self._tick_lock:
            now = self._clock.local_now(self._tz)
            succeeded = []
            for entry in self._entries:
                if self._stop_event.is_set():
                    break
                if not is_due(entry.spec, now, self._last_fired.get(entry.name)):
                    continue
                self._last_fired[entry.name] = minute_of(now)
                if self._run(entry):
                    succeeded.append(entry.name)
            return succeeded

    def run_entry(self, name: str) -> bool:
        """Run one entry immediately, ignoring its schedule."""
        for entry in self._entries:
            if entry.name == name:
                with self._tick_lock:
                    return self._run(entry)
        raise KeyError(f"No scheduler entry named {name!r}")

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="declaration-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={"tick_interval": self._tick_interval, "entries": self.entry_names},
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current entry to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _run(self, entry: ScheduledEntry) -> bool:
        with LogContext.bind(correlation_id=f"{entry.name}-{self._clock.now_utc():%Y%m%dT%H%M}"):
            session = self._session_factory()
            try:
                result = entry.action(session)
                session.commit()
            except Exception:
                session.rollback()
                logger.exception("scheduler_entry_failed", extra={"entry": entry.name})
                return False
            finally:
                session.close()
            logger.info(
                "scheduler_entry_completed",
                extra={"entry": entry.name, "result": _describe(result)},
            )
            return True


def _describe(result: Any) -> Any:
    if result is None or isinstance(result, (str, int, float, bool)):
        return result
    if isinstance(result, list):
        return len(result)
    return type(result).__name__

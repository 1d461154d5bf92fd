# parapdf/parallel.py
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from tqdm import tqdm

from .exceptions import AnalysisError, DispatchError, TransientAnalysisError
from .logger import PROGRESS  # noqa: F401  registers Logger.progress
from .models import Analysis, Unit, UnitResult

logger = logging.getLogger("parapdf")

AnalyzeFn = Callable[[Unit], Analysis]


@dataclass(frozen=True)
class RetryPolicy:
    """How often a unit is attempted, and how long to back off between attempts."""
    max_attempts: int = 3
    base_delay: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    def delay_for(self, attempt: int) -> float:
        """Backoff after the given 0-based failed attempt, base_delay * 2**attempt."""
        return self.base_delay * (2 ** attempt)


@dataclass(frozen=True)
class ProgressEvent:
    kind: str  # "started", "retry", "succeeded" or "failed"
    index: int
    label: str
    attempt: int = 0
    delay: float = 0.0
    error: Optional[str] = None


class BatchDispatcher:
    """
    Runs units against an analysis function with a global concurrency ceiling.

    Every unit holds one slot of the gate for all of its attempts, including
    backoff sleeps, so retries consume capacity instead of being requeued.
    Results are written into a pre-sized list at each unit's own index;
    completion order never affects output order.
    """

    def __init__(
        self,
        analyze: AnalyzeFn,
        concurrency: int = 4,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
        wave_size: Optional[int] = None,
        on_event: Optional[Callable[[ProgressEvent], None]] = None,
        show_progress: bool = False,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if wave_size is not None and wave_size < 1:
            raise ValueError(f"wave_size must be >= 1, got {wave_size}")
        self.analyze = analyze
        self.concurrency = concurrency
        self.retry_policy = retry_policy or RetryPolicy()
        self.wave_size = wave_size
        self.on_event = on_event
        self.show_progress = show_progress
        self._sleep = sleep
        self._clock = clock

    # -----------------------------
    # Events
    # -----------------------------
    def _emit(self, event: ProgressEvent):
        if self.on_event is not None:
            self.on_event(event)

    # -----------------------------
    # One unit, all of its attempts
    # -----------------------------
    def _process_unit(self, unit: Unit) -> UnitResult:
        start = self._clock()
        self._emit(ProgressEvent("started", unit.index, unit.label))
        logger.debug("Processing %s", unit.label)

        result = UnitResult(
            index=unit.index, label=unit.label,
            start_page=unit.start_page, end_page=unit.end_page,
        )

        if unit.payload_type == "error":
            # extraction already failed, nothing to send
            result.error = str(unit.payload)
            result.error_kind = "permanent"
        else:
            attempt = 0
            while True:
                attempt += 1
                try:
                    analysis = self.analyze(unit)
                except TransientAnalysisError as e:
                    if attempt >= self.retry_policy.max_attempts:
                        result.error, result.error_kind = str(e), "transient"
                        break
                    delay = self.retry_policy.delay_for(attempt - 1)
                    logger.warning("Transient error on %s, retrying in %.1fs (attempt %d/%d), %s",
                                   unit.label, delay, attempt, self.retry_policy.max_attempts, e)
                    self._emit(ProgressEvent("retry", unit.index, unit.label, attempt, delay, str(e)))
                    self._sleep(delay)
                    continue
                except AnalysisError as e:
                    result.error, result.error_kind = str(e), "permanent"
                    break
                result.output_text = analysis.text
                result.input_tokens = analysis.input_tokens
                result.output_tokens = analysis.output_tokens
                break
            result.attempts = attempt

        result.duration_seconds = self._clock() - start
        result.completed_at = datetime.now().isoformat(timespec="seconds")

        if result.succeeded:
            logger.info("%s completed, %d input tokens, %d output tokens",
                        unit.label.capitalize(), result.input_tokens, result.output_tokens)
            self._emit(ProgressEvent("succeeded", unit.index, unit.label, result.attempts))
        else:
            logger.error("%s failed, %s", unit.label.capitalize(), result.error)
            self._emit(ProgressEvent("failed", unit.index, unit.label, result.attempts, error=result.error))
        return result

    def _worker(self, unit: Unit, gate: threading.BoundedSemaphore,
                results: List[Optional[UnitResult]], lock: threading.Lock) -> None:
        with gate:
            result = self._process_unit(unit)
        with lock:
            if results[unit.index] is not None:
                raise DispatchError(f"Result for unit {unit.index} written twice")
            results[unit.index] = result

    # -----------------------------
    # Public entry point
    # -----------------------------
    def dispatch(self, units: Sequence[Unit]) -> List[UnitResult]:
        """
        Process every unit to a terminal state and return results in unit order.

        Per-unit analysis failures are recorded on the results. Any other
        exception raised inside a worker aborts the batch: units not yet
        started are cancelled and a DispatchError is raised after the join.
        """
        total = len(units)
        if total == 0:
            logger.info("No units to dispatch")
            return []

        indices = sorted(u.index for u in units)
        if indices != list(range(total)):
            raise ValueError("Unit indices must be exactly 0..N-1")

        results: List[Optional[UnitResult]] = [None] * total
        lock = threading.Lock()
        gate = threading.BoundedSemaphore(self.concurrency)

        ordered = sorted(units, key=lambda u: u.index)
        step = self.wave_size or total
        waves = [ordered[i:i + step] for i in range(0, total, step)]

        logger.info("Dispatching %d unit(s), concurrency %d, max attempts %d",
                    total, self.concurrency, self.retry_policy.max_attempts)
        logger.progress("dispatch start", extra={"phase": "dispatch", "current": 0, "total": total})

        failure: Optional[BaseException] = None
        done = 0
        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="parapdf-worker") as pool, \
                tqdm(total=total, desc="Analyzing units", disable=not self.show_progress) as pbar:
            for wave_no, wave in enumerate(waves, start=1):
                if failure is not None:
                    break
                if len(waves) > 1:
                    logger.info("Wave %d/%d, %s to %s", wave_no, len(waves), wave[0].label, wave[-1].label)
                futures = {pool.submit(self._worker, unit, gate, results, lock): unit for unit in wave}
                for future in as_completed(futures):
                    if future.cancelled():
                        continue
                    exc = future.exception()
                    if exc is not None:
                        if failure is None:
                            failure = exc
                            logger.error("Worker for %s crashed, aborting batch, %r", futures[future].label, exc)
                            for pending in futures:
                                pending.cancel()
                        continue
                    done += 1
                    pbar.update(1)
                    logger.progress(
                        "dispatch progress",
                        extra={"phase": "dispatch", "event": "unit_done",
                               "unit": futures[future].index, "current": done, "total": total},
                    )

        if failure is not None:
            if isinstance(failure, DispatchError):
                raise failure
            raise DispatchError(f"Batch aborted by unexpected worker error, {failure!r}") from failure

        missing = [i for i, r in enumerate(results) if r is None]
        if missing:
            raise DispatchError(f"No result recorded for unit(s) {missing}")

        logger.progress("dispatch done", extra={"phase": "done", "current": total, "total": total})
        return results  # type: ignore[return-value]

# src/crawler/utils/run_timers.py
import time
from typing import Dict, Optional, Tuple

DEFAULT_PHASE = "run"


class RunTimers:
    """
    Measures elapsed time for one or more named phases of a run
    (crawl, analysis, reporting). Unnamed calls time the "run" phase.
    """

    def __init__(self):
        self._spans: Dict[str, Tuple[float, Optional[float]]] = {}

    def start(self, phase: str = DEFAULT_PHASE) -> None:
        self._spans[phase] = (time.perf_counter(), None)

    def stop(self, phase: str = DEFAULT_PHASE) -> None:
        span = self._spans.get(phase)
        if span is not None and span[1] is None:
            self._spans[phase] = (span[0], time.perf_counter())

    def elapsed(self, phase: str = DEFAULT_PHASE) -> float:
        """Seconds spent in phase; a running phase reports its current duration."""
        span = self._spans.get(phase)
        if span is None:
            return 0.0
        start, end = span
        return (end if end is not None else time.perf_counter()) - start

    @property
    def duration(self) -> float:
        return self.elapsed(DEFAULT_PHASE)

    def durations(self) -> Dict[str, float]:
        return {phase: round(self.elapsed(phase), 4) for phase in self._spans}

    def __repr__(self) -> str:
        phases = ", ".join(f"{k}={v:.4f}s" for k, v in self.durations().items())
        return f"<RunTimers {phases}>"

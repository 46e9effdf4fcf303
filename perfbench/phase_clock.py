"""
Named start/stop timing of benchmark phases
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from perfbench.errors import PhaseDisciplineError
from perfbench.models import PhaseRecord

logger = logging.getLogger(__name__)


class PhaseClock:
    """Times one phase at a time on a monotonic clock

    Reused for every phase of a single (backend, test type) run so the
    records can be accumulated, then discarded.
    """

    def __init__(self, on_record: Optional[Callable[[PhaseRecord], None]] = None,
                 timer: Callable[[], int] = time.perf_counter_ns):
        self.on_record = on_record
        self._timer = timer
        self._label: Optional[str] = None
        self._started_at = 0
        self.records: List[PhaseRecord] = []

    @property
    def running(self) -> Optional[str]:
        """Label of the open phase, if any"""
        return self._label

    def start(self, label: str):
        if self._label is not None:
            raise PhaseDisciplineError(
                f"Cannot start phase '{label}' while phase '{self._label}' is still running"
            )
        self._label = label
        self._started_at = self._timer()

    def stop(self) -> PhaseRecord:
        stopped_at = self._timer()
        if self._label is None:
            raise PhaseDisciplineError("stop() called without a running phase")

        record = PhaseRecord(label=self._label, elapsed_nanos=max(0, stopped_at - self._started_at))
        self._label = None
        self.records.append(record)
        logger.info(f"{record.label}: {record.elapsed_ms:.2f} ms")
        if self.on_record is not None:
            self.on_record(record)
        return record

    def abort(self) -> Optional[str]:
        """Drop the open phase without recording it"""
        label, self._label = self._label, None
        if label is not None:
            logger.debug(f"Phase '{label}' aborted")
        return label

    @contextmanager
    def phase(self, label: str) -> Iterator[None]:
        self.start(label)
        try:
            yield
        except BaseException:
            self.abort()
            raise
        self.stop()

    def total_nanos(self) -> int:
        return sum(record.elapsed_nanos for record in self.records)

    def elapsed_for(self, label: str) -> int:
        return sum(record.elapsed_nanos for record in self.records if record.label == label)

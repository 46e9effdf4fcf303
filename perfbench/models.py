"""
Data classes and type definitions for the persistence benchmark harness
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from perfbench.errors import ConfigurationError

if TYPE_CHECKING:
    from perfbench.catalog import TestTypeId


@dataclass(frozen=True)
class TestType:
    """One named benchmark scenario"""

    __test__ = False

    identity: "TestTypeId"
    display_name: str
    short_name: str

    def __str__(self):
        return self.display_name


@dataclass(frozen=True)
class PhaseRecord:
    """Elapsed time of one named phase"""
    label: str
    elapsed_nanos: int

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed_nanos / 1_000_000

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "elapsed_nanos": self.elapsed_nanos}


class PairState(Enum):
    IDLE = "idle"
    SETTING_UP = "setting_up"
    RUNNING = "running"
    TEARING_DOWN = "tearing_down"
    DONE = "done"
    ERRORED = "errored"


@dataclass
class PairResult:
    """Report record of one (backend, test type) pair"""
    backend_name: str
    test_type: str
    phases: List[PhaseRecord] = field(default_factory=list)
    error: Optional[str] = None
    state: PairState = PairState.IDLE

    @property
    def succeeded(self) -> bool:
        return self.state is PairState.DONE and self.error is None

    @property
    def phase_labels(self) -> List[str]:
        return [phase.label for phase in self.phases]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend_name": self.backend_name,
            "test_type": self.test_type,
            "phases": [phase.to_dict() for phase in self.phases],
            "error": self.error,
            "state": self.state.value,
        }


@dataclass(frozen=True)
class RunConfig:
    """What to run: entity count, test types and backends, all in run order

    Empty `test_types` or `backends` mean "all", resolved by the runner.
    """
    entity_count: int
    test_types: Tuple[TestType, ...] = ()
    backends: Tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.entity_count, int) or isinstance(self.entity_count, bool) \
                or self.entity_count <= 0:
            raise ConfigurationError(
                f"entity_count must be a positive integer, got {self.entity_count!r}"
            )

"""
Capability contract every backend under test implements
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Type, runtime_checkable

from perfbench.entities import E, EntityFactory
from perfbench.models import TestType
from perfbench.phase_clock import PhaseClock
from perfbench.random_values import WorkloadGenerator

logger = logging.getLogger(__name__)


def _log_banner(text: str):
    logger.info(text)


@dataclass
class BackendContext:
    """Everything an adapter needs for one (backend, test type) run"""
    entity_count: int
    generator: WorkloadGenerator
    clock: PhaseClock = field(default_factory=PhaseClock)
    announce_version: Callable[[str], None] = _log_banner

    def entity_factory(self) -> EntityFactory:
        """Fresh factory replaying the fixed seed"""
        return EntityFactory(self.generator.seed, self.generator.min_length,
                             self.generator.max_length)


@runtime_checkable
class BackendAdapter(Protocol):
    """What the runner calls on a storage engine

    set_up prepares storage for one run, run executes a test type and times
    its phases on context.clock, tear_down releases everything including
    on-disk state.
    """

    def name(self) -> str:
        ...

    def set_up(self, context: BackendContext) -> None:
        ...

    def run(self, test_type: TestType) -> None:
        ...

    def tear_down(self) -> None:
        ...


@runtime_checkable
class EntityStore(Protocol):
    """Storage primitives the shared scenarios are written against"""

    def put(self, entity_type: Type[E], entities: List[E]) -> None:
        ...

    def update(self, entity_type: Type[E], entities: List[E]) -> None:
        ...

    def load_all(self, entity_type: Type[E]) -> List[E]:
        ...

    def get(self, entity_type: Type[E], entity_id: int) -> Optional[E]:
        ...

    def find_by(self, entity_type: Type[E], field_name: str, value: Any) -> List[E]:
        ...

    def delete(self, entity_type: Type[E], entities: List[E]) -> None:
        ...

    def delete_all(self, entity_type: Type[E]) -> None:
        ...

    def count(self, entity_type: Type[E]) -> int:
        ...

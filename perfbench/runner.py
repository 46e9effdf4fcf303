"""
Sequential benchmark orchestration across backends

For each backend, for each selected test type: set_up, run, tear_down on a
fresh PhaseClock. Pairs always execute one after another in a fixed order;
running them concurrently would skew the timings being compared.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from perfbench.backend import BackendAdapter, BackendContext
from perfbench.catalog import CATALOG, TestCatalog
from perfbench.errors import (
    AdapterError, AdapterRunError, AdapterSetupError, AdapterTeardownError, ConfigurationError,
)
from perfbench.models import PairResult, PairState, RunConfig, TestType
from perfbench.phase_clock import PhaseClock
from perfbench.random_values import WorkloadGenerator

logger = logging.getLogger(__name__)


class BenchmarkRunner:
    """Runs every (backend, test type) pair and collects PairResults"""

    def __init__(self, adapters: Dict[str, BackendAdapter],
                 generator: Optional[WorkloadGenerator] = None,
                 catalog: TestCatalog = CATALOG):
        for name, adapter in adapters.items():
            if not isinstance(adapter, BackendAdapter):
                raise ConfigurationError(f"Backend {name!r} does not implement the adapter contract")
        self.adapters = adapters
        self.generator = generator or WorkloadGenerator()
        self.catalog = catalog
        self._versions_logged: Set[str] = set()
        self._cancel_requested = False

    def cancel(self):
        """Stop after the pair currently running; phases are never interrupted"""
        if not self._cancel_requested:
            logger.warning("Cancellation requested, stopping after the current pair")
        self._cancel_requested = True

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def reset(self):
        """Forget logged version banners and any pending cancellation"""
        self._versions_logged.clear()
        self._cancel_requested = False

    def plan(self, run_config: RunConfig) -> List[Tuple[str, TestType]]:
        """The exact pair order a run will follow"""
        backends = run_config.backends or tuple(self.adapters)
        unknown = [name for name in backends if name not in self.adapters]
        if unknown:
            raise ConfigurationError(f"Unknown backends: {', '.join(unknown)}")
        test_types = run_config.test_types or self.catalog.all()
        return [(backend, test_type) for backend in backends for test_type in test_types]

    def run(self, run_config: RunConfig) -> List[PairResult]:
        plan = self.plan(run_config)
        logger.info(f"Running {len(plan)} benchmark pairs with {run_config.entity_count} entities")

        results: List[PairResult] = []
        fatal: Dict[str, str] = {}
        for backend, test_type in plan:
            if self._cancel_requested:
                logger.warning(f"Run cancelled, {len(plan) - len(results)} pairs not started")
                break

            adapter = self.adapters[backend]
            if backend in fatal:
                results.append(PairResult(
                    backend_name=adapter.name(),
                    test_type=test_type.short_name,
                    error=f"skipped: {fatal[backend]}",
                    state=PairState.ERRORED,
                ))
                continue

            logger.info(f"Running {test_type.display_name} on {adapter.name()}")
            result, error = self.run_pair(backend, adapter, test_type, run_config.entity_count)
            results.append(result)

            if isinstance(error, (AdapterSetupError, AdapterTeardownError)):
                fatal[backend] = str(error)

            if result.succeeded:
                logger.info(f"✓ {adapter.name()} {test_type.short_name} done")
            else:
                logger.warning(f"⚠️  {adapter.name()} {test_type.short_name}: {result.error}")

        return results

    def run_pair(self, backend: str, adapter: BackendAdapter, test_type: TestType,
                 entity_count: int) -> Tuple[PairResult, Optional[AdapterError]]:
        """Drive one pair through IDLE -> SETTING_UP -> RUNNING -> TEARING_DOWN -> DONE

        Any failing step ends in ERRORED. tear_down still runs after a failed
        run so the backend never stays live.
        """
        name = adapter.name()
        result = PairResult(backend_name=name, test_type=test_type.short_name)
        clock = PhaseClock()
        context = BackendContext(
            entity_count=entity_count,
            generator=self.generator,
            clock=clock,
            announce_version=lambda text: self._announce_version(backend, text),
        )

        result.state = PairState.SETTING_UP
        try:
            adapter.set_up(context)
        except Exception as e:
            error = AdapterSetupError(name, test_type.short_name, e)
            self._release(adapter, "failed set_up")
            return self._fail(result, error)
        except BaseException:
            self._release(adapter, "interrupted set_up")
            raise

        result.state = PairState.RUNNING
        run_error: Optional[AdapterError] = None
        try:
            adapter.run(test_type)
        except Exception as e:
            clock.abort()
            run_error = AdapterRunError(name, test_type.short_name, e)
        except BaseException:
            # Interrupted mid-run: storage is still released before unwinding
            clock.abort()
            result.state = PairState.ERRORED
            self._release(adapter, "interrupted run")
            raise
        result.phases = list(clock.records)

        result.state = PairState.TEARING_DOWN
        try:
            adapter.tear_down()
        except Exception as e:
            return self._fail(result, AdapterTeardownError(name, test_type.short_name, e), run_error)

        if run_error is not None:
            return self._fail(result, run_error)

        result.state = PairState.DONE
        return result, None

    def _fail(self, result: PairResult, error: AdapterError,
              earlier: Optional[AdapterError] = None) -> Tuple[PairResult, AdapterError]:
        logger.error(f"✗ {error}")
        result.error = str(error) if earlier is None else f"{earlier}; then {error}"
        result.state = PairState.ERRORED
        return result, error

    def _release(self, adapter: BackendAdapter, reason: str):
        # Partially opened storage must not leak into the next backend's run
        try:
            adapter.tear_down()
        except Exception as e:
            logger.warning(f"Cleanup after {reason} of {adapter.name()} also failed: {e}")

    def _announce_version(self, backend: str, text: str):
        if backend in self._versions_logged:
            return
        self._versions_logged.add(backend)
        logger.info(text)

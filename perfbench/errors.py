"""
Exception types for the persistence benchmark harness
"""

from typing import Optional


class PerfBenchError(Exception):
    """Base class for all harness errors"""


class GeneratorMisuseError(PerfBenchError, ValueError):
    """Invalid count or bounds passed to the workload generator"""


class PhaseDisciplineError(PerfBenchError, RuntimeError):
    """Phase clock start/stop called out of order"""


class CatalogLookupError(PerfBenchError, LookupError):
    """Unknown test type requested"""


class ConfigurationError(PerfBenchError):
    """Invalid configuration or run selection"""


class ScenarioVerificationError(PerfBenchError):
    """A backend returned data that contradicts what the workload stored"""


class BackendRequestError(PerfBenchError):
    """A storage call made by an adapter failed"""


class AdapterError(PerfBenchError):
    """An adapter failed during one stage of a (backend, test type) pair"""

    stage = "adapter"

    def __init__(self, backend: str, test_type: str, cause: Optional[BaseException] = None):
        self.backend = backend
        self.test_type = test_type
        self.cause = cause
        reason = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown failure"
        super().__init__(f"{self.stage} failed for {backend}/{test_type}: {reason}")


class AdapterSetupError(AdapterError):
    stage = "set_up"


class AdapterRunError(AdapterError):
    stage = "run"


class AdapterTeardownError(AdapterError):
    stage = "tear_down"

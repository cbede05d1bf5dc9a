from .base import Collector, CollectorError
from .npm import NpmTreeCollector, DevDependenciesCollector, WithinProjectCollector
from .registry import LagCollector
from .dependency_check import DependencyCheckCollector

# Order matters: the lag step reads the tree document written by the first step.
COLLECTORS = [
    NpmTreeCollector(),
    DevDependenciesCollector(),
    WithinProjectCollector(),
    LagCollector(),
    DependencyCheckCollector(),
]

STEP_NAMES = ["tree", "dev", "within", "lag", "vulnerabilities"]


def select_collectors(steps=None):
    """Returns the collectors for the given step names, all of them by default."""
    if not steps:
        return list(COLLECTORS)

    unknown = [s for s in steps if s not in STEP_NAMES]
    if unknown:
        raise ValueError(f"Unknown step(s): {', '.join(unknown)}")

    return [c for step, c in zip(STEP_NAMES, COLLECTORS) if step in steps]

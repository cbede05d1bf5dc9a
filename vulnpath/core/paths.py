import logging
from collections import deque
from typing import Dict, List, Sequence

from vulnpath.core.classifier import classify
from vulnpath.core.model import ClassificationSets, DependencyRecord, Report
from vulnpath.core.simplifier import simplify_path
from vulnpath.core.tree import DependencyTree


def path_severity(path: Sequence[str], dependencies: Dict[str, DependencyRecord]) -> float:
    """Worst CVSS score along a path, never below 0."""
    scores = [dependencies[name].highest_cvss_score for name in path if name in dependencies]
    return max(scores + [0])


def rank_paths(paths: List[List[str]], dependencies: Dict[str, DependencyRecord]) -> List[List[str]]:
    # sorted() is stable with reverse=True, ties keep discovery order
    return sorted(paths, key=lambda p: path_severity(p, dependencies), reverse=True)


def construct_paths(tree: DependencyTree, sets: ClassificationSets, eager_seed: bool = False) -> Report:
    """
    Breadth-first walk from the root recording every path that ends in a
    vulnerable dependency.

    Vulnerable nodes and development-only nodes are never expanded. Once a
    name is found vulnerable, no further path is extended into it.

    With `eager_seed` the queue starts with every path of the tree (the
    historical behaviour) instead of only the root's direct children, so a
    vulnerable node may be reported once per copy of its path in the queue.
    """
    report = Report()
    found_vulnerable = set()

    if eager_seed:
        queue = deque(tree.iter_paths())
    else:
        queue = deque([name] for name in tree.children([]))

    logging.debug(
        f"Path construction for {tree.name or '<unnamed>'}@{tree.version or '?'} started "
        f"with {len(queue)} queued paths (eager_seed={eager_seed})."
    )

    while queue:
        path = queue.popleft()
        name = path[-1] if path else None
        if not name:
            continue

        record = classify(name, sets)
        report.dependencies[name] = record

        if record.vulnerable:
            report.vulnerability_exposure[name] = report.vulnerability_exposure.get(name, 0) + 1
            report.paths.append(simplify_path(path, sets.within_project))
            found_vulnerable.add(name)
            logging.debug(f"Vulnerable dependency {name} reached via {' > '.join(path)}")
            continue

        if record.development_only:
            continue

        for child in tree.children(path):
            if child not in found_vulnerable:
                queue.append(path + [child])

    report.paths = rank_paths(report.paths, report.dependencies)
    logging.info(
        f"Path construction finished: {len(report.dependencies)} dependencies, "
        f"{len(report.paths)} vulnerable paths."
    )
    return report

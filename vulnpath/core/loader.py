import json
import logging
import os
from typing import Any, Dict

from vulnpath.core.classifier import vulnerable_names
from vulnpath.core.model import ClassificationSets, Report, VulnerabilityFinding
from vulnpath.core.tree import DependencyTree

TREE_FILE = "dependency_tree.json"
DEV_DEPENDENCIES_FILE = "dev_dependencies.json"
WITHIN_PROJECT_FILE = "within_project_dependencies.json"
LAG_FILE = "lagging_dependencies.json"
VULNERABILITIES_FILE = "vulnerabilities.json"
REPORT_FILE = "paths_report.json"


class LoadError(Exception):
    """An input document is missing or malformed."""


def read_document(path: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise LoadError(f"Missing input document: {path}")
    except (OSError, ValueError) as e:
        raise LoadError(f"Error reading {path}: {e}")


def _expect(data: Any, kind: type, path: str) -> Any:
    if not isinstance(data, kind):
        raise LoadError(f"{path}: expected a JSON {'object' if kind is dict else 'array'}")
    return data


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_tree(data: Dict[str, Any], path: str) -> None:
    stack = [(data, [])]
    while stack:
        node, names = stack.pop()
        children = node.get("dependencies")
        if children is None:
            continue
        if not isinstance(children, dict):
            raise LoadError(f"{path}: dependencies of <{' > '.join(names) or 'root'}> is not an object")
        for name, child in children.items():
            if not isinstance(child, dict):
                raise LoadError(f"{path}: node <{' > '.join(names + [name])}> is not an object")
            stack.append((child, names + [name]))


def _check_finding(entry: Any, path: str) -> None:
    if not isinstance(entry, dict) or not isinstance(entry.get("fileName"), str):
        raise LoadError(f"{path}: finding without a string fileName")
    vulns = entry.get("vulnerabilities", [])
    if not isinstance(vulns, list) or not all(isinstance(v, dict) for v in vulns):
        raise LoadError(f"{path}: vulnerabilities of {entry['fileName']} is not an array of objects")
    for v in vulns:
        cvss = v.get("cvss")
        if cvss is not None and not _is_number(cvss):
            raise LoadError(f"{path}: non-numeric cvss {cvss!r} for {entry['fileName']}")


def load_tree(output_dir: str) -> DependencyTree:
    path = os.path.join(output_dir, TREE_FILE)
    data = _expect(read_document(path), dict, path)
    _check_tree(data, path)
    return DependencyTree(data)


def load_classification_sets(output_dir: str) -> ClassificationSets:
    dev_path = os.path.join(output_dir, DEV_DEPENDENCIES_FILE)
    within_path = os.path.join(output_dir, WITHIN_PROJECT_FILE)
    lag_path = os.path.join(output_dir, LAG_FILE)
    vuln_path = os.path.join(output_dir, VULNERABILITIES_FILE)

    dev = _expect(read_document(dev_path), dict, dev_path)
    within = _expect(read_document(within_path), list, within_path)
    lag = _expect(read_document(lag_path), dict, lag_path)
    raw_findings = _expect(read_document(vuln_path), list, vuln_path)

    if not all(isinstance(name, str) for name in within):
        raise LoadError(f"{within_path}: expected an array of package names")

    lagging = _expect(lag.get("laggingDependencies", {}), dict, f"{lag_path} laggingDependencies")
    intervals = _expect(lag.get("releaseInterval", {}), dict, f"{lag_path} releaseInterval")
    if not all(_is_number(days) for days in intervals.values()):
        raise LoadError(f"{lag_path}: releaseInterval values must be numbers")

    for entry in raw_findings:
        _check_finding(entry, vuln_path)
    findings = [VulnerabilityFinding.from_dict(entry) for entry in raw_findings]

    logging.debug(
        f"Loaded {len(dev)} dev, {len(within)} within-project, "
        f"{len(lagging)} lagging, {len(findings)} findings."
    )

    return ClassificationSets(
        dev_dependencies=frozenset(dev),
        within_project=frozenset(within),
        lagging=frozenset(lagging),
        vulnerable=frozenset(vulnerable_names(findings)),
        release_intervals=dict(intervals),
        findings=findings,
    )


def write_report(report: Report, output_dir: str) -> str:
    path = os.path.join(output_dir, REPORT_FILE)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2)
    return path


def load_report(path: str) -> Report:
    return Report.from_dict(_expect(read_document(path), dict, path))

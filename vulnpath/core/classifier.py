from typing import Iterable, Set

from vulnpath.core.model import (
    NO_LAG_DATA,
    NOT_VULNERABLE,
    ClassificationSets,
    DependencyRecord,
    DependencyType,
    VulnerabilityFinding,
)


def subject_name(file_name: str) -> str:
    """Package name a scanner file identifier refers to.

    `lodash:4.17.15` -> `lodash`, `jquery.min.js` -> `jquery`.
    """
    name = file_name.split(":", 1)[0]
    if name.endswith(".js"):
        name = name[:-3]
    if name.endswith(".min"):
        name = name[:-4]
    return name


def vulnerable_names(findings: Iterable[VulnerabilityFinding]) -> Set[str]:
    return {subject_name(f.file_name) for f in findings}


def highest_cvss_score(name: str, findings: Iterable[VulnerabilityFinding]) -> float:
    # Prefix match: scanner identifiers may carry trailing version/hash segments,
    # so `ip` also picks up findings reported against `ip-address`.
    scores = [
        v.cvss
        for f in findings
        if subject_name(f.file_name).startswith(name)
        for v in f.vulnerabilities
        if v.cvss is not None
    ]
    return max(scores, default=NOT_VULNERABLE)


def classify(name: str, sets: ClassificationSets) -> DependencyRecord:
    tags = DependencyType.NONE
    if name in sets.dev_dependencies:
        tags |= DependencyType.DEVELOPMENT_ONLY
    if name in sets.within_project:
        tags |= DependencyType.WITHIN_PROJECT
    if name in sets.lagging:
        tags |= DependencyType.LAGGING
    if name in sets.vulnerable:
        tags |= DependencyType.VULNERABLE

    return DependencyRecord(
        tags=tags,
        highest_cvss_score=highest_cvss_score(name, sets.findings),
        release_interval_days=sets.release_intervals.get(name, NO_LAG_DATA),
    )

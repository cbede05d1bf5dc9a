import enum
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, FrozenSet

NOT_VULNERABLE = -1
NO_LAG_DATA = -1


class DependencyType(enum.Flag):
    NONE = 0
    DEVELOPMENT_ONLY = enum.auto()
    WITHIN_PROJECT = enum.auto()
    LAGGING = enum.auto()
    VULNERABLE = enum.auto()

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    DependencyType.DEVELOPMENT_ONLY: "development-only",
    DependencyType.WITHIN_PROJECT: "within-project",
    DependencyType.LAGGING: "lagging",
    DependencyType.VULNERABLE: "vulnerable",
}

# Serialization order of the tags
TAG_ORDER = [
    DependencyType.DEVELOPMENT_ONLY,
    DependencyType.WITHIN_PROJECT,
    DependencyType.LAGGING,
    DependencyType.VULNERABLE,
]


@dataclass(frozen=True)
class Vulnerability:
    source: str
    name: str
    severity: str
    cvss: Optional[float] = None


@dataclass(frozen=True)
class VulnerabilityFinding:
    file_name: str
    file_path: str = ""
    vulnerabilities: List[Vulnerability] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VulnerabilityFinding":
        vulns = [
            Vulnerability(
                source=v.get("source", ""),
                name=v.get("name", ""),
                severity=v.get("severity", ""),
                cvss=v.get("cvss"),
            )
            for v in data.get("vulnerabilities", [])
        ]
        return cls(data["fileName"], data.get("filePath", ""), vulns)


@dataclass(frozen=True)
class ClassificationSets:
    """Read-only inputs consulted for every visited dependency."""

    dev_dependencies: FrozenSet[str] = frozenset()
    within_project: FrozenSet[str] = frozenset()
    lagging: FrozenSet[str] = frozenset()
    vulnerable: FrozenSet[str] = frozenset()
    release_intervals: Dict[str, float] = field(default_factory=dict)
    findings: List[VulnerabilityFinding] = field(default_factory=list)


@dataclass(frozen=True)
class DependencyRecord:
    tags: DependencyType = DependencyType.NONE
    highest_cvss_score: float = NOT_VULNERABLE
    release_interval_days: float = NO_LAG_DATA

    @property
    def vulnerable(self) -> bool:
        return DependencyType.VULNERABLE in self.tags

    @property
    def development_only(self) -> bool:
        return DependencyType.DEVELOPMENT_ONLY in self.tags

    @property
    def type_labels(self) -> List[str]:
        return [t.label for t in TAG_ORDER if t in self.tags]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dependencyTypes": self.type_labels,
            "highestCvssScore": self.highest_cvss_score,
            "intervals": self.release_interval_days,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DependencyRecord":
        by_label = {t.label: t for t in TAG_ORDER}
        tags = DependencyType.NONE
        for label in data.get("dependencyTypes", []):
            if label in by_label:
                tags |= by_label[label]
        return cls(
            tags,
            data.get("highestCvssScore", NOT_VULNERABLE),
            data.get("intervals", NO_LAG_DATA),
        )


@dataclass
class Report:
    paths: List[List[str]] = field(default_factory=list)
    dependencies: Dict[str, DependencyRecord] = field(default_factory=dict)
    vulnerability_exposure: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paths": [list(p) for p in self.paths],
            "dependencies": {name: rec.to_dict() for name, rec in self.dependencies.items()},
            "vulnerabilityExposure": dict(self.vulnerability_exposure),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        return cls(
            paths=[list(p) for p in data.get("paths", [])],
            dependencies={
                name: DependencyRecord.from_dict(rec)
                for name, rec in data.get("dependencies", {}).items()
            },
            vulnerability_exposure=dict(data.get("vulnerabilityExposure", {})),
        )

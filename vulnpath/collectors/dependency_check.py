import json
import logging
import os
import subprocess
from typing import Any, Dict, List, Optional

from vulnpath.collectors.base import Collector, CollectorError
from vulnpath.core.loader import VULNERABILITIES_FILE

RAW_REPORT_FILE = "dependency-check-report.json"


def cvss_score(vuln: Dict[str, Any]) -> Optional[float]:
    """CVSSv2 score when present, otherwise the CVSSv3 base score."""
    if vuln.get("cvssv2"):
        return vuln["cvssv2"].get("score")
    if vuln.get("cvssv3"):
        return vuln["cvssv3"].get("baseScore")
    return None


def parse_report(report: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Reduces an OWASP Dependency-Check JSON report to its vulnerable dependencies."""
    findings = []
    for dep in report.get("dependencies", []):
        vulns = dep.get("vulnerabilities") or []
        if not vulns:
            continue
        findings.append({
            "fileName": dep.get("fileName", ""),
            "filePath": dep.get("filePath", ""),
            "vulnerabilities": [
                {
                    "source": v.get("source"),
                    "name": v.get("name"),
                    "severity": v.get("severity"),
                    "cvss": cvss_score(v),
                }
                for v in vulns
            ],
        })
    return findings


class DependencyCheckCollector(Collector):
    @property
    def name(self) -> str:
        return "Vulnerable dependencies (OWASP Dependency-Check)"

    @property
    def output_file(self) -> str:
        return VULNERABILITIES_FILE

    def collect(self, project_path: str, output_dir: str) -> List[Dict[str, Any]]:
        project = os.path.basename(os.path.normpath(project_path))
        cmd = ["dependency-check", "--project", project, "-s", ".", "--format", "JSON", "-o", output_dir]

        try:
            # Non-zero exits are common when installed dependencies conflict,
            # the report is still written.
            subprocess.run(cmd, cwd=project_path, capture_output=True, text=True)
        except OSError as e:
            raise CollectorError(f"Fail to run dependency-check: {e}")

        raw_path = os.path.join(output_dir, RAW_REPORT_FILE)
        try:
            with open(raw_path, "r", encoding="utf-8") as f:
                report = json.load(f)
        except (OSError, ValueError) as e:
            raise CollectorError(f"Error reading OWASP report for {project}: {e}")

        return parse_report(report)

    def write(self, data: Any, output_dir: str) -> str:
        path = super().write(data, output_dir)
        raw_path = os.path.join(output_dir, RAW_REPORT_FILE)
        try:
            os.remove(raw_path)
        except OSError as e:
            logging.error(f"Error deleting OWASP report file {raw_path}: {e}")
        return path

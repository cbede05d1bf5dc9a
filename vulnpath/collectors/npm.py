import json
import logging
import os
import subprocess
from typing import Any, Dict, List, Optional

from vulnpath.collectors.base import Collector, CollectorError
from vulnpath.core.loader import DEV_DEPENDENCIES_FILE, TREE_FILE, WITHIN_PROJECT_FILE

# npm ls reports these when the installed tree does not satisfy package.json
UNMET_MARKERS = ("ELSPROBLEMS", "unmet dependency")


def read_package_json(project_path: str) -> Dict[str, Any]:
    path = os.path.join(project_path, "package.json")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise CollectorError(f"Error reading {path}: {e}")


class NpmTreeCollector(Collector):
    @property
    def name(self) -> str:
        return "Dependency tree (npm ls)"

    @property
    def output_file(self) -> str:
        return TREE_FILE

    def collect(self, project_path: str, output_dir: str) -> Optional[Dict[str, Any]]:
        try:
            result = subprocess.run(
                ["npm", "ls", "--depth=Infinity", "--json"],
                cwd=project_path,
                capture_output=True,
                text=True,
                timeout=300,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise CollectorError(f"Fail to run npm ls: {e}")

        if result.returncode != 0:
            logging.error(f"npm ls failed in {project_path}:\n{result.stderr}")
            if any(marker in result.stderr for marker in UNMET_MARKERS):
                return None
            raise CollectorError(f"npm ls exited with {result.returncode}")

        try:
            return json.loads(result.stdout)
        except ValueError as e:
            raise CollectorError(f"Error parsing npm ls output: {e}")


class DevDependenciesCollector(Collector):
    @property
    def name(self) -> str:
        return "Development-only dependencies"

    @property
    def output_file(self) -> str:
        return DEV_DEPENDENCIES_FILE

    def collect(self, project_path: str, output_dir: str) -> Dict[str, str]:
        return read_package_json(project_path).get("devDependencies") or {}


class WithinProjectCollector(Collector):
    @property
    def name(self) -> str:
        return "Within-project dependencies"

    @property
    def output_file(self) -> str:
        return WITHIN_PROJECT_FILE

    def collect(self, project_path: str, output_dir: str) -> List[str]:
        package_json = read_package_json(project_path)

        within = []
        for section in ("dependencies", "devDependencies"):
            for name, requirement in (package_json.get(section) or {}).items():
                if isinstance(requirement, str) and requirement.startswith("file:"):
                    within.append(name)
        return within

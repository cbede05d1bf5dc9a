import logging
import os
import subprocess
from typing import List, Optional

from vulnpath.collectors import NpmTreeCollector, select_collectors
from vulnpath.collectors.base import CollectorError
from vulnpath.core.loader import (
    TREE_FILE,
    LoadError,
    load_classification_sets,
    load_tree,
    write_report,
)
from vulnpath.core.model import Report
from vulnpath.core.paths import construct_paths

INSTALL_CMD = ["npm", "install", "--legacy-peer-deps", "--force", "--ignore-scripts"]
DEDUPE_CMD = ["npm", "dedupe"]


def _subdirs(path: str) -> List[str]:
    return sorted(d for d in os.listdir(path) if os.path.isdir(os.path.join(path, d)))


def _npm(cmd: List[str], cwd: str) -> None:
    """Installs/dedupes; conflicts between dependencies are expected, so failures are only logged."""
    try:
        subprocess.run(cmd, cwd=cwd, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        logging.error(f"Error executing {' '.join(cmd)} in {cwd}:\n{e.stderr}")
    except OSError as e:
        logging.error(f"Error executing {' '.join(cmd)} in {cwd}: {e}")


def build_report(output_dir: str, eager_seed: bool = False) -> Report:
    """Constructs the path report from the documents already present in `output_dir`."""
    tree = load_tree(output_dir)
    sets = load_classification_sets(output_dir)
    return construct_paths(tree, sets, eager_seed=eager_seed)


def process_version(
    version_path: str,
    output_dir: str,
    steps: Optional[List[str]] = None,
    install: bool = True,
    eager_seed: bool = False,
) -> Optional[Report]:
    os.makedirs(output_dir, exist_ok=True)

    if install:
        _npm(INSTALL_CMD, version_path)
        _npm(DEDUPE_CMD, version_path)

    for collector in select_collectors(steps):
        data = collector.run(version_path, output_dir)
        if data is None and isinstance(collector, NpmTreeCollector):
            return None

    if not os.path.exists(os.path.join(output_dir, TREE_FILE)):
        logging.error(f"Dependency tree for <{os.path.basename(version_path)}> is missing, skipping path construction.")
        return None

    report = build_report(output_dir, eager_seed=eager_seed)
    path = write_report(report, output_dir)
    logging.info(f"Report written to {path}")
    return report


def run_pipeline(
    projects_dir: str,
    output_base_dir: str,
    steps: Optional[List[str]] = None,
    install: bool = True,
    eager_seed: bool = False,
) -> int:
    """
    Processes every `projects_dir/<project>/<version>/` checkout.

    Returns the number of versions for which a report was written. A failing
    version is logged and does not stop the others.
    """
    written = 0

    for project in _subdirs(projects_dir):
        project_path = os.path.join(projects_dir, project)

        for version in _subdirs(project_path):
            version_path = os.path.join(project_path, version)
            output_dir = os.path.join(output_base_dir, f"{project}_output", version)

            try:
                report = process_version(version_path, output_dir, steps, install, eager_seed)
            except (CollectorError, LoadError) as e:
                logging.error(f"Processing {project}@{version} failed: {e}")
                continue

            if report is not None:
                written += 1

    logging.info(f"All projects have been processed ({written} reports).")
    return written

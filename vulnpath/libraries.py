import csv
import json
import logging
import os
import shutil
import subprocess
from typing import List

from vulnpath.collectors.base import CollectorError

VERSIONS_TO_DOWNLOAD = 10
LIBRARY_COLUMN = "library_name"


def read_library_names(csv_path: str) -> List[str]:
    """Library names from the `library_name` column of a CSV file."""
    try:
        with open(csv_path, "r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            if not reader.fieldnames or LIBRARY_COLUMN not in reader.fieldnames:
                raise CollectorError(f"{csv_path}: missing '{LIBRARY_COLUMN}' column")
            return [row[LIBRARY_COLUMN].strip() for row in reader if (row[LIBRARY_COLUMN] or "").strip()]
    except OSError as e:
        raise CollectorError(f"Error reading {csv_path}: {e}")


def fetch_versions(library: str) -> List[str]:
    """Published versions of `library`, oldest first, from `npm view`."""
    try:
        result = subprocess.run(
            ["npm", "view", library, "versions", "--json"],
            capture_output=True,
            text=True,
            check=True,
            timeout=60,
        )
        versions = json.loads(result.stdout)
    except subprocess.CalledProcessError as e:
        raise CollectorError(f"npm view {library} failed: {e.stderr}")
    except (OSError, subprocess.SubprocessError, ValueError) as e:
        raise CollectorError(f"Failed to get versions for {library}: {e}")

    # a package with a single release is reported as a bare string
    if isinstance(versions, str):
        return [versions]
    return list(versions)


def download_version(library: str, version: str, version_dir: str) -> None:
    """Unpacks the published tarball of library@version into `version_dir`."""
    os.makedirs(version_dir, exist_ok=True)
    try:
        packed = subprocess.run(
            ["npm", "pack", f"{library}@{version}", "--silent"],
            cwd=version_dir,
            capture_output=True,
            text=True,
            check=True,
        )
        # npm prints the tarball file name, scoped names become `scope-name-x.y.z.tgz`
        tarball = packed.stdout.strip().splitlines()[-1]
        subprocess.run(["tar", "-xzf", tarball, "--strip-components=1"], cwd=version_dir, check=True)
        os.remove(os.path.join(version_dir, tarball))
    except (OSError, IndexError, subprocess.SubprocessError) as e:
        shutil.rmtree(version_dir, ignore_errors=True)
        raise CollectorError(f"Failed to download {library}@{version}: {e}")


def download_library(library: str, libraries_dir: str, count: int = VERSIONS_TO_DOWNLOAD) -> List[str]:
    """
    Downloads the `count` most recent versions of `library` into
    `libraries_dir/<library>/v<version>/`, the layout the scan pipeline reads.

    Versions whose directory already exists are skipped. Returns the versions
    downloaded by this call.
    """
    # one directory level per library, scoped names included
    library_dir = os.path.join(libraries_dir, library.replace("/", "__"))
    os.makedirs(library_dir, exist_ok=True)
    existing = set(os.listdir(library_dir))

    downloaded = []
    for version in fetch_versions(library)[-count:]:
        if f"v{version}" in existing:
            continue
        try:
            download_version(library, version, os.path.join(library_dir, f"v{version}"))
        except CollectorError as e:
            logging.error(str(e))
            continue
        downloaded.append(version)

    logging.info(f"Downloaded {len(downloaded)} new version(s) of {library}")
    return downloaded


def download_libraries(csv_path: str, libraries_dir: str, count: int = VERSIONS_TO_DOWNLOAD) -> int:
    """Downloads every library listed in `csv_path`. Returns the number of versions fetched."""
    total = 0
    for library in read_library_names(csv_path):
        try:
            total += len(download_library(library, libraries_dir, count))
        except CollectorError as e:
            logging.error(str(e))

    logging.info(f"Finished processing all libraries ({total} new versions).")
    return total

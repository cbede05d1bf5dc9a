import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from vulnpath.collectors.base import Collector
from vulnpath.core.loader import LAG_FILE, load_tree
from vulnpath.core.model import NO_LAG_DATA

DEPS_DEV_URL = "https://api.deps.dev/v3alpha/systems/npm/packages/{name}"
CONCURRENCY_LIMIT = 20
SMOOTHING = 0.8
SECONDS_PER_DAY = 24 * 60 * 60


def _parse_date(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError, AttributeError):
        logging.warning(f"Ignoring unparseable publish date {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def compute_release_lag(
    versions: List[Dict[str, str]],
    current_version: str,
    now: Optional[datetime] = None,
) -> Tuple[bool, float]:
    """
    Decides whether `current_version` trails the package's release cadence.

    The expected interval between releases is the exponentially smoothed
    average of the gaps between consecutive publish dates, with the most
    recent gap weighted highest. The installed version is lagging once more
    than twice that interval has passed since it was published.

    Returns (is_lagging, smoothed interval in days), or (False, -1) when the
    installed version is not in the history.
    """
    now = now or datetime.now(timezone.utc)

    dated = []
    for v in versions:
        published = _parse_date(v["publishedAt"]) if v.get("publishedAt") else None
        if published is not None:
            dated.append((v["version"], published))
    dated.sort(key=lambda item: item[1])

    gaps = [(dated[i][1] - dated[i - 1][1]).total_seconds() for i in range(1, len(dated))]
    interval = SMOOTHING * sum((1 - SMOOTHING) ** i * gap for i, gap in enumerate(reversed(gaps)))

    released_at = next((date for version, date in dated if version == current_version), None)
    if released_at is None:
        return False, NO_LAG_DATA

    is_lagging = (now - released_at).total_seconds() > 2 * interval
    return is_lagging, math.floor(interval / SECONDS_PER_DAY + 0.5)


async def fetch_package_versions(client: httpx.AsyncClient, name: str) -> Optional[List[Dict[str, str]]]:
    url = DEPS_DEV_URL.format(name=quote(name, safe=""))
    try:
        response = await client.get(url)
        if response.status_code != 200:
            logging.error(f"deps.dev error {response.status_code} for {name}")
            return None
        return [
            {"version": v["versionKey"]["version"], "publishedAt": v.get("publishedAt")}
            for v in response.json().get("versions", [])
        ]
    except (httpx.HTTPError, ValueError, KeyError) as e:
        logging.error(f"Error fetching package info for {name}: {e}")
        return None


async def check_lagging_dependencies(
    direct_dependencies: Dict[str, str],
    now: Optional[datetime] = None,
) -> Dict[str, Dict[str, Any]]:
    """Builds the lag document for the root's direct dependencies."""
    logging.info(f"Checking release lag of {len(direct_dependencies)} packages...")

    lagging = {}
    intervals = {}
    semaphore = asyncio.Semaphore(CONCURRENCY_LIMIT)
    limits = httpx.Limits(max_keepalive_connections=10, max_connections=CONCURRENCY_LIMIT)

    async with httpx.AsyncClient(timeout=30.0, limits=limits) as client:

        async def fetch(name):
            async with semaphore:
                return await fetch_package_versions(client, name)

        names = list(direct_dependencies)
        histories = await asyncio.gather(*(fetch(name) for name in names))

    for name, history in zip(names, histories):
        if history is None:
            continue
        version = direct_dependencies[name]
        is_lagging, interval = compute_release_lag(history, version, now)
        if is_lagging:
            lagging[name] = version
        intervals[name] = interval

    return {"laggingDependencies": lagging, "releaseInterval": intervals}


class LagCollector(Collector):
    @property
    def name(self) -> str:
        return "Lagging dependencies"

    @property
    def output_file(self) -> str:
        return LAG_FILE

    def collect(self, project_path: str, output_dir: str) -> Dict[str, Dict[str, Any]]:
        tree = load_tree(output_dir)
        direct = {
            name: (node or {}).get("version", "")
            for name, node in (tree.data.get("dependencies") or {}).items()
        }
        return asyncio.run(check_lagging_dependencies(direct))

import asyncio
import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import httpx

from vulnpath.collectors.registry import (
    check_lagging_dependencies,
    compute_release_lag,
    fetch_package_versions,
)

HISTORY = [
    {"version": "1.1.0", "publishedAt": "2020-01-11T00:00:00Z"},
    {"version": "1.0.0", "publishedAt": "2020-01-01T00:00:00Z"},
    {"version": "1.2.0", "publishedAt": "2020-01-21T00:00:00Z"},
]


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestComputeReleaseLag(unittest.TestCase):

    def test_smoothed_interval_in_days(self):
        # 0.8 * (10 + 0.2 * 10) = 9.6 days
        _, interval = compute_release_lag(HISTORY, "1.2.0", now=utc(2020, 1, 22))
        self.assertEqual(interval, 10)

    def test_lagging_after_twice_the_interval(self):
        lagging, _ = compute_release_lag(HISTORY, "1.2.0", now=utc(2020, 2, 15))
        self.assertTrue(lagging)

    def test_not_lagging_within_twice_the_interval(self):
        lagging, _ = compute_release_lag(HISTORY, "1.2.0", now=utc(2020, 2, 1))
        self.assertFalse(lagging)

    def test_unknown_installed_version(self):
        self.assertEqual(compute_release_lag(HISTORY, "9.9.9", now=utc(2020, 2, 1)), (False, -1))

    def test_single_release_has_zero_interval(self):
        history = [{"version": "1.0.0", "publishedAt": "2020-01-01T00:00:00Z"}]
        self.assertEqual(compute_release_lag(history, "1.0.0", now=utc(2020, 1, 2)), (True, 0))

    def test_versions_without_publish_date_are_ignored(self):
        history = HISTORY + [{"version": "0.0.1", "publishedAt": None}]
        self.assertEqual(compute_release_lag(history, "0.0.1", now=utc(2020, 2, 1)), (False, -1))

    def test_unparseable_publish_dates_are_ignored(self):
        history = HISTORY + [
            {"version": "1.3.0", "publishedAt": "yesterday"},
            {"version": "1.4.0", "publishedAt": "2020-13-45T00:00:00Z"},
        ]
        self.assertEqual(
            compute_release_lag(history, "1.2.0", now=utc(2020, 1, 22)),
            compute_release_lag(HISTORY, "1.2.0", now=utc(2020, 1, 22)),
        )
        self.assertEqual(compute_release_lag(history, "1.3.0", now=utc(2020, 2, 1)), (False, -1))

    def test_dates_without_timezone_are_utc(self):
        history = [
            {"version": "1.0.0", "publishedAt": "2020-01-01T00:00:00"},
            {"version": "1.1.0", "publishedAt": "2020-01-11T00:00:00Z"},
        ]
        self.assertEqual(compute_release_lag(history, "1.1.0", now=utc(2020, 1, 12)), (False, 8))


class TestFetchPackageVersions(unittest.TestCase):

    def _fetch(self, handler, name):
        async def go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await fetch_package_versions(client, name)
        return asyncio.run(go())

    def test_parses_deps_dev_response(self):
        seen = []

        def handler(request):
            seen.append(request.url.raw_path.decode())
            return httpx.Response(200, json={"versions": [
                {"versionKey": {"system": "NPM", "name": "@babel/core", "version": "7.0.0"},
                 "publishedAt": "2018-08-27T14:06:07Z"},
            ]})

        versions = self._fetch(handler, "@babel/core")

        self.assertEqual(versions, [{"version": "7.0.0", "publishedAt": "2018-08-27T14:06:07Z"}])
        self.assertTrue(seen[0].endswith("/packages/%40babel%2Fcore"))

    def test_http_error_returns_none(self):
        versions = self._fetch(lambda request: httpx.Response(404, text="not found"), "ghost")
        self.assertIsNone(versions)

    def test_transport_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        self.assertIsNone(self._fetch(handler, "lodash"))


class TestCheckLaggingDependencies(unittest.TestCase):

    @patch("vulnpath.collectors.registry.fetch_package_versions", new_callable=AsyncMock)
    def test_builds_lag_document(self, mock_fetch):
        async def fake_fetch(client, name):
            return None if name == "offline" else HISTORY

        mock_fetch.side_effect = fake_fetch

        document = asyncio.run(check_lagging_dependencies(
            {"old": "1.2.0", "unknown": "3.0.0", "offline": "1.0.0"},
            now=utc(2020, 6, 1),
        ))

        self.assertEqual(document["laggingDependencies"], {"old": "1.2.0"})
        self.assertEqual(document["releaseInterval"], {"old": 10, "unknown": -1})
        self.assertEqual(mock_fetch.await_count, 3)

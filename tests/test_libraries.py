import os
import subprocess
import tempfile
import unittest
from unittest.mock import MagicMock, mock_open, patch

from vulnpath.collectors.base import CollectorError
from vulnpath.libraries import (
    download_libraries,
    download_library,
    fetch_versions,
    read_library_names,
)


def completed(stdout=""):
    return MagicMock(returncode=0, stdout=stdout, stderr="")


class FakeNpm:
    """Stands in for npm/tar: `npm pack` drops a tarball into the working directory."""

    def __init__(self, versions, failing=()):
        self.versions = versions
        self.failing = set(failing)
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        if cmd[:2] == ["npm", "view"]:
            return completed(self.versions)
        if cmd[:2] == ["npm", "pack"]:
            package = cmd[2]
            if package in self.failing:
                raise subprocess.CalledProcessError(1, cmd, stderr="E404")
            tarball = package.lstrip("@").replace("/", "-").replace("@", "-") + ".tgz"
            with open(os.path.join(kwargs["cwd"], tarball), "w") as f:
                f.write("tgz")
            return completed(tarball + "\n")
        if cmd[0] == "tar":
            with open(os.path.join(kwargs["cwd"], "package.json"), "w") as f:
                f.write("{}")
            return completed()
        raise AssertionError(f"unexpected command {cmd}")


class TestReadLibraryNames(unittest.TestCase):

    def test_reads_library_name_column(self):
        content = "library_name,stars\nlodash,50000\n express ,60000\n,0\n"
        with patch("builtins.open", mock_open(read_data=content)):
            self.assertEqual(read_library_names("libraries.csv"), ["lodash", "express"])

    def test_missing_column(self):
        with patch("builtins.open", mock_open(read_data="name\nlodash\n")):
            with self.assertRaises(CollectorError):
                read_library_names("libraries.csv")

    def test_missing_file(self):
        with patch("builtins.open", side_effect=FileNotFoundError("libraries.csv")):
            with self.assertRaises(CollectorError):
                read_library_names("libraries.csv")


class TestFetchVersions(unittest.TestCase):

    @patch("vulnpath.libraries.subprocess.run")
    def test_version_list(self, mock_run):
        mock_run.return_value = completed('["1.0.0", "1.1.0"]')

        self.assertEqual(fetch_versions("left-pad"), ["1.0.0", "1.1.0"])
        self.assertEqual(mock_run.call_args[0][0], ["npm", "view", "left-pad", "versions", "--json"])

    @patch("vulnpath.libraries.subprocess.run")
    def test_single_version_is_a_string(self, mock_run):
        mock_run.return_value = completed('"0.0.1"')
        self.assertEqual(fetch_versions("tiny"), ["0.0.1"])

    @patch("vulnpath.libraries.subprocess.run")
    def test_unknown_package(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["npm", "view"], stderr="E404")
        with self.assertRaises(CollectorError):
            fetch_versions("no-such-package")


class TestDownloadLibrary(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = self.tmp.name

    def tearDown(self):
        self.tmp.cleanup()

    def test_downloads_most_recent_versions(self):
        fake = FakeNpm('["1.0.0", "1.1.0", "1.2.0", "2.0.0"]')

        with patch("vulnpath.libraries.subprocess.run", side_effect=fake):
            downloaded = download_library("lodash", self.dir, count=2)

        self.assertEqual(downloaded, ["1.2.0", "2.0.0"])
        self.assertEqual(sorted(os.listdir(os.path.join(self.dir, "lodash"))), ["v1.2.0", "v2.0.0"])
        version_dir = os.path.join(self.dir, "lodash", "v2.0.0")
        self.assertEqual(os.listdir(version_dir), ["package.json"])

    def test_skips_versions_already_downloaded(self):
        os.makedirs(os.path.join(self.dir, "lodash", "v2.0.0"))
        fake = FakeNpm('["1.2.0", "2.0.0"]')

        with patch("vulnpath.libraries.subprocess.run", side_effect=fake):
            downloaded = download_library("lodash", self.dir)

        self.assertEqual(downloaded, ["1.2.0"])
        self.assertNotIn(["npm", "pack", "lodash@2.0.0", "--silent"], fake.calls)

    def test_failed_version_is_removed_and_others_continue(self):
        fake = FakeNpm('["1.0.0", "1.1.0"]', failing={"lodash@1.0.0"})

        with patch("vulnpath.libraries.subprocess.run", side_effect=fake):
            downloaded = download_library("lodash", self.dir)

        self.assertEqual(downloaded, ["1.1.0"])
        self.assertEqual(os.listdir(os.path.join(self.dir, "lodash")), ["v1.1.0"])

    def test_scoped_package_gets_a_single_directory(self):
        fake = FakeNpm('["7.0.0"]')

        with patch("vulnpath.libraries.subprocess.run", side_effect=fake):
            download_library("@babel/core", self.dir)

        self.assertEqual(os.listdir(self.dir), ["@babel__core"])
        self.assertEqual(os.listdir(os.path.join(self.dir, "@babel__core")), ["v7.0.0"])


class TestDownloadLibraries(unittest.TestCase):

    @patch("vulnpath.libraries.download_library")
    @patch("vulnpath.libraries.read_library_names", return_value=["lodash", "ghost", "express"])
    def test_one_failing_library_does_not_stop_the_rest(self, _, mock_download):
        def fake_download(library, libraries_dir, count):
            if library == "ghost":
                raise CollectorError("E404")
            return ["1.0.0", "1.1.0"]

        mock_download.side_effect = fake_download

        self.assertEqual(download_libraries("libraries.csv", "libs", 2), 4)
        self.assertEqual(mock_download.call_count, 3)

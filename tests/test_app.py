import unittest

from vulnpath.app import format_details, severity_color
from vulnpath.core.model import DependencyRecord, DependencyType


class TestReportView(unittest.TestCase):

    def test_severity_colors(self):
        self.assertEqual(severity_color(9.8), "bold red")
        self.assertEqual(severity_color(7.5), "red")
        self.assertEqual(severity_color(5.0), "yellow")
        self.assertEqual(severity_color(0), "green")

    def test_dependency_details(self):
        record = DependencyRecord(DependencyType.LAGGING | DependencyType.VULNERABLE, 9.8, 31)
        details = format_details(record, 2)

        self.assertIn("lagging, vulnerable", details)
        self.assertIn("9.8", details)
        self.assertIn("31 days", details)
        self.assertIn("2 path(s)", details)

    def test_details_for_unscored_dependency(self):
        details = format_details(DependencyRecord())

        self.assertIn("not vulnerable", details)
        self.assertIn("unknown", details)
        self.assertNotIn("path(s)", details)

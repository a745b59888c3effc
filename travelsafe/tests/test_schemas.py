import unittest

from travelsafe.errors import ReportValidationError
from travelsafe.schemas import Report, StoredReport, coerce_report


class CoerceReportTests(unittest.TestCase):
    def test_coerces_per_field_type(self):
        report = coerce_report(
            {
                "location": {"country": "US", "latitude": "40.7"},
                "covid19": {"cases": "12", "updated": 1700000000000},
                "weather": {"humidity": 70, "icon": 10},
                "metadata": {"source_apis": ["a", 2]},
            }
        )
        self.assertEqual(report.location.latitude, 40.7)
        self.assertEqual(report.covid19.cases, 12)
        self.assertEqual(report.covid19.updated, "1700000000000")
        self.assertEqual(report.weather.icon, "10")
        self.assertEqual(report.metadata.source_apis, ["a", "2"])

    def test_every_field_is_optional(self):
        self.assertEqual(coerce_report({}).to_document(), {})
        self.assertEqual(
            coerce_report({"weather": None, "covid19": {"deaths": None}}).to_document(),
            {"weather": None, "covid19": {"deaths": None}},
        )

    def test_rejects_fractional_counters(self):
        with self.assertRaises(ReportValidationError) as ctx:
            coerce_report({"covid19": {"todayDeaths": 1.5}})
        self.assertIn("covid19.todayDeaths", ctx.exception.message)
        self.assertTrue(ctx.exception.errors)

    def test_rejects_non_finite_floats(self):
        for value in (float("inf"), float("-inf"), float("nan")):
            with self.assertRaises(ReportValidationError):
                coerce_report({"weather": {"temperature": {"current": value}}})

    def test_rejects_non_object_blocks(self):
        with self.assertRaises(ReportValidationError):
            coerce_report({"location": "Paris"})

    def test_rejects_non_object_payload(self):
        with self.assertRaises(ReportValidationError) as ctx:
            coerce_report([{"location": {"country": "US"}}])
        self.assertIn("list", ctx.exception.message)

    def test_passes_reports_through(self):
        report = Report()
        self.assertIs(coerce_report(report), report)


class StoredReportTests(unittest.TestCase):
    def test_response_uses_underscore_id(self):
        stored = StoredReport.model_validate(
            {"_id": "abc", "location": {"city": "Lima"}, "__v": 0}
        )
        self.assertEqual(stored.id, "abc")
        self.assertEqual(stored.to_response(), {"_id": "abc", "location": {"city": "Lima"}})


if __name__ == "__main__":
    unittest.main()

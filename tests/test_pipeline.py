import json
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import pandas as pd

import run_pipeline
from engine.distill_insights import distill_field, generate_plain_language
from agent.insight_engine import build_insights
from campo_agent.config import DATA_ROOT, FIELD_PROFILES_DIR

PROFILE = """
field_meta:
  name: Campo Prova
  crop: grano
  province: BO
  planting_date: "2023-11-01"
"""

VEGETATION = """date,NDVI,NDMI,ReCI
2024-03-01,0.45,0.30,2.1
2024-03-11,0.52,0.31,2.3
2024-03-21,0.58,0.29,2.4
2024-03-31,0.50,0.22,1.9
2024-04-10,0.41,0.16,1.4
2024-04-20,0.28,0.10,1.0
"""


class TestPipeline(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        root = Path(self.tmp.name)
        self.profiles = root / "profiles"
        self.data_root = root / "data"
        self.output_dir = root / "outputs"
        self.profiles.mkdir()
        (self.profiles / "campo_prova.yml").write_text(PROFILE, encoding="utf-8")
        current = self.data_root / "campo_prova" / "current"
        current.mkdir(parents=True)
        (current / "vegetation.csv").write_text(VEGETATION, encoding="utf-8")

    def _dirs(self):
        return {"profiles_dir": self.profiles, "data_root": self.data_root, "output_dir": self.output_dir}

    def test_distill_writes_observation_table(self):
        path = Path(distill_field("campo_prova", **self._dirs()))
        self.assertEqual(path, self.output_dir / "campo_prova" / "observations.csv")
        table = pd.read_csv(path)
        self.assertEqual(len(table), 6)
        self.assertEqual(table["date"].iloc[0], "2024-03-01")
        self.assertAlmostEqual(table["ndvi_delta"].iloc[1], 0.07)
        self.assertIn("NDVI critico", table["insight_text"].iloc[-1])

    def test_distill_requires_observations(self):
        (self.data_root / "campo_prova" / "current" / "vegetation.csv").write_text(
            "date,NDVI,NDMI\n", encoding="utf-8"
        )
        with self.assertRaises(ValueError):
            distill_field("campo_prova", **self._dirs())

    def test_build_insights_outputs(self):
        feed_path, report_path, alerts_path = build_insights("campo_prova", **self._dirs())
        out_dir = self.output_dir / "campo_prova"

        feed = pd.read_csv(feed_path)
        self.assertEqual(len(feed), 6)
        self.assertEqual(feed["crop_type"].iloc[0], "wheat")
        self.assertIn("canopy_collapse", feed["rule_hits"].iloc[-1])

        report = json.loads(Path(report_path).read_text(encoding="utf-8"))
        self.assertEqual(report["reference_date"], "2024-04-20")
        for key in ("eos", "nitrogen", "vegetation_health", "yield_prediction", "alerts", "scouting_plan"):
            self.assertIn(key, report)
        self.assertIsNone(report["weather"])
        self.assertIsNone(report["productivity"])

        self.assertIsNotNone(alerts_path)
        alerts = Path(alerts_path).read_text(encoding="utf-8").splitlines()
        self.assertTrue(any(line.startswith("[campo_prova] canopy_collapse:") for line in alerts))
        self.assertTrue(any(line.startswith("[campo_prova] water_stress:") for line in alerts))
        self.assertEqual(len(alerts), len(set(alerts)))

        self.assertTrue((out_dir / "ndvi_ndmi.png").exists())
        metadata = json.loads(
            (self.data_root / "campo_prova" / "current" / "metadata.json").read_text(encoding="utf-8")
        )
        self.assertEqual(metadata["observation_count"], 6)
        self.assertEqual(metadata["last_observation"], "2024-04-20")

    def test_build_insights_as_of_earlier_date(self):
        feed_path, report_path, _ = build_insights("campo_prova", reference_date="2024-03-25", **self._dirs())
        feed = pd.read_csv(feed_path)
        self.assertEqual(len(feed), 3)
        self.assertNotIn("canopy_collapse", " ".join(feed["rule_hits"].fillna("")))
        report = json.loads(Path(report_path).read_text(encoding="utf-8"))
        self.assertEqual(report["reference_date"], "2024-03-25")

    def test_as_of_report_uses_weather_up_to_reference_date(self):
        current = self.data_root / "campo_prova" / "current"
        days = pd.date_range("2024-02-25", "2024-04-20", freq="D")
        pd.DataFrame(
            {
                "date": days.strftime("%Y-%m-%d"),
                "temperature_min": [8.0] * len(days),
                "temperature_max": [38.0 if d > pd.Timestamp("2024-03-25") else 18.0 for d in days],
                "precipitation": [1.0] * len(days),
            }
        ).to_csv(current / "weather_daily.csv", index=False)
        (current / "weather_forecast.csv").write_text(
            "date,temperature_min,temperature_max,precipitation\n"
            "2024-03-20,-4.0,10.0,0.0\n"
            "2024-03-26,6.0,20.0,0.0\n"
            "2024-03-27,7.0,21.0,2.0\n"
            "2024-03-28,7.0,22.0,0.0\n"
            "2024-04-10,15.0,39.0,0.0\n",
            encoding="utf-8",
        )

        _, report_path, _ = build_insights("campo_prova", reference_date="2024-03-25", **self._dirs())
        report = json.loads(Path(report_path).read_text(encoding="utf-8"))

        self.assertIsNotNone(report["weather"])
        weather = report["summary"]["weather"]
        self.assertEqual(weather["temperature_max"], 18.0)
        self.assertEqual(weather["precipitation_total"], 30.0)
        self.assertEqual([f["date"] for f in weather["forecast"]], ["2024-03-26", "2024-03-27", "2024-03-28"])
        risks = report["summary"]["weather_risks"]
        self.assertEqual(risks["temperature_stress_days"], 0)
        self.assertFalse(risks["frost_risk_forecast_7d"])
        self.assertEqual(risks["heat_stress_risk"], "low")

    def test_build_insights_before_first_observation(self):
        with self.assertRaises(ValueError):
            build_insights("campo_prova", reference_date="2024-01-01", **self._dirs())

    def test_missing_required_input(self):
        (self.profiles / "campo_prova.yml").write_text(
            PROFILE + "inputs:\n  weather:\n    file: weather_daily.csv\n    required: true\n", encoding="utf-8"
        )
        with self.assertRaises(FileNotFoundError):
            build_insights("campo_prova", **self._dirs())

    def test_demo_field_runs_end_to_end(self):
        data_root = Path(self.tmp.name) / "demo_data"
        shutil.copytree(DATA_ROOT / "demo_bologna_wheat", data_root / "demo_bologna_wheat")
        feed_path, report_path, _ = build_insights(
            "demo_bologna_wheat",
            profiles_dir=FIELD_PROFILES_DIR,
            data_root=data_root,
            output_dir=self.output_dir,
        )
        report = json.loads(Path(report_path).read_text(encoding="utf-8"))
        self.assertEqual(report["field"]["crop"], "wheat")
        self.assertIsNotNone(report["weather"])
        self.assertIsNotNone(report["phytosanitary"])
        self.assertIsNotNone(report["productivity"])
        self.assertTrue(Path(feed_path).exists())


class TestPlainLanguage(unittest.TestCase):

    def test_messages_follow_thresholds(self):
        text = generate_plain_language({"ndvi": 0.85, "ndmi": 0.45, "reci": 3.1, "ndvi_delta": 0.08})
        self.assertIn("Vigore vegetativo eccellente", text)
        self.assertIn("NDVI in crescita", text)
        self.assertIn("Stato idrico adeguato", text)
        text = generate_plain_language({"ndvi": 0.5, "ndmi": 0.05, "reci": 0.8}, crop="olive")
        self.assertIn("NDMI critico", text)
        self.assertIn("ReCI basso", text)


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        patcher = mock.patch.object(run_pipeline, "LOG_FILE", Path(self.tmp.name) / "logs" / "runs.log")
        self.log_file = patcher.start()
        self.addCleanup(patcher.stop)

    def test_no_stage_prints_help(self):
        with mock.patch("sys.stdout"):
            self.assertEqual(run_pipeline.main(["--field", "demo_bologna_wheat"]), 1)

    def test_failure_is_logged(self):
        with mock.patch("sys.stdout"), mock.patch("sys.stderr"):
            code = run_pipeline.main(["--field", "no_such_field", "--insight"])
        self.assertEqual(code, 2)
        log = self.log_file.read_text(encoding="utf-8")
        self.assertIn("no_such_field [insight] FAILURE: FileNotFoundError", log)


if __name__ == "__main__":
    unittest.main()

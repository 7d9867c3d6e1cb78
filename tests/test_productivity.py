import tempfile
import unittest
from datetime import date, timedelta
from pathlib import Path

from engine.productivity import (
    ProductivityRecord,
    analyze_historical_trend,
    calculate_satellite_adjustments,
    crop_code,
    generate_productivity_prediction,
    historical_productivity,
    load_productivity_history,
)
from engine.series import VegetationPoint
from engine.summary import WeatherData

ISTAT_CSV = """ref_area_code,ref_area_name,type_of_crop_code,type_of_crop_label,time_period_year,productivity_qt_ha
BO,Bologna,WHEAT,Frumento,2021,54
BO,Bologna,WHEAT,Frumento,2019,50
FE,Ferrara,WHEAT,Frumento,2021,70
BO,Bologna,SUNFLOWER,Girasole,2021,28
BO,Bologna,WHEAT,Frumento,2020,52
"""


def _record(year, value, area="BO", crop="WHEAT"):
    return ProductivityRecord(area, "", crop, "", value, 0.0, 0.0, year)


def _points(n, ndvi=0.8, ndmi=0.45):
    start = date(2024, 4, 1)
    return [VegetationPoint(start + timedelta(days=5 * i), ndvi, ndmi) for i in range(n)]


class TestProductivityHistory(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = Path(self.tmp.name) / "history.csv"

    def test_loads_istat_columns_and_filters(self):
        self.path.write_text(ISTAT_CSV, encoding="utf-8")
        records = load_productivity_history(self.path)
        self.assertEqual(len(records), 5)

        selected = historical_productivity(records, "bo", "frumento")
        self.assertEqual([r.year for r in selected], [2019, 2020, 2021])
        self.assertEqual([r.productivity_qt_ha for r in selected], [50.0, 52.0, 54.0])

    def test_blank_cells_default_and_unpublished_rows_skipped(self):
        self.path.write_text(
            "ref_area_code,ref_area_name,type_of_crop_code,type_of_crop_label,time_period_year,"
            "productivity_qt_ha,production_qt,area_ha\n"
            "BO,,WHEAT,Frumento,2021,54,,\n"
            "BO,Bologna,WHEAT,Frumento,2022,,1200,20\n"
            "BO,Bologna,WHEAT,Frumento,2023,56,1120,20\n",
            encoding="utf-8",
        )
        records = load_productivity_history(self.path)
        self.assertEqual([r.year for r in records], [2021, 2023])
        self.assertEqual(records[0].production_qt, 0.0)
        self.assertEqual(records[0].area_ha, 0.0)
        self.assertEqual(records[0].area_name, "")
        self.assertEqual(records[1].production_qt, 1120.0)

    def test_missing_columns(self):
        self.path.write_text("area_code,year\nBO,2020\n", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_productivity_history(self.path)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_productivity_history(self.path)

    def test_crop_codes(self):
        self.assertEqual(crop_code("wine"), "GRAPE")
        self.assertEqual(crop_code("mais"), "MAIZE")
        self.assertEqual(crop_code("kiwi"), "KIWI")


class TestHistoricalTrend(unittest.TestCase):

    def test_increasing(self):
        records = [_record(2019 + i, 50 + 2 * i) for i in range(5)]
        trend = analyze_historical_trend(records)
        self.assertEqual(trend.average, 54)
        self.assertEqual(trend.trend, "increasing")
        self.assertAlmostEqual(trend.trend_percentage, 2 / 54 * 100, places=6)

    def test_short_history_is_stable(self):
        trend = analyze_historical_trend([_record(2022, 40), _record(2023, 60)])
        self.assertEqual(trend.trend, "stable")
        self.assertEqual(trend.average, 50)

    def test_empty_history(self):
        trend = analyze_historical_trend([])
        self.assertEqual((trend.average, trend.trend), (0.0, "stable"))


class TestSatelliteAdjustments(unittest.TestCase):

    def test_optimal_canopy(self):
        adj = calculate_satellite_adjustments(_points(5), None, "wheat")
        self.assertAlmostEqual(adj.ndvi_factor, 1.0)
        self.assertEqual(adj.ndmi_factor, 1.1)
        self.assertEqual(adj.weather_factor, 1.0)
        self.assertAlmostEqual(adj.combined_adjustment, 3.0, places=6)

    def test_hot_dry_weather(self):
        weather = WeatherData(
            temperature_avg=28, temperature_min=18, temperature_max=37, precipitation_total=10, humidity_avg=35
        )
        adj = calculate_satellite_adjustments(_points(5), weather, "wheat")
        self.assertAlmostEqual(adj.weather_factor, 0.85 * 0.9 * 0.95)

    def test_no_observations(self):
        adj = calculate_satellite_adjustments([], None, "wheat")
        self.assertEqual(
            (adj.ndvi_factor, adj.ndmi_factor, adj.weather_factor, adj.combined_adjustment), (1.0, 1.0, 1.0, 0.0)
        )


class TestProductivityPrediction(unittest.TestCase):

    def test_prediction_with_history(self):
        records = [_record(2019 + i, 50 + 2 * i) for i in range(5)] + [_record(2023, 90, area="FE")]
        prediction = generate_productivity_prediction(records, "bo", "wheat", _points(5), None)

        self.assertAlmostEqual(prediction.predicted_productivity_qt_ha, 63.2, places=1)
        self.assertEqual(prediction.confidence_level, 70)
        self.assertEqual(prediction.baseline["years_of_data"], 5)
        self.assertEqual(prediction.baseline["trend_direction"], "increasing")
        self.assertEqual(
            [(r.factor, r.impact) for r in prediction.risk_factors],
            [("Ottimo stato idrico", "positive"), ("Trend storico positivo", "positive")],
        )
        self.assertEqual(prediction.comparison["percentile_rank"], 100)
        self.assertAlmostEqual(prediction.comparison["vs_last_year"], 9.0, places=1)

    def test_prediction_without_history(self):
        prediction = generate_productivity_prediction([], "BO", "wheat", _points(2), None)
        self.assertEqual(prediction.baseline["years_of_data"], 0)
        self.assertEqual(prediction.comparison["percentile_rank"], 50)
        self.assertEqual(prediction.comparison["vs_regional_average"], 0.0)
        self.assertGreater(prediction.predicted_productivity_qt_ha, 3.5)


if __name__ == "__main__":
    unittest.main()

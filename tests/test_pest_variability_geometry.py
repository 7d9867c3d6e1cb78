import unittest
from datetime import date, timedelta

from engine.geometry import calculate_area_ha, polygon_centroid
from engine.pest_risk import analyze_phytosanitary_risk, assess_vegetation_vulnerability, calculate_weather_risk
from engine.series import VegetationPoint
from engine.summary import WeatherData
from engine.variability import analyze_field_variability, classify_vigor_zones, generate_scouting_plan

SQUARE = [
    [11.3400, 44.5200],
    [11.3450, 44.5200],
    [11.3450, 44.5230],
    [11.3400, 44.5230],
]


def _points(ndvi_values, ndmi=0.3):
    start = date(2024, 4, 1)
    return [VegetationPoint(start + timedelta(days=5 * i), v, ndmi) for i, v in enumerate(ndvi_values)]


class TestGeometry(unittest.TestCase):

    def test_area_of_small_field(self):
        area = calculate_area_ha(SQUARE)
        self.assertGreater(area, 13.0)
        self.assertLess(area, 13.5)

    def test_closed_ring_matches_open_ring(self):
        self.assertEqual(calculate_area_ha(SQUARE + [SQUARE[0]]), calculate_area_ha(SQUARE))

    def test_degenerate_polygon(self):
        self.assertEqual(calculate_area_ha(SQUARE[:3]), 0.0)
        self.assertEqual(calculate_area_ha([]), 0.0)

    def test_centroid(self):
        lat, lon = polygon_centroid(SQUARE + [SQUARE[0]])
        self.assertAlmostEqual(lat, 44.5215, places=6)
        self.assertAlmostEqual(lon, 11.3425, places=6)
        self.assertIsNone(polygon_centroid([]))


class TestPestRisk(unittest.TestCase):

    def setUp(self):
        self.weather = WeatherData(
            temperature_avg=20,
            temperature_min=12,
            temperature_max=27,
            precipitation_total=25,
            humidity_avg=85,
            wind_speed_avg=6,
        )

    def test_weather_risk_per_pathogen(self):
        risks = calculate_weather_risk(self.weather, "wheat")
        self.assertEqual([r.pathogen for r in risks], ["Septoria", "Ruggine", "Fusariosi", "Oidio"])
        self.assertEqual([r.risk_score for r in risks], [80, 80, 80, 65])
        self.assertIn("Ventilazione riduce rischio", risks[-1].conditions_met)

    def test_vegetation_vulnerability(self):
        points = _points([0.7, 0.6, 0.5, 0.45, 0.4], ndmi=0.15)
        vulnerability = assess_vegetation_vulnerability(points, "wheat")
        self.assertEqual(vulnerability.vulnerability_score, 90)
        self.assertEqual(len(vulnerability.indicators), 4)

    def test_no_vulnerability_without_ndvi(self):
        self.assertEqual(assess_vegetation_vulnerability([], "wheat").vulnerability_score, 0.0)

    def test_phytosanitary_analysis(self):
        analysis = analyze_phytosanitary_risk(_points([0.7] * 5), self.weather, "wheat")
        self.assertEqual(analysis.overall_risk_score, 53)
        self.assertEqual(len(analysis.dominant_risks), 3)
        top = analysis.dominant_risks[0]
        self.assertEqual(top.risk_level, "critical")
        self.assertEqual(top.risk_type, "fungi")
        self.assertEqual(top.prevention_window_days, 3)
        self.assertEqual(analysis.immediate_actions[0], "Trattamento urgente contro Septoria")
        self.assertEqual(analysis.preventive_treatments[0].timing, "Immediato")
        self.assertEqual(analysis.weather_stress_factors, ["Septoria", "Ruggine", "Fusariosi", "Oidio"])


class TestVariability(unittest.TestCase):

    def test_zones_around_medium_vigor(self):
        zones = classify_vigor_zones(_points([0.65] * 5), "wheat")
        self.assertEqual(
            [(z.zone_id, z.area_percentage) for z in zones],
            [("zone_medium_main", 60), ("zone_low_lower", 25), ("zone_high_higher", 15)],
        )
        self.assertEqual(sum(z.area_percentage for z in zones), 100)

    def test_zones_at_scale_ends(self):
        top = classify_vigor_zones(_points([0.85] * 3), "wheat")
        self.assertEqual([(z.zone_id, z.area_percentage) for z in top], [("zone_very_high_main", 75), ("zone_high_lower", 25)])
        bottom = classify_vigor_zones(_points([0.3] * 3), "wheat")
        self.assertEqual(
            [(z.zone_id, z.area_percentage) for z in bottom], [("zone_very_low_main", 85), ("zone_low_higher", 15)]
        )

    def test_no_zones_without_ndvi(self):
        self.assertEqual(classify_vigor_zones([], "wheat"), [])

    def test_uniform_field(self):
        analysis = analyze_field_variability(_points([0.65] * 5), "wheat")
        self.assertEqual(analysis.overall_uniformity, 100)
        self.assertEqual(analysis.spatial_trends.dominant_pattern, "uniform")
        self.assertEqual(analysis.spatial_trends.hot_spots, 1)
        self.assertEqual(analysis.spatial_trends.cold_spots, 1)
        self.assertEqual(analysis.management_recommendations["field_level"][0], "Mantenere gestione uniforme")

    def test_scouting_plan(self):
        analysis = analyze_field_variability(_points([0.65] * 5), "wheat")
        plan = generate_scouting_plan(analysis, "wheat")
        self.assertEqual(plan.priority_zones, ["zone_low_lower"])
        self.assertEqual(
            plan.resource_allocation,
            {
                "high_priority_time_percent": 20,
                "medium_priority_time_percent": 15,
                "low_priority_time_percent": 70,
            },
        )
        by_zone = {item.zone_id: item for item in plan.inspection_schedule}
        self.assertEqual(by_zone["zone_low_lower"].next_inspection_days, 7)
        self.assertEqual(by_zone["zone_low_lower"].inspection_type, "detailed")


if __name__ == "__main__":
    unittest.main()

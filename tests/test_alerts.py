import unittest
from datetime import date

from agent.intelligent_alerts import generate_intelligent_alerts, prioritize_alerts
from engine.series import VegetationPoint
from engine.summary import FieldSummary, NdmiData, NdviData, WeatherRisks

REFERENCE = date(2024, 5, 20)


def _stressed():
    points = [
        VegetationPoint(date(2024, 5, 5), 0.40, 0.15, 1.0),
        VegetationPoint(date(2024, 5, 12), 0.38, 0.12, 1.0),
        VegetationPoint(date(2024, 5, 19), 0.35, 0.10, 0.9),
    ]
    summary = FieldSummary(
        ndvi_data=NdviData(current_value=0.35),
        ndmi_data=NdmiData(current_value=0.10),
        weather_risks=WeatherRisks(temperature_stress_days=2, heat_stress_risk="high"),
    )
    return summary, points


class TestIntelligentAlerts(unittest.TestCase):

    def test_all_checks_fire(self):
        summary, points = _stressed()
        bundle = generate_intelligent_alerts(summary, points, "wheat", 250, REFERENCE)

        by_type = {a.type: a for a in bundle.critical_alerts}
        self.assertEqual(set(by_type), {"water_stress", "nitrogen_deficiency", "growth_anomaly", "weather_risk"})
        self.assertEqual(by_type["water_stress"].severity, "critical")
        self.assertAlmostEqual(by_type["water_stress"].impact.economic_loss_eur_ha, 312.5)
        self.assertEqual(by_type["nitrogen_deficiency"].severity, "critical")
        self.assertEqual(by_type["nitrogen_deficiency"].triggers.trend_direction, "worsening")
        self.assertEqual(by_type["growth_anomaly"].severity, "high")
        self.assertAlmostEqual(by_type["weather_risk"].impact.economic_loss_eur_ha, 100.0)

        self.assertEqual(bundle.total_risk_score, 100)
        self.assertEqual(bundle.immediate_actions, ["Irrigazione immediata 25-35mm", "Irrigazione preventiva + ombreggiamento"])
        self.assertEqual(bundle.economic_summary.intervention_cost, 215)
        self.assertEqual([a.severity for a in bundle.critical_alerts][:2], ["critical", "critical"])

    def test_ids_are_deterministic(self):
        summary, points = _stressed()
        first = generate_intelligent_alerts(summary, points, "wheat", 250, REFERENCE)
        second = generate_intelligent_alerts(summary, points, "wheat", 250, REFERENCE)
        later = generate_intelligent_alerts(summary, points, "wheat", 250, date(2024, 5, 21))

        self.assertEqual([a.id for a in first.critical_alerts], [a.id for a in second.critical_alerts])
        self.assertNotEqual(
            {a.id for a in first.critical_alerts},
            {a.id for a in later.critical_alerts},
        )
        for alert in first.critical_alerts:
            self.assertEqual(alert.created_at, "2024-05-20")
            prefix, digest = alert.id.split("_", 1)
            self.assertEqual(len(digest), 14)

    def test_prioritize_by_severity_then_loss(self):
        summary, points = _stressed()
        bundle = generate_intelligent_alerts(summary, points, "wheat", 250, REFERENCE)
        ordered = prioritize_alerts(bundle.critical_alerts)
        self.assertEqual(
            [a.type for a in ordered],
            ["water_stress", "nitrogen_deficiency", "growth_anomaly", "weather_risk"],
        )

    def test_healthy_field_is_quiet(self):
        points = [
            VegetationPoint(date(2024, 5, 5), 0.74, 0.40, 3.4),
            VegetationPoint(date(2024, 5, 12), 0.75, 0.41, 3.5),
            VegetationPoint(date(2024, 5, 19), 0.76, 0.42, 3.5),
        ]
        summary = FieldSummary(
            ndvi_data=NdviData(current_value=0.76),
            ndmi_data=NdmiData(current_value=0.42),
            weather_risks=WeatherRisks(temperature_stress_days=0, heat_stress_risk="low"),
        )
        bundle = generate_intelligent_alerts(summary, points, "wheat", 250, REFERENCE)
        self.assertEqual(bundle.critical_alerts, [])
        self.assertEqual(bundle.total_risk_score, 0)
        self.assertEqual(bundle.immediate_actions, [])


if __name__ == "__main__":
    unittest.main()

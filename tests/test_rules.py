import unittest

from agent.rule_engine import apply_rules
from agent.rules.engine import (
    CRITICAL_RULES,
    Rule,
    RuleHit,
    critical_rule_ids,
    evaluate_rules_row,
    load_rules,
)


class TestRuleEngine(unittest.TestCase):

    def test_default_rules_fire(self):
        hits = evaluate_rules_row({"ndvi": 0.25, "ndmi": 0.1, "reci": 2.5})
        self.assertEqual([hit.rule_id for hit in hits], ["canopy_collapse", "water_stress"])
        self.assertEqual(hits[0], RuleHit("canopy_collapse", "NDVI sotto la soglia critica; ndvi=0.25", True))

    def test_healthy_row_has_no_hits(self):
        self.assertEqual(evaluate_rules_row({"ndvi": 0.7, "ndmi": 0.35, "reci": 2.5}), [])

    def test_missing_and_nan_values_are_ignored(self):
        hits = evaluate_rules_row({"ndvi": float("nan"), "ndmi": None, "reci": "n/a"})
        self.assertEqual(hits, [])

    def test_override_replaces_default_by_id(self):
        overrides = [
            {
                "id": "water_stress",
                "label": "NDMI basso",
                "critical": False,
                "when": {"all": [{"var": "ndmi", "op": "<", "value": 0.2}]},
            }
        ]
        self.assertNotIn("water_stress", critical_rule_ids(overrides))
        self.assertIn("water_stress", CRITICAL_RULES)
        self.assertEqual(len(load_rules(overrides)), len(load_rules()))
        hits = evaluate_rules_row({"ndvi": 0.7, "ndmi": 0.18}, overrides)
        self.assertEqual(hits, [RuleHit("water_stress", "NDMI basso; ndmi=0.18", False)])

    def test_between_and_abs_operators(self):
        overrides = {
            "rules": [
                {"id": "mid_ndvi", "when": {"all": [{"var": "ndvi", "op": "between", "value": [0.4, 0.5]}]}},
                {"id": "sharp_swing", "when": {"any": [{"var": "ndvi_trend_30d", "op": "abs>", "value": 25}]}},
            ]
        }
        ids = {hit.rule_id for hit in evaluate_rules_row({"ndvi": 0.45, "ndvi_trend_30d": -30.0}, overrides)}
        self.assertIn("mid_ndvi", ids)
        self.assertIn("sharp_swing", ids)
        ids = {hit.rule_id for hit in evaluate_rules_row({"ndvi": 0.55, "ndvi_trend_30d": -10.0}, overrides)}
        self.assertNotIn("mid_ndvi", ids)
        self.assertNotIn("sharp_swing", ids)

    def test_unknown_operator_never_matches(self):
        rule = Rule.from_mapping({"id": "odd", "when": {"all": [{"var": "ndvi", "op": "~", "value": 0.5}]}})
        self.assertFalse(rule.matches({"ndvi": 0.5}))

    def test_malformed_overrides_raise(self):
        with self.assertRaises(KeyError):
            evaluate_rules_row({"ndvi": 0.5}, [{"label": "no id"}])
        with self.assertRaises(KeyError):
            evaluate_rules_row({"ndvi": 0.5}, [{"id": "x", "when": {"all": [{"op": "<", "value": 1}]}}])
        with self.assertRaises(ValueError):
            evaluate_rules_row({"ndvi": 0.5}, ["not a rule"])

    def test_apply_rules_marks_critical(self):
        profile = {
            "rule_overrides": [
                {
                    "id": "spring_rain_deficit",
                    "critical": True,
                    "when": {"all": [{"var": "precipitation_deficit_mm", "op": ">", "value": 50}]},
                }
            ]
        }
        results = apply_rules({"ndvi": 0.6, "reci": 1.0, "precipitation_deficit_mm": 55.0}, profile)
        by_id = {r["id"]: r for r in results}
        self.assertTrue(by_id["spring_rain_deficit"]["critical"])
        self.assertTrue(by_id["rain_deficit"]["message"].startswith("Deficit di pioggia"))
        self.assertFalse(by_id["rain_deficit"]["critical"])
        self.assertFalse(by_id["low_nitrogen"]["critical"])

    def test_apply_rules_accepts_pairs(self):
        results = apply_rules([("soil_moisture_index", 0.2)])
        self.assertEqual([r["id"] for r in results], ["soil_dryness"])
        self.assertTrue(results[0]["critical"])


if __name__ == "__main__":
    unittest.main()

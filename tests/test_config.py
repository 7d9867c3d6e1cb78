import json
import tempfile
import unittest
from datetime import date
from pathlib import Path

from campo_agent.config import (
    get_field_current_dir,
    load_field_profile,
    load_input_registry,
    resolve_field_config_path,
)
from campo_agent.crop_tables import (
    crop_thresholds,
    expected_ndvi,
    market_price,
    normalise_crop,
    weather_thresholds,
)
from engine.utils.metadata import load_field_metadata, load_phenology_hints, update_metadata

BASE_PROFILE = """
field_meta:
  crop: wheat
  market_price: null
inputs:
  vegetation:
    file: vegetation.csv
    required: true
rules: []
"""

CHILD_PROFILE = """
extends: base.yml
field_meta:
  name: Campo Nord
  crop: vite
  province: bo
  planting_date: "2024-03-15"
  polygon:
    - [11.3400, 44.5200]
    - [11.3450, 44.5200]
    - [11.3450, 44.5230]
    - [11.3400, 44.5230]
inputs:
  weather: null
  satellite_extra:
    file: extra.csv
    required: false
rules:
  - id: low_ndvi
    when:
      all:
        - {var: ndvi, op: "<", value: 0.4}
"""


class TestFieldProfiles(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.profiles = Path(self.tmp.name) / "profiles"
        self.profiles.mkdir()
        (self.profiles / "base.yml").write_text(BASE_PROFILE, encoding="utf-8")
        (self.profiles / "campo_nord.yml").write_text(CHILD_PROFILE, encoding="utf-8")

    def test_extends_merges_mappings(self):
        profile = load_field_profile("campo_nord", self.profiles)
        self.assertEqual(profile["field_meta"]["crop"], "vite")
        self.assertIn("market_price", profile["field_meta"])
        self.assertEqual(profile["field_meta"]["key"], "campo_nord")
        self.assertIn("vegetation", profile["inputs"])
        self.assertEqual(len(profile["rules"]), 1)

    def test_missing_profile_lists_candidates(self):
        with self.assertRaises(FileNotFoundError) as ctx:
            resolve_field_config_path("nowhere", self.profiles)
        self.assertIn("nowhere.yml", str(ctx.exception))

    def test_missing_base_profile(self):
        (self.profiles / "orphan.yml").write_text("extends: missing.yml\n", encoding="utf-8")
        with self.assertRaises(FileNotFoundError):
            load_field_profile("orphan", self.profiles)

    def test_input_registry_overlays_defaults(self):
        profile = load_field_profile("campo_nord", self.profiles)
        registry = load_input_registry("campo_nord", profile)
        self.assertNotIn("weather", registry)
        self.assertIn("forecast", registry)
        self.assertFalse(registry["satellite_extra"].required)
        self.assertEqual(registry["soil_moisture"].kind, "json")

    def test_input_registry_rejects_malformed_entries(self):
        with self.assertRaises(KeyError):
            load_input_registry("x", {"inputs": {"new_input": {"required": True}}})
        with self.assertRaises(ValueError):
            load_input_registry("x", {"inputs": {"vegetation": "vegetation.csv"}})

    def test_input_path_under_current_dir(self):
        registry = load_input_registry("campo_nord", load_field_profile("campo_nord", self.profiles))
        path = registry["vegetation"].path("campo_nord", Path(self.tmp.name) / "data")
        self.assertEqual(path, Path(self.tmp.name) / "data" / "campo_nord" / "current" / "vegetation.csv")
        self.assertTrue(path.parent.is_dir())

    def test_field_metadata(self):
        profile = load_field_profile("campo_nord", self.profiles)
        meta = load_field_metadata("campo_nord", profile)
        self.assertEqual(meta["crop"], "wine")
        self.assertEqual(meta["province"], "BO")
        self.assertEqual(meta["field_name"], "Campo Nord")
        self.assertEqual(meta["planting_date"], "2024-03-15")
        self.assertEqual(meta["market_price"], 800.0)
        self.assertGreater(meta["area_ha"], 13.0)
        self.assertLess(meta["area_ha"], 13.5)
        self.assertEqual(meta["rule_overrides"][0]["id"], "low_ndvi")

    def test_phenology_hints(self):
        meta = load_field_metadata("campo_nord", load_field_profile("campo_nord", self.profiles))
        hints = load_phenology_hints(meta, date(2024, 5, 10))
        self.assertEqual(hints["current_stage"], "fioritura / allegagione")
        self.assertEqual(len(hints["stage_by_month"]), 12)

    def test_update_metadata_merges(self):
        data_root = Path(self.tmp.name) / "data"
        update_metadata("campo_nord", {"crop": "wine", "observation_count": 3}, data_root)
        target = update_metadata("campo_nord", {"observation_count": 5}, data_root)
        self.assertEqual(target, get_field_current_dir("campo_nord", data_root) / "metadata.json")
        payload = json.loads(target.read_text(encoding="utf-8"))
        self.assertEqual(payload, {"crop": "wine", "observation_count": 5})


class TestCropTables(unittest.TestCase):

    def test_aliases_and_fallback(self):
        self.assertEqual(normalise_crop("Frumento"), "wheat")
        self.assertEqual(normalise_crop("Ulivo"), "olive")
        self.assertEqual(normalise_crop(None), "wheat")
        self.assertEqual(crop_thresholds("kiwi"), crop_thresholds("wheat"))
        self.assertIsNone(weather_thresholds("kiwi", fallback=False))
        self.assertEqual(market_price("kiwi"), 250.0)

    def test_reci_thresholds(self):
        self.assertEqual(crop_thresholds("olive")["reci"]["low_nitrogen"], 0.9)
        self.assertEqual(crop_thresholds("sunflower")["reci"]["high_nitrogen"], 3.2)

    def test_seasonal_expected_ndvi(self):
        self.assertEqual(expected_ndvi("wine", 6), 0.75)
        # Sunflower has no seasonal table and borrows wheat's.
        self.assertEqual(expected_ndvi("sunflower", 5), 0.75)
        self.assertEqual(expected_ndvi("wheat", 13), 0.5)


if __name__ == "__main__":
    unittest.main()

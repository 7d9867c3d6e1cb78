import unittest

from engine.nitrogen_analysis import (
    calculate_fertilization_roi,
    get_nitrogen_alert,
    get_nitrogen_status,
)


class TestNitrogenStatus(unittest.TestCase):

    def test_wheat_levels(self):
        self.assertEqual(get_nitrogen_status(3.2, "wheat").level, "high")
        self.assertEqual(get_nitrogen_status(2.5, "wheat").level, "medium")
        self.assertEqual(get_nitrogen_status(1.5, "wheat").level, "low")
        self.assertEqual(get_nitrogen_status(0.8, "wheat").level, "deficient")

    def test_crop_specific_thresholds(self):
        # 1.1 is low for wine but deficient for wheat.
        self.assertEqual(get_nitrogen_status(1.1, "wine").level, "low")
        self.assertEqual(get_nitrogen_status(1.1, "wheat").level, "deficient")
        self.assertEqual(get_nitrogen_status(1.1, "vite").level, "low")

    def test_fertilization_plans(self):
        high = get_nitrogen_status(3.5, "wheat").fertilization
        self.assertFalse(high.needed)
        self.assertEqual(high.amount, "0 kg/ha")
        deficient = get_nitrogen_status(0.5, "wheat").fertilization
        self.assertTrue(deficient.needed)
        self.assertEqual(deficient.timing, "Immediata (entro 2-3 giorni)")
        self.assertEqual(deficient.amount, "80-120 kg/ha")


class TestNitrogenAlert(unittest.TestCase):

    def test_deficient_is_critical(self):
        alert = get_nitrogen_alert(0.9, 1.0, "wheat")
        self.assertEqual(alert.severity, "critical")
        self.assertEqual(alert.urgency_days, 3)
        self.assertEqual(alert.economic_impact, "Perdita potenziale: 10-15% della resa")

    def test_low_and_falling_fast_is_critical(self):
        alert = get_nitrogen_alert(1.5, 1.8, "wheat")
        self.assertEqual(alert.severity, "critical")
        self.assertEqual(alert.economic_impact, "Perdita potenziale: 15-25% della resa")

    def test_low_is_warning(self):
        alert = get_nitrogen_alert(1.5, None, "wheat")
        self.assertEqual(alert.severity, "warning")
        self.assertEqual(alert.urgency_days, 7)

    def test_medium_falling_is_warning(self):
        self.assertEqual(get_nitrogen_alert(2.5, 2.6, "wheat").severity, "warning")

    def test_medium_rising_is_info(self):
        alert = get_nitrogen_alert(2.5, 2.3, "wheat")
        self.assertEqual(alert.severity, "info")
        self.assertEqual(alert.urgency_days, 14)

    def test_zero_previous_means_no_trend(self):
        alert = get_nitrogen_alert(2.5, 0.0, "wheat")
        self.assertEqual(alert.severity, "none")
        self.assertEqual(alert.urgency_days, 30)
        self.assertIn("ReCI: 2.50", alert.description)


class TestFertilizationROI(unittest.TestCase):

    def test_not_needed_is_all_zero(self):
        roi = calculate_fertilization_roi(get_nitrogen_status(3.5, "wheat"), 5.8, 250)
        self.assertEqual((roi.cost, roi.expected_benefit, roi.roi, roi.payback_days), (0.0, 0.0, 0.0, 0.0))

    def test_low_nitrogen_roi(self):
        roi = calculate_fertilization_roi(get_nitrogen_status(1.5, "wheat"), 5.8, 250)
        self.assertAlmostEqual(roi.cost, 103.0)
        self.assertAlmostEqual(roi.expected_benefit, 217500.0)
        self.assertAlmostEqual(roi.roi, (217500.0 - 103.0) / 103.0)
        self.assertAlmostEqual(roi.payback_days, 103.0 / (217500.0 / 120))

    def test_no_benefit_caps_payback(self):
        roi = calculate_fertilization_roi(get_nitrogen_status(1.5, "wheat"), 5.8, 0)
        self.assertEqual(roi.payback_days, 120.0)
        self.assertAlmostEqual(roi.roi, -1.0)


if __name__ == "__main__":
    unittest.main()

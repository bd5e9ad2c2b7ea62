from __future__ import annotations

import unittest

from contestboard.scoring.score_model import (
    EDUCATION_VALUES,
    EXPERIENCE_VALUES,
    Education,
    Experience,
    coerce_score,
    compute_total_score,
    education_value,
    experience_value,
    normalize_test_score,
    parse_experience,
)


class CategoryValueTests(unittest.TestCase):
    def test_education_table(self) -> None:
        self.assertEqual(education_value("SLTA"), 5)
        self.assertEqual(education_value("S1"), 17)
        self.assertEqual(education_value(Education.S3), 20)

    def test_experience_table(self) -> None:
        self.assertEqual(experience_value("Kepala Desa"), 20)
        self.assertEqual(experience_value("Sekdes"), 18)
        self.assertEqual(experience_value("Kasun"), 12)
        self.assertEqual(experience_value("No Experience"), 0)

    def test_labels_match_without_spacing_or_case(self) -> None:
        self.assertIs(parse_experience("KepalaDesa"), Experience.KEPALA_DESA)
        self.assertIs(parse_experience("  kepala desa "), Experience.KEPALA_DESA)

    def test_unknown_labels_score_zero(self) -> None:
        self.assertEqual(education_value("PhD"), 0)
        self.assertEqual(experience_value("Mayor"), 0)
        self.assertEqual(education_value(None), 0)

    def test_education_values_never_decrease(self) -> None:
        values = [EDUCATION_VALUES[level] for level in Education]
        self.assertEqual(values, sorted(values))

    def test_every_category_has_a_value(self) -> None:
        self.assertEqual(set(EDUCATION_VALUES), set(Education))
        self.assertEqual(set(EXPERIENCE_VALUES), set(Experience))


class TotalScoreTests(unittest.TestCase):
    def test_weighted_sum(self) -> None:
        self.assertAlmostEqual(compute_total_score("S1", "Sekdes", 50), 65.0)

    def test_defaults_give_five(self) -> None:
        self.assertEqual(compute_total_score("SLTA", "No Experience", None), 5.0)

    def test_unknown_inputs_contribute_nothing(self) -> None:
        self.assertAlmostEqual(compute_total_score("???", "???", 10), 6.0)

    def test_garbage_test_score_counts_as_zero(self) -> None:
        self.assertEqual(compute_total_score("S1", "Kasi", "abc"), 32.0)

    def test_higher_test_score_never_lowers_total(self) -> None:
        previous = compute_total_score("D3", "Kaur", 0)
        for score in range(1, 101):
            current = compute_total_score("D3", "Kaur", score)
            self.assertGreaterEqual(current, previous)
            previous = current


class ScoreCoercionTests(unittest.TestCase):
    def test_coerce_never_raises(self) -> None:
        for raw in (None, "", "  ", "abc", float("nan"), float("inf"), True, object()):
            self.assertEqual(coerce_score(raw), 0.0)
        self.assertEqual(coerce_score(" 42.5 "), 42.5)

    def test_normalize_clamps_into_range(self) -> None:
        self.assertEqual(normalize_test_score(150), 100.0)
        self.assertEqual(normalize_test_score("-3"), 0.0)
        self.assertEqual(normalize_test_score("77.5"), 77.5)

    def test_blank_clears_and_garbage_becomes_zero(self) -> None:
        self.assertIsNone(normalize_test_score(""))
        self.assertIsNone(normalize_test_score(None))
        self.assertEqual(normalize_test_score("n/a"), 0.0)


if __name__ == "__main__":
    unittest.main()

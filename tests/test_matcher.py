import unittest

from voice_intake.models.records import DirectoryEntry
from voice_intake.services.matcher import find_matching_entry, normalize_key

ENTRIES = [
    DirectoryEntry(id="1", organizationName="Lincoln School", locationName="Springfield",
                   contactEmail="a@example.org"),
    DirectoryEntry(id="2", organizationName="Grundschule Am Bühl", locationName="München",
                   contactEmail="b@example.org"),
    DirectoryEntry(id="3", organizationName="Lincoln School", locationName="Shelbyville",
                   contactEmail="c@example.org"),
]


class TestNormalizeKey(unittest.TestCase):
    def test_case_whitespace_and_diacritics(self):
        self.assertEqual(normalize_key("  LINCOLN   Schóol "), "lincoln school")
        self.assertEqual(normalize_key("München"), "munchen")
        self.assertEqual(normalize_key("Straße"), "strasse")

    def test_empty_values(self):
        self.assertEqual(normalize_key(None), "")
        self.assertEqual(normalize_key("   "), "")


class TestFindMatchingEntry(unittest.TestCase):
    def test_exact_match_after_normalization(self):
        match = find_matching_entry(ENTRIES, "springfield", "lincoln  school")
        self.assertEqual(match.id, "1")

    def test_location_disambiguates_same_name(self):
        self.assertEqual(find_matching_entry(ENTRIES, "Shelbyville", "Lincoln School").id, "3")

    def test_diacritic_folding(self):
        self.assertEqual(find_matching_entry(ENTRIES, "Munchen", "grundschule am buhl").id, "2")

    def test_no_partial_matches(self):
        self.assertIsNone(find_matching_entry(ENTRIES, "Springfield", "Lincoln"))
        self.assertIsNone(find_matching_entry(ENTRIES, "Capital City", "Lincoln School"))

    def test_blank_input_never_matches(self):
        self.assertIsNone(find_matching_entry(ENTRIES, "", "Lincoln School"))
        self.assertIsNone(find_matching_entry(ENTRIES, "Springfield", " "))


if __name__ == "__main__":
    unittest.main()

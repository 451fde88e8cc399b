"""
Tests for text_utils — Accent stripping and name cleaning.
"""

from utils.text_utils import clean_name_part, humanize, strip_accents, to_text


class TestStripAccents:
    """Tests for strip_accents()."""

    def test_removes_accents(self):
        assert strip_accents("Marie-Ève") == "Marie-Eve"
        assert strip_accents("Hélène") == "Helene"

    def test_keeps_plain_text(self):
        assert strip_accents("Dupont") == "Dupont"

    def test_empty(self):
        assert strip_accents("") == ""
        assert strip_accents(None) == ""


class TestCleanNamePart:
    """Tests for clean_name_part()."""

    def test_hyphen_and_accent(self):
        assert clean_name_part("Marie-Ève") == "marieeve"

    def test_apostrophe(self):
        assert clean_name_part("O'Brien") == "obrien"

    def test_spaces_and_digits(self):
        assert clean_name_part("  Jean Paul 2 ") == "jeanpaul"

    def test_none(self):
        assert clean_name_part(None) == ""


class TestToText:
    """Tests for to_text()."""

    def test_none(self):
        assert to_text(None) == ""

    def test_number(self):
        assert to_text(42) == "42"

    def test_string_unchanged(self):
        assert to_text(" a ") == " a "


class TestHumanize:
    """Tests for humanize()."""

    def test_snake_case(self):
        assert humanize("CREATE_USER") == "CREATE USER"

    def test_camel_case(self):
        assert humanize("createClassFolder") == "create Class Folder"

"""
Tests for template_engine — Token substitution and sAMAccountName synthesis.
"""

import pytest

from services.template_engine import (
    apply_transformation,
    check_template,
    extract_tokens,
    generate_sam_account_name,
    render,
    resolve_token,
)


class TestRender:
    """Tests for render()."""

    def test_lowercase_and_uppercase_tokens(self):
        row = {"prenom": "Jean", "nom": "Dupont"}
        assert render("%prenom:lowercase%.%nom:uppercase%", row) == "jean.DUPONT"

    def test_literal_text_is_kept(self):
        row = {"prenom": "Jean", "nom": "Dupont"}
        assert render("%prenom:lowercase%.%nom:lowercase%@lycee.fr", row) == "jean.dupont@lycee.fr"

    def test_template_without_tokens(self):
        assert render("Lycée", {"prenom": "Jean"}) == "Lycée"

    def test_missing_column_renders_empty(self):
        assert render("%classe%-%prenom%", {"prenom": "Jean"}) == "-Jean"

    def test_none_value_renders_empty(self):
        assert render("%nom%", {"nom": None}) == ""

    def test_non_string_value(self):
        assert render("%classe%", {"classe": 6}) == "6"

    def test_unknown_transformation_is_ignored(self):
        assert render("%prenom:frobnicate%", {"prenom": "Jean"}) == "Jean"

    def test_transformation_name_is_case_insensitive(self):
        assert render("%nom:UPPERCASE%", {"nom": "dupont"}) == "DUPONT"

    def test_empty_template(self):
        assert render("", {"prenom": "Jean"}) == ""
        assert render(None, {"prenom": "Jean"}) == ""

    def test_none_row(self):
        assert render("%prenom%", None) == ""

    def test_repeated_token(self):
        assert render("%prenom:first%%prenom:first%", {"prenom": "jean"}) == "jj"

    def test_same_inputs_same_output(self):
        template = "%sAMAccountName%@%classe:trim%"
        row = {"prenom": "Marie-Ève", "nom": "O'Brien", "classe": " 6A "}
        assert render(template, row) == render(template, row) == "marieeveobrien@6A"

    def test_every_token_is_substituted(self):
        result = render("%a%%b:uppercase%-%c:first%-%missing%", {"a": "x", "b": "y", "c": "zed"})
        assert result == "xY-z-"
        assert "%" not in result


class TestSamAccountName:
    """Tests for sAMAccountName synthesis from name columns."""

    def test_empty_column_is_synthesized(self):
        row = {"prenom": "Marie-Ève", "nom": "O'Brien", "sAMAccountName": ""}
        result = render("%sAMAccountName%", row, max_length=20)
        assert result == "marieeveobrien"

    def test_missing_column_is_synthesized(self):
        row = {"prenom": "Marie-Ève", "nom": "O'Brien"}
        assert render("%samAccountName%", row, max_length=20) == "marieeveobrien"

    def test_existing_value_is_used(self):
        row = {"prenom": "Jean", "nom": "Dupont", "sAMAccountName": "jdupont"}
        assert render("%sAMAccountName%", row) == "jdupont"

    def test_capitalized_name_columns(self):
        row = {"Prenom": "Hélène", "Nom": "Durand"}
        assert render("%sAMAccountName%", row) == "helenedurand"

    def test_last_name_is_truncated_to_fit(self):
        result = generate_sam_account_name("Marie-Ève", "O'Brien", max_length=10)
        assert result == "marieeveob"
        assert len(result) == 10

    def test_long_first_name_is_truncated(self):
        result = generate_sam_account_name("Maximilien-Alexandre", "Dupont", max_length=10)
        assert result == "maximilien"

    def test_never_exceeds_max_length(self):
        result = generate_sam_account_name("Jean-Christophe", "de la Fontaine", max_length=20)
        assert len(result) <= 20
        assert result.startswith("jeanchristophe")

    def test_transformation_applies_to_synthesized_value(self):
        row = {"prenom": "Jean", "nom": "Dupont"}
        assert render("%sAMAccountName:uppercase%", row) == "JEANDUPONT"

    def test_empty_names(self):
        assert generate_sam_account_name(None, None) == ""


class TestTransformations:
    """Tests for apply_transformation()."""

    @pytest.mark.parametrize("name,value,expected", [
        ("uppercase", "dupont", "DUPONT"),
        ("lowercase", "JEAN", "jean"),
        ("trim", "  6A ", "6A"),
        ("capitalize", "jEAN", "Jean"),
        ("first", "Jean", "J"),
    ])
    def test_known_transformations(self, name, value, expected):
        assert apply_transformation(value, name) == expected

    def test_first_of_empty_value(self):
        assert apply_transformation("", "first") == ""

    def test_no_transformation(self):
        assert apply_transformation("Jean", None) == "Jean"
        assert apply_transformation("Jean", "") == "Jean"

    def test_resolve_token_splits_column_and_transformation(self):
        assert resolve_token("nom:uppercase", {"nom": "dupont"}) == "DUPONT"


class TestCheckTemplate:
    """Tests for check_template()."""

    def test_valid_template(self):
        check = check_template("%prenom:lowercase%.%nom%")
        assert check.is_valid is True
        assert check.error is None

    def test_empty_template_is_valid(self):
        assert check_template("").is_valid is True

    def test_odd_percent_count(self):
        check = check_template("%prenom")
        assert check.is_valid is False
        assert "%" in check.error

    def test_unknown_transformation(self):
        check = check_template("%prenom:frobnicate%")
        assert check.is_valid is False
        assert "frobnicate" in check.error

    def test_two_colons(self):
        check = check_template("%prenom:lowercase:trim%")
        assert check.is_valid is False
        assert "prenom:lowercase:trim" in check.error

    def test_extract_tokens_keeps_order_and_repeats(self):
        assert extract_tokens("%a%-%b:trim%-%a%") == ["a", "b:trim", "a"]

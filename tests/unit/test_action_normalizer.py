"""
Tests for action_normalizer — Action type identity and display lookup.
"""

import pytest

from models.actions import ActionType
from services.action_normalizer import (
    action_type_catalog,
    display,
    is_disabled,
    is_legacy_code,
    normalize,
    normalize_set,
    same_action_type,
)


class TestNormalize:
    """Tests for normalize()."""

    @pytest.mark.parametrize("raw,expected", [
        (1, "1"),
        ("1", "1"),
        ("01", "1"),
        (" 7", "7"),
        ("1 - CreateUser", "1"),
        (2.0, "2"),
        ("CREATE_USER", "CREATE_USER"),
        (ActionType.DELETE_USER, "DELETE_USER"),
        (None, ""),
    ])
    def test_canonical_identity(self, raw, expected):
        assert normalize(raw) == expected

    def test_strings_are_not_case_folded(self):
        assert normalize("create_user") == "create_user"

    def test_number_and_numeric_string_are_equal(self):
        assert same_action_type(1, "1") is True
        assert same_action_type("03", 3) is True

    def test_codes_and_names_are_not_cross_mapped(self):
        assert same_action_type(1, "CREATE_USER") is False

    def test_is_legacy_code(self):
        assert is_legacy_code(5) is True
        assert is_legacy_code("12") is True
        assert is_legacy_code("CREATE_OU") is False
        assert is_legacy_code(None) is False

    def test_normalize_set(self):
        assert normalize_set([1, "1", "CREATE_USER", ActionType.CREATE_USER]) == {"1", "CREATE_USER"}
        assert normalize_set(None) == set()


class TestIsDisabled:
    """Tests for is_disabled()."""

    def test_numeric_forms_match(self):
        assert is_disabled("3", [3]) is True
        assert is_disabled(3, ["3"]) is True

    def test_enum_matches_string(self):
        assert is_disabled(ActionType.DELETE_OU, ["DELETE_OU"]) is True

    def test_not_disabled(self):
        assert is_disabled("CREATE_USER", ["DELETE_USER"]) is False
        assert is_disabled("CREATE_USER", None) is False


class TestDisplay:
    """Tests for display()."""

    def test_canonical_name(self):
        entry = display("CREATE_USER")
        assert entry.name == "Create user"
        assert entry.color == "green"

    def test_legacy_code(self):
        assert display(1).name == "Create user"
        assert display("5").name == "Create OU"
        assert display("1 - CreateUser").name == "Create user"

    def test_extended_codes(self):
        assert display(41).name == "Create OU"
        assert display(99).name == "Error"

    def test_unknown_code_is_generic(self):
        entry = display(77)
        assert entry.name == "Action 77"
        assert entry.icon == "⚙️"
        assert entry.color == "default"

    def test_synonym(self):
        assert display("CREATE_ORGANIZATIONAL_UNIT").name == "Create OU"

    def test_compact_and_camel_spellings(self):
        assert display("CreateUser").name == "Create user"
        assert display("create user").name == "Create user"

    def test_unknown_string_is_humanized(self):
        entry = display("SYNC_PHOTO")
        assert entry.name == "SYNC PHOTO"
        assert entry.color == "default"

    def test_empty(self):
        assert display(None).name == "Unknown action"


class TestCatalog:
    """Tests for action_type_catalog()."""

    def test_covers_every_action_type(self):
        catalog = action_type_catalog()
        assert [entry["actionType"] for entry in catalog] == [t.value for t in ActionType]

    def test_entries_carry_display(self):
        entry = action_type_catalog()[0]
        assert set(entry) == {"actionType", "name", "icon", "color"}

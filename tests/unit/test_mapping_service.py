"""
Tests for mapping_service — Validation, display items, previews and the reducer.
"""

from config.ad_attributes import MAPPING_PRESETS, REQUIRED_USER_ATTRIBUTES
from models.mapping import AttributeDefinition, MappingDisplayItem
from services.mapping_service import (
    ApplyPreset,
    RemoveAttribute,
    RenameAttribute,
    SetSampleRow,
    SetTemplate,
    SetTransformation,
    default_attribute_catalog,
    derive_state,
    extract_columns,
    extract_transformation,
    from_display_items,
    generate_previews,
    reduce_mapping,
    set_transformation,
    to_display_items,
    validate_mapping,
)


class TestTemplateHelpers:
    """Tests for extract_columns / extract_transformation / set_transformation."""

    def test_columns_are_unique_in_first_seen_order(self):
        assert extract_columns("%prenom:lowercase%.%nom%@%prenom%") == ["prenom", "nom"]

    def test_columns_of_literal(self):
        assert extract_columns("Lycée") == []
        assert extract_columns(None) == []

    def test_transformation_of_first_token_only(self):
        assert extract_transformation("%nom:UPPERCASE%") == "uppercase"
        assert extract_transformation("%nom%.%prenom:lowercase%") is None

    def test_set_transformation_on_first_token(self):
        assert set_transformation("%nom%.%prenom%", "uppercase") == "%nom:uppercase%.%prenom%"

    def test_set_transformation_replaces_existing(self):
        assert set_transformation("%nom:lowercase%", "trim") == "%nom:trim%"

    def test_strip_transformation(self):
        assert set_transformation("%nom:lowercase%", None) == "%nom%"

    def test_literal_template_unchanged(self):
        assert set_transformation("Lycée", "uppercase") == "Lycée"


class TestValidateMapping:
    """Tests for validate_mapping()."""

    def test_unknown_transformation_is_reported(self):
        result = validate_mapping({"mail": "%prenom:frobnicate%"})
        assert result.is_valid is False
        assert any("frobnicate" in error for error in result.errors)

    def test_missing_required_attribute(self):
        result = validate_mapping({"mail": "%email%"}, ["sAMAccountName"])
        assert result.is_valid is False
        assert result.errors == ["Required attribute 'sAMAccountName' is missing or empty"]

    def test_blank_required_template(self):
        result = validate_mapping({"sAMAccountName": "   "}, ["sAMAccountName"])
        assert result.is_valid is False

    def test_valid_preset(self):
        result = validate_mapping(MAPPING_PRESETS["default"], REQUIRED_USER_ATTRIBUTES)
        assert result.is_valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_literal_values_are_not_checked(self):
        assert validate_mapping({"company": "Lycée"}).is_valid is True

    def test_empty_mapping(self):
        assert validate_mapping({}).is_valid is True
        assert validate_mapping(None).is_valid is True


class TestDisplayItems:
    """Tests for to_display_items / from_display_items."""

    def test_projection(self):
        items = to_display_items({"mail": "%prenom%.%nom%@x.fr", "company": "Lycée"}, ["mail"])

        assert [i.ad_attribute for i in items] == ["mail", "company"]
        assert items[0].is_template is True
        assert items[0].estimated_columns == ["prenom", "nom"]
        assert items[0].is_required is True
        assert items[1].is_template is False
        assert items[1].is_required is False

    def test_required_unknown_without_list(self):
        items = to_display_items({"mail": "%email%"})
        assert items[0].is_required is None

    def test_invalid_template_carries_validation(self):
        items = to_display_items({"mail": "%prenom:frobnicate%"})
        assert items[0].validation.is_valid is False

    def test_round_trip(self):
        mapping = dict(MAPPING_PRESETS["school"])
        assert from_display_items(to_display_items(mapping)) == mapping

    def test_incomplete_rows_are_skipped(self):
        items = [
            {"adAttribute": "mail", "template": "%email%"},
            {"adAttribute": "", "template": "%nom%"},
            {"ad_attribute": "sn", "template": ""},
            MappingDisplayItem(ad_attribute="cn", template="%prenom% %nom%"),
        ]
        assert from_display_items(items) == {"mail": "%email%", "cn": "%prenom% %nom%"}


class TestPreviews:
    """Tests for generate_previews()."""

    def test_renders_and_samples_first_column(self):
        previews = generate_previews(
            {"mail": "%prenom:lowercase%.%nom:lowercase%@lycee.fr"},
            {"prenom": "Jean", "nom": "Dupont"},
            default_attribute_catalog(),
        )

        assert len(previews) == 1
        assert previews[0].transformed_value == "jean.dupont@lycee.fr"
        assert previews[0].sample_value == "Jean"
        assert previews[0].is_valid is True
        assert previews[0].warnings is None

    def test_unknown_attribute_warns(self):
        previews = generate_previews({"favoriteColor": "%couleur%"}, {"couleur": "bleu"}, ["mail"])
        assert previews[0].is_valid is True
        assert "favoriteColor" in previews[0].warnings[0]

    def test_required_attribute_rendering_empty(self):
        known = [AttributeDefinition(name="displayName", is_required=True)]
        previews = generate_previews({"displayName": "%absent%"}, {"prenom": "Jean"}, known)
        assert previews[0].is_valid is False
        assert "displayName" in previews[0].error

    def test_invalid_syntax(self):
        previews = generate_previews({"mail": "%prenom:frobnicate%"}, {"prenom": "Jean"}, ["mail"])
        assert previews[0].is_valid is False
        assert "frobnicate" in previews[0].error
        assert previews[0].transformed_value == "Jean"


class TestReducer:
    """Tests for reduce_mapping()."""

    def _state(self, mapping=None, row=None):
        return derive_state(
            mapping or {"sAMAccountName": "%prenom:lowercase%"},
            row or {"prenom": "Jean", "nom": "Dupont"},
            ["sAMAccountName"],
        )

    def test_set_template_recomputes_every_view(self):
        state = reduce_mapping(self._state(), SetTemplate(ad_attribute="sn", template="%nom:uppercase%"))

        assert state.mapping == {"sAMAccountName": "%prenom:lowercase%", "sn": "%nom:uppercase%"}
        assert [i.ad_attribute for i in state.display_items] == ["sAMAccountName", "sn"]
        assert [p.transformed_value for p in state.previews] == ["jean", "DUPONT"]
        assert state.validation.is_valid is True

    def test_remove_required_attribute_invalidates(self):
        state = reduce_mapping(self._state(), RemoveAttribute(ad_attribute="sAMAccountName"))
        assert state.mapping == {}
        assert state.validation.is_valid is False
        assert state.previews == []

    def test_rename_keeps_position(self):
        state = self._state({"a": "%x%", "b": "%y%", "c": "%z%"})
        state = reduce_mapping(state, RenameAttribute(old_attribute="b", new_attribute="mail"))
        assert list(state.mapping) == ["a", "mail", "c"]

    def test_rename_onto_existing_is_ignored(self):
        state = self._state({"a": "%x%", "b": "%y%"})
        state = reduce_mapping(state, RenameAttribute(old_attribute="a", new_attribute="b"))
        assert state.mapping == {"a": "%x%", "b": "%y%"}

    def test_set_transformation(self):
        state = reduce_mapping(
            self._state(),
            SetTransformation(ad_attribute="sAMAccountName", transformation="uppercase"),
        )
        assert state.mapping["sAMAccountName"] == "%prenom:uppercase%"
        assert state.previews[0].transformed_value == "JEAN"

    def test_set_sample_row(self):
        state = reduce_mapping(self._state(), SetSampleRow(sample_row={"prenom": "Marie"}))
        assert state.sample_row == {"prenom": "Marie"}
        assert state.previews[0].transformed_value == "marie"

    def test_apply_preset(self):
        state = reduce_mapping(self._state(), ApplyPreset(preset="enterprise"))
        assert state.mapping == MAPPING_PRESETS["enterprise"]
        assert len(state.display_items) == len(MAPPING_PRESETS["enterprise"])

    def test_unknown_preset_keeps_mapping(self):
        before = self._state()
        after = reduce_mapping(before, ApplyPreset(preset="nope"))
        assert after.mapping == before.mapping

    def test_input_state_is_not_mutated(self):
        before = self._state()
        reduce_mapping(before, SetTemplate(ad_attribute="sn", template="%nom%"))
        assert "sn" not in before.mapping

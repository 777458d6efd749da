import pytest
from pydantic import ValidationError

from schemas import (
    FieldDefinition,
    SettingsUpdate,
    missing_required_fields,
    slugify,
    unique_slug,
    validate_section_values,
)

HERO = {
    "section_id": "hero",
    "name": "Hero",
    "is_required": True,
    "fields": [
        {"key": "groomName", "label": "Groom Name", "validation": {"required": True}},
        {"key": "tagline", "label": "Tagline"},
    ],
}
STORY = {
    "section_id": "story",
    "name": "Story",
    "is_required": False,
    "fields": [{"key": "story", "label": "Story", "validation": {"required": True}}],
}


def test_slugs():
    assert slugify("  Ann & Bob's Wedding!  ") == "ann-bob-s-wedding"
    slug = unique_slug("Ann & Bob")
    assert slug.startswith("ann-bob-")
    assert unique_slug("Ann & Bob") != slug


def test_missing_required_fields_only_checks_visible_required_sections():
    contents = {"hero": {"groomName": "", "tagline": ""}, "story": {}}
    visibility = {"hero": True, "story": True}
    assert missing_required_fields([HERO, STORY], contents, visibility) == ["Hero: Groom Name"]
    assert missing_required_fields([HERO, STORY], contents, {"hero": False}) == []


def test_missing_required_fields_accepts_falsy_non_blank_values():
    assert missing_required_fields([HERO], {"hero": {"groomName": 0}}, {"hero": True}) == []


def test_validate_section_values():
    fields = [
        FieldDefinition(key="code", type="text", label="Code",
                        validation={"pattern": r"[A-Z]{3}", "max_length": 3}).model_dump(),
        FieldDefinition(key="guests", type="number", label="Guests", validation={"min": 1, "max": 10}).model_dump(),
        FieldDefinition(key="meal", type="select", label="Meal",
                        options=[{"value": "fish", "label": "Fish"}, {"value": "veg", "label": "Veg"}]).model_dump(),
    ]
    assert validate_section_values(fields, {"code": "ABC", "guests": 3, "meal": "fish"}) == []
    assert validate_section_values(fields, {"code": "", "guests": None}) == []
    assert validate_section_values(fields, {"code": "abcd", "guests": 11, "meal": "beef"}) == [
        "Code must be at most 3 characters",
        "Code has an invalid format",
        "Guests must be at most 10",
        "Meal must be one of: fish, veg",
    ]


def test_repeater_rows_are_checked():
    fields = [FieldDefinition(
        key="events", type="repeater", label="Events",
        fields=[{"key": "time", "type": "text", "label": "Time", "validation": {"max_length": 5}}],
    ).model_dump()]
    assert validate_section_values(fields, {"events": [{"time": "10:00"}, {"time": "late night"}]}) == [
        "Events #2: Time must be at most 5 characters",
    ]
    assert validate_section_values(fields, {"events": "nope"}) == ["Events must be a list"]


def test_field_pattern_must_compile():
    with pytest.raises(ValidationError):
        FieldDefinition(key="x", type="text", label="X", validation={"pattern": "("})


def test_settings_update_merges_sent_fields_only():
    current = {"enable_rsvp": False, "max_highlighted_wishes": 3, "timezone": "Asia/Jakarta"}
    merged = SettingsUpdate(max_highlighted_wishes=7).merge_into(current)
    assert merged["enable_rsvp"] is False
    assert merged["max_highlighted_wishes"] == 7
    assert merged["timezone"] == "Asia/Jakarta"
    assert merged["require_wish_approval"] is True


def test_settings_reject_negative_highlight_cap():
    with pytest.raises(ValidationError):
        SettingsUpdate(max_highlighted_wishes=-1)

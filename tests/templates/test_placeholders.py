from packet_engine.templates.placeholders import (
    extract_placeholders,
    format_value,
    has_placeholders,
    resolve_path,
    substitute,
)

CONTEXT = {
    "client": {"full_name": "Jordan", "goal": "lose weight", "tags": ["a", "b"]},
    "calculated": {"daily_calories": 2232, "bmi": 25.8, "ratio": 2.0, "macros": [{"name": "Protein"}]},
    "responses": {"include-nutrition": "yes"},
}


class TestResolvePath:
    def test_nested_lookup(self):
        assert resolve_path(CONTEXT, "client.full_name") == "Jordan"
        assert resolve_path(CONTEXT, " responses.include-nutrition ") == "yes"

    def test_list_index(self):
        assert resolve_path(CONTEXT, "calculated.macros.0.name") == "Protein"
        assert resolve_path(CONTEXT, "calculated.macros.5.name") is None

    def test_missing_path_returns_default(self):
        assert resolve_path(CONTEXT, "client.unknown") is None
        assert resolve_path(CONTEXT, "client.full_name.first", default="?") == "?"


class TestFormatValue:
    def test_numbers(self):
        assert format_value(2232) == "2232"
        assert format_value(2.0) == "2"
        assert format_value(25.8) == "25.80"

    def test_collections_render_as_json(self):
        assert format_value(["a", "b"]) == '["a", "b"]'
        assert format_value({"k": 1}) == '{"k": 1}'

    def test_none_and_bool(self):
        assert format_value(None) == ""
        assert format_value(True) == "Yes"


class TestSubstitute:
    def test_multiple_placeholders(self):
        text = "Hi {{client.full_name}}, eat {{ calculated.daily_calories }} kcal to {{client.goal}}."
        assert substitute(text, CONTEXT) == "Hi Jordan, eat 2232 kcal to lose weight."

    def test_missing_path_renders_empty(self):
        assert substitute("[{{client.nickname}}]", CONTEXT) == "[]"

    def test_substituted_values_are_not_rescanned(self):
        context = {"client": {"full_name": "{{client.goal}}", "goal": "x"}}
        assert substitute("{{client.full_name}}", context) == "{{client.goal}}"

    def test_text_without_placeholders_is_unchanged(self):
        assert substitute("plain text", CONTEXT) == "plain text"
        assert substitute("", CONTEXT) == ""


def test_placeholder_discovery():
    text = "{{client.full_name}} {{calculated.bmi}} {{ client.full_name }}"
    assert has_placeholders(text)
    assert not has_placeholders("no braces")
    assert extract_placeholders(text) == ["client.full_name", "calculated.bmi"]

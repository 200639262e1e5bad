from packet_engine.templates.renderer import render_template
from packet_engine.templates.schemas import (
    ListBlock,
    TableBlock,
    TemplateContext,
    TemplateDefinition,
    TextBlock,
)


def make_template(sections: list[dict]) -> TemplateDefinition:
    return TemplateDefinition.model_validate(
        {"id": "t-1", "name": "Test", "document_type": "NUTRITION", "sections": sections}
    )


CONTEXT = TemplateContext(
    client={"full_name": "Jordan", "gender": "female"},
    calculated={
        "daily_calories": 2232,
        "macros": [
            {"name": "Protein", "grams": 180, "calories": 720, "percentage": 32},
            {"name": "Fats", "grams": 69, "calories": 625, "percentage": 28},
        ],
        "meal_timing": ["Breakfast", "Lunch"],
        "volume_guidance": {"sets_per_exercise": "3-4", "reps_per_set": "8-12"},
    },
    responses={"include-nutrition": "yes"},
)


class TestRenderTemplate:
    def test_sections_sorted_and_conditions_applied(self):
        template = make_template(
            [
                {"id": "second", "title": "Second", "order": 2, "blocks": [{"id": "b", "content": "two"}]},
                {
                    "id": "hidden",
                    "title": "Hidden",
                    "order": 0,
                    "condition": {"type": "equals", "path": "client.gender", "value": "male"},
                },
                {"id": "first", "title": "Hi {{client.full_name}}", "order": 1},
            ]
        )

        content = render_template(template, CONTEXT)

        assert [section.id for section in content.sections] == ["first", "second"]
        assert content.sections[0].title == "Hi Jordan"

    def test_false_block_condition_drops_block(self):
        template = make_template(
            [
                {
                    "id": "s",
                    "title": "S",
                    "blocks": [
                        {"id": "keep", "content": "{{calculated.daily_calories}} kcal", "order": 2},
                        {
                            "id": "drop",
                            "content": "never",
                            "order": 1,
                            "condition": {"type": "equals", "question_id": "include-nutrition", "value": "no"},
                        },
                    ],
                }
            ]
        )

        blocks = render_template(template, CONTEXT).sections[0].blocks

        assert [block.id for block in blocks] == ["keep"]
        assert isinstance(blocks[0], TextBlock)
        assert blocks[0].content == "2232 kcal"

    def test_table_from_data_source(self):
        template = make_template(
            [
                {
                    "id": "s",
                    "title": "Macros",
                    "blocks": [
                        {
                            "id": "macro-table",
                            "type": "table",
                            "data_source": "calculated.macros",
                            "formatting": {"headers": ["Nutrient", "Grams"], "columns": ["name", "grams"]},
                        }
                    ],
                }
            ]
        )

        block = render_template(template, CONTEXT).sections[0].blocks[0]

        assert isinstance(block, TableBlock)
        assert block.headers == ["Nutrient", "Grams"]
        assert block.rows == [["Protein", "180"], ["Fats", "69"]]

    def test_table_from_mapping_derives_headers(self):
        template = make_template(
            [{"id": "s", "title": "S", "blocks": [{"id": "v", "type": "table", "data_source": "calculated.volume_guidance"}]}]
        )

        block = render_template(template, CONTEXT).sections[0].blocks[0]

        assert block.headers == ["Sets Per Exercise", "Reps Per Set"]
        assert block.rows == [["3-4", "8-12"]]

    def test_lists_from_data_source_and_literal_items(self):
        template = make_template(
            [
                {
                    "id": "s",
                    "title": "S",
                    "blocks": [
                        {"id": "timing", "type": "list", "data_source": "calculated.meal_timing", "order": 1},
                        {
                            "id": "literal",
                            "type": "list",
                            "order": 2,
                            "items": ["Name: {{client.full_name}}"],
                            "formatting": {"list_style": "numbered"},
                        },
                        {"id": "missing", "type": "list", "data_source": "calculated.nothing", "order": 3},
                    ],
                }
            ]
        )

        timing, literal, missing = render_template(template, CONTEXT).sections[0].blocks

        assert isinstance(timing, ListBlock)
        assert timing.items == ["Breakfast", "Lunch"]
        assert literal.items == ["Name: Jordan"]
        assert literal.style == "numbered"
        assert missing.items == []

    def test_rendering_is_idempotent(self):
        template = make_template(
            [{"id": "s", "title": "{{client.full_name}}", "blocks": [{"id": "t", "type": "table", "data_source": "calculated.macros"}]}]
        )

        first = render_template(template, CONTEXT).model_dump(mode="json")
        second = render_template(template, CONTEXT).model_dump(mode="json")

        assert first == second

    def test_rendered_content_serializes_with_block_types(self):
        template = make_template(
            [
                {
                    "id": "s",
                    "title": "S",
                    "blocks": [{"id": "h", "type": "heading", "content": "Title"}, {"id": "d", "type": "divider"}],
                }
            ]
        )

        payload = render_template(template, CONTEXT).model_dump(mode="json")

        assert [block["type"] for block in payload["sections"][0]["blocks"]] == ["heading", "divider"]

from datetime import date

from packet_engine.db.models import Client
from packet_engine.generation.context import age_on, build_context, normalize_client, parse_responses

TODAY = date(2025, 3, 1)


def client(**fields) -> Client:
    defaults = {"id": "c-1", "owner_id": "o-1", "full_name": None, "email": None, "profile": {}, "intake_responses": {}}
    defaults.update(fields)
    return Client(**defaults)


class TestNormalizeClient:
    def test_defaults_fill_blanks(self):
        normalized = normalize_client(client(profile={"injuries": "  "}), TODAY)

        assert normalized["full_name"] == "Client"
        assert normalized["injuries"] == "none reported"
        assert normalized["diet_type"] == "no restrictions"
        assert normalized["age"] == 30
        assert normalized["medical_clearance"] == "No"

    def test_profile_values_are_kept(self):
        normalized = normalize_client(
            client(full_name="Sam Lee", profile={"goal": "build muscle", "medical_clearance": True}),
            TODAY,
        )

        assert normalized["full_name"] == "Sam Lee"
        assert normalized["goal"] == "build muscle"
        assert normalized["medical_clearance"] == "Yes"

    def test_main_fitness_goals_stand_in_for_goal(self):
        normalized = normalize_client(client(profile={"main_fitness_goals": ["endurance", "energy"]}), TODAY)
        assert normalized["goal"] == "endurance, energy"

    def test_age_from_date_of_birth(self):
        normalized = normalize_client(client(profile={"date_of_birth": "1990-06-15"}), TODAY)
        assert normalized["age"] == 34

    def test_count_options_resolve_to_lower_bound(self):
        normalized = normalize_client(
            client(profile={"meals_per_day": "4-5", "days_per_week": "6+", "session_duration": "about an hour"}),
            TODAY,
        )

        assert normalized["meals_per_day"] == 4
        assert normalized["days_per_week"] == 6
        assert normalized["session_duration"] == 60


def test_age_on_handles_birthdays_and_garbage():
    assert age_on("1990-03-01", TODAY) == 35
    assert age_on("1990-03-02", TODAY) == 34
    assert age_on("not a date", TODAY) is None
    assert age_on("2030-01-01", TODAY) is None


def test_parse_responses_accepts_json_strings():
    assert parse_responses('{"include-nutrition": "yes"}') == {"include-nutrition": "yes"}
    assert parse_responses("not json") == {}
    assert parse_responses("[1, 2]") == {}
    assert parse_responses(None) == {}


def test_build_context_combines_namespaces():
    context = build_context(
        client(profile={"weight_lbs": 180, "height_inches": 70, "age": 34, "gender": "male", "goal": "lose weight"},
               intake_responses='{"season-phase": "pre-season"}'),
        TODAY,
    )

    assert context.client["weight_lbs"] == 180
    assert context.calculated["daily_calories"] == 2232
    assert context.responses == {"season-phase": "pre-season"}

from packet_engine.db.models import Packet
from packet_engine.packets.enums import Classification, DocumentType, PacketStatus
from packet_engine.packets.routing import (
    get_client_packets,
    get_packet_status,
    required_document_types,
    route_packets,
)


class TestRequiredDocumentTypes:
    def test_fixed_paths(self):
        assert required_document_types(Classification.NUTRITION_ONLY, {}) == [DocumentType.NUTRITION]
        assert required_document_types(Classification.WORKOUT_ONLY, {}) == [DocumentType.WORKOUT]
        assert required_document_types(Classification.YOUTH, {}) == [DocumentType.YOUTH]
        assert required_document_types("FULL_PROGRAM", {}) == [DocumentType.NUTRITION, DocumentType.WORKOUT]

    def test_athlete_nutrition_opt_in(self):
        assert required_document_types("ATHLETE_PERFORMANCE", {"include-nutrition": "yes"}) == [
            DocumentType.PERFORMANCE,
            DocumentType.NUTRITION,
        ]
        assert required_document_types("ATHLETE_PERFORMANCE", {"include-nutrition": "no"}) == [DocumentType.PERFORMANCE]
        assert required_document_types("ATHLETE_PERFORMANCE", {}) == [DocumentType.PERFORMANCE]

    def test_wellness_focus_adds_workout_and_nutrition(self):
        types = required_document_types("GENERAL_WELLNESS", {"wellness-focus": ["strength", "energy"]})
        assert types == [DocumentType.WELLNESS, DocumentType.WORKOUT, DocumentType.NUTRITION]

    def test_wellness_focus_without_matches(self):
        assert required_document_types("GENERAL_WELLNESS", {"wellness-focus": ["stress"]}) == [DocumentType.WELLNESS]

    def test_wellness_focus_never_duplicates(self):
        types = required_document_types(
            "GENERAL_WELLNESS",
            {"wellness-focus": ["strength", "endurance", "mobility", "weight", "energy"]},
        )
        assert types == [DocumentType.WELLNESS, DocumentType.WORKOUT, DocumentType.NUTRITION]

    def test_scalar_wellness_focus_is_ignored(self):
        """A single string is not treated as a list of focus areas."""
        assert required_document_types("GENERAL_WELLNESS", {"wellness-focus": "strength"}) == [DocumentType.WELLNESS]

    def test_special_situation_nutrition_keyword_is_case_insensitive(self):
        answers = {"recovery-goals": "Improve NUTRITION and mobility after surgery"}
        assert required_document_types("SPECIAL_SITUATION", answers) == [DocumentType.RECOVERY, DocumentType.NUTRITION]

    def test_special_situation_non_string_goals(self):
        assert required_document_types("SPECIAL_SITUATION", {"recovery-goals": ["nutrition"]}) == [DocumentType.RECOVERY]

    def test_unknown_classification_falls_back_to_intro(self):
        assert required_document_types("SOMETHING_NEW", {}) == [DocumentType.INTRO]
        assert required_document_types(None, None) == [DocumentType.INTRO]


class TestRoutePackets:
    def test_creates_pending_packets(self, db_session, make_client):
        client = make_client(classification="FULL_PROGRAM")

        result = route_packets(client.id, "FULL_PROGRAM", {})

        assert result.document_types == [DocumentType.NUTRITION, DocumentType.WORKOUT]
        assert len(result.packet_ids) == 2
        packets = db_session.query(Packet).filter(Packet.client_id == client.id).all()
        assert {packet.document_type for packet in packets} == {"NUTRITION", "WORKOUT"}
        assert all(packet.status == PacketStatus.PENDING.value for packet in packets)
        assert all(packet.retry_count == 0 and packet.version == 1 for packet in packets)

    def test_lookup_helpers(self, db_session, make_client):
        client = make_client(classification="YOUTH")
        result = route_packets(client.id, "YOUTH", {})

        assert [packet.id for packet in get_client_packets(client.id)] == result.packet_ids
        assert get_packet_status(result.packet_ids[0]) == PacketStatus.PENDING
        assert get_packet_status("missing") is None

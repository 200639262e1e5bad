import pytest

from packet_engine.db.models import AuditLog
from packet_engine.generation.orchestrator import PacketGenerationService
from packet_engine.notifications.channels import CLIENT_PACKET_READY
from packet_engine.notifications.service import NotificationService
from packet_engine.packets.errors import ClientNotFoundError, TemplateNotFoundError
from packet_engine.queue.error_handler import ErrorHandler


@pytest.fixture
def service(pdf_exporter, channel, clock):
    return PacketGenerationService(
        pdf_exporter=pdf_exporter,
        notifier=NotificationService(channel=channel, admin_emails=["ops@example.com"], clock=clock),
        error_handler=ErrorHandler(clock=clock),
        clock=clock,
    )


class TestGeneratePacket:
    def test_renders_nutrition_packet(self, db_session, make_client, sample_profile, service):
        client = make_client(classification="NUTRITION_ONLY", profile=sample_profile)

        content = service.generate_packet(client.id, "NUTRITION")

        overview = content.section("overview")
        assert overview.title == "Your Nutrition Overview"
        calorie_block = next(block for block in overview.blocks if block.id == "calorie-target")
        assert "2232 calories" in calorie_block.content
        assert content.supplements["calorie_breakdown"]["target_calories"] == 2232
        assert content.metadata["document_type"] == "NUTRITION"
        assert content.metadata["template_id"] == "nutrition-default"

    def test_conditional_section_follows_profile(self, db_session, make_client, service):
        without = make_client(profile={})
        with_allergy = make_client(profile={"food_allergies": "peanuts"})

        assert service.generate_packet(without.id, "NUTRITION").section("restrictions") is None
        assert service.generate_packet(with_allergy.id, "NUTRITION").section("restrictions") is not None

    def test_missing_client(self, db_session, service):
        with pytest.raises(ClientNotFoundError, match="Client not found: nope"):
            service.generate_packet("nope", "NUTRITION")


class TestOrchestrate:
    def test_success_persists_ready_packet(self, db_session, make_client, make_packet, reload, service, pdf_exporter, channel):
        client = make_client(classification="WORKOUT_ONLY", profile={"days_per_week": 3})
        packet = make_packet(client, "WORKOUT", status="GENERATING")

        service.orchestrate(client.id, packet.id, "WORKOUT")

        stored = reload(packet.id)
        assert stored.status == "READY"
        assert stored.pdf_url == "https://files.example.com/packet.pdf"
        assert stored.generation_method == "TEMPLATE"
        assert stored.content["sections"][0]["title"] == "Your Training Program Overview"
        assert stored.version == 1
        assert pdf_exporter.calls[0]["options"].title == "Workout Plan - Jordan Rivera"
        assert len(channel.of_kind(CLIENT_PACKET_READY)) == 1

    def test_pdf_failure_does_not_fail_generation(self, db_session, make_client, make_packet, reload, channel, clock, failing_pdf_exporter):
        service = PacketGenerationService(
            pdf_exporter=failing_pdf_exporter,
            notifier=NotificationService(channel=channel, admin_emails=[], clock=clock),
            clock=clock,
        )
        client = make_client()
        packet = make_packet(client, "NUTRITION", status="GENERATING")

        service.orchestrate(client.id, packet.id, "NUTRITION")

        stored = reload(packet.id)
        assert stored.status == "READY"
        assert stored.pdf_url is None

    def test_template_failure_is_recorded_and_raised(self, db_session, make_client, make_packet, reload, pdf_exporter, channel, clock):
        def missing_template(document_type, classification):
            raise TemplateNotFoundError(document_type)

        service = PacketGenerationService(
            template_resolver=missing_template,
            pdf_exporter=pdf_exporter,
            notifier=NotificationService(channel=channel, admin_emails=[], clock=clock),
            clock=clock,
        )
        client = make_client()
        packet = make_packet(client, "NUTRITION", status="GENERATING")

        with pytest.raises(TemplateNotFoundError):
            service.orchestrate(client.id, packet.id, "NUTRITION")

        stored = reload(packet.id)
        assert stored.status == "FAILED"
        assert stored.error_kind == "TEMPLATE_ERROR"
        assert stored.retry_count == 1
        assert stored.last_error == "Template not found for packet type: NUTRITION"
        assert db_session.query(AuditLog).filter(AuditLog.resource_id == packet.id).count() == 1
        assert channel.sent == []

    def test_result_discarded_when_packet_no_longer_generating(self, db_session, make_client, make_packet, reload, service, channel):
        client = make_client()
        packet = make_packet(client, "NUTRITION", status="FAILED", retry_count=1)

        service.orchestrate(client.id, packet.id, "NUTRITION")

        stored = reload(packet.id)
        assert stored.status == "FAILED"
        assert stored.content is None
        assert channel.sent == []

    def test_stale_attempt_result_is_discarded(self, db_session, make_client, make_packet, reload, service, channel):
        client = make_client()
        packet = make_packet(client, "NUTRITION", status="GENERATING", retry_count=1)

        service.orchestrate(client.id, packet.id, "NUTRITION", attempt=0)

        stored = reload(packet.id)
        assert stored.status == "GENERATING"
        assert stored.content is None
        assert channel.sent == []

    def test_stale_attempt_failure_is_discarded(self, db_session, make_client, make_packet, reload, pdf_exporter, channel, clock):
        def unreachable_store(document_type, classification):
            raise ConnectionError("template store unreachable")

        service = PacketGenerationService(
            template_resolver=unreachable_store,
            pdf_exporter=pdf_exporter,
            notifier=NotificationService(channel=channel, admin_emails=[], clock=clock),
            clock=clock,
        )
        client = make_client()
        packet = make_packet(client, "NUTRITION", status="READY", retry_count=1, content={"sections": []})

        with pytest.raises(ConnectionError):
            service.orchestrate(client.id, packet.id, "NUTRITION", attempt=0)

        stored = reload(packet.id)
        assert stored.status == "READY"
        assert stored.retry_count == 1
        assert db_session.query(AuditLog).filter(AuditLog.resource_id == packet.id).count() == 0


def test_meal_count_options_are_accepted(db_session, make_client, sample_profile, service):
    client = make_client(classification="NUTRITION_ONLY", profile={**sample_profile, "meals_per_day": "4-5"})

    content = service.generate_packet(client.id, "NUTRITION")

    protein = next(macro for macro in content.supplements["macro_details"] if macro["name"] == "Protein")
    assert protein["per_meal_grams"] == 45
    assert len(content.supplements["meal_timing"]) == 4

from datetime import timedelta

import pytest

from packet_engine.packets.errors import PacketAlreadyReadyError, PacketNotFoundError
from packet_engine.queue.retry import RetryConfig, RetryService


@pytest.fixture
def retry_service(clock):
    return RetryService(config=RetryConfig(), clock=clock)


class TestCalculateDelay:
    def test_exponential_growth(self, retry_service):
        assert retry_service.calculate_delay(0) == timedelta(seconds=5)
        assert retry_service.calculate_delay(1) == timedelta(seconds=10)
        assert retry_service.calculate_delay(3) == timedelta(seconds=40)

    def test_capped_at_max_delay(self, retry_service):
        assert retry_service.calculate_delay(10) == timedelta(seconds=300)

    def test_monotonic(self, retry_service):
        delays = [retry_service.calculate_delay(count) for count in range(12)]
        assert delays == sorted(delays)


class TestShouldRetry:
    def test_retryable_failure(self, db_session, make_client, make_packet, retry_service):
        packet = make_packet(make_client(), status="FAILED", retry_count=1, error_kind="EXPORT_ERROR", last_error="PDF down")
        assert retry_service.should_retry(packet.id)

    def test_missing_and_ready_packets(self, db_session, make_client, make_packet, retry_service):
        ready = make_packet(make_client(), status="READY", retry_count=1)
        assert not retry_service.should_retry("missing")
        assert not retry_service.should_retry(ready.id)

    def test_exhausted_retries(self, db_session, make_client, make_packet, retry_service):
        packet = make_packet(make_client(), status="FAILED", retry_count=3, error_kind="UNKNOWN_ERROR")
        assert not retry_service.should_retry(packet.id)

    def test_non_retryable_kind(self, db_session, make_client, make_packet, retry_service):
        packet = make_packet(make_client(), status="FAILED", retry_count=1, error_kind="TEMPLATE_ERROR")
        assert not retry_service.should_retry(packet.id)

    def test_legacy_rows_classified_from_last_error(self, db_session, make_client, make_packet, retry_service):
        client = make_client()
        template = make_packet(client, status="FAILED", retry_count=1, last_error="Template not found for packet type: YOUTH")
        timeout = make_packet(client, "WORKOUT", status="FAILED", retry_count=1, last_error="timed out")

        assert not retry_service.should_retry(template.id)
        assert retry_service.should_retry(timeout.id)


class TestScheduleRetry:
    def test_rearms_failed_packet_with_due_time(self, db_session, make_client, make_packet, reload, retry_service, clock):
        packet = make_packet(make_client(), status="FAILED", retry_count=1, error_kind="UNKNOWN_ERROR")

        due_at = retry_service.schedule_retry(packet.id)

        stored = reload(packet.id)
        assert due_at == clock.now + timedelta(seconds=10)
        assert stored.status == "PENDING"
        assert stored.next_retry_at is not None
        assert stored.retry_count == 1

    def test_second_call_is_a_noop(self, db_session, make_client, make_packet, retry_service):
        packet = make_packet(make_client(), status="FAILED", retry_count=1)

        assert retry_service.schedule_retry(packet.id) is not None
        assert retry_service.schedule_retry(packet.id) is None

    def test_ready_packet_is_left_alone(self, db_session, make_client, make_packet, reload, retry_service):
        packet = make_packet(make_client(), status="READY", retry_count=1)

        assert retry_service.schedule_retry(packet.id) is None
        assert reload(packet.id).status == "READY"


class TestRetryNow:
    def test_resets_failure_state(self, db_session, make_client, make_packet, reload, retry_service, clock):
        packet = make_packet(
            make_client(),
            status="FAILED",
            retry_count=3,
            last_error="boom",
            error_kind="UNKNOWN_ERROR",
            admin_notified_at=clock.now,
        )

        retry_service.retry_now(packet.id, reset_count=True)

        stored = reload(packet.id)
        assert stored.status == "PENDING"
        assert stored.retry_count == 0
        assert stored.last_error is None
        assert stored.error_kind is None
        assert stored.admin_notified_at is None
        # SQLite drops the offset; all stored times are UTC
        assert stored.updated_at.replace(tzinfo=None) == clock.now.replace(tzinfo=None)

    def test_keeps_count_by_default(self, db_session, make_client, make_packet, reload, retry_service):
        packet = make_packet(make_client(), status="FAILED", retry_count=2)
        retry_service.retry_now(packet.id)
        assert reload(packet.id).retry_count == 2

    def test_errors(self, db_session, make_client, make_packet, retry_service):
        ready = make_packet(make_client(), status="READY")

        with pytest.raises(PacketNotFoundError):
            retry_service.retry_now("missing")
        with pytest.raises(PacketAlreadyReadyError):
            retry_service.retry_now(ready.id)


class TestSweepAndStats:
    def test_requeue_retryable_packets(self, db_session, make_client, make_packet, reload, retry_service):
        client = make_client()
        retryable = make_packet(client, "NUTRITION", status="FAILED", retry_count=1, error_kind="EXPORT_ERROR")
        blocked = make_packet(client, "WORKOUT", status="FAILED", retry_count=1, error_kind="DATA_ERROR")
        exhausted = make_packet(client, "WELLNESS", status="FAILED", retry_count=3)

        assert retry_service.get_retryable_packets() == [retryable.id]
        assert retry_service.requeue_retryable_packets() == 1
        assert reload(retryable.id).status == "PENDING"
        assert reload(blocked.id).status == "FAILED"
        assert reload(exhausted.id).status == "FAILED"

    def test_retry_stats(self, db_session, make_client, make_packet, retry_service):
        client = make_client()
        make_packet(client, "NUTRITION", status="FAILED", retry_count=1)
        make_packet(client, "WORKOUT", status="FAILED", retry_count=3)
        make_packet(client, "YOUTH", status="FAILED", retry_count=2, error_kind="TEMPLATE_ERROR")

        stats = retry_service.get_retry_stats()

        assert stats == {
            "total_failed": 3,
            "retryable": 1,
            "non_retryable": 2,
            "exceeded_max_retries": 1,
            "average_retry_count": 2.0,
        }

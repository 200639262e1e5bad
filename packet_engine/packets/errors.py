"""Domain errors raised by the packet pipeline.

These are business conditions, not database errors. The session context
manager re-raises them without logging them as database failures.
"""


class PacketEngineError(RuntimeError):
    """Base class for packet pipeline errors."""


class ClientNotFoundError(PacketEngineError):
    """Raised when a packet references a client that does not exist."""

    def __init__(self, client_id: str):
        super().__init__(f"Client not found: {client_id}")
        self.client_id = client_id


class TemplateNotFoundError(PacketEngineError):
    """Raised when no override or built-in template exists for a document type."""

    def __init__(self, document_type: str):
        super().__init__(f"Template not found for packet type: {document_type}")
        self.document_type = document_type


class PacketNotFoundError(PacketEngineError):
    def __init__(self, packet_id: str):
        super().__init__(f"Packet not found: {packet_id}")
        self.packet_id = packet_id


class PacketAlreadyReadyError(PacketEngineError):
    """Raised when a retry is requested for a packet that already succeeded."""

    def __init__(self, packet_id: str):
        super().__init__(f"Packet {packet_id} is already READY")
        self.packet_id = packet_id


class InvalidPacketStateError(PacketEngineError):
    """Raised when an admin action is not allowed in the packet's current status."""


class GenerationTimeoutError(PacketEngineError):
    """Raised when a generation attempt exceeds the processing timeout."""

    def __init__(self, packet_id: str, timeout_seconds: float):
        super().__init__(f"Packet generation timed out after {timeout_seconds:g}s: {packet_id}")
        self.packet_id = packet_id
        self.timeout_seconds = timeout_seconds

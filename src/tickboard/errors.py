"""Exception types for tickboard."""


class TickboardError(Exception):
    """Base class for tickboard errors."""


class NotFound(TickboardError):
    """Raised when a ticket is not where a move claims it is."""

    def __init__(self, ticket_id: str, bucket: str | None = None):
        self.ticket_id = ticket_id
        self.bucket = bucket
        where = f" in bucket {bucket!r}" if bucket is not None else ""
        super().__init__(f"Ticket {ticket_id}{where} not found")


class GatewayError(TickboardError):
    """Raised when the REST service call fails."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class PayloadError(TickboardError):
    """Raised when a wire payload is missing fields or has bad values."""


class InvalidTransition(TickboardError):
    """Raised when a sprint lifecycle transition is not allowed."""

    def __init__(self, sprint_id: str, from_status, to_status):
        self.sprint_id = sprint_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid transition for sprint {sprint_id}: "
            f"{from_status.value} → {to_status.value}"
        )


class ConfigError(TickboardError):
    """Raised when a config file or environment value cannot be used."""

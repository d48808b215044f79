"""Exceptions raised by the ticket lifecycle services."""


class LifecycleError(Exception):
    """Base exception for lifecycle operations."""
    pass


class UnauthorizedError(LifecycleError):
    """No resolvable identity for the caller."""
    pass


class ForbiddenError(LifecycleError):
    """Caller's role may not perform the operation."""
    pass


class NotFoundError(LifecycleError):
    """A ticket, team, pod, user or form template does not exist."""
    pass


class TicketNotFoundError(NotFoundError):
    """Ticket does not exist (or is not visible to the caller)."""

    def __init__(self, ticket_id: str):
        super().__init__(f"Feedback {ticket_id} not found")
        self.ticket_id = ticket_id


class ValidationError(LifecycleError):
    """Input is missing or malformed."""

    def __init__(self, message: str, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.fields = fields or {}


class InvalidTransitionError(LifecycleError):
    """Operation not allowed from the ticket's current status."""
    pass


class ConflictError(LifecycleError):
    """Ticket id collision or a concurrent modification of the same ticket."""
    pass

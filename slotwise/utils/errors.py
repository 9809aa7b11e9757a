"""
Domain exceptions raised by services and translated to HTTP responses by the API layer.
"""


class NotFoundError(Exception):
    """Unknown business, service, appointment or availability window."""

    def __init__(self, resource: str, resource_id=None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class BookingRejectedError(Exception):
    """Requested slot failed validation. No state was changed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class SlotConflictError(Exception):
    """The storage-level uniqueness constraint rejected a concurrent booking."""

    def __init__(self, reason: str = "This time slot was just booked by someone else"):
        self.reason = reason
        super().__init__(reason)

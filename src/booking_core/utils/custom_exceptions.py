class NotFoundException(Exception):
    def __init__(self, resource: str, identifier: str, status_code: int):
        self.resource = resource
        self.identifier = identifier
        self.status_code = status_code

    def __str__(self):
        return f"{self.resource} '{self.identifier}' not found"


class SlotConflict(Exception):
    """The requested interval is already held by an active booking."""

    def __init__(self, provider_id: str, conflicting_ids=None):
        self.provider_id = provider_id
        self.conflicting_ids = list(conflicting_ids or [])

    def __str__(self):
        return "This time is no longer available, please choose another"


class InvalidTransition(Exception):
    def __init__(self, booking_id: str, current, target):
        self.booking_id = booking_id
        self.current = current
        self.target = target

    def __str__(self):
        return (
            f"booking '{self.booking_id}' cannot move from "
            f"{getattr(self.current, 'value', self.current)} to "
            f"{getattr(self.target, 'value', self.target)}"
        )


class PermissionDenied(Exception):
    pass


class StoreUnavailable(Exception):
    retryable = True


class TransactionAborted(StoreUnavailable):
    retryable = True


class WriteConflict(Exception):
    """A conditional write lost to a concurrently committed write."""

"""
Error taxonomy for the tracking core.

The core raises these; the HTTP layer turns them into {code, message}
responses using status_code.
"""


class TrackingError(Exception):
    """Base class for all domain failures."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(TrackingError):
    """Malformed or missing required fields. Reported before any I/O."""
    status_code = 400


class InvalidLocationError(InvalidInputError):
    def __init__(self, message: str = "Location data is invalid"):
        super().__init__(message)


class InvalidDevicesError(InvalidInputError):
    def __init__(self, message: str = "Devices data is invalid"):
        super().__init__(message)


class NotFoundError(TrackingError):
    """A flag, device history or trackee does not exist."""
    status_code = 404


class FlagNotFoundError(NotFoundError):
    def __init__(self, name: str):
        super().__init__(f"No flag found with name {name}")
        self.name = name


class PersistenceError(TrackingError):
    """A Redis read or write failed. Partial writes are not rolled back."""
    status_code = 500

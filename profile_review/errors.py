"""Error taxonomy shared by the stores, the engines and the HTTP boundary."""


class ReviewError(Exception):
    """Base class for expected failures. Carries the HTTP status it maps to."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ReviewError):
    """
    Customer, artifact or interest absent, or present but owned by another
    customer. Both cases read the same to callers.
    """

    status_code = 404


class ValidationError(ReviewError):
    """Missing required input, bad enum value, malformed contact field, reserved key."""

    status_code = 400


class InvalidStateError(ReviewError):
    """A transition was attempted from a non-pending artifact, or on the wrong artifact type."""

    status_code = 400


class InternalError(ReviewError):
    """Storage failure. The message is logged, never returned to clients."""

    status_code = 500

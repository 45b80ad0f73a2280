"""Error taxonomy shared by every component.

Adapters raise these; component operations catch them at their boundary and
hand back an outcome model with a short, user-facing ``error`` string.
"""


class TailorHubError(Exception):
    """Base class for all expected failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TailorHubError):
    """Bad input: image type/size/resolution, out-of-range fields, illegal transitions."""


class TransientIOError(TailorHubError):
    """Network or storage failure. Safe to retry at the call site."""


class GenerationFailure(TailorHubError):
    """The try-on worker reported failure or polling ran out of attempts."""


class PreconditionError(TailorHubError):
    """Missing identity or missing upstream data. Not retried."""


class NotAuthenticatedError(PreconditionError):
    def __init__(self, message: str = "You must be logged in to continue"):
        super().__init__(message)


class NotFoundError(PreconditionError):
    """Referenced order or job does not exist (or is not visible to the caller)."""

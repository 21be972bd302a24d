class SwapMatchError(Exception):
    """Base class for errors raised by the swap matching engine."""


class FetchError(SwapMatchError):
    """Raised when a store read fails or times out. The whole matching cycle is aborted."""


class RecordNotFoundError(SwapMatchError):
    """Raised when a match or swap request id does not exist."""


class NotParticipantError(SwapMatchError):
    """Raised when the acting user is not one of the two requesters of a match."""


class InvalidStateError(SwapMatchError):
    """Raised when a lifecycle transition is not legal from the match's current status."""


class DuplicateMatchError(SwapMatchError):
    """Raised when a request already belongs to a non-cancelled match."""


class OperationInProgressError(SwapMatchError):
    """Raised when a matching cycle for the same key is already running. Try again shortly."""


class DataIntegrityWarning(UserWarning):
    """Emitted when a request references a shift that cannot be resolved."""


# Mapping of custom exceptions to HTTP status codes
CUSTOM_ERRORS = {
    FetchError: 503,
    RecordNotFoundError: 404,
    NotParticipantError: 403,
    InvalidStateError: 409,
    DuplicateMatchError: 409,
    OperationInProgressError: 429,
}
